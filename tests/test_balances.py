"""Balance ledger operations — get_or_repair, debit, seed_or_credit."""

from __future__ import annotations

import pytest

from megafast.common.constants import SeedOutcome
from megafast.common.exceptions import (
    ConflictError,
    InsufficientBalanceException,
    NotFoundException,
)
from megafast.leave import balances
from megafast.leave.rules import balance_id

KEY = balance_id("E1", "annuel", 2024)


async def _seed(store, *, allocated=8, carried_over=None):
    async def _fn(tx):
        balance, _ = await balances.seed_or_credit(
            tx, KEY,
            employee_id="E1", category_id="annuel", year=2024,
            allocated=allocated, carried_over=carried_over,
        )
        return balance

    return await store.run_in_transaction(_fn)


async def _debit(store, days):
    return await store.run_in_transaction(lambda tx: balances.debit(tx, KEY, days))


class TestGetOrRepair:

    async def test_creates_missing_row(self, store):
        balance = await store.run_in_transaction(
            lambda tx: balances.get_or_repair(tx, KEY, "E1", "annuel", 2024, 12)
        )
        assert balance.id == "E1_annuel_2024"
        assert (balance.allocated, balance.used, balance.carried_over) == (12, 0, 0)

        stored = await store.fetch_balance(KEY)
        assert stored.allocated == 12

    async def test_realigns_allocation(self, store):
        await _seed(store, allocated=8)
        await _debit(store, 3)

        await store.run_in_transaction(
            lambda tx: balances.get_or_repair(tx, KEY, "E1", "annuel", 2024, 13)
        )

        stored = await store.fetch_balance(KEY)
        assert stored.allocated == 13
        assert stored.used == 3

    async def test_repeated_call_does_not_touch_used(self, store):
        await _seed(store, allocated=8)
        await _debit(store, 3)

        for _ in range(2):
            await store.run_in_transaction(
                lambda tx: balances.get_or_repair(tx, KEY, "E1", "annuel", 2024, 8)
            )

        stored = await store.fetch_balance(KEY)
        assert stored.used == 3
        assert stored.allocated == 8

    async def test_row_of_another_owner_is_refused(self, store):
        key = "A_B_c_2024"

        async def _seed_other(tx):
            return await balances.seed_or_credit(
                tx, key, employee_id="A_B", category_id="c", year=2024, allocated=8,
            )

        await store.run_in_transaction(_seed_other)

        with pytest.raises(ConflictError):
            await store.run_in_transaction(
                lambda tx: balances.get_or_repair(tx, key, "A", "B_c", 2024, 13)
            )
        with pytest.raises(ConflictError):
            await store.run_in_transaction(
                lambda tx: balances.seed_or_credit(
                    tx, key, employee_id="A", category_id="B_c", year=2024, allocated=13,
                )
            )

        stored = await store.fetch_balance(key)
        assert (stored.employee_id, stored.allocated) == ("A_B", 8)

    async def test_unchanged_row_is_not_written(self, memory_store):
        await _seed(memory_store, allocated=8)
        commits_before = memory_store.commits

        captured = {}

        async def _fn(tx):
            captured["tx"] = tx
            return await balances.get_or_repair(tx, KEY, "E1", "annuel", 2024, 8)

        await memory_store.run_in_transaction(_fn)
        assert captured["tx"].writes == {}
        assert memory_store.commits == commits_before + 1


class TestDebit:

    async def test_debit_increments_used(self, store):
        await _seed(store, allocated=8)
        balance = await _debit(store, 5)
        assert balance.used == 5
        assert balance.available == 3

    async def test_debit_counts_carry_over(self, store):
        await _seed(store, allocated=8, carried_over=2)
        balance = await _debit(store, 10)
        assert balance.available == 0

    async def test_debit_beyond_available_fails(self, store):
        await _seed(store, allocated=8)
        with pytest.raises(InsufficientBalanceException) as exc_info:
            await _debit(store, 9)
        assert exc_info.value.available == 8
        assert exc_info.value.requested == 9

        stored = await store.fetch_balance(KEY)
        assert stored.used == 0

    async def test_debit_missing_row(self, store):
        with pytest.raises(NotFoundException):
            await _debit(store, 1)


class TestSeedOrCredit:

    async def test_seed_is_idempotent(self, store):
        await _seed(store, allocated=12)
        await _seed(store, allocated=12)

        stored = await store.fetch_balance(KEY)
        assert (stored.allocated, stored.used, stored.carried_over) == (12, 0, 0)

    async def test_seed_reports_outcome(self, memory_store):
        async def _fn(tx):
            _, outcome = await balances.seed_or_credit(
                tx, KEY,
                employee_id="E1", category_id="annuel", year=2024, allocated=12,
            )
            return outcome

        assert await memory_store.run_in_transaction(_fn) == SeedOutcome.created
        assert await memory_store.run_in_transaction(_fn) == SeedOutcome.unchanged

    async def test_reseed_keeps_used_and_carry_over(self, store):
        await _seed(store, allocated=8, carried_over=4)
        await _debit(store, 6)

        await _seed(store, allocated=10)

        stored = await store.fetch_balance(KEY)
        assert stored.allocated == 10
        assert stored.carried_over == 4
        assert stored.used == 6

    async def test_carry_over_is_absolute(self, store):
        await _seed(store, allocated=8, carried_over=3)
        await _seed(store, allocated=8, carried_over=3)

        stored = await store.fetch_balance(KEY)
        assert stored.carried_over == 3

    async def test_refuses_to_push_ledger_negative(self, store):
        await _seed(store, allocated=8)
        await _debit(store, 8)

        with pytest.raises(InsufficientBalanceException):
            await _seed(store, allocated=5)

        stored = await store.fetch_balance(KEY)
        assert stored.allocated == 8
