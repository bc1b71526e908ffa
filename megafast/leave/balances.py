"""Balance ledger operations, always executed inside a LeaveTransaction."""

from __future__ import annotations

import logging
from typing import Optional

from megafast.common.constants import SeedOutcome
from megafast.common.exceptions import (
    ConflictError,
    InsufficientBalanceException,
    NotFoundException,
)
from megafast.leave.models import LeaveBalance
from megafast.leave.store import LeaveTransaction

logger = logging.getLogger(__name__)


def _check_owner(
    balance: LeaveBalance, employee_id: str, category_id: str, year: int,
) -> None:
    """Refuse a row whose key matches but whose owner does not."""
    if (balance.employee_id, balance.category_id, balance.year) != (
        employee_id, category_id, year,
    ):
        raise ConflictError("balance_id", balance.id)


async def get_or_repair(
    tx: LeaveTransaction,
    balance_id: str,
    employee_id: str,
    category_id: str,
    year: int,
    fresh_allocation: int,
) -> LeaveBalance:
    """Load the ledger row, creating it or realigning ``allocated``.

    Entitlement is always taken from the current rules: an existing row
    whose ``allocated`` differs from *fresh_allocation* is corrected in
    place. ``used`` and ``carried_over`` are never touched here. A row
    stored under the same key for another owner raises ConflictError.
    """
    balance = await tx.get_balance(balance_id)
    if balance is None:
        balance = LeaveBalance(
            id=balance_id,
            employee_id=employee_id,
            category_id=category_id,
            year=year,
            allocated=fresh_allocation,
            used=0,
            carried_over=0,
        )
        await tx.put_balance(balance)
        return balance

    _check_owner(balance, employee_id, category_id, year)
    if balance.allocated != fresh_allocation:
        logger.info(
            "Realigning allocation of %s: %s -> %s",
            balance_id, balance.allocated, fresh_allocation,
        )
        balance.allocated = fresh_allocation
        await tx.put_balance(balance)
    return balance


async def debit(tx: LeaveTransaction, balance_id: str, days: int) -> LeaveBalance:
    """Consume *days* from the ledger row; never lets it go negative."""
    balance = await tx.get_balance(balance_id)
    if balance is None:
        raise NotFoundException("LeaveBalance", balance_id)

    available = balance.available
    if available < days:
        raise InsufficientBalanceException(balance_id, available, days)

    balance.used = (balance.used or 0) + days
    await tx.put_balance(balance)
    return balance


async def seed_or_credit(
    tx: LeaveTransaction,
    balance_id: str,
    *,
    employee_id: str,
    category_id: str,
    year: int,
    allocated: int,
    carried_over: Optional[int] = None,
) -> tuple[LeaveBalance, SeedOutcome]:
    """Upsert with merge semantics.

    ``allocated`` and, when given, ``carried_over`` are written as
    absolute values, so running the same seed twice is a no-op. ``used``
    is left alone.
    """
    balance = await tx.get_balance(balance_id)
    if balance is None:
        balance = LeaveBalance(
            id=balance_id,
            employee_id=employee_id,
            category_id=category_id,
            year=year,
            allocated=allocated,
            used=0,
            carried_over=carried_over or 0,
        )
        await tx.put_balance(balance)
        return balance, SeedOutcome.created

    _check_owner(balance, employee_id, category_id, year)
    new_carried_over = balance.carried_over if carried_over is None else carried_over
    if balance.allocated == allocated and balance.carried_over == new_carried_over:
        return balance, SeedOutcome.unchanged

    entitlement = allocated + new_carried_over
    if entitlement < (balance.used or 0):
        raise InsufficientBalanceException(balance_id, entitlement, balance.used)

    balance.allocated = allocated
    balance.carried_over = new_carried_over
    await tx.put_balance(balance)
    return balance, SeedOutcome.updated
