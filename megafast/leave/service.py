"""Leave service layer — request ledger, approval workflow, allocation seeding.

Business logic:
  - Leave requests are filed without any balance check; the day count
    stamped at creation is provisional
  - Approval re-derives day count and entitlement, repairs the ledger row
    and debits it in the same transaction as the status change
  - Rejection only changes the request
  - Year-start seeding upserts one ledger row per employee, each in its
    own transaction
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Iterable, Optional, Sequence

from megafast.common.constants import LeaveStatus, SeedOutcome
from megafast.common.exceptions import (
    AppException,
    InvalidStateException,
    NotFoundException,
)
from megafast.leave import balances
from megafast.leave.models import LeaveBalance, LeaveRequest
from megafast.leave.rules import (
    DateLike,
    as_calendar_day,
    balance_id,
    business_days,
    calculate_annual_allocation,
)
from megafast.leave.schemas import EmployeeEntry, SeedAllocationsOut, SeedResultOut
from megafast.leave.store import LeaveStore, LeaveTransaction

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave operations: requests, approvals, balances, seeding."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _load_pending(tx: LeaveTransaction, request_id: str) -> LeaveRequest:
        leave_req = await tx.get_request(request_id)
        if leave_req is None:
            raise NotFoundException("LeaveRequest", request_id)
        if leave_req.status != LeaveStatus.pending:
            raise InvalidStateException(
                "LeaveRequest", request_id, LeaveStatus(leave_req.status).value,
            )
        return leave_req

    # ─────────────────────────────────────────────────────────────────
    # Request ledger
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def request_leave(
        store: LeaveStore,
        employee_id: str,
        category_id: str,
        start_date: DateLike,
        end_date: DateLike,
        holidays: Iterable[DateLike] = (),
    ) -> LeaveRequest:
        """File a pending leave request.

        The balance is not checked here; it may change before an approver
        looks at the request, so sufficiency is only enforced on approval.
        """
        start = as_calendar_day(start_date)
        end = as_calendar_day(end_date)
        request_id = str(uuid.uuid4())
        days = business_days(start, end, list(holidays))
        requested_at = datetime.now(timezone.utc)

        async def _create(tx: LeaveTransaction) -> LeaveRequest:
            leave_req = LeaveRequest(
                id=request_id,
                employee_id=employee_id,
                category_id=category_id,
                start_date=start,
                end_date=end,
                status=LeaveStatus.pending,
                requested_days=days,
                requested_at=requested_at,
            )
            await tx.put_request(leave_req)
            return leave_req

        created = await store.run_in_transaction(_create)
        logger.info(
            "Leave request %s filed by %s (%s, %s..%s, %d days)",
            created.id, employee_id, category_id, start, end, created.requested_days,
        )
        return created

    @staticmethod
    async def get_request(store: LeaveStore, request_id: str) -> LeaveRequest:
        leave_req = await store.fetch_request(request_id)
        if leave_req is None:
            raise NotFoundException("LeaveRequest", request_id)
        return leave_req

    @staticmethod
    async def list_requests(
        store: LeaveStore,
        *,
        employee_id: Optional[str] = None,
        status: Optional[LeaveStatus] = None,
    ) -> Sequence[LeaveRequest]:
        return await store.list_requests(employee_id=employee_id, status=status)

    # ─────────────────────────────────────────────────────────────────
    # Approve Leave
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def approve_leave(
        store: LeaveStore,
        request_id: str,
        approver_id: str,
        employee_entry_date: DateLike,
        holidays: Iterable[DateLike] = (),
    ) -> LeaveRequest:
        """Approve a pending request and debit the ledger atomically.

        Day count and entitlement are recomputed from the arguments; the
        values stored at creation or on the ledger row are not trusted.
        Raises NotFoundException, InvalidStateException or
        InsufficientBalanceException, in which case nothing is written.
        """
        holiday_days = [as_calendar_day(h) for h in holidays]

        async def _approve(tx: LeaveTransaction) -> LeaveRequest:
            leave_req = await LeaveService._load_pending(tx, request_id)

            days = business_days(leave_req.start_date, leave_req.end_date, holiday_days)
            year = leave_req.start_date.year
            key = balance_id(leave_req.employee_id, leave_req.category_id, year)
            allocation = calculate_annual_allocation(employee_entry_date, year)

            await balances.get_or_repair(
                tx, key, leave_req.employee_id, leave_req.category_id, year, allocation,
            )
            await balances.debit(tx, key, days)

            leave_req.status = LeaveStatus.approved
            leave_req.approved_by = approver_id
            leave_req.approved_at = datetime.now(timezone.utc)
            leave_req.requested_days = days
            await tx.put_request(leave_req)
            return leave_req

        approved = await store.run_in_transaction(_approve)
        logger.info(
            "Leave request %s approved by %s (%d days debited)",
            request_id, approver_id, approved.requested_days,
        )
        return approved

    # ─────────────────────────────────────────────────────────────────
    # Reject Leave
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def reject_leave(
        store: LeaveStore,
        request_id: str,
        approver_id: str,
        comment: Optional[str] = None,
    ) -> LeaveRequest:
        """Reject a pending request. Balances are never touched."""

        async def _reject(tx: LeaveTransaction) -> LeaveRequest:
            leave_req = await LeaveService._load_pending(tx, request_id)
            leave_req.status = LeaveStatus.rejected
            leave_req.approved_by = approver_id
            leave_req.approved_at = datetime.now(timezone.utc)
            leave_req.comment = comment or None
            await tx.put_request(leave_req)
            return leave_req

        rejected = await store.run_in_transaction(_reject)
        logger.info("Leave request %s rejected by %s", request_id, approver_id)
        return rejected

    # ─────────────────────────────────────────────────────────────────
    # Balances
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_balances(
        store: LeaveStore,
        employee_id: str,
        year: Optional[int] = None,
    ) -> Sequence[LeaveBalance]:
        return await store.list_balances(employee_id, year=year)

    @staticmethod
    async def seed_annual_allocations_for_all_employees(
        store: LeaveStore,
        employees: Iterable[EmployeeEntry],
        year: int,
        category_id: str,
    ) -> SeedAllocationsOut:
        """Upsert the year's entitlement for every employee.

        Each employee is handled in a separate transaction, so a failure
        on one row does not undo the others; it is reported as skipped.
        Re-running with the same input changes nothing.
        """
        results: list[SeedResultOut] = []

        for emp in employees:
            key = balance_id(emp.employee_id, category_id, year)
            allocated = calculate_annual_allocation(emp.entry_date, year)

            async def _seed(
                tx: LeaveTransaction,
                employee_id: str = emp.employee_id,
                key: str = key,
                allocated: int = allocated,
            ) -> SeedOutcome:
                _, outcome = await balances.seed_or_credit(
                    tx,
                    key,
                    employee_id=employee_id,
                    category_id=category_id,
                    year=year,
                    allocated=allocated,
                )
                return outcome

            try:
                outcome = await store.run_in_transaction(_seed)
            except AppException as exc:
                logger.warning("Seeding %s skipped: %s", key, exc.detail)
                results.append(SeedResultOut(
                    employee_id=emp.employee_id,
                    balance_id=key,
                    outcome=SeedOutcome.skipped,
                    detail=exc.detail,
                ))
                continue

            results.append(SeedResultOut(
                employee_id=emp.employee_id,
                balance_id=key,
                outcome=outcome,
                allocated=allocated,
            ))

        skipped = sum(1 for r in results if r.outcome == SeedOutcome.skipped)
        logger.info(
            "Seeded %s/%d: %d rows, %d skipped",
            category_id, year, len(results) - skipped, skipped,
        )
        return SeedAllocationsOut(
            year=year,
            category_id=category_id,
            results=results,
            total_seeded=len(results) - skipped,
            total_skipped=skipped,
        )

    @staticmethod
    async def credit_carry_over(
        store: LeaveStore,
        employee_id: str,
        category_id: str,
        year: int,
        days: int,
        entry_date: date,
    ) -> LeaveBalance:
        """Set the carried-over days of a ledger row (absolute, idempotent)."""
        key = balance_id(employee_id, category_id, year)
        allocated = calculate_annual_allocation(entry_date, year)

        async def _credit(tx: LeaveTransaction) -> LeaveBalance:
            balance, _ = await balances.seed_or_credit(
                tx,
                key,
                employee_id=employee_id,
                category_id=category_id,
                year=year,
                allocated=allocated,
                carried_over=days,
            )
            return balance

        balance = await store.run_in_transaction(_credit)
        logger.info("Carry-over on %s set to %d", key, days)
        return balance
