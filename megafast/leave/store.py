"""Transactional storage contract for the leave ledger.

Business logic only sees :class:`LeaveStore` and :class:`LeaveTransaction`.
``run_in_transaction`` executes the callback atomically; when a concurrent
commit touched a document the callback read or wrote, the attempt is
discarded and the callback runs again, up to ``max_attempts`` times.
Callbacks must therefore be free of side effects outside the transaction.

Two backends:
  - :class:`SqlAlchemyLeaveStore`: relational database, optimistic
    versioning via ``version_id_col``.
  - :class:`megafast.leave.memory_store.InMemoryLeaveStore`: versioned
    dict guarded by an ``asyncio.Lock``.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional, Protocol, Sequence, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from megafast.common.constants import LeaveStatus
from megafast.common.exceptions import TransactionConflictException
from megafast.config import settings
from megafast.leave.models import LeaveBalance, LeaveRequest

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL serialization_failure / deadlock_detected
_RETRYABLE_SQLSTATES = {"40001", "40P01"}
_UNIQUE_VIOLATION = "23505"


class LeaveTransaction(Protocol):
    """Reads and writes visible only inside one transaction attempt."""

    async def get_request(self, request_id: str) -> Optional[LeaveRequest]: ...

    async def put_request(self, leave_request: LeaveRequest) -> None: ...

    async def get_balance(self, balance_id: str) -> Optional[LeaveBalance]: ...

    async def put_balance(self, balance: LeaveBalance) -> None: ...


class LeaveStore(Protocol):
    """Transactor plus the plain (non-transactional) queries."""

    async def run_in_transaction(
        self, fn: Callable[[LeaveTransaction], Awaitable[T]],
    ) -> T: ...

    async def fetch_request(self, request_id: str) -> Optional[LeaveRequest]: ...

    async def list_requests(
        self,
        *,
        employee_id: Optional[str] = None,
        status: Optional[LeaveStatus] = None,
    ) -> Sequence[LeaveRequest]: ...

    async def fetch_balance(self, balance_id: str) -> Optional[LeaveBalance]: ...

    async def list_balances(
        self,
        employee_id: str,
        *,
        year: Optional[int] = None,
    ) -> Sequence[LeaveBalance]: ...


# ═════════════════════════════════════════════════════════════════════
# SQLAlchemy backend
# ═════════════════════════════════════════════════════════════════════


class SqlAlchemyLeaveTransaction:
    """Thin adapter over an ``AsyncSession`` that is inside ``begin()``.

    Writes are flushed immediately so later reads in the same attempt see
    them and version conflicts surface as early as possible.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_request(self, request_id: str) -> Optional[LeaveRequest]:
        return await self._session.get(LeaveRequest, request_id)

    async def put_request(self, leave_request: LeaveRequest) -> None:
        self._session.add(leave_request)
        await self._session.flush()

    async def get_balance(self, balance_id: str) -> Optional[LeaveBalance]:
        return await self._session.get(LeaveBalance, balance_id)

    async def put_balance(self, balance: LeaveBalance) -> None:
        self._session.add(balance)
        await self._session.flush()


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def _is_conflict(exc: Exception) -> bool:
    """Whether *exc* means "somebody else committed first"."""
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, IntegrityError):
        # Only a duplicate key means a concurrent insert won
        code = _sqlstate(exc)
        if code is not None:
            return code == _UNIQUE_VIOLATION
        return "UNIQUE" in str(exc.orig).upper()
    if isinstance(exc, DBAPIError):
        return _sqlstate(exc) in _RETRYABLE_SQLSTATES
    return False


class SqlAlchemyLeaveStore:
    """Leave store backed by a SQL database through async SQLAlchemy.

    Each attempt gets a fresh session; the whole callback plus the final
    flush runs inside ``session.begin()`` so any exception rolls back
    every write. Lost updates are caught by the version columns on
    ``LeaveRequest`` and ``LeaveBalance`` (``StaleDataError``); two
    attempts creating the same ledger row collide on its primary key
    (``IntegrityError`` carrying a unique violation).
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        max_attempts: Optional[int] = None,
    ) -> None:
        self._session_factory = session_factory
        self.max_attempts = max_attempts or settings.TRANSACTION_MAX_ATTEMPTS

    async def run_in_transaction(
        self, fn: Callable[[LeaveTransaction], Awaitable[T]],
    ) -> T:
        for attempt in range(1, self.max_attempts + 1):
            async with self._session_factory() as session:
                try:
                    async with session.begin():
                        result = await fn(SqlAlchemyLeaveTransaction(session))
                    return result
                except (StaleDataError, DBAPIError) as exc:
                    if not _is_conflict(exc):
                        raise
                    logger.warning(
                        "Leave transaction conflict (attempt %d/%d): %s",
                        attempt, self.max_attempts, exc.__class__.__name__,
                    )
        raise TransactionConflictException(self.max_attempts)

    # ── Plain queries ───────────────────────────────────────────────

    async def fetch_request(self, request_id: str) -> Optional[LeaveRequest]:
        async with self._session_factory() as session:
            return await session.get(LeaveRequest, request_id)

    async def list_requests(
        self,
        *,
        employee_id: Optional[str] = None,
        status: Optional[LeaveStatus] = None,
    ) -> Sequence[LeaveRequest]:
        query = select(LeaveRequest).order_by(LeaveRequest.requested_at.desc())
        if employee_id:
            query = query.where(LeaveRequest.employee_id == employee_id)
        if status:
            query = query.where(LeaveRequest.status == status)

        async with self._session_factory() as session:
            result = await session.execute(query)
            return result.scalars().all()

    async def fetch_balance(self, balance_id: str) -> Optional[LeaveBalance]:
        async with self._session_factory() as session:
            return await session.get(LeaveBalance, balance_id)

    async def list_balances(
        self,
        employee_id: str,
        *,
        year: Optional[int] = None,
    ) -> Sequence[LeaveBalance]:
        query = (
            select(LeaveBalance)
            .where(LeaveBalance.employee_id == employee_id)
            .order_by(LeaveBalance.year.desc(), LeaveBalance.category_id)
        )
        if year is not None:
            query = query.where(LeaveBalance.year == year)

        async with self._session_factory() as session:
            result = await session.execute(query)
            return result.scalars().all()
