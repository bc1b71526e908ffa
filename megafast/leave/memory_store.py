"""In-process leave store for tests and local development.

Documents live in a dict keyed by ``(collection, id)`` together with a
version number. A transaction remembers the version of every document
it reads and buffers its writes; at commit, under an ``asyncio.Lock``,
the read set is validated against the current versions. Any mismatch
means a concurrent commit touched the same document, so the attempt is
thrown away and the callback runs again. An exception raised by the
callback after one of its reads went stale is retried the same way, so
business errors are only reported when decided on current data.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

import sqlalchemy as sa

from megafast.common.constants import LeaveStatus
from megafast.common.exceptions import TransactionConflictException
from megafast.config import settings
from megafast.leave.models import LeaveBalance, LeaveRequest
from megafast.leave.store import LeaveTransaction

logger = logging.getLogger(__name__)

T = TypeVar("T")

REQUESTS = "leaveRequests"
BALANCES = "leaveBalances"

_Key = tuple[str, str]


def _snapshot(obj: Any) -> dict[str, Any]:
    """Copy the column values of an ORM instance into a plain dict."""
    mapper = sa.inspect(type(obj))
    return {attr.key: getattr(obj, attr.key) for attr in mapper.column_attrs}


class _CommitConflict(Exception):
    pass


class InMemoryLeaveTransaction:
    def __init__(self, store: InMemoryLeaveStore) -> None:
        self._store = store
        self.reads: dict[_Key, int] = {}
        self.writes: dict[_Key, dict[str, Any]] = {}

    async def _get(self, key: _Key, model: type) -> Any:
        # Yield like a real round-trip so concurrent callers interleave
        await asyncio.sleep(0)
        if key in self.writes:
            return model(**self.writes[key])
        version, values = self._store._read(key)
        self.reads.setdefault(key, version)
        return model(**values) if values is not None else None

    async def get_request(self, request_id: str) -> Optional[LeaveRequest]:
        return await self._get((REQUESTS, request_id), LeaveRequest)

    async def put_request(self, leave_request: LeaveRequest) -> None:
        self.writes[(REQUESTS, leave_request.id)] = _snapshot(leave_request)

    async def get_balance(self, balance_id: str) -> Optional[LeaveBalance]:
        return await self._get((BALANCES, balance_id), LeaveBalance)

    async def put_balance(self, balance: LeaveBalance) -> None:
        self.writes[(BALANCES, balance.id)] = _snapshot(balance)


class InMemoryLeaveStore:
    """Versioned-document leave store with optimistic transactions."""

    def __init__(self, *, max_attempts: Optional[int] = None) -> None:
        self.max_attempts = max_attempts or settings.TRANSACTION_MAX_ATTEMPTS
        self._documents: dict[_Key, tuple[int, dict[str, Any]]] = {}
        self._lock = asyncio.Lock()
        self.commits = 0
        self.conflicts = 0

    def _read(self, key: _Key) -> tuple[int, Optional[dict[str, Any]]]:
        if key not in self._documents:
            return 0, None
        version, values = self._documents[key]
        return version, dict(values)

    def _stale_key(self, tx: InMemoryLeaveTransaction) -> Optional[_Key]:
        """First document read by *tx* that has changed since, if any."""
        for key, seen in tx.reads.items():
            current = self._documents.get(key)
            if (current[0] if current else 0) != seen:
                return key
        return None

    async def _commit(self, tx: InMemoryLeaveTransaction) -> None:
        async with self._lock:
            stale = self._stale_key(tx)
            if stale is not None:
                raise _CommitConflict(stale)
            for key, values in tx.writes.items():
                current = self._documents.get(key)
                version = (current[0] if current else 0) + 1
                self._documents[key] = (version, dict(values, version=version))
            self.commits += 1

    def _conflict(self, key: _Key, attempt: int) -> None:
        self.conflicts += 1
        logger.warning(
            "Leave transaction conflict on %s (attempt %d/%d)",
            key, attempt, self.max_attempts,
        )

    async def run_in_transaction(
        self, fn: Callable[[LeaveTransaction], Awaitable[T]],
    ) -> T:
        for attempt in range(1, self.max_attempts + 1):
            tx = InMemoryLeaveTransaction(self)
            try:
                result = await fn(tx)
            except Exception:
                # An error decided on stale reads is retried like a conflict
                stale = self._stale_key(tx)
                if stale is None:
                    raise
                self._conflict(stale, attempt)
                continue
            try:
                await self._commit(tx)
            except _CommitConflict as exc:
                self._conflict(exc.args[0], attempt)
                continue
            return result
        raise TransactionConflictException(self.max_attempts)

    # ── Plain queries ───────────────────────────────────────────────

    def _all(self, collection: str, model: type) -> list[Any]:
        return [
            model(**dict(values))
            for (coll, _), (_, values) in self._documents.items()
            if coll == collection
        ]

    async def fetch_request(self, request_id: str) -> Optional[LeaveRequest]:
        _, values = self._read((REQUESTS, request_id))
        return LeaveRequest(**values) if values is not None else None

    async def list_requests(
        self,
        *,
        employee_id: Optional[str] = None,
        status: Optional[LeaveStatus] = None,
    ) -> Sequence[LeaveRequest]:
        requests = [
            r for r in self._all(REQUESTS, LeaveRequest)
            if (not employee_id or r.employee_id == employee_id)
            and (not status or r.status == status)
        ]
        return sorted(requests, key=lambda r: r.requested_at, reverse=True)

    async def fetch_balance(self, balance_id: str) -> Optional[LeaveBalance]:
        _, values = self._read((BALANCES, balance_id))
        return LeaveBalance(**values) if values is not None else None

    async def list_balances(
        self,
        employee_id: str,
        *,
        year: Optional[int] = None,
    ) -> Sequence[LeaveBalance]:
        balances = [
            b for b in self._all(BALANCES, LeaveBalance)
            if b.employee_id == employee_id and (year is None or b.year == year)
        ]
        return sorted(balances, key=lambda b: (-b.year, b.category_id))
