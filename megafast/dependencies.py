"""Shared FastAPI dependencies."""

from functools import lru_cache

from megafast.config import settings
from megafast.database import async_session_factory
from megafast.leave.memory_store import InMemoryLeaveStore
from megafast.leave.store import LeaveStore, SqlAlchemyLeaveStore


@lru_cache(maxsize=1)
def get_leave_store() -> LeaveStore:
    """Process-wide leave store selected by LEAVE_STORE_BACKEND."""
    if settings.LEAVE_STORE_BACKEND == "memory":
        return InMemoryLeaveStore()
    return SqlAlchemyLeaveStore(async_session_factory)
