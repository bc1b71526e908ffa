"""Common module — shared utilities for the Megafast leave ledger."""

from megafast.common.constants import (
    MAX_ANNUAL_ALLOCATION_DAYS,
    WEEKEND_DAYS,
    LeaveStatus,
    SeedOutcome,
)
from megafast.common.exceptions import (
    AppException,
    ConflictError,
    InsufficientBalanceException,
    InvalidStateException,
    NotFoundException,
    TransactionConflictException,
    ValidationException,
    register_exception_handlers,
)

__all__ = [
    # Constants / Enums
    "LeaveStatus",
    "SeedOutcome",
    "MAX_ANNUAL_ALLOCATION_DAYS",
    "WEEKEND_DAYS",
    # Exceptions
    "AppException",
    "ConflictError",
    "InsufficientBalanceException",
    "InvalidStateException",
    "NotFoundException",
    "TransactionConflictException",
    "ValidationException",
    "register_exception_handlers",
]
