"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Request  → request bodies (write)
  - *Out                → response bodies (read)
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from megafast.common.constants import LeaveStatus, SeedOutcome

# Balance keys join employee, category and year with "_"
ID_PATTERN = r"^[^_]+$"


# ═════════════════════════════════════════════════════════════════════
# Leave Category
# ═════════════════════════════════════════════════════════════════════


class LeaveCategoryCreate(BaseModel):
    """Payload for creating a leave category."""

    id: Optional[str] = Field(
        None,
        max_length=64,
        pattern=ID_PATTERN,
        description="Optional stable id, e.g. 'annuel'",
    )
    name: str = Field(..., min_length=1, max_length=100)
    annual_days: Optional[int] = Field(
        None, ge=0, description="Yearly cap; null means uncapped by category"
    )
    description: Optional[str] = None
    paid: bool = True


class LeaveCategoryUpdate(BaseModel):
    """Partial update of a leave category."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    annual_days: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None
    paid: Optional[bool] = None


class LeaveCategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    annual_days: Optional[int] = None
    description: Optional[str] = None
    paid: bool = True


# ═════════════════════════════════════════════════════════════════════
# Leave Request
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for filing a leave request."""

    employee_id: str = Field(..., min_length=1, max_length=128, pattern=ID_PATTERN)
    category_id: str = Field(..., min_length=1, max_length=64, pattern=ID_PATTERN)
    start_date: date = Field(..., description="Leave start date (inclusive)")
    end_date: date = Field(..., description="Leave end date (inclusive)")
    holidays: list[date] = Field(
        default_factory=list, description="Public holidays to exclude"
    )

    @model_validator(mode="after")
    def validate_dates(self) -> "LeaveRequestCreate":
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date.")
        if (self.end_date - self.start_date).days > 365:
            raise ValueError("Leave request cannot span more than 365 days.")
        return self


class LeaveRequestOut(BaseModel):
    """Full leave request response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    employee_id: str
    category_id: str
    start_date: date
    end_date: date
    status: LeaveStatus
    requested_days: int
    requested_at: datetime
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    comment: Optional[str] = None


class LeaveApproveRequest(BaseModel):
    """Payload for approving a leave request."""

    approver_id: str = Field(..., min_length=1, max_length=128)
    employee_entry_date: date = Field(
        ..., description="Employment start date from the employee directory"
    )
    holidays: list[date] = Field(default_factory=list)


class LeaveRejectRequest(BaseModel):
    """Payload for rejecting a leave request."""

    approver_id: str = Field(..., min_length=1, max_length=128)
    comment: Optional[str] = Field(None, max_length=500)


# ═════════════════════════════════════════════════════════════════════
# Leave Balance
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceOut(BaseModel):
    """Ledger row with computed available field."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    employee_id: str
    category_id: str
    year: int
    allocated: int
    used: int
    carried_over: int
    available: int


class EmployeeEntry(BaseModel):
    """Employee directory record needed for allocation."""

    employee_id: str = Field(..., min_length=1, max_length=128, pattern=ID_PATTERN)
    entry_date: date


class SeedAllocationsRequest(BaseModel):
    """Bulk year-start seeding of one category for many employees."""

    employees: list[EmployeeEntry]
    year: int = Field(..., ge=1970, le=2100)
    category_id: str = Field(..., min_length=1, max_length=64, pattern=ID_PATTERN)


class SeedResultOut(BaseModel):
    employee_id: str
    balance_id: str
    outcome: SeedOutcome
    allocated: Optional[int] = None
    detail: Optional[str] = None


class SeedAllocationsOut(BaseModel):
    year: int
    category_id: str
    results: list[SeedResultOut]
    total_seeded: int = 0
    total_skipped: int = 0


class CarryOverCreditRequest(BaseModel):
    """Credit prior-year unused days into a balance."""

    employee_id: str = Field(..., min_length=1, max_length=128, pattern=ID_PATTERN)
    category_id: str = Field(..., min_length=1, max_length=64, pattern=ID_PATTERN)
    year: int = Field(..., ge=1970, le=2100)
    days: int = Field(..., ge=0, description="Absolute carry-over for the year")
    entry_date: date
