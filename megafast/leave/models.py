"""Leave ORM models: LeaveCategory, LeaveRequest, LeaveBalance."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from megafast.common.constants import LeaveStatus
from megafast.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class LeaveCategory(Base):
    __tablename__ = "leave_categories"

    id: Mapped[str] = mapped_column(sa.String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    # NULL means the category itself does not cap the yearly entitlement
    annual_days: Mapped[Optional[int]] = mapped_column(sa.Integer)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    paid: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.Index("ix_leave_requests_employee_status", "employee_id", "status"),
    )

    id: Mapped[str] = mapped_column(sa.String(64), primary_key=True, default=_new_id)
    employee_id: Mapped[str] = mapped_column(sa.String(128), nullable=False)
    category_id: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status"),
        nullable=False,
        default=LeaveStatus.pending,
    )
    requested_days: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    requested_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False
    )
    approved_by: Mapped[Optional[str]] = mapped_column(sa.String(128))
    approved_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    comment: Mapped[Optional[str]] = mapped_column(sa.Text)
    version: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class LeaveBalance(Base):
    __tablename__ = "leave_balances"
    __table_args__ = (
        sa.UniqueConstraint(
            "employee_id", "category_id", "year", name="uq_leave_balance"
        ),
    )

    # Always balance_id(employee_id, category_id, year)
    id: Mapped[str] = mapped_column(sa.String(256), primary_key=True)
    employee_id: Mapped[str] = mapped_column(sa.String(128), nullable=False)
    category_id: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    allocated: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    used: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    carried_over: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def available(self) -> int:
        return (self.allocated or 0) + (self.carried_over or 0) - (self.used or 0)
