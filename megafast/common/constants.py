"""Enums and constants for the leave ledger."""

from __future__ import annotations

import enum


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    taken = "taken"


class SeedOutcome(str, enum.Enum):
    created = "created"
    updated = "updated"
    unchanged = "unchanged"
    skipped = "skipped"


# ── Allocation rules ────────────────────────────────────────────────

MAX_MONTHLY_ACCRUAL_DAYS = 12
SENIORITY_BONUS_PERIOD_YEARS = 5
MAX_ANNUAL_ALLOCATION_DAYS = 18

# Saturday (5) and Sunday (6)
WEEKEND_DAYS = frozenset({5, 6})

