"""Leave router — categories, requests, approve/reject, balances, seeding.

Authentication lives in front of this service; approver identity,
employee entry dates and holiday calendars arrive in the request bodies.
"""


from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from megafast.common.constants import LeaveStatus
from megafast.common.rate_limit import limiter
from megafast.database import get_db
from megafast.dependencies import get_leave_store
from megafast.leave.categories import LeaveCategoryService
from megafast.leave.schemas import (
    CarryOverCreditRequest,
    LeaveApproveRequest,
    LeaveBalanceOut,
    LeaveCategoryCreate,
    LeaveCategoryOut,
    LeaveCategoryUpdate,
    LeaveRejectRequest,
    LeaveRequestCreate,
    LeaveRequestOut,
    SeedAllocationsOut,
    SeedAllocationsRequest,
)
from megafast.leave.service import LeaveService
from megafast.leave.store import LeaveStore

router = APIRouter(prefix="", tags=["leave"])


# ── Categories ──────────────────────────────────────────────────────

@router.get("/categories", response_model=list[LeaveCategoryOut])
async def list_categories(db: AsyncSession = Depends(get_db)):
    """List leave categories."""
    return await LeaveCategoryService.list_categories(db)


@router.post("/categories", response_model=LeaveCategoryOut, status_code=201)
async def create_category(
    body: LeaveCategoryCreate,
    db: AsyncSession = Depends(get_db),
):
    return await LeaveCategoryService.create_category(db, body)


@router.get("/categories/{category_id}", response_model=LeaveCategoryOut)
async def get_category(category_id: str, db: AsyncSession = Depends(get_db)):
    return await LeaveCategoryService.get_category(db, category_id)


@router.patch("/categories/{category_id}", response_model=LeaveCategoryOut)
async def update_category(
    category_id: str,
    body: LeaveCategoryUpdate,
    db: AsyncSession = Depends(get_db),
):
    return await LeaveCategoryService.update_category(db, category_id, body)


@router.delete("/categories/{category_id}", status_code=204)
async def delete_category(category_id: str, db: AsyncSession = Depends(get_db)):
    await LeaveCategoryService.delete_category(db, category_id)
    return Response(status_code=204)


# ── POST /requests ──────────────────────────────────────────────────

@router.post("/requests", response_model=LeaveRequestOut, status_code=201)
async def request_leave(
    body: LeaveRequestCreate,
    store: LeaveStore = Depends(get_leave_store),
):
    """File a leave request. No balance check happens until approval."""
    return await LeaveService.request_leave(
        store,
        body.employee_id,
        body.category_id,
        body.start_date,
        body.end_date,
        body.holidays,
    )


# ── GET /requests ───────────────────────────────────────────────────

@router.get("/requests", response_model=list[LeaveRequestOut])
async def list_requests(
    employee_id: Optional[str] = Query(None),
    status: Optional[LeaveStatus] = Query(None),
    store: LeaveStore = Depends(get_leave_store),
):
    """List leave requests, newest first."""
    return await LeaveService.list_requests(
        store, employee_id=employee_id, status=status,
    )


@router.get("/requests/{request_id}", response_model=LeaveRequestOut)
async def get_request(
    request_id: str,
    store: LeaveStore = Depends(get_leave_store),
):
    return await LeaveService.get_request(store, request_id)


# ── PUT /requests/{id}/approve ──────────────────────────────────────

@router.put("/requests/{request_id}/approve", response_model=LeaveRequestOut)
async def approve_leave(
    request_id: str,
    body: LeaveApproveRequest,
    store: LeaveStore = Depends(get_leave_store),
):
    """Approve a pending leave request and debit the balance."""
    return await LeaveService.approve_leave(
        store,
        request_id,
        body.approver_id,
        body.employee_entry_date,
        body.holidays,
    )


# ── PUT /requests/{id}/reject ───────────────────────────────────────

@router.put("/requests/{request_id}/reject", response_model=LeaveRequestOut)
async def reject_leave(
    request_id: str,
    body: LeaveRejectRequest,
    store: LeaveStore = Depends(get_leave_store),
):
    """Reject a pending leave request."""
    return await LeaveService.reject_leave(
        store, request_id, body.approver_id, body.comment,
    )


# ── Balances ────────────────────────────────────────────────────────

@router.get("/balances/{employee_id}", response_model=list[LeaveBalanceOut])
async def get_balances(
    employee_id: str,
    year: Optional[int] = Query(None, description="Leave year; all years if omitted"),
    store: LeaveStore = Depends(get_leave_store),
):
    return await LeaveService.get_balances(store, employee_id, year)


@router.post("/balances/seed", response_model=SeedAllocationsOut)
@limiter.limit("10/minute")
async def seed_allocations(
    request: Request,
    body: SeedAllocationsRequest,
    store: LeaveStore = Depends(get_leave_store),
):
    """Upsert the year's entitlement for every listed employee."""
    return await LeaveService.seed_annual_allocations_for_all_employees(
        store, body.employees, body.year, body.category_id,
    )


@router.post("/balances/carry-over", response_model=LeaveBalanceOut)
async def credit_carry_over(
    body: CarryOverCreditRequest,
    store: LeaveStore = Depends(get_leave_store),
):
    """Set the days carried over from the previous year."""
    return await LeaveService.credit_carry_over(
        store,
        body.employee_id,
        body.category_id,
        body.year,
        body.days,
        body.entry_date,
    )
