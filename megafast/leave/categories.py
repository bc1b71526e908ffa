"""Leave category registry — plain CRUD over ``leave_categories``.

The category's ``annual_days`` is informational: the allocation rules
apply their own 18-day ceiling and do not consult it.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from megafast.common.exceptions import (
    ConflictError,
    NotFoundException,
    ValidationException,
)
from megafast.leave.models import LeaveCategory
from megafast.leave.schemas import (
    LeaveCategoryCreate,
    LeaveCategoryOut,
    LeaveCategoryUpdate,
)

logger = logging.getLogger(__name__)


class LeaveCategoryService:
    """Async CRUD for leave categories."""

    @staticmethod
    async def _get_or_404(db: AsyncSession, category_id: str) -> LeaveCategory:
        category = await db.get(LeaveCategory, category_id)
        if category is None:
            raise NotFoundException("LeaveCategory", category_id)
        return category

    @staticmethod
    async def list_categories(db: AsyncSession) -> list[LeaveCategoryOut]:
        result = await db.execute(select(LeaveCategory).order_by(LeaveCategory.name))
        return [LeaveCategoryOut.model_validate(c) for c in result.scalars().all()]

    @staticmethod
    async def get_category(db: AsyncSession, category_id: str) -> LeaveCategoryOut:
        category = await LeaveCategoryService._get_or_404(db, category_id)
        return LeaveCategoryOut.model_validate(category)

    @staticmethod
    async def create_category(
        db: AsyncSession,
        data: LeaveCategoryCreate,
    ) -> LeaveCategoryOut:
        category_id = data.id or str(uuid.uuid4())
        if await db.get(LeaveCategory, category_id) is not None:
            raise ConflictError("id", category_id)

        now = datetime.now(timezone.utc)
        category = LeaveCategory(
            id=category_id,
            name=data.name,
            annual_days=data.annual_days,
            description=data.description,
            paid=data.paid,
            created_at=now,
            updated_at=now,
        )
        db.add(category)
        await db.flush()
        logger.info("Leave category %s created", category_id)
        return LeaveCategoryOut.model_validate(category)

    @staticmethod
    async def update_category(
        db: AsyncSession,
        category_id: str,
        data: LeaveCategoryUpdate,
    ) -> LeaveCategoryOut:
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationException({"body": ["No fields to update."]})

        category = await LeaveCategoryService._get_or_404(db, category_id)
        for field, value in changes.items():
            setattr(category, field, value)
        category.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return LeaveCategoryOut.model_validate(category)

    @staticmethod
    async def delete_category(db: AsyncSession, category_id: str) -> None:
        category = await LeaveCategoryService._get_or_404(db, category_id)
        await db.delete(category)
        await db.flush()
        logger.info("Leave category %s deleted", category_id)
