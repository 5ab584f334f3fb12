# app/services/auth_services/activity_service.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import desc, asc, func
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from app.models.activity_models import UserActivity
from typing import List, Optional, Tuple

ALLOWED_SORT_FIELDS = {"id", "user_id", "username", "proposal_ref", "created_at"}

async def get_user_activities(
    db: AsyncSession,
    org_id: int,
    user_id: Optional[int] = None,
    username: Optional[str] = None,
    proposal_ref: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
    sort_by: str = "created_at",
    order: str = "desc"
) -> Tuple[int, List[UserActivity]]:
    """
    Paginated audit trail of one organization, newest first by default.
    proposal_ref narrows it to the approval and finalization history of one proposal.
    """
    if sort_by not in ALLOWED_SORT_FIELDS:
        sort_by = "created_at"
    sort_column = getattr(UserActivity, sort_by)
    direction = desc if order.lower() == "desc" else asc
    sort_order = direction(sort_column)

    filters = [UserActivity.org_id == org_id]
    if user_id:
        filters.append(UserActivity.user_id == user_id)
    if username:
        filters.append(UserActivity.username.ilike(f"%{username}%"))
    if proposal_ref:
        filters.append(UserActivity.proposal_ref == proposal_ref)

    try:
        total = (await db.execute(select(func.count(UserActivity.id)).where(*filters))).scalar() or 0
        stmt = (
            select(UserActivity)
            .where(*filters)
            .order_by(sort_order, direction(UserActivity.id))
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await db.execute(stmt)
        return total, result.scalars().all()
    except SQLAlchemyError as e:
        raise HTTPException(status_code=500, detail=f"Failed to fetch activities: {str(e)}")
