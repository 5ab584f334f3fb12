# app/utils/activity_helpers.py
import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from app.models.activity_models import UserActivity

logger = logging.getLogger(__name__)


async def log_user_activity(
    db: AsyncSession,
    user_id: int = None,
    username: str = None,
    message: str = "",
    org_id: Optional[int] = None,
    proposal_ref: Optional[str] = None,
    commit: bool = False,
):
    """
    Adds an activity row to the session. The caller is responsible for the commit
    unless commit=True, so the row lands in the same transaction as the change.
    """
    activity = UserActivity(
        org_id=org_id,
        user_id=user_id,
        username=username or "system",
        proposal_ref=proposal_ref,
        message=message,
    )
    db.add(activity)
    logger.info("activity org=%s user=%s: %s", org_id, username or user_id, message)
    if commit:
        await db.commit()
