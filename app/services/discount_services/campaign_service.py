# app/services/discount_services/campaign_service.py
from typing import List
from fastapi import HTTPException
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.campaign_models import SeasonalCampaign
from app.schemas.discount_schemas import SeasonalCampaignCreate
from app.utils.activity_helpers import log_user_activity
from app.utils.decimal_utils import ZERO, quantize_money


async def create_campaign(db: AsyncSession, org_id: int, payload: SeasonalCampaignCreate, _user) -> SeasonalCampaign:
    data = payload.model_dump()
    data["discount_type"] = payload.discount_type.value
    campaign = SeasonalCampaign(**data, org_id=org_id, created_by=_user.id, times_applied=0, total_discount_given=ZERO)
    db.add(campaign)
    await db.flush()

    await log_user_activity(
        db=db,
        org_id=org_id,
        user_id=_user.id,
        username=_user.username,
        message=f"Created seasonal campaign '{campaign.name}' (ID: {campaign.id})",
    )
    await db.commit()
    await db.refresh(campaign)
    return campaign


async def list_campaigns(db: AsyncSession, org_id: int, active_only: bool = False) -> List[SeasonalCampaign]:
    stmt = select(SeasonalCampaign).where(SeasonalCampaign.org_id == org_id)
    if active_only:
        stmt = stmt.where(SeasonalCampaign.is_active == True)
    result = await db.execute(stmt.order_by(SeasonalCampaign.starts_at.desc(), SeasonalCampaign.id))
    return result.scalars().all()


async def deactivate_campaign(db: AsyncSession, org_id: int, campaign_id: int, _user) -> SeasonalCampaign:
    result = await db.execute(
        select(SeasonalCampaign).where(SeasonalCampaign.id == campaign_id, SeasonalCampaign.org_id == org_id)
    )
    campaign = result.scalar_one_or_none()
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found")

    campaign.is_active = False
    await log_user_activity(
        db=db,
        org_id=org_id,
        user_id=_user.id,
        username=_user.username,
        message=f"Deactivated seasonal campaign '{campaign.name}' (ID: {campaign.id})",
    )
    await db.commit()
    await db.refresh(campaign)
    return campaign


async def record_campaign_applied(db: AsyncSession, campaign_id: int, amount) -> None:
    await db.execute(
        update(SeasonalCampaign)
        .where(SeasonalCampaign.id == campaign_id)
        .values(
            times_applied=SeasonalCampaign.times_applied + 1,
            total_discount_given=SeasonalCampaign.total_discount_given + quantize_money(amount),
        )
        .execution_options(synchronize_session=False)
    )
