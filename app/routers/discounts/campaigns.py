# app/routers/discounts/campaigns.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.schemas.discount_schemas import SeasonalCampaignCreate, SeasonalCampaignOut
from app.schemas.response_schemas import ListResponse, ResponseMessage
from app.services.discount_services.campaign_service import create_campaign, deactivate_campaign, list_campaigns
from app.utils.check_roles import MANAGER_ROLES, require_role
from app.utils.get_user import get_current_user

router = APIRouter(prefix="/discounts/campaigns", tags=["Seasonal Campaigns"])


@router.post("/", response_model=ResponseMessage[SeasonalCampaignOut], status_code=status.HTTP_201_CREATED)
@require_role(MANAGER_ROLES)
async def create_campaign_route(
    payload: SeasonalCampaignCreate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    campaign = await create_campaign(db, _user.org_id, payload, _user)
    return {"message": f"Campaign '{campaign.name}' created", "data": campaign}


@router.get("/", response_model=ListResponse[SeasonalCampaignOut])
async def list_campaigns_route(
    active_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    campaigns = await list_campaigns(db, _user.org_id, active_only)
    return {"message": f"{len(campaigns)} campaign(s) fetched", "total": len(campaigns), "data": campaigns}


@router.delete("/{campaign_id}", response_model=ResponseMessage[SeasonalCampaignOut])
@require_role(MANAGER_ROLES)
async def deactivate_campaign_route(campaign_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    campaign = await deactivate_campaign(db, _user.org_id, campaign_id, _user)
    return {"message": f"Campaign '{campaign.name}' deactivated", "data": campaign}
