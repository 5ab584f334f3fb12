# app/routers/discounts/volume.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.schemas.discount_schemas import VolumeScheduleCreate, VolumeScheduleOut
from app.schemas.response_schemas import ListResponse, ResponseMessage
from app.services.discount_services.volume_service import create_schedule, deactivate_schedule, list_schedules
from app.utils.check_roles import MANAGER_ROLES, require_role
from app.utils.get_user import get_current_user

router = APIRouter(prefix="/discounts/volume-tiers", tags=["Volume Discounts"])


@router.post("/", response_model=ResponseMessage[VolumeScheduleOut], status_code=status.HTTP_201_CREATED)
@require_role(MANAGER_ROLES)
async def create_schedule_route(
    payload: VolumeScheduleCreate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    schedule = await create_schedule(db, _user.org_id, payload, _user)
    return {"message": f"Volume schedule '{schedule.name}' created", "data": schedule}


@router.get("/", response_model=ListResponse[VolumeScheduleOut])
async def list_schedules_route(
    active_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    schedules = await list_schedules(db, _user.org_id, active_only)
    return {"message": f"{len(schedules)} schedule(s) fetched", "total": len(schedules), "data": schedules}


@router.delete("/{schedule_id}", response_model=ResponseMessage[VolumeScheduleOut])
@require_role(MANAGER_ROLES)
async def deactivate_schedule_route(schedule_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    schedule = await deactivate_schedule(db, _user.org_id, schedule_id, _user)
    return {"message": f"Volume schedule '{schedule.name}' deactivated", "data": schedule}
