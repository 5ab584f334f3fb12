# app/services/discount_services/volume_service.py
from typing import List
from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.volume_models import VolumeDiscountSchedule, VolumeDiscountTier
from app.schemas.discount_schemas import VolumeScheduleCreate
from app.utils.activity_helpers import log_user_activity


async def create_schedule(db: AsyncSession, org_id: int, payload: VolumeScheduleCreate, _user) -> VolumeDiscountSchedule:
    if payload.measurement == "subtotal" and (payload.unit or payload.service_id):
        raise HTTPException(status_code=400, detail="Unit and service filters only apply to quantity schedules")

    schedule = VolumeDiscountSchedule(
        org_id=org_id,
        name=payload.name,
        measurement=payload.measurement,
        unit=payload.unit,
        service_id=payload.service_id,
        priority=payload.priority,
        is_active=True,
    )
    for tier in sorted(payload.tiers, key=lambda t: t.min_value):
        schedule.tiers.append(VolumeDiscountTier(
            label=tier.label,
            min_value=tier.min_value,
            discount_type=tier.discount_type.value,
            discount_value=tier.discount_value,
            max_discount_amount=tier.max_discount_amount,
        ))
    db.add(schedule)
    await db.flush()

    await log_user_activity(
        db=db,
        org_id=org_id,
        user_id=_user.id,
        username=_user.username,
        message=f"Created volume schedule '{schedule.name}' with {len(payload.tiers)} tier(s)",
    )
    await db.commit()
    await db.refresh(schedule)
    return schedule


async def list_schedules(db: AsyncSession, org_id: int, active_only: bool = False) -> List[VolumeDiscountSchedule]:
    stmt = select(VolumeDiscountSchedule).where(VolumeDiscountSchedule.org_id == org_id)
    if active_only:
        stmt = stmt.where(VolumeDiscountSchedule.is_active == True)
    result = await db.execute(stmt.order_by(VolumeDiscountSchedule.priority.desc(), VolumeDiscountSchedule.id))
    return result.scalars().all()


async def deactivate_schedule(db: AsyncSession, org_id: int, schedule_id: int, _user) -> VolumeDiscountSchedule:
    result = await db.execute(
        select(VolumeDiscountSchedule).where(
            VolumeDiscountSchedule.id == schedule_id,
            VolumeDiscountSchedule.org_id == org_id,
        )
    )
    schedule = result.scalar_one_or_none()
    if not schedule:
        raise HTTPException(status_code=404, detail="Volume schedule not found")

    schedule.is_active = False
    await log_user_activity(
        db=db,
        org_id=org_id,
        user_id=_user.id,
        username=_user.username,
        message=f"Deactivated volume schedule '{schedule.name}' (ID: {schedule.id})",
    )
    await db.commit()
    await db.refresh(schedule)
    return schedule
