# app/services/discount_services/rule_service.py
from typing import List
from fastapi import HTTPException
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.rule_models import AutoDiscountRule
from app.schemas.discount_schemas import AutoRuleCreate
from app.utils.activity_helpers import log_user_activity
from app.utils.decimal_utils import ZERO, quantize_money

# Condition keys each rule type needs before it can ever match
REQUIRED_CONDITIONS = {
    "order_minimum": ["min_amount"],
    "first_order": [],
    "repeat_customer": ["min_orders"],
    "service_combo": ["services"],
    "service_quantity": ["service_id", "min_quantity"],
    "month_range": ["start_month", "end_month"],
    "day_of_week": ["days"],
}


async def create_rule(db: AsyncSession, org_id: int, payload: AutoRuleCreate, _user) -> AutoDiscountRule:
    missing = [key for key in REQUIRED_CONDITIONS[payload.rule_type] if key not in payload.conditions]
    if missing:
        raise HTTPException(
            status_code=422,
            detail=f"Rule type '{payload.rule_type}' requires conditions: {', '.join(missing)}",
        )

    data = payload.model_dump()
    data["discount_type"] = payload.discount_type.value
    rule = AutoDiscountRule(**data, org_id=org_id, created_by=_user.id, is_active=True,
                            times_applied=0, total_discount_given=ZERO)
    db.add(rule)
    await db.flush()

    await log_user_activity(
        db=db,
        org_id=org_id,
        user_id=_user.id,
        username=_user.username,
        message=f"Created auto discount rule '{rule.name}' ({rule.rule_type}, priority {rule.priority})",
    )
    await db.commit()
    await db.refresh(rule)
    return rule


async def list_rules(db: AsyncSession, org_id: int, active_only: bool = False) -> List[AutoDiscountRule]:
    stmt = select(AutoDiscountRule).where(AutoDiscountRule.org_id == org_id)
    if active_only:
        stmt = stmt.where(AutoDiscountRule.is_active == True)
    result = await db.execute(stmt.order_by(AutoDiscountRule.priority.desc(), AutoDiscountRule.id))
    return result.scalars().all()


async def deactivate_rule(db: AsyncSession, org_id: int, rule_id: int, _user) -> AutoDiscountRule:
    result = await db.execute(
        select(AutoDiscountRule).where(AutoDiscountRule.id == rule_id, AutoDiscountRule.org_id == org_id)
    )
    rule = result.scalar_one_or_none()
    if not rule:
        raise HTTPException(status_code=404, detail="Rule not found")

    rule.is_active = False
    await log_user_activity(
        db=db,
        org_id=org_id,
        user_id=_user.id,
        username=_user.username,
        message=f"Deactivated auto discount rule '{rule.name}' (ID: {rule.id})",
    )
    await db.commit()
    await db.refresh(rule)
    return rule


async def record_rule_applied(db: AsyncSession, rule_id: int, amount) -> None:
    await db.execute(
        update(AutoDiscountRule)
        .where(AutoDiscountRule.id == rule_id)
        .values(
            times_applied=AutoDiscountRule.times_applied + 1,
            total_discount_given=AutoDiscountRule.total_discount_given + quantize_money(amount),
        )
        .execution_options(synchronize_session=False)
    )
