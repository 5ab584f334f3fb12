# app/services/discount_services/code_service.py
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from fastapi import HTTPException
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.discount_models import DiscountCode, DiscountCodeUsage
from app.schemas.discount_schemas import (
    DiscountCodeCreate,
    DiscountCodeUpdate,
    ValidateCodeRequest,
    ValidateCodeResult,
)
from app.schemas.pricing_schemas import DiscountType
from app.services.pricing_services.common import discount_amount
from app.utils.activity_helpers import log_user_activity
from app.utils.decimal_utils import ZERO, quantize_money, to_decimal
from app.utils.time_utils import as_utc, utcnow

logger = logging.getLogger(__name__)

REASON_MESSAGES = {
    "invalid": "Invalid discount code",
    "not-yet-active": "This code is not yet active",
    "expired": "This code has expired",
    "usage-exceeded": "This code has reached its usage limit",
    "customer-usage-exceeded": "You have already used this code",
    "min-order-not-met": "Minimum order amount not met",
    "not-eligible": "This code does not apply to this order",
}


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


# --------------------------
# Eligibility
# --------------------------
async def find_code(db: AsyncSession, org_id: int, code: str) -> Optional[DiscountCode]:
    result = await db.execute(
        select(DiscountCode).where(
            DiscountCode.org_id == org_id,
            func.upper(DiscountCode.code) == normalize_code(code),
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def count_customer_usage(db: AsyncSession, code_id: int, client_id: Optional[int], client_email: Optional[str]) -> int:
    matches = []
    if client_id is not None:
        matches.append(DiscountCodeUsage.client_id == client_id)
    if client_email:
        matches.append(func.lower(DiscountCodeUsage.client_email) == client_email.strip().lower())
    if not matches:
        return 0
    result = await db.execute(
        select(func.count(DiscountCodeUsage.id)).where(
            DiscountCodeUsage.discount_code_id == code_id,
            or_(*matches),
        )
    )
    return result.scalar() or 0


async def check_code(
    db: AsyncSession,
    org_id: int,
    code: str,
    *,
    order_amount,
    client_id: Optional[int] = None,
    client_email: Optional[str] = None,
    service_ids: Optional[List[str]] = None,
    tier: Optional[str] = None,
    is_new_customer: Optional[bool] = None,
    now: Optional[datetime] = None,
) -> Tuple[Optional[DiscountCode], Optional[str], str]:
    """
    Run every restriction on a code in a fixed order.
    Returns (code, None, "") when usable, else (code_or_None, reason, detail).
    """
    now = now or utcnow()
    order_amount = to_decimal(order_amount)

    discount = await find_code(db, org_id, code)
    if discount is None or not discount.is_active:
        return discount, "invalid", f"No active code '{normalize_code(code)}'"

    starts_at, expires_at = as_utc(discount.starts_at), as_utc(discount.expires_at)
    if starts_at and now < starts_at:
        return discount, "not-yet-active", f"Starts {starts_at.isoformat()}"
    if expires_at and now > expires_at:
        return discount, "expired", f"Expired {expires_at.isoformat()}"

    if discount.max_uses_total is not None and discount.times_used >= discount.max_uses_total:
        return discount, "usage-exceeded", f"Used {discount.times_used} of {discount.max_uses_total}"

    if discount.max_uses_per_customer is not None:
        used = await count_customer_usage(db, discount.id, client_id, client_email)
        if used >= discount.max_uses_per_customer:
            return discount, "customer-usage-exceeded", f"Customer used it {used} time(s)"

    min_order = to_decimal(discount.min_order_amount)
    if order_amount < min_order:
        return discount, "min-order-not-met", f"Minimum order {min_order}, got {quantize_money(order_amount)}"

    if discount.applicable_services and service_ids is not None:
        if not set(service_ids) & set(discount.applicable_services):
            return discount, "not-eligible", "None of the selected services qualify"
    if discount.applicable_tiers and tier is not None:
        if str(getattr(tier, "value", tier)) not in discount.applicable_tiers:
            return discount, "not-eligible", f"Tier '{getattr(tier, 'value', tier)}' does not qualify"
    if discount.specific_customer_ids:
        if client_id is None or client_id not in discount.specific_customer_ids:
            return discount, "not-eligible", "Code is reserved for specific customers"
    if discount.new_customers_only and is_new_customer is not True:
        return discount, "not-eligible", "New customers only"
    if discount.existing_customers_only and is_new_customer is not False:
        return discount, "not-eligible", "Existing customers only"

    return discount, None, ""


async def validate_promotional_code(db: AsyncSession, org_id: int, payload: ValidateCodeRequest,
                                    now: Optional[datetime] = None) -> ValidateCodeResult:
    """Standalone check a UI can run before a full calculation."""
    discount, reason, detail = await check_code(
        db,
        org_id,
        payload.code,
        order_amount=payload.order_amount,
        client_id=payload.client_id,
        client_email=payload.client_email,
        service_ids=payload.service_ids,
        tier=payload.tier,
        is_new_customer=payload.is_new_customer,
        now=now,
    )
    if reason is not None:
        logger.info("Code '%s' rejected for org %s: %s (%s)", normalize_code(payload.code), org_id, reason, detail)
        return ValidateCodeResult(valid=False, reason=reason, error=REASON_MESSAGES[reason])

    amount = discount_amount(
        discount.discount_type,
        discount.discount_value,
        payload.order_amount,
        discount.max_discount_amount,
    )
    return ValidateCodeResult(
        valid=True,
        discount_code_id=discount.id,
        code=discount.code,
        name=discount.name,
        description=discount.description,
        discount_type=DiscountType(discount.discount_type),
        discount_value=to_decimal(discount.discount_value),
        discount_amount=amount,
    )


# --------------------------
# CRUD
# --------------------------
async def create_discount_code(db: AsyncSession, org_id: int, payload: DiscountCodeCreate, _user) -> DiscountCode:
    code = normalize_code(payload.code)
    if await find_code(db, org_id, code):
        raise HTTPException(status_code=400, detail="Discount code already exists")

    data = payload.model_dump()
    data["code"] = code
    data["discount_type"] = payload.discount_type.value
    if payload.applicable_tiers is not None:
        data["applicable_tiers"] = [t.value for t in payload.applicable_tiers]

    discount = DiscountCode(**data, org_id=org_id, created_by=_user.id, times_used=0, total_discount_given=ZERO)
    db.add(discount)
    await db.flush()

    await log_user_activity(
        db=db,
        org_id=org_id,
        user_id=_user.id,
        username=_user.username,
        message=f"Created discount code '{discount.code}' ({discount.name})",
    )
    await db.commit()
    await db.refresh(discount)
    return discount


async def list_discount_codes(db: AsyncSession, org_id: int, active_only: bool = False) -> List[DiscountCode]:
    stmt = select(DiscountCode).where(DiscountCode.org_id == org_id)
    if active_only:
        stmt = stmt.where(DiscountCode.is_active == True)
    result = await db.execute(stmt.order_by(DiscountCode.created_at.desc(), DiscountCode.id.desc()))
    return result.scalars().all()


async def get_discount_code(db: AsyncSession, org_id: int, code_id: int) -> DiscountCode:
    result = await db.execute(
        select(DiscountCode).where(DiscountCode.id == code_id, DiscountCode.org_id == org_id)
        .execution_options(populate_existing=True)
    )
    discount = result.scalar_one_or_none()
    if not discount:
        raise HTTPException(status_code=404, detail="Discount code not found")
    return discount


async def update_discount_code(db: AsyncSession, org_id: int, code_id: int, payload: DiscountCodeUpdate, _user) -> DiscountCode:
    discount = await get_discount_code(db, org_id, code_id)
    update_data = payload.model_dump(exclude_unset=True)

    starts_at = update_data.get("starts_at", discount.starts_at)
    expires_at = update_data.get("expires_at", discount.expires_at)
    if starts_at and expires_at and as_utc(starts_at) >= as_utc(expires_at):
        raise HTTPException(status_code=400, detail="Start date must be before end date")

    dtype = update_data.get("discount_type", discount.discount_type)
    dval = to_decimal(update_data.get("discount_value", discount.discount_value))
    if DiscountType(dtype) == DiscountType.PERCENT and dval > Decimal("100"):
        raise HTTPException(status_code=400, detail="Percentage discount must be between 0 and 100")

    new_only = update_data.get("new_customers_only", discount.new_customers_only)
    existing_only = update_data.get("existing_customers_only", discount.existing_customers_only)
    if new_only and existing_only:
        raise HTTPException(status_code=400, detail="A code cannot be limited to both new and existing customers")

    if "discount_type" in update_data and update_data["discount_type"] is not None:
        update_data["discount_type"] = DiscountType(update_data["discount_type"]).value
    if update_data.get("applicable_tiers") is not None:
        update_data["applicable_tiers"] = [getattr(t, "value", t) for t in update_data["applicable_tiers"]]

    for key, value in update_data.items():
        setattr(discount, key, value)

    await log_user_activity(
        db=db,
        org_id=org_id,
        user_id=_user.id,
        username=_user.username,
        message=f"Updated discount code '{discount.code}' (ID: {discount.id})",
    )
    await db.commit()
    await db.refresh(discount)
    return discount


async def deactivate_discount_code(db: AsyncSession, org_id: int, code_id: int, _user) -> DiscountCode:
    discount = await get_discount_code(db, org_id, code_id)
    discount.is_active = False

    await log_user_activity(
        db=db,
        org_id=org_id,
        user_id=_user.id,
        username=_user.username,
        message=f"Deactivated discount code '{discount.code}' (ID: {discount.id})",
    )
    await db.commit()
    await db.refresh(discount)
    return discount


async def get_code_usage(db: AsyncSession, org_id: int, code_id: int) -> List[DiscountCodeUsage]:
    await get_discount_code(db, org_id, code_id)
    result = await db.execute(
        select(DiscountCodeUsage)
        .where(DiscountCodeUsage.discount_code_id == code_id)
        .order_by(DiscountCodeUsage.applied_at.desc(), DiscountCodeUsage.id.desc())
    )
    return result.scalars().all()


# --------------------------
# Usage (finalization only)
# --------------------------
async def record_code_usage(
    db: AsyncSession,
    org_id: int,
    code_id: int,
    *,
    proposal_ref: str,
    client_id: Optional[int],
    client_email: Optional[str],
    order_amount,
    amount,
    applied_by: int,
) -> bool:
    """
    Increment the usage counter only while it is still under the limit.
    Returns False when another finalization took the last use first.
    """
    amount = quantize_money(amount)
    result = await db.execute(
        update(DiscountCode)
        .where(
            DiscountCode.id == code_id,
            DiscountCode.org_id == org_id,
            or_(DiscountCode.max_uses_total.is_(None), DiscountCode.times_used < DiscountCode.max_uses_total),
        )
        .values(
            times_used=DiscountCode.times_used + 1,
            total_discount_given=DiscountCode.total_discount_given + amount,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False

    db.add(DiscountCodeUsage(
        org_id=org_id,
        discount_code_id=code_id,
        proposal_ref=proposal_ref,
        client_id=client_id,
        client_email=client_email,
        order_amount=quantize_money(order_amount),
        discount_amount=amount,
        applied_by=applied_by,
    ))
    return True
