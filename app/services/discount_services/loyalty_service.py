# app/services/discount_services/loyalty_service.py
import logging
from decimal import Decimal, ROUND_DOWN
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.loyalty_models import (
    CustomerLoyalty,
    LoyaltyProgram,
    LoyaltyTransaction,
    LoyaltyTransactionType,
)
from app.schemas.loyalty_schemas import LoyaltyProgramUpsert
from app.utils.activity_helpers import log_user_activity
from app.utils.decimal_utils import ZERO, quantize_money, to_decimal

logger = logging.getLogger(__name__)


# -----------------------
# Program
# -----------------------
async def get_program(db: AsyncSession, org_id: int) -> Optional[LoyaltyProgram]:
    result = await db.execute(select(LoyaltyProgram).where(LoyaltyProgram.org_id == org_id))
    return result.scalar_one_or_none()


async def upsert_program(db: AsyncSession, org_id: int, payload: LoyaltyProgramUpsert, _user) -> LoyaltyProgram:
    program = await get_program(db, org_id)
    if program is None:
        program = LoyaltyProgram(org_id=org_id)
        db.add(program)

    for key, value in payload.model_dump().items():
        setattr(program, key, value)

    await log_user_activity(
        db=db,
        org_id=org_id,
        user_id=_user.id,
        username=_user.username,
        message=f"Configured loyalty program '{payload.name}' (active={payload.is_active})",
    )
    await db.commit()
    await db.refresh(program)
    return program


# -----------------------
# Customers
# -----------------------
async def get_customer_loyalty(db: AsyncSession, org_id: int, client_id: int) -> Optional[CustomerLoyalty]:
    result = await db.execute(
        select(CustomerLoyalty).where(
            CustomerLoyalty.org_id == org_id,
            CustomerLoyalty.client_id == client_id,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_balance(db: AsyncSession, org_id: int, client_id: int) -> CustomerLoyalty:
    account = await get_customer_loyalty(db, org_id, client_id)
    if not account:
        raise HTTPException(status_code=404, detail="Customer is not enrolled in the loyalty program")
    return account


async def enroll_customer(db: AsyncSession, org_id: int, client_id: int, _user) -> CustomerLoyalty:
    program = await get_program(db, org_id)
    if not program or not program.is_active:
        raise HTTPException(status_code=400, detail="Loyalty program is not configured")
    if await get_customer_loyalty(db, org_id, client_id):
        raise HTTPException(status_code=400, detail="Customer already enrolled")

    bonus = program.points_for_signup or 0
    account = CustomerLoyalty(
        org_id=org_id,
        client_id=client_id,
        current_points=bonus,
        total_points_earned=bonus,
        total_points_redeemed=0,
        total_orders=0,
        total_spent=ZERO,
    )
    db.add(account)
    await db.flush()

    if bonus > 0:
        db.add(LoyaltyTransaction(
            org_id=org_id,
            customer_loyalty_id=account.id,
            type=LoyaltyTransactionType.EARN_SIGNUP,
            points=bonus,
            balance_after=bonus,
            description="Signup bonus",
        ))

    await log_user_activity(
        db=db,
        org_id=org_id,
        user_id=_user.id,
        username=_user.username,
        message=f"Enrolled client {client_id} in loyalty program ({bonus} signup points)",
    )
    await db.commit()
    await db.refresh(account)
    return account


async def list_transactions(db: AsyncSession, org_id: int, client_id: int, limit: int = 100) -> List[LoyaltyTransaction]:
    account = await get_balance(db, org_id, client_id)
    result = await db.execute(
        select(LoyaltyTransaction)
        .where(LoyaltyTransaction.customer_loyalty_id == account.id)
        .order_by(LoyaltyTransaction.created_at.desc(), LoyaltyTransaction.id.desc())
        .limit(limit)
    )
    return result.scalars().all()


def points_value(program: Optional[LoyaltyProgram], points: int) -> Decimal:
    if program is None:
        return ZERO
    return quantize_money(Decimal(points) * to_decimal(program.points_to_currency_rate))


async def _current_points(db: AsyncSession, account_id: int) -> int:
    result = await db.execute(select(CustomerLoyalty.current_points).where(CustomerLoyalty.id == account_id))
    return result.scalar() or 0


# -----------------------
# Finalization side effects
# -----------------------
async def redeem_points(db: AsyncSession, org_id: int, client_id: int, points: int, proposal_ref: str) -> bool:
    """
    Conditional decrement: succeeds only while the balance still covers `points`.
    The caller owns the transaction.
    """
    if points <= 0:
        return True
    account = await get_customer_loyalty(db, org_id, client_id)
    if account is None:
        return False

    result = await db.execute(
        update(CustomerLoyalty)
        .where(CustomerLoyalty.id == account.id, CustomerLoyalty.current_points >= points)
        .values(
            current_points=CustomerLoyalty.current_points - points,
            total_points_redeemed=CustomerLoyalty.total_points_redeemed + points,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning("Loyalty redemption of %s points failed for client %s: balance too low", points, client_id)
        return False

    db.add(LoyaltyTransaction(
        org_id=org_id,
        customer_loyalty_id=account.id,
        type=LoyaltyTransactionType.REDEEM,
        points=-points,
        balance_after=await _current_points(db, account.id),
        proposal_ref=proposal_ref,
        description=f"Redeemed on proposal {proposal_ref}",
    ))
    return True


async def earn_points_for_order(db: AsyncSession, org_id: int, client_id: int, amount_spent, proposal_ref: str) -> int:
    """Award purchase points on the discounted subtotal. Unenrolled clients earn nothing."""
    program = await get_program(db, org_id)
    if program is None or not program.is_active:
        return 0
    account = await get_customer_loyalty(db, org_id, client_id)
    if account is None:
        return 0

    amount_spent = quantize_money(amount_spent)
    earned = int((amount_spent * to_decimal(program.points_per_currency_unit)).to_integral_value(rounding=ROUND_DOWN))

    await db.execute(
        update(CustomerLoyalty)
        .where(CustomerLoyalty.id == account.id)
        .values(
            current_points=CustomerLoyalty.current_points + earned,
            total_points_earned=CustomerLoyalty.total_points_earned + earned,
            total_orders=CustomerLoyalty.total_orders + 1,
            total_spent=CustomerLoyalty.total_spent + amount_spent,
        )
        .execution_options(synchronize_session=False)
    )
    if earned > 0:
        db.add(LoyaltyTransaction(
            org_id=org_id,
            customer_loyalty_id=account.id,
            type=LoyaltyTransactionType.EARN_PURCHASE,
            points=earned,
            balance_after=await _current_points(db, account.id),
            proposal_ref=proposal_ref,
            description=f"Earned on proposal {proposal_ref}",
        ))
    return earned
