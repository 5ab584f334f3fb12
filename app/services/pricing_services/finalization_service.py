# app/services/pricing_services/finalization_service.py
import logging
from typing import Optional, Tuple

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.proposal_models import FinalizedProposal
from app.schemas.pricing_schemas import ApprovalState, CalculationContext, DiscountSource
from app.services.discount_services.campaign_service import record_campaign_applied
from app.services.discount_services.code_service import record_code_usage
from app.services.discount_services.loyalty_service import earn_points_for_order, redeem_points
from app.services.discount_services.rule_service import record_rule_applied
from app.services.pricing_services.base_pricing import FormulaEvaluator
from app.services.pricing_services.calculation_service import calculate
from app.utils.activity_helpers import log_user_activity

logger = logging.getLogger(__name__)

BLOCKING_STATES = {
    ApprovalState.REQUIRED: "approval-required",
    ApprovalState.PENDING: "approval-pending",
    ApprovalState.REJECTED: "approval-rejected",
}


async def get_finalized(db: AsyncSession, org_id: int, proposal_ref: str) -> Optional[FinalizedProposal]:
    result = await db.execute(
        select(FinalizedProposal).where(
            FinalizedProposal.org_id == org_id,
            FinalizedProposal.proposal_ref == proposal_ref,
        )
    )
    return result.scalar_one_or_none()


async def finalize_proposal(
    db: AsyncSession,
    context: CalculationContext,
    user,
    formula_evaluator: Optional[FormulaEvaluator] = None,
) -> Tuple[FinalizedProposal, bool]:
    """
    Recalculate, refuse while approval is outstanding, then commit every
    side effect of the applied discounts exactly once per proposal_ref.
    Returns (row, already_finalized).
    """
    if not context.proposal_ref:
        raise HTTPException(status_code=422, detail="proposal_ref is required to finalize")
    # a rollback below expires `user`
    user_id, username = user.id, user.username

    existing = await get_finalized(db, context.org_id, context.proposal_ref)
    if existing:
        return existing, True

    result = await calculate(db, context, formula_evaluator)
    if result.provisional:
        error = BLOCKING_STATES.get(result.approval.state, "approval-required")
        raise HTTPException(
            status_code=409,
            detail={
                "error": error,
                "reason": result.approval.reason,
                "request_id": result.approval.request_id,
            },
        )

    applied = result.applied
    row = FinalizedProposal(
        org_id=context.org_id,
        proposal_ref=context.proposal_ref,
        client_id=context.client_id,
        subtotal=result.subtotal,
        discount_amount=applied.total_discount,
        tax_amount=result.tax_amount,
        total=result.total,
        approval_request_id=result.approval.request_id if result.approval.state == ApprovalState.APPROVED else None,
        loyalty_points_redeemed=0,
        loyalty_points_earned=0,
        result_snapshot=result.model_dump(mode="json"),
        finalized_by=user_id,
    )
    db.add(row)
    try:
        # claim the proposal before touching any counter
        await db.flush()
    except IntegrityError:
        await db.rollback()
        logger.info("Proposal %s was finalized concurrently", context.proposal_ref)
        existing = await get_finalized(db, context.org_id, context.proposal_ref)
        if existing is None:
            raise
        return existing, True

    promo = applied.find(DiscountSource.PROMO_CODE)
    if promo is not None:
        recorded = await record_code_usage(
            db,
            context.org_id,
            promo.source_id,
            proposal_ref=context.proposal_ref,
            client_id=context.client_id,
            client_email=context.client_email,
            order_amount=result.subtotal,
            amount=promo.amount,
            applied_by=user_id,
        )
        if not recorded:
            await db.rollback()
            raise HTTPException(status_code=409, detail={"error": "usage-exceeded", "code": promo.name})

    loyalty = applied.find(DiscountSource.LOYALTY)
    if loyalty is not None and context.client_id is not None:
        points = int(loyalty.metadata.get("points_redeemed", 0))
        if not await redeem_points(db, context.org_id, context.client_id, points, context.proposal_ref):
            await db.rollback()
            raise HTTPException(status_code=409, detail={"error": "insufficient-points"})
        row.loyalty_points_redeemed = points

    seasonal = applied.find(DiscountSource.SEASONAL)
    if seasonal is not None:
        await record_campaign_applied(db, seasonal.source_id, seasonal.amount)
    rule = applied.find(DiscountSource.AUTO_RULE)
    if rule is not None:
        await record_rule_applied(db, rule.source_id, rule.amount)

    if context.client_id is not None:
        row.loyalty_points_earned = await earn_points_for_order(
            db, context.org_id, context.client_id, applied.discounted_subtotal, context.proposal_ref,
        )

    await log_user_activity(
        db=db,
        org_id=context.org_id,
        proposal_ref=context.proposal_ref,
        user_id=user_id,
        username=username,
        message=(
            f"Finalized proposal {context.proposal_ref}: subtotal {result.subtotal}, "
            f"discount {applied.total_discount}, total {result.total}"
        ),
    )
    await db.commit()
    await db.refresh(row)
    return row, False
