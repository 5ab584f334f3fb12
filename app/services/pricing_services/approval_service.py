# app/services/pricing_services/approval_service.py
import logging
from decimal import Decimal
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.approval_models import (
    ApprovalPolicy,
    ApprovalStatus,
    DiscountApprovalRequest,
    RoleDiscountLimit,
)
from app.schemas.approval_schemas import ApprovalPolicyUpsert
from app.schemas.pricing_schemas import (
    ApprovalDecision,
    ApprovalState,
    CalculationContext,
    CalculationResult,
)
from app.services.pricing_services.approval_gate import decide
from app.utils.activity_helpers import log_user_activity
from app.utils.check_roles import has_authority
from app.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_REVIEWER_ROLE = "manager"


# --------------------------
# Policy
# --------------------------
async def get_policy(db: AsyncSession, org_id: int) -> Optional[ApprovalPolicy]:
    result = await db.execute(select(ApprovalPolicy).where(ApprovalPolicy.org_id == org_id))
    return result.scalar_one_or_none()


async def upsert_policy(db: AsyncSession, org_id: int, payload: ApprovalPolicyUpsert, _user) -> ApprovalPolicy:
    policy = await get_policy(db, org_id)
    if policy is None:
        policy = ApprovalPolicy(org_id=org_id)
        db.add(policy)

    policy.require_approval = payload.require_approval
    policy.max_discount_percent = payload.max_discount_percent
    policy.approval_threshold_amount = payload.approval_threshold_amount
    policy.approval_for_orders_over = payload.approval_for_orders_over
    policy.min_reviewer_role = payload.min_reviewer_role
    # update rows in place so the (policy, role) unique index never sees a duplicate
    existing = {limit.role: limit for limit in policy.role_limits}
    kept = []
    for item in payload.role_limits:
        limit = existing.get(item.role) or RoleDiscountLimit(role=item.role)
        limit.max_discount_percent = item.max_discount_percent
        limit.max_discount_amount = item.max_discount_amount
        kept.append(limit)
    policy.role_limits = kept

    await log_user_activity(
        db=db,
        org_id=org_id,
        user_id=_user.id,
        username=_user.username,
        message=f"Updated discount approval policy (reviewer role: {payload.min_reviewer_role})",
    )
    await db.commit()
    await db.refresh(policy)
    return policy


# --------------------------
# Lookups
# --------------------------
async def list_requests_for_proposal(db: AsyncSession, org_id: int, proposal_ref: str) -> List[DiscountApprovalRequest]:
    result = await db.execute(
        select(DiscountApprovalRequest)
        .where(
            DiscountApprovalRequest.org_id == org_id,
            DiscountApprovalRequest.proposal_ref == proposal_ref,
        )
        .order_by(DiscountApprovalRequest.id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().all()


async def list_pending_requests(db: AsyncSession, org_id: int) -> List[DiscountApprovalRequest]:
    result = await db.execute(
        select(DiscountApprovalRequest)
        .where(
            DiscountApprovalRequest.org_id == org_id,
            DiscountApprovalRequest.status == ApprovalStatus.PENDING,
        )
        .order_by(DiscountApprovalRequest.requested_at, DiscountApprovalRequest.id)
    )
    return result.scalars().all()


async def get_approval_request(db: AsyncSession, org_id: int, request_id: int) -> DiscountApprovalRequest:
    result = await db.execute(
        select(DiscountApprovalRequest)
        .where(DiscountApprovalRequest.id == request_id, DiscountApprovalRequest.org_id == org_id)
        .execution_options(populate_existing=True)
    )
    request = result.scalar_one_or_none()
    if not request:
        raise HTTPException(status_code=404, detail="Approval request not found")
    return request


async def approval_decision(db: AsyncSession, context: CalculationContext,
                            discount_amount: Decimal, subtotal: Decimal) -> ApprovalDecision:
    policy = await get_policy(db, context.org_id)
    requests = []
    if context.proposal_ref:
        requests = await list_requests_for_proposal(db, context.org_id, context.proposal_ref)
    return decide(policy, context.user_role, discount_amount, subtotal, requests)


# --------------------------
# Transitions
# --------------------------
async def create_approval_request(
    db: AsyncSession,
    context: CalculationContext,
    requested: CalculationResult,
    reason: Optional[str] = None,
    supporting_notes: Optional[str] = None,
    username: Optional[str] = None,
) -> DiscountApprovalRequest:
    """Open a pending request for the discount in `requested`, as calculated for `context`."""
    if not context.proposal_ref:
        raise HTTPException(status_code=422, detail="proposal_ref is required to request approval")

    state = requested.approval.state
    if not requested.approval.required:
        raise HTTPException(status_code=400, detail="This discount does not need approval")
    if state == ApprovalState.APPROVED:
        raise HTTPException(status_code=400, detail="This discount is already approved")
    if state == ApprovalState.PENDING:
        raise HTTPException(
            status_code=409,
            detail={"error": "approval-pending", "request_id": requested.approval.request_id},
        )

    request = DiscountApprovalRequest(
        org_id=context.org_id,
        proposal_ref=context.proposal_ref,
        discount_percent=requested.approval.discount_percent,
        discount_amount=requested.applied.total_discount,
        subtotal=requested.subtotal,
        order_total=requested.total,
        requested_by=context.user_id,
        requested_role=context.user_role,
        reason=reason or requested.approval.reason,
        supporting_notes=supporting_notes,
        status=ApprovalStatus.PENDING,
    )
    db.add(request)
    await db.flush()

    await log_user_activity(
        db=db,
        org_id=context.org_id,
        proposal_ref=context.proposal_ref,
        user_id=context.user_id,
        username=username,
        message=(
            f"Requested approval #{request.id} for {requested.applied.total_discount} "
            f"({requested.approval.discount_percent}%) on proposal {context.proposal_ref}"
        ),
    )
    await db.commit()
    await db.refresh(request)
    logger.info("Approval request %s opened for proposal %s", request.id, context.proposal_ref)
    return request


async def review_approval_request(
    db: AsyncSession,
    org_id: int,
    request_id: int,
    decision: str,
    reviewer,
    notes: Optional[str] = None,
) -> DiscountApprovalRequest:
    """
    pending -> approved | rejected, exactly once.
    The status check and the write are one conditional UPDATE; a reviewer who
    loses the race gets a stale-request conflict.
    """
    new_status = ApprovalStatus(decision)
    if new_status == ApprovalStatus.PENDING:
        raise HTTPException(status_code=422, detail="Decision must be approved or rejected")

    reviewer_id, reviewer_role, reviewer_name = reviewer.id, reviewer.role, reviewer.username
    request = await get_approval_request(db, org_id, request_id)

    policy = await get_policy(db, org_id)
    min_role = policy.min_reviewer_role if policy else DEFAULT_REVIEWER_ROLE
    if not has_authority(reviewer_role, min_role):
        raise HTTPException(
            status_code=403,
            detail=f"Reviewing discounts requires the '{min_role}' role or higher",
        )

    result = await db.execute(
        update(DiscountApprovalRequest)
        .where(
            DiscountApprovalRequest.id == request.id,
            DiscountApprovalRequest.status == ApprovalStatus.PENDING,
        )
        .values(
            status=new_status,
            reviewed_by=reviewer_id,
            reviewer_role=reviewer_role,
            reviewer_notes=notes,
            reviewed_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        # no row matched, so there is nothing to roll back
        logger.warning("Stale review of approval request %s by user %s", request_id, reviewer_id)
        raise HTTPException(
            status_code=409,
            detail={"error": "stale-request", "message": "This request has already been resolved"},
        )

    await log_user_activity(
        db=db,
        org_id=org_id,
        proposal_ref=request.proposal_ref,
        user_id=reviewer_id,
        username=reviewer_name,
        message=f"{new_status.value.capitalize()} discount approval #{request.id} on proposal {request.proposal_ref}",
    )
    await db.commit()
    return await get_approval_request(db, org_id, request_id)
