# app/services/pricing_services/approval_gate.py
"""Threshold checks and approval state. No database access here."""
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from app.models.approval_models import ApprovalPolicy, ApprovalStatus, DiscountApprovalRequest
from app.schemas.pricing_schemas import ApprovalDecision, ApprovalState
from app.utils.decimal_utils import ZERO, percent_of, to_decimal


def _exceeds(value: Decimal, limit) -> bool:
    return limit is not None and value > to_decimal(limit)


def check_approval_required(
    policy: Optional[ApprovalPolicy],
    role: str,
    discount_amount: Decimal,
    discount_percent: Decimal,
    subtotal: Decimal,
) -> Tuple[bool, Optional[str]]:
    """Returns (required, reason). The first threshold crossed names the reason."""
    if policy is None or not policy.require_approval:
        return False, None
    if discount_amount <= ZERO:
        return False, None

    limit = next((l for l in policy.role_limits if l.role.lower() == (role or "").lower()), None)
    if limit is not None:
        if _exceeds(discount_percent, limit.max_discount_percent):
            return True, f"Discount {discount_percent}% exceeds the {role} limit of {limit.max_discount_percent}%"
        if _exceeds(discount_amount, limit.max_discount_amount):
            return True, f"Discount {discount_amount} exceeds the {role} limit of {limit.max_discount_amount}"

    if _exceeds(discount_percent, policy.max_discount_percent):
        return True, f"Discount {discount_percent}% exceeds the organization ceiling of {policy.max_discount_percent}%"
    if _exceeds(discount_amount, policy.approval_threshold_amount):
        return True, f"Discount {discount_amount} exceeds the approval threshold of {policy.approval_threshold_amount}"
    if _exceeds(subtotal, policy.approval_for_orders_over):
        return True, f"Discounted orders over {policy.approval_for_orders_over} need approval"

    return False, None


def decide(
    policy: Optional[ApprovalPolicy],
    role: str,
    discount_amount: Decimal,
    subtotal: Decimal,
    requests: Iterable[DiscountApprovalRequest] = (),
) -> ApprovalDecision:
    """
    Combine the threshold check with the request history of one proposal.
    `requests` must be ordered oldest first.
    """
    discount_percent = percent_of(discount_amount, subtotal)
    required, reason = check_approval_required(policy, role, discount_amount, discount_percent, subtotal)
    decision = ApprovalDecision(
        state=ApprovalState.NOT_REQUIRED,
        required=required,
        reason=reason,
        discount_percent=discount_percent,
        discount_amount=discount_amount,
    )
    if not required:
        return decision

    requests = list(requests)
    approved = [r for r in requests if r.status == ApprovalStatus.APPROVED]
    ceiling = max((to_decimal(r.discount_amount) for r in approved), default=ZERO)

    # an approval covers a later discount only if neither its amount nor its percent grew
    covering = [
        r for r in approved
        if to_decimal(r.discount_amount) >= discount_amount
        and to_decimal(r.discount_percent) >= discount_percent
    ]
    if covering:
        decision.state = ApprovalState.APPROVED
        decision.request_id = covering[-1].id
        decision.approved_ceiling = ceiling
        return decision

    latest = requests[-1] if requests else None
    if latest is not None and latest.status == ApprovalStatus.PENDING:
        decision.state = ApprovalState.PENDING
        decision.request_id = latest.id
    elif latest is not None and latest.status == ApprovalStatus.REJECTED:
        decision.state = ApprovalState.REJECTED
        decision.request_id = latest.id
        decision.approved_ceiling = ceiling
    else:
        decision.state = ApprovalState.REQUIRED
        if approved:
            decision.approved_ceiling = ceiling
    return decision
