# app/services/pricing_services/stacking.py
"""
Discount stacking.

Primary slot: a manual override beats a promotional code. Secondary slots:
seasonal or auto-rule (seasonal wins), then volume, then loyalty. Every amount
is computed against the original subtotal (additive, no compounding), capped
by its own maximum, and the running total never exceeds the subtotal.
"""
import math
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from app.schemas.pricing_schemas import (
    AppliedDiscount,
    AppliedDiscountSet,
    BasePricing,
    CalculationContext,
    DiscountCandidate,
    DiscountSource,
    DiscountType,
    TrailEntry,
    TrailOutcome,
)
from app.services.pricing_services.common import ResolverOutcome, discount_amount, superseded
from app.utils.decimal_utils import ZERO, quantize_money, to_decimal

SECONDARY_ORDER = (
    DiscountSource.SEASONAL,
    DiscountSource.AUTO_RULE,
    DiscountSource.VOLUME,
    DiscountSource.LOYALTY,
)


def manual_candidate(context: CalculationContext) -> Optional[DiscountCandidate]:
    manual = context.manual_discount
    if manual is None or not manual.is_set:
        return None
    if manual.percent is not None:
        return DiscountCandidate(
            source=DiscountSource.MANUAL,
            discount_type=DiscountType.PERCENT,
            value=manual.percent,
            name="Manual discount",
            reason=f"{manual.percent}% set by {context.user_role} (user {context.user_id})",
        )
    return DiscountCandidate(
        source=DiscountSource.MANUAL,
        discount_type=DiscountType.FIXED,
        value=manual.amount,
        name="Manual discount",
        reason=f"{manual.amount} off set by {context.user_role} (user {context.user_id})",
    )


def _select(context: CalculationContext, outcomes: Dict[DiscountSource, ResolverOutcome]
            ) -> Tuple[List[DiscountCandidate], List[TrailEntry], Optional[DiscountSource]]:
    """Pick which candidates will be applied, in application order."""
    selected: List[DiscountCandidate] = []
    trail: List[TrailEntry] = []
    primary_source = None

    manual = manual_candidate(context)
    promo = outcomes.get(DiscountSource.PROMO_CODE)

    if manual is not None:
        selected.append(manual)
        primary_source = DiscountSource.MANUAL
    if promo is not None:
        if promo.candidate is not None and manual is not None:
            trail.append(superseded(
                promo.candidate,
                "superseded-by-manual",
                "Manual override takes the primary slot",
            ))
        elif promo.candidate is not None:
            selected.append(promo.candidate)
            primary_source = DiscountSource.PROMO_CODE
        elif promo.rejection is not None:
            trail.append(promo.rejection)
        trail.extend(promo.notes)

    seasonal = outcomes.get(DiscountSource.SEASONAL)
    seasonal_active = seasonal is not None and seasonal.candidate is not None

    for source in SECONDARY_ORDER:
        outcome = outcomes.get(source)
        if outcome is None:
            continue
        if outcome.candidate is None:
            if outcome.rejection is not None:
                trail.append(outcome.rejection)
        elif source == DiscountSource.AUTO_RULE and seasonal_active:
            trail.append(superseded(
                outcome.candidate,
                "superseded",
                f"Seasonal campaign '{seasonal.candidate.name}' is active",
            ))
        else:
            selected.append(outcome.candidate)
        trail.extend(outcome.notes)

    return selected, trail, primary_source


def _loyalty_points_used(candidate: DiscountCandidate, amount: Decimal) -> int:
    rate = to_decimal(candidate.metadata.get("points_to_currency_rate"))
    requested = int(candidate.metadata.get("points_requested", 0))
    if rate <= ZERO:
        return 0
    return min(requested, math.ceil(amount / rate))


def stack_discounts(
    context: CalculationContext,
    pricing: BasePricing,
    subtotal: Decimal,
    outcomes: Dict[DiscountSource, ResolverOutcome],
) -> Tuple[AppliedDiscountSet, List[TrailEntry]]:
    subtotal = quantize_money(subtotal)
    selected, selection_trail, primary_source = _select(context, outcomes)

    applied: List[AppliedDiscount] = []
    decisions: Dict[int, TrailEntry] = {}
    running = ZERO

    for index, candidate in enumerate(selected):
        if candidate.discount_type == DiscountType.FIXED and subtotal <= ZERO:
            decisions[index] = TrailEntry(
                source=candidate.source,
                outcome=TrailOutcome.REJECTED,
                reason="zero-subtotal",
                detail="Fixed discounts are not applied to an empty order",
                name=candidate.name,
                source_id=candidate.source_id,
                amount=ZERO,
            )
            continue

        base = subtotal
        if candidate.scope_services:
            base = min(quantize_money(pricing.scope_base(candidate.scope_services)), subtotal)

        uncapped = discount_amount(candidate.discount_type, candidate.value, base)
        amount = discount_amount(candidate.discount_type, candidate.value, base, candidate.max_amount)
        reason = "capped-at-max" if amount < uncapped else "applied"

        remaining = subtotal - running
        if amount > remaining:
            amount = remaining
            reason = "capped-by-subtotal"
            if amount <= ZERO:
                decisions[index] = TrailEntry(
                    source=candidate.source,
                    outcome=TrailOutcome.REJECTED,
                    reason=reason,
                    detail="Earlier discounts already cover the whole subtotal",
                    name=candidate.name,
                    source_id=candidate.source_id,
                    amount=ZERO,
                )
                continue

        metadata = dict(candidate.metadata)
        if candidate.source == DiscountSource.LOYALTY:
            metadata["points_redeemed"] = _loyalty_points_used(candidate, amount)

        running += amount
        applied.append(AppliedDiscount(
            position=len(applied) + 1,
            source=candidate.source,
            source_id=candidate.source_id,
            name=candidate.name,
            discount_type=candidate.discount_type,
            value=candidate.value,
            applied_to=base,
            amount=amount,
            metadata=metadata,
        ))
        decisions[index] = TrailEntry(
            source=candidate.source,
            outcome=TrailOutcome.APPLIED,
            reason=reason,
            detail=candidate.reason,
            name=candidate.name,
            source_id=candidate.source_id,
            amount=amount,
        )

    trail = [decisions[i] for i in range(len(selected))] + selection_trail
    trail.sort(key=_trail_order)

    total_discount = min(running, subtotal)
    applied_set = AppliedDiscountSet(
        discounts=applied,
        primary_source=primary_source if any(d.source == primary_source for d in applied) else None,
        total_discount=total_discount,
        discounted_subtotal=subtotal - total_discount,
    )
    return applied_set, trail


_SOURCE_RANK = {
    DiscountSource.MANUAL: 0,
    DiscountSource.PROMO_CODE: 1,
    DiscountSource.SEASONAL: 2,
    DiscountSource.AUTO_RULE: 3,
    DiscountSource.VOLUME: 4,
    DiscountSource.LOYALTY: 5,
}

_OUTCOME_RANK = {
    TrailOutcome.APPLIED: 0,
    TrailOutcome.REJECTED: 1,
    TrailOutcome.SUPERSEDED: 2,
    TrailOutcome.ERROR: 3,
}


def _trail_order(entry: TrailEntry):
    # stable sort keeps resolver order within a source
    return (_SOURCE_RANK[entry.source], _OUTCOME_RANK[entry.outcome])
