# app/services/pricing_services/base_pricing.py
"""
Base pricing: quantity x rate x tier multiplier per line, summed, then scaled
by the property-condition multiplier. Knows nothing about discounts.
"""
import logging
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, Optional

from app.schemas.pricing_schemas import (
    BasePricing,
    LineItem,
    PropertyCondition,
    QualityTier,
    ServiceLine,
)
from app.utils.decimal_utils import non_negative, to_decimal

logger = logging.getLogger(__name__)

TIER_MULTIPLIERS: Dict[QualityTier, Decimal] = {
    QualityTier.ECONOMY: Decimal("0.85"),
    QualityTier.STANDARD: Decimal("1.00"),
    QualityTier.PREMIUM: Decimal("1.35"),
}

CONDITION_MULTIPLIERS: Dict[PropertyCondition, Decimal] = {
    PropertyCondition.GOOD: Decimal("1.00"),
    PropertyCondition.FAIR: Decimal("1.15"),
    PropertyCondition.POOR: Decimal("1.30"),
}

# (formula, inputs) -> unit rate; supplied by the caller, never evaluated here
FormulaEvaluator = Callable[[str, Dict[str, Any]], Any]


def _unit_rate(line: ServiceLine, evaluator: Optional[FormulaEvaluator]) -> Decimal:
    if line.formula and evaluator is not None:
        try:
            return non_negative(evaluator(line.formula, dict(line.formula_inputs or {})))
        except Exception as exc:
            logger.warning(
                "Formula evaluation failed for service '%s', using unit_rate: %s",
                line.service_id, exc,
            )
    return non_negative(line.unit_rate)


def calculate_base_pricing(
    services: Iterable[ServiceLine],
    tier: QualityTier,
    condition: PropertyCondition,
    formula_evaluator: Optional[FormulaEvaluator] = None,
) -> BasePricing:
    tier_multiplier = TIER_MULTIPLIERS[QualityTier(tier)]
    condition_multiplier = CONDITION_MULTIPLIERS[PropertyCondition(condition)]

    line_items = []
    base_subtotal = Decimal("0")
    for line in services:
        quantity = non_negative(line.quantity)
        rate = _unit_rate(line, formula_evaluator)
        line_total = quantity * rate * tier_multiplier
        base_subtotal += line_total
        line_items.append(LineItem(
            service_id=line.service_id,
            quantity=quantity,
            unit=line.unit,
            unit_rate=rate,
            line_total=line_total,
        ))

    return BasePricing(
        line_items=line_items,
        tier_multiplier=tier_multiplier,
        condition_multiplier=condition_multiplier,
        base_subtotal=base_subtotal,
        subtotal=to_decimal(base_subtotal * condition_multiplier),
    )
