# app/services/pricing_services/calculation_service.py
"""
Full calculation for one proposal:
base pricing -> resolvers -> stacking -> approval gate -> totals.

Read-only. Usage counters and point balances only move at finalization,
so recalculating on every edit is safe.
"""
import asyncio
import logging
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import DEFAULT_TAX_RATE, RESOLVER_TIMEOUT_SECONDS
from app.schemas.pricing_schemas import (
    AppliedDiscountSet,
    ApprovalDecision,
    ApprovalState,
    BasePricing,
    CalculationContext,
    CalculationResult,
    DiscountSource,
)
from app.services.pricing_services.approval_service import approval_decision
from app.services.pricing_services.base_pricing import FormulaEvaluator, calculate_base_pricing
from app.services.pricing_services.common import ResolverOutcome
from app.services.pricing_services.resolvers import RESOLVERS, DiscountResolver
from app.services.pricing_services.stacking import stack_discounts
from app.utils.decimal_utils import quantize_money, to_decimal
from app.utils.time_utils import as_utc, utcnow

logger = logging.getLogger(__name__)


async def run_resolver(
    resolver: DiscountResolver,
    db: AsyncSession,
    context: CalculationContext,
    pricing: BasePricing,
    now,
    timeout: float = RESOLVER_TIMEOUT_SECONDS,
) -> ResolverOutcome:
    """A failing or slow resolver becomes an error entry; the calculation goes on."""
    try:
        return await asyncio.wait_for(resolver.resolve(db, context, pricing, now), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Resolver %s timed out after %ss (org %s)", resolver.kind.value, timeout, context.org_id)
        return ResolverOutcome.failed(resolver.kind, f"Timed out after {timeout}s")
    except Exception as exc:
        logger.exception("Resolver %s failed (org %s)", resolver.kind.value, context.org_id)
        return ResolverOutcome.failed(resolver.kind, f"{type(exc).__name__}: {exc}")


def assemble_result(
    pricing: BasePricing,
    subtotal: Decimal,
    applied: AppliedDiscountSet,
    trail,
    approval: ApprovalDecision,
    tax_rate: Decimal,
) -> CalculationResult:
    discounted = quantize_money(applied.discounted_subtotal)
    total = quantize_money(discounted * (Decimal("1") + tax_rate))
    provisional = approval.required and approval.state != ApprovalState.APPROVED
    return CalculationResult(
        pricing=pricing,
        subtotal=subtotal,
        applied=applied,
        tax_rate=tax_rate,
        tax_amount=total - discounted,
        total=total,
        trail=trail,
        approval=approval,
        provisional=provisional,
    )


async def calculate(
    db: AsyncSession,
    context: CalculationContext,
    formula_evaluator: Optional[FormulaEvaluator] = None,
    resolvers=None,
) -> CalculationResult:
    now = as_utc(context.as_of) if context.as_of else utcnow()

    pricing = calculate_base_pricing(context.services, context.tier, context.condition, formula_evaluator)
    subtotal = quantize_money(pricing.subtotal)

    # one session, so resolvers take turns
    outcomes: Dict[DiscountSource, ResolverOutcome] = {}
    for resolver in resolvers if resolvers is not None else RESOLVERS:
        outcomes[resolver.kind] = await run_resolver(resolver, db, context, pricing, now)

    applied, trail = stack_discounts(context, pricing, subtotal, outcomes)
    approval = await approval_decision(db, context, applied.total_discount, subtotal)

    tax_rate = to_decimal(context.tax_rate, DEFAULT_TAX_RATE)
    result = assemble_result(pricing, subtotal, applied, trail, approval, tax_rate)

    logger.debug(
        "Calculated org=%s ref=%s subtotal=%s discount=%s total=%s approval=%s",
        context.org_id, context.proposal_ref, subtotal, applied.total_discount, result.total, approval.state.value,
    )
    return result
