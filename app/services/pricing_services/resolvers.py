# app/services/pricing_services/resolvers.py
"""
Discount source resolvers.

Each resolver looks at one kind of discount and returns a ResolverOutcome:
at most one candidate, or the reason there is none, plus trail notes for
anything it evaluated and passed over. Resolvers only read.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.campaign_models import SeasonalCampaign
from app.models.rule_models import AutoDiscountRule
from app.models.volume_models import VolumeDiscountSchedule
from app.schemas.pricing_schemas import (
    BasePricing,
    CalculationContext,
    DiscountCandidate,
    DiscountSource,
    DiscountType,
    TrailEntry,
    TrailOutcome,
)
from app.services.discount_services.code_service import check_code, normalize_code
from app.services.discount_services.loyalty_service import get_customer_loyalty, get_program
from app.services.pricing_services.common import ResolverOutcome, discount_amount, superseded
from app.utils.decimal_utils import HUNDRED, ZERO, non_negative, quantize_money, to_decimal
from app.utils.time_utils import within_window

logger = logging.getLogger(__name__)


class DiscountResolver:
    kind: DiscountSource

    async def resolve(self, db: AsyncSession, context: CalculationContext,
                      pricing: BasePricing, now: datetime) -> ResolverOutcome:
        raise NotImplementedError

    def nothing(self) -> ResolverOutcome:
        return ResolverOutcome(source=self.kind)


# --------------------------
# Promotional code
# --------------------------
class PromoCodeResolver(DiscountResolver):
    kind = DiscountSource.PROMO_CODE

    async def resolve(self, db, context, pricing, now):
        if not context.promo_code:
            return self.nothing()

        code, reason, detail = await check_code(
            db,
            context.org_id,
            context.promo_code,
            order_amount=quantize_money(pricing.subtotal),
            client_id=context.client_id,
            client_email=context.client_email,
            service_ids=[line.service_id for line in context.services],
            tier=context.tier,
            is_new_customer=context.is_new_customer,
            now=now,
        )
        if reason is not None:
            return ResolverOutcome.rejected(
                self.kind,
                reason,
                detail,
                name=code.code if code is not None else normalize_code(context.promo_code),
                source_id=code.id if code is not None else None,
            )

        return ResolverOutcome.found(DiscountCandidate(
            source=self.kind,
            discount_type=DiscountType(code.discount_type),
            value=to_decimal(code.discount_value),
            max_amount=to_decimal(code.max_discount_amount) if code.max_discount_amount is not None else None,
            scope_services=code.applicable_services or None,
            scope_tiers=code.applicable_tiers or None,
            source_id=code.id,
            name=code.code,
            reason=code.description or code.name,
            metadata={"code": code.code},
        ))


# --------------------------
# Loyalty points
# --------------------------
class LoyaltyResolver(DiscountResolver):
    kind = DiscountSource.LOYALTY

    async def resolve(self, db, context, pricing, now):
        points = context.loyalty_points_to_redeem
        if points is None:
            return self.nothing()

        program = await get_program(db, context.org_id)
        if program is None or not program.is_active:
            return ResolverOutcome.rejected(self.kind, "not-configured", "No active loyalty program")

        if context.client_id is None:
            return ResolverOutcome.rejected(self.kind, "not-enrolled", "No client on the proposal", name=program.name)
        account = await get_customer_loyalty(db, context.org_id, context.client_id)
        if account is None:
            return ResolverOutcome.rejected(
                self.kind, "not-enrolled", f"Client {context.client_id} is not enrolled", name=program.name,
            )

        if points <= 0:
            return ResolverOutcome.rejected(self.kind, "not-requested", "No points requested", name=program.name)
        if points < (program.min_points_to_redeem or 0):
            return ResolverOutcome.rejected(
                self.kind,
                "below-minimum-points",
                f"Minimum redemption is {program.min_points_to_redeem} points",
                name=program.name,
            )
        if points > account.current_points:
            return ResolverOutcome.rejected(
                self.kind,
                "insufficient-points",
                f"Requested {points}, balance {account.current_points}",
                name=program.name,
            )

        rate = to_decimal(program.points_to_currency_rate)
        value = quantize_money(Decimal(points) * rate)
        max_percent = to_decimal(program.max_redemption_percent, HUNDRED)
        cap = None
        if max_percent < HUNDRED:
            cap = quantize_money(non_negative(pricing.subtotal) * max_percent / HUNDRED)

        return ResolverOutcome.found(DiscountCandidate(
            source=self.kind,
            discount_type=DiscountType.FIXED,
            value=value,
            max_amount=cap,
            source_id=account.id,
            name=program.name,
            reason=f"{points} points at {rate} per point",
            metadata={
                "points_requested": points,
                "points_to_currency_rate": str(rate),
                "balance": account.current_points,
            },
        ))


# --------------------------
# Seasonal campaigns
# --------------------------
class SeasonalResolver(DiscountResolver):
    kind = DiscountSource.SEASONAL

    async def resolve(self, db, context, pricing, now):
        result = await db.execute(
            select(SeasonalCampaign)
            .where(SeasonalCampaign.org_id == context.org_id, SeasonalCampaign.is_active == True)
            .order_by(SeasonalCampaign.id)
        )
        campaigns = [c for c in result.scalars().all() if within_window(now, c.starts_at, c.expires_at)]
        if not campaigns:
            return self.nothing()

        subtotal = quantize_money(pricing.subtotal)
        requested = {line.service_id for line in context.services}
        notes: List[TrailEntry] = []
        eligible = []
        for campaign in campaigns:
            min_order = to_decimal(campaign.min_order_amount)
            if subtotal < min_order:
                notes.append(_passed_over(self.kind, campaign, "min-order-not-met", f"Minimum order {min_order}"))
                continue
            if campaign.applicable_services and not requested & set(campaign.applicable_services):
                notes.append(_passed_over(self.kind, campaign, "not-eligible", "None of the selected services qualify"))
                continue
            candidate = DiscountCandidate(
                source=self.kind,
                discount_type=DiscountType(campaign.discount_type),
                value=to_decimal(campaign.discount_value),
                max_amount=to_decimal(campaign.max_discount_amount) if campaign.max_discount_amount is not None else None,
                scope_services=campaign.applicable_services or None,
                source_id=campaign.id,
                name=campaign.name,
                reason=campaign.banner_text or campaign.description or campaign.name,
            )
            worth = discount_amount(
                candidate.discount_type,
                candidate.value,
                pricing.scope_base(candidate.scope_services),
                candidate.max_amount,
            )
            eligible.append((worth, candidate.value, -campaign.id, candidate))

        if not eligible:
            return ResolverOutcome(source=self.kind, notes=notes)

        eligible.sort(key=lambda item: item[:3], reverse=True)
        winner = eligible[0][3]
        for _, _, _, other in eligible[1:]:
            notes.append(superseded(other, "superseded", f"Campaign '{winner.name}' is worth more"))
        return ResolverOutcome.found(winner, notes=notes)


# --------------------------
# Volume tiers
# --------------------------
class VolumeResolver(DiscountResolver):
    kind = DiscountSource.VOLUME

    async def resolve(self, db, context, pricing, now):
        result = await db.execute(
            select(VolumeDiscountSchedule)
            .where(VolumeDiscountSchedule.org_id == context.org_id, VolumeDiscountSchedule.is_active == True)
            .order_by(VolumeDiscountSchedule.priority.desc(), VolumeDiscountSchedule.id)
        )
        schedules = [s for s in result.scalars().all() if s.tiers]
        if not schedules:
            return self.nothing()

        winner: Optional[DiscountCandidate] = None
        notes: List[TrailEntry] = []
        closest = None
        for schedule in schedules:
            measured = _measure(schedule, context, pricing)
            tiers = sorted(schedule.tiers, key=lambda t: to_decimal(t.min_value))
            reached = [t for t in tiers if to_decimal(t.min_value) <= measured]
            upcoming = [t for t in tiers if to_decimal(t.min_value) > measured]

            if not reached:
                if closest is None and upcoming:
                    closest = (schedule, upcoming[0], measured)
                continue

            tier = reached[-1]
            candidate = DiscountCandidate(
                source=self.kind,
                discount_type=DiscountType(tier.discount_type),
                value=to_decimal(tier.discount_value),
                max_amount=to_decimal(tier.max_discount_amount) if tier.max_discount_amount is not None else None,
                scope_services=[schedule.service_id] if schedule.service_id else None,
                source_id=schedule.id,
                name=f"{schedule.name}: {tier.label or tier.min_value}",
                reason=f"{schedule.measurement} {measured} reached tier {to_decimal(tier.min_value)}",
                metadata=_next_tier(upcoming, measured, schedule.measurement),
            )
            if winner is None:
                winner = candidate
            else:
                notes.append(superseded(candidate, "superseded", f"Schedule '{winner.name}' has higher priority"))

        if winner is not None:
            return ResolverOutcome.found(winner, notes=notes)
        if closest is not None:
            schedule, tier, measured = closest
            return ResolverOutcome.rejected(
                self.kind,
                "below-threshold",
                f"{to_decimal(tier.min_value) - measured} more {schedule.measurement} reaches the first tier",
                name=schedule.name,
                source_id=schedule.id,
            )
        return self.nothing()


def _measure(schedule: VolumeDiscountSchedule, context: CalculationContext, pricing: BasePricing) -> Decimal:
    if schedule.measurement != "quantity":
        return quantize_money(pricing.subtotal)
    total = ZERO
    for line in context.services:
        if schedule.unit and line.unit != schedule.unit:
            continue
        if schedule.service_id and line.service_id != schedule.service_id:
            continue
        total += non_negative(line.quantity)
    return total


def _next_tier(upcoming, measured: Decimal, measurement: str) -> dict:
    if not upcoming:
        return {}
    nxt = upcoming[0]
    return {
        "next_tier": {
            "label": nxt.label,
            "min_value": str(to_decimal(nxt.min_value)),
            "remaining": str(to_decimal(nxt.min_value) - measured),
            "measurement": measurement,
            "discount_type": nxt.discount_type,
            "discount_value": str(to_decimal(nxt.discount_value)),
        }
    }


# --------------------------
# Automatic rules
# --------------------------
class AutoRuleResolver(DiscountResolver):
    kind = DiscountSource.AUTO_RULE

    async def resolve(self, db, context, pricing, now):
        result = await db.execute(
            select(AutoDiscountRule)
            .where(AutoDiscountRule.org_id == context.org_id, AutoDiscountRule.is_active == True)
            .order_by(AutoDiscountRule.priority.desc(), AutoDiscountRule.id)
        )
        rules = [r for r in result.scalars().all() if within_window(now, r.starts_at, r.expires_at)]

        winner: Optional[DiscountCandidate] = None
        notes: List[TrailEntry] = []
        for rule in rules:
            if not rule_matches(rule, context, pricing, now):
                continue
            candidate = DiscountCandidate(
                source=self.kind,
                discount_type=DiscountType(rule.discount_type),
                value=to_decimal(rule.discount_value),
                max_amount=to_decimal(rule.max_discount_amount) if rule.max_discount_amount is not None else None,
                source_id=rule.id,
                name=rule.name,
                reason=rule.description or f"{rule.rule_type} rule matched",
                metadata={"rule_type": rule.rule_type, "priority": rule.priority},
            )
            if winner is None:
                winner = candidate
            else:
                notes.append(superseded(candidate, "superseded", f"Rule '{winner.name}' has higher priority"))

        if winner is None:
            return self.nothing()
        return ResolverOutcome.found(winner, notes=notes)


def rule_matches(rule: AutoDiscountRule, context: CalculationContext, pricing: BasePricing, now: datetime) -> bool:
    conditions = rule.conditions or {}
    kind = rule.rule_type

    if kind == "order_minimum":
        return quantize_money(pricing.subtotal) >= to_decimal(conditions.get("min_amount"))
    if kind == "first_order":
        return context.is_new_customer
    if kind == "repeat_customer":
        return context.client_total_orders >= int(conditions.get("min_orders", 1))
    if kind == "service_combo":
        wanted = set(conditions.get("services") or [])
        return bool(wanted) and wanted <= {line.service_id for line in context.services}
    if kind == "service_quantity":
        quantity = sum(
            (non_negative(line.quantity) for line in context.services if line.service_id == conditions.get("service_id")),
            ZERO,
        )
        return quantity >= to_decimal(conditions.get("min_quantity"))
    if kind == "month_range":
        start, end = int(conditions.get("start_month", 1)), int(conditions.get("end_month", 12))
        if start <= end:
            return start <= now.month <= end
        # wraps the new year, e.g. November to February
        return now.month >= start or now.month <= end
    if kind == "day_of_week":
        # Monday is 0
        return now.weekday() in [int(d) for d in conditions.get("days") or []]

    logger.warning("Unknown auto rule type '%s' on rule %s", kind, rule.id)
    return False


def _passed_over(source: DiscountSource, campaign: SeasonalCampaign, reason: str, detail: str) -> TrailEntry:
    return TrailEntry(
        source=source,
        outcome=TrailOutcome.REJECTED,
        reason=reason,
        detail=detail,
        name=campaign.name,
        source_id=campaign.id,
    )


# fixed evaluation order
RESOLVERS: List[DiscountResolver] = [
    PromoCodeResolver(),
    LoyaltyResolver(),
    SeasonalResolver(),
    VolumeResolver(),
    AutoRuleResolver(),
]
