"""
Tests: the five discount resolvers against a real (in-memory) database.

Run with:
    pytest tests/test_resolvers.py -v
"""
from datetime import timedelta
from decimal import Decimal

from app.models.discount_models import DiscountCodeUsage
from app.schemas.pricing_schemas import DiscountSource, TrailOutcome
from app.services.pricing_services.base_pricing import calculate_base_pricing
from app.services.pricing_services.resolvers import (
    AutoRuleResolver,
    LoyaltyResolver,
    PromoCodeResolver,
    SeasonalResolver,
    VolumeResolver,
)
from tests.factories import (
    NOW,
    OTHER_ORG_ID,
    line,
    make_account,
    make_campaign,
    make_code,
    make_context,
    make_program,
    make_rule,
    make_schedule,
)


async def resolve(resolver, db, context):
    pricing = calculate_base_pricing(context.services, context.tier, context.condition)
    return await resolver.resolve(db, context, pricing, NOW)


class TestPromoCodeResolver:
    async def test_valid_code_case_insensitive(self, db):
        db.add(make_code("SAVE10"))
        await db.commit()

        outcome = await resolve(PromoCodeResolver(), db, make_context(promo_code="save10"))
        assert outcome.candidate is not None
        assert outcome.candidate.value == Decimal("10")
        assert outcome.candidate.name == "SAVE10"

    async def test_no_code_is_silent(self, db):
        outcome = await resolve(PromoCodeResolver(), db, make_context())
        assert outcome.candidate is None
        assert outcome.rejection is None

    async def test_unknown_and_inactive_are_invalid(self, db):
        db.add(make_code("OFF", is_active=False))
        db.add(make_code("ELSEWHERE", org_id=OTHER_ORG_ID))
        await db.commit()

        for code in ("NOPE", "OFF", "ELSEWHERE"):
            outcome = await resolve(PromoCodeResolver(), db, make_context(promo_code=code))
            assert outcome.rejection.reason == "invalid"

    async def test_window(self, db):
        db.add(make_code("SOON", starts_at=NOW + timedelta(days=1)))
        db.add(make_code("GONE", expires_at=NOW - timedelta(days=1)))
        await db.commit()

        assert (await resolve(PromoCodeResolver(), db, make_context(promo_code="SOON"))).rejection.reason == "not-yet-active"
        assert (await resolve(PromoCodeResolver(), db, make_context(promo_code="GONE"))).rejection.reason == "expired"

    async def test_usage_limits(self, db):
        db.add(make_code("USEDUP", max_uses_total=5, times_used=5))
        once = make_code("ONCE", max_uses_per_customer=1)
        db.add(once)
        await db.flush()
        db.add(DiscountCodeUsage(
            org_id=1, discount_code_id=once.id, client_email="pat@example.com",
            order_amount=Decimal("100"), discount_amount=Decimal("10"),
        ))
        await db.commit()

        outcome = await resolve(PromoCodeResolver(), db, make_context(promo_code="USEDUP"))
        assert outcome.rejection.reason == "usage-exceeded"

        # matched by email even though the client id differs
        outcome = await resolve(PromoCodeResolver(), db, make_context(promo_code="ONCE", client_id=99, client_email="pat@example.com"))
        assert outcome.rejection.reason == "customer-usage-exceeded"

        outcome = await resolve(PromoCodeResolver(), db, make_context(promo_code="ONCE", client_id=42))
        assert outcome.candidate is not None

    async def test_min_order(self, db):
        db.add(make_code("BIG", min_order_amount=Decimal("1000")))
        await db.commit()

        outcome = await resolve(PromoCodeResolver(), db, make_context(promo_code="BIG", services=[line(quantity="50")]))
        assert outcome.rejection.reason == "min-order-not-met"
        assert outcome.rejection.name == "BIG"

    async def test_eligibility(self, db):
        db.add(make_code("KITCHEN", applicable_services=["cabinets"]))
        db.add(make_code("LUXE", applicable_tiers=["premium"]))
        db.add(make_code("NEWBIE", new_customers_only=True))
        db.add(make_code("VIP", specific_customer_ids=[5]))
        await db.commit()

        for code in ("KITCHEN", "LUXE", "NEWBIE", "VIP"):
            outcome = await resolve(PromoCodeResolver(), db, make_context(promo_code=code, client_id=7))
            assert outcome.rejection.reason == "not-eligible", code

        outcome = await resolve(PromoCodeResolver(), db, make_context(promo_code="NEWBIE", is_new_customer=True))
        assert outcome.candidate is not None


class TestLoyaltyResolver:
    async def test_not_requested_is_silent(self, db):
        outcome = await resolve(LoyaltyResolver(), db, make_context(client_id=7))
        assert outcome.candidate is None and outcome.rejection is None

    async def test_reason_codes(self, db):
        context = make_context(client_id=7, loyalty_points_to_redeem=1000)
        assert (await resolve(LoyaltyResolver(), db, context)).rejection.reason == "not-configured"

        db.add(make_program())
        await db.commit()
        assert (await resolve(LoyaltyResolver(), db, context)).rejection.reason == "not-enrolled"

        db.add(make_account(client_id=7, points=800))
        await db.commit()
        below = make_context(client_id=7, loyalty_points_to_redeem=100)
        assert (await resolve(LoyaltyResolver(), db, below)).rejection.reason == "below-minimum-points"
        assert (await resolve(LoyaltyResolver(), db, context)).rejection.reason == "insufficient-points"
        zero = make_context(client_id=7, loyalty_points_to_redeem=0)
        assert (await resolve(LoyaltyResolver(), db, zero)).rejection.reason == "not-requested"

    async def test_points_converted_and_capped(self, db):
        db.add(make_program(max_redemption_percent=Decimal("20")))
        db.add(make_account(client_id=7, points=500000))
        await db.commit()

        outcome = await resolve(LoyaltyResolver(), db, make_context(client_id=7, loyalty_points_to_redeem=300000))
        candidate = outcome.candidate
        assert candidate.value == Decimal("3000.00")
        # 20% of 10,000
        assert candidate.max_amount == Decimal("2000.00")
        assert candidate.metadata["points_requested"] == 300000


class TestSeasonalResolver:
    async def test_highest_value_wins(self, db):
        db.add(make_campaign("Spring", "10"))
        db.add(make_campaign("Summer", "15"))
        db.add(make_campaign("Winter", "50", starts_at=NOW + timedelta(days=30), expires_at=NOW + timedelta(days=60)))
        await db.commit()

        outcome = await resolve(SeasonalResolver(), db, make_context())
        assert outcome.candidate.name == "Summer"
        assert [(n.name, n.outcome) for n in outcome.notes] == [("Spring", TrailOutcome.SUPERSEDED)]

    async def test_min_order_and_services(self, db):
        db.add(make_campaign("Big only", "20", min_order_amount=Decimal("50000")))
        db.add(make_campaign("Decks", "20", applicable_services=["deck"]))
        await db.commit()

        outcome = await resolve(SeasonalResolver(), db, make_context())
        assert outcome.candidate is None
        assert sorted(n.reason for n in outcome.notes) == ["min-order-not-met", "not-eligible"]


class TestVolumeResolver:
    async def test_highest_reached_tier_and_next_tier(self, db):
        db.add(make_schedule(tiers=(("5000", "5"), ("8000", "7"), ("20000", "10"))))
        await db.commit()

        outcome = await resolve(VolumeResolver(), db, make_context())
        assert outcome.candidate.value == Decimal("7")
        next_tier = outcome.candidate.metadata["next_tier"]
        assert Decimal(next_tier["min_value"]) == Decimal("20000")
        assert Decimal(next_tier["remaining"]) == Decimal("10000")

    async def test_quantity_measurement_filters_unit(self, db):
        db.add(make_schedule(name="Square footage", measurement="quantity", unit="sqft", tiers=(("500", "3"), ("2000", "6"))))
        await db.commit()

        context = make_context(services=[line(quantity="800"), line("trim", "5000", "1", unit="lf")])
        outcome = await resolve(VolumeResolver(), db, context)
        assert outcome.candidate.value == Decimal("3")

    async def test_below_first_tier(self, db):
        db.add(make_schedule(tiers=(("50000", "5"),)))
        await db.commit()

        outcome = await resolve(VolumeResolver(), db, make_context())
        assert outcome.rejection.reason == "below-threshold"
        assert DiscountSource.VOLUME == outcome.rejection.source


class TestAutoRuleResolver:
    async def test_priority_order_and_superseded(self, db):
        db.add(make_rule("Big order", "order_minimum", {"min_amount": "5000"}, value="5", priority=1))
        db.add(make_rule("Monday", "day_of_week", {"days": [0]}, value="3", priority=10))
        db.add(make_rule("Tuesday", "day_of_week", {"days": [1]}, value="9", priority=20))
        await db.commit()

        outcome = await resolve(AutoRuleResolver(), db, make_context())
        assert outcome.candidate.name == "Monday"
        assert [n.name for n in outcome.notes] == ["Big order"]
        assert outcome.notes[0].reason == "superseded"

    async def test_rule_types(self, db):
        db.add(make_rule("Combo", "service_combo", {"services": ["painting", "trim"]}, priority=6))
        db.add(make_rule("Lots of trim", "service_quantity", {"service_id": "trim", "min_quantity": "100"}, priority=5))
        db.add(make_rule("Regulars", "repeat_customer", {"min_orders": 3}, priority=4))
        db.add(make_rule("First", "first_order", {}, priority=3))
        db.add(make_rule("Summer months", "month_range", {"start_month": 11, "end_month": 2}, priority=2))
        await db.commit()

        context = make_context(services=[line(), line("trim", "150", "2", unit="lf")])
        assert (await resolve(AutoRuleResolver(), db, context)).candidate.name == "Combo"

        context = make_context(services=[line("trim", "150", "2", unit="lf")])
        assert (await resolve(AutoRuleResolver(), db, context)).candidate.name == "Lots of trim"

        context = make_context(client_total_orders=3)
        assert (await resolve(AutoRuleResolver(), db, context)).candidate.name == "Regulars"

        context = make_context(is_new_customer=True)
        assert (await resolve(AutoRuleResolver(), db, context)).candidate.name == "First"

        # June is outside a November to February window
        outcome = await resolve(AutoRuleResolver(), db, make_context())
        assert outcome.candidate is None

    async def test_expired_rule_skipped(self, db):
        db.add(make_rule("Old", "order_minimum", {"min_amount": "1"}, expires_at=NOW - timedelta(days=1)))
        await db.commit()
        assert (await resolve(AutoRuleResolver(), db, make_context())).candidate is None
