"""
Tests: base pricing (tiers, conditions, clamping, injected formula evaluator).

Run with:
    pytest tests/test_base_pricing.py -v
"""
from decimal import Decimal

from app.schemas.pricing_schemas import PropertyCondition, QualityTier
from app.services.pricing_services.base_pricing import calculate_base_pricing
from tests.factories import line


class TestMultipliers:
    def test_standard_good_is_plain_sum(self):
        pricing = calculate_base_pricing([line(), line("trim", "100", "5", unit="lf")], QualityTier.STANDARD, PropertyCondition.GOOD)
        assert pricing.base_subtotal == Decimal("10500")
        assert pricing.subtotal == Decimal("10500")
        assert [item.line_total for item in pricing.line_items] == [Decimal("10000"), Decimal("500")]

    def test_premium_poor(self):
        pricing = calculate_base_pricing([line()], QualityTier.PREMIUM, PropertyCondition.POOR)
        # 10000 x 1.35 x 1.30
        assert pricing.tier_multiplier == Decimal("1.35")
        assert pricing.condition_multiplier == Decimal("1.30")
        assert pricing.subtotal == Decimal("17550")

    def test_economy_fair(self):
        pricing = calculate_base_pricing([line(quantity="100", rate="10")], "economy", "fair")
        # 1000 x 0.85 x 1.15
        assert pricing.subtotal == Decimal("977.5")


class TestClamping:
    def test_negative_quantity_and_rate_count_as_zero(self):
        pricing = calculate_base_pricing(
            [line(quantity="-5"), line("trim", "10", "-3")],
            QualityTier.STANDARD,
            PropertyCondition.GOOD,
        )
        assert pricing.subtotal == Decimal("0")
        assert all(item.line_total == 0 for item in pricing.line_items)

    def test_no_services(self):
        pricing = calculate_base_pricing([], QualityTier.STANDARD, PropertyCondition.GOOD)
        assert pricing.subtotal == Decimal("0")
        assert pricing.line_items == []


class TestFormulaEvaluator:
    def test_evaluator_prices_formula_lines(self):
        calls = []

        def evaluator(formula, inputs):
            calls.append((formula, inputs))
            return Decimal(inputs["height"]) * 2

        pricing = calculate_base_pricing(
            [line(quantity="10", rate="1", formula="height * 2", formula_inputs={"height": "4"})],
            QualityTier.STANDARD,
            PropertyCondition.GOOD,
            formula_evaluator=evaluator,
        )
        assert calls == [("height * 2", {"height": "4"})]
        assert pricing.line_items[0].unit_rate == Decimal("8")
        assert pricing.subtotal == Decimal("80")

    def test_evaluator_failure_falls_back_to_unit_rate(self):
        def evaluator(formula, inputs):
            raise ZeroDivisionError("bad formula")

        pricing = calculate_base_pricing(
            [line(quantity="10", rate="3", formula="1/0")],
            QualityTier.STANDARD,
            PropertyCondition.GOOD,
            formula_evaluator=evaluator,
        )
        assert pricing.subtotal == Decimal("30")

    def test_formula_ignored_without_evaluator(self):
        pricing = calculate_base_pricing([line(quantity="2", rate="3", formula="999")], QualityTier.STANDARD, PropertyCondition.GOOD)
        assert pricing.subtotal == Decimal("6")


class TestScopeBase:
    def test_in_scope_share_includes_condition(self):
        pricing = calculate_base_pricing([line(), line("trim", "100", "5", unit="lf")], QualityTier.STANDARD, PropertyCondition.FAIR)
        assert pricing.scope_base(["trim"]) == Decimal("575")
        assert pricing.scope_base(None) == pricing.subtotal
