"""
Tests: approval thresholds and approval state resolution.

Run with:
    pytest tests/test_approval_gate.py -v
"""
from decimal import Decimal

from app.models.approval_models import ApprovalStatus, DiscountApprovalRequest, RoleDiscountLimit
from app.schemas.pricing_schemas import ApprovalState
from app.services.pricing_services.approval_gate import check_approval_required, decide
from app.utils.decimal_utils import percent_of
from tests.factories import make_policy

SUBTOTAL = Decimal("10000.00")


def request(id, status, amount, percent=None):
    percent = Decimal(percent) if percent is not None else percent_of(Decimal(amount), SUBTOTAL)
    return DiscountApprovalRequest(id=id, status=status, discount_amount=Decimal(amount), discount_percent=percent)


class TestThresholds:
    def test_no_policy_means_no_approval(self):
        assert check_approval_required(None, "sales", Decimal("9000"), Decimal("90"), SUBTOTAL) == (False, None)

    def test_policy_switched_off(self):
        policy = make_policy(require_approval=False)
        required, _ = check_approval_required(policy, "sales", Decimal("4000"), Decimal("40"), SUBTOTAL)
        assert required is False

    def test_role_percent_limit(self):
        policy = make_policy(sales_percent="20")
        required, reason = check_approval_required(policy, "sales", Decimal("4000"), Decimal("40"), SUBTOTAL)
        assert required is True
        assert "sales" in reason

    def test_within_role_limit(self):
        policy = make_policy(sales_percent="20")
        assert check_approval_required(policy, "sales", Decimal("1500"), Decimal("15"), SUBTOTAL)[0] is False

    def test_role_limit_does_not_apply_to_other_roles(self):
        policy = make_policy(sales_percent="20")
        assert check_approval_required(policy, "manager", Decimal("4000"), Decimal("40"), SUBTOTAL)[0] is False

    def test_role_amount_limit(self):
        policy = make_policy(sales_percent=None)
        policy.role_limits.append(RoleDiscountLimit(role="sales", max_discount_amount=Decimal("500")))
        assert check_approval_required(policy, "sales", Decimal("600"), Decimal("6"), SUBTOTAL)[0] is True

    def test_org_ceiling(self):
        policy = make_policy(sales_percent=None, max_discount_percent=Decimal("30"))
        assert check_approval_required(policy, "owner", Decimal("3500"), Decimal("35"), SUBTOTAL)[0] is True

    def test_threshold_amount(self):
        policy = make_policy(sales_percent=None, approval_threshold_amount=Decimal("1000"))
        assert check_approval_required(policy, "manager", Decimal("1000.01"), Decimal("10"), SUBTOTAL)[0] is True

    def test_large_orders(self):
        policy = make_policy(sales_percent=None, approval_for_orders_over=Decimal("5000"))
        assert check_approval_required(policy, "manager", Decimal("10"), Decimal("0.1"), SUBTOTAL)[0] is True

    def test_no_discount_needs_no_approval(self):
        policy = make_policy(sales_percent=None, approval_for_orders_over=Decimal("5000"))
        assert check_approval_required(policy, "sales", Decimal("0"), Decimal("0"), SUBTOTAL)[0] is False


class TestDecide:
    def test_required_without_requests(self):
        decision = decide(make_policy(), "sales", Decimal("4000.00"), SUBTOTAL)
        assert decision.state == ApprovalState.REQUIRED
        assert decision.required is True
        assert decision.discount_percent == Decimal("40.0000")

    def test_not_required(self):
        decision = decide(make_policy(), "sales", Decimal("1000.00"), SUBTOTAL)
        assert decision.state == ApprovalState.NOT_REQUIRED
        assert decision.required is False

    def test_pending(self):
        decision = decide(make_policy(), "sales", Decimal("4000.00"), SUBTOTAL, [request(1, ApprovalStatus.PENDING, "4000")])
        assert decision.state == ApprovalState.PENDING
        assert decision.request_id == 1

    def test_approved_covers_equal_or_lower_amount(self):
        history = [request(1, ApprovalStatus.APPROVED, "4000")]
        assert decide(make_policy(), "sales", Decimal("4000.00"), SUBTOTAL, history).state == ApprovalState.APPROVED
        assert decide(make_policy(), "sales", Decimal("3000.00"), SUBTOTAL, history).state == ApprovalState.APPROVED

    def test_approved_does_not_cover_higher_amount(self):
        history = [request(1, ApprovalStatus.APPROVED, "3000")]
        decision = decide(make_policy(), "sales", Decimal("4000.00"), SUBTOTAL, history)
        assert decision.state == ApprovalState.REQUIRED
        assert decision.approved_ceiling == Decimal("3000")

    def test_approved_does_not_cover_higher_percent_on_smaller_order(self):
        # 40% of 10000 approved; 100% of a 4000 order is the same amount but a larger share
        history = [request(1, ApprovalStatus.APPROVED, "4000", percent="40")]
        decision = decide(make_policy(), "sales", Decimal("4000.00"), Decimal("4000.00"), history)
        assert decision.discount_percent == Decimal("100.0000")
        assert decision.state == ApprovalState.REQUIRED

    def test_rejected_reports_previous_ceiling(self):
        history = [
            request(1, ApprovalStatus.APPROVED, "2500"),
            request(2, ApprovalStatus.REJECTED, "4000"),
        ]
        decision = decide(make_policy(), "sales", Decimal("4000.00"), SUBTOTAL, history)
        assert decision.state == ApprovalState.REJECTED
        assert decision.request_id == 2
        assert decision.approved_ceiling == Decimal("2500")

    def test_rejected_without_history_falls_back_to_zero(self):
        decision = decide(make_policy(), "sales", Decimal("4000.00"), SUBTOTAL, [request(1, ApprovalStatus.REJECTED, "4000")])
        assert decision.approved_ceiling == Decimal("0")
