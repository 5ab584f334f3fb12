"""
Tests: approval policy, request creation and the single-transition review.

Run with:
    pytest tests/test_approval_service.py -v
"""
from decimal import Decimal

import pytest
from fastapi import HTTPException

from app.models.approval_models import ApprovalStatus
from app.schemas.approval_schemas import ApprovalPolicyUpsert, RoleLimitIn
from app.schemas.pricing_schemas import ApprovalState, ManualDiscount
from app.services.pricing_services.approval_service import (
    create_approval_request,
    get_approval_request,
    get_policy,
    list_pending_requests,
    review_approval_request,
    upsert_policy,
)
from app.services.pricing_services.calculation_service import calculate
from app.services.pricing_services.finalization_service import finalize_proposal
from tests.factories import ORG_ID, OTHER_ORG_ID, line, make_context, make_policy


def manual_context(user, percent="40", ref="P-100"):
    return make_context(user=user, proposal_ref=ref, manual_discount=ManualDiscount(percent=Decimal(percent)))


async def open_request(db, user, percent="40", ref="P-100"):
    context = manual_context(user, percent, ref)
    result = await calculate(db, context)
    return await create_approval_request(db, context, result, username=user.username)


@pytest.fixture
async def policy(db):
    db.add(make_policy(sales_percent="20"))
    await db.commit()


class TestPolicy:
    async def test_upsert_creates_then_updates_limits(self, db, users):
        payload = ApprovalPolicyUpsert(
            max_discount_percent=Decimal("30"),
            role_limits=[RoleLimitIn(role="sales", max_discount_percent=Decimal("10"))],
        )
        created = await upsert_policy(db, ORG_ID, payload, users["admin"])
        assert created.max_discount_percent == Decimal("30")
        assert [l.role for l in created.role_limits] == ["sales"]

        payload = ApprovalPolicyUpsert(
            min_reviewer_role="admin",
            role_limits=[
                RoleLimitIn(role="sales", max_discount_percent=Decimal("15")),
                RoleLimitIn(role="manager", max_discount_amount=Decimal("5000")),
            ],
        )
        updated = await upsert_policy(db, ORG_ID, payload, users["admin"])
        assert updated.id == created.id
        assert updated.min_reviewer_role == "admin"
        limits = {l.role: l for l in updated.role_limits}
        assert Decimal(str(limits["sales"].max_discount_percent)) == Decimal("15")
        assert Decimal(str(limits["manager"].max_discount_amount)) == Decimal("5000")

    def test_duplicate_roles_refused(self):
        with pytest.raises(ValueError):
            ApprovalPolicyUpsert(role_limits=[RoleLimitIn(role="sales"), RoleLimitIn(role="sales")])

    async def test_policy_is_per_org(self, db, policy):
        assert await get_policy(db, ORG_ID) is not None
        assert await get_policy(db, OTHER_ORG_ID) is None


class TestCreateRequest:
    async def test_opens_pending_request(self, db, users, policy):
        request = await open_request(db, users["sales"])
        assert request.status == ApprovalStatus.PENDING
        assert Decimal(str(request.discount_amount)) == Decimal("4000.00")
        assert request.requested_role == "sales"
        assert [r.id for r in await list_pending_requests(db, ORG_ID)] == [request.id]
        assert await list_pending_requests(db, OTHER_ORG_ID) == []

    async def test_second_request_while_pending_conflicts(self, db, users, policy):
        await open_request(db, users["sales"])
        with pytest.raises(HTTPException) as exc:
            await open_request(db, users["sales"])
        assert exc.value.status_code == 409
        assert exc.value.detail["error"] == "approval-pending"

    async def test_not_needed_is_refused(self, db, users, policy):
        with pytest.raises(HTTPException) as exc:
            await open_request(db, users["sales"], percent="10")
        assert exc.value.status_code == 400

    async def test_proposal_ref_required(self, db, users, policy):
        context = make_context(user=users["sales"], manual_discount=ManualDiscount(percent=Decimal("40")))
        result = await calculate(db, context)
        with pytest.raises(HTTPException) as exc:
            await create_approval_request(db, context, result)
        assert exc.value.status_code == 422


class TestReview:
    async def test_approve_unblocks_calculation(self, db, users, policy):
        request = await open_request(db, users["sales"])
        reviewed = await review_approval_request(db, ORG_ID, request.id, "approved", users["manager"], notes="ok")
        assert reviewed.status == ApprovalStatus.APPROVED
        assert reviewed.reviewed_by == users["manager"].id
        assert reviewed.reviewer_notes == "ok"

        result = await calculate(db, manual_context(users["sales"]))
        assert result.approval.state == ApprovalState.APPROVED
        assert result.approval.request_id == request.id
        assert result.provisional is False

    async def test_approval_covers_smaller_discounts_only(self, db, users, policy):
        request = await open_request(db, users["sales"])
        await review_approval_request(db, ORG_ID, request.id, "approved", users["manager"])

        smaller = await calculate(db, manual_context(users["sales"], percent="30"))
        assert smaller.approval.state == ApprovalState.APPROVED

        larger = await calculate(db, manual_context(users["sales"], percent="50"))
        assert larger.approval.state == ApprovalState.REQUIRED
        assert larger.approval.approved_ceiling == Decimal("4000")
        assert larger.provisional is True

    async def test_approval_does_not_cover_larger_share_of_smaller_order(self, db, users, policy):
        sales = users["sales"]
        request = await open_request(db, sales)
        await review_approval_request(db, ORG_ID, request.id, "approved", users["manager"])

        # 100% of a 4,000.00 order is no more money than the approved 4,000.00, but a larger share
        context = make_context(
            user=sales,
            proposal_ref="P-100",
            services=[line(quantity="400")],
            manual_discount=ManualDiscount(percent=Decimal("100")),
        )
        result = await calculate(db, context)
        assert result.approval.discount_percent == Decimal("100.0000")
        assert result.approval.state == ApprovalState.REQUIRED
        assert result.provisional is True

        with pytest.raises(HTTPException) as exc:
            await finalize_proposal(db, context, sales)
        assert exc.value.detail["error"] == "approval-required"

    async def test_rejection(self, db, users, policy):
        request = await open_request(db, users["sales"])
        await review_approval_request(db, ORG_ID, request.id, "rejected", users["manager"])

        result = await calculate(db, manual_context(users["sales"]))
        assert result.approval.state == ApprovalState.REJECTED
        assert result.approval.approved_ceiling == Decimal("0")
        assert result.provisional is True

        # a fresh request may follow a rejection
        retry = await open_request(db, users["sales"])
        assert retry.status == ApprovalStatus.PENDING

    async def test_second_review_is_stale(self, db, users, policy):
        request = await open_request(db, users["sales"])
        await review_approval_request(db, ORG_ID, request.id, "approved", users["manager"])

        with pytest.raises(HTTPException) as exc:
            await review_approval_request(db, ORG_ID, request.id, "rejected", users["admin"])
        assert exc.value.status_code == 409
        assert exc.value.detail["error"] == "stale-request"
        # the losing reviewer is still loaded after the refused update
        assert users["admin"].role == "admin"

        current = await get_approval_request(db, ORG_ID, request.id)
        assert current.status == ApprovalStatus.APPROVED
        assert current.reviewed_by == users["manager"].id

    async def test_racing_reviewers_in_separate_sessions(self, db, users, policy, session_factory):
        request = await open_request(db, users["sales"])

        async with session_factory() as first, session_factory() as second:
            # both reviewers have seen the pending request
            await get_approval_request(first, ORG_ID, request.id)
            await get_approval_request(second, ORG_ID, request.id)

            await review_approval_request(first, ORG_ID, request.id, "approved", users["manager"])
            with pytest.raises(HTTPException) as exc:
                await review_approval_request(second, ORG_ID, request.id, "rejected", users["owner"])
        assert exc.value.detail["error"] == "stale-request"

    async def test_reviewer_needs_authority(self, db, users, policy):
        request = await open_request(db, users["sales"])
        with pytest.raises(HTTPException) as exc:
            await review_approval_request(db, ORG_ID, request.id, "approved", users["sales"])
        assert exc.value.status_code == 403

        current = await get_approval_request(db, ORG_ID, request.id)
        assert current.status == ApprovalStatus.PENDING

    async def test_other_org_cannot_see_request(self, db, users, policy):
        request = await open_request(db, users["sales"])
        with pytest.raises(HTTPException) as exc:
            await review_approval_request(db, OTHER_ORG_ID, request.id, "approved", users["outsider"])
        assert exc.value.status_code == 404
