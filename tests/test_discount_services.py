"""
Tests: discount administration (codes, campaigns, volume schedules, rules, loyalty).

Run with:
    pytest tests/test_discount_services.py -v
"""
from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from app.models.loyalty_models import LoyaltyTransactionType
from app.schemas.discount_schemas import (
    AutoRuleCreate,
    DiscountCodeCreate,
    DiscountCodeUpdate,
    SeasonalCampaignCreate,
    ValidateCodeRequest,
    VolumeScheduleCreate,
    VolumeTierIn,
)
from app.schemas.loyalty_schemas import LoyaltyProgramUpsert
from app.services.discount_services.campaign_service import create_campaign, deactivate_campaign, list_campaigns
from app.services.discount_services.code_service import (
    create_discount_code,
    deactivate_discount_code,
    get_discount_code,
    list_discount_codes,
    update_discount_code,
    validate_promotional_code,
)
from app.services.discount_services.loyalty_service import (
    enroll_customer,
    get_balance,
    list_transactions,
    upsert_program,
)
from app.services.discount_services.rule_service import create_rule, list_rules
from app.services.discount_services.volume_service import create_schedule, list_schedules
from tests.factories import NOW, ORG_ID, OTHER_ORG_ID, make_code


class TestDiscountCodes:
    async def test_create_normalizes_and_rejects_duplicates(self, db, users):
        payload = DiscountCodeCreate(code=" spring25 ", name="Spring", discount_type="percent", discount_value=Decimal("25"))
        created = await create_discount_code(db, ORG_ID, payload, users["admin"])
        assert created.code == "SPRING25"
        assert created.times_used == 0

        with pytest.raises(HTTPException) as exc:
            await create_discount_code(db, ORG_ID, payload, users["admin"])
        assert exc.value.status_code == 400

        # the same code may exist in another org
        other = await create_discount_code(db, OTHER_ORG_ID, payload, users["outsider"])
        assert other.id != created.id

    def test_percent_over_100_refused(self):
        with pytest.raises(ValidationError):
            DiscountCodeCreate(code="TOOMUCH", name="x", discount_type="percent", discount_value=Decimal("150"))

    async def test_update_and_deactivate(self, db, users):
        payload = DiscountCodeCreate(code="FLAT50", name="Flat", discount_type="fixed", discount_value=Decimal("50"))
        created = await create_discount_code(db, ORG_ID, payload, users["admin"])

        updated = await update_discount_code(
            db, ORG_ID, created.id, DiscountCodeUpdate(discount_value=Decimal("75")), users["admin"],
        )
        assert Decimal(str(updated.discount_value)) == Decimal("75")

        with pytest.raises(HTTPException) as exc:
            await update_discount_code(
                db, ORG_ID, created.id,
                DiscountCodeUpdate(discount_type="percent", discount_value=Decimal("120")), users["admin"],
            )
        assert exc.value.status_code == 400

        await deactivate_discount_code(db, ORG_ID, created.id, users["admin"])
        assert [c.id for c in await list_discount_codes(db, ORG_ID, active_only=True)] == []
        assert [c.id for c in await list_discount_codes(db, ORG_ID)] == [created.id]

    async def test_other_org_gets_404(self, db, users):
        db.add(make_code("MINE"))
        await db.commit()
        code = (await list_discount_codes(db, ORG_ID))[0]
        with pytest.raises(HTTPException) as exc:
            await get_discount_code(db, OTHER_ORG_ID, code.id)
        assert exc.value.status_code == 404


class TestValidateCode:
    async def test_valid_code_reports_amount(self, db):
        db.add(make_code("SAVE10", max_discount_amount=Decimal("50")))
        await db.commit()

        result = await validate_promotional_code(
            db, ORG_ID, ValidateCodeRequest(code="save10", order_amount=Decimal("1000")), now=NOW,
        )
        assert result.valid is True
        assert result.code == "SAVE10"
        assert result.discount_amount == Decimal("50.00")

    async def test_rejection_has_reason_and_message(self, db):
        db.add(make_code("OLD", expires_at=NOW - timedelta(days=1)))
        await db.commit()

        result = await validate_promotional_code(
            db, ORG_ID, ValidateCodeRequest(code="OLD", order_amount=Decimal("1000")), now=NOW,
        )
        assert result.valid is False
        assert result.reason == "expired"
        assert result.error == "This code has expired"

        missing = await validate_promotional_code(
            db, ORG_ID, ValidateCodeRequest(code="NOPE", order_amount=Decimal("1000")), now=NOW,
        )
        assert missing.reason == "invalid"


class TestCampaignsSchedulesRules:
    async def test_campaign_lifecycle(self, db, users):
        payload = SeasonalCampaignCreate(
            name="Summer", starts_at=NOW, expires_at=NOW + timedelta(days=30),
            discount_type="percent", discount_value=Decimal("10"),
        )
        campaign = await create_campaign(db, ORG_ID, payload, users["admin"])
        assert campaign.times_applied == 0

        await deactivate_campaign(db, ORG_ID, campaign.id, users["admin"])
        assert await list_campaigns(db, ORG_ID, active_only=True) == []
        with pytest.raises(HTTPException):
            await deactivate_campaign(db, OTHER_ORG_ID, campaign.id, users["outsider"])

    def test_campaign_window_must_be_ordered(self):
        with pytest.raises(ValidationError):
            SeasonalCampaignCreate(
                name="Backwards", starts_at=NOW, expires_at=NOW - timedelta(days=1),
                discount_type="percent", discount_value=Decimal("10"),
            )

    async def test_schedule_tiers_sorted(self, db, users):
        payload = VolumeScheduleCreate(
            name="Big jobs",
            tiers=[
                VolumeTierIn(min_value=Decimal("20000"), discount_value=Decimal("8")),
                VolumeTierIn(min_value=Decimal("5000"), discount_value=Decimal("5")),
            ],
        )
        schedule = await create_schedule(db, ORG_ID, payload, users["admin"])
        assert [Decimal(str(t.min_value)) for t in schedule.tiers] == [Decimal("5000"), Decimal("20000")]
        assert [s.id for s in await list_schedules(db, ORG_ID)] == [schedule.id]

    async def test_subtotal_schedule_with_unit_refused(self, db, users):
        payload = VolumeScheduleCreate(
            name="Odd", unit="sqft", tiers=[VolumeTierIn(min_value=Decimal("1"), discount_value=Decimal("1"))],
        )
        with pytest.raises(HTTPException) as exc:
            await create_schedule(db, ORG_ID, payload, users["admin"])
        assert exc.value.status_code == 400

    async def test_rule_conditions_checked(self, db, users):
        bad = AutoRuleCreate(name="Combo", rule_type="service_combo", discount_type="percent", discount_value=Decimal("5"))
        with pytest.raises(HTTPException) as exc:
            await create_rule(db, ORG_ID, bad, users["admin"])
        assert exc.value.status_code == 422

        good = AutoRuleCreate(
            name="Combo", rule_type="service_combo", conditions={"services": ["painting", "trim"]},
            discount_type="percent", discount_value=Decimal("5"), priority=3,
        )
        rule = await create_rule(db, ORG_ID, good, users["admin"])
        assert [r.id for r in await list_rules(db, ORG_ID)] == [rule.id]


class TestLoyaltyProgram:
    async def test_enroll_grants_signup_bonus(self, db, users):
        await upsert_program(db, ORG_ID, LoyaltyProgramUpsert(name="Rewards", points_for_signup=250), users["admin"])

        account = await enroll_customer(db, ORG_ID, 7, users["sales"])
        assert account.current_points == 250

        balance = await get_balance(db, ORG_ID, 7)
        assert balance.id == account.id
        transactions = await list_transactions(db, ORG_ID, 7)
        assert [(t.type, t.points) for t in transactions] == [(LoyaltyTransactionType.EARN_SIGNUP, 250)]

        with pytest.raises(HTTPException) as exc:
            await enroll_customer(db, ORG_ID, 7, users["sales"])
        assert exc.value.status_code == 400

    async def test_enroll_without_program(self, db, users):
        with pytest.raises(HTTPException) as exc:
            await enroll_customer(db, ORG_ID, 7, users["sales"])
        assert exc.value.status_code == 400

    async def test_unknown_customer_balance(self, db):
        with pytest.raises(HTTPException) as exc:
            await get_balance(db, ORG_ID, 999)
        assert exc.value.status_code == 404
