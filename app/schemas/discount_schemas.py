# app/schemas/discount_schemas.py
from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Dict, Any
from typing_extensions import Annotated
from datetime import datetime
from decimal import Decimal

from app.schemas.pricing_schemas import DiscountType, QualityTier

PositiveDecimal = Annotated[Decimal, Field(gt=0, max_digits=14, decimal_places=2)]
NonNegativeDecimal = Annotated[Decimal, Field(ge=0, max_digits=14, decimal_places=2)]

RULE_TYPES = "^(order_minimum|first_order|repeat_customer|service_combo|service_quantity|month_range|day_of_week)$"


def _check_percent(discount_type, value):
    if discount_type == DiscountType.PERCENT and value is not None and value > 100:
        raise ValueError("Percentage discount must be between 0 and 100")


def _check_window(starts_at, expires_at):
    if starts_at and expires_at and starts_at >= expires_at:
        raise ValueError("Start date must be before end date")


# --------------------------
# Promotional codes
# --------------------------
class DiscountCodeBase(BaseModel):
    code: str = Field(..., min_length=2, max_length=50)
    name: str
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: PositiveDecimal
    max_discount_amount: Optional[PositiveDecimal] = None
    min_order_amount: NonNegativeDecimal = Decimal("0")
    max_uses_total: Optional[int] = Field(default=None, ge=1)
    max_uses_per_customer: Optional[int] = Field(default=1, ge=1)
    applicable_services: Optional[List[str]] = None
    applicable_tiers: Optional[List[QualityTier]] = None
    new_customers_only: bool = False
    existing_customers_only: bool = False
    specific_customer_ids: Optional[List[int]] = None
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class DiscountCodeCreate(DiscountCodeBase):
    @model_validator(mode="after")
    def _validate(self):
        _check_percent(self.discount_type, self.discount_value)
        _check_window(self.starts_at, self.expires_at)
        if self.new_customers_only and self.existing_customers_only:
            raise ValueError("A code cannot be limited to both new and existing customers")
        return self


class DiscountCodeUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[PositiveDecimal] = None
    max_discount_amount: Optional[PositiveDecimal] = None
    min_order_amount: Optional[NonNegativeDecimal] = None
    max_uses_total: Optional[int] = Field(default=None, ge=1)
    max_uses_per_customer: Optional[int] = Field(default=None, ge=1)
    applicable_services: Optional[List[str]] = None
    applicable_tiers: Optional[List[QualityTier]] = None
    new_customers_only: Optional[bool] = None
    existing_customers_only: Optional[bool] = None
    specific_customer_ids: Optional[List[int]] = None
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_active: Optional[bool] = None


class DiscountCodeOut(DiscountCodeBase):
    id: int
    org_id: int
    is_active: bool
    times_used: int
    total_discount_given: Decimal
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DiscountCodeUsageOut(BaseModel):
    id: int
    discount_code_id: int
    proposal_ref: Optional[str]
    client_id: Optional[int]
    client_email: Optional[str]
    order_amount: Decimal
    discount_amount: Decimal
    applied_by: Optional[int]
    applied_at: Optional[datetime]

    class Config:
        from_attributes = True


class ValidateCodeRequest(BaseModel):
    code: str = Field(..., min_length=1)
    client_id: Optional[int] = None
    client_email: Optional[str] = None
    order_amount: NonNegativeDecimal
    service_ids: Optional[List[str]] = None
    tier: Optional[QualityTier] = None
    is_new_customer: Optional[bool] = None


class ValidateCodeResult(BaseModel):
    valid: bool
    reason: Optional[str] = None
    error: Optional[str] = None
    discount_code_id: Optional[int] = None
    code: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None


# --------------------------
# Seasonal campaigns
# --------------------------
class SeasonalCampaignCreate(BaseModel):
    name: str
    description: Optional[str] = None
    banner_text: Optional[str] = None
    starts_at: datetime
    expires_at: datetime
    discount_type: DiscountType
    discount_value: PositiveDecimal
    max_discount_amount: Optional[PositiveDecimal] = None
    min_order_amount: NonNegativeDecimal = Decimal("0")
    applicable_services: Optional[List[str]] = None

    @model_validator(mode="after")
    def _validate(self):
        _check_percent(self.discount_type, self.discount_value)
        _check_window(self.starts_at, self.expires_at)
        return self


class SeasonalCampaignOut(SeasonalCampaignCreate):
    id: int
    org_id: int
    is_active: bool
    times_applied: int
    total_discount_given: Decimal

    class Config:
        from_attributes = True


# --------------------------
# Volume schedules
# --------------------------
class VolumeTierIn(BaseModel):
    label: Optional[str] = None
    min_value: NonNegativeDecimal
    discount_type: DiscountType = DiscountType.PERCENT
    discount_value: NonNegativeDecimal
    max_discount_amount: Optional[PositiveDecimal] = None

    @model_validator(mode="after")
    def _validate(self):
        _check_percent(self.discount_type, self.discount_value)
        return self


class VolumeTierOut(VolumeTierIn):
    id: int

    class Config:
        from_attributes = True


class VolumeScheduleCreate(BaseModel):
    name: str
    measurement: str = Field(default="subtotal", pattern="^(subtotal|quantity)$")
    unit: Optional[str] = None
    service_id: Optional[str] = None
    priority: int = 0
    tiers: List[VolumeTierIn] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _validate(self):
        thresholds = [t.min_value for t in self.tiers]
        if len(set(thresholds)) != len(thresholds):
            raise ValueError("Volume tier thresholds must be unique")
        return self


class VolumeScheduleOut(BaseModel):
    id: int
    org_id: int
    name: str
    measurement: str
    unit: Optional[str]
    service_id: Optional[str]
    priority: int
    is_active: bool
    tiers: List[VolumeTierOut] = []

    class Config:
        from_attributes = True


# --------------------------
# Automatic rules
# --------------------------
class AutoRuleCreate(BaseModel):
    name: str
    description: Optional[str] = None
    priority: int = 0
    rule_type: str = Field(..., pattern=RULE_TYPES)
    conditions: Dict[str, Any] = Field(default_factory=dict)
    discount_type: DiscountType
    discount_value: PositiveDecimal
    max_discount_amount: Optional[PositiveDecimal] = None
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _validate(self):
        _check_percent(self.discount_type, self.discount_value)
        _check_window(self.starts_at, self.expires_at)
        return self


class AutoRuleOut(AutoRuleCreate):
    id: int
    org_id: int
    is_active: bool
    times_applied: int
    total_discount_given: Decimal

    class Config:
        from_attributes = True
