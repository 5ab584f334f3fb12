# app/schemas/pricing_schemas.py
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --------------------------
# Enumerations
# --------------------------
class QualityTier(str, Enum):
    ECONOMY = "economy"
    STANDARD = "standard"
    PREMIUM = "premium"


class PropertyCondition(str, Enum):
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class DiscountType(str, Enum):
    PERCENT = "percent"
    FIXED = "fixed"


class DiscountSource(str, Enum):
    MANUAL = "manual"
    PROMO_CODE = "promo_code"
    LOYALTY = "loyalty"
    SEASONAL = "seasonal"
    VOLUME = "volume"
    AUTO_RULE = "auto_rule"


class TrailOutcome(str, Enum):
    APPLIED = "applied"
    REJECTED = "rejected"
    SUPERSEDED = "superseded"
    ERROR = "error"


class ApprovalState(str, Enum):
    NOT_REQUIRED = "no_approval_needed"
    REQUIRED = "approval_required"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# --------------------------
# Calculation input
# --------------------------
class ServiceLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    service_id: str
    quantity: Decimal = Decimal("1")
    unit: str = "each"  # sqft / lf / each / hour
    unit_rate: Decimal = Decimal("0")
    formula: Optional[str] = None
    formula_inputs: Optional[Dict[str, Any]] = None


class ManualDiscount(BaseModel):
    """Sales override. When both are set, percent wins."""
    model_config = ConfigDict(frozen=True)

    percent: Optional[Decimal] = Field(default=None, ge=0, le=100)
    amount: Optional[Decimal] = Field(default=None, ge=0)

    @property
    def is_set(self) -> bool:
        return self.percent is not None or self.amount is not None


class CalculationRequest(BaseModel):
    """Pricing inputs as sent by a client; identity fields come from the session."""
    model_config = ConfigDict(frozen=True)

    services: List[ServiceLine] = Field(default_factory=list)
    tier: QualityTier = QualityTier.STANDARD
    condition: PropertyCondition = PropertyCondition.GOOD

    client_id: Optional[int] = None
    client_email: Optional[str] = None
    is_new_customer: bool = False
    client_total_orders: int = Field(default=0, ge=0)

    promo_code: Optional[str] = None
    manual_discount: Optional[ManualDiscount] = None
    loyalty_points_to_redeem: Optional[int] = Field(default=None, ge=0)

    proposal_ref: Optional[str] = Field(default=None, max_length=64)
    tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=1)
    as_of: Optional[datetime] = None

    @field_validator("promo_code", mode="before")
    @classmethod
    def _blank_code_is_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
        return value or None


class CalculationContext(CalculationRequest):
    org_id: int
    user_id: int
    user_role: str = Field(min_length=1)

    @classmethod
    def for_user(cls, request: CalculationRequest, user) -> "CalculationContext":
        return cls(**request.model_dump(), org_id=user.org_id, user_id=user.id, user_role=user.role)


# --------------------------
# Base pricing
# --------------------------
class LineItem(BaseModel):
    service_id: str
    quantity: Decimal
    unit: str
    unit_rate: Decimal
    line_total: Decimal


class BasePricing(BaseModel):
    line_items: List[LineItem] = []
    tier_multiplier: Decimal
    condition_multiplier: Decimal
    base_subtotal: Decimal
    subtotal: Decimal

    def scope_base(self, services: Optional[List[str]]) -> Decimal:
        """Condition-adjusted subtotal of the lines a discount is restricted to."""
        if not services:
            return self.subtotal
        in_scope = sum(
            (item.line_total for item in self.line_items if item.service_id in services),
            Decimal("0"),
        )
        return in_scope * self.condition_multiplier


# --------------------------
# Discounts
# --------------------------
class DiscountCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: DiscountSource
    discount_type: DiscountType
    value: Decimal
    max_amount: Optional[Decimal] = None
    scope_services: Optional[List[str]] = None
    scope_tiers: Optional[List[str]] = None
    source_id: Optional[int] = None
    name: str
    reason: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class TrailEntry(BaseModel):
    source: DiscountSource
    outcome: TrailOutcome
    reason: str
    detail: str = ""
    name: Optional[str] = None
    source_id: Optional[int] = None
    amount: Optional[Decimal] = None


class AppliedDiscount(BaseModel):
    position: int
    source: DiscountSource
    source_id: Optional[int] = None
    name: str
    discount_type: DiscountType
    value: Decimal
    applied_to: Decimal
    amount: Decimal
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AppliedDiscountSet(BaseModel):
    discounts: List[AppliedDiscount] = []
    primary_source: Optional[DiscountSource] = None
    total_discount: Decimal
    discounted_subtotal: Decimal

    def find(self, source: DiscountSource) -> Optional[AppliedDiscount]:
        return next((d for d in self.discounts if d.source == source), None)


# --------------------------
# Approval + result
# --------------------------
class ApprovalDecision(BaseModel):
    state: ApprovalState = ApprovalState.NOT_REQUIRED
    required: bool = False
    reason: Optional[str] = None
    discount_percent: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    request_id: Optional[int] = None
    approved_ceiling: Optional[Decimal] = None


class CalculationResult(BaseModel):
    pricing: BasePricing
    subtotal: Decimal
    applied: AppliedDiscountSet
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    trail: List[TrailEntry] = []
    approval: ApprovalDecision
    provisional: bool = False


class CalculationResponse(BaseModel):
    message: str
    data: Optional[CalculationResult] = None


# --------------------------
# Finalization
# --------------------------
class FinalizeRequest(CalculationRequest):
    proposal_ref: str = Field(min_length=1, max_length=64)


class FinalizedProposalOut(BaseModel):
    id: int
    org_id: int
    proposal_ref: str
    client_id: Optional[int]
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total: Decimal
    approval_request_id: Optional[int]
    loyalty_points_redeemed: int
    loyalty_points_earned: int
    finalized_by: int
    finalized_at: Optional[datetime]

    class Config:
        from_attributes = True


class FinalizeResponse(BaseModel):
    message: str
    already_finalized: bool = False
    data: Optional[FinalizedProposalOut] = None
