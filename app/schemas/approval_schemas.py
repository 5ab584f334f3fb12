# app/schemas/approval_schemas.py
from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Literal
from datetime import datetime
from decimal import Decimal

from app.models.approval_models import ApprovalStatus
from app.schemas.pricing_schemas import CalculationRequest
from app.utils.check_roles import ROLE_AUTHORITY

ROLE_PATTERN = "^(" + "|".join(ROLE_AUTHORITY) + ")$"


# --------------------------
# Policy
# --------------------------
class RoleLimitIn(BaseModel):
    role: str = Field(..., pattern=ROLE_PATTERN)
    max_discount_percent: Optional[Decimal] = Field(default=None, ge=0, le=100)
    max_discount_amount: Optional[Decimal] = Field(default=None, ge=0)


class RoleLimitOut(RoleLimitIn):
    id: int

    class Config:
        from_attributes = True


class ApprovalPolicyUpsert(BaseModel):
    require_approval: bool = True
    max_discount_percent: Optional[Decimal] = Field(default=None, ge=0, le=100)
    approval_threshold_amount: Optional[Decimal] = Field(default=None, ge=0)
    approval_for_orders_over: Optional[Decimal] = Field(default=None, ge=0)
    min_reviewer_role: str = Field(default="manager", pattern=ROLE_PATTERN)
    role_limits: List[RoleLimitIn] = []

    @model_validator(mode="after")
    def _unique_roles(self):
        roles = [limit.role for limit in self.role_limits]
        if len(set(roles)) != len(roles):
            raise ValueError("Each role may only have one limit")
        return self


class ApprovalPolicyOut(BaseModel):
    id: int
    org_id: int
    require_approval: bool
    max_discount_percent: Optional[Decimal]
    approval_threshold_amount: Optional[Decimal]
    approval_for_orders_over: Optional[Decimal]
    min_reviewer_role: str
    role_limits: List[RoleLimitOut] = []

    class Config:
        from_attributes = True


# --------------------------
# Requests
# --------------------------
class ApprovalRequestCreate(CalculationRequest):
    """The proposal as priced now; the requested discount is recomputed server-side."""
    proposal_ref: str = Field(..., min_length=1, max_length=64)
    reason: Optional[str] = Field(default=None, max_length=255)
    supporting_notes: Optional[str] = Field(default=None, max_length=1000)


class ApprovalReview(BaseModel):
    decision: Literal["approved", "rejected"]
    notes: Optional[str] = Field(default=None, max_length=1000)


class ApprovalRequestOut(BaseModel):
    id: int
    org_id: int
    proposal_ref: str
    discount_percent: Decimal
    discount_amount: Decimal
    subtotal: Decimal
    order_total: Decimal
    requested_by: int
    requested_role: str
    reason: Optional[str]
    supporting_notes: Optional[str]
    status: ApprovalStatus
    reviewed_by: Optional[int]
    reviewer_role: Optional[str]
    reviewer_notes: Optional[str]
    requested_at: Optional[datetime]
    reviewed_at: Optional[datetime]

    class Config:
        from_attributes = True
