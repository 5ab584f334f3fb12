# app/schemas/loyalty_schemas.py
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from app.models.loyalty_models import LoyaltyTransactionType


class LoyaltyProgramUpsert(BaseModel):
    name: str = "Loyalty Program"
    is_active: bool = True
    points_per_currency_unit: Decimal = Field(default=Decimal("1"), ge=0)
    points_for_signup: int = Field(default=0, ge=0)
    points_to_currency_rate: Decimal = Field(default=Decimal("0.01"), gt=0)
    min_points_to_redeem: int = Field(default=0, ge=0)
    max_redemption_percent: Decimal = Field(default=Decimal("100"), gt=0, le=100)


class LoyaltyProgramOut(LoyaltyProgramUpsert):
    id: int
    org_id: int

    class Config:
        from_attributes = True


class EnrollRequest(BaseModel):
    client_id: int


class CustomerLoyaltyOut(BaseModel):
    id: int
    org_id: int
    client_id: int
    current_points: int
    total_points_earned: int
    total_points_redeemed: int
    total_orders: int
    total_spent: Decimal
    enrolled_at: Optional[datetime]

    class Config:
        from_attributes = True


class LoyaltyTransactionOut(BaseModel):
    id: int
    type: LoyaltyTransactionType
    points: int
    balance_after: int
    proposal_ref: Optional[str]
    description: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class LoyaltyBalanceResponse(BaseModel):
    message: str
    data: CustomerLoyaltyOut
    currency_value: Decimal
    transactions: List[LoyaltyTransactionOut] = []
