from decimal import Decimal
import enum
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Boolean, ForeignKey, Enum, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.db import Base


class LoyaltyTransactionType(str, enum.Enum):
    EARN_PURCHASE = "earn_purchase"
    EARN_SIGNUP = "earn_signup"
    REDEEM = "redeem"
    ADJUST = "adjust"


class LoyaltyProgram(Base):
    __tablename__ = "loyalty_programs"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, unique=True, index=True)
    name = Column(String(100), nullable=False, default="Loyalty Program")
    is_active = Column(Boolean, default=True)

    points_per_currency_unit = Column(Numeric(10, 4), nullable=False, default=Decimal("1"))
    points_for_signup = Column(Integer, nullable=False, default=0)

    # 0.01 means 100 points = 1.00
    points_to_currency_rate = Column(Numeric(10, 4), nullable=False, default=Decimal("0.01"))
    min_points_to_redeem = Column(Integer, nullable=False, default=0)
    max_redemption_percent = Column(Numeric(5, 2), nullable=False, default=Decimal("100"))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class CustomerLoyalty(Base):
    __tablename__ = "customer_loyalty"
    __table_args__ = (
        Index("ix_customer_loyalty_org_client", "org_id", "client_id", unique=True),
    )

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    client_id = Column(Integer, nullable=False, index=True)

    current_points = Column(Integer, nullable=False, default=0)
    total_points_earned = Column(Integer, nullable=False, default=0)
    total_points_redeemed = Column(Integer, nullable=False, default=0)
    total_orders = Column(Integer, nullable=False, default=0)
    total_spent = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))

    enrolled_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    transactions = relationship("LoyaltyTransaction", back_populates="customer_loyalty", cascade="all, delete-orphan", lazy="selectin")


class LoyaltyTransaction(Base):
    __tablename__ = "loyalty_transactions"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    customer_loyalty_id = Column(Integer, ForeignKey("customer_loyalty.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(Enum(LoyaltyTransactionType, name="loyalty_transaction_type"), nullable=False)
    points = Column(Integer, nullable=False)  # positive earn, negative redeem
    balance_after = Column(Integer, nullable=False)
    proposal_ref = Column(String(64), nullable=True, index=True)
    description = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    customer_loyalty = relationship("CustomerLoyalty", back_populates="transactions")
