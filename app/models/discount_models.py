from decimal import Decimal
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Boolean, JSON, ForeignKey, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.db import Base


class DiscountCode(Base):
    __tablename__ = "discount_codes"
    __table_args__ = (
        Index("ix_discount_codes_org_code", "org_id", "code", unique=True),
    )

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    code = Column(String(50), nullable=False)  # stored upper-case
    name = Column(String(100), nullable=False)
    description = Column(String(255), nullable=True)

    discount_type = Column(String(20), nullable=False)  # 'percent' or 'fixed'
    discount_value = Column(Numeric(14, 2), nullable=False)
    max_discount_amount = Column(Numeric(14, 2), nullable=True)

    # Restrictions
    min_order_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    max_uses_total = Column(Integer, nullable=True)
    max_uses_per_customer = Column(Integer, nullable=True, default=1)
    applicable_services = Column(JSON, nullable=True)
    applicable_tiers = Column(JSON, nullable=True)
    new_customers_only = Column(Boolean, default=False)
    existing_customers_only = Column(Boolean, default=False)
    specific_customer_ids = Column(JSON, nullable=True)

    # Validity
    starts_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, default=True)

    # Tracking, only touched at finalization
    times_used = Column(Integer, nullable=False, default=0)
    total_discount_given = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    usages = relationship("DiscountCodeUsage", back_populates="discount_code", cascade="all, delete-orphan", lazy="selectin")


class DiscountCodeUsage(Base):
    __tablename__ = "discount_code_usage"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    discount_code_id = Column(Integer, ForeignKey("discount_codes.id", ondelete="CASCADE"), nullable=False, index=True)
    proposal_ref = Column(String(64), nullable=True, index=True)
    client_id = Column(Integer, nullable=True, index=True)
    client_email = Column(String, nullable=True, index=True)
    order_amount = Column(Numeric(14, 2), nullable=False)
    discount_amount = Column(Numeric(14, 2), nullable=False)
    applied_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    applied_at = Column(DateTime(timezone=True), server_default=func.now())

    discount_code = relationship("DiscountCode", back_populates="usages")
