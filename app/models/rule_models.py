from decimal import Decimal
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Boolean, JSON, ForeignKey
from sqlalchemy.sql import func
from app.core.db import Base


class AutoDiscountRule(Base):
    __tablename__ = "auto_discount_rules"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String(255), nullable=True)
    priority = Column(Integer, nullable=False, default=0)  # higher runs first

    # order_minimum / first_order / repeat_customer / service_combo /
    # service_quantity / month_range / day_of_week
    rule_type = Column(String(30), nullable=False)
    conditions = Column(JSON, nullable=False, default=dict)

    discount_type = Column(String(20), nullable=False)
    discount_value = Column(Numeric(14, 2), nullable=False)
    max_discount_amount = Column(Numeric(14, 2), nullable=True)

    starts_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, default=True)

    times_applied = Column(Integer, nullable=False, default=0)
    total_discount_given = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
