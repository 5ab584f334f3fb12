from decimal import Decimal
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Boolean, JSON, ForeignKey
from sqlalchemy.sql import func
from app.core.db import Base


class SeasonalCampaign(Base):
    __tablename__ = "seasonal_campaigns"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String(255), nullable=True)
    banner_text = Column(String(255), nullable=True)

    starts_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    discount_type = Column(String(20), nullable=False)  # 'percent' or 'fixed'
    discount_value = Column(Numeric(14, 2), nullable=False)
    max_discount_amount = Column(Numeric(14, 2), nullable=True)
    min_order_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    applicable_services = Column(JSON, nullable=True)

    is_active = Column(Boolean, default=True)
    times_applied = Column(Integer, nullable=False, default=0)
    total_discount_given = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
