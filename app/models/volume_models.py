from sqlalchemy import Column, Integer, String, Numeric, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.db import Base


class VolumeDiscountSchedule(Base):
    __tablename__ = "volume_discount_schedules"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    measurement = Column(String(20), nullable=False, default="subtotal")  # 'subtotal' or 'quantity'
    unit = Column(String(20), nullable=True)        # quantity measurement only, e.g. 'sqft'
    service_id = Column(String(64), nullable=True)  # quantity measurement only
    priority = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    tiers = relationship(
        "VolumeDiscountTier",
        back_populates="schedule",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="VolumeDiscountTier.min_value",
    )


class VolumeDiscountTier(Base):
    __tablename__ = "volume_discount_tiers"

    id = Column(Integer, primary_key=True, index=True)
    schedule_id = Column(Integer, ForeignKey("volume_discount_schedules.id", ondelete="CASCADE"), nullable=False, index=True)
    label = Column(String(50), nullable=True)
    min_value = Column(Numeric(14, 2), nullable=False)
    discount_type = Column(String(20), nullable=False, default="percent")
    discount_value = Column(Numeric(14, 2), nullable=False)
    max_discount_amount = Column(Numeric(14, 2), nullable=True)

    schedule = relationship("VolumeDiscountSchedule", back_populates="tiers")
