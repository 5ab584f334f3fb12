from decimal import Decimal
import enum
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Boolean, ForeignKey, Enum, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.db import Base


class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalPolicy(Base):
    __tablename__ = "approval_policies"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, unique=True, index=True)
    require_approval = Column(Boolean, default=True)

    # Org-wide ceilings, each optional
    max_discount_percent = Column(Numeric(5, 2), nullable=True)
    approval_threshold_amount = Column(Numeric(14, 2), nullable=True)
    approval_for_orders_over = Column(Numeric(14, 2), nullable=True)

    min_reviewer_role = Column(String, nullable=False, default="manager")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    role_limits = relationship("RoleDiscountLimit", back_populates="policy", cascade="all, delete-orphan", lazy="selectin")


class RoleDiscountLimit(Base):
    __tablename__ = "role_discount_limits"
    __table_args__ = (
        Index("ix_role_discount_limits_policy_role", "policy_id", "role", unique=True),
    )

    id = Column(Integer, primary_key=True, index=True)
    policy_id = Column(Integer, ForeignKey("approval_policies.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String, nullable=False)
    max_discount_percent = Column(Numeric(5, 2), nullable=True)
    max_discount_amount = Column(Numeric(14, 2), nullable=True)

    policy = relationship("ApprovalPolicy", back_populates="role_limits")


class DiscountApprovalRequest(Base):
    __tablename__ = "discount_approval_requests"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    proposal_ref = Column(String(64), nullable=False, index=True)

    discount_percent = Column(Numeric(7, 4), nullable=False)
    discount_amount = Column(Numeric(14, 2), nullable=False)
    subtotal = Column(Numeric(14, 2), nullable=False)
    order_total = Column(Numeric(14, 2), nullable=False)

    requested_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    requested_role = Column(String, nullable=False)
    reason = Column(String(255), nullable=True)
    supporting_notes = Column(String(1000), nullable=True)

    status = Column(Enum(ApprovalStatus, name="approval_status"), default=ApprovalStatus.PENDING, nullable=False, index=True)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewer_role = Column(String, nullable=True)
    reviewer_notes = Column(String(1000), nullable=True)

    requested_at = Column(DateTime(timezone=True), server_default=func.now())
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
