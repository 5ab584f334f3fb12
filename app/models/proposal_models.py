from sqlalchemy import Column, Integer, String, Numeric, DateTime, JSON, ForeignKey, Index
from sqlalchemy.sql import func
from app.core.db import Base


class FinalizedProposal(Base):
    """One row per finalized proposal; the unique key makes side effects run once."""
    __tablename__ = "finalized_proposals"
    __table_args__ = (
        Index("ix_finalized_proposals_org_ref", "org_id", "proposal_ref", unique=True),
    )

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=False, index=True)
    proposal_ref = Column(String(64), nullable=False)
    client_id = Column(Integer, nullable=True)

    subtotal = Column(Numeric(14, 2), nullable=False)
    discount_amount = Column(Numeric(14, 2), nullable=False)
    tax_amount = Column(Numeric(14, 2), nullable=False)
    total = Column(Numeric(14, 2), nullable=False)
    approval_request_id = Column(Integer, ForeignKey("discount_approval_requests.id"), nullable=True)
    loyalty_points_redeemed = Column(Integer, nullable=False, default=0)
    loyalty_points_earned = Column(Integer, nullable=False, default=0)
    result_snapshot = Column(JSON, nullable=True)

    finalized_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    finalized_at = Column(DateTime(timezone=True), server_default=func.now())
