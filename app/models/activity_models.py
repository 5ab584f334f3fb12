# app/models/activity_models.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from app.core.db import Base

class UserActivity(Base):
    """Audit trail. proposal_ref is set for approval and finalization events."""
    __tablename__ = "user_activity"
    __table_args__ = (
        Index("ix_user_activity_org_created", "org_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    username = Column(String, nullable=False)
    proposal_ref = Column(String(64), nullable=True, index=True)

    message = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
