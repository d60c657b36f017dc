"""SQLAlchemy ORM models."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Get current UTC timestamp."""
    return datetime.utcnow()


class DecisionAuditEvent(Base):
    """One listener event of one evaluation, for the audit trail."""

    __tablename__ = "decision_audit_events"

    id = Column(String, primary_key=True, default=generate_uuid)
    correlation_id = Column(String(32), nullable=False, index=True)
    event_type = Column(String(50), nullable=False)  # e.g. 'decision.ended'
    model = Column(String(100), nullable=True)
    decision = Column(String(100), nullable=True)
    table_name = Column(String(100), nullable=True)
    rule_id = Column(Integer, nullable=True)
    status = Column(String(20), nullable=True)
    properties = Column(JSON, nullable=False, default=dict)
    timestamp = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<DecisionAuditEvent(correlation_id={self.correlation_id}, "
            f"event_type={self.event_type}, decision={self.decision})>"
        )
