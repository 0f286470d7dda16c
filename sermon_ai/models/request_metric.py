"""
Request metric database model.
"""
from datetime import datetime, timezone
from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text

from sermon_ai.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RequestMetric(Base):
    """One row per provider attempt made by a dispatch. Append-only."""

    __tablename__ = "ai_request_metrics"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(String(100), nullable=False, index=True)
    provider = Column(String(50), nullable=False, index=True)
    feature = Column(String(100), nullable=False, default="general")
    query = Column(Text, default="")  # Scripture or theme the call was about

    # Outcome
    response_time_ms = Column(Integer, nullable=False, default=0)
    token_count = Column(Integer)
    success = Column(Boolean, nullable=False)
    error_message = Column(Text)

    # Naive UTC
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    __table_args__ = (
        Index('idx_metric_user_created', 'user_id', 'created_at'),
        Index('idx_metric_user_provider', 'user_id', 'provider'),
    )
