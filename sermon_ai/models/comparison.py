"""
Comparison result database model.
"""
from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text

from sermon_ai.core.database import Base
from sermon_ai.models.request_metric import utcnow


class ComparisonRecord(Base):
    """Side-by-side outputs of two providers plus the user's preference."""

    __tablename__ = "ai_comparison_results"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(String(100), nullable=False, index=True)
    feature = Column(String(100), nullable=False)
    query = Column(Text, nullable=False)
    language = Column(String(50))

    provider_a = Column(String(50), nullable=False)
    provider_b = Column(String(50), nullable=False)
    response_a = Column(Text, nullable=False)
    response_b = Column(Text, nullable=False)
    metrics_a = Column(JSON, nullable=False)
    metrics_b = Column(JSON, nullable=False)

    preferred_provider = Column(String(50), nullable=False)
    compared_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    __table_args__ = (
        Index('idx_comparison_user_compared', 'user_id', 'compared_at'),
    )
