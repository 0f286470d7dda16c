"""
Database models for request metrics and provider comparisons.
"""
from sermon_ai.models.request_metric import RequestMetric
from sermon_ai.models.comparison import ComparisonRecord

__all__ = [
    "RequestMetric",
    "ComparisonRecord",
]
