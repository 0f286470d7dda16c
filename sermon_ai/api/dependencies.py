"""
FastAPI dependencies for dependency injection.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, Request

from sermon_ai.core.logger import get_logger
from sermon_ai.services.comparison import ComparisonEngine
from sermon_ai.services.metrics import MetricsAggregator
from sermon_ai.services.orchestrator import ANONYMOUS_USER, Orchestrator

logger = get_logger(__name__)


@dataclass
class AIServices:
    """Process-wide service instances, created once at startup."""

    orchestrator: Orchestrator
    aggregator: MetricsAggregator
    comparisons: ComparisonEngine


# ============================================================================
# Service Dependencies
# ============================================================================

def get_services(request: Request) -> AIServices:
    """Get the service container stored on the application."""
    return request.app.state.services


def get_orchestrator(request: Request) -> Orchestrator:
    return get_services(request).orchestrator


def get_aggregator(request: Request) -> MetricsAggregator:
    return get_services(request).aggregator


def get_comparison_engine(request: Request) -> ComparisonEngine:
    return get_services(request).comparisons


# ============================================================================
# Identity Dependency
# ============================================================================

async def get_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """
    Identity of the acting user.

    The UI authenticates users and forwards the id in ``X-User-Id``;
    requests without it are attributed to the anonymous user.
    """
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    return ANONYMOUS_USER
