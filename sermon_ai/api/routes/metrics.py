"""
Metrics, report and provider comparison routes.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from sermon_ai.api.dependencies import (
    get_aggregator,
    get_comparison_engine,
    get_user_id,
)
from sermon_ai.api.schemas import (
    CompareRequest,
    ComparisonOutcome,
    ComparisonRecordResponse,
    ErrorResponse,
    PreferenceRequest,
    ProviderStats,
)
from sermon_ai.core.logger import get_logger
from sermon_ai.services.comparison import ComparisonEngine
from sermon_ai.services.metrics import MetricsAggregator

logger = get_logger(__name__)

router = APIRouter(tags=["metrics"])


# ============================================================================
# Statistics
# ============================================================================

@router.get("/metrics", response_model=ProviderStats)
async def get_metrics(
    provider: Optional[str] = Query(None, description="Restrict to one provider"),
    days: Optional[int] = Query(
        None, ge=1, le=365, description="Trailing window in days (default: configured window)"
    ),
    aggregator: MetricsAggregator = Depends(get_aggregator),
    user_id: str = Depends(get_user_id)
):
    """Request statistics for the acting user over the trailing window."""
    logger.info("Metrics requested", provider=provider, days=days)
    return await aggregator.compute_stats(user_id, provider, days)


@router.get("/metrics/report", response_model=Dict[str, Any])
async def get_report(
    days: Optional[int] = Query(None, ge=1, le=365),
    aggregator: MetricsAggregator = Depends(get_aggregator),
    user_id: str = Depends(get_user_id)
):
    """Exportable performance report with stats, comparisons and preferences."""
    return await aggregator.build_report(user_id, days)


# ============================================================================
# Comparisons
# ============================================================================

@router.post("/comparisons", response_model=ComparisonOutcome)
async def compare_providers(
    body: CompareRequest,
    engine: ComparisonEngine = Depends(get_comparison_engine)
):
    """Run the same prompt on both comparison providers side by side."""
    return await engine.compare(body.feature, body.query, body.language)


@router.post(
    "/comparisons/preference",
    response_model=ComparisonRecordResponse,
    responses={
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    }
)
async def record_preference(
    body: PreferenceRequest,
    engine: ComparisonEngine = Depends(get_comparison_engine),
    user_id: str = Depends(get_user_id)
):
    """Persist a comparison with the provider the user preferred."""
    return await engine.record_preference(body.outcome, body.preferred_provider, user_id)


@router.get("/comparisons", response_model=List[ComparisonRecordResponse])
async def list_comparisons(
    days: Optional[int] = Query(None, ge=1, le=365),
    aggregator: MetricsAggregator = Depends(get_aggregator),
    user_id: str = Depends(get_user_id)
):
    return await aggregator.list_comparisons(user_id, days)
