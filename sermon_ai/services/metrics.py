"""
Request metric recording and windowed aggregation.
"""
import asyncio
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from sermon_ai.api.schemas import (
    ComparisonRecordResponse,
    PreferenceBreakdown,
    ProviderStats,
    WindowStats,
)
from sermon_ai.core.database import AsyncSessionLocal
from sermon_ai.core.logger import get_logger
from sermon_ai.models.comparison import ComparisonRecord
from sermon_ai.models.request_metric import RequestMetric

logger = get_logger(__name__)


def to_naive_utc(value: Optional[datetime]) -> datetime:
    """Normalize to the naive-UTC form stored in the database."""
    if value is None:
        value = datetime.now(timezone.utc)
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class MetricsRecorder:
    """
    Fire-and-forget writer for request metrics.

    Each write runs as a detached task with its own session. A failed
    write is logged and dropped; it never reaches the caller.
    """

    def __init__(self, session_factory: async_sessionmaker = AsyncSessionLocal):
        self.session_factory = session_factory
        self._pending: Set[asyncio.Task] = set()

    def record(self, metric: RequestMetric) -> None:
        """Schedule an append of ``metric``."""
        try:
            task = asyncio.get_running_loop().create_task(self._write(metric))
        except RuntimeError:
            logger.error(
                "No running event loop; dropping request metric",
                provider=metric.provider,
                feature=metric.feature
            )
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, metric: RequestMetric) -> None:
        try:
            async with self.session_factory() as session:
                session.add(metric)
                await session.commit()
        except Exception as e:
            logger.error(
                "Failed to record request metric",
                provider=metric.provider,
                feature=metric.feature,
                error=str(e)
            )

    async def drain(self) -> None:
        """Wait for every scheduled write to finish."""
        while self._pending:
            pending = list(self._pending)
            await asyncio.gather(*pending, return_exceptions=True)
            self._pending.difference_update(pending)


def summarize(rows: Sequence[RequestMetric]) -> WindowStats:
    """Aggregate outcome statistics; an empty input yields zeros."""
    total = len(rows)
    if not total:
        return WindowStats()

    successful = sum(1 for row in rows if row.success)
    total_time = sum(row.response_time_ms or 0 for row in rows)

    return WindowStats(
        total_requests=total,
        successful_requests=successful,
        failed_requests=total - successful,
        avg_response_time_ms=total_time / total,
        success_rate_percent=successful / total * 100,
    )


class MetricsAggregator:
    """
    Windowed statistics over recorded metrics and comparisons.

    Every call scans the filtered window and aggregates in memory.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker = AsyncSessionLocal,
        comparison_providers: Optional[List[str]] = None,
        window_days: int = 7
    ):
        self.session_factory = session_factory
        self.comparison_providers = comparison_providers or ["megallm", "openrouter"]
        self.window_days = window_days

    @staticmethod
    def window_bounds(window_days: int, now: Optional[datetime] = None):
        end = to_naive_utc(now)
        return end - timedelta(days=window_days), end

    async def compute_stats(
        self,
        user_id: str,
        provider: Optional[str] = None,
        window_days: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> ProviderStats:
        """
        Compute statistics for a user's metrics inside the window.

        Args:
            user_id: Acting user
            provider: Restrict to one provider (default: all)
            window_days: Trailing window length in days
            now: Window end (default: current time)

        Returns:
            Totals, averages and a per-feature breakdown
        """
        if window_days is None:
            window_days = self.window_days
        since, until = self.window_bounds(window_days, now)

        query = select(RequestMetric).where(
            RequestMetric.user_id == user_id,
            RequestMetric.created_at >= since,
            RequestMetric.created_at <= until,
        )
        if provider:
            query = query.where(RequestMetric.provider == provider)

        async with self.session_factory() as session:
            rows = (await session.execute(query)).scalars().all()

        by_feature: Dict[str, List[RequestMetric]] = defaultdict(list)
        for row in rows:
            by_feature[row.feature].append(row)

        overall = summarize(rows)
        return ProviderStats(
            **overall.model_dump(),
            provider=provider,
            window_days=window_days,
            by_feature={
                feature: summarize(feature_rows)
                for feature, feature_rows in by_feature.items()
            },
        )

    async def list_comparisons(
        self,
        user_id: str,
        window_days: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> List[ComparisonRecordResponse]:
        """Comparison results inside the window, newest first."""
        if window_days is None:
            window_days = self.window_days
        since, until = self.window_bounds(window_days, now)
        query = (
            select(ComparisonRecord)
            .where(
                ComparisonRecord.user_id == user_id,
                ComparisonRecord.compared_at >= since,
                ComparisonRecord.compared_at <= until,
            )
            .order_by(ComparisonRecord.compared_at.desc(), ComparisonRecord.id.desc())
        )

        async with self.session_factory() as session:
            rows = (await session.execute(query)).scalars().all()
        return [ComparisonRecordResponse.model_validate(row) for row in rows]

    @staticmethod
    def breakdown(
        comparisons: Sequence[ComparisonRecordResponse],
        providers: Sequence[str]
    ) -> Optional[PreferenceBreakdown]:
        counts = {
            pid: sum(1 for c in comparisons if c.preferred_provider == pid)
            for pid in providers
        }
        total = sum(counts.values())
        if total == 0:
            return None
        return PreferenceBreakdown(
            total=total,
            percentages={
                pid: round(count / total * 100, 1) for pid, count in counts.items()
            },
        )

    async def preference_breakdown(
        self,
        user_id: str,
        window_days: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> Optional[PreferenceBreakdown]:
        """Share of recorded preferences per comparison provider."""
        comparisons = await self.list_comparisons(user_id, window_days, now)
        return self.breakdown(comparisons, self.comparison_providers)

    async def build_report(
        self,
        user_id: str,
        window_days: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Build an exportable performance report.

        Returns:
            JSON-ready dict with per-provider stats, comparisons and the
            preference breakdown
        """
        if window_days is None:
            window_days = self.window_days
        generated_at = to_naive_utc(now)
        comparisons = await self.list_comparisons(user_id, window_days, generated_at)
        stats = {}
        for pid in self.comparison_providers:
            provider_stats = await self.compute_stats(
                user_id, pid, window_days, generated_at
            )
            stats[pid] = provider_stats.model_dump(mode="json")

        preference = self.breakdown(comparisons, self.comparison_providers)
        return {
            "generated_at": generated_at.isoformat(),
            "time_range": f"{window_days} days",
            "providers": stats,
            "comparisons": [c.model_dump(mode="json") for c in comparisons],
            "preference": preference.model_dump() if preference else None,
        }
