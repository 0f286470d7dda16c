"""
Provider orchestration: selection, health-aware routing and bounded failover.
"""
import time
from datetime import datetime, timezone
from typing import List, Optional

from sermon_ai.api.schemas import (
    AttemptMetrics,
    ChatMessage,
    DispatchResult,
    HealthState,
    SendOptions,
)
from sermon_ai.core.cache import RedisCache, provider_selection_key
from sermon_ai.core.logger import get_logger
from sermon_ai.models.request_metric import RequestMetric
from sermon_ai.providers.base import ChunkCallback
from sermon_ai.providers.errors import AggregateFailure, AttemptFailure, UnknownProvider
from sermon_ai.providers.registry import ProviderRegistry
from sermon_ai.services.health_check import HealthProbe
from sermon_ai.services.metrics import MetricsRecorder
from sermon_ai.services.token_estimator import TokenEstimator

logger = get_logger(__name__)

ANONYMOUS_USER = "anonymous"


class Orchestrator:
    """
    Routes requests to the current provider with a single fallback.

    Features:
    - Persisted current-provider selection with an in-memory default
    - Health-aware provider selection over the registry's priority order
    - One fallback to the partner provider when no provider was forced
    - One request metric per attempt, recorded fire-and-forget

    There is no queueing, rate limiting or default timeout: a call waits
    until the provider answers or the transport fails.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        recorder: MetricsRecorder,
        cache: Optional[RedisCache] = None,
        default_provider: str = "megallm",
        probe: Optional[HealthProbe] = None
    ):
        if default_provider not in registry:
            raise UnknownProvider(default_provider)
        self.registry = registry
        self.recorder = recorder
        self.cache = cache
        self.probe = probe or HealthProbe(registry)
        self._current = default_provider
        # Set when the last selection could not be persisted
        self._store_stale = False

    # ------------------------------------------------------------------
    # Current provider selection
    # ------------------------------------------------------------------

    async def get_current_provider(self) -> str:
        """Persisted selection if it names a declared provider, else the in-memory one."""
        if self.cache is not None and not self._store_stale:
            stored = await self.cache.get(provider_selection_key())
            if isinstance(stored, str) and stored in self.registry:
                return stored
        return self._current

    async def set_current_provider(self, provider_id: str) -> None:
        """
        Make ``provider_id`` the current provider.

        If the store rejects the write, the stored value is ignored until a
        later write succeeds, so the in-memory selection stays authoritative.

        Raises:
            UnknownProvider: If the id is not declared
        """
        self.registry.get(provider_id)
        self._current = provider_id
        if self.cache is not None:
            persisted = await self.cache.set(provider_selection_key(), provider_id)
            self._store_stale = not persisted
            if not persisted:
                logger.warning(
                    "Current provider not persisted; using in-memory selection",
                    provider=provider_id
                )
        logger.info("Current provider changed", provider=provider_id)

    # ------------------------------------------------------------------
    # Health-aware selection
    # ------------------------------------------------------------------

    async def get_healthy_provider(self) -> Optional[str]:
        """
        Find a healthy provider, preferring the current one.

        The cached status of the preferred provider is trusted when
        healthy; otherwise providers are probed in registry order.

        Returns:
            Provider id, or None when none is healthy
        """
        try:
            preferred = await self.get_current_provider()

            cached = self.probe.cached_status(preferred)
            if cached is not None and cached.health == HealthState.HEALTHY:
                return preferred

            status = await self.probe.test_connection(preferred)
            if status.is_healthy:
                return preferred

            for provider_id in self.registry.ids():
                if provider_id == preferred:
                    continue
                status = await self.probe.test_connection(provider_id)
                if status.is_healthy:
                    logger.info(
                        "Selected alternate healthy provider",
                        preferred=preferred,
                        provider=provider_id
                    )
                    return provider_id
        except Exception as e:
            logger.error("Healthy provider lookup failed", error=str(e), exc_info=True)
            return None

        logger.warning("No healthy provider available")
        return None

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(
        self,
        messages: List[ChatMessage],
        options: Optional[SendOptions] = None,
        explicit_provider: Optional[str] = None,
        *,
        feature: str = "general",
        query: str = "",
        user_id: Optional[str] = None,
        _prior_failures: Optional[List[AttemptFailure]] = None
    ) -> DispatchResult:
        """
        Send messages to a provider, falling back once on failure.

        Args:
            messages: Chat messages
            options: Generation options
            explicit_provider: Force a provider; disables the fallback
            feature: Calling use case, for metrics
            query: Scripture or theme, for metrics
            user_id: Acting user, for metrics

        Returns:
            Content, the provider that produced it and the attempt metrics

        Raises:
            AggregateFailure: Once every permitted attempt failed
            UnknownProvider: If ``explicit_provider`` is not declared
        """
        failures = list(_prior_failures or [])
        provider_id = explicit_provider or await self.get_current_provider()
        provider = self.registry.get(provider_id)

        start_time = time.perf_counter()
        try:
            content = await provider.send(messages, options)
        except Exception as e:
            response_time_ms = int((time.perf_counter() - start_time) * 1000)
            error = str(e) or "AI request failed"
            self._record(
                provider_id, feature, query, user_id, response_time_ms,
                success=False, error=error
            )
            failures.append(AttemptFailure(provider_id, error, response_time_ms))
            logger.warning(
                f"Provider {provider_id} failed",
                provider=provider_id,
                feature=feature,
                error=error
            )

            if explicit_provider is None:
                fallback = self.registry.failover_partner(provider_id)
                if fallback is not None:
                    logger.info(
                        "Falling back to partner provider",
                        provider=provider_id,
                        fallback=fallback
                    )
                    return await self.dispatch(
                        messages,
                        options,
                        fallback,
                        feature=feature,
                        query=query,
                        user_id=user_id,
                        _prior_failures=failures
                    )

            logger.error(
                "All providers failed",
                providers_tried=[f.provider for f in failures],
                feature=feature
            )
            raise AggregateFailure(failures) from e

        response_time_ms = int((time.perf_counter() - start_time) * 1000)
        token_count = TokenEstimator.estimate_exchange_tokens(messages, content)
        metrics = self._record(
            provider_id, feature, query, user_id, response_time_ms,
            success=True, token_count=token_count
        )
        return DispatchResult(content=content, provider=provider_id, metrics=metrics)

    async def stream_dispatch(
        self,
        messages: List[ChatMessage],
        on_chunk: ChunkCallback,
        options: Optional[SendOptions] = None,
        explicit_provider: Optional[str] = None,
        *,
        feature: str = "general",
        query: str = "",
        user_id: Optional[str] = None
    ) -> DispatchResult:
        """
        Stream a reply from one provider.

        Chunks may already have reached the caller when a stream breaks, so
        streaming makes a single attempt with no fallback.

        Raises:
            AggregateFailure: If the attempt failed
        """
        provider_id = explicit_provider or await self.get_current_provider()
        provider = self.registry.get(provider_id)

        start_time = time.perf_counter()
        try:
            content = await provider.stream_send(messages, on_chunk, options)
        except Exception as e:
            response_time_ms = int((time.perf_counter() - start_time) * 1000)
            error = str(e) or "AI request failed"
            self._record(
                provider_id, feature, query, user_id, response_time_ms,
                success=False, error=error
            )
            raise AggregateFailure(
                [AttemptFailure(provider_id, error, response_time_ms)]
            ) from e

        response_time_ms = int((time.perf_counter() - start_time) * 1000)
        metrics = self._record(
            provider_id, feature, query, user_id, response_time_ms,
            success=True,
            token_count=TokenEstimator.estimate_exchange_tokens(messages, content)
        )
        return DispatchResult(content=content, provider=provider_id, metrics=metrics)

    def _record(
        self,
        provider_id: str,
        feature: str,
        query: str,
        user_id: Optional[str],
        response_time_ms: int,
        success: bool,
        token_count: Optional[int] = None,
        error: Optional[str] = None
    ) -> AttemptMetrics:
        timestamp = datetime.now(timezone.utc)
        self.recorder.record(RequestMetric(
            user_id=user_id or ANONYMOUS_USER,
            provider=provider_id,
            feature=feature,
            query=query,
            response_time_ms=response_time_ms,
            token_count=token_count,
            success=success,
            error_message=error,
            created_at=timestamp.replace(tzinfo=None),
        ))
        return AttemptMetrics(
            provider=provider_id,
            response_time_ms=response_time_ms,
            success=success,
            token_count=token_count,
            error=error,
            timestamp=timestamp,
        )

    async def close(self) -> None:
        """Flush pending metric writes and close provider clients."""
        await self.recorder.drain()
        await self.registry.close()
