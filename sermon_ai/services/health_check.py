"""
Health probe for checking provider availability on demand.
"""
import asyncio
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sermon_ai.api.schemas import (
    ChatMessage,
    HealthState,
    MessageRole,
    ProviderStatus,
    SendOptions,
)
from sermon_ai.core.logger import get_logger
from sermon_ai.providers.errors import UnknownProvider
from sermon_ai.providers.registry import ProviderRegistry

logger = get_logger(__name__)

PROBE_MESSAGES = [
    ChatMessage(role=MessageRole.SYSTEM, content="You are a test assistant."),
    ChatMessage(role=MessageRole.USER, content='Reply with just the word "OK"'),
]
PROBE_OPTIONS = SendOptions(max_tokens=10)

NOT_CONFIGURED_ERROR = "API key not configured"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class HealthProbe:
    """
    Issues minimal test requests and classifies providers.

    Probes run only when called; there is no background polling. The most
    recent status per provider is kept in ``status_cache`` with no expiry.
    ``test_connection`` never raises.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        status_cache: Optional[Dict[str, ProviderStatus]] = None
    ):
        self.registry = registry
        self.status_cache: Dict[str, ProviderStatus] = (
            status_cache if status_cache is not None else {}
        )

    def cached_status(self, provider_id: str) -> Optional[ProviderStatus]:
        return self.status_cache.get(provider_id)

    def cached_statuses(self) -> Dict[str, ProviderStatus]:
        return dict(self.status_cache)

    async def test_connection(self, provider_id: str) -> ProviderStatus:
        """
        Probe a single provider.

        Args:
            provider_id: Provider to probe

        Returns:
            Status stamped with the call time; failures are reported in
            ``error`` rather than raised
        """
        checked_at = _now()
        status = ProviderStatus(
            provider=provider_id,
            health=HealthState.UNHEALTHY,
            last_checked=checked_at,
        )

        try:
            provider = self.registry.get(provider_id)
        except UnknownProvider as e:
            status.error = str(e)
            self.status_cache[provider_id] = status
            return status

        if not provider.is_configured():
            status.error = NOT_CONFIGURED_ERROR
            self.status_cache[provider_id] = status
            return status

        self.status_cache[provider_id] = ProviderStatus(
            provider=provider_id,
            health=HealthState.PROBING,
            last_checked=checked_at,
        )

        start_time = time.perf_counter()
        try:
            response = await provider.send(PROBE_MESSAGES, PROBE_OPTIONS)
            elapsed_ms = int((time.perf_counter() - start_time) * 1000)

            if response:
                status.is_available = True
                status.is_healthy = True
                status.health = HealthState.HEALTHY
                status.response_time_ms = elapsed_ms
                logger.info(
                    f"Provider {provider_id} is healthy",
                    provider=provider_id,
                    response_time_ms=elapsed_ms
                )
            else:
                status.error = "Empty response received"
        except Exception as e:
            status.error = str(e) or "Connection test failed"
            status.response_time_ms = int((time.perf_counter() - start_time) * 1000)
            logger.warning(
                f"Provider {provider_id} health check failed",
                provider=provider_id,
                error=status.error
            )

        self.status_cache[provider_id] = status
        return status

    async def test_all(self, provider_ids: Optional[List[str]] = None) -> List[ProviderStatus]:
        """
        Probe several providers concurrently.

        Every probe runs to completion regardless of the others.

        Args:
            provider_ids: Providers to probe (default: the primary providers)

        Returns:
            One status per provider, in input order
        """
        if provider_ids is None:
            provider_ids = self.registry.primary_ids()

        logger.info(f"Checking health of {len(provider_ids)} providers")

        results = await asyncio.gather(
            *(self.test_connection(pid) for pid in provider_ids),
            return_exceptions=True
        )

        statuses = []
        for provider_id, result in zip(provider_ids, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Health probe crashed",
                    provider=provider_id,
                    error=str(result)
                )
                result = ProviderStatus(
                    provider=provider_id,
                    health=HealthState.UNHEALTHY,
                    last_checked=_now(),
                    error="Test failed",
                )
            statuses.append(result)
        return statuses
