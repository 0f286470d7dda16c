"""
Provider registry: the static table of declared providers.
"""
from typing import Dict, List, Optional

from sermon_ai.api.schemas import ProviderInfo
from sermon_ai.core.config import Settings
from sermon_ai.core.logger import get_logger
from sermon_ai.providers.base import BaseProvider, ProviderConfig
from sermon_ai.providers.errors import UnknownProvider
from sermon_ai.providers.gemini import GeminiProvider
from sermon_ai.providers.megallm import MegaLLMProvider
from sermon_ai.providers.openrouter import OpenRouterProvider

logger = get_logger(__name__)


class ProviderRegistry:
    """
    Ordered mapping of provider id to provider client.

    Registration order is priority order. Primary providers form the
    failover pair; the rest are optional and only reached through
    health-aware selection or an explicit request.
    """

    def __init__(self):
        self._providers: Dict[str, BaseProvider] = {}
        self._primary: List[str] = []

    def register(self, provider: BaseProvider, primary: bool = False) -> None:
        """
        Register a provider client.

        Args:
            provider: Client instance
            primary: Whether the provider belongs to the failover pair
        """
        self._providers[provider.provider_id] = provider
        if primary and provider.provider_id not in self._primary:
            self._primary.append(provider.provider_id)
        logger.info(
            "Registered provider",
            provider=provider.provider_id,
            primary=primary,
            configured=provider.is_configured()
        )

    def get(self, provider_id: str) -> BaseProvider:
        """
        Look up a provider client.

        Raises:
            UnknownProvider: If the id is not declared
        """
        try:
            return self._providers[provider_id]
        except KeyError:
            raise UnknownProvider(provider_id) from None

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._providers

    def ids(self) -> List[str]:
        """All declared provider ids in priority order."""
        return list(self._providers)

    def primary_ids(self) -> List[str]:
        return list(self._primary)

    def is_configured(self, provider_id: str) -> bool:
        return self.get(provider_id).is_configured()

    def failover_partner(self, provider_id: str) -> Optional[str]:
        """
        Provider to try after ``provider_id`` fails.

        This is a two-provider swap: the other primary provider, or the
        first primary when ``provider_id`` is not primary. Returns None when
        that candidate is missing or not configured.
        """
        candidates = [pid for pid in self._primary if pid != provider_id]
        if not candidates:
            return None
        partner = candidates[0]
        if not self._providers[partner].is_configured():
            return None
        return partner

    def describe(self) -> List[ProviderInfo]:
        """Static description of every declared provider."""
        return [
            ProviderInfo(
                id=pid,
                name=provider.display_name,
                is_configured=provider.is_configured(),
                capabilities=sorted(provider.capabilities),
                primary=pid in self._primary,
            )
            for pid, provider in self._providers.items()
        ]

    async def close(self) -> None:
        """Close every provider's HTTP client."""
        for provider in self._providers.values():
            await provider.close()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderRegistry":
        """
        Build the default registry from credentials read at startup.

        Returns:
            Registry with MegaLLM and OpenRouter as primaries and Gemini
            as an optional provider
        """
        registry = cls()
        registry.register(
            MegaLLMProvider(ProviderConfig(
                api_key=settings.megallm_api_key,
                default_model=settings.megallm_model,
                base_url=settings.megallm_base_url,
                timeout=settings.provider_timeout,
            )),
            primary=True
        )
        registry.register(
            OpenRouterProvider(
                ProviderConfig(
                    api_key=settings.openrouter_api_key,
                    default_model=settings.openrouter_model,
                    base_url=settings.openrouter_base_url,
                    timeout=settings.provider_timeout,
                ),
                referer=settings.openrouter_referer
            ),
            primary=True
        )
        registry.register(
            GeminiProvider(ProviderConfig(
                api_key=settings.gemini_api_key,
                default_model=settings.gemini_model,
                base_url=settings.gemini_base_url,
                timeout=settings.provider_timeout,
            ))
        )
        return registry
