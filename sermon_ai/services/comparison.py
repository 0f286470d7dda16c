"""
Live side-by-side provider comparison with recorded user preference.
"""
import asyncio
import time
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from sermon_ai.api.schemas import (
    ChatMessage,
    ComparisonOutcome,
    ComparisonRecordResponse,
    ComparisonSide,
    MessageRole,
    SendOptions,
)
from sermon_ai.core.database import AsyncSessionLocal
from sermon_ai.core.logger import get_logger
from sermon_ai.models.comparison import ComparisonRecord
from sermon_ai.providers.errors import IncompleteComparison, UnknownProvider
from sermon_ai.providers.registry import ProviderRegistry
from sermon_ai.services.metrics import to_naive_utc

logger = get_logger(__name__)

FAILED_PLACEHOLDER = "Failed to generate"
COMPARISON_OPTIONS = SendOptions(max_tokens=500)


def build_comparison_messages(feature: str, query: str, language: str) -> List[ChatMessage]:
    """Shared prompt sent to both sides of a comparison."""
    if language.lower() == "english":
        language_instruction = "Output in English."
    else:
        language_instruction = f"Output ALL user-facing text content in {language} language."

    return [
        ChatMessage(
            role=MessageRole.SYSTEM,
            content="You are a helpful biblical research assistant."
        ),
        ChatMessage(
            role=MessageRole.USER,
            content=f'Provide a brief analysis of "{query}" for {feature}.\n{language_instruction}'
        ),
    ]


class ComparisonEngine:
    """
    Sends one prompt to two fixed providers at once.

    Comparisons call the provider clients directly: no health check, no
    failover, and one side's failure never affects the other.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        providers: Optional[List[str]] = None,
        session_factory: async_sessionmaker = AsyncSessionLocal
    ):
        self.registry = registry
        self.providers = list(providers or ["megallm", "openrouter"])
        if len(self.providers) != 2:
            raise ValueError("A comparison needs exactly two providers")
        for provider_id in self.providers:
            self.registry.get(provider_id)
        self.session_factory = session_factory

    async def _run_side(self, provider_id: str, messages: List[ChatMessage]) -> ComparisonSide:
        provider = self.registry.get(provider_id)
        start_time = time.perf_counter()
        try:
            content = await provider.send(messages, COMPARISON_OPTIONS)
        except Exception as e:
            logger.warning(
                "Comparison side failed",
                provider=provider_id,
                error=str(e)
            )
            return ComparisonSide(
                content=FAILED_PLACEHOLDER,
                success=False,
                error=str(e) or "Request failed",
                response_time_ms=int((time.perf_counter() - start_time) * 1000),
            )
        return ComparisonSide(
            content=content,
            success=True,
            response_time_ms=int((time.perf_counter() - start_time) * 1000),
        )

    async def compare(
        self,
        feature: str,
        query: str,
        language: str = "English"
    ) -> ComparisonOutcome:
        """
        Run a live comparison.

        Args:
            feature: Use case being compared (e.g. "commentary")
            query: Scripture or theme
            language: Output language

        Returns:
            Outcome holding a side for each provider; failed sides carry
            placeholder content
        """
        messages = build_comparison_messages(feature, query, language)

        results = await asyncio.gather(
            *(self._run_side(pid, messages) for pid in self.providers),
            return_exceptions=True
        )

        sides = {}
        for provider_id, result in zip(self.providers, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Comparison side crashed",
                    provider=provider_id,
                    feature=feature,
                    error=str(result)
                )
                result = ComparisonSide(
                    content=FAILED_PLACEHOLDER,
                    success=False,
                    error=str(result) or "Request failed",
                )
            sides[provider_id] = result

        return ComparisonOutcome(
            feature=feature,
            query=query,
            language=language,
            sides=sides,
            compared_at=datetime.now(timezone.utc),
        )

    async def record_preference(
        self,
        outcome: ComparisonOutcome,
        chosen_provider_id: str,
        user_id: str
    ) -> ComparisonRecordResponse:
        """
        Persist a comparison together with the user's choice.

        Raises:
            IncompleteComparison: If either provider's side is missing
            UnknownProvider: If the choice is not one of the compared providers
        """
        missing = [pid for pid in self.providers if pid not in outcome.sides]
        if missing:
            raise IncompleteComparison(
                f"Comparison is missing results for: {', '.join(missing)}"
            )
        if chosen_provider_id not in self.providers:
            raise UnknownProvider(chosen_provider_id)

        provider_a, provider_b = self.providers
        side_a = outcome.sides[provider_a]
        side_b = outcome.sides[provider_b]

        record = ComparisonRecord(
            user_id=user_id,
            feature=outcome.feature,
            query=outcome.query,
            language=outcome.language,
            provider_a=provider_a,
            provider_b=provider_b,
            response_a=side_a.content,
            response_b=side_b.content,
            metrics_a=side_a.model_dump(exclude={"content"}),
            metrics_b=side_b.model_dump(exclude={"content"}),
            preferred_provider=chosen_provider_id,
            compared_at=to_naive_utc(None),
        )

        async with self.session_factory() as session:
            try:
                session.add(record)
                await session.commit()
                await session.refresh(record)
            except Exception as e:
                await session.rollback()
                logger.error(
                    "Failed to save comparison result",
                    feature=outcome.feature,
                    error=str(e)
                )
                raise

        logger.info(
            "Comparison preference recorded",
            feature=outcome.feature,
            preferred=chosen_provider_id
        )
        return ComparisonRecordResponse.model_validate(record)
