"""
Comparison engine tests.
"""
import pytest
from sqlalchemy import func, select

from sermon_ai.models.comparison import ComparisonRecord
from sermon_ai.providers.errors import (
    IncompleteComparison,
    ProviderUnreachable,
    UnknownProvider,
)
from sermon_ai.services.comparison import (
    ComparisonEngine,
    FAILED_PLACEHOLDER,
    build_comparison_messages,
)


@pytest.fixture
def engine(registry, session_factory):
    return ComparisonEngine(registry, ["megallm", "openrouter"], session_factory)


async def count_records(session_factory):
    async with session_factory() as session:
        return (await session.execute(
            select(func.count()).select_from(ComparisonRecord)
        )).scalar_one()


class TestComparisonPrompt:
    """Shared prompt construction."""

    def test_english(self):
        system, user = build_comparison_messages("commentary", "John 3:16", "English")
        assert system.content == "You are a helpful biblical research assistant."
        assert user.content == (
            'Provide a brief analysis of "John 3:16" for commentary.\nOutput in English.'
        )

    def test_other_language(self):
        _, user = build_comparison_messages("word_study", "agape", "Tamil")
        assert user.content.endswith("Output ALL user-facing text content in Tamil language.")

    def test_requires_two_providers(self, registry):
        with pytest.raises(ValueError):
            ComparisonEngine(registry, ["megallm"])

    def test_rejects_undeclared_provider(self, registry):
        with pytest.raises(UnknownProvider):
            ComparisonEngine(registry, ["megallm", "claude"])


@pytest.mark.asyncio
class TestCompare:
    """Live side-by-side runs."""

    async def test_both_sides_succeed(self, engine, megallm, openrouter):
        outcome = await engine.compare("commentary", "John 3:16")

        assert outcome.sides["megallm"].content == "MegaLLM says hello"
        assert outcome.sides["openrouter"].content == "OpenRouter says hello"
        assert all(side.success for side in outcome.sides.values())
        assert megallm.calls[0]["options"].max_tokens == 500
        assert megallm.calls[0]["messages"] == openrouter.calls[0]["messages"]

    async def test_one_side_failing_keeps_the_other(self, engine, openrouter):
        openrouter.error = ProviderUnreachable("openrouter", "OpenRouter unreachable")

        outcome = await engine.compare("commentary", "Romans 8")

        assert outcome.sides["megallm"].success is True
        assert outcome.sides["megallm"].content == "MegaLLM says hello"
        failed = outcome.sides["openrouter"]
        assert failed.success is False
        assert failed.content == FAILED_PLACEHOLDER
        assert failed.error == "OpenRouter unreachable"
        assert failed.response_time_ms is not None

    async def test_no_failover_between_sides(self, engine, megallm, openrouter):
        megallm.error = ProviderUnreachable("megallm", "down")
        openrouter.error = ProviderUnreachable("openrouter", "down")

        outcome = await engine.compare("commentary", "Romans 8")

        assert len(megallm.calls) == 1
        assert len(openrouter.calls) == 1
        assert all(not side.success for side in outcome.sides.values())

    async def test_blank_error_gets_default(self, engine, megallm):
        megallm.error = RuntimeError()
        outcome = await engine.compare("commentary", "Romans 8")
        assert outcome.sides["megallm"].error == "Request failed"


@pytest.mark.asyncio
class TestRecordPreference:
    """Persisting the user's choice."""

    async def test_persists_exactly_one_row(self, engine, session_factory, openrouter):
        openrouter.error = ProviderUnreachable("openrouter", "OpenRouter unreachable")
        outcome = await engine.compare("commentary", "Romans 8", "Tamil")

        record = await engine.record_preference(outcome, "megallm", "user-1")

        assert await count_records(session_factory) == 1
        assert record.id is not None
        assert record.preferred_provider == "megallm"
        assert record.language == "Tamil"
        assert record.provider_a == "megallm"
        assert record.provider_b == "openrouter"
        assert record.response_b == FAILED_PLACEHOLDER
        assert record.metrics_a["success"] is True
        assert record.metrics_b["error"] == "OpenRouter unreachable"
        assert record.metrics_b["response_time_ms"] is not None
        assert "content" not in record.metrics_a

    async def test_missing_side_is_rejected(self, engine, session_factory):
        outcome = await engine.compare("commentary", "Romans 8")
        del outcome.sides["openrouter"]

        with pytest.raises(IncompleteComparison):
            await engine.record_preference(outcome, "megallm", "user-1")
        assert await count_records(session_factory) == 0

    async def test_choice_must_be_compared_provider(self, engine, session_factory):
        outcome = await engine.compare("commentary", "Romans 8")

        with pytest.raises(UnknownProvider):
            await engine.record_preference(outcome, "gemini", "user-1")
        assert await count_records(session_factory) == 0
