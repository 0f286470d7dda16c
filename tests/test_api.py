"""
API route tests.
"""
import json

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from sermon_ai.api.dependencies import AIServices
from sermon_ai.main import create_app
from sermon_ai.providers.errors import ProviderUnreachable
from sermon_ai.services.comparison import ComparisonEngine
from sermon_ai.services.metrics import MetricsAggregator

DISPATCH_BODY = {
    "messages": [
        {"role": "system", "content": "You are a helpful research assistant."},
        {"role": "user", "content": "Outline Psalm 23."},
    ],
    "feature": "sermon_outline",
    "query": "Psalm 23",
}


@pytest.fixture
def services(orchestrator, registry, session_factory) -> AIServices:
    return AIServices(
        orchestrator=orchestrator,
        aggregator=MetricsAggregator(session_factory, ["megallm", "openrouter"]),
        comparisons=ComparisonEngine(registry, ["megallm", "openrouter"], session_factory),
    )


@pytest_asyncio.fixture
async def test_client(services):
    """HTTP client bound to an app using the in-memory services."""
    transport = ASGITransport(app=create_app(services))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.mark.asyncio
class TestHealthEndpoint:
    """Liveness endpoint tests."""

    async def test_health_check(self, test_client: AsyncClient):
        response = await test_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "X-Request-ID" in response.headers

    async def test_healthz_alias(self, test_client: AsyncClient):
        response = await test_client.get("/healthz")
        assert response.status_code == 200


@pytest.mark.asyncio
class TestProviderEndpoints:
    """Registry, selection and probe endpoints."""

    async def test_list_providers(self, test_client: AsyncClient):
        response = await test_client.get("/api/ai/providers")
        assert response.status_code == 200
        data = response.json()
        assert [p["id"] for p in data["providers"]] == ["megallm", "openrouter", "gemini"]
        assert data["current"] == "megallm"
        assert data["statuses"] == {}

    async def test_set_and_get_current(self, test_client: AsyncClient):
        response = await test_client.put(
            "/api/ai/providers/current", json={"provider": "openrouter"}
        )
        assert response.status_code == 200

        response = await test_client.get("/api/ai/providers/current")
        assert response.json() == {"provider": "openrouter"}

    async def test_set_unknown_provider(self, test_client: AsyncClient):
        response = await test_client.put(
            "/api/ai/providers/current", json={"provider": "claude"}
        )
        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "unknown_provider"
        assert error["details"] == {"provider": "claude"}

    async def test_probe_single_provider(self, test_client: AsyncClient):
        response = await test_client.post("/api/ai/providers/gemini/test")
        assert response.status_code == 200
        data = response.json()
        assert data["is_healthy"] is False
        assert data["error"] == "API key not configured"

    async def test_probe_unknown_provider(self, test_client: AsyncClient):
        response = await test_client.post("/api/ai/providers/claude/test")
        assert response.status_code == 404

    async def test_probe_all(self, test_client: AsyncClient, openrouter):
        openrouter.error = ProviderUnreachable("openrouter", "down")

        response = await test_client.post("/api/ai/providers/test")

        assert response.status_code == 200
        data = response.json()
        assert [s["provider"] for s in data] == ["megallm", "openrouter"]
        assert [s["is_healthy"] for s in data] == [True, False]

        listing = (await test_client.get("/api/ai/providers")).json()
        assert listing["statuses"]["megallm"]["health"] == "healthy"

    async def test_healthy_provider(self, test_client: AsyncClient, megallm):
        megallm.error = ProviderUnreachable("megallm", "down")
        response = await test_client.get("/api/ai/providers/healthy")
        assert response.json() == {"provider": "openrouter"}


@pytest.mark.asyncio
class TestDispatchEndpoint:
    """Orchestrated dispatch endpoint."""

    async def test_dispatch(self, test_client: AsyncClient):
        response = await test_client.post("/api/ai/dispatch", json=DISPATCH_BODY)
        assert response.status_code == 200
        data = response.json()
        assert data["content"] == "MegaLLM says hello"
        assert data["provider"] == "megallm"
        assert data["metrics"]["success"] is True

    async def test_dispatch_failover(self, test_client: AsyncClient, megallm):
        megallm.error = ProviderUnreachable("megallm", "down")
        response = await test_client.post("/api/ai/dispatch", json=DISPATCH_BODY)
        assert response.status_code == 200
        assert response.json()["provider"] == "openrouter"

    async def test_dispatch_all_failed(self, test_client: AsyncClient, megallm, openrouter):
        megallm.error = ProviderUnreachable("megallm", "MegaLLM unreachable")
        openrouter.error = ProviderUnreachable("openrouter", "OpenRouter unreachable")

        response = await test_client.post("/api/ai/dispatch", json=DISPATCH_BODY)

        assert response.status_code == 502
        error = response.json()["error"]
        assert error["code"] == "aggregate_failure"
        assert error["message"] == "OpenRouter unreachable"
        assert len(error["details"]["attempts"]) == 2

    async def test_dispatch_unknown_explicit_provider(self, test_client: AsyncClient):
        response = await test_client.post(
            "/api/ai/dispatch", json={**DISPATCH_BODY, "provider": "claude"}
        )
        assert response.status_code == 404

    async def test_dispatch_requires_messages(self, test_client: AsyncClient):
        response = await test_client.post(
            "/api/ai/dispatch", json={**DISPATCH_BODY, "messages": []}
        )
        assert response.status_code == 422

    async def test_stream(self, test_client: AsyncClient, megallm):
        megallm.chunks = ["The Lord ", "is my shepherd"]

        response = await test_client.post("/api/ai/dispatch/stream", json=DISPATCH_BODY)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = [
            line[6:] for line in response.text.splitlines() if line.startswith("data: ")
        ]
        assert events[-1] == "[DONE]"
        payloads = [json.loads(event) for event in events[:-1]]
        assert [p["content"] for p in payloads[:-1]] == ["The Lord ", "is my shepherd"]
        assert payloads[-1]["done"] is True
        assert payloads[-1]["provider"] == "megallm"

    async def test_stream_failure_event(self, test_client: AsyncClient, megallm):
        megallm.error = ProviderUnreachable("megallm", "MegaLLM unreachable")

        response = await test_client.post("/api/ai/dispatch/stream", json=DISPATCH_BODY)

        events = [
            line[6:] for line in response.text.splitlines() if line.startswith("data: ")
        ]
        assert json.loads(events[0])["error"]["error"] == "MegaLLM unreachable"
        assert events[-1] == "[DONE]"


@pytest.mark.asyncio
class TestMetricsEndpoints:
    """Statistics, report and comparison endpoints."""

    async def test_metrics_for_user(self, test_client: AsyncClient, recorder):
        headers = {"X-User-Id": "pastor-1"}
        await test_client.post("/api/ai/dispatch", json=DISPATCH_BODY, headers=headers)
        await recorder.drain()

        response = await test_client.get("/api/ai/metrics", headers=headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total_requests"] == 1
        assert data["success_rate_percent"] == 100.0
        assert data["by_feature"]["sermon_outline"]["total_requests"] == 1
        assert data["window_days"] == 7

        anonymous = (await test_client.get("/api/ai/metrics")).json()
        assert anonymous["total_requests"] == 0

    async def test_metrics_window_validation(self, test_client: AsyncClient):
        response = await test_client.get("/api/ai/metrics", params={"days": 0})
        assert response.status_code == 422

    async def test_compare_and_record_preference(self, test_client: AsyncClient, openrouter):
        openrouter.error = ProviderUnreachable("openrouter", "down")
        headers = {"X-User-Id": "pastor-1"}

        response = await test_client.post(
            "/api/ai/comparisons",
            json={"feature": "commentary", "query": "John 3:16"},
        )
        assert response.status_code == 200
        outcome = response.json()
        assert outcome["sides"]["openrouter"]["content"] == "Failed to generate"

        response = await test_client.post(
            "/api/ai/comparisons/preference",
            json={"outcome": outcome, "preferred_provider": "megallm"},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["preferred_provider"] == "megallm"

        listed = (await test_client.get("/api/ai/comparisons", headers=headers)).json()
        assert len(listed) == 1

        report = (await test_client.get("/api/ai/metrics/report", headers=headers)).json()
        assert report["preference"]["percentages"]["megallm"] == 100.0

    async def test_preference_for_incomplete_comparison(self, test_client: AsyncClient):
        outcome = (await test_client.post(
            "/api/ai/comparisons",
            json={"feature": "commentary", "query": "John 3:16"},
        )).json()
        del outcome["sides"]["openrouter"]

        response = await test_client.post(
            "/api/ai/comparisons/preference",
            json={"outcome": outcome, "preferred_provider": "megallm"},
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "incomplete_comparison"
