"""
Pytest configuration and shared fixtures.
"""
import os

# Keep the import-time engine and logger off the filesystem
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("REDIS_ENABLED", "false")

from typing import Any, Dict, List, Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

import sermon_ai.models  # noqa: E402,F401
from sermon_ai.api.schemas import ChatMessage, MessageRole  # noqa: E402
from sermon_ai.core.database import Base  # noqa: E402
from sermon_ai.providers.base import (  # noqa: E402
    BaseProvider,
    CAPABILITY_STREAMING,
    CAPABILITY_TEXT,
    ProviderConfig,
    emit_chunk,
)
from sermon_ai.providers.registry import ProviderRegistry  # noqa: E402
from sermon_ai.services.metrics import MetricsRecorder  # noqa: E402
from sermon_ai.services.orchestrator import Orchestrator  # noqa: E402

VALID_KEY = "sk-test-0123456789abcdef"


class FakeProvider(BaseProvider):
    """In-memory provider that replies or fails as instructed."""

    capabilities = frozenset({CAPABILITY_TEXT, CAPABILITY_STREAMING})

    def __init__(
        self,
        provider_id: str,
        reply: str = "OK",
        error: Optional[Exception] = None,
        api_key: Optional[str] = VALID_KEY,
        chunks: Optional[List[str]] = None
    ):
        super().__init__(ProviderConfig(api_key=api_key, default_model="fake-model"))
        self.provider_id = provider_id
        self.display_name = provider_id.title()
        self.reply = reply
        self.error = error
        self.chunks = chunks
        self.calls: List[Dict[str, Any]] = []

    @property
    def default_base_url(self) -> str:
        return "http://fake.invalid"

    async def send(self, messages, options=None) -> str:
        self.ensure_configured()
        self.calls.append({"messages": messages, "options": options})
        if self.error is not None:
            raise self.error
        return self.reply

    async def stream_send(self, messages, on_chunk, options=None) -> str:
        self.ensure_configured()
        self.calls.append({"messages": messages, "options": options, "stream": True})
        if self.error is not None:
            raise self.error
        chunks = self.chunks or [self.reply]
        for chunk in chunks:
            await emit_chunk(on_chunk, chunk)
        return "".join(chunks)


class FakeCache:
    """Dict-backed stand-in for RedisCache."""

    def __init__(self):
        self.store: Dict[str, Any] = {}
        self.writable = True

    async def get(self, key: str) -> Optional[Any]:
        return self.store.get(key)

    async def set(self, key: str, value: Any) -> bool:
        if not self.writable:
            return False
        self.store[key] = value
        return True


@pytest.fixture
def messages() -> List[ChatMessage]:
    return [
        ChatMessage(role=MessageRole.SYSTEM, content="You are a helpful research assistant."),
        ChatMessage(role=MessageRole.USER, content="Summarize John 3:16."),
    ]


@pytest_asyncio.fixture
async def test_engine():
    """In-memory SQLite shared across sessions through a single connection."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def megallm() -> FakeProvider:
    return FakeProvider("megallm", reply="MegaLLM says hello")


@pytest.fixture
def openrouter() -> FakeProvider:
    return FakeProvider("openrouter", reply="OpenRouter says hello")


@pytest.fixture
def gemini() -> FakeProvider:
    return FakeProvider("gemini", reply="Gemini says hello", api_key=None)


@pytest.fixture
def registry(megallm, openrouter, gemini) -> ProviderRegistry:
    registry = ProviderRegistry()
    registry.register(megallm, primary=True)
    registry.register(openrouter, primary=True)
    registry.register(gemini)
    return registry


@pytest.fixture
def cache() -> FakeCache:
    return FakeCache()


@pytest_asyncio.fixture
async def recorder(session_factory):
    recorder = MetricsRecorder(session_factory)
    yield recorder
    await recorder.drain()


@pytest.fixture
def orchestrator(registry, recorder, cache) -> Orchestrator:
    return Orchestrator(registry=registry, recorder=recorder, cache=cache)
