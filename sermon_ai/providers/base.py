"""
Base provider abstract class and configuration.
"""
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, FrozenSet, List, Optional, Union
from dataclasses import dataclass, field
import httpx

from sermon_ai.api.schemas import ChatMessage, SendOptions
from sermon_ai.providers.errors import (
    ProviderAuthFailure,
    ProviderError,
    ProviderOther,
    ProviderUnconfigured,
    ProviderUnreachable,
)
from sermon_ai.core.logger import get_logger

logger = get_logger(__name__)

# Keys at or below this length are treated as placeholders
MIN_API_KEY_LENGTH = 10

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 4096

CAPABILITY_TEXT = "text"
CAPABILITY_STREAMING = "streaming"

ChunkCallback = Callable[[str], Union[None, Awaitable[None]]]


@dataclass
class ProviderConfig:
    """Provider configuration."""

    api_key: Optional[str]
    default_model: str
    base_url: Optional[str] = None
    timeout: Optional[float] = None
    extra_headers: Dict[str, str] = field(default_factory=dict)

    def get_effective_base_url(self, default_url: str) -> str:
        """Get effective base URL (use config or default)."""
        return (self.base_url or default_url).rstrip("/")


class BaseProvider(ABC):
    """Abstract base class for LLM providers."""

    provider_id: str = ""
    display_name: str = ""
    capabilities: FrozenSet[str] = frozenset({CAPABILITY_TEXT})

    def __init__(
        self,
        config: ProviderConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize provider.

        Args:
            config: Provider configuration
            transport: Optional httpx transport (used by tests)
        """
        self.config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    @abstractmethod
    def default_base_url(self) -> str:
        """Default base URL for the provider."""
        pass

    @property
    def base_url(self) -> str:
        """Get effective base URL."""
        return self.config.get_effective_base_url(self.default_base_url)

    @property
    def supports_streaming(self) -> bool:
        return CAPABILITY_STREAMING in self.capabilities

    def is_configured(self) -> bool:
        """True when an API key is present and long enough to be real."""
        api_key = self.config.api_key
        return bool(api_key) and len(api_key) > MIN_API_KEY_LENGTH

    async def get_client(self) -> httpx.AsyncClient:
        """
        Get or create HTTP client with connection pooling.

        Returns:
            Async HTTP client
        """
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout),
                transport=self._transport,
                limits=httpx.Limits(
                    max_keepalive_connections=10,
                    max_connections=20,
                    keepalive_expiry=30.0
                )
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client and cleanup resources."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def ensure_configured(self) -> None:
        if not self.is_configured():
            raise ProviderUnconfigured(self.provider_id)

    @abstractmethod
    async def send(
        self,
        messages: List[ChatMessage],
        options: Optional[SendOptions] = None
    ) -> str:
        """
        Perform one request/response round trip.

        Args:
            messages: Ordered chat messages
            options: Generation options

        Returns:
            Reply content

        Raises:
            ProviderError: Classified failure
        """
        pass

    async def stream_send(
        self,
        messages: List[ChatMessage],
        on_chunk: ChunkCallback,
        options: Optional[SendOptions] = None
    ) -> str:
        """
        Stream a reply, invoking ``on_chunk`` for every text delta.

        Providers without streaming support deliver the full reply as a
        single chunk.

        Returns:
            Concatenation of all delivered chunks
        """
        content = await self.send(messages, options)
        await emit_chunk(on_chunk, content)
        return content

    def prepare_headers(self) -> Dict[str, str]:
        """
        Prepare common request headers.

        Returns:
            Headers dictionary
        """
        headers = {
            "Content-Type": "application/json",
            "User-Agent": "sermon-ai/1.0"
        }
        headers.update(self.config.extra_headers)
        return headers

    def classify_error(self, exc: Exception) -> ProviderError:
        """Map transport and HTTP errors onto the provider error taxonomy."""
        if isinstance(exc, ProviderError):
            return exc
        if isinstance(exc, httpx.HTTPStatusError):
            code = exc.response.status_code
            message = f"{self.display_name} API Error: {code}"
            if code in (401, 403):
                return ProviderAuthFailure(self.provider_id, message)
            return ProviderOther(self.provider_id, message, status_code=code)
        if isinstance(exc, httpx.TransportError):
            return ProviderUnreachable(
                self.provider_id,
                f"{self.display_name} unreachable: {exc}" if str(exc)
                else f"{self.display_name} unreachable"
            )
        return ProviderOther(self.provider_id, str(exc) or type(exc).__name__)

    async def __aenter__(self):
        """Async context manager entry."""
        await self.get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()


async def emit_chunk(on_chunk: ChunkCallback, chunk: str) -> None:
    """Deliver a chunk to a sync or async callback."""
    result = on_chunk(chunk)
    if result is not None:
        await result
