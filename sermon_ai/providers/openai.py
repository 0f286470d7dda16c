"""
OpenAI-compatible chat completions provider.

MegaLLM and OpenRouter both expose this API shape.
"""
from typing import Dict, Any, List, Optional
import json
import httpx

from sermon_ai.providers.base import (
    BaseProvider,
    CAPABILITY_STREAMING,
    CAPABILITY_TEXT,
    ChunkCallback,
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    emit_chunk,
)
from sermon_ai.providers.errors import ProviderEmptyResponse, ProviderOther
from sermon_ai.api.schemas import ChatMessage, SendOptions
from sermon_ai.core.logger import get_logger

logger = get_logger(__name__)


class OpenAICompatibleProvider(BaseProvider):
    """Provider speaking the ``/chat/completions`` protocol."""

    capabilities = frozenset({CAPABILITY_TEXT, CAPABILITY_STREAMING})

    def prepare_headers(self) -> Dict[str, str]:
        """Add bearer authentication."""
        headers = super().prepare_headers()
        headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    def build_payload(
        self,
        messages: List[ChatMessage],
        options: Optional[SendOptions],
        stream: bool = False
    ) -> Dict[str, Any]:
        """Build the request body, filling provider defaults."""
        options = options or SendOptions()
        payload: Dict[str, Any] = {
            "model": options.model or self.config.default_model,
            "messages": [
                {"role": msg.role.value, "content": msg.content}
                for msg in messages
            ],
            "temperature": (
                options.temperature
                if options.temperature is not None else DEFAULT_TEMPERATURE
            ),
            "max_tokens": options.max_tokens or DEFAULT_MAX_TOKENS,
        }
        if options.response_format:
            payload["response_format"] = options.response_format
        if stream:
            payload["stream"] = True
        return payload

    async def send(
        self,
        messages: List[ChatMessage],
        options: Optional[SendOptions] = None
    ) -> str:
        """
        Send chat completion request.

        Args:
            messages: Chat messages
            options: Generation options

        Returns:
            Content of the first choice
        """
        self.ensure_configured()
        payload = self.build_payload(messages, options)
        client = await self.get_client()
        url = f"{self.base_url}/chat/completions"

        logger.debug(
            "Sending chat completion request",
            provider=self.provider_id,
            model=payload["model"]
        )

        try:
            response = await client.post(url, json=payload, headers=self.prepare_headers())
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            error = self.classify_error(e)
            logger.error(
                f"{self.display_name} request failed",
                provider=self.provider_id,
                error=error.message
            )
            raise error from e

        content = self._extract_content(data)
        if not content:
            raise ProviderEmptyResponse(self.provider_id)
        return content

    async def stream_send(
        self,
        messages: List[ChatMessage],
        on_chunk: ChunkCallback,
        options: Optional[SendOptions] = None
    ) -> str:
        """
        Send streaming chat completion request.

        Args:
            messages: Chat messages
            on_chunk: Callback receiving each text delta
            options: Generation options

        Returns:
            Full content, the concatenation of every delta
        """
        self.ensure_configured()
        payload = self.build_payload(messages, options, stream=True)
        client = await self.get_client()
        url = f"{self.base_url}/chat/completions"
        parts: List[str] = []

        try:
            async with client.stream(
                "POST", url, json=payload, headers=self.prepare_headers()
            ) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    # Skip empty lines and comments
                    if not line or line.startswith(":"):
                        continue
                    if not line.startswith("data: "):
                        continue

                    data = line[6:].strip()
                    if data == "[DONE]":
                        break

                    delta = self._extract_delta(data)
                    if delta:
                        parts.append(delta)
                        await emit_chunk(on_chunk, delta)
        except httpx.HTTPError as e:
            error = self.classify_error(e)
            logger.error(
                f"{self.display_name} streaming failed",
                provider=self.provider_id,
                error=error.message
            )
            raise error from e

        content = "".join(parts)
        if not content:
            raise ProviderEmptyResponse(self.provider_id)
        return content

    def _extract_content(self, data: Any) -> str:
        try:
            choices = data.get("choices") or []
            if not choices:
                return ""
            return (choices[0].get("message") or {}).get("content") or ""
        except AttributeError as e:
            raise ProviderOther(self.provider_id, "Malformed response payload") from e

    def _extract_delta(self, data: str) -> str:
        try:
            parsed = json.loads(data)
        except json.JSONDecodeError:
            logger.warning("Failed to parse stream chunk", provider=self.provider_id)
            return ""
        if not isinstance(parsed, dict):
            raise ProviderOther(self.provider_id, "Malformed stream chunk")
        choices = parsed.get("choices") or []
        if not choices:
            return ""
        return (choices[0].get("delta") or {}).get("content") or ""
