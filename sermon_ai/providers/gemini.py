"""
Google Gemini provider implementation.
"""
import re
from typing import Dict, Any, List, Optional
import httpx

from sermon_ai.providers.base import (
    BaseProvider,
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
)
from sermon_ai.providers.errors import ProviderEmptyResponse, ProviderOther
from sermon_ai.api.schemas import ChatMessage, MessageRole, SendOptions
from sermon_ai.core.logger import get_logger

logger = get_logger(__name__)

_FENCE_OPEN = re.compile(r"^```(?:markdown)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```$")


def strip_code_fence(text: str) -> str:
    """Remove a Markdown code block wrapped around the whole reply."""
    if not text:
        return ""
    return _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text)).strip()


class GeminiProvider(BaseProvider):
    """
    Google Gemini API provider implementation.

    Declared as an optional provider: it takes part in health-aware
    selection when configured but not in the primary failover pair.
    """

    provider_id = "gemini"
    display_name = "Gemini"
    api_version = "v1beta"

    @property
    def default_base_url(self) -> str:
        return "https://generativelanguage.googleapis.com"

    async def send(
        self,
        messages: List[ChatMessage],
        options: Optional[SendOptions] = None
    ) -> str:
        """
        Send a generateContent request to the Gemini API.

        Args:
            messages: Chat messages
            options: Generation options

        Returns:
            Reply text with any wrapping code fence removed
        """
        self.ensure_configured()
        options = options or SendOptions()
        model_name = options.model or self.config.default_model
        url = f"{self.base_url}/{self.api_version}/models/{model_name}:generateContent"

        client = await self.get_client()
        try:
            response = await client.post(
                url,
                json=self._convert_to_gemini_format(messages, options),
                params={"key": self.config.api_key},
                headers=self.prepare_headers()
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            error = self.classify_error(e)
            logger.error("Gemini request failed", error=error.message)
            raise error from e

        content = strip_code_fence(self._extract_text(data))
        if not content:
            raise ProviderEmptyResponse(self.provider_id)
        return content

    def _convert_to_gemini_format(
        self,
        messages: List[ChatMessage],
        options: SendOptions
    ) -> Dict[str, Any]:
        """
        Convert chat messages to a Gemini request body.

        Gemini takes the system prompt separately and calls the assistant
        role ``model``.
        """
        contents = []
        system_instruction = None

        for msg in messages:
            if msg.role == MessageRole.SYSTEM:
                system_instruction = msg.content
            else:
                role = "user" if msg.role == MessageRole.USER else "model"
                contents.append({
                    "role": role,
                    "parts": [{"text": msg.content}]
                })

        gemini_request: Dict[str, Any] = {"contents": contents}

        if system_instruction:
            gemini_request["systemInstruction"] = {
                "parts": [{"text": system_instruction}]
            }

        generation_config: Dict[str, Any] = {
            "temperature": (
                options.temperature
                if options.temperature is not None else DEFAULT_TEMPERATURE
            ),
            "maxOutputTokens": options.max_tokens or DEFAULT_MAX_TOKENS,
        }
        if options.response_format and options.response_format.get("type") == "json_object":
            generation_config["responseMimeType"] = "application/json"

        gemini_request["generationConfig"] = generation_config
        return gemini_request

    def _extract_text(self, response: Any) -> str:
        """Concatenate the text parts of the first candidate."""
        if not isinstance(response, dict):
            raise ProviderOther(self.provider_id, "Malformed response payload")

        candidates = response.get("candidates") or []
        if not candidates:
            return ""

        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts)
