"""
OpenRouter provider.
"""
from typing import Dict

from sermon_ai.providers.openai import OpenAICompatibleProvider


class OpenRouterProvider(OpenAICompatibleProvider):
    """
    OpenRouter model gateway.

    OpenRouter asks callers to identify themselves through the
    ``HTTP-Referer`` and ``X-Title`` headers; both are optional.
    """

    provider_id = "openrouter"
    display_name = "OpenRouter"

    def __init__(self, config, transport=None, referer=None):
        super().__init__(config, transport=transport)
        self.referer = referer

    @property
    def default_base_url(self) -> str:
        return "https://openrouter.ai/api/v1"

    def prepare_headers(self) -> Dict[str, str]:
        headers = super().prepare_headers()
        if self.referer:
            headers["HTTP-Referer"] = self.referer
        headers["X-Title"] = "Sermon AI"
        return headers
