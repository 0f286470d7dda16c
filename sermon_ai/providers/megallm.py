"""
MegaLLM provider.
"""
from sermon_ai.providers.openai import OpenAICompatibleProvider


class MegaLLMProvider(OpenAICompatibleProvider):
    """MegaLLM hosted models behind an OpenAI-compatible API."""

    provider_id = "megallm"
    display_name = "MegaLLM"

    @property
    def default_base_url(self) -> str:
        return "https://ai.megallm.io/v1"
