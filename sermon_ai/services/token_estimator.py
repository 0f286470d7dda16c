"""
Token estimation for metrics, since the send contract returns text only.
"""
import re
from typing import Iterable

from sermon_ai.api.schemas import ChatMessage

_LATIN = re.compile(r"[A-Za-z0-9\s.,;:!?'\"()\-]")


class TokenEstimator:
    """Estimate token usage from text."""

    @staticmethod
    def estimate_text_tokens(content: str) -> int:
        """
        Estimate tokens for a block of text.

        Rough estimation:
        - Latin script: ~4 chars = 1 token
        - Other scripts (e.g. Tamil, Greek, Hebrew): ~1.5 chars = 1 token

        Args:
            content: Text to estimate

        Returns:
            Estimated token count, 0 for empty text
        """
        if not content:
            return 0

        latin_chars = len(_LATIN.findall(content))
        other_chars = len(content) - latin_chars

        estimated_tokens = int((latin_chars / 4.0) + (other_chars / 1.5))
        return max(estimated_tokens, 1)

    @classmethod
    def estimate_messages_tokens(cls, messages: Iterable[ChatMessage]) -> int:
        """Estimate prompt tokens, with ~10 tokens of overhead per message."""
        return sum(
            cls.estimate_text_tokens(msg.content) + 10 for msg in messages
        )

    @classmethod
    def estimate_exchange_tokens(
        cls,
        messages: Iterable[ChatMessage],
        completion: str
    ) -> int:
        """Estimate total tokens of a prompt and its completion."""
        return cls.estimate_messages_tokens(messages) + cls.estimate_text_tokens(completion)
