"""
Provider and orchestration error types.
"""
from typing import List, Optional


class ProviderError(Exception):
    """Base class for classified provider failures."""

    def __init__(self, provider: str, message: str):
        super().__init__(message)
        self.provider = provider
        self.message = message


class ProviderUnconfigured(ProviderError):
    """Credential missing or too short."""

    def __init__(self, provider: str):
        super().__init__(provider, "API key not configured")


class ProviderUnreachable(ProviderError):
    """Network or transport failure."""


class ProviderAuthFailure(ProviderError):
    """Credential rejected by the provider."""


class ProviderEmptyResponse(ProviderError):
    """Provider answered without any content."""

    def __init__(self, provider: str):
        super().__init__(provider, "Empty response received")


class ProviderOther(ProviderError):
    """Any other provider failure, including rate limiting."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        super().__init__(provider, message)
        self.status_code = status_code


class UnknownProvider(LookupError):
    """Provider id is not declared in the registry."""

    def __init__(self, provider: str):
        super().__init__(f"Unknown provider: {provider}")
        self.provider = provider


class AttemptFailure:
    """One failed provider attempt inside a dispatch."""

    __slots__ = ("provider", "error", "response_time_ms")

    def __init__(self, provider: str, error: str, response_time_ms: int):
        self.provider = provider
        self.error = error
        self.response_time_ms = response_time_ms

    def to_dict(self) -> dict:
        return {
            "provider": self.provider,
            "error": self.error,
            "response_time_ms": self.response_time_ms,
        }


class AggregateFailure(Exception):
    """
    Raised by dispatch once every permitted attempt has failed.

    ``provider``, ``error`` and ``response_time_ms`` describe the final
    attempt; ``attempts`` holds every attempt in order.
    """

    def __init__(self, attempts: List[AttemptFailure]):
        if not attempts:
            raise ValueError("AggregateFailure needs at least one attempt")
        self.attempts = list(attempts)
        last = self.attempts[-1]
        self.provider = last.provider
        self.error = last.error or "AI request failed"
        self.response_time_ms = last.response_time_ms
        super().__init__(self.error)

    def to_dict(self) -> dict:
        return {
            "error": self.error,
            "provider": self.provider,
            "response_time_ms": self.response_time_ms,
            "attempts": [attempt.to_dict() for attempt in self.attempts],
        }


class IncompleteComparison(ValueError):
    """A preference was recorded before both comparison sides existed."""
