"""
LLM provider clients with a uniform send contract.
"""
from sermon_ai.providers.base import BaseProvider, ProviderConfig
from sermon_ai.providers.registry import ProviderRegistry

__all__ = [
    "BaseProvider",
    "ProviderConfig",
    "ProviderRegistry",
]
