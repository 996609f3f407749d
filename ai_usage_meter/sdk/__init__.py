"""
SDK for AI Usage Meter.

Provides the metered multi-provider LLM client.
"""

from .client import AnkiCard, ModelConfig, MultiProviderLLM
from .errors import ProviderError, ResponseParseError

__all__ = ["AnkiCard", "ModelConfig", "MultiProviderLLM", "ProviderError", "ResponseParseError"]
