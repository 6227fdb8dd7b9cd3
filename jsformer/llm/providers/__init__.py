"""Translation provider clients."""

from __future__ import annotations

from jsformer.llm.providers.base import (
    BaseProvider,
    LLMResponse,
    ProviderClient,
    ReachabilityProbe,
)
from jsformer.llm.providers.ollama_provider import OllamaProvider
from jsformer.llm.providers.openai_provider import OpenAICompatibleProvider

__all__ = [
    "BaseProvider",
    "LLMResponse",
    "OllamaProvider",
    "OpenAICompatibleProvider",
    "ProviderClient",
    "ReachabilityProbe",
]
