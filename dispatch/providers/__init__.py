"""Completion provider clients."""

from typing import Dict, Optional, Type

import httpx

from .base import ChatTurn, JSON_INSTRUCTION, ProviderClient, ProviderSpec
from .gemini import GeminiClient, to_gemini_schema
from .openai_compat import GroqClient, OpenAIClient, OpenAICompatibleClient, OpenRouterClient

PROVIDER_CLASSES: Dict[str, Type[ProviderClient]] = {
    GeminiClient.BINDING: GeminiClient,
    GroqClient.BINDING: GroqClient,
    OpenAIClient.BINDING: OpenAIClient,
    OpenRouterClient.BINDING: OpenRouterClient,
}


def create_client(spec: ProviderSpec, http_client: Optional[httpx.AsyncClient] = None) -> ProviderClient:
    """Instantiate the client class registered for spec.name.

    Unknown names fall back to the generic OpenAI-compatible client.
    """
    client_cls = PROVIDER_CLASSES.get(spec.name.lower(), OpenAICompatibleClient)
    return client_cls(spec, http_client=http_client)


__all__ = [
    "ChatTurn",
    "JSON_INSTRUCTION",
    "ProviderClient",
    "ProviderSpec",
    "GeminiClient",
    "to_gemini_schema",
    "OpenAICompatibleClient",
    "GroqClient",
    "OpenAIClient",
    "OpenRouterClient",
    "PROVIDER_CLASSES",
    "create_client",
]
