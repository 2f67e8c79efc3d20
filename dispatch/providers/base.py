"""
Provider Client Interface
=========================

A ProviderClient knows how to talk to exactly one completion service:
the request body shape, the auth header, and where the generated text lives
in the service's reply. Everything upstream only ever sees plain text.

Usage:
    from dispatch.providers import GeminiClient, ProviderSpec

    client = GeminiClient(ProviderSpec(name="gemini", credential="...", model="gemini-flash-latest"))
    if client.is_configured:
        text = await client.generate("Grade this...", schema=EVALUATION_SCHEMA)
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import httpx

from dispatch.errors import ProviderUnconfigured, TransportError

logger = logging.getLogger("ProviderClient")

# Prompt suffix for providers that cannot take a response schema natively
JSON_INSTRUCTION = (
    "IMPORTANT: Respond with a single, raw JSON object that strictly conforms to the "
    "provided JSON schema. Do not add any commentary or markdown formatting. "
    "The JSON schema is: {schema}"
)

MAX_ERROR_BODY = 2000


@dataclass
class ProviderSpec:
    """Static configuration for one provider in the fallback chain."""

    name: str
    credential: str = field(default="", repr=False)
    model: str = ""
    priority: int = 0  # Lower = tried first
    base_url: str = ""
    extra_config: Dict[str, Any] = field(default_factory=dict)
    timeout: float = 60.0

    def to_dict(self) -> Dict[str, Any]:
        """Describe the provider without exposing its credential."""
        return {
            "name": self.name,
            "model": self.model,
            "priority": self.priority,
            "base_url": self.base_url,
            "configured": bool(self.credential and self.credential.strip()),
            "extra_config": dict(self.extra_config),
        }


@dataclass(frozen=True)
class ChatTurn:
    """One prior exchange in a tutoring conversation."""

    role: str  # "user" or "model"
    text: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChatTurn":
        """Accept both {role, parts: [{text}]} and {role, content} shapes."""
        role = str(data.get("role", "user")).lower()
        if role == "assistant":
            role = "model"
        if "parts" in data:
            text = "".join(str(part.get("text", "")) for part in data.get("parts") or [])
        else:
            text = str(data.get("content", data.get("text", "")))
        return cls(role="model" if role == "model" else "user", text=text)


class ProviderClient(ABC):
    """Base class for a single completion provider."""

    BINDING = ""

    def __init__(self, spec: ProviderSpec, http_client: Optional[httpx.AsyncClient] = None):
        self.spec = spec
        self._http_client = http_client

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def is_configured(self) -> bool:
        return bool(self.spec.credential and self.spec.credential.strip())

    async def generate(
        self,
        prompt: str,
        schema: Optional[Dict[str, Any]] = None,
        *,
        system_prompt: Optional[str] = None,
        history: Optional[Sequence[ChatTurn]] = None,
        model: Optional[str] = None,
        extra_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Send one completion request and return the generated text.

        Args:
            prompt: User prompt
            schema: JSON schema the reply must follow, if structured output is wanted
            system_prompt: Optional system instruction
            history: Prior conversation turns
            model: Model id overriding the spec's default
            extra_config: Provider-specific request options

        Returns:
            Raw generated text, exactly as the provider produced it

        Raises:
            ProviderUnconfigured: No credential for this provider
            TransportError: Network failure, non-2xx reply, or no text in the reply
        """
        if not self.is_configured:
            raise ProviderUnconfigured(self.name)

        url, headers, body = self.build_request(
            prompt,
            schema,
            system_prompt=system_prompt,
            history=list(history or []),
            model=model or self.spec.model,
            extra_config={**self.spec.extra_config, **(extra_config or {})},
        )
        data = await self._post(url, headers, body)
        return self.extract_text(data)

    @abstractmethod
    def build_request(
        self,
        prompt: str,
        schema: Optional[Dict[str, Any]],
        *,
        system_prompt: Optional[str],
        history: List[ChatTurn],
        model: str,
        extra_config: Dict[str, Any],
    ) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        """Return (url, headers, json_body) for one attempt."""

    @abstractmethod
    def extract_text(self, data: Dict[str, Any]) -> str:
        """Pull the generated text out of the provider's reply."""

    def reply_error(self, message: str, data: Any) -> TransportError:
        """Build a TransportError for a 2xx reply that carries no usable text."""
        body = json.dumps(data)[:MAX_ERROR_BODY] if data is not None else ""
        return TransportError(self.name, f"{self.name}: {message}", status_code=None, body=body)

    async def _post(self, url: str, headers: Dict[str, str], body: Dict[str, Any]) -> Dict[str, Any]:
        logger.debug(f"{self.name}: POST {url} (model={body.get('model', self.spec.model)})")
        try:
            if self._http_client is not None:
                response = await self._http_client.post(url, headers=headers, json=body)
            else:
                async with httpx.AsyncClient(timeout=self.spec.timeout) as client:
                    response = await client.post(url, headers=headers, json=body)
        except httpx.TimeoutException as e:
            raise TransportError(self.name, f"{self.name} request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(self.name, f"{self.name} connection error: {e}") from e

        if not response.is_success:
            raise TransportError(
                self.name,
                f"{self.name} API error",
                status_code=response.status_code,
                body=response.text[:MAX_ERROR_BODY],
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(
                self.name,
                f"{self.name} returned a non-JSON body",
                status_code=response.status_code,
                body=response.text[:MAX_ERROR_BODY],
            ) from e

        if not isinstance(data, dict):
            raise self.reply_error("reply is not a JSON object", data)
        return data

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, model={self.spec.model!r})"
