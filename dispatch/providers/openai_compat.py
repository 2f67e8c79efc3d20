"""
OpenAI-Compatible Providers
===========================

Groq, OpenAI and OpenRouter all speak the `/chat/completions` dialect.
None of them accepts a Gemini-style response schema, so structured requests
append the schema to the prompt and ask for `response_format: json_object`.

Configuration:
- GROQ_API_KEY / GROQ_MODEL
- OPENAI_API_KEY / OPENAI_MODEL / OPENAI_BASE_URL
- OPENROUTER_API_KEY / OPENROUTER_MODEL
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Tuple

from .base import JSON_INSTRUCTION, ChatTurn, ProviderClient


class OpenAICompatibleClient(ProviderClient):
    """Client for any OpenAI-compatible chat completions endpoint."""

    BINDING = "openai"
    DEFAULT_BASE_URL = "https://api.openai.com/v1"

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.spec.credential}",
        }

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
        url = (self.spec.base_url or self.DEFAULT_BASE_URL).rstrip("/")
        if not url.endswith("/chat/completions"):
            url = f"{url}/chat/completions"

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        for turn in history:
            role = "assistant" if turn.role == "model" else "user"
            messages.append({"role": role, "content": turn.text})

        if schema is not None:
            prompt = f"{prompt}\n\n{JSON_INSTRUCTION.format(schema=json.dumps(schema))}"
        messages.append({"role": "user", "content": prompt})

        body: Dict[str, Any] = {"model": model, "messages": messages}
        if schema is not None:
            body["response_format"] = {"type": "json_object"}
        body.update(extra_config)

        return url, self._headers(), body

    def extract_text(self, data: Dict[str, Any]) -> str:
        choices = data.get("choices") or []
        if not isinstance(choices, list) or not choices:
            raise self.reply_error("reply has no choices", data)

        choice = choices[0]
        message = choice.get("message") if isinstance(choice, dict) else None
        if not isinstance(message, dict):
            raise self.reply_error("choice has no message object", data)
        content = message.get("content")
        if not isinstance(content, str) or not content:
            # Check for reasoning content (some models)
            content = message.get("reasoning_content")
        if not isinstance(content, str) or not content:
            raise self.reply_error("choice has no message content", data)
        return content


class GroqClient(OpenAICompatibleClient):
    """Groq cloud (OpenAI-compatible)."""

    BINDING = "groq"
    DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"


class OpenAIClient(OpenAICompatibleClient):
    """OpenAI platform API."""

    BINDING = "openai"
    DEFAULT_BASE_URL = "https://api.openai.com/v1"


class OpenRouterClient(OpenAICompatibleClient):
    """OpenRouter, with its attribution headers."""

    BINDING = "openrouter"
    DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"

    site_url = "https://smartest.app"
    app_name = "SmarTest"

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        headers["HTTP-Referer"] = self.site_url
        headers["X-Title"] = self.app_name
        return headers
