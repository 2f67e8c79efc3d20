"""
Gemini Provider
===============

Google Generative Language API (`models/{model}:generateContent`).

Gemini takes the response schema natively, so structured requests send the
schema in `generationConfig.responseSchema` instead of describing it in the
prompt. Gemini's schema dialect spells types in upper case ("OBJECT",
"STRING", ...); JSON-schema style lower-case names are converted here.

Configuration:
- GEMINI_API_KEY: API key
- GEMINI_MODEL: Default model (e.g., gemini-flash-latest)
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from .base import ChatTurn, ProviderClient

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


def to_gemini_schema(schema: Any) -> Any:
    """Recursively upper-case `type` values in a JSON-schema-like dict."""
    if isinstance(schema, dict):
        converted = {}
        for key, value in schema.items():
            if key == "type" and isinstance(value, str):
                converted[key] = value.upper()
            else:
                converted[key] = to_gemini_schema(value)
        return converted
    if isinstance(schema, list):
        return [to_gemini_schema(item) for item in schema]
    return schema


class GeminiClient(ProviderClient):
    """Gemini generateContent client."""

    BINDING = "gemini"

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
        base_url = (self.spec.base_url or DEFAULT_BASE_URL).rstrip("/")
        url = f"{base_url}/models/{model}:generateContent"

        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self.spec.credential,
        }

        contents = [{"role": turn.role, "parts": [{"text": turn.text}]} for turn in history]
        contents.append({"role": "user", "parts": [{"text": prompt}]})

        generation_config: Dict[str, Any] = {}
        if schema is not None:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = to_gemini_schema(schema)
        generation_config.update(extra_config)

        body: Dict[str, Any] = {"contents": contents}
        if generation_config:
            body["generationConfig"] = generation_config
        if system_prompt:
            body["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        return url, headers, body

    def extract_text(self, data: Dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not isinstance(candidates, list) or not candidates:
            feedback = data.get("promptFeedback")
            block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
            if block_reason:
                raise self.reply_error(f"prompt blocked ({block_reason})", data)
            raise self.reply_error("reply has no candidates", data)

        candidate = candidates[0]
        if not isinstance(candidate, dict):
            raise self.reply_error("candidate is not a JSON object", data)
        content = candidate.get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            parts = []
        # Thought summaries come back as parts flagged with "thought": true
        text = "".join(
            part["text"]
            for part in parts
            if isinstance(part, dict) and not part.get("thought") and isinstance(part.get("text"), str)
        )
        if not text:
            finish_reason = candidate.get("finishReason", "unknown")
            raise self.reply_error(f"candidate has no text (finishReason={finish_reason})", data)
        return text
