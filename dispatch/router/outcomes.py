"""Per-attempt diagnostics and error classification."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from dispatch.errors import TransportError


@dataclass
class ProviderOutcome:
    """Result of one attempt against one provider."""

    provider: str
    attempt: int
    succeeded: bool
    raw_text: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None  # "connection", "auth", "rate_limit", "model", "server", "unknown"
    status_code: Optional[int] = None
    latency_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "attempt": self.attempt,
            "succeeded": self.succeeded,
            "error": self.error,
            "error_type": self.error_type,
            "status_code": self.status_code,
            "latency_ms": round(self.latency_ms, 2),
        }


_MESSAGE_TYPES = [
    ("connection", re.compile(r"\b(connection|refused|timeout|timed out|network)\b")),
    ("auth", re.compile(r"\b(auth|authentication|api[ _]key|unauthorized)\b")),
    ("rate_limit", re.compile(r"\b(rate[ _-]?limit(ed)?|quota|too many requests)\b")),
    ("model", re.compile(r"\b(model not found|model does not exist)\b")),
]


class ProviderErrorClassifier:
    """Classifies provider errors into actionable types."""

    @staticmethod
    def classify(error: Exception) -> str:
        """Classify by HTTP status when there is one, otherwise by message."""
        status = error.status_code if isinstance(error, TransportError) else None
        if status is not None:
            if status in (401, 403):
                return "auth"
            if status == 429:
                return "rate_limit"
            if status == 404:
                return "model"
            if status >= 500:
                return "server"
            return "unknown"

        error_str = str(error).lower()
        for error_type, pattern in _MESSAGE_TYPES:
            if pattern.search(error_str):
                return error_type
        return "unknown"
