"""
Trace Context Utilities
=======================

Utilities for generating and propagating trace IDs across the application.

Features:
- Trace ID generation (UUID-based)
- Context management (contextvars, so each asyncio task sees its own trace)
- Header propagation for HTTP requests
- Secret filtering for provider error bodies before they reach the logs

Usage:
    from grader.logging.trace import get_trace_id, trace_context

    # At request ingress
    with trace_context(component="api", operation="evaluate") as ctx:
        ...

    # Anywhere below
    trace_id = get_trace_id()
"""

from __future__ import annotations

import contextvars
import re
import secrets
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Tuple

_trace_context: contextvars.ContextVar[Optional["TraceContext"]] = contextvars.ContextVar(
    "grader_trace_context", default=None
)


# Header names for trace propagation
TRACE_HEADER = "X-Trace-ID"
PARENT_TRACE_HEADER = "X-Parent-Trace-ID"
SPAN_HEADER = "X-Span-ID"


def generate_trace_id() -> str:
    """Generate a unique trace ID."""
    return str(uuid.uuid4())


def generate_span_id() -> str:
    """Generate a unique span ID."""
    return secrets.token_hex(8)


@dataclass
class TraceContext:
    """
    Trace context containing all tracing information for a request.
    """

    trace_id: str
    span_id: str = field(default_factory=generate_span_id)
    parent_span_id: Optional[str] = None
    component: str = "unknown"
    operation: str = "unknown"

    def to_headers(self) -> Dict[str, str]:
        """Convert to HTTP headers for propagation."""
        headers = {TRACE_HEADER: self.trace_id, SPAN_HEADER: self.span_id}
        if self.parent_span_id:
            headers[PARENT_TRACE_HEADER] = self.parent_span_id
        return headers


def get_trace_context() -> Optional[TraceContext]:
    """Get the trace context of the current task."""
    return _trace_context.get()


def set_trace_context(context: TraceContext) -> contextvars.Token:
    """Set the trace context; returns a token for reset_trace_context."""
    return _trace_context.set(context)


def reset_trace_context(token: contextvars.Token) -> None:
    _trace_context.reset(token)


@contextmanager
def trace_context(
    trace_id: Optional[str] = None,
    parent_span_id: Optional[str] = None,
    span_id: Optional[str] = None,
    component: str = "unknown",
    operation: str = "unknown",
) -> Iterator[TraceContext]:
    """
    Context manager for trace context.

    Usage:
        with trace_context(component="api", operation="evaluate") as ctx:
            logger.info("Grading submission")  # record carries ctx.trace_id
    """
    context = TraceContext(
        trace_id=trace_id or generate_trace_id(),
        span_id=span_id or generate_span_id(),
        parent_span_id=parent_span_id,
        component=component,
        operation=operation,
    )
    token = set_trace_context(context)
    try:
        yield context
    finally:
        reset_trace_context(token)


def get_trace_id() -> Optional[str]:
    """Get the current trace ID."""
    context = get_trace_context()
    return context.trace_id if context else None


def extract_trace_from_headers(
    headers: Any,
) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """
    Extract trace information from HTTP headers.

    Returns:
        (trace_id, parent_span_id, span_id)
    """
    trace_id = headers.get(TRACE_HEADER) or headers.get("x-trace-id")
    parent_span_id = headers.get(PARENT_TRACE_HEADER) or headers.get("x-parent-trace-id")
    span_id = headers.get(SPAN_HEADER) or headers.get("x-span-id") or generate_span_id()
    return trace_id, parent_span_id, span_id


# Secret patterns for filtering sensitive data
_SECRET_PATTERNS = [
    re.compile(r"(api[_-]?key|apikey)[\s=:\"']+([^\s\"']+)", re.IGNORECASE),
    re.compile(r"(token|auth|bearer)[\s=:\"']+([^\s\"']+)", re.IGNORECASE),
    re.compile(r"(password)[\s=:\"']+([^\s\"']+)", re.IGNORECASE),
    re.compile(r"(secret)[\s=:\"']+([^\s\"']+)", re.IGNORECASE),
    re.compile(r"sk-[a-zA-Z0-9_-]{20,}"),  # OpenAI / OpenRouter keys
    re.compile(r"gsk_[a-zA-Z0-9]{20,}"),  # Groq keys
    re.compile(r"AIza[0-9A-Za-z_-]{30,}"),  # Google API keys
]


def filter_secrets(text: str) -> str:
    """
    Filter secrets from text to prevent logging sensitive data.

    Usage:
        safe_message = filter_secrets("api_key=sk-abc123...")
        # Returns: "api_key: [REDACTED]"
    """
    filtered = text
    for pattern in _SECRET_PATTERNS:
        if pattern.groups:
            filtered = pattern.sub(r"\1: [REDACTED]", filtered)
        else:
            filtered = pattern.sub("[REDACTED]", filtered)
    return filtered


def filter_dict_secrets(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively filter secrets from a dictionary.

    Usage:
        safe_data = filter_dict_secrets({"api_key": "sk-abc123...", "model": "gpt-4o-mini"})
        # Returns: {"api_key": "[REDACTED]", "model": "gpt-4o-mini"}
    """
    sensitive_keys = {"api_key", "apikey", "credential", "token", "password", "secret", "authorization"}

    result = {}
    for key, value in data.items():
        if key.lower() in sensitive_keys:
            result[key] = "[REDACTED]"
        elif isinstance(value, dict):
            result[key] = filter_dict_secrets(value)
        elif isinstance(value, list):
            result[key] = [filter_dict_secrets(v) if isinstance(v, dict) else v for v in value]
        else:
            result[key] = value
    return result


__all__ = [
    "generate_trace_id",
    "generate_span_id",
    "TraceContext",
    "get_trace_context",
    "set_trace_context",
    "reset_trace_context",
    "trace_context",
    "get_trace_id",
    "extract_trace_from_headers",
    "filter_secrets",
    "filter_dict_secrets",
    "TRACE_HEADER",
    "PARENT_TRACE_HEADER",
    "SPAN_HEADER",
]
