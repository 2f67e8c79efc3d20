"""
Dispatch Errors
===============

Error taxonomy shared by provider clients, the retry policy, the fallback
orchestrator and the response normalizer.

    DispatchError
    ├── ProviderUnconfigured    provider has no credential (skipped, not a failure)
    ├── TransportError          network / timeout / non-2xx (retried, then fallback)
    ├── SchemaValidationError   reply did not parse or lacks required fields
    ├── ProviderExhaustedError  every configured provider failed its retry budget
    ├── NoProviderConfigured    no provider had a credential
    ├── DeadlineExceeded        caller's wall-clock budget ran out
    └── CacheError              cache I/O failure (logged, never propagated)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Optional

if TYPE_CHECKING:
    from dispatch.router.outcomes import ProviderOutcome


# Statuses that will not improve by asking the same provider again
PERMANENT_STATUS_CODES = frozenset({400, 401, 403, 404})


class DispatchError(Exception):
    """Base class for dispatcher errors."""


class ProviderUnconfigured(DispatchError):
    """Raised when a provider is called without a credential."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"Provider '{provider}' has no credential configured")


class TransportError(DispatchError):
    """A provider call failed below the content level."""

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
    ):
        self.provider = provider
        self.status_code = status_code
        self.body = body
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.status_code not in PERMANENT_STATUS_CODES

    def __str__(self) -> str:
        message = super().__str__()
        if self.status_code is not None:
            return f"{message} (status={self.status_code})"
        return message


class SchemaValidationError(DispatchError):
    """Provider text could not be turned into the requested shape."""

    def __init__(self, message: str, raw_text: str = "", provider: Optional[str] = None):
        self.raw_text = raw_text
        self.provider = provider
        super().__init__(message)


class ProviderExhaustedError(DispatchError):
    """Every configured provider failed after its own retries."""

    def __init__(self, failures: Dict[str, str], outcomes: Optional[List["ProviderOutcome"]] = None):
        self.failures = dict(failures)
        self.outcomes = list(outcomes or [])
        detail = "; ".join(f"{name}: {reason}" for name, reason in self.failures.items())
        super().__init__(f"All configured providers failed. {detail}")


class NoProviderConfigured(DispatchError):
    """No provider in the chain has a credential."""

    def __init__(self, providers: Optional[List[str]] = None):
        self.providers = list(providers or [])
        names = ", ".join(self.providers) if self.providers else "none registered"
        super().__init__(f"No AI provider is configured (checked: {names})")


class DeadlineExceeded(DispatchError):
    """The caller's deadline expired before a provider answered."""


class CacheError(DispatchError):
    """Result cache read or write failed."""


__all__ = [
    "PERMANENT_STATUS_CODES",
    "DispatchError",
    "ProviderUnconfigured",
    "TransportError",
    "SchemaValidationError",
    "ProviderExhaustedError",
    "NoProviderConfigured",
    "DeadlineExceeded",
    "CacheError",
]
