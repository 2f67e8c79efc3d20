"""
Fallback routing over completion providers.

Usage:
    from dispatch.router import CompletionRequest, get_orchestrator

    result = await get_orchestrator().dispatch(CompletionRequest(prompt="..."))
"""

from .deadline import Deadline
from .outcomes import ProviderErrorClassifier, ProviderOutcome
from .provider_manager import (
    CompletionRequest,
    DispatchResult,
    FallbackOrchestrator,
    build_orchestrator,
    get_orchestrator,
    reset_orchestrator,
)
from .retry import RetryPolicy

__all__ = [
    "CompletionRequest",
    "Deadline",
    "DispatchResult",
    "FallbackOrchestrator",
    "ProviderErrorClassifier",
    "ProviderOutcome",
    "RetryPolicy",
    "build_orchestrator",
    "get_orchestrator",
    "reset_orchestrator",
]
