"""
Provider Fallback Orchestrator
==============================

Provides reliable completions through an ordered fallback chain:

    NOT_STARTED -> TRYING(p0) -> SUCCESS
                             \\-> NEXT(p1) -> ... -> EXHAUSTED

1. Providers are tried in priority order (lower priority value first).
2. Providers without a credential are skipped silently; they consume no
   attempts and do not count as failures.
3. Each configured provider runs inside its RetryPolicy; only when that is
   exhausted does the chain advance.
4. The first success returns immediately.
5. If every configured provider failed: ProviderExhaustedError with per-provider
   reasons. If none was configured at all: NoProviderConfigured.

Calls are strictly sequential, so the worst-case latency is the sum of every
configured provider's retry budget. Pass a Deadline to cap it.

Usage:
    from dispatch.router import CompletionRequest, get_orchestrator

    orchestrator = get_orchestrator()
    result = await orchestrator.dispatch(
        CompletionRequest(prompt="Grade...", schema=EVALUATION_SCHEMA),
        provider_hint="groq",
    )
    print(result.provider, result.text)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import httpx

from dispatch.errors import NoProviderConfigured, ProviderExhaustedError, TransportError
from dispatch.providers import ChatTurn, ProviderClient, create_client
from dispatch.router.deadline import Deadline
from dispatch.router.outcomes import ProviderOutcome
from dispatch.router.retry import RetryPolicy
from dispatch.utils.config import DispatchConfig, get_dispatch_config
from grader.logging.trace import filter_dict_secrets, filter_secrets

logger = logging.getLogger("FallbackOrchestrator")


@dataclass
class CompletionRequest:
    """Everything a provider needs for one logical completion."""

    prompt: str
    schema: Optional[Dict[str, Any]] = None
    system_prompt: Optional[str] = None
    history: List[ChatTurn] = field(default_factory=list)
    # Keyed by provider name, e.g. {"gemini": "gemini-2.5-pro"}
    model_overrides: Dict[str, str] = field(default_factory=dict)
    extra_config: Dict[str, Dict[str, Any]] = field(default_factory=dict)


@dataclass
class DispatchResult:
    """Winning provider's raw text plus the attempts that led to it."""

    text: str
    provider: str
    outcomes: List[ProviderOutcome] = field(default_factory=list)

    @property
    def attempts(self) -> int:
        return len(self.outcomes)

    @property
    def from_fallback(self) -> bool:
        return any(o.provider != self.provider for o in self.outcomes)


class FallbackOrchestrator:
    """
    Iterates a priority-ordered list of provider clients.

    One orchestrator serves every call site (evaluation, test generation,
    question regeneration, tutoring); call sites differ only in the
    CompletionRequest and the retry policy they pass.
    """

    def __init__(
        self,
        clients: Sequence[ProviderClient] = (),
        retry_policy: Optional[RetryPolicy] = None,
        log_requests: bool = True,
    ):
        self.retry_policy = retry_policy if retry_policy is not None else RetryPolicy()
        self.log_requests = log_requests
        self._clients: List[ProviderClient] = []
        for client in clients:
            self.add_client(client)

    def add_client(self, client: ProviderClient) -> None:
        """Register a client, keeping the list sorted by priority."""
        self._clients = [c for c in self._clients if c.name != client.name]
        self._clients.append(client)
        self._clients.sort(key=lambda c: c.spec.priority)
        logger.info(
            f"Added provider: {client.name} (priority={client.spec.priority}, "
            f"configured={client.is_configured})"
        )

    def get_client(self, name: str) -> Optional[ProviderClient]:
        """Get a client by provider name."""
        name = name.lower()
        return next((c for c in self._clients if c.name == name), None)

    def list_clients(self) -> List[ProviderClient]:
        return list(self._clients)

    def get_ordered_clients(
        self,
        preferred: Optional[str] = None,
        allow_fallback: bool = True,
    ) -> List[ProviderClient]:
        """
        Get clients in fallback order.

        Args:
            preferred: Provider to try first
            allow_fallback: Whether to include the rest of the chain

        Returns:
            Ordered list of clients
        """
        preferred_client = self.get_client(preferred) if preferred else None

        if preferred_client is None:
            if preferred:
                logger.warning(f"Unknown provider hint '{preferred}'; using default order")
            return list(self._clients)

        if not allow_fallback:
            return [preferred_client]
        return [preferred_client] + [c for c in self._clients if c is not preferred_client]

    async def dispatch(
        self,
        request: CompletionRequest,
        *,
        provider_hint: Optional[str] = None,
        allow_fallback: bool = True,
        retry_policy: Optional[RetryPolicy] = None,
        deadline: Optional[Deadline] = None,
    ) -> DispatchResult:
        """
        Complete a request with automatic fallback.

        Args:
            request: Prompt, schema and per-provider overrides
            provider_hint: Provider to try first
            allow_fallback: Try the rest of the chain on failure
            retry_policy: Overrides the orchestrator's default policy
            deadline: Optional wall-clock budget for the whole chain

        Returns:
            DispatchResult with the winning provider's raw text

        Raises:
            NoProviderConfigured: No provider in the chain has a credential
            ProviderExhaustedError: Every configured provider failed
            DeadlineExceeded: The deadline ran out
        """
        clients = self.get_ordered_clients(provider_hint, allow_fallback)

        configured = []
        for client in clients:
            if client.is_configured:
                configured.append(client)
            else:
                logger.info(f"{client.name} has no credential; skipping")

        if not configured:
            raise NoProviderConfigured([c.name for c in clients])

        policy = retry_policy if retry_policy is not None else self.retry_policy
        outcomes: List[ProviderOutcome] = []
        failures: Dict[str, str] = {}

        for client in configured:
            if self.log_requests:
                logger.info(f"Attempting {client.name} (max {policy.max_attempts} attempts)")

            try:
                text = await policy.run(
                    client.name,
                    lambda client=client: self._call(client, request),
                    outcomes=outcomes,
                    deadline=deadline,
                )
            except TransportError as e:
                failures[client.name] = str(e)
                logger.warning(f"{client.name} failed: {e}; falling back")
                if e.body:
                    logger.debug(f"{client.name} error body: {filter_secrets(e.body)}")
                continue

            result = DispatchResult(text=text, provider=client.name, outcomes=outcomes)
            self._log_success(result)
            return result

        raise ProviderExhaustedError(failures, outcomes)

    async def _call(self, client: ProviderClient, request: CompletionRequest) -> str:
        return await client.generate(
            request.prompt,
            request.schema,
            system_prompt=request.system_prompt,
            history=request.history,
            model=request.model_overrides.get(client.name),
            extra_config=request.extra_config.get(client.name),
        )

    def _log_success(self, result: DispatchResult) -> None:
        if self.log_requests:
            last = result.outcomes[-1] if result.outcomes else None
            latency = f", {last.latency_ms:.0f}ms" if last else ""
            logger.info(
                f"Completion handled by {result.provider} "
                f"(attempt {result.attempts} overall{latency})"
            )

    def status(self) -> List[Dict[str, Any]]:
        """Describe the chain without exposing credentials."""
        return [filter_dict_secrets(c.spec.to_dict()) for c in self._clients]


def build_orchestrator(
    config: Optional[DispatchConfig] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FallbackOrchestrator:
    """Set up the provider chain from configuration."""
    config = config or get_dispatch_config()
    policy = RetryPolicy(
        max_attempts=config.retry_max_attempts,
        base_delay=config.retry_base_delay,
        max_jitter=config.retry_max_jitter,
    )
    clients = [create_client(spec, http_client=http_client) for spec in config.provider_specs()]
    return FallbackOrchestrator(clients, retry_policy=policy)


_orchestrator: Optional[FallbackOrchestrator] = None


def get_orchestrator() -> FallbackOrchestrator:
    """Get the global orchestrator instance."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_orchestrator()
    return _orchestrator


def reset_orchestrator() -> None:
    """Drop the global orchestrator (configuration reload, tests)."""
    global _orchestrator
    _orchestrator = None


__all__ = [
    "CompletionRequest",
    "DispatchResult",
    "FallbackOrchestrator",
    "build_orchestrator",
    "get_orchestrator",
    "reset_orchestrator",
]
