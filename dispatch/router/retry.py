"""
Retry Policy
============

Bounded retries with full exponential backoff plus jitter around one provider
call:

    delay(attempt) = base_delay * 2**attempt + uniform[0, max_jitter)

`attempt` is zero-indexed and a delay is only slept *between* attempts.
When a deadline is given and the next backoff would overrun it, the provider
is given up on early so the caller can fall back to the next one;
DeadlineExceeded is only raised once the budget is actually spent.
Only TransportErrors are retried; anything else (ProviderUnconfigured,
cancellation, DeadlineExceeded) passes straight through. After the last
attempt the final TransportError is re-raised.

Sleep and jitter are injectable so tests can run without real delays:

    policy = RetryPolicy(max_attempts=3, sleep=fake_sleep, jitter=lambda: 0.0)
    text = await policy.run("gemini", lambda: client.generate(prompt))
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from dispatch.errors import DeadlineExceeded, TransportError
from dispatch.router.deadline import Deadline
from dispatch.router.outcomes import ProviderErrorClassifier, ProviderOutcome

logger = logging.getLogger("RetryPolicy")


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt count and backoff schedule for one provider."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_jitter: float = 1.0
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False, compare=False)
    jitter: Callable[[], float] = field(default=random.random, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_jitter < 0:
            raise ValueError("base_delay and max_jitter cannot be negative")

    def with_attempts(self, max_attempts: int) -> "RetryPolicy":
        return dataclasses.replace(self, max_attempts=max_attempts)

    def delay_for(self, attempt: int) -> float:
        """Backoff before the attempt after `attempt` (zero-indexed)."""
        return self.base_delay * (2**attempt) + self.jitter() * self.max_jitter

    async def run(
        self,
        provider: str,
        call: Callable[[], Awaitable[str]],
        *,
        outcomes: Optional[List[ProviderOutcome]] = None,
        deadline: Optional[Deadline] = None,
    ) -> str:
        """
        Run `call` until it succeeds or the attempt budget is spent.

        Args:
            provider: Provider name, for diagnostics
            call: Zero-argument coroutine factory performing one attempt
            outcomes: List that receives one ProviderOutcome per attempt
            deadline: Optional wall-clock budget shared with the caller

        Returns:
            The raw text of the first successful attempt

        Raises:
            TransportError: The last attempt's failure
            DeadlineExceeded: The deadline ran out mid-sequence
        """
        recorded = outcomes if outcomes is not None else []
        last_error: Optional[TransportError] = None

        for attempt in range(self.max_attempts):
            if deadline is not None:
                deadline.check(f"{provider} attempt {attempt + 1}")

            start_time = time.perf_counter()
            try:
                text = await self._attempt(call, deadline, provider)
            except TransportError as e:
                last_error = e
                recorded.append(
                    ProviderOutcome(
                        provider=provider,
                        attempt=attempt,
                        succeeded=False,
                        error=str(e)[:500],
                        error_type=ProviderErrorClassifier.classify(e),
                        status_code=e.status_code,
                        latency_ms=(time.perf_counter() - start_time) * 1000,
                    )
                )

                if not e.retryable:
                    logger.warning(f"{provider} failed permanently on attempt {attempt + 1}: {e}")
                    break

                if attempt + 1 < self.max_attempts:
                    delay = self.delay_for(attempt)
                    if deadline is not None and delay >= deadline.remaining():
                        logger.warning(
                            f"{provider} backoff of {delay:.2f}s would overrun the deadline; giving up on it"
                        )
                        break
                    logger.info(
                        f"{provider} attempt {attempt + 1}/{self.max_attempts} failed ({e}); "
                        f"retrying in {delay:.2f}s"
                    )
                    await self.sleep(delay)
                continue

            recorded.append(
                ProviderOutcome(
                    provider=provider,
                    attempt=attempt,
                    succeeded=True,
                    raw_text=text,
                    latency_ms=(time.perf_counter() - start_time) * 1000,
                )
            )
            return text

        assert last_error is not None
        raise last_error

    @staticmethod
    async def _attempt(
        call: Callable[[], Awaitable[str]],
        deadline: Optional[Deadline],
        provider: str,
    ) -> str:
        if deadline is None:
            return await call()
        try:
            return await asyncio.wait_for(call(), timeout=deadline.remaining())
        except asyncio.TimeoutError as e:
            raise DeadlineExceeded(f"Deadline exceeded while waiting for {provider}") from e


__all__ = ["RetryPolicy"]
