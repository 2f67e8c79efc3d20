"""
Grading Service
===============

Top-level entry points over the provider fallback chain:

- evaluate(): grade a submission. Content-addressed cache, single-flight per
  cache key, retry budget of 3 attempts per provider.
- generate(): free-form or schema-shaped completion. Never cached.
- generate_test(), regenerate_question(), tutor_reply(): task helpers built
  on generate().

Evaluate flow:

    key = sha256(canonical(request))
    cache hit  -> aggregate(cached evaluation)
    cache miss -> [lock key] -> re-check cache -> dispatch -> normalize
               -> cache.put -> aggregate

The cache holds the provider's validated evaluation, not the aggregated
result; aggregation is cheap and always re-run against the request.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from dispatch.errors import SchemaValidationError
from dispatch.providers import ChatTurn
from dispatch.router import (
    CompletionRequest,
    Deadline,
    DispatchResult,
    FallbackOrchestrator,
    RetryPolicy,
    get_orchestrator,
)
from grader.logging import get_logger
from grader.services.config import GraderConfig, get_grader_config

from .aggregator import aggregate
from .cache import ResultCache, create_cache_store
from .canonical import cache_key
from .locks import KeyedLocks
from .models import EvaluationResult, GeneratedTest, ProviderEvaluation, Question, ScoringRequest, TutorReply
from .normalizer import normalize_evaluation, normalize_json, normalize_model
from .prompts import (
    TUTOR_SYSTEM_INSTRUCTION,
    build_evaluation_prompt,
    build_regenerate_prompt,
    build_test_prompt,
)
from .schemas import EVALUATION_SCHEMA, QUESTION_SCHEMA, TEST_SCHEMA

EVALUATION_ATTEMPTS = 3
TEST_GENERATION_MODEL = "gemini-2.5-pro"
TEST_GENERATION_THINKING_BUDGET = 8192


class GradingService:
    """Evaluation and generation over one FallbackOrchestrator."""

    def __init__(
        self,
        orchestrator: Optional[FallbackOrchestrator] = None,
        cache: Optional[ResultCache] = None,
        config: Optional[GraderConfig] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the grading service.

        Args:
            orchestrator: Provider chain. If None, uses the global orchestrator.
            cache: Result cache. If None, built from GRADER_CACHE_BACKEND.
            config: Grader settings. If None, loads from environment.
            clock: Time source for cache storedAt stamps (e.g. ServerClock.now)
        """
        self.config = config or get_grader_config()
        self.orchestrator = orchestrator or get_orchestrator()
        if cache is None:
            store = create_cache_store(self.config.cache_backend, self.config.cache_path)
            cache = ResultCache(store, clock=clock) if clock else ResultCache(store)
        self.cache = cache
        self._locks = KeyedLocks()
        self.logger = get_logger("GradingService")

    async def evaluate(
        self,
        request: ScoringRequest,
        *,
        provider_hint: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> EvaluationResult:
        """
        Grade a submission.

        Args:
            request: Questions paired with the student's answers
            provider_hint: Provider to try first
            deadline: Wall-clock budget; defaults to GRADER_EVALUATE_TIMEOUT

        Returns:
            EvaluationResult with per-question maxMarks and consistent totals

        Raises:
            NoProviderConfigured / ProviderExhaustedError: No provider produced text
            SchemaValidationError: The winning provider's text was unusable
            DeadlineExceeded: The deadline ran out
        """
        key = cache_key(request)
        if deadline is None:
            deadline = Deadline.optional(self.config.evaluate_timeout)

        cached = self._cached_evaluation(key, request)
        if cached is not None:
            return aggregate(request, cached)

        if not self.config.single_flight:
            evaluation = await self._evaluate_uncached(key, request, provider_hint, deadline)
            return aggregate(request, evaluation)

        async with self._locks.hold(key):
            cached = self._cached_evaluation(key, request)
            if cached is not None:
                return aggregate(request, cached)
            evaluation = await self._evaluate_uncached(key, request, provider_hint, deadline)
        return aggregate(request, evaluation)

    def _cached_evaluation(self, key: str, request: ScoringRequest) -> Optional[ProviderEvaluation]:
        entry = self.cache.get(key)
        if entry is None:
            return None
        try:
            evaluation = normalize_evaluation(entry.result, len(request.questions))
        except SchemaValidationError as e:
            self.logger.warning(f"Cached evaluation {key[:12]} is unusable ({e}); treating as miss")
            return None
        self.logger.info(f"Cache hit for evaluation {key[:12]}")
        return evaluation

    async def _evaluate_uncached(
        self,
        key: str,
        request: ScoringRequest,
        provider_hint: Optional[str],
        deadline: Optional[Deadline],
    ) -> ProviderEvaluation:
        self.logger.info(f"Grading {len(request.questions)} questions (key {key[:12]})")
        result = await self._dispatch(
            CompletionRequest(prompt=build_evaluation_prompt(request), schema=EVALUATION_SCHEMA),
            provider_hint=provider_hint,
            retry_policy=self.orchestrator.retry_policy.with_attempts(EVALUATION_ATTEMPTS),
            deadline=deadline,
        )
        evaluation = normalize_evaluation(result.text, len(request.questions), provider=result.provider)
        self.cache.put(key, evaluation.model_dump(mode="json", by_alias=True))
        return evaluation

    async def generate(
        self,
        prompt: str,
        schema: Optional[Mapping[str, Any]] = None,
        *,
        provider_hint: Optional[str] = None,
        allow_fallback: bool = True,
        system_prompt: Optional[str] = None,
        history: Optional[Sequence[Union[ChatTurn, Mapping[str, Any]]]] = None,
        retry_policy: Optional[RetryPolicy] = None,
        model_overrides: Optional[Dict[str, str]] = None,
        extra_config: Optional[Dict[str, Dict[str, Any]]] = None,
        deadline: Optional[Deadline] = None,
    ) -> Any:
        """
        Run a completion through the fallback chain. Not cached.

        With a schema the reply is parsed and checked against it; without one
        the stripped text is returned.
        """
        result = await self._dispatch(
            CompletionRequest(
                prompt=prompt,
                schema=dict(schema) if schema is not None else None,
                system_prompt=system_prompt,
                history=_as_turns(history),
                model_overrides=model_overrides or {},
                extra_config=extra_config or {},
            ),
            provider_hint=provider_hint,
            allow_fallback=allow_fallback,
            retry_policy=retry_policy,
            deadline=deadline,
        )
        if schema is None:
            return result.text.strip()
        return normalize_json(result.text, schema, provider=result.provider)

    async def generate_test(
        self,
        topic: str,
        num_questions: int,
        question_types: Iterable[str],
        difficulty: str,
        *,
        deadline: Optional[Deadline] = None,
    ) -> GeneratedTest:
        """Draft a complete test on a topic."""
        question_types = list(question_types)
        if num_questions < 1:
            raise ValueError("num_questions must be at least 1")
        if not question_types:
            raise ValueError("question_types cannot be empty")

        data = await self.generate(
            build_test_prompt(topic, num_questions, question_types, difficulty),
            TEST_SCHEMA,
            model_overrides={"gemini": TEST_GENERATION_MODEL},
            extra_config={"gemini": {"thinkingConfig": {"thinkingBudget": TEST_GENERATION_THINKING_BUDGET}}},
            deadline=deadline,
        )
        test = normalize_model(data, GeneratedTest)
        if len(test.questions) != num_questions:
            self.logger.warning(f"Asked for {num_questions} questions, got {len(test.questions)}")
        return test

    async def regenerate_question(self, question: Question, *, deadline: Optional[Deadline] = None) -> Question:
        """Replace a question with a new one of the same type and marks."""
        data = await self.generate(
            build_regenerate_prompt(question),
            QUESTION_SCHEMA,
            retry_policy=self.orchestrator.retry_policy.with_attempts(1),
            deadline=deadline,
        )
        regenerated = normalize_model(data, Question)
        if regenerated.type != question.type or regenerated.marks != question.marks:
            self.logger.warning(
                f"Regenerated question drifted to {regenerated.type.value}/{regenerated.marks}; "
                f"restoring {question.type.value}/{question.marks}"
            )
            regenerated = regenerated.model_copy(update={"type": question.type, "marks": question.marks})
        return regenerated

    async def tutor_reply(
        self,
        prompt: str,
        history: Optional[Sequence[Union[ChatTurn, Mapping[str, Any]]]] = None,
        *,
        deadline: Optional[Deadline] = None,
    ) -> TutorReply:
        text = await self.generate(
            prompt,
            system_prompt=TUTOR_SYSTEM_INSTRUCTION,
            history=history,
            retry_policy=self.orchestrator.retry_policy.with_attempts(1),
            deadline=deadline,
        )
        return TutorReply(text=text)

    async def _dispatch(self, request: CompletionRequest, **kwargs: Any) -> DispatchResult:
        result = await self.orchestrator.dispatch(request, **kwargs)
        if result.from_fallback:
            failed = sorted({o.provider for o in result.outcomes if not o.succeeded})
            self.logger.info(f"Served by {result.provider} after {', '.join(failed)} failed")
        return result

    def status(self) -> Dict[str, Any]:
        return {
            "providers": self.orchestrator.status(),
            "cache": self.cache.stats(),
            "single_flight": self.config.single_flight,
        }


def _as_turns(history: Optional[Sequence[Union[ChatTurn, Mapping[str, Any]]]]) -> List[ChatTurn]:
    return [turn if isinstance(turn, ChatTurn) else ChatTurn.from_dict(turn) for turn in history or []]


_grading_service: Optional[GradingService] = None


def get_grading_service() -> GradingService:
    """Get the global grading service instance."""
    global _grading_service
    if _grading_service is None:
        _grading_service = GradingService()
    return _grading_service


def reset_grading_service() -> None:
    global _grading_service
    _grading_service = None


__all__ = [
    "EVALUATION_ATTEMPTS",
    "GradingService",
    "get_grading_service",
    "reset_grading_service",
]
