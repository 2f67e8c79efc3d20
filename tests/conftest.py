import json
from typing import Any, Dict, List, Optional

import pytest

from dispatch.errors import ProviderUnconfigured, TransportError
from dispatch.providers import ProviderClient, ProviderSpec
from dispatch.router import FallbackOrchestrator, RetryPolicy, reset_orchestrator
from grader.services.config import GraderConfig
from grader.services.grading import (
    GradingService,
    InMemoryCacheStore,
    ResultCache,
    ScoringRequest,
    reset_grading_service,
)


class ScriptedClient(ProviderClient):
    """Provider double replaying a script of replies (str) and failures (Exception).

    The last script item repeats once the script runs out.
    """

    def __init__(self, name: str, script=(), priority: int = 0, credential: str = "test-key"):
        super().__init__(ProviderSpec(name=name, credential=credential, model=f"{name}-model", priority=priority))
        self.script = list(script)
        self.calls: List[Dict[str, Any]] = []

    async def generate(self, prompt, schema=None, **kwargs):
        if not self.is_configured:
            raise ProviderUnconfigured(self.name)
        self.calls.append({"prompt": prompt, "schema": schema, **kwargs})
        if not self.script:
            raise TransportError(self.name, f"{self.name}: nothing scripted")
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, Exception):
            raise item
        return item

    def build_request(self, *args, **kwargs):
        raise NotImplementedError

    def extract_text(self, data):
        raise NotImplementedError


class SleepRecorder:
    """Stands in for asyncio.sleep and remembers requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def server_error(provider: str, status: int = 500) -> TransportError:
    return TransportError(provider, f"{provider} API error", status_code=status, body="boom")


def evaluation_json(scores, feedback: str = "Solid work.", fenced: bool = False) -> str:
    """Provider-style evaluation text for the given per-slot scores."""
    payload = {
        "overallScore": 0,
        "feedback": feedback,
        "suggestions": "Review punctuation.",
        "strengths": "Clear reasoning.",
        "weaknesses": "Capitalization.",
        "questionScores": [{"score": s, "feedback": f"Slot {i + 1}"} for i, s in enumerate(scores)],
    }
    text = json.dumps(payload)
    return f"```json\n{text}\n```" if fenced else text


@pytest.fixture(autouse=True)
def reset_singletons():
    yield
    reset_orchestrator()
    reset_grading_service()


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def retry_policy(sleeps) -> RetryPolicy:
    """Three attempts, 1s base delay, zero jitter, no real sleeping."""
    return RetryPolicy(max_attempts=3, base_delay=1.0, max_jitter=1.0, sleep=sleeps, jitter=lambda: 0.0)


@pytest.fixture
def make_orchestrator(retry_policy):
    def _make(*clients: ProviderClient, policy: Optional[RetryPolicy] = None) -> FallbackOrchestrator:
        return FallbackOrchestrator(list(clients), retry_policy=policy or retry_policy, log_requests=False)

    return _make


@pytest.fixture
def make_service(make_orchestrator):
    def _make(*clients: ProviderClient, cache: Optional[ResultCache] = None, **config: Any) -> GradingService:
        settings = {"cache_backend": "memory", "single_flight": True, "evaluate_timeout": 0.0}
        settings.update(config)
        return GradingService(
            orchestrator=make_orchestrator(*clients),
            cache=cache or ResultCache(InMemoryCacheStore()),
            config=GraderConfig(**settings),
        )

    return _make


@pytest.fixture
def simple_request() -> ScoringRequest:
    """Two short-answer questions worth 5 marks each."""
    return ScoringRequest.model_validate(
        {
            "questions": [
                {"id": "q1", "type": "short-answer", "text": "Define photosynthesis.", "marks": 5},
                {"id": "q2", "type": "short-answer", "text": "Name the stages of mitosis.", "marks": 5},
            ],
            "answers": ["Plants make food from light.", "Prophase, metaphase, anaphase, telophase."],
        }
    )


@pytest.fixture
def comprehension_request() -> ScoringRequest:
    """One comprehension group (3 + 2 marks) and one multiple-choice question (1 mark)."""
    return ScoringRequest.model_validate(
        {
            "questions": [
                {
                    "type": "reading-comprehension",
                    "text": "Read the passage and answer.",
                    "marks": 0,
                    "passage": "The river rose after the storm.",
                    "comprehensionQuestions": [
                        {"question": "What rose?", "sampleAnswer": "The river.", "marks": 3},
                        {"question": "When?", "sampleAnswer": "After the storm.", "marks": 2},
                    ],
                },
                {
                    "type": "multiple-choice",
                    "text": "2 + 2 = ?",
                    "marks": 1,
                    "options": ["3", "4"],
                    "correctAnswer": "B",
                },
            ],
            "answers": [{"0": "The river.", "1": "After the storm."}, "B"],
        }
    )
