"""
Grading
=======

AI-assisted evaluation of test submissions, plus the generation helpers that
share its provider chain.

Usage:
    from grader.services.grading import ScoringRequest, get_grading_service

    service = get_grading_service()
    result = await service.evaluate(ScoringRequest.model_validate(payload))
"""

from .aggregator import aggregate, max_marks_for
from .cache import (
    CacheEntry,
    InMemoryCacheStore,
    NullCacheStore,
    ResultCache,
    SqliteCacheStore,
    create_cache_store,
)
from .canonical import cache_key, canonicalize, content_hash
from .locks import KeyedLocks
from .models import (
    ComprehensionQuestion,
    EvaluationResult,
    GeneratedTest,
    ProviderEvaluation,
    Question,
    QuestionScore,
    QuestionType,
    ScoredQuestion,
    ScoringRequest,
    TutorReply,
)
from .normalizer import normalize_evaluation, normalize_json, normalize_model, strip_code_fence
from .service import GradingService, get_grading_service, reset_grading_service

__all__ = [
    "CacheEntry",
    "ComprehensionQuestion",
    "EvaluationResult",
    "GeneratedTest",
    "GradingService",
    "InMemoryCacheStore",
    "KeyedLocks",
    "NullCacheStore",
    "ProviderEvaluation",
    "Question",
    "QuestionScore",
    "QuestionType",
    "ResultCache",
    "ScoredQuestion",
    "ScoringRequest",
    "SqliteCacheStore",
    "TutorReply",
    "aggregate",
    "cache_key",
    "canonicalize",
    "content_hash",
    "create_cache_store",
    "get_grading_service",
    "max_marks_for",
    "normalize_evaluation",
    "normalize_json",
    "normalize_model",
    "reset_grading_service",
    "strip_code_fence",
]
