"""
Score aggregation.

A provider returns raw marks per question slot. The aggregator attaches each
slot's maximum, totals both sides and derives the overall percentage:

    maxMarks      = question.marks, or the sum of sub-question marks for a
                    reading-comprehension group (one slot per group)
    overallScore  = round(awarded / possible * 100), halves rounding up;
                    0 when nothing was possible
"""

import math
from typing import Sequence

from .models import EvaluationResult, ProviderEvaluation, Question, ScoredQuestion, ScoringRequest


def max_marks_for(question: Question) -> float:
    if question.is_comprehension_group:
        return sum(sub.marks for sub in question.comprehension_questions)
    return question.marks


def overall_percentage(awarded: float, possible: float) -> int:
    if possible <= 0:
        return 0
    return int(math.floor(awarded / possible * 100 + 0.5))


def aggregate(request: ScoringRequest, evaluation: ProviderEvaluation) -> EvaluationResult:
    """Combine a validated provider evaluation with the request's mark scheme."""
    questions: Sequence[Question] = request.questions
    if len(evaluation.question_scores) != len(questions):
        raise ValueError(
            f"Evaluation has {len(evaluation.question_scores)} scores for {len(questions)} questions"
        )

    scored = [
        ScoredQuestion(score=item.score, feedback=item.feedback, max_marks=max_marks_for(question))
        for question, item in zip(questions, evaluation.question_scores)
    ]
    awarded = sum(item.score for item in scored)
    possible = sum(item.max_marks for item in scored)

    return EvaluationResult(
        feedback=evaluation.feedback,
        suggestions=evaluation.suggestions,
        strengths=evaluation.strengths,
        weaknesses=evaluation.weaknesses,
        question_scores=scored,
        overall_score=overall_percentage(awarded, possible),
        total_awarded_marks=awarded,
        total_possible_marks=possible,
    )


__all__ = ["aggregate", "max_marks_for", "overall_percentage"]
