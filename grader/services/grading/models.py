"""
Grading Models
==============

Pydantic models for everything that crosses the grading boundary: the
submission being graded, the provider's raw evaluation, the enriched result
returned to callers, and the shapes produced by the generation helpers.

Wire names are camelCase (`questionScores`, `comprehensionQuestions`, ...);
Python code uses snake_case. Both spellings are accepted on input.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple-choice"
    TRUE_FALSE = "true-false"
    SHORT_ANSWER = "short-answer"
    LONG_ANSWER = "long-answer"
    READING_COMPREHENSION = "reading-comprehension"


class GradingModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ComprehensionQuestion(GradingModel):
    """One sub-question under a reading-comprehension passage."""

    question: str = Field(validation_alias=AliasChoices("question", "text"))
    sample_answer: Optional[str] = Field(default=None, alias="sampleAnswer")
    type: Optional[str] = None
    marks: float = Field(default=0, ge=0)
    marking_scheme: Optional[str] = Field(default=None, alias="markingScheme")


class Question(GradingModel):
    """A test question. Row ids are carried through but never affect grading."""

    id: Optional[Union[str, int]] = None
    test_id: Optional[Union[str, int]] = Field(
        default=None, validation_alias=AliasChoices("test_id", "testId")
    )
    type: QuestionType
    text: str
    marks: float = Field(ge=0)
    options: Optional[List[str]] = None
    correct_answer: Optional[Any] = Field(default=None, alias="correctAnswer")
    passage: Optional[str] = None
    comprehension_questions: Optional[List[ComprehensionQuestion]] = Field(
        default=None,
        validation_alias=AliasChoices(
            "comprehensionQuestions", "comprehension_questions", "comprehensionSubQuestions"
        ),
        serialization_alias="comprehensionQuestions",
    )
    expected_word_limit: Optional[int] = Field(default=None, alias="expectedWordLimit")
    marking_scheme: Optional[str] = Field(default=None, alias="markingScheme")
    media: Optional[Dict[str, Any]] = None

    @property
    def is_comprehension_group(self) -> bool:
        return self.type == QuestionType.READING_COMPREHENSION and bool(self.comprehension_questions)


# A plain answer, or sub-question index -> answer for comprehension items
Answer = Union[str, Dict[str, str]]


def _answer_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ScoringRequest(GradingModel):
    """A student's submission: questions paired one-to-one with answers."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    questions: List[Question]
    answers: List[Answer]
    request_id: Optional[str] = Field(default=None, alias="requestId")
    submitted_at: Optional[Any] = Field(default=None, alias="submittedAt")

    @field_validator("answers", mode="before")
    @classmethod
    def _fill_unanswered(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        filled = []
        for answer in value:
            if isinstance(answer, dict):
                filled.append({str(k): _answer_text(v) for k, v in answer.items()})
            elif isinstance(answer, list):
                # Comprehension answers sometimes arrive as a positional list
                filled.append({str(i): _answer_text(v) for i, v in enumerate(answer)})
            else:
                filled.append(_answer_text(answer))
        return filled

    @model_validator(mode="after")
    def _answers_match_questions(self) -> "ScoringRequest":
        if len(self.answers) != len(self.questions):
            raise ValueError(
                f"answers must pair one-to-one with questions "
                f"(got {len(self.answers)} answers for {len(self.questions)} questions)"
            )
        return self


class QuestionScore(GradingModel):
    """Per-question score as returned by a provider."""

    score: float
    feedback: str


class ScoredQuestion(QuestionScore):
    """Per-question score enriched with the question's maximum marks."""

    max_marks: float = Field(alias="maxMarks")


class ProviderEvaluation(GradingModel):
    """A provider's evaluation after validation. This is what gets cached."""

    feedback: str
    suggestions: str
    strengths: str
    weaknesses: str
    question_scores: List[QuestionScore] = Field(alias="questionScores")

    @field_validator("suggestions", "strengths", "weaknesses", mode="before")
    @classmethod
    def _join_lists(cls, value: Any) -> Any:
        if isinstance(value, list):
            return "\n".join(str(item) for item in value)
        return value


class EvaluationResult(GradingModel):
    """Score-consistent evaluation returned to the caller."""

    feedback: str
    suggestions: str
    strengths: str
    weaknesses: str
    question_scores: List[ScoredQuestion] = Field(alias="questionScores")
    overall_score: int = Field(alias="overallScore")
    total_awarded_marks: float = Field(alias="totalAwardedMarks")
    total_possible_marks: float = Field(alias="totalPossibleMarks")

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class GeneratedTest(GradingModel):
    title: str
    questions: List[Question]


class TutorReply(GradingModel):
    text: str


__all__ = [
    "Answer",
    "ComprehensionQuestion",
    "EvaluationResult",
    "GeneratedTest",
    "ProviderEvaluation",
    "Question",
    "QuestionScore",
    "QuestionType",
    "ScoredQuestion",
    "ScoringRequest",
    "TutorReply",
]
