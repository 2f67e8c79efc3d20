"""Prompt templates for grading, test generation, regeneration and tutoring."""

import json
from typing import Iterable

from .models import Question, ScoringRequest

EVALUATION_PROMPT = """
You are an expert AI Test Evaluator, acting as a very strict and meticulous teacher. Your task is to grade a student's test submission with a high standard for correctness in all aspects.

**Primary Grading Criteria:**
- Evaluate the answers strictly based on the factual accuracy and completeness according to the provided questions, correct answers, and marking schemes.

**Secondary (but equally important) Grading Criteria:**
- **Punctuation:** Penalize for missing or incorrect punctuation (e.g., periods, commas, question marks).
- **Capitalization:** Penalize for incorrect capitalization (e.g., start of sentences, proper nouns).
- **Grammar and Spelling:** Penalize for grammatical errors, awkward phrasing, and spelling mistakes.
- **Clarity and Cohesion:** The answers must be clear, well-structured, and easy to understand.

For each question, provide a specific score and constructive feedback that explicitly mentions any grammatical, punctuation, or capitalization errors. Deduct marks for these errors where appropriate.
Then, provide overall feedback, strengths, weaknesses, and suggestions for improvement.

Here is the test structure and the student's answers:
{submission}

**IMPORTANT INSTRUCTIONS:**
- The 'questionScores' array in your response MUST have exactly {slot_count} items, one per entry in the 'questions' array, in the same order.
- For reading comprehension questions, evaluate all sub-answers and provide a single total score and combined feedback for the main question. The total score should be the sum of marks for the sub-questions.
- Award marks precisely based on the provided 'marks' and 'markingScheme' for each question, **deducting marks for the grammatical and formatting errors mentioned above.**
- Scores are raw marks, never percentages.
- Do not calculate the final percentage 'overallScore'; the grader will do this. Set it to 0.
"""

TEST_GENERATION_PROMPT = """You are an expert educator. Generate a high-quality test for a '{difficulty}' level on the topic of "{topic}".
Create exactly {num_questions} questions with deep, meaningful content.
The question types MUST be from this list: {question_types}."""

REGENERATE_QUESTION_PROMPT = """Regenerate the following question. Create a new, different question on the same underlying topic.
The new question MUST have the same type ('{type}'), and the same number of marks ({marks}).
Keep the difficulty level similar.

Original Question: "{text}\""""

TUTOR_SYSTEM_INSTRUCTION = (
    "You are SmarTest AI Tutor, a friendly and encouraging study assistant. "
    "Your goal is to help students understand concepts, not just give them answers. "
    "Explain things clearly and concisely. If a student asks for a direct answer to a "
    "test-like question, guide them toward the solution instead of providing it outright."
)


def build_evaluation_prompt(request: ScoringRequest) -> str:
    submission = {
        "questions": [
            q.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"id", "test_id"})
            for q in request.questions
        ],
        "studentAnswers": request.answers,
    }
    return EVALUATION_PROMPT.format(
        submission=json.dumps(submission, indent=2, ensure_ascii=False),
        slot_count=len(request.questions),
    )


def build_test_prompt(topic: str, num_questions: int, question_types: Iterable[str], difficulty: str) -> str:
    return TEST_GENERATION_PROMPT.format(
        difficulty=difficulty,
        topic=topic,
        num_questions=num_questions,
        question_types=", ".join(question_types),
    )


def build_regenerate_prompt(question: Question) -> str:
    marks = int(question.marks) if float(question.marks).is_integer() else question.marks
    return REGENERATE_QUESTION_PROMPT.format(type=question.type.value, marks=marks, text=question.text)


__all__ = [
    "EVALUATION_PROMPT",
    "REGENERATE_QUESTION_PROMPT",
    "TEST_GENERATION_PROMPT",
    "TUTOR_SYSTEM_INSTRUCTION",
    "build_evaluation_prompt",
    "build_regenerate_prompt",
    "build_test_prompt",
]
