"""Response schemas sent to providers (JSON-schema style type names)."""

EVALUATION_SCHEMA = {
    "type": "object",
    "properties": {
        "overallScore": {
            "type": "number",
            "description": "Deprecated. The overall percentage is computed by the grader. Return 0.",
        },
        "feedback": {
            "type": "string",
            "description": "Overall constructive feedback for the student on their performance.",
        },
        "suggestions": {
            "type": "string",
            "description": "Actionable suggestions for what the student should study or practice next.",
        },
        "strengths": {
            "type": "string",
            "description": "A summary of the topics or skills the student demonstrated well.",
        },
        "weaknesses": {
            "type": "string",
            "description": "A summary of the topics or skills the student struggled with.",
        },
        "questionScores": {
            "type": "array",
            "description": "An array of scores and feedback for each individual question.",
            "items": {
                "type": "object",
                "properties": {
                    "score": {
                        "type": "number",
                        "description": "The raw number of marks awarded for this question.",
                    },
                    "feedback": {
                        "type": "string",
                        "description": "Specific feedback for the student's answer to this question.",
                    },
                },
                "required": ["score", "feedback"],
            },
        },
    },
    "required": ["overallScore", "feedback", "suggestions", "strengths", "weaknesses", "questionScores"],
}

_COMPREHENSION_ITEMS = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "question": {"type": "string"},
            "sampleAnswer": {"type": "string"},
            "type": {"type": "string"},
            "marks": {"type": "number"},
        },
    },
}

QUESTION_SCHEMA = {
    "type": "object",
    "properties": {
        "type": {"type": "string"},
        "text": {"type": "string"},
        "marks": {"type": "number"},
        "options": {"type": "array", "items": {"type": "string"}},
        "correctAnswer": {"type": "string"},
        "passage": {"type": "string"},
        "comprehensionQuestions": _COMPREHENSION_ITEMS,
        "expectedWordLimit": {"type": "number"},
        "markingScheme": {"type": "string"},
    },
    "required": ["type", "text", "marks"],
}

TEST_SCHEMA = {
    "type": "object",
    "properties": {
        "title": {
            "type": "string",
            "description": "A creative and relevant title for the test based on the topic.",
        },
        "questions": {
            "type": "array",
            "description": "An array of question objects.",
            "items": {
                "type": "object",
                "properties": {
                    "type": {
                        "type": "string",
                        "description": "The type of the question (e.g., 'multiple-choice').",
                    },
                    "text": {"type": "string", "description": "The main text or prompt for the question."},
                    "marks": {"type": "number", "description": "The number of marks allocated to this question."},
                    "options": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "An array of options for multiple-choice questions.",
                    },
                    "correctAnswer": {
                        "type": "string",
                        "description": (
                            "The correct answer. For multiple-choice, this should be 'A', 'B', etc. "
                            "For others, it's a sample answer."
                        ),
                    },
                    "passage": {
                        "type": "string",
                        "description": "A reading passage for reading-comprehension questions.",
                    },
                    "comprehensionQuestions": _COMPREHENSION_ITEMS,
                },
                "required": ["type", "text", "marks"],
            },
        },
    },
    "required": ["title", "questions"],
}

__all__ = ["EVALUATION_SCHEMA", "QUESTION_SCHEMA", "TEST_SCHEMA"]
