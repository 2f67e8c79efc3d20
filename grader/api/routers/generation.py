from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from grader.api.dependencies import get_service
from grader.logging import get_logger
from grader.services.grading import GeneratedTest, GradingService, Question, QuestionType, TutorReply

router = APIRouter()

logger = get_logger("GenerationAPI")


class GenerateRequest(BaseModel):
    """Free-form completion, optionally shaped by a JSON schema."""

    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(min_length=1)
    response_schema: Optional[Dict[str, Any]] = Field(default=None, alias="schema")
    provider_hint: Optional[str] = Field(default=None, alias="providerHint")
    system_prompt: Optional[str] = Field(default=None, alias="systemPrompt")
    allow_fallback: bool = Field(default=True, alias="allowFallback")


class GenerateTestRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    topic: str = Field(min_length=1)
    num_questions: int = Field(alias="numQuestions", ge=1, le=50)
    question_types: List[QuestionType] = Field(alias="questionTypes", min_length=1)
    difficulty: str = "medium"


class RegenerateRequest(BaseModel):
    question: Question


class TutorRequest(BaseModel):
    prompt: str = Field(min_length=1)
    history: List[Dict[str, Any]] = Field(default_factory=list)


@router.post("/generate")
async def generate(body: GenerateRequest, service: GradingService = Depends(get_service)):
    """Run a completion through the provider chain (not cached)."""
    result = await service.generate(
        body.prompt,
        body.response_schema,
        provider_hint=body.provider_hint,
        allow_fallback=body.allow_fallback,
        system_prompt=body.system_prompt,
    )
    if body.response_schema is None:
        return {"text": result}
    return result


@router.post("/tests/generate", response_model=GeneratedTest, response_model_exclude_none=True)
async def generate_test(body: GenerateTestRequest, service: GradingService = Depends(get_service)):
    logger.info(f"Generating {body.num_questions} questions on '{body.topic}' ({body.difficulty})")
    return await service.generate_test(
        body.topic,
        body.num_questions,
        [t.value for t in body.question_types],
        body.difficulty,
    )


@router.post("/questions/regenerate", response_model=Question, response_model_exclude_none=True)
async def regenerate_question(body: RegenerateRequest, service: GradingService = Depends(get_service)):
    return await service.regenerate_question(body.question)


@router.post("/tutor", response_model=TutorReply)
async def tutor(body: TutorRequest, service: GradingService = Depends(get_service)):
    return await service.tutor_reply(body.prompt, body.history)
