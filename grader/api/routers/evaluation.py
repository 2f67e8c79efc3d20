from typing import Optional

from fastapi import APIRouter, Depends, Query

from grader.api.dependencies import get_service
from grader.logging import get_logger
from grader.services.grading import EvaluationResult, GradingService, ScoringRequest

router = APIRouter()

logger = get_logger("EvaluationAPI")


@router.post("/evaluate", response_model=EvaluationResult)
async def evaluate_submission(
    request: ScoringRequest,
    provider: Optional[str] = Query(default=None, description="Provider to try first"),
    service: GradingService = Depends(get_service),
):
    """
    Grade a test submission.

    Identical submissions are served from the evaluation cache. Errors are
    mapped to 502/503/504 by the application's exception handlers.
    """
    logger.info(f"Evaluation requested for {len(request.questions)} questions")
    return await service.evaluate(request, provider_hint=provider)
