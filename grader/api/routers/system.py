from datetime import datetime

from fastapi import APIRouter, Depends

from grader.api.dependencies import get_clock, get_service
from grader.services.clock import ServerClock
from grader.services.grading import GradingService

router = APIRouter()


@router.get("/time")
async def server_time(clock: ServerClock = Depends(get_clock)):
    """Reference time for clients measuring their clock skew (epoch ms)."""
    return {"serverTime": int(clock.now_ms())}


@router.get("/health")
async def health_check(service: GradingService = Depends(get_service)):
    """
    Health check for monitoring and client connection tests.

    Reports "degraded" when no provider has a credential, since every
    evaluation would fail.
    """
    status = service.status()
    configured = [p["name"] for p in status["providers"] if p["configured"]]
    return {
        "status": "healthy" if configured else "degraded",
        "timestamp": datetime.now().isoformat(),
        "version": "1.0.0",
        "configured_providers": configured,
        **status,
    }
