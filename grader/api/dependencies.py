from fastapi import Request

from grader.services.clock import ServerClock
from grader.services.grading import GradingService, get_grading_service


def get_service(request: Request) -> GradingService:
    """Grading service held on the app state, or the global one."""
    service = getattr(request.app.state, "grading_service", None)
    return service if service is not None else get_grading_service()


def get_clock(request: Request) -> ServerClock:
    clock = getattr(request.app.state, "clock", None)
    if clock is None:
        clock = request.app.state.clock = ServerClock()
    return clock
