from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dispatch.errors import (
    DeadlineExceeded,
    NoProviderConfigured,
    ProviderExhaustedError,
    SchemaValidationError,
)
from grader.api.middleware import add_trace_middleware
from grader.api.routers import evaluation, generation, system
from grader.logging import configure_logging, get_logger
from grader.logging.trace import filter_dict_secrets, filter_secrets
from grader.services.clock import ServerClock
from grader.services.config import GraderConfig, get_grader_config
from grader.services.grading import GradingService

logger = get_logger("API")

UNAVAILABLE_MESSAGE = "Evaluation service unavailable, please retry."
INVALID_RESPONSE_MESSAGE = "Invalid AI response, please resubmit."
TIMEOUT_MESSAGE = "Evaluation timed out, please retry."


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NoProviderConfigured)
    async def no_provider_handler(request: Request, exc: NoProviderConfigured):
        logger.error(f"{request.url.path}: {exc}")
        return JSONResponse(status_code=503, content={"error": UNAVAILABLE_MESSAGE, "detail": str(exc)})

    @app.exception_handler(ProviderExhaustedError)
    async def exhausted_handler(request: Request, exc: ProviderExhaustedError):
        logger.error(f"{request.url.path}: {filter_secrets(str(exc))}")
        return JSONResponse(
            status_code=503,
            content={
                "error": UNAVAILABLE_MESSAGE,
                "detail": filter_secrets(str(exc)),
                "failures": {name: filter_secrets(reason) for name, reason in exc.failures.items()},
                "attempts": [filter_dict_secrets(o.to_dict()) for o in exc.outcomes],
            },
        )

    @app.exception_handler(SchemaValidationError)
    async def invalid_response_handler(request: Request, exc: SchemaValidationError):
        logger.error(f"{request.url.path}: unusable response from {exc.provider or 'provider'}: {exc}")
        return JSONResponse(status_code=502, content={"error": INVALID_RESPONSE_MESSAGE, "detail": str(exc)})

    @app.exception_handler(DeadlineExceeded)
    async def deadline_handler(request: Request, exc: DeadlineExceeded):
        logger.error(f"{request.url.path}: {exc}")
        return JSONResponse(status_code=504, content={"error": TIMEOUT_MESSAGE, "detail": str(exc)})


def create_app(
    service: Optional[GradingService] = None,
    config: Optional[GraderConfig] = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        service: Grading service to serve. If None, one is built at startup.
        config: Grader settings. If None, loads from environment.
    """
    config = config or get_grader_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(config.log_level)
        logger.info("Application startup")

        clock = ServerClock()
        await clock.synchronize(config.time_source_url)
        app.state.clock = clock

        if getattr(app.state, "grading_service", None) is None:
            app.state.grading_service = GradingService(config=config, clock=clock.now)

        providers = app.state.grading_service.status()["providers"]
        configured = [p["name"] for p in providers if p["configured"]]
        if configured:
            logger.info(f"Provider chain: {', '.join(configured)}")
        else:
            logger.warning("No AI provider credential configured; evaluations will fail with 503")
        yield
        logger.info("Application shutdown")

    app = FastAPI(title="SmarTest Grader API", version="1.0.0", lifespan=lifespan)
    app.state.grading_service = service

    add_trace_middleware(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)

    app.include_router(evaluation.router, prefix="/api/v1", tags=["evaluation"])
    app.include_router(generation.router, prefix="/api/v1", tags=["generation"])
    app.include_router(system.router, prefix="/api/v1", tags=["system"])

    @app.get("/")
    async def root():
        return {"message": "Welcome to SmarTest Grader API"}

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    import os

    import uvicorn

    uvicorn.run(
        "grader.api.main:app",
        host=os.getenv("GRADER_HOST", "0.0.0.0"),
        port=int(os.getenv("GRADER_PORT", "8001")),
    )


if __name__ == "__main__":
    run()
