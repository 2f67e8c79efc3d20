"""
Middleware for trace context propagation.
Injects trace ID on request ingress and measures latency.
"""

import time
from typing import Callable, List, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from grader.logging.trace import (
    extract_trace_from_headers,
    generate_trace_id,
    trace_context,
)


class TraceContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware that:
    1. Extracts or generates trace ID from request headers
    2. Sets the trace context for the duration of the request
    3. Measures request latency
    4. Adds trace headers to response
    """

    def __init__(self, app, exclude_paths: Optional[List[str]] = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or ["/docs", "/redoc", "/openapi.json"]

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if any(request.url.path.startswith(p) for p in self.exclude_paths):
            return await call_next(request)

        trace_id, parent_span_id, span_id = extract_trace_from_headers(request.headers)
        operation = f"{request.method.lower()}_{request.url.path.strip('/').replace('/', '_').replace('-', '_')}"

        with trace_context(
            trace_id=trace_id or generate_trace_id(),
            parent_span_id=parent_span_id,
            span_id=span_id,
            component="api",
            operation=operation,
        ) as ctx:
            start_time = time.perf_counter()
            response = await call_next(request)
            latency_ms = (time.perf_counter() - start_time) * 1000

            response.headers.update(ctx.to_headers())
            response.headers["X-Request-Latency-Ms"] = f"{latency_ms:.2f}"
            return response


def add_trace_middleware(app, exclude_paths: Optional[List[str]] = None):
    """Add trace middleware to FastAPI app."""
    app.add_middleware(TraceContextMiddleware, exclude_paths=exclude_paths)
