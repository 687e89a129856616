import logging
import time
from uuid import uuid4

from fastapi import FastAPI
from fastapi import HTTPException
from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError

from app.api.v1.readers import router as readers_router
from app.api.v1.reading_requests import router as reading_requests_router
from app.api.v1.scheduling import router as scheduling_router
from app.core.exceptions import (
    SchedulingError,
    http_exception_handler,
    scheduling_exception_handler,
    validation_exception_handler,
)
from app.core.logging import setup_logging
from app.core.metrics import REQUEST_COUNT, REQUEST_LATENCY, render_metrics
from app.core.request_context import request_id_ctx_var

app = FastAPI(title="Reading Scheduler API", version="0.1.0")
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(SchedulingError, scheduling_exception_handler)
setup_logging()
logger = logging.getLogger("app.request")

app.include_router(readers_router)
app.include_router(scheduling_router)
app.include_router(reading_requests_router)


def _route_path(request: Request) -> str:
    # label by route template so /scheduling/readings/{reading_id} stays one series
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


def _observe(method: str, path: str, status_code: int, started: float) -> float:
    elapsed = time.perf_counter() - started
    REQUEST_COUNT.labels(method=method, path=path, status_code=status_code).inc()
    REQUEST_LATENCY.labels(method=method, path=path).observe(elapsed)
    return elapsed * 1000


@app.middleware("http")
async def observability_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid4())
    token = request_id_ctx_var.set(request_id)
    started = time.perf_counter()
    method = request.method
    try:
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = _observe(method, _route_path(request), 500, started)
            logger.exception(
                "request_failed method=%s path=%s status=500 duration_ms=%.2f",
                method,
                request.url.path,
                duration_ms,
            )
            raise

        duration_ms = _observe(method, _route_path(request), response.status_code, started)
        response.headers["X-Request-ID"] = request_id
        logger.info(
            "request_completed method=%s path=%s status=%s duration_ms=%.2f",
            method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response
    finally:
        request_id_ctx_var.reset(token)


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/metrics", tags=["observability"])
def metrics() -> Response:
    payload, content_type = render_metrics()
    return Response(content=payload, media_type=content_type)
