from __future__ import annotations

import logging
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from api.bookings import router as bookings_router
from api.observability import monotonic_ms, new_request_id, request_log_fields
from api.plans import router as plans_router
from api.ratelimit import limiter, rate_limit_exceeded_handler
from api.routes import router
from core.config import get_settings
from core.errors import CooldownError, SchedulingError
from core.logging_config import reset_request_id, set_request_id, setup_logging

logger = logging.getLogger(__name__)


def scheduling_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, SchedulingError)
    headers = {}
    if isinstance(exc, CooldownError):
        headers["Retry-After"] = str(exc.retry_after_seconds)
    if exc.status_code >= 500:
        logger.error("scheduling_error", extra={"ctx_code": exc.code, "ctx_path": request.url.path})
    else:
        logger.info("scheduling_rejected", extra={"ctx_code": exc.code, "ctx_path": request.url.path})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()}, headers=headers)


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)

    app = FastAPI(title="Coach Scheduling API", version="1.0.0")
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(SchedulingError, scheduling_error_handler)
    app.include_router(router)
    app.include_router(bookings_router)
    app.include_router(plans_router)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context_and_logging(request: Request, call_next: Callable) -> Response:
        header_name = settings.request_id_header_name or "X-Request-ID"
        request_id = (request.headers.get(header_name) or "").strip() or new_request_id()
        token = set_request_id(request_id)
        started_ms = monotonic_ms()
        client_ip = getattr(request.client, "host", None)
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = monotonic_ms() - started_ms
            logger.exception(
                "http_request_error",
                extra=request_log_fields(
                    method=request.method,
                    path=request.url.path,
                    status_code=500,
                    duration_ms=duration_ms,
                    client_ip=client_ip,
                ),
            )
            raise
        else:
            response.headers[header_name] = request_id
            duration_ms = monotonic_ms() - started_ms
            logger.info(
                "http_request",
                extra=request_log_fields(
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=duration_ms,
                    client_ip=client_ip,
                ),
            )
            return response
        finally:
            reset_request_id(token)

    return app


def run() -> None:
    import uvicorn

    uvicorn.run("api.main:create_app", factory=True, host="0.0.0.0", port=8000)


app = create_app()
