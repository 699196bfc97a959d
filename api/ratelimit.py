"""Rate limiting for the unauthenticated booking endpoint (slowapi)."""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from core.config import get_settings

logger = logging.getLogger(__name__)


def booking_rate_limit() -> str:
    return get_settings().booking_rate_limit


def _build_limiter() -> Limiter:
    settings = get_settings()
    enabled = settings.rate_limit_enabled and settings.app_env != "test"
    return Limiter(
        key_func=get_remote_address,
        storage_uri=settings.rate_limit_storage_uri,
        enabled=enabled,
        headers_enabled=False,
    )


limiter = _build_limiter()


def rate_limit_exceeded_handler(request: Request, exc: Exception) -> JSONResponse:
    headers = {}
    retry_after = getattr(exc, "retry_after", None) if isinstance(exc, RateLimitExceeded) else None
    if retry_after is not None:
        headers["Retry-After"] = str(retry_after)
    logger.warning(
        "booking_rate_limited",
        extra={"ctx_path": request.url.path, "ctx_client_ip": get_remote_address(request)},
    )
    body = {"detail": {"code": "RATE_LIMITED", "message": "Too many booking attempts, please wait a moment"}}
    return JSONResponse(status_code=429, content=body, headers=headers)
