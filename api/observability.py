from __future__ import annotations

import time
from typing import Optional
from uuid import uuid4

from core.db import get_query_stats


def new_request_id() -> str:
    return uuid4().hex


def request_log_fields(*, method: str, path: str, status_code: int, duration_ms: float, client_ip: Optional[str]) -> dict[str, object]:
    return {
        "method": method,
        "path": path,
        "status_code": int(status_code),
        "duration_ms": round(float(duration_ms), 2),
        "client_ip": client_ip or "",
    }


def monotonic_ms() -> float:
    return time.perf_counter() * 1000.0


def health_snapshot() -> dict[str, object]:
    stats = get_query_stats()
    if stats.total < 5:
        status, message = "ok", f"warmup ({stats.total} samples)"
    elif stats.slow > 10:
        status, message = "degraded", "slow query threshold exceeded"
    else:
        status, message = "ok", "nominal"
    return {
        "status": status,
        "message": message,
        "queries": {"total": stats.total, "slow": stats.slow, "p50_ms": stats.p50_ms, "p95_ms": stats.p95_ms},
    }
