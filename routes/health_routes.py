"""
Health check endpoint.

GET /health — reports whether the gate can reach a usable configuration.
Rules:
- Gate not initialised or secret empty → "unhealthy" (503).
- Shared HTTP client closed → "unhealthy" (503).

The path is listed in ``turnstile_exempt_paths`` so probes never need a token.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request) -> JSONResponse:
    checks: dict[str, str] = {}
    overall = "healthy"

    gate = getattr(request.app.state, "turnstile_gate", None)
    if gate is None or not gate.settings.turnstile_secret_key:
        checks["turnstile_secret"] = "missing"
        overall = "unhealthy"
    else:
        checks["turnstile_secret"] = "configured"

    http_client = getattr(request.app.state, "http_client", None)
    if http_client is None or http_client.is_closed:
        checks["http_client"] = "closed"
        overall = "unhealthy"
    else:
        checks["http_client"] = "ok"

    status_code = 503 if overall == "unhealthy" else 200
    return JSONResponse(
        status_code=status_code,
        content={"status": overall, "checks": checks},
    )
