"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Literal, Optional

import sentry_sdk
from fastapi import Depends, FastAPI

from config import AppSettings
from dependencies import require_turnstile
from errors import register_error_handlers
from infrastructure.captcha.protocol import CaptchaProvider
from infrastructure.captcha.turnstile import TurnstileVerifier
from infrastructure.http_client import HttpClient
from middleware.turnstile import TurnstileGate, TurnstileMiddleware
from routes.health_routes import router as health_router
from routes.protected_routes import router as protected_router
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def create_app(
    settings: Optional[AppSettings] = None,
    *,
    http_client: Optional[HttpClient] = None,
    provider: Optional[CaptchaProvider] = None,
    gate_mode: Literal["middleware", "dependency"] = "middleware",
) -> FastAPI:
    """Create and return a fully configured FastAPI application.

    ``gate_mode="middleware"`` gates every request (minus exempt paths);
    ``"dependency"`` gates only the protected router via require_turnstile.
    An injected ``http_client`` is left open on shutdown; one built here is
    closed.
    """
    if settings is None:
        settings = AppSettings()

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            profiles_sample_rate=settings.sentry.sentry_profile_sample_rate,
        )

    setup_logging(settings.logging, production=settings.is_production)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        turnstile = settings.turnstile
        owns_client = http_client is None
        client = http_client or HttpClient(
            timeout=turnstile.turnstile_timeout_seconds,
            connect_timeout=turnstile.turnstile_connect_timeout_seconds,
            pool_idle_timeout=turnstile.turnstile_pool_idle_timeout_seconds,
        )
        verifier = provider or TurnstileVerifier(turnstile, client)

        app.state.settings = settings
        app.state.http_client = client
        app.state.turnstile_gate = TurnstileGate(turnstile, verifier)
        log.info("turnstile_gate_ready", gate_mode=gate_mode)

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        if owns_client:
            await client.aclose()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    register_error_handlers(app)
    app.include_router(health_router)

    if gate_mode == "middleware":
        app.add_middleware(TurnstileMiddleware)
        app.include_router(protected_router)
    else:
        app.include_router(protected_router, dependencies=[Depends(require_turnstile)])

    return app
