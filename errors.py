"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. ``message`` is the public text
that ends up in the response body; ``detail`` is internal context for logs
and is never rendered.

TurnstileError subclasses cover every way the CAPTCHA gate can refuse a
request. They are rendered either by the gate middleware itself or, when the
gate is used as a route dependency, by the handlers registered here.

Non-AppError exceptions bubble up as 500s (with Sentry reporting in production).
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"
    message: str = "An internal server error occurred."

    def __init__(self, detail: Optional[str] = None) -> None:
        super().__init__(detail or self.message)
        self.detail = detail

    def to_dict(self) -> dict:
        return {"error": self.error_code, "message": self.message}

    def to_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=self.to_dict())


class TurnstileError(AppError):
    """A request was refused by the CAPTCHA gate."""

    status_code = 400
    error_code = "captcha_verification_failed"


class TokenNotFound(TurnstileError):
    message = "invalid token"

    def __init__(self) -> None:
        super().__init__("Turnstile token not found in request headers")


class InvalidTokenFormat(TurnstileError):
    message = "invalid token"

    def __init__(self) -> None:
        super().__init__("Invalid Turnstile token format")


class ClientIPNotFound(TurnstileError):
    message = "client information missing"

    def __init__(self) -> None:
        super().__init__("Client IP address not found")


class VerificationFailed(TurnstileError):
    message = "please try again"

    def __init__(self, reason: str) -> None:
        super().__init__(f"Turnstile verification failed: {reason}")
        self.reason = reason


class NetworkError(TurnstileError):
    """The provider could not be reached. Safe for the caller to retry."""

    status_code = 503
    message = "service temporarily unavailable"
    retryable = True

    def __init__(self, cause: Any) -> None:
        super().__init__(f"Network error during Turnstile verification: {cause}")
        self.cause = cause


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return exc.to_response()

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry integration: if sentry_sdk is initialized it will auto-capture
        # unhandled exceptions before this handler fires.
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_error",
                "message": "An internal server error occurred.",
            },
        )
