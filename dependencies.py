"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Everything is read from app.state, populated by
the lifespan in app.create_app().
"""

from __future__ import annotations

from fastapi import Request

from middleware.turnstile import TurnstileGate


def get_turnstile_gate(request: Request) -> TurnstileGate:
    """Return the TurnstileGate stored on app.state."""
    return request.app.state.turnstile_gate


async def require_turnstile(request: Request) -> None:
    """Per-route form of the gate.

    Raises a TurnstileError, rendered by the handlers in errors.py, when the
    request does not carry an accepted token. Use it on routes of an app
    that does not install TurnstileMiddleware globally.
    """
    await get_turnstile_gate(request).check(request)
