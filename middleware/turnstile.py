"""
Cloudflare Turnstile request gate.

TurnstileGate is the host-agnostic core: a callable taking
``(request, call_next)`` that either returns the downstream response
untouched or raises a TurnstileError. TurnstileMiddleware adapts it to
Starlette/FastAPI and renders refusals as JSON; dependencies.require_turnstile
adapts it per route.

Per request:
1. resolve the client IP            -> ClientIPNotFound
2. read ``cf-turnstile-response``   -> TokenNotFound / InvalidTokenFormat
3. one provider round-trip (the only await before forwarding)
4. ACCEPTED -> call_next once; REJECTED -> VerificationFailed;
   TRANSPORT_FAILURE -> NetworkError (503)

Steps 1 and 2 never touch the network. Every refusal is logged by
TurnstileGate.check, so both adapters share it.

A client disconnect does not abort the provider call: it runs to completion
within its hard deadline and the verdict is discarded along with the
response nobody reads. If the host cancels the request task, the
cancellation propagates into the provider call and nothing is forwarded.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from config import TurnstileSettings
from errors import (
    ClientIPNotFound,
    InvalidTokenFormat,
    NetworkError,
    TokenNotFound,
    TurnstileError,
    VerificationFailed,
)
from infrastructure.captcha.protocol import (
    CaptchaProvider,
    CaptchaTransportError,
    VerificationOutcome,
    VerificationStatus,
)
from shared.ip_utils import get_client_ip
from shared.logging import get_logger, hash_ip

log = get_logger(__name__)

TOKEN_HEADER = "cf-turnstile-response"
_TOKEN_HEADER_RAW = TOKEN_HEADER.encode("latin-1")

CallNext = Callable[[Request], Awaitable[Response]]


def _is_visible_ascii(value: bytes) -> bool:
    return all(b == 0x09 or 0x20 <= b <= 0x7E for b in value)


class TurnstileGate:
    """Gate a request on a valid Turnstile token before it reaches handlers."""

    def __init__(self, settings: TurnstileSettings, provider: CaptchaProvider) -> None:
        self._settings = settings
        self._provider = provider

    @property
    def settings(self) -> TurnstileSettings:
        return self._settings

    def extract_client_ip(self, request: Request) -> str:
        client_ip = get_client_ip(request)
        if not client_ip:
            raise ClientIPNotFound()
        return client_ip

    def extract_token(self, request: Request) -> str:
        # Raw bytes: Starlette decodes header values as latin-1, which would
        # hide non-ASCII input.
        raw: Optional[bytes] = None
        for name, value in request.headers.raw:
            if name.lower() == _TOKEN_HEADER_RAW:
                raw = value
                break

        if raw is None:
            raise TokenNotFound()
        if not _is_visible_ascii(raw):
            raise InvalidTokenFormat()
        # An empty value is still text; the provider decides on it.
        return raw.decode("ascii")

    async def verify_request(self, request: Request) -> VerificationOutcome:
        client_ip = self.extract_client_ip(request)
        token = self.extract_token(request)

        try:
            accepted = await self._provider.verify(token, client_ip)
        except CaptchaTransportError as e:
            return VerificationOutcome.transport_failure(e)
        if accepted:
            return VerificationOutcome.accepted()
        return VerificationOutcome.rejected()

    async def check(self, request: Request) -> None:
        """Raise a TurnstileError unless the request carries an accepted token."""
        path = request.url.path
        try:
            outcome = await self.verify_request(request)
        except TurnstileError as e:
            self._log_refusal(request, e)
            raise

        if outcome.status is VerificationStatus.REJECTED:
            error = VerificationFailed("Cloudflare rejected the token")
            self._log_refusal(request, error)
            raise error
        if outcome.status is VerificationStatus.TRANSPORT_FAILURE:
            cause = outcome.cause
            log.error(
                "turnstile_network_error",
                path=path,
                error=str(cause),
                error_type=type(getattr(cause, "cause", cause)).__name__,
            )
            raise NetworkError(cause)

        log.debug("turnstile_request_accepted", path=path)

    def _log_refusal(self, request: Request, error: TurnstileError) -> None:
        log.warning(
            "turnstile_request_refused",
            path=request.url.path,
            reason=str(error),
            ip_hash=hash_ip(get_client_ip(request)),
        )

    async def __call__(self, request: Request, call_next: CallNext) -> Response:
        await self.check(request)
        return await call_next(request)


class TurnstileMiddleware(BaseHTTPMiddleware):
    """
    Starlette adapter for TurnstileGate.

    The gate is taken from the constructor or, when omitted, from
    ``app.state.turnstile_gate`` (set up in the application lifespan).

    Example:
        >>> app.add_middleware(TurnstileMiddleware)
    """

    def __init__(self, app: ASGIApp, gate: Optional[TurnstileGate] = None) -> None:
        super().__init__(app)
        self._gate = gate

    def _resolve_gate(self, request: Request) -> TurnstileGate:
        if self._gate is not None:
            return self._gate
        return request.app.state.turnstile_gate

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        gate = self._resolve_gate(request)
        if request.url.path in gate.settings.turnstile_exempt_paths:
            return await call_next(request)

        # Only the gate's own refusals are rendered here; errors raised by
        # downstream handlers pass through untouched.
        try:
            await gate.check(request)
        except TurnstileError as e:
            return e.to_response()
        return await call_next(request)
