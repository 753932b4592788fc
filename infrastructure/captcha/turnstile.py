"""Cloudflare Turnstile implementation of CaptchaProvider.

- async httpx via the injected HttpClient (shared pool, no module globals)
- the configured total timeout is a hard deadline around the whole round-trip
- a missing or non-boolean ``success`` field is a rejection, not an error
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import httpx

from config import TurnstileSettings
from infrastructure.captcha.protocol import CaptchaTransportError
from infrastructure.http_client import HttpClient
from shared.logging import get_logger, hash_ip

log = get_logger(__name__)


@dataclass(frozen=True)
class VerificationRequest:
    token: str
    client_ip: str
    secret: str = field(repr=False)

    def to_payload(self) -> dict[str, str]:
        return {
            "secret": self.secret,
            "response": self.token,
            "remoteip": self.client_ip,
        }


class TurnstileVerifier:
    def __init__(self, settings: TurnstileSettings, http_client: HttpClient) -> None:
        self._settings = settings
        self._http = http_client

    async def verify(self, token: str, remote_ip: str) -> bool:
        request = VerificationRequest(
            token=token,
            client_ip=remote_ip,
            secret=self._settings.turnstile_secret_key,
        )
        try:
            response = await asyncio.wait_for(
                self._http.post(
                    self._settings.turnstile_verify_url,
                    json=request.to_payload(),
                ),
                timeout=self._settings.turnstile_timeout_seconds,
            )
            data = response.json()
        except (httpx.HTTPError, asyncio.TimeoutError, ValueError) as e:
            raise CaptchaTransportError(e) from e

        if not response.is_success:
            log.warning(
                "turnstile_api_error",
                status_code=response.status_code,
                ip_hash=hash_ip(remote_ip),
            )

        if not isinstance(data, dict):
            log.warning("turnstile_unexpected_body", body_type=type(data).__name__)
            return False

        success = data.get("success")
        if success is not True:
            log.warning(
                "turnstile_token_rejected",
                error_codes=data.get("error-codes", []),
                ip_hash=hash_ip(remote_ip),
            )
            return False
        return True
