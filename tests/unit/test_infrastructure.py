"""Unit tests for the infrastructure layer (HttpClient, Turnstile verifier)."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from config import TurnstileSettings
from infrastructure.captcha.protocol import (
    CaptchaTransportError,
    VerificationOutcome,
    VerificationStatus,
)
from infrastructure.captcha.turnstile import TurnstileVerifier, VerificationRequest
from infrastructure.http_client import HttpClient


# ── Helpers ───────────────────────────────────────────────────────────────────


def _settings(**overrides) -> TurnstileSettings:
    base = dict(turnstile_secret_key="test-secret", turnstile_timeout_seconds=5.0)
    base.update(overrides)
    return TurnstileSettings(**base)


def _resp(body=None, status_code=200, json_error=None) -> MagicMock:
    resp = MagicMock(status_code=status_code, is_success=200 <= status_code < 300)
    if json_error is not None:
        resp.json.side_effect = json_error
    else:
        resp.json.return_value = body
    return resp


# ── HttpClient ────────────────────────────────────────────────────────────────


class TestHttpClient:
    async def test_post_delegates_to_httpx(self, mocker):
        client = HttpClient()
        fake_resp = MagicMock(status_code=200)
        mocker.patch.object(client._client, "post", return_value=fake_resp)
        resp = await client.post("http://example.com")
        assert resp.status_code == 200
        await client.aclose()

    async def test_post_propagates_exception(self, mocker):
        client = HttpClient()
        mocker.patch.object(
            client._client, "post", side_effect=httpx.ConnectError("refused")
        )
        with pytest.raises(httpx.ConnectError, match="refused"):
            await client.post("http://example.com")
        await client.aclose()

    async def test_applies_timeouts_and_pool_expiry(self):
        client = HttpClient(timeout=3.0, connect_timeout=1.5, pool_idle_timeout=2.0)
        timeout = client._client.timeout
        assert timeout.read == 3.0
        assert timeout.connect == 1.5
        assert client._client._transport._pool._keepalive_expiry == 2.0
        await client.aclose()

    async def test_uses_injected_transport(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(204))
        async with HttpClient(transport=transport) as client:
            resp = await client.get("http://example.com")
        assert resp.status_code == 204

    async def test_context_manager_closes(self):
        async with HttpClient() as client:
            assert client.is_closed is False
        assert client.is_closed is True


# ── VerificationRequest / VerificationOutcome ─────────────────────────────────


class TestVerificationRequest:
    def test_payload_shape(self):
        req = VerificationRequest(token="abc", client_ip="203.0.113.5", secret="s3cr3t")
        assert req.to_payload() == {
            "secret": "s3cr3t",
            "response": "abc",
            "remoteip": "203.0.113.5",
        }

    def test_repr_hides_secret(self):
        req = VerificationRequest(token="abc", client_ip="203.0.113.5", secret="s3cr3t")
        assert "s3cr3t" not in repr(req)


class TestVerificationOutcome:
    def test_constructors(self):
        cause = CaptchaTransportError(httpx.ReadTimeout("slow"))
        assert VerificationOutcome.accepted().status is VerificationStatus.ACCEPTED
        assert VerificationOutcome.rejected().status is VerificationStatus.REJECTED
        failure = VerificationOutcome.transport_failure(cause)
        assert failure.status is VerificationStatus.TRANSPORT_FAILURE
        assert failure.cause is cause


# ── TurnstileVerifier ─────────────────────────────────────────────────────────


class TestTurnstileVerifier:
    def _make(self, **overrides):
        http = MagicMock()
        return TurnstileVerifier(_settings(**overrides), http_client=http), http

    async def test_returns_true_on_success(self):
        verifier, http = self._make()
        http.post = AsyncMock(return_value=_resp({"success": True}))
        assert await verifier.verify("good-token", "203.0.113.5") is True

    async def test_posts_json_payload_to_verify_url(self):
        verifier, http = self._make(turnstile_verify_url="https://verify.test/siteverify")
        http.post = AsyncMock(return_value=_resp({"success": True}))
        await verifier.verify("abc", "203.0.113.5")
        args, kwargs = http.post.call_args
        assert args[0] == "https://verify.test/siteverify"
        assert kwargs["json"] == {
            "secret": "test-secret",
            "response": "abc",
            "remoteip": "203.0.113.5",
        }

    async def test_returns_false_on_failure(self):
        verifier, http = self._make()
        http.post = AsyncMock(
            return_value=_resp(
                {"success": False, "error-codes": ["invalid-input-response"]}
            )
        )
        assert await verifier.verify("bad-token", "203.0.113.5") is False

    @pytest.mark.parametrize(
        "body",
        [{}, {"success": "true"}, {"success": 1}, {"success": None}, ["success"]],
        ids=["missing", "string", "int", "null", "not_an_object"],
    )
    async def test_permissive_decode_treats_odd_bodies_as_rejection(self, body):
        verifier, http = self._make()
        http.post = AsyncMock(return_value=_resp(body))
        assert await verifier.verify("token", "203.0.113.5") is False

    async def test_non_2xx_with_json_body_is_still_decoded(self):
        verifier, http = self._make()
        http.post = AsyncMock(return_value=_resp({"success": False}, status_code=400))
        assert await verifier.verify("token", "203.0.113.5") is False

    @pytest.mark.parametrize(
        "exc",
        [
            httpx.ConnectError("connection refused"),
            httpx.ReadTimeout("read timed out"),
            httpx.ConnectTimeout("connect timed out"),
        ],
        ids=["refused", "read_timeout", "connect_timeout"],
    )
    async def test_transport_errors_raise(self, exc):
        verifier, http = self._make()
        http.post = AsyncMock(side_effect=exc)
        with pytest.raises(CaptchaTransportError) as info:
            await verifier.verify("token", "203.0.113.5")
        assert info.value.cause is exc

    async def test_undecodable_body_raises(self):
        verifier, http = self._make()
        http.post = AsyncMock(
            return_value=_resp(json_error=json.JSONDecodeError("bad", "<html>", 0))
        )
        with pytest.raises(CaptchaTransportError):
            await verifier.verify("token", "203.0.113.5")

    async def test_total_deadline_raises(self):
        verifier, http = self._make(turnstile_timeout_seconds=0.05)

        async def slow_post(*args, **kwargs):
            await asyncio.sleep(1)
            return _resp({"success": True})

        http.post = slow_post
        with pytest.raises(CaptchaTransportError):
            await verifier.verify("token", "203.0.113.5")

    async def test_cancellation_propagates(self):
        verifier, http = self._make()
        http.post = AsyncMock(side_effect=asyncio.CancelledError())
        with pytest.raises(asyncio.CancelledError):
            await verifier.verify("token", "203.0.113.5")

    async def test_end_to_end_over_mock_transport(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"success": True, "hostname": "x"})

        async with HttpClient(transport=httpx.MockTransport(handler)) as http:
            verifier = TurnstileVerifier(_settings(), http)
            assert await verifier.verify("abc", "203.0.113.5") is True
        assert seen == [
            {"secret": "test-secret", "response": "abc", "remoteip": "203.0.113.5"}
        ]

    async def test_html_body_over_mock_transport_is_transport_error(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(502, text="<html>bad gateway</html>")
        )
        async with HttpClient(transport=transport) as http:
            verifier = TurnstileVerifier(_settings(), http)
            with pytest.raises(CaptchaTransportError):
                await verifier.verify("abc", "203.0.113.5")
