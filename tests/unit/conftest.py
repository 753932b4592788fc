"""
Unit test configuration.

Patches dotenv so pydantic-settings never reads the project's real .env file
during unit tests. Tests control config exclusively through monkeypatch.setenv()
or explicit constructor arguments.
"""

import pytest
from starlette.requests import Request


@pytest.fixture(autouse=True)
def disable_dotenv_loading(monkeypatch):
    """Prevent pydantic-settings from loading .env files in all unit tests."""
    import pydantic_settings.sources.providers.dotenv as ps_dotenv

    monkeypatch.setattr(ps_dotenv, "dotenv_values", lambda *a, **kw: {})


def make_request(
    headers=None,
    client=("10.0.0.1", 51234),
    path: str = "/",
) -> Request:
    """Build a real Starlette Request from a bare ASGI scope.

    Header values may be ``bytes`` to exercise non-ASCII input.
    """
    raw = []
    for name, value in (headers or {}).items():
        if isinstance(value, str):
            value = value.encode("latin-1")
        raw.append((name.lower().encode("latin-1"), value))
    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "headers": raw,
        "query_string": b"",
        "client": client,
    }
    return Request(scope)


@pytest.fixture
def request_factory():
    return make_request
