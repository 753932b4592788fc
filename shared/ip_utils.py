"""
Client IP resolution for FastAPI/Starlette requests.

Takes an explicit ``Request`` parameter so the function is testable without
a running app.
"""

from __future__ import annotations

from typing import Optional

from starlette.requests import Request


def _forwarded_for(value: str) -> Optional[str]:
    """Return the first ``for=`` node of an RFC 7239 ``Forwarded`` header."""
    for element in value.split(","):
        for pair in element.split(";"):
            name, _, node = pair.strip().partition("=")
            if name.lower() != "for" or not node:
                continue
            node = node.strip('"')
            # IPv6 nodes are bracketed and may carry a port: "[2001:db8::1]:4711"
            if node.startswith("["):
                return node[1:].split("]", 1)[0] or None
            if node.count(":") == 1:
                node = node.split(":", 1)[0]
            return node or None
    return None


def get_client_ip(request: Request) -> Optional[str]:
    """Extract the real client IP from a ``Request``.

    Checks proxy headers in priority order before falling back to the
    direct connection address:

    1. ``CF-Connecting-IP`` — Cloudflare
    2. ``True-Client-IP`` — Akamai and others
    3. ``Forwarded`` — RFC 7239 (first ``for=`` node)
    4. ``X-Forwarded-For`` — standard proxy header (first IP in list)
    5. ``X-Real-IP`` — nginx / other reverse proxies
    6. ``X-Client-IP`` — less common

    Args:
        request: The current ``Request`` object.

    Returns:
        The resolved client IP string, or ``None`` if none can be found.
    """
    headers_to_check: list[str] = [
        "CF-Connecting-IP",
        "True-Client-IP",
        "Forwarded",
        "X-Forwarded-For",
        "X-Real-IP",
        "X-Client-IP",
    ]

    for header in headers_to_check:
        ip_value: str | None = request.headers.get(header)
        if not ip_value:
            continue
        if header == "Forwarded":
            client_ip = _forwarded_for(ip_value)
        else:
            client_ip = ip_value.split(",")[0].strip()
        if client_ip:
            return client_ip

    if request.client and request.client.host:
        return request.client.host
    return None
