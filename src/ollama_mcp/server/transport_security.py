"""Request admission checks for the HTTP transport (DNS rebinding protection)."""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)


class TransportSecuritySettings(BaseModel):
    """Which requests the HTTP transport admits.

    Host and Origin are only checked when ``enable_dns_rebinding_protection``
    is set. An empty allow-list does not restrict that header.
    """

    enable_dns_rebinding_protection: bool = False

    allowed_hosts: list[str] = Field(default_factory=list)
    """Allowed Host header values.

    Supports exact values (``127.0.0.1:8080``), a wildcard port
    (``localhost:*``) and subdomain wildcards (``*.example.com``, which also
    matches ``example.com``; ``*.example.com:*`` additionally allows any port).
    """

    allowed_origins: list[str] = Field(default_factory=list)
    """Allowed Origin header values. Supports a wildcard port (``http://localhost:*``).

    A request without an Origin header is admitted even when this list is
    set, as same-origin and non-browser clients send none.
    """


def _hostname(host: str) -> str:
    """Strip the optional port from a Host header value."""
    if host.startswith("["):
        end = host.find("]")
        return host[: end + 1] if end != -1 else host
    return host.split(":", 1)[0]


def _matches_port_wildcard(value: str, pattern: str) -> bool:
    return pattern.endswith(":*") and value.startswith(pattern[:-2] + ":")


def host_allowed(host: str | None, allowed_hosts: list[str]) -> bool:
    if not allowed_hosts:
        return True
    if not host:
        return False
    if host in allowed_hosts:
        return True

    hostname = _hostname(host)
    for pattern in allowed_hosts:
        if pattern.startswith("*."):
            domain = pattern[2:].removesuffix(":*")
            if domain and (hostname == domain or hostname.endswith("." + domain)):
                return True
        elif _matches_port_wildcard(host, pattern):
            return True
    return False


def is_json_content_type(content_type: str | None) -> bool:
    return content_type is not None and content_type.lower().startswith("application/json")


def origin_allowed(origin: str | None, allowed_origins: list[str]) -> bool:
    # Same-origin requests carry no Origin header.
    if not origin or not allowed_origins:
        return True
    if origin in allowed_origins:
        return True
    return any(_matches_port_wildcard(origin, pattern) for pattern in allowed_origins)


class TransportSecurityMiddleware:
    """Validates request headers before a request reaches the gateway."""

    def __init__(self, settings: TransportSecuritySettings | None = None):
        self.settings = settings or TransportSecuritySettings()

    async def validate_request(self, request: Request) -> Response | None:
        """Return None if the request is admitted, or the error Response to send.

        The POST body's Content-Type is not checked here: the gateway rejects a
        non-JSON body only once the request's session is known.
        """
        if not self.settings.enable_dns_rebinding_protection:
            return None

        host = request.headers.get("host")
        if not host_allowed(host, self.settings.allowed_hosts):
            logger.warning("Rejected request with Host header %r", host)
            return Response("Invalid Host header", status_code=421)

        origin = request.headers.get("origin")
        if not origin_allowed(origin, self.settings.allowed_origins):
            logger.warning("Rejected request with Origin header %r", origin)
            return Response("Invalid Origin header", status_code=403)

        return None
