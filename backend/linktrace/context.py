"""
Request-time signals captured for a click.
Built once per redirect from the incoming request; no I/O.
"""

from dataclasses import dataclass, field
from typing import Optional

from fastapi import Request

from .utils import normalize_ip

# Never copied into the stored fingerprint
SENSITIVE_HEADERS = {"cookie", "authorization", "x-admin-token", "proxy-authorization"}


def get_client_ip(request: Request) -> Optional[str]:
    """
    Extract the client IP.
    Precedence: first X-Forwarded-For hop, then X-Real-IP, then the socket peer.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return normalize_ip(first)

    real_ip = request.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return normalize_ip(real_ip)

    return normalize_ip(request.client.host) if request.client else None


@dataclass
class RequestContext:
    """Everything the click recorder needs to know about one request."""

    ip: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    method: str = "GET"
    hostname: Optional[str] = None
    path: str = "/"
    query: str = ""
    headers: dict = field(default_factory=dict)

    @classmethod
    def from_request(cls, request: Request) -> "RequestContext":
        headers = {
            name: value
            for name, value in request.headers.items()
            if name.lower() not in SENSITIVE_HEADERS
        }
        return cls(
            ip=get_client_ip(request),
            user_agent=request.headers.get("user-agent"),
            referrer=request.headers.get("referer"),
            method=request.method,
            hostname=request.url.hostname,
            path=request.url.path,
            query=request.url.query,
            headers=headers,
        )
