"""Per-client request rate limiting."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from http import HTTPStatus
from typing import Any, Protocol

from caterpillar_clay.error import AppError

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 60


class RateLimiter(Protocol):
    def check_rate_limit(self, key: str) -> bool:
        """True when another request from ``key`` is allowed."""


class RateLimitExceeded(AppError):
    """A client sent more requests than it is allowed."""

    status = HTTPStatus.TOO_MANY_REQUESTS
    label = "Too many requests"

    def __init__(self, ip: str) -> None:
        super().__init__(f"rate limit exceeded for {ip}")
        self.ip = ip

    def to_response(self) -> tuple[int, dict[str, Any]]:
        return int(self.status), {
            "error": "Too many requests",
            "retry_after": RETRY_AFTER_SECONDS,
        }


def _header(headers: Mapping[str, str], name: str) -> str | None:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def client_ip(headers: Mapping[str, str]) -> str:
    """The client address as reported by the proxy headers, or ``unknown``."""
    forwarded = _header(headers, "x-forwarded-for")
    if forwarded is not None:
        return forwarded.split(",", 1)[0].strip()
    real_ip = _header(headers, "x-real-ip")
    if real_ip is not None:
        return real_ip
    return "unknown"


def enforce_rate_limit(
    headers: Mapping[str, str], limiter: RateLimiter | None
) -> str:
    """Check the request's client against the limiter and return its address.

    Raises RateLimitExceeded when the client is over its limit. Without a
    limiter, or when the limiter itself fails, the request is let through.
    """
    ip = client_ip(headers)
    if limiter is None:
        return ip
    try:
        allowed = limiter.check_rate_limit(ip)
    except Exception as exc:
        logger.error("Rate limiter error: %s - allowing request", exc)
        return ip
    if not allowed:
        logger.warning("Rate limit exceeded for IP: %s", ip)
        raise RateLimitExceeded(ip)
    return ip