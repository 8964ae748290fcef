"""Request authentication from a bearer token or the session cookie."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from caterpillar_clay.error import (
    DatabaseError,
    ForbiddenError,
    InternalError,
    UnauthorizedError,
)
from caterpillar_clay.models.user import User

logger = logging.getLogger(__name__)

_BEARER = "Bearer "
_SESSION_COOKIE = "__session="


@dataclass(frozen=True)
class ClerkClaims:
    """The claims of a verified session token."""

    sub: str
    exp: int
    iat: int
    azp: str | None = None


@dataclass(frozen=True)
class AuthUser:
    """The user a request was authenticated as."""

    id: str
    clerk_id: str
    email: str
    name: str | None
    is_admin: bool

    @classmethod
    def from_user(cls, user: User) -> AuthUser:
        return cls(
            id=user.id,
            clerk_id=user.clerk_id,
            email=user.email,
            name=user.name,
            is_admin=user.is_admin,
        )


def _header(headers: Mapping[str, str], name: str) -> str | None:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def _session_cookie(cookies: str) -> str | None:
    for cookie in cookies.split(";"):
        cookie = cookie.strip()
        if cookie.startswith(_SESSION_COOKIE):
            while cookie.startswith(_SESSION_COOKIE):
                cookie = cookie[len(_SESSION_COOKIE):]
            return cookie
    return None


def extract_token(headers: Mapping[str, str]) -> str | None:
    """The session token of a request, if it carries one.

    A ``Bearer`` Authorization header wins; otherwise the ``__session``
    cookie is used.
    """
    authorization = _header(headers, "Authorization")
    if authorization is not None and authorization.startswith(_BEARER):
        return authorization[len(_BEARER):]
    cookies = _header(headers, "Cookie")
    if cookies is not None:
        return _session_cookie(cookies)
    return None


def authenticate(
    conn: sqlite3.Connection,
    headers: Mapping[str, str],
    verify_token: Callable[[str], ClerkClaims],
) -> AuthUser:
    """Resolve the user behind a request.

    ``verify_token`` checks a token and returns its claims, raising on any
    failure. Raises UnauthorizedError when there is no usable token or no
    such user, and InternalError when the database fails.
    """
    token = extract_token(headers)
    if token is None:
        raise UnauthorizedError("Missing authorization")

    try:
        claims = verify_token(token)
    except Exception as exc:
        logger.warning("JWT verification error: %s", exc)
        raise UnauthorizedError("Invalid token") from exc

    try:
        user = User.find_by_clerk_id(conn, claims.sub)
    except DatabaseError as exc:
        logger.error("Database error: %s", exc)
        raise InternalError("Internal server error") from exc

    if user is None:
        raise UnauthorizedError("User not found")
    return AuthUser.from_user(user)


def require_admin(user: AuthUser | None) -> AuthUser:
    """Return the user if it is an administrator; raise otherwise."""
    if user is None:
        raise UnauthorizedError("Authentication required")
    if not user.is_admin:
        raise ForbiddenError("Admin access required")
    return user