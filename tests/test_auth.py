import sqlite3

import pytest

from caterpillar_clay.error import ForbiddenError, InternalError, UnauthorizedError
from caterpillar_clay.middleware.auth import (
    AuthUser,
    ClerkClaims,
    authenticate,
    extract_token,
    require_admin,
)
from caterpillar_clay.models.user import CreateUser, User


@pytest.fixture
def conn():
    connection = sqlite3.connect(":memory:")
    connection.execute(
        "CREATE TABLE users (id TEXT PRIMARY KEY, clerk_id TEXT UNIQUE NOT NULL, "
        "email TEXT NOT NULL, name TEXT, is_admin INTEGER NOT NULL DEFAULT 0, "
        "created_ts INTEGER NOT NULL, updated_ts INTEGER NOT NULL)"
    )
    yield connection
    connection.close()


def _verifier(sub):
    def verify(token):
        if token != "token":
            raise ValueError("bad signature")
        return ClerkClaims(sub=sub, exp=2, iat=1)

    return verify


def test_extract_bearer_token():
    assert extract_token({"Authorization": "Bearer token"}) == "token"


def test_extract_header_name_is_case_insensitive():
    assert extract_token({"authorization": "Bearer token"}) == "token"


def test_extract_session_cookie():
    assert extract_token({"Cookie": "theme=dark; __session=token"}) == "token"


def test_non_bearer_header_falls_back_to_cookie():
    headers = {"Authorization": "Basic secret", "Cookie": "__session=token"}
    assert extract_token(headers) == "token"


def test_bearer_wins_over_cookie():
    headers = {"Authorization": "Bearer token", "Cookie": "__session=secret"}
    assert extract_token(headers) == "token"


def test_no_token():
    assert extract_token({"Cookie": "theme=dark"}) is None
    assert extract_token({}) is None


def test_authenticate_returns_user(conn):
    user = User.create(conn, CreateUser(clerk_id="user_1", email="a@example.com", name="Ann"))
    result = authenticate(conn, {"Authorization": "Bearer token"}, _verifier("user_1"))
    assert result == AuthUser(
        id=user.id, clerk_id="user_1", email="a@example.com", name="Ann", is_admin=False
    )


def test_authenticate_missing_token(conn):
    with pytest.raises(UnauthorizedError) as info:
        authenticate(conn, {}, _verifier("user_1"))
    assert info.value.message == "Missing authorization"
    assert info.value.to_response() == (401, {"error": "Missing authorization"})


def test_authenticate_invalid_token(conn):
    with pytest.raises(UnauthorizedError) as info:
        authenticate(conn, {"Authorization": "Bearer secret"}, _verifier("user_1"))
    assert info.value.message == "Invalid token"


def test_authenticate_unknown_user(conn):
    with pytest.raises(UnauthorizedError) as info:
        authenticate(conn, {"Cookie": "__session=token"}, _verifier("user_missing"))
    assert info.value.message == "User not found"


def test_authenticate_database_failure():
    broken = sqlite3.connect(":memory:")
    with pytest.raises(InternalError) as info:
        authenticate(broken, {"Authorization": "Bearer token"}, _verifier("user_1"))
    assert info.value.to_response() == (500, {"error": "Internal server error"})


def test_from_user_copies_admin_flag(conn):
    user = User.create(conn, CreateUser(clerk_id="user_2", email="b@example.com"))
    admin = User.set_admin(conn, user.id, True)
    auth_user = AuthUser.from_user(admin)
    assert auth_user.is_admin is True
    assert auth_user.id == user.id
    assert auth_user.name is None


def test_require_admin_allows_admin():
    admin = AuthUser(id="1", clerk_id="c", email="a@example.com", name=None, is_admin=True)
    assert require_admin(admin) is admin


def test_require_admin_rejects_non_admin():
    user = AuthUser(id="1", clerk_id="c", email="a@example.com", name=None, is_admin=False)
    with pytest.raises(ForbiddenError) as info:
        require_admin(user)
    assert info.value.to_response() == (403, {"error": "Admin access required"})


def test_require_admin_without_user():
    with pytest.raises(UnauthorizedError) as info:
        require_admin(None)
    assert info.value.message == "Authentication required"