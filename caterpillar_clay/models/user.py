"""Users authenticated through the identity provider."""

from __future__ import annotations

import sqlite3
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from caterpillar_clay.error import DatabaseError, InternalError, NotFoundError

_COLUMNS = "id, clerk_id, email, name, is_admin, created_ts, updated_ts"


@contextmanager
def _database() -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        raise DatabaseError(str(exc)) from exc


def _now() -> int:
    return int(time.time())


@dataclass
class CreateUser:
    clerk_id: str
    email: str
    name: str | None = None


@dataclass
class User:
    id: str
    clerk_id: str
    email: str
    name: str | None
    is_admin: bool
    created_ts: int
    updated_ts: int

    def uuid(self) -> uuid.UUID | None:
        """The id as a UUID, or None when it is not one."""
        try:
            return uuid.UUID(self.id)
        except ValueError:
            return None

    @classmethod
    def _from_row(cls, row: tuple) -> User:
        id_, clerk_id, email, name, is_admin, created_ts, updated_ts = row
        return cls(id_, clerk_id, email, name, is_admin != 0, created_ts, updated_ts)

    @classmethod
    def _find_one(cls, conn: sqlite3.Connection, column: str, value: str) -> User | None:
        with _database():
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM users WHERE {column} = ?", (value,)
            ).fetchone()
        return None if row is None else cls._from_row(row)

    @classmethod
    def find_by_clerk_id(cls, conn: sqlite3.Connection, clerk_id: str) -> User | None:
        return cls._find_one(conn, "clerk_id", clerk_id)

    @classmethod
    def find_by_id(cls, conn: sqlite3.Connection, user_id: str) -> User | None:
        return cls._find_one(conn, "id", user_id)

    @classmethod
    def create(cls, conn: sqlite3.Connection, data: CreateUser) -> User:
        user_id = str(uuid.uuid4())
        now = _now()
        with _database(), conn:
            conn.execute(
                "INSERT INTO users (id, clerk_id, email, name, created_ts, updated_ts) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (user_id, data.clerk_id, data.email, data.name, now, now),
            )
        user = cls.find_by_id(conn, user_id)
        if user is None:
            raise InternalError("Failed to create user")
        return user

    @classmethod
    def upsert(cls, conn: sqlite3.Connection, data: CreateUser) -> User:
        """Update the user with this clerk id, or create one."""
        existing = cls.find_by_clerk_id(conn, data.clerk_id)
        if existing is None:
            return cls.create(conn, data)
        with _database(), conn:
            conn.execute(
                "UPDATE users SET email = ?, name = ?, updated_ts = ? WHERE clerk_id = ?",
                (data.email, data.name, _now(), data.clerk_id),
            )
        user = cls.find_by_id(conn, existing.id)
        if user is None:
            raise InternalError("Failed to update user")
        return user

    @classmethod
    def set_admin(cls, conn: sqlite3.Connection, user_id: str, is_admin: bool) -> User:
        with _database(), conn:
            conn.execute(
                "UPDATE users SET is_admin = ?, updated_ts = ? WHERE id = ?",
                (int(is_admin), _now(), user_id),
            )
        user = cls.find_by_id(conn, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user