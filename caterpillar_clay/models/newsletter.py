"""Newsletter subscriptions."""

from __future__ import annotations

import sqlite3
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from caterpillar_clay.error import DatabaseError

_COLUMNS = "id, email, subscribed_ts, unsubscribe_token"


@contextmanager
def _database() -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        raise DatabaseError(str(exc)) from exc


@dataclass
class NewsletterSubscriber:
    id: str
    email: str
    subscribed_ts: int
    unsubscribe_token: str

    @classmethod
    def subscribe(cls, conn: sqlite3.Connection, email: str) -> NewsletterSubscriber:
        """Subscribe an address; an existing subscription is returned unchanged."""
        existing = cls.find_by_email(conn, email)
        if existing is not None:
            return existing
        subscriber = cls(
            id=str(uuid.uuid4()),
            email=email.lower(),
            subscribed_ts=int(time.time()),
            unsubscribe_token=str(uuid.uuid4()),
        )
        with _database(), conn:
            conn.execute(
                "INSERT INTO newsletter_subscribers (id, email, subscribed_ts, unsubscribe_token) "
                "VALUES (?, ?, ?, ?)",
                (
                    subscriber.id,
                    subscriber.email,
                    subscriber.subscribed_ts,
                    subscriber.unsubscribe_token,
                ),
            )
        return subscriber

    @classmethod
    def unsubscribe_by_token(cls, conn: sqlite3.Connection, token: str) -> bool:
        with _database(), conn:
            cursor = conn.execute(
                "DELETE FROM newsletter_subscribers WHERE unsubscribe_token = ?", (token,)
            )
        return cursor.rowcount > 0

    @classmethod
    def unsubscribe_by_email(cls, conn: sqlite3.Connection, email: str) -> bool:
        with _database(), conn:
            cursor = conn.execute(
                "DELETE FROM newsletter_subscribers WHERE email = ?", (email.lower(),)
            )
        return cursor.rowcount > 0

    @classmethod
    def find_by_email(cls, conn: sqlite3.Connection, email: str) -> NewsletterSubscriber | None:
        with _database():
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM newsletter_subscribers WHERE email = ?",
                (email.lower(),),
            ).fetchone()
        return None if row is None else cls(*row)

    @classmethod
    def get_all(cls, conn: sqlite3.Connection) -> list[NewsletterSubscriber]:
        """All subscribers, most recent first."""
        with _database():
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM newsletter_subscribers ORDER BY subscribed_ts DESC"
            ).fetchall()
        return [cls(*row) for row in rows]

    @classmethod
    def count(cls, conn: sqlite3.Connection) -> int:
        with _database():
            row = conn.execute("SELECT COUNT(*) FROM newsletter_subscribers").fetchone()
        return 0 if row is None else row[0]