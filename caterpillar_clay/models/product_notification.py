"""Requests to be told by e-mail when a product or style is back in stock."""

from __future__ import annotations

import sqlite3
import time
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from caterpillar_clay.error import DatabaseError

_SELECT = (
    "SELECT id, email, product_id, style_id, notified, created_ts, notified_ts "
    "FROM product_notifications"
)
_SECONDS_PER_DAY = 24 * 60 * 60


@contextmanager
def _database() -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        raise DatabaseError(str(exc)) from exc


def _now() -> int:
    return int(time.time())


@dataclass
class ProductNotification:
    id: str
    email: str
    product_id: str
    style_id: str | None
    notified: bool
    created_ts: int
    notified_ts: int | None

    @classmethod
    def _from_row(cls, row: tuple) -> ProductNotification:
        id_, email, product_id, style_id, notified, created_ts, notified_ts = row
        return cls(id_, email, product_id, style_id, notified != 0, created_ts, notified_ts)

    @classmethod
    def _fetch(
        cls, conn: sqlite3.Connection, where: str, params: tuple
    ) -> list[ProductNotification]:
        with _database():
            rows = conn.execute(f"{_SELECT} {where}", params).fetchall()
        return [cls._from_row(row) for row in rows]

    @classmethod
    def subscribe(
        cls,
        conn: sqlite3.Connection,
        email: str,
        product_id: str,
        style_id: str | None = None,
    ) -> ProductNotification:
        """Ask for a restock e-mail; a pending request is returned unchanged."""
        email = email.lower()
        existing = cls.find_pending(conn, email, product_id, style_id)
        if existing is not None:
            return existing
        notification = cls(
            id=str(uuid.uuid4()),
            email=email,
            product_id=product_id,
            style_id=style_id,
            notified=False,
            created_ts=_now(),
            notified_ts=None,
        )
        with _database(), conn:
            conn.execute(
                "INSERT INTO product_notifications "
                "(id, email, product_id, style_id, notified, created_ts) "
                "VALUES (?, ?, ?, ?, 0, ?)",
                (
                    notification.id,
                    notification.email,
                    notification.product_id,
                    notification.style_id,
                    notification.created_ts,
                ),
            )
        return notification

    @classmethod
    def find_pending(
        cls,
        conn: sqlite3.Connection,
        email: str,
        product_id: str,
        style_id: str | None = None,
    ) -> ProductNotification | None:
        """The not yet sent request for this address, product and style, if any."""
        if style_id is None:
            found = cls._fetch(
                conn,
                "WHERE email = ? AND product_id = ? AND style_id IS NULL AND notified = 0",
                (email.lower(), product_id),
            )
        else:
            found = cls._fetch(
                conn,
                "WHERE email = ? AND product_id = ? AND style_id = ? AND notified = 0",
                (email.lower(), product_id, style_id),
            )
        return found[0] if found else None

    @classmethod
    def get_pending_for_product(
        cls, conn: sqlite3.Connection, product_id: str
    ) -> list[ProductNotification]:
        """Pending requests for a product, oldest first."""
        return cls._fetch(
            conn,
            "WHERE product_id = ? AND notified = 0 ORDER BY created_ts ASC",
            (product_id,),
        )

    @classmethod
    def get_pending_for_styles(
        cls, conn: sqlite3.Connection, product_id: str, style_ids: Iterable[str]
    ) -> list[ProductNotification]:
        """Pending requests for the given styles of a product, oldest first."""
        ids = list(style_ids)
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        return cls._fetch(
            conn,
            f"WHERE product_id = ? AND style_id IN ({placeholders}) AND notified = 0 "
            "ORDER BY created_ts ASC",
            (product_id, *ids),
        )

    @classmethod
    def mark_notified(cls, conn: sqlite3.Connection, notification_id: str) -> None:
        with _database(), conn:
            conn.execute(
                "UPDATE product_notifications SET notified = 1, notified_ts = ? WHERE id = ?",
                (_now(), notification_id),
            )

    @classmethod
    def mark_all_notified_for_product(cls, conn: sqlite3.Connection, product_id: str) -> int:
        """Mark every pending request for a product as sent; returns how many."""
        with _database(), conn:
            cursor = conn.execute(
                "UPDATE product_notifications SET notified = 1, notified_ts = ? "
                "WHERE product_id = ? AND notified = 0",
                (_now(), product_id),
            )
        return cursor.rowcount

    @classmethod
    def count_pending_for_product(cls, conn: sqlite3.Connection, product_id: str) -> int:
        with _database():
            row = conn.execute(
                "SELECT COUNT(*) FROM product_notifications "
                "WHERE product_id = ? AND notified = 0",
                (product_id,),
            ).fetchone()
        return 0 if row is None else row[0]

    @classmethod
    def cleanup_old_notified(cls, conn: sqlite3.Connection, older_than_days: int) -> int:
        """Delete sent requests older than the given age; returns how many."""
        cutoff = _now() - older_than_days * _SECONDS_PER_DAY
        with _database(), conn:
            cursor = conn.execute(
                "DELETE FROM product_notifications WHERE notified = 1 AND notified_ts < ?",
                (cutoff,),
            )
        return cursor.rowcount