"""Styles (variants) of a product, each with its own stock."""

from __future__ import annotations

import sqlite3
import time
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from caterpillar_clay.error import DatabaseError

_SELECT = (
    "SELECT ps.id, ps.product_id, ps.name, ps.stock_quantity, ps.image_id, "
    "ps.sort_order, ps.created_ts, pi.image_path "
    "FROM product_styles ps LEFT JOIN product_images pi ON ps.image_id = pi.id"
)


@contextmanager
def _database() -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        raise DatabaseError(str(exc)) from exc


@dataclass
class ProductStyle:
    id: str
    product_id: str
    name: str
    stock_quantity: int
    image_id: str | None
    sort_order: int
    created_ts: int
    image_path: str | None = field(default=None)

    @classmethod
    def _fetch(cls, conn: sqlite3.Connection, where: str, params: tuple) -> list[ProductStyle]:
        with _database():
            rows = conn.execute(f"{_SELECT} {where}", params).fetchall()
        return [cls(*row) for row in rows]

    @classmethod
    def create(
        cls,
        conn: sqlite3.Connection,
        product_id: str,
        name: str,
        stock_quantity: int,
        image_id: str | None = None,
    ) -> ProductStyle:
        """Add a style after the product's existing ones."""
        with _database():
            row = conn.execute(
                "SELECT COALESCE(MAX(sort_order), -1) + 1 FROM product_styles "
                "WHERE product_id = ?",
                (product_id,),
            ).fetchone()
        style = cls(
            id=str(uuid.uuid4()),
            product_id=product_id,
            name=name,
            stock_quantity=stock_quantity,
            image_id=image_id,
            sort_order=0 if row is None or row[0] is None else row[0],
            created_ts=int(time.time()),
        )
        with _database(), conn:
            conn.execute(
                "INSERT INTO product_styles "
                "(id, product_id, name, stock_quantity, image_id, sort_order, created_ts) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    style.id,
                    style.product_id,
                    style.name,
                    style.stock_quantity,
                    style.image_id,
                    style.sort_order,
                    style.created_ts,
                ),
            )
        return style

    @classmethod
    def get_by_product(cls, conn: sqlite3.Connection, product_id: str) -> list[ProductStyle]:
        """Styles of a product in display order, with their image paths."""
        return cls._fetch(conn, "WHERE ps.product_id = ? ORDER BY ps.sort_order ASC", (product_id,))

    @classmethod
    def get_by_id(cls, conn: sqlite3.Connection, style_id: str) -> ProductStyle | None:
        found = cls._fetch(conn, "WHERE ps.id = ?", (style_id,))
        return found[0] if found else None

    @classmethod
    def update(
        cls,
        conn: sqlite3.Connection,
        style_id: str,
        name: str,
        stock_quantity: int,
        image_id: str | None = None,
    ) -> None:
        with _database(), conn:
            conn.execute(
                "UPDATE product_styles SET name = ?, stock_quantity = ?, image_id = ? WHERE id = ?",
                (name, stock_quantity, image_id, style_id),
            )

    @classmethod
    def update_stock(cls, conn: sqlite3.Connection, style_id: str, stock_quantity: int) -> None:
        with _database(), conn:
            conn.execute(
                "UPDATE product_styles SET stock_quantity = ? WHERE id = ?",
                (stock_quantity, style_id),
            )

    @classmethod
    def delete(cls, conn: sqlite3.Connection, style_id: str) -> None:
        with _database(), conn:
            conn.execute("DELETE FROM product_styles WHERE id = ?", (style_id,))

    @classmethod
    def reorder(
        cls, conn: sqlite3.Connection, product_id: str, style_ids: Iterable[str]
    ) -> None:
        """Give the listed styles of a product the order in which they are listed."""
        with _database(), conn:
            conn.executemany(
                "UPDATE product_styles SET sort_order = ? WHERE id = ? AND product_id = ?",
                [(index, style_id, product_id) for index, style_id in enumerate(style_ids)],
            )

    @classmethod
    def get_restocked_styles(
        cls, conn: sqlite3.Connection, product_id: str, style_ids: Iterable[str]
    ) -> list[ProductStyle]:
        """Of the given styles of a product, those that now have stock."""
        ids = list(style_ids)
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        return cls._fetch(
            conn,
            f"WHERE ps.product_id = ? AND ps.id IN ({placeholders}) AND ps.stock_quantity > 0 "
            "ORDER BY ps.sort_order ASC",
            (product_id, *ids),
        )