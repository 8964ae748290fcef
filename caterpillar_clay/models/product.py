"""Products in the shop and their gallery images."""

from __future__ import annotations

import sqlite3
import time
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from caterpillar_clay.error import DatabaseError, InternalError, NotFoundError

_IMAGE_COLUMNS = "id, product_id, image_path, sort_order, created_ts"
_PRODUCT_COLUMNS = (
    "id, name, description, price_cents, image_path, stock_quantity, is_active, "
    "stripe_price_id, stripe_product_id, created_ts, updated_ts, "
    "weight_grams, length_cm, width_cm, height_cm"
)


@contextmanager
def _database() -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        raise DatabaseError(str(exc)) from exc


def _now() -> int:
    return int(time.time())


def _pick(new, current):
    return current if new is None else new


@dataclass
class ProductImage:
    id: str
    product_id: str
    image_path: str
    sort_order: int
    created_ts: int

    @classmethod
    def list_by_product(cls, conn: sqlite3.Connection, product_id: str) -> list[ProductImage]:
        """Images of a product in display order."""
        with _database():
            rows = conn.execute(
                f"SELECT {_IMAGE_COLUMNS} FROM product_images "
                "WHERE product_id = ? ORDER BY sort_order ASC",
                (product_id,),
            ).fetchall()
        return [cls(*row) for row in rows]

    @classmethod
    def add(cls, conn: sqlite3.Connection, product_id: str, image_path: str) -> ProductImage:
        """Append an image after the product's existing ones."""
        with _database():
            row = conn.execute(
                "SELECT COALESCE(MAX(sort_order), -1) + 1 FROM product_images "
                "WHERE product_id = ?",
                (product_id,),
            ).fetchone()
        sort_order = 0 if row is None or row[0] is None else row[0]
        image = cls(
            id=str(uuid.uuid4()),
            product_id=product_id,
            image_path=image_path,
            sort_order=sort_order,
            created_ts=_now(),
        )
        with _database(), conn:
            conn.execute(
                "INSERT INTO product_images (id, product_id, image_path, sort_order, created_ts) "
                "VALUES (?, ?, ?, ?, ?)",
                (image.id, image.product_id, image.image_path, image.sort_order, image.created_ts),
            )
        return image

    @classmethod
    def delete(cls, conn: sqlite3.Connection, image_id: str) -> None:
        with _database(), conn:
            conn.execute("DELETE FROM product_images WHERE id = ?", (image_id,))

    @classmethod
    def delete_by_product(cls, conn: sqlite3.Connection, product_id: str) -> None:
        with _database(), conn:
            conn.execute("DELETE FROM product_images WHERE product_id = ?", (product_id,))

    @classmethod
    def reorder(
        cls, conn: sqlite3.Connection, product_id: str, image_ids: Iterable[str]
    ) -> None:
        """Give the listed images of a product the order in which they are listed."""
        with _database(), conn:
            conn.executemany(
                "UPDATE product_images SET sort_order = ? WHERE id = ? AND product_id = ?",
                [(index, image_id, product_id) for index, image_id in enumerate(image_ids)],
            )

    @classmethod
    def find_by_id(cls, conn: sqlite3.Connection, image_id: str) -> ProductImage | None:
        with _database():
            row = conn.execute(
                f"SELECT {_IMAGE_COLUMNS} FROM product_images WHERE id = ?", (image_id,)
            ).fetchone()
        return None if row is None else cls(*row)

    @classmethod
    def update_path(cls, conn: sqlite3.Connection, image_id: str, new_path: str) -> None:
        with _database(), conn:
            conn.execute(
                "UPDATE product_images SET image_path = ? WHERE id = ?", (new_path, image_id)
            )


@dataclass
class CreateProduct:
    name: str
    price_cents: int
    description: str | None = None
    stock_quantity: int | None = None
    weight_grams: int | None = None
    length_cm: float | None = None
    width_cm: float | None = None
    height_cm: float | None = None


@dataclass
class UpdateProduct:
    """Fields left as None keep their current value."""

    name: str | None = None
    description: str | None = None
    price_cents: int | None = None
    image_path: str | None = None
    stock_quantity: int | None = None
    is_active: bool | None = None
    stripe_price_id: str | None = None
    weight_grams: int | None = None
    length_cm: float | None = None
    width_cm: float | None = None
    height_cm: float | None = None


@dataclass
class Product:
    id: str
    name: str
    description: str | None
    price_cents: int
    image_path: str | None
    stock_quantity: int
    is_active: bool
    stripe_price_id: str | None
    stripe_product_id: str | None
    created_ts: int
    updated_ts: int
    weight_grams: int | None = None
    length_cm: float | None = None
    width_cm: float | None = None
    height_cm: float | None = None

    def uuid(self) -> uuid.UUID | None:
        """The id as a UUID, or None when it is not one."""
        try:
            return uuid.UUID(self.id)
        except ValueError:
            return None

    @classmethod
    def _from_row(cls, row: tuple) -> Product:
        values = list(row)
        values[6] = values[6] != 0
        return cls(*values)

    @classmethod
    def _query(cls, conn: sqlite3.Connection, where: str, params: tuple = ()) -> list[Product]:
        with _database():
            rows = conn.execute(
                f"SELECT {_PRODUCT_COLUMNS} FROM products {where}", params
            ).fetchall()
        return [cls._from_row(row) for row in rows]

    @classmethod
    def _require(cls, conn: sqlite3.Connection, product_id: str) -> Product:
        product = cls.find_by_id(conn, product_id)
        if product is None:
            raise NotFoundError("Product not found")
        return product

    @classmethod
    def list_active(cls, conn: sqlite3.Connection) -> list[Product]:
        """Active products, newest first."""
        return cls._query(conn, "WHERE is_active = 1 ORDER BY created_ts DESC")

    @classmethod
    def list_all(cls, conn: sqlite3.Connection) -> list[Product]:
        """All products, newest first."""
        return cls._query(conn, "ORDER BY created_ts DESC")

    @classmethod
    def find_by_id(cls, conn: sqlite3.Connection, product_id: str) -> Product | None:
        found = cls._query(conn, "WHERE id = ?", (product_id,))
        return found[0] if found else None

    @classmethod
    def create(cls, conn: sqlite3.Connection, data: CreateProduct) -> Product:
        product_id = str(uuid.uuid4())
        now = _now()
        with _database(), conn:
            conn.execute(
                "INSERT INTO products (id, name, description, price_cents, stock_quantity, "
                "created_ts, updated_ts, weight_grams, length_cm, width_cm, height_cm) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    product_id,
                    data.name,
                    data.description,
                    data.price_cents,
                    data.stock_quantity or 0,
                    now,
                    now,
                    data.weight_grams,
                    data.length_cm,
                    data.width_cm,
                    data.height_cm,
                ),
            )
        product = cls.find_by_id(conn, product_id)
        if product is None:
            raise InternalError("Failed to create product")
        return product

    @classmethod
    def update(cls, conn: sqlite3.Connection, product_id: str, data: UpdateProduct) -> Product:
        """Apply the given fields to a product; raises NotFoundError if it is missing."""
        current = cls._require(conn, product_id)
        with _database(), conn:
            conn.execute(
                "UPDATE products SET name = ?, description = ?, price_cents = ?, "
                "image_path = ?, stock_quantity = ?, is_active = ?, stripe_price_id = ?, "
                "updated_ts = ?, weight_grams = ?, length_cm = ?, width_cm = ?, height_cm = ? "
                "WHERE id = ?",
                (
                    _pick(data.name, current.name),
                    _pick(data.description, current.description),
                    _pick(data.price_cents, current.price_cents),
                    _pick(data.image_path, current.image_path),
                    _pick(data.stock_quantity, current.stock_quantity),
                    int(_pick(data.is_active, current.is_active)),
                    _pick(data.stripe_price_id, current.stripe_price_id),
                    _now(),
                    _pick(data.weight_grams, current.weight_grams),
                    _pick(data.length_cm, current.length_cm),
                    _pick(data.width_cm, current.width_cm),
                    _pick(data.height_cm, current.height_cm),
                    product_id,
                ),
            )
        return cls._require(conn, product_id)

    @classmethod
    def set_image(cls, conn: sqlite3.Connection, product_id: str, image_path: str) -> Product:
        with _database(), conn:
            conn.execute(
                "UPDATE products SET image_path = ?, updated_ts = ? WHERE id = ?",
                (image_path, _now(), product_id),
            )
        return cls._require(conn, product_id)

    @classmethod
    def set_stripe_ids(
        cls,
        conn: sqlite3.Connection,
        product_id: str,
        stripe_product_id: str,
        stripe_price_id: str,
    ) -> Product:
        with _database(), conn:
            conn.execute(
                "UPDATE products SET stripe_product_id = ?, stripe_price_id = ?, updated_ts = ? "
                "WHERE id = ?",
                (stripe_product_id, stripe_price_id, _now(), product_id),
            )
        return cls._require(conn, product_id)

    @classmethod
    def delete(cls, conn: sqlite3.Connection, product_id: str) -> None:
        with _database(), conn:
            conn.execute("DELETE FROM products WHERE id = ?", (product_id,))

    @classmethod
    def decrement_stock(cls, conn: sqlite3.Connection, product_id: str, quantity: int) -> Product:
        """Take stock away; nothing changes when there is not enough of it."""
        with _database(), conn:
            conn.execute(
                "UPDATE products SET stock_quantity = stock_quantity - ?, updated_ts = ? "
                "WHERE id = ? AND stock_quantity >= ?",
                (quantity, _now(), product_id, quantity),
            )
        return cls._require(conn, product_id)

    @classmethod
    def increment_stock(cls, conn: sqlite3.Connection, product_id: str, quantity: int) -> Product:
        with _database(), conn:
            conn.execute(
                "UPDATE products SET stock_quantity = stock_quantity + ?, updated_ts = ? "
                "WHERE id = ?",
                (quantity, _now(), product_id),
            )
        return cls._require(conn, product_id)