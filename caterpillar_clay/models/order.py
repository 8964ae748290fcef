"""Orders, their line items and their shipping details."""

from __future__ import annotations

import enum
import json
import sqlite3
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field, fields

from caterpillar_clay.error import DatabaseError, InternalError, NotFoundError

_ORDER_COLUMNS = (
    "id, user_id, status, total_cents, shipping_address, tracking_number, "
    "shippo_tracker_id, stripe_session_id, stripe_payment_intent_id, created_ts, updated_ts, "
    "shipping_cents, shipping_carrier, shipping_service, estimated_delivery_days, label_url"
)
_ITEM_COLUMNS = "id, order_id, product_id, quantity, price_cents"


@contextmanager
def _database() -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        raise DatabaseError(str(exc)) from exc


def _now() -> int:
    return int(time.time())


class OrderStatus(enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"

    @classmethod
    def parse(cls, value: str) -> OrderStatus | None:
        """The status named by ``value``, or None when there is no such status."""
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass
class ShippingAddress:
    name: str
    street: str
    city: str
    state: str
    zip: str
    country: str

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, text: str) -> ShippingAddress | None:
        """Parse an address stored as JSON; None when it is not a valid address."""
        try:
            data = json.loads(text)
        except (TypeError, ValueError):
            return None
        if not isinstance(data, dict):
            return None
        values = {}
        for item in fields(cls):
            value = data.get(item.name)
            if not isinstance(value, str):
                return None
            values[item.name] = value
        return cls(**values)


@dataclass
class OrderItem:
    id: str
    order_id: str
    product_id: str
    quantity: int
    price_cents: int


@dataclass
class CreateOrderItem:
    product_id: str
    quantity: int
    price_cents: int


@dataclass
class CreateOrder:
    total_cents: int
    shipping_address: ShippingAddress
    items: list[CreateOrderItem] = field(default_factory=list)
    user_id: str | None = None
    stripe_session_id: str | None = None
    shipping_cents: int | None = None
    shipping_carrier: str | None = None
    shipping_service: str | None = None
    estimated_delivery_days: int | None = None


@dataclass
class Order:
    id: str
    user_id: str | None
    status: str
    total_cents: int
    shipping_address: str
    tracking_number: str | None
    shippo_tracker_id: str | None
    stripe_session_id: str | None
    stripe_payment_intent_id: str | None
    created_ts: int
    updated_ts: int
    shipping_cents: int = 0
    shipping_carrier: str | None = None
    shipping_service: str | None = None
    estimated_delivery_days: int | None = None
    label_url: str | None = None

    def uuid(self) -> uuid.UUID | None:
        """The id as a UUID, or None when it is not one."""
        try:
            return uuid.UUID(self.id)
        except ValueError:
            return None

    def parsed_shipping_address(self) -> ShippingAddress | None:
        return ShippingAddress.from_json(self.shipping_address)

    def order_status(self) -> OrderStatus | None:
        return OrderStatus.parse(self.status)

    @classmethod
    def _from_row(cls, row: tuple) -> Order:
        values = list(row)
        if values[11] is None:
            values[11] = 0
        return cls(*values)

    @classmethod
    def _query(cls, conn: sqlite3.Connection, where: str, params: tuple = ()) -> list[Order]:
        with _database():
            rows = conn.execute(f"SELECT {_ORDER_COLUMNS} FROM orders {where}", params).fetchall()
        return [cls._from_row(row) for row in rows]

    @classmethod
    def _find_one(cls, conn: sqlite3.Connection, column: str, value: str) -> Order | None:
        found = cls._query(conn, f"WHERE {column} = ?", (value,))
        return found[0] if found else None

    @classmethod
    def _require(cls, conn: sqlite3.Connection, order_id: str) -> Order:
        order = cls.find_by_id(conn, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    @classmethod
    def find_by_id(cls, conn: sqlite3.Connection, order_id: str) -> Order | None:
        return cls._find_one(conn, "id", order_id)

    @classmethod
    def find_by_stripe_session(cls, conn: sqlite3.Connection, session_id: str) -> Order | None:
        return cls._find_one(conn, "stripe_session_id", session_id)

    @classmethod
    def find_by_payment_intent(
        cls, conn: sqlite3.Connection, payment_intent_id: str
    ) -> Order | None:
        return cls._find_one(conn, "stripe_payment_intent_id", payment_intent_id)

    @classmethod
    def set_payment_intent(
        cls, conn: sqlite3.Connection, order_id: str, payment_intent_id: str
    ) -> None:
        with _database(), conn:
            conn.execute(
                "UPDATE orders SET stripe_payment_intent_id = ?, updated_ts = ? WHERE id = ?",
                (payment_intent_id, _now(), order_id),
            )

    @classmethod
    def list_by_user(cls, conn: sqlite3.Connection, user_id: str) -> list[Order]:
        """A user's orders, newest first."""
        return cls._query(conn, "WHERE user_id = ? ORDER BY created_ts DESC", (user_id,))

    @classmethod
    def list_all(cls, conn: sqlite3.Connection) -> list[Order]:
        """All orders, newest first."""
        return cls._query(conn, "ORDER BY created_ts DESC")

    @classmethod
    def create(cls, conn: sqlite3.Connection, data: CreateOrder) -> Order:
        """Store an order together with its items."""
        order_id = str(uuid.uuid4())
        now = _now()
        with _database(), conn:
            conn.execute(
                "INSERT INTO orders (id, user_id, total_cents, shipping_address, "
                "stripe_session_id, created_ts, updated_ts, shipping_cents, shipping_carrier, "
                "shipping_service, estimated_delivery_days) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    order_id,
                    data.user_id,
                    data.total_cents,
                    data.shipping_address.to_json(),
                    data.stripe_session_id,
                    now,
                    now,
                    data.shipping_cents or 0,
                    data.shipping_carrier,
                    data.shipping_service,
                    data.estimated_delivery_days,
                ),
            )
            conn.executemany(
                "INSERT INTO order_items (id, order_id, product_id, quantity, price_cents) "
                "VALUES (?, ?, ?, ?, ?)",
                [
                    (str(uuid.uuid4()), order_id, item.product_id, item.quantity, item.price_cents)
                    for item in data.items
                ],
            )
        order = cls.find_by_id(conn, order_id)
        if order is None:
            raise InternalError("Failed to create order")
        return order

    @classmethod
    def set_stripe_session(cls, conn: sqlite3.Connection, order_id: str, session_id: str) -> Order:
        with _database(), conn:
            conn.execute(
                "UPDATE orders SET stripe_session_id = ?, updated_ts = ? WHERE id = ?",
                (session_id, _now(), order_id),
            )
        return cls._require(conn, order_id)

    @classmethod
    def update_status(
        cls, conn: sqlite3.Connection, order_id: str, status: OrderStatus
    ) -> Order:
        with _database(), conn:
            conn.execute(
                "UPDATE orders SET status = ?, updated_ts = ? WHERE id = ?",
                (status.value, _now(), order_id),
            )
        return cls._require(conn, order_id)

    @classmethod
    def set_tracking(
        cls,
        conn: sqlite3.Connection,
        order_id: str,
        tracking_number: str,
        shippo_tracker_id: str | None = None,
    ) -> Order:
        """Record tracking details and mark the order shipped."""
        with _database(), conn:
            conn.execute(
                "UPDATE orders SET tracking_number = ?, shippo_tracker_id = ?, "
                "status = 'shipped', updated_ts = ? WHERE id = ?",
                (tracking_number, shippo_tracker_id, _now(), order_id),
            )
        return cls._require(conn, order_id)

    @classmethod
    def set_label(
        cls,
        conn: sqlite3.Connection,
        order_id: str,
        tracking_number: str,
        label_url: str,
        carrier: str | None = None,
    ) -> Order:
        """Record a purchased shipping label and mark the order processing."""
        with _database(), conn:
            conn.execute(
                "UPDATE orders SET tracking_number = ?, label_url = ?, "
                "shipping_carrier = COALESCE(?, shipping_carrier), "
                "status = 'processing', updated_ts = ? WHERE id = ?",
                (tracking_number, label_url, carrier, _now(), order_id),
            )
        return cls._require(conn, order_id)

    @classmethod
    def get_items(cls, conn: sqlite3.Connection, order_id: str) -> list[OrderItem]:
        with _database():
            rows = conn.execute(
                f"SELECT {_ITEM_COLUMNS} FROM order_items WHERE order_id = ?", (order_id,)
            ).fetchall()
        return [OrderItem(*row) for row in rows]

    @classmethod
    def count_all(cls, conn: sqlite3.Connection) -> int:
        with _database():
            row = conn.execute("SELECT COUNT(*) FROM orders").fetchone()
        return 0 if row is None else row[0]

    @classmethod
    def total_revenue(cls, conn: sqlite3.Connection) -> int:
        """Sum of order totals, leaving out pending and cancelled orders."""
        with _database():
            row = conn.execute(
                "SELECT SUM(total_cents) FROM orders "
                "WHERE status NOT IN ('pending', 'cancelled')"
            ).fetchone()
        return 0 if row is None or row[0] is None else row[0]