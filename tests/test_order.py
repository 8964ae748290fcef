import json
import sqlite3

import pytest

from caterpillar_clay.error import DatabaseError, NotFoundError
from caterpillar_clay.models.order import (
    CreateOrder,
    CreateOrderItem,
    Order,
    OrderStatus,
    ShippingAddress,
)

SCHEMA = """
CREATE TABLE orders (
    id TEXT PRIMARY KEY,
    user_id TEXT,
    status TEXT NOT NULL DEFAULT 'pending',
    total_cents INTEGER NOT NULL,
    shipping_address TEXT NOT NULL,
    tracking_number TEXT,
    shippo_tracker_id TEXT,
    stripe_session_id TEXT,
    stripe_payment_intent_id TEXT,
    created_ts INTEGER NOT NULL,
    updated_ts INTEGER NOT NULL,
    shipping_cents INTEGER DEFAULT 0,
    shipping_carrier TEXT,
    shipping_service TEXT,
    estimated_delivery_days INTEGER,
    label_url TEXT
);
CREATE TABLE order_items (
    id TEXT PRIMARY KEY,
    order_id TEXT NOT NULL,
    product_id TEXT NOT NULL,
    quantity INTEGER NOT NULL,
    price_cents INTEGER NOT NULL
);
"""

ADDRESS = ShippingAddress("Ada Example", "1 Main St", "Springfield", "IL", "62701", "US")


@pytest.fixture
def conn():
    connection = sqlite3.connect(":memory:")
    connection.executescript(SCHEMA)
    yield connection
    connection.close()


def make_order(conn, total=1000, **kwargs):
    return Order.create(conn, CreateOrder(total_cents=total, shipping_address=ADDRESS, **kwargs))


def test_order_status_parse():
    assert OrderStatus.parse("shipped") is OrderStatus.SHIPPED
    assert OrderStatus.parse("refunded") is OrderStatus.REFUNDED
    assert OrderStatus.parse("Shipped") is None
    assert OrderStatus.parse("bogus") is None


def test_create_round_trip(conn):
    order = make_order(
        conn,
        user_id="u1",
        stripe_session_id="cs_1",
        shipping_carrier="usps",
        shipping_service="ground",
        estimated_delivery_days=3,
        items=[CreateOrderItem("p1", 2, 400), CreateOrderItem("p2", 1, 200)],
    )
    assert order.status == "pending"
    assert order.order_status() is OrderStatus.PENDING
    assert order.user_id == "u1"
    assert order.shipping_cents == 0
    assert order.shipping_carrier == "usps"
    assert order.estimated_delivery_days == 3
    assert order.parsed_shipping_address() == ADDRESS
    assert str(order.uuid()) == order.id
    assert Order.find_by_id(conn, order.id) == order
    items = Order.get_items(conn, order.id)
    assert sorted((i.product_id, i.quantity, i.price_cents) for i in items) == [
        ("p1", 2, 400),
        ("p2", 1, 200),
    ]
    assert all(i.order_id == order.id for i in items)


def test_shipping_address_json_fields(conn):
    order = make_order(conn)
    assert set(json.loads(order.shipping_address)) == {
        "name", "street", "city", "state", "zip", "country"
    }


def test_parsed_shipping_address_invalid(conn):
    order = make_order(conn)
    order.shipping_address = "not json"
    assert order.parsed_shipping_address() is None
    order.shipping_address = '{"name": "x"}'
    assert order.parsed_shipping_address() is None


def test_find_missing_returns_none(conn):
    assert Order.find_by_id(conn, "missing") is None
    assert Order.find_by_stripe_session(conn, "missing") is None
    assert Order.find_by_payment_intent(conn, "missing") is None


def test_stripe_session_and_payment_intent(conn):
    order = make_order(conn)
    updated = Order.set_stripe_session(conn, order.id, "cs_abc")
    assert updated.stripe_session_id == "cs_abc"
    assert Order.find_by_stripe_session(conn, "cs_abc").id == order.id
    Order.set_payment_intent(conn, order.id, "pi_abc")
    assert Order.find_by_payment_intent(conn, "pi_abc").id == order.id


def test_list_by_user_newest_first(conn):
    old = make_order(conn, user_id="u1")
    new = make_order(conn, user_id="u1")
    make_order(conn, user_id="u2")
    conn.execute("UPDATE orders SET created_ts = 1 WHERE id = ?", (old.id,))
    conn.execute("UPDATE orders SET created_ts = 2 WHERE id = ?", (new.id,))
    assert [o.id for o in Order.list_by_user(conn, "u1")] == [new.id, old.id]
    assert len(Order.list_all(conn)) == 3
    assert Order.count_all(conn) == 3


def test_update_status(conn):
    order = make_order(conn)
    updated = Order.update_status(conn, order.id, OrderStatus.DELIVERED)
    assert updated.order_status() is OrderStatus.DELIVERED


def test_set_tracking_marks_shipped(conn):
    order = make_order(conn)
    updated = Order.set_tracking(conn, order.id, "TRACK1", "trk_1")
    assert updated.status == "shipped"
    assert updated.tracking_number == "TRACK1"
    assert updated.shippo_tracker_id == "trk_1"


def test_set_label_keeps_carrier_when_none(conn):
    order = make_order(conn, shipping_carrier="usps")
    updated = Order.set_label(conn, order.id, "TRACK2", "https://labels.example.com/1.pdf")
    assert updated.status == "processing"
    assert updated.label_url == "https://labels.example.com/1.pdf"
    assert updated.shipping_carrier == "usps"
    replaced = Order.set_label(conn, order.id, "TRACK3", "https://labels.example.com/2.pdf", "ups")
    assert replaced.shipping_carrier == "ups"


@pytest.mark.parametrize(
    "call",
    [
        lambda c: Order.set_stripe_session(c, "missing", "cs"),
        lambda c: Order.update_status(c, "missing", OrderStatus.PAID),
        lambda c: Order.set_tracking(c, "missing", "T"),
        lambda c: Order.set_label(c, "missing", "T", "url"),
    ],
)
def test_missing_order_raises_not_found(conn, call):
    with pytest.raises(NotFoundError):
        call(conn)


def test_total_revenue_excludes_pending_and_cancelled(conn):
    assert Order.total_revenue(conn) == 0
    paid = make_order(conn, total=1000)
    shipped = make_order(conn, total=250)
    cancelled = make_order(conn, total=300)
    make_order(conn, total=500)
    Order.update_status(conn, paid.id, OrderStatus.PAID)
    Order.update_status(conn, shipped.id, OrderStatus.SHIPPED)
    Order.update_status(conn, cancelled.id, OrderStatus.CANCELLED)
    assert Order.total_revenue(conn) == paid.total_cents + shipped.total_cents


def test_database_error_without_schema():
    connection = sqlite3.connect(":memory:")
    with pytest.raises(DatabaseError):
        Order.count_all(connection)