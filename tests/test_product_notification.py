import sqlite3

import pytest

from caterpillar_clay.error import DatabaseError
from caterpillar_clay.models.product_notification import ProductNotification

SCHEMA = """
CREATE TABLE product_notifications (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL,
    product_id TEXT NOT NULL,
    style_id TEXT,
    notified INTEGER NOT NULL DEFAULT 0,
    created_ts INTEGER NOT NULL,
    notified_ts INTEGER
);
"""


@pytest.fixture
def conn():
    connection = sqlite3.connect(":memory:")
    connection.executescript(SCHEMA)
    yield connection
    connection.close()


def test_subscribe_lowercases_and_round_trips(conn):
    created = ProductNotification.subscribe(conn, "Buyer@Example.com", "p1")
    assert created.email == "buyer@example.com"
    assert created.notified is False
    assert created.notified_ts is None
    assert ProductNotification.find_pending(conn, "BUYER@example.com", "p1") == created


def test_subscribe_is_idempotent(conn):
    first = ProductNotification.subscribe(conn, "a@example.com", "p1", "s1")
    second = ProductNotification.subscribe(conn, "A@example.com", "p1", "s1")
    assert second.id == first.id
    assert ProductNotification.count_pending_for_product(conn, "p1") == 1


def test_style_and_no_style_are_distinct(conn):
    plain = ProductNotification.subscribe(conn, "a@example.com", "p1")
    styled = ProductNotification.subscribe(conn, "a@example.com", "p1", "s1")
    assert plain.id != styled.id
    assert ProductNotification.find_pending(conn, "a@example.com", "p1").id == plain.id
    assert ProductNotification.find_pending(conn, "a@example.com", "p1", "s1").id == styled.id
    assert ProductNotification.find_pending(conn, "a@example.com", "p1", "s2") is None


def test_get_pending_for_product_oldest_first(conn):
    newer = ProductNotification.subscribe(conn, "b@example.com", "p1")
    older = ProductNotification.subscribe(conn, "a@example.com", "p1")
    ProductNotification.subscribe(conn, "c@example.com", "p2")
    conn.execute("UPDATE product_notifications SET created_ts = 1 WHERE id = ?", (older.id,))
    conn.execute("UPDATE product_notifications SET created_ts = 2 WHERE id = ?", (newer.id,))
    pending = ProductNotification.get_pending_for_product(conn, "p1")
    assert [n.id for n in pending] == [older.id, newer.id]


def test_get_pending_for_styles(conn):
    s1 = ProductNotification.subscribe(conn, "a@example.com", "p1", "s1")
    ProductNotification.subscribe(conn, "a@example.com", "p1", "s2")
    ProductNotification.subscribe(conn, "a@example.com", "p1")
    assert ProductNotification.get_pending_for_styles(conn, "p1", []) == []
    found = ProductNotification.get_pending_for_styles(conn, "p1", ["s1", "s9"])
    assert [n.id for n in found] == [s1.id]


def test_mark_notified(conn):
    n = ProductNotification.subscribe(conn, "a@example.com", "p1")
    ProductNotification.mark_notified(conn, n.id)
    assert ProductNotification.find_pending(conn, "a@example.com", "p1") is None
    assert ProductNotification.count_pending_for_product(conn, "p1") == 0
    again = ProductNotification.subscribe(conn, "a@example.com", "p1")
    assert again.id != n.id


def test_mark_all_notified_for_product(conn):
    ProductNotification.subscribe(conn, "a@example.com", "p1")
    ProductNotification.subscribe(conn, "b@example.com", "p1", "s1")
    ProductNotification.subscribe(conn, "c@example.com", "p2")
    assert ProductNotification.mark_all_notified_for_product(conn, "p1") == 2
    assert ProductNotification.mark_all_notified_for_product(conn, "p1") == 0
    assert ProductNotification.count_pending_for_product(conn, "p1") == 0
    assert ProductNotification.count_pending_for_product(conn, "p2") == 1


def test_cleanup_old_notified(conn):
    old = ProductNotification.subscribe(conn, "a@example.com", "p1")
    recent = ProductNotification.subscribe(conn, "b@example.com", "p1")
    pending = ProductNotification.subscribe(conn, "c@example.com", "p1")
    ProductNotification.mark_notified(conn, old.id)
    ProductNotification.mark_notified(conn, recent.id)
    conn.execute("UPDATE product_notifications SET notified_ts = 0 WHERE id = ?", (old.id,))
    assert ProductNotification.cleanup_old_notified(conn, 30) == 1
    remaining = {row[0] for row in conn.execute("SELECT id FROM product_notifications")}
    assert remaining == {recent.id, pending.id}


def test_database_error_without_schema():
    connection = sqlite3.connect(":memory:")
    with pytest.raises(DatabaseError):
        ProductNotification.count_pending_for_product(connection, "p1")