"""Key/value site settings and the values derived from them."""

from __future__ import annotations

import sqlite3
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from caterpillar_clay.error import DatabaseError


@contextmanager
def _database() -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        raise DatabaseError(str(exc)) from exc


@dataclass
class ArtistInfo:
    image: str
    description: str


@dataclass
class ShopAddress:
    name: str
    street1: str
    street2: str | None
    city: str
    state: str
    zip: str
    country: str
    phone: str | None


@dataclass
class Setting:
    key: str
    value: str
    updated_ts: int

    @classmethod
    def get(cls, conn: sqlite3.Connection, key: str) -> str | None:
        with _database():
            row = conn.execute(
                "SELECT value FROM site_settings WHERE key = ?", (key,)
            ).fetchone()
        return None if row is None else row[0]

    @classmethod
    def set(cls, conn: sqlite3.Connection, key: str, value: str) -> None:
        with _database(), conn:
            conn.execute(
                "INSERT OR REPLACE INTO site_settings (key, value, updated_ts) VALUES (?, ?, ?)",
                (key, value, int(time.time())),
            )

    @classmethod
    def _non_empty(cls, conn: sqlite3.Connection, key: str) -> str | None:
        return cls.get(conn, key) or None

    @classmethod
    def get_artist_info(cls, conn: sqlite3.Connection) -> ArtistInfo:
        image = cls.get(conn, "artist_image")
        description = cls.get(conn, "artist_description")
        return ArtistInfo(
            image="/artist/Alex.webp" if image is None else image,
            description="" if description is None else description,
        )

    @classmethod
    def get_shop_address(cls, conn: sqlite3.Connection) -> ShopAddress | None:
        """The shop's return address, or None until a street is configured."""
        street1 = cls.get(conn, "shop_street1") or ""
        if not street1:
            return None
        name = cls.get(conn, "shop_name")
        country = cls.get(conn, "shop_country")
        return ShopAddress(
            name="Caterpillar Clay" if name is None else name,
            street1=street1,
            street2=cls._non_empty(conn, "shop_street2"),
            city=cls.get(conn, "shop_city") or "",
            state=cls.get(conn, "shop_state") or "",
            zip=cls.get(conn, "shop_zip") or "",
            country="US" if country is None else country,
            phone=cls._non_empty(conn, "shop_phone"),
        )

    @classmethod
    def get_unit_system(cls, conn: sqlite3.Connection) -> str:
        value = cls.get(conn, "shipping_unit_system")
        return "metric" if value is None else value