# src/storage/price_db.py

"""SQLite connection and schema shared by the registry and observation store."""

import logging
import sqlite3
from pathlib import Path

from src.config.settings import Settings

logger = logging.getLogger("price_intel.storage")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS products (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    brand_name   TEXT    NOT NULL,
    product_name TEXT    NOT NULL,
    pack_size    TEXT    NOT NULL,
    created_at   TEXT    NOT NULL,
    UNIQUE (brand_name, product_name, pack_size)
);

CREATE TABLE IF NOT EXISTS platforms (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    name       TEXT    NOT NULL UNIQUE COLLATE NOCASE,
    created_at TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS listings (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id  INTEGER NOT NULL REFERENCES products(id),
    platform_id INTEGER NOT NULL REFERENCES platforms(id),
    city        TEXT    NOT NULL,
    product_url TEXT    NOT NULL,
    is_active   INTEGER NOT NULL DEFAULT 1,
    created_at  TEXT    NOT NULL,
    UNIQUE (product_id, platform_id, city)
);

CREATE INDEX IF NOT EXISTS idx_listings_product_city_active
    ON listings(product_id, city, is_active);

CREATE TABLE IF NOT EXISTS price_snapshots (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    listing_id    INTEGER NOT NULL
                  REFERENCES listings(id) ON DELETE CASCADE,
    selling_price TEXT    NOT NULL,
    discount      TEXT,
    availability  TEXT    NOT NULL,
    crawl_status  TEXT    NOT NULL,
    captured_at   TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_snapshots_listing_captured
    ON price_snapshots(listing_id, captured_at);
"""


class PriceDB:
    """Owns the SQLite connection and creates the schema on open."""

    def __init__(
        self, db_path: Path | None = None,
    ) -> None:
        path = db_path or Settings.PRICE_DB_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(
            str(path), check_same_thread=False,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(_SCHEMA)
        logger.debug("PriceDB opened at %s", path)

    @property
    def connection(self) -> sqlite3.Connection:
        """The underlying connection."""
        return self._conn

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
