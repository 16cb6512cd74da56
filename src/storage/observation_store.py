# src/storage/observation_store.py

"""Append-only SQLite store of price observations per listing."""

import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any

from src.models.observation import Availability, CrawlStatus, Observation
from src.storage.price_db import PriceDB
from src.utils.timeutil import from_storage, to_storage

logger = logging.getLogger("price_intel.storage")

_COLUMNS = (
    "id, listing_id, selling_price, discount, "
    "availability, crawl_status, captured_at"
)


def _decimal_or_none(raw: str | None) -> Decimal | None:
    return Decimal(raw) if raw is not None else None


def _row_to_observation(row: tuple[Any, ...]) -> Observation:
    """Map a ``_COLUMNS`` row back to an :class:`Observation`."""
    return Observation(
        id=row[0],
        listing_id=row[1],
        selling_price=_decimal_or_none(row[2]),
        discount=_decimal_or_none(row[3]),
        availability=Availability(row[4]),
        crawl_status=CrawlStatus(row[5]),
        captured_at=from_storage(row[6]),
    )


class ObservationStore:
    """Read and append price observations.

    Rows are never updated or deleted; each insert is committed on its
    own so readers never see a partial observation.
    """

    def __init__(self, db: PriceDB) -> None:
        self._conn = db.connection

    # ── Recording ────────────────────────────────────────

    def insert(self, observation: Observation) -> Observation:
        """Persist an observation and return it with its new id."""
        if observation.selling_price is None:
            msg = "Cannot store an observation without a selling price"
            raise ValueError(msg)
        with self._conn:
            cur = self._conn.execute(
                "INSERT INTO price_snapshots "
                "(listing_id, selling_price, discount, availability, "
                " crawl_status, captured_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    observation.listing_id,
                    str(observation.selling_price),
                    (
                        str(observation.discount)
                        if observation.discount is not None
                        else None
                    ),
                    observation.availability.value,
                    observation.crawl_status.value,
                    to_storage(observation.captured_at),
                ),
            )
        stored = replace(observation, id=cur.lastrowid)
        logger.debug(
            "Inserted observation id=%s for listing %d",
            stored.id,
            stored.listing_id,
        )
        return stored

    # ── Querying ─────────────────────────────────────────

    def latest(self, listing_id: int) -> Observation | None:
        """Most recently captured observation, or ``None``."""
        row = self._conn.execute(
            f"SELECT {_COLUMNS} FROM price_snapshots "
            "WHERE listing_id = ? "
            "ORDER BY captured_at DESC, id DESC LIMIT 1",
            (listing_id,),
        ).fetchone()
        return _row_to_observation(row) if row else None

    def history(self, listing_id: int) -> list[Observation]:
        """Every observation for a listing, newest first."""
        rows = self._conn.execute(
            f"SELECT {_COLUMNS} FROM price_snapshots "
            "WHERE listing_id = ? "
            "ORDER BY captured_at DESC, id DESC",
            (listing_id,),
        ).fetchall()
        return [_row_to_observation(r) for r in rows]

    def history_between(
        self, listing_id: int, start: datetime, end: datetime,
    ) -> list[Observation]:
        """Observations captured in ``[start, end]``, oldest first."""
        rows = self._conn.execute(
            f"SELECT {_COLUMNS} FROM price_snapshots "
            "WHERE listing_id = ? "
            "  AND captured_at BETWEEN ? AND ? "
            "ORDER BY captured_at ASC, id ASC",
            (listing_id, to_storage(start), to_storage(end)),
        ).fetchall()
        return [_row_to_observation(r) for r in rows]

    def latest_batch(
        self, listing_ids: Iterable[int],
    ) -> list[Observation]:
        """Latest observation of each listing in one query.

        Listings without observations are simply absent from the
        result.
        """
        ids = sorted(set(listing_ids))
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        rows = self._conn.execute(
            f"SELECT {_COLUMNS} FROM ("
            f"  SELECT {_COLUMNS}, ROW_NUMBER() OVER ("
            "    PARTITION BY listing_id "
            "    ORDER BY captured_at DESC, id DESC"
            "  ) AS rn "
            "  FROM price_snapshots "
            f"  WHERE listing_id IN ({placeholders})"
            ") WHERE rn = 1 "
            "ORDER BY listing_id",
            ids,
        ).fetchall()
        logger.debug(
            "Fetched %d latest observations for %d listings",
            len(rows),
            len(ids),
        )
        return [_row_to_observation(r) for r in rows]
