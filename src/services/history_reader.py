# src/services/history_reader.py

"""Read path for one listing: latest price, ordered history and stats."""

import logging
from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from typing import TypeVar

from src.filters.query_validator import PriceQueryValidator
from src.models.comparison import PriceHistory, PriceStats
from src.models.errors import ObservationNotFoundError
from src.models.observation import Observation
from src.storage.observation_store import ObservationStore
from src.utils.money import ZERO, average
from src.utils.timeutil import to_utc

logger = logging.getLogger("price_intel.history")

T = TypeVar("T")


def _as_utc(moment: datetime | None) -> datetime | None:
    return to_utc(moment) if moment is not None else None


def apply_limit(series: Sequence[T], limit: int | None = None) -> list[T]:
    """Keep the most recent ``limit`` entries of a chronological series.

    ``None`` or a limit covering the whole series returns a copy of it
    unchanged; otherwise the *last* ``limit`` entries, still in
    chronological order.
    """
    if limit is None or limit >= len(series):
        return list(series)
    logger.debug("Applying limit=%d to %d entries", limit, len(series))
    return list(series[len(series) - limit:])


class HistoryReader:
    """Single-listing queries over the observation store."""

    def __init__(self, store: ObservationStore) -> None:
        self._store = store

    def get_latest(self, listing_id: int) -> Observation:
        """Most recent observation of a listing."""
        PriceQueryValidator.validate_listing_id(listing_id)
        latest = self._store.latest(listing_id)
        if latest is None:
            logger.warning("No observation found for listing %d", listing_id)
            raise ObservationNotFoundError(listing_id)
        logger.info(
            "Latest price for listing %d: %s (%s)",
            listing_id,
            latest.selling_price,
            latest.availability.value,
        )
        return latest

    def get_history(
        self,
        listing_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> PriceHistory:
        """Chronological history, optionally windowed and limited."""
        logger.info(
            "Fetching history for listing %s, start=%s, end=%s, limit=%s",
            listing_id,
            start,
            end,
            limit,
        )
        PriceQueryValidator.validate_listing_id(listing_id)
        start, end = _as_utc(start), _as_utc(end)
        PriceQueryValidator.validate_date_range(start, end)
        PriceQueryValidator.validate_limit(limit)

        series = self._chronological(listing_id, start, end)
        if not series:
            logger.warning("No price history found for listing %d", listing_id)
            raise ObservationNotFoundError(listing_id)

        limited = apply_limit(series, limit)
        logger.info(
            "History for listing %d: %d total, %d returned",
            listing_id,
            len(series),
            len(limited),
        )
        return PriceHistory(
            listing_id=listing_id,
            count=len(limited),
            history=limited,
        )

    def get_stats(
        self,
        listing_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> PriceStats:
        """Min / max / average over the (optionally windowed) series.

        Extremes keep the instant at which they were first seen in
        chronological order; observations without a price are ignored.
        """
        logger.info(
            "Fetching stats for listing %s, start=%s, end=%s",
            listing_id,
            start,
            end,
        )
        PriceQueryValidator.validate_listing_id(listing_id)
        start, end = _as_utc(start), _as_utc(end)
        PriceQueryValidator.validate_date_range(start, end)

        series = self._chronological(listing_id, start, end)
        if not series:
            logger.warning("No observations for listing %d to compute stats", listing_id)
            raise ObservationNotFoundError(listing_id)

        min_price: Decimal | None = None
        max_price: Decimal | None = None
        lowest_seen_at: datetime | None = None
        highest_seen_at: datetime | None = None
        total = ZERO
        valid = 0

        for obs in series:
            price = obs.selling_price
            if price is None:
                continue
            valid += 1
            total += price
            if min_price is None or price < min_price:
                min_price = price
                lowest_seen_at = obs.captured_at
            if max_price is None or price > max_price:
                max_price = price
                highest_seen_at = obs.captured_at

        if (
            valid == 0
            or min_price is None
            or max_price is None
            or lowest_seen_at is None
            or highest_seen_at is None
        ):
            logger.warning("No valid prices for listing %d to compute stats", listing_id)
            raise ObservationNotFoundError(listing_id)

        stats = PriceStats(
            listing_id=listing_id,
            min_price=min_price,
            max_price=max_price,
            average_price=average(total, valid),
            lowest_seen_at=lowest_seen_at,
            highest_seen_at=highest_seen_at,
            total_valid_records=valid,
        )
        logger.info(
            "Stats for listing %d: min=%s max=%s avg=%s records=%d",
            listing_id,
            stats.min_price,
            stats.max_price,
            stats.average_price,
            stats.total_valid_records,
        )
        return stats

    # ── Private helpers ──────────────────────────────────

    def _chronological(
        self,
        listing_id: int,
        start: datetime | None,
        end: datetime | None,
    ) -> list[Observation]:
        """Oldest-first series, windowed when both bounds are given."""
        if start is not None and end is not None:
            return self._store.history_between(listing_id, start, end)
        # The full history comes back newest first
        return list(reversed(self._store.history(listing_id)))
