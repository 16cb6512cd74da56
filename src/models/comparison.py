# src/models/comparison.py

"""Derived query results: history, statistics and listing comparisons."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from src.models.observation import Availability, Observation

logger = logging.getLogger("price_intel.models")


class ComparisonSortType(str, Enum):
    """Output ordering for comparison results."""

    PRICE_ASC = "PRICE_ASC"
    PRICE_DESC = "PRICE_DESC"
    LATEST = "LATEST"

    @classmethod
    def parse(cls, value: object) -> "ComparisonSortType":
        """Resolve a sort key, falling back to ``PRICE_ASC``.

        Accepts enum names and the short aliases ``price``,
        ``price_desc`` and ``latest`` in any case.
        """
        if isinstance(value, ComparisonSortType):
            return value
        if value is not None and not isinstance(value, str):
            logger.warning(
                "Sort type %r is not text, defaulting to %s",
                value,
                cls.PRICE_ASC.value,
            )
            return cls.PRICE_ASC
        if value is None or not value.strip():
            return cls.PRICE_ASC
        key = value.strip().upper()
        if key == "PRICE":
            return cls.PRICE_ASC
        try:
            return cls(key)
        except ValueError:
            logger.warning(
                "Unknown sort type '%s', defaulting to %s",
                value,
                cls.PRICE_ASC.value,
            )
            return cls.PRICE_ASC


@dataclass(frozen=True)
class ComparisonItem:
    """One listing's latest price inside a comparison."""

    listing_id: int
    price: Decimal
    availability: Availability
    captured_at: datetime
    rank: int | None = None


@dataclass(frozen=True)
class ComparisonMetrics:
    """Extremes and spread over a filtered comparison set."""

    min_price: Decimal
    cheapest_listing_id: int
    max_price: Decimal
    most_expensive_listing_id: int
    price_spread: Decimal
    percentage_difference: Decimal


@dataclass
class ComparisonResult:
    """Outcome of comparing two or more listings.

    Pagination fields stay ``None`` unless a page was requested.
    """

    total_compared: int
    cheapest_listing_id: int
    most_expensive_listing_id: int
    best_value_listing_id: int | None
    price_spread: Decimal
    percentage_difference: Decimal
    results: list[ComparisonItem] = field(
        default_factory=lambda: list[ComparisonItem]()
    )
    page: int | None = None
    size: int | None = None
    total_pages: int | None = None
    total_items: int | None = None


@dataclass
class PriceHistory:
    """Chronological price observations for one listing."""

    listing_id: int
    count: int
    history: list[Observation]


@dataclass
class PriceStats:
    """Single-pass aggregate statistics for one listing."""

    listing_id: int
    min_price: Decimal
    max_price: Decimal
    average_price: Decimal
    lowest_seen_at: datetime
    highest_seen_at: datetime
    total_valid_records: int
