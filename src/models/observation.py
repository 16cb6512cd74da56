# src/models/observation.py

"""Immutable price observation model for a single listing."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum


class Availability(str, Enum):
    """Stock state reported by the crawler."""

    IN_STOCK = "IN_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    LIMITED_STOCK = "LIMITED_STOCK"


class CrawlStatus(str, Enum):
    """Outcome of the crawl that produced an observation."""

    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    PARTIAL = "PARTIAL"


@dataclass(frozen=True)
class Observation:
    """A single price fact for a listing at a point in time.

    ``id`` is ``None`` until the store assigns one on insert.
    """

    listing_id: int
    selling_price: Decimal | None
    discount: Decimal | None
    availability: Availability
    crawl_status: CrawlStatus
    captured_at: datetime
    id: int | None = None
