# src/services/observation_recorder.py

"""Write path: record a price observation unless it repeats the latest."""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.filters.duplicate_detector import DuplicateDetector
from src.models.errors import ListingNotFoundError, ValidationError
from src.models.observation import Availability, CrawlStatus, Observation
from src.storage.listing_registry import ListingRegistry
from src.storage.observation_store import ObservationStore
from src.utils.money import ZERO, to_decimal
from src.utils.timeutil import to_utc

logger = logging.getLogger("price_intel.recorder")


@dataclass(frozen=True)
class RecordOutcome:
    """The observation returned by a record call and whether it is new."""

    observation: Observation
    created: bool


def _coerce_enum(
    value: object, enum_cls: type[Availability] | type[CrawlStatus], field_name: str,
) -> Availability | CrawlStatus:
    if value is None:
        logger.warning("Invalid input: %s is null", field_name)
        msg = f"{field_name} cannot be null"
        raise ValidationError(msg)
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().upper())
    except ValueError:
        logger.warning("Invalid input: %s=%r", field_name, value)
        msg = f"Unknown {field_name}: {value!r}"
        raise ValidationError(msg) from None


class ObservationRecorder:
    """Append price observations, suppressing duplicate re-observations.

    The latest-then-insert sequence is not atomic: two concurrent
    recorders for the same listing may both insert.
    """

    def __init__(
        self, store: ObservationStore, registry: ListingRegistry,
    ) -> None:
        self._store = store
        self._registry = registry

    def record(
        self,
        listing_id: int | None,
        selling_price: Decimal | str | int | float | None,
        discount: Decimal | str | int | float | None,
        availability: Availability | str | None,
        crawl_status: CrawlStatus | str | None,
        captured_at: datetime | None,
    ) -> Observation:
        """Record one observation; returns the stored or existing one."""
        return self.record_outcome(
            listing_id,
            selling_price,
            discount,
            availability,
            crawl_status,
            captured_at,
        ).observation

    def record_outcome(
        self,
        listing_id: int | None,
        selling_price: Decimal | str | int | float | None,
        discount: Decimal | str | int | float | None,
        availability: Availability | str | None,
        crawl_status: CrawlStatus | str | None,
        captured_at: datetime | None,
    ) -> RecordOutcome:
        """Like :meth:`record` but also reports whether a row was added."""
        logger.debug(
            "Recording observation: listing=%s price=%s availability=%s "
            "crawl_status=%s",
            listing_id,
            selling_price,
            availability,
            crawl_status,
        )
        candidate = self._validate(
            listing_id,
            selling_price,
            discount,
            availability,
            crawl_status,
            captured_at,
        )

        if not self._registry.exists(candidate.listing_id):
            logger.error("Listing not found: listing_id=%d", candidate.listing_id)
            raise ListingNotFoundError(candidate.listing_id)

        latest = self._store.latest(candidate.listing_id)
        if latest is not None and DuplicateDetector.is_duplicate(latest, candidate):
            logger.info(
                "Duplicate observation for listing %d, returning id=%s",
                candidate.listing_id,
                latest.id,
            )
            return RecordOutcome(observation=latest, created=False)

        saved = self._store.insert(candidate)
        logger.info(
            "Recorded observation id=%s listing=%d price=%s availability=%s",
            saved.id,
            saved.listing_id,
            saved.selling_price,
            saved.availability.value,
        )
        return RecordOutcome(observation=saved, created=True)

    # ── Validation ───────────────────────────────────────

    @staticmethod
    def _validate(
        listing_id: int | None,
        selling_price: Decimal | str | int | float | None,
        discount: Decimal | str | int | float | None,
        availability: Availability | str | None,
        crawl_status: CrawlStatus | str | None,
        captured_at: datetime | None,
    ) -> Observation:
        """Check preconditions and build the candidate observation."""
        if listing_id is None:
            logger.warning("Invalid input: listing id is null")
            msg = "Listing ID cannot be null"
            raise ValidationError(msg)
        if isinstance(listing_id, bool) or not isinstance(listing_id, int):
            logger.warning("Invalid input: listing id %r", listing_id)
            msg = "Listing ID must be an integer"
            raise ValidationError(msg)

        price = to_decimal(selling_price, "Selling price")
        if price is None:
            logger.warning("Invalid input: selling price is null")
            msg = "Selling price cannot be null"
            raise ValidationError(msg)
        if price < ZERO:
            logger.warning("Invalid input: negative selling price %s", price)
            msg = "Selling price cannot be negative"
            raise ValidationError(msg)

        disc = to_decimal(discount, "Discount")
        if disc is not None and disc < ZERO:
            logger.warning("Invalid input: negative discount %s", disc)
            msg = "Discount cannot be negative"
            raise ValidationError(msg)

        avail = _coerce_enum(availability, Availability, "Availability")
        status = _coerce_enum(crawl_status, CrawlStatus, "Crawl status")

        if captured_at is None:
            logger.warning("Invalid input: captured-at timestamp is null")
            msg = "Captured-at timestamp cannot be null"
            raise ValidationError(msg)

        return Observation(
            listing_id=listing_id,
            selling_price=price,
            discount=disc,
            availability=Availability(avail.value),
            crawl_status=CrawlStatus(status.value),
            captured_at=to_utc(captured_at),
        )
