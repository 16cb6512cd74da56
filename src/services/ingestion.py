# src/services/ingestion.py

"""Crawler-facing ingestion: resolve identities, then record the price."""

import json
import logging
from dataclasses import dataclass, fields
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, cast

from src.models.errors import PriceIntelError, ValidationError
from src.models.observation import Availability, CrawlStatus, Observation
from src.services.observation_recorder import ObservationRecorder
from src.storage.listing_registry import ListingRegistry
from src.utils.money import to_decimal
from src.utils.timeutil import parse_instant

logger = logging.getLogger("price_intel.ingestion")

_TEXT_FIELDS = (
    "brand_name",
    "product_name",
    "pack_size",
    "platform_name",
    "city",
    "product_url",
)


@dataclass
class IngestionRequest:
    """One crawled price point, identified by names rather than ids."""

    brand_name: str | None = None
    product_name: str | None = None
    pack_size: str | None = None
    platform_name: str | None = None
    city: str | None = None
    product_url: str | None = None
    selling_price: Decimal | None = None
    discount: Decimal | None = None
    availability: Availability | None = None
    crawl_status: CrawlStatus | None = None
    captured_at: datetime | None = None

    @classmethod
    def from_dict(cls, row: dict[str, Any]) -> "IngestionRequest":
        """Build a request from a JSON object (camelCase keys accepted)."""
        def pick(snake: str) -> Any:
            head, *rest = snake.split("_")
            camel = head + "".join(part.title() for part in rest)
            return row.get(snake, row.get(camel))

        for name in _TEXT_FIELDS:
            value = pick(name)
            if value is not None and not isinstance(value, str):
                msg = f"Invalid ingestion row: {name} must be text"
                raise ValidationError(msg)

        captured = pick("captured_at")
        availability = pick("availability")
        crawl_status = pick("crawl_status")
        try:
            return cls(
                brand_name=pick("brand_name"),
                product_name=pick("product_name"),
                pack_size=pick("pack_size"),
                platform_name=pick("platform_name"),
                city=pick("city"),
                product_url=pick("product_url"),
                selling_price=to_decimal(pick("selling_price"), "Selling price"),
                discount=to_decimal(pick("discount"), "Discount"),
                availability=(
                    Availability(str(availability).upper())
                    if availability is not None else None
                ),
                crawl_status=(
                    CrawlStatus(str(crawl_status).upper())
                    if crawl_status is not None else None
                ),
                captured_at=(
                    parse_instant(str(captured), "capturedAt")
                    if captured is not None else None
                ),
            )
        except ValidationError:
            raise
        except ValueError as exc:
            # Unknown enum members
            msg = f"Invalid ingestion row: {exc}"
            raise ValidationError(msg) from exc

    def missing_fields(self) -> list[str]:
        """Names of required fields that are absent or blank."""
        missing: list[str] = []
        for f in fields(self):
            if f.name == "discount":
                continue
            value = getattr(self, f.name)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(f.name)
        return missing


@dataclass
class IngestSummary:
    """Counts for a batch ingestion run."""

    recorded: int = 0
    duplicates: int = 0
    rejected: int = 0


class IngestionService:
    """Facade combining the listing registry and the recorder."""

    def __init__(
        self, registry: ListingRegistry, recorder: ObservationRecorder,
    ) -> None:
        self._registry = registry
        self._recorder = recorder

    def ingest(self, request: IngestionRequest) -> Observation:
        """Resolve product, platform and listing, then record the price."""
        return self._ingest(request)[0]

    def ingest_file(self, filepath: Path) -> IngestSummary:
        """Ingest a JSON array of request objects.

        Unreadable files yield an empty summary; bad rows are counted
        as rejected without stopping the batch.
        """
        summary = IngestSummary()
        try:
            with open(filepath, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Failed to read %s: %s", filepath.name, exc)
            return summary

        if not isinstance(data, list):
            logger.warning("Expected a JSON array in %s", filepath.name)
            return summary

        items: list[object] = cast(list[object], data)
        for index, row in enumerate(items):
            if not isinstance(row, dict):
                summary.rejected += 1
                continue
            try:
                request = IngestionRequest.from_dict(cast(dict[str, Any], row))
                _, created = self._ingest(request)
            except PriceIntelError as exc:
                logger.warning(
                    "Rejected row %d of %s: %s", index, filepath.name, exc,
                )
                summary.rejected += 1
                continue
            if created:
                summary.recorded += 1
            else:
                summary.duplicates += 1

        logger.info(
            "Ingested %s: %d recorded, %d duplicates, %d rejected",
            filepath.name,
            summary.recorded,
            summary.duplicates,
            summary.rejected,
        )
        return summary

    # ── Private helpers ──────────────────────────────────

    def _ingest(self, request: IngestionRequest) -> tuple[Observation, bool]:
        logger.info(
            "Starting ingestion: brand=%s, product=%s, platform=%s, city=%s",
            request.brand_name,
            request.product_name,
            request.platform_name,
            request.city,
        )
        missing = request.missing_fields()
        if missing:
            logger.warning("Missing fields: %s", ", ".join(missing))
            msg = f"Missing required fields: {', '.join(missing)}"
            raise ValidationError(msg)

        product = self._registry.get_or_create_product(
            cast(str, request.brand_name),
            cast(str, request.product_name),
            cast(str, request.pack_size),
        )
        platform = self._registry.get_or_create_platform(
            cast(str, request.platform_name),
        )
        listing = self._registry.get_or_create_listing(
            product.id,
            platform.id,
            cast(str, request.city),
            cast(str, request.product_url),
        )
        outcome = self._recorder.record_outcome(
            listing.id,
            request.selling_price,
            request.discount,
            request.availability,
            request.crawl_status,
            request.captured_at,
        )
        logger.info(
            "Ingestion completed: product=%d platform=%d listing=%d observation=%s",
            product.id,
            platform.id,
            listing.id,
            outcome.observation.id,
        )
        return outcome.observation, outcome.created
