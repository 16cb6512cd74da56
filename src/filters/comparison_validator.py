# src/filters/comparison_validator.py

"""Guard conditions for multi-listing comparisons."""

import logging
from collections.abc import Sequence
from typing import cast

from src.config.settings import Settings
from src.filters.query_validator import is_positive_id
from src.models.errors import ValidationError

logger = logging.getLogger("price_intel.filters")


class ComparisonValidator:
    """Validate product ids, listing-id batches and pagination."""

    @staticmethod
    def validate_product_id(product_id: object) -> None:
        """Reject missing or non-positive product ids."""
        if not is_positive_id(product_id):
            logger.warning("Invalid product id: %r", product_id)
            msg = "Product ID must be positive"
            raise ValidationError(msg)

    @staticmethod
    def validate_listing_ids(listing_ids: Sequence[object] | None) -> None:
        """The batch must be non-empty and within the size cap."""
        if not listing_ids:
            logger.warning("Listing id batch is empty")
            msg = "Listing IDs list cannot be empty"
            raise ValidationError(msg)

        if len(listing_ids) > Settings.MAX_BATCH_SIZE:
            logger.warning(
                "Listing batch size exceeds maximum: %d > %d",
                len(listing_ids),
                Settings.MAX_BATCH_SIZE,
            )
            msg = (
                f"Listing batch size cannot exceed "
                f"{Settings.MAX_BATCH_SIZE}. Received: {len(listing_ids)}"
            )
            raise ValidationError(msg)

    @staticmethod
    def validate_pagination(page: int | None, size: int | None) -> None:
        """Page must be >= 0; size must be in ``1..MAX_PAGE_SIZE``."""
        if page is not None and page < 0:
            logger.warning("Invalid page number: %d", page)
            msg = "Page number cannot be negative"
            raise ValidationError(msg)

        if size is None:
            return
        if size <= 0:
            logger.warning("Invalid page size: %d", size)
            msg = "Page size must be positive"
            raise ValidationError(msg)
        if size > Settings.MAX_PAGE_SIZE:
            logger.warning(
                "Page size exceeds maximum: %d > %d",
                size,
                Settings.MAX_PAGE_SIZE,
            )
            msg = (
                f"Page size cannot exceed {Settings.MAX_PAGE_SIZE}. "
                f"Received: {size}"
            )
            raise ValidationError(msg)

    @staticmethod
    def sanitize_listing_ids(listing_ids: Sequence[object]) -> list[int]:
        """De-duplicate in first-seen order, silently dropping bad ids."""
        seen: set[int] = set()
        valid: list[int] = []
        skipped = 0
        for raw in listing_ids:
            if not is_positive_id(raw):
                skipped += 1
                continue
            listing_id = cast(int, raw)
            if listing_id in seen:
                continue
            seen.add(listing_id)
            valid.append(listing_id)

        if skipped:
            logger.debug("Skipped %d invalid listing ids", skipped)
        if not valid:
            logger.warning("No valid listing ids after validation")
            msg = "No valid listing IDs provided"
            raise ValidationError(msg)
        return valid
