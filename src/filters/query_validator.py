# src/filters/query_validator.py

"""Guard conditions for single-listing price queries."""

import logging
from datetime import datetime

from src.models.errors import ValidationError

logger = logging.getLogger("price_intel.filters")


def is_positive_id(value: object) -> bool:
    """True for ``int`` identifiers greater than zero (``bool`` excluded)."""
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and value > 0
    )


class PriceQueryValidator:
    """Validate listing ids, date ranges and limits."""

    @staticmethod
    def validate_listing_id(listing_id: object) -> None:
        """Reject missing or non-positive listing ids."""
        if not is_positive_id(listing_id):
            logger.warning("Invalid listing id: %r", listing_id)
            msg = "Listing ID must be a positive number"
            raise ValidationError(msg)

    @staticmethod
    def validate_date_range(
        start: datetime | None, end: datetime | None,
    ) -> None:
        """Both bounds or neither; when both, ``start <= end``."""
        if (start is None) != (end is None):
            logger.warning(
                "Invalid date range: start=%s, end=%s", start, end,
            )
            msg = "Both start and end must be provided together"
            raise ValidationError(msg)

        if start is not None and end is not None and start > end:
            logger.warning(
                "Invalid date range: start=%s is after end=%s",
                start,
                end,
            )
            msg = "Start must be before or equal to end"
            raise ValidationError(msg)

    @staticmethod
    def validate_limit(limit: int | None) -> None:
        """A limit, when given, must be a positive integer."""
        if limit is not None and not is_positive_id(limit):
            logger.warning("Invalid limit: %r", limit)
            msg = "Limit must be a positive number"
            raise ValidationError(msg)
