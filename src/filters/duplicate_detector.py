# src/filters/duplicate_detector.py

"""Decide whether a new observation merely repeats the latest one."""

import logging
from datetime import timedelta
from decimal import Decimal

from src.config.settings import Settings
from src.models.observation import Observation
from src.utils.timeutil import within_window

logger = logging.getLogger("price_intel.filters")


class DuplicateDetector:
    """Five-way match between a candidate and the latest stored fact.

    Price, discount, availability and crawl status must be equal and
    the capture instants no further apart than the suppression window.
    """

    @staticmethod
    def discounts_equal(
        first: Decimal | None, second: Decimal | None,
    ) -> bool:
        """Null-safe decimal equality: two absent discounts match."""
        if first is None and second is None:
            return True
        if first is None or second is None:
            return False
        return first == second

    @staticmethod
    def is_duplicate(
        latest: Observation,
        candidate: Observation,
        window: timedelta | None = None,
    ) -> bool:
        """True when ``candidate`` adds no information over ``latest``."""
        threshold = window if window is not None else Settings.DUPLICATE_WINDOW

        if latest.selling_price is None or candidate.selling_price is None:
            return False

        matches = (
            latest.selling_price == candidate.selling_price
            and DuplicateDetector.discounts_equal(
                latest.discount, candidate.discount,
            )
            and latest.availability is candidate.availability
            and latest.crawl_status is candidate.crawl_status
            and within_window(
                latest.captured_at, candidate.captured_at, threshold,
            )
        )
        if matches:
            logger.debug(
                "Observation for listing %d repeats id=%s within %s",
                candidate.listing_id,
                latest.id,
                threshold,
            )
        return matches
