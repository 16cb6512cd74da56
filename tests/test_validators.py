# tests/test_validators.py

"""Tests for query and comparison guard conditions."""

import unittest
from datetime import datetime, timezone

from src.config.settings import Settings
from src.filters.comparison_validator import ComparisonValidator
from src.filters.query_validator import PriceQueryValidator, is_positive_id
from src.models.errors import ValidationError

_UTC = timezone.utc


class TestIsPositiveId(unittest.TestCase):
    """Identifier shape check."""

    def test_accepts_positive_ints(self) -> None:
        """1 and large ints are valid."""
        self.assertTrue(is_positive_id(1))
        self.assertTrue(is_positive_id(10**9))

    def test_rejects_others(self) -> None:
        """Zero, negatives, bools, strings and None are invalid."""
        for value in (0, -1, True, "5", None, 2.0):
            with self.subTest(value=value):
                self.assertFalse(is_positive_id(value))


class TestPriceQueryValidator(unittest.TestCase):
    """Single-listing query checks."""

    def test_listing_id(self) -> None:
        """Non-positive listing ids are rejected."""
        PriceQueryValidator.validate_listing_id(7)
        with self.assertRaises(ValidationError):
            PriceQueryValidator.validate_listing_id(0)
        with self.assertRaises(ValidationError):
            PriceQueryValidator.validate_listing_id(None)

    def test_date_range_requires_both(self) -> None:
        """A lone bound is an error."""
        start = datetime(2024, 1, 1, tzinfo=_UTC)
        with self.assertRaises(ValidationError):
            PriceQueryValidator.validate_date_range(start, None)
        with self.assertRaises(ValidationError):
            PriceQueryValidator.validate_date_range(None, start)

    def test_date_range_order(self) -> None:
        """start after end is an error; equal bounds are fine."""
        start = datetime(2024, 1, 2, tzinfo=_UTC)
        end = datetime(2024, 1, 1, tzinfo=_UTC)
        with self.assertRaises(ValidationError):
            PriceQueryValidator.validate_date_range(start, end)
        PriceQueryValidator.validate_date_range(end, end)
        PriceQueryValidator.validate_date_range(None, None)

    def test_limit(self) -> None:
        """Limits must be positive when present."""
        PriceQueryValidator.validate_limit(None)
        PriceQueryValidator.validate_limit(5)
        with self.assertRaises(ValidationError):
            PriceQueryValidator.validate_limit(0)
        with self.assertRaises(ValidationError):
            PriceQueryValidator.validate_limit(-3)


class TestComparisonValidator(unittest.TestCase):
    """Multi-listing comparison checks."""

    def test_product_id(self) -> None:
        """Product ids must be positive."""
        ComparisonValidator.validate_product_id(3)
        with self.assertRaises(ValidationError):
            ComparisonValidator.validate_product_id(-1)

    def test_listing_ids_empty(self) -> None:
        """Empty and None batches are rejected."""
        with self.assertRaises(ValidationError):
            ComparisonValidator.validate_listing_ids([])
        with self.assertRaises(ValidationError):
            ComparisonValidator.validate_listing_ids(None)

    def test_listing_ids_cap(self) -> None:
        """Batches larger than MAX_BATCH_SIZE are rejected."""
        at_cap = list(range(1, Settings.MAX_BATCH_SIZE + 1))
        ComparisonValidator.validate_listing_ids(at_cap)
        with self.assertRaises(ValidationError) as ctx:
            ComparisonValidator.validate_listing_ids(
                at_cap + [Settings.MAX_BATCH_SIZE + 1],
            )
        self.assertIn(str(Settings.MAX_BATCH_SIZE + 1), str(ctx.exception))

    def test_pagination(self) -> None:
        """Negative page, zero size and oversize pages are rejected."""
        ComparisonValidator.validate_pagination(None, None)
        ComparisonValidator.validate_pagination(0, Settings.MAX_PAGE_SIZE)
        with self.assertRaises(ValidationError):
            ComparisonValidator.validate_pagination(-1, 10)
        with self.assertRaises(ValidationError):
            ComparisonValidator.validate_pagination(0, 0)
        with self.assertRaises(ValidationError):
            ComparisonValidator.validate_pagination(
                0, Settings.MAX_PAGE_SIZE + 1,
            )

    def test_sanitize_dedupes_in_order(self) -> None:
        """First occurrence wins; invalid ids are dropped silently."""
        result = ComparisonValidator.sanitize_listing_ids(
            [3, 1, None, 3, -2, "x", 2, 1],
        )
        self.assertEqual(result, [3, 1, 2])

    def test_sanitize_all_invalid(self) -> None:
        """No survivors is an error."""
        with self.assertRaises(ValidationError):
            ComparisonValidator.sanitize_listing_ids([None, 0, -5])


if __name__ == "__main__":
    unittest.main()
