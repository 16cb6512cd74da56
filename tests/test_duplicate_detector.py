# tests/test_duplicate_detector.py

"""Tests for the re-observation duplicate check."""

import unittest
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from src.filters.duplicate_detector import DuplicateDetector
from src.models.observation import Availability, CrawlStatus, Observation

_BASE = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _obs(**overrides: object) -> Observation:
    values: dict[str, object] = {
        "listing_id": 1,
        "selling_price": Decimal("100.00"),
        "discount": Decimal("10"),
        "availability": Availability.IN_STOCK,
        "crawl_status": CrawlStatus.SUCCESS,
        "captured_at": _BASE,
        "id": 1,
    }
    values.update(overrides)
    return Observation(**values)  # type: ignore[arg-type]


class TestDiscountsEqual(unittest.TestCase):
    """Null-safe discount comparison."""

    def test_both_none(self) -> None:
        """Two missing discounts match."""
        self.assertTrue(DuplicateDetector.discounts_equal(None, None))

    def test_one_none(self) -> None:
        """A missing and a present discount differ."""
        self.assertFalse(
            DuplicateDetector.discounts_equal(None, Decimal("0")),
        )

    def test_scale_insensitive(self) -> None:
        """10 and 10.00 are the same discount."""
        self.assertTrue(
            DuplicateDetector.discounts_equal(Decimal("10"), Decimal("10.00")),
        )


class TestIsDuplicate(unittest.TestCase):
    """Five-way match."""

    def test_identical_within_window(self) -> None:
        """Same facts 10 minutes later are a duplicate."""
        latest = _obs()
        candidate = _obs(id=None, captured_at=_BASE + timedelta(minutes=10))
        self.assertTrue(DuplicateDetector.is_duplicate(latest, candidate))

    def test_exactly_at_window_is_duplicate(self) -> None:
        """Same facts exactly 30 minutes later are still suppressed."""
        latest = _obs()
        candidate = _obs(id=None, captured_at=_BASE + timedelta(minutes=30))
        self.assertTrue(DuplicateDetector.is_duplicate(latest, candidate))
        earlier = _obs(id=None, captured_at=_BASE - timedelta(minutes=30))
        self.assertTrue(DuplicateDetector.is_duplicate(latest, earlier))

    def test_identical_outside_window(self) -> None:
        """Same facts 31 minutes later are new."""
        latest = _obs()
        candidate = _obs(id=None, captured_at=_BASE + timedelta(minutes=31))
        self.assertFalse(DuplicateDetector.is_duplicate(latest, candidate))

    def test_any_field_change_breaks_match(self) -> None:
        """Each of price, discount, availability and status matters."""
        latest = _obs()
        changes = [
            {"selling_price": Decimal("99.99")},
            {"discount": None},
            {"availability": Availability.OUT_OF_STOCK},
            {"crawl_status": CrawlStatus.PARTIAL},
        ]
        for change in changes:
            with self.subTest(change=change):
                candidate = replace(latest, id=None, **change)  # type: ignore[arg-type]
                self.assertFalse(
                    DuplicateDetector.is_duplicate(latest, candidate),
                )

    def test_earlier_candidate_within_window(self) -> None:
        """The window is symmetric: a late-arriving older fact matches."""
        latest = _obs()
        candidate = _obs(id=None, captured_at=_BASE - timedelta(minutes=5))
        self.assertTrue(DuplicateDetector.is_duplicate(latest, candidate))

    def test_custom_window(self) -> None:
        """An explicit window overrides the configured one."""
        latest = _obs()
        candidate = _obs(id=None, captured_at=_BASE + timedelta(minutes=10))
        self.assertFalse(
            DuplicateDetector.is_duplicate(
                latest, candidate, window=timedelta(minutes=5),
            ),
        )

    def test_missing_price_never_matches(self) -> None:
        """Absent prices cannot be compared."""
        latest = _obs(selling_price=None)
        candidate = _obs(id=None, selling_price=None)
        self.assertFalse(DuplicateDetector.is_duplicate(latest, candidate))


if __name__ == "__main__":
    unittest.main()
