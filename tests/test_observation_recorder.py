# tests/test_observation_recorder.py

"""Tests for recording observations with duplicate suppression."""

import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

from src.models.errors import ListingNotFoundError, ValidationError
from src.models.observation import Availability, CrawlStatus
from src.services.observation_recorder import (
    ObservationRecorder,
    RecordOutcome,
)
from src.storage.listing_registry import ListingRegistry
from src.storage.observation_store import ObservationStore
from src.storage.price_db import PriceDB

_BASE = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


class TestObservationRecorder(unittest.TestCase):
    """Recorder validation and duplicate handling."""

    def setUp(self) -> None:
        """Create a temp DB with one listing."""
        self.tmp_dir = tempfile.mkdtemp()
        self.db = PriceDB(db_path=Path(self.tmp_dir) / "test.db")
        registry = ListingRegistry(self.db)
        product = registry.get_or_create_product("Acme", "Oats", "1kg")
        platform = registry.get_or_create_platform("Noon")
        self.listing_id = registry.get_or_create_listing(
            product.id, platform.id, "Dubai", "https://noon.com/oats",
        ).id
        self.store = ObservationStore(self.db)
        self.recorder = ObservationRecorder(self.store, registry)

    def tearDown(self) -> None:
        """Close the database."""
        self.db.close()

    def _record(self, minutes: int = 0, **overrides: object) -> RecordOutcome:
        args: dict[str, object] = {
            "listing_id": self.listing_id,
            "selling_price": Decimal("100.00"),
            "discount": Decimal("5"),
            "availability": Availability.IN_STOCK,
            "crawl_status": CrawlStatus.SUCCESS,
            "captured_at": _BASE + timedelta(minutes=minutes),
        }
        args.update(overrides)
        return self.recorder.record_outcome(**args)  # type: ignore[arg-type]

    # ── Duplicate suppression ────────────────────────────

    def test_first_observation_is_created(self) -> None:
        """An empty history always accepts the observation."""
        outcome = self._record()
        self.assertTrue(outcome.created)
        self.assertIsNotNone(outcome.observation.id)

    def test_repeat_within_window_returns_existing(self) -> None:
        """Same facts 10 minutes later return the stored row."""
        first = self._record(0)
        second = self._record(10)
        self.assertFalse(second.created)
        self.assertEqual(second.observation.id, first.observation.id)
        self.assertEqual(len(self.store.history(self.listing_id)), 1)

    def test_repeat_at_window_edge_returns_existing(self) -> None:
        """Same facts exactly 30 minutes later are still a duplicate."""
        first = self._record(0)
        second = self._record(30)
        self.assertFalse(second.created)
        self.assertEqual(second.observation.id, first.observation.id)
        self.assertEqual(len(self.store.history(self.listing_id)), 1)

    def test_repeat_after_window_is_inserted(self) -> None:
        """Same facts 31 minutes later are a new row."""
        first = self._record(0)
        second = self._record(31)
        self.assertTrue(second.created)
        self.assertNotEqual(second.observation.id, first.observation.id)
        self.assertEqual(len(self.store.history(self.listing_id)), 2)

    def test_price_change_within_window_is_inserted(self) -> None:
        """Any changed field defeats suppression."""
        self._record(0)
        outcome = self._record(5, selling_price=Decimal("95.00"))
        self.assertTrue(outcome.created)

    def test_record_returns_observation(self) -> None:
        """record() is the observation-only form of record_outcome()."""
        saved = self.recorder.record(
            self.listing_id, "49.90", None, "in_stock", "success", _BASE,
        )
        self.assertEqual(saved.selling_price, Decimal("49.90"))
        self.assertIs(saved.availability, Availability.IN_STOCK)
        self.assertIs(saved.crawl_status, CrawlStatus.SUCCESS)

    def test_naive_timestamp_stored_as_utc(self) -> None:
        """Naive capture times are treated as UTC."""
        saved = self._record(captured_at=datetime(2024, 2, 1, 10, 0))
        self.assertEqual(
            saved.observation.captured_at,
            datetime(2024, 2, 1, 10, 0, tzinfo=timezone.utc),
        )

    # ── Validation ───────────────────────────────────────

    def test_invalid_inputs_rejected(self) -> None:
        """Each precondition raises ValidationError."""
        cases: list[dict[str, object]] = [
            {"listing_id": None},
            {"listing_id": "7"},
            {"selling_price": None},
            {"selling_price": Decimal("-1")},
            {"discount": Decimal("-0.01")},
            {"availability": None},
            {"availability": "SOLD_OUT"},
            {"crawl_status": None},
            {"captured_at": None},
        ]
        for overrides in cases:
            with self.subTest(overrides=overrides):
                with self.assertRaises(ValidationError):
                    self._record(**overrides)
        self.assertEqual(self.store.history(self.listing_id), [])

    def test_zero_price_allowed(self) -> None:
        """A free listing is a valid observation."""
        outcome = self._record(selling_price=Decimal("0"))
        self.assertTrue(outcome.created)

    def test_unknown_listing(self) -> None:
        """Recording against an unknown listing is a not-found error."""
        with self.assertRaises(ListingNotFoundError) as ctx:
            self._record(listing_id=4242)
        self.assertEqual(ctx.exception.identifier, 4242)


if __name__ == "__main__":
    unittest.main()
