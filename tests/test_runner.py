# tests/test_runner.py

"""Tests for the headless CLI commands and argument parsing."""

import io
import json
import tempfile
import unittest
from collections.abc import Callable
from pathlib import Path
from unittest.mock import patch

from main import _build_parser
from src.cli.runner import (
    EXIT_NOT_FOUND,
    EXIT_OK,
    EXIT_VALIDATION,
    open_services,
    parse_id_list,
    run_compare,
    run_compare_product,
    run_deactivate,
    run_history,
    run_ingest,
    run_latest,
    run_listings,
    run_stats,
)


def _rows() -> list[dict[str, object]]:
    base: dict[str, object] = {
        "brandName": "Acme",
        "productName": "Oats",
        "packSize": "1kg",
        "city": "Dubai",
        "availability": "IN_STOCK",
        "crawlStatus": "SUCCESS",
    }
    return [
        {**base, "platformName": "Noon", "productUrl": "https://noon.com/o",
         "sellingPrice": "10.00", "capturedAt": "2024-01-01T10:00:00Z"},
        {**base, "platformName": "Noon", "productUrl": "https://noon.com/o",
         "sellingPrice": "12.00", "capturedAt": "2024-01-02T10:00:00Z"},
        {**base, "platformName": "Amazon", "productUrl": "https://amazon.ae/o",
         "sellingPrice": "15.00", "capturedAt": "2024-01-01T10:00:00Z"},
    ]


class TestParseIdList(unittest.TestCase):
    """Comma-separated id parsing."""

    def test_mixed_tokens(self) -> None:
        """Ints are parsed, junk kept for the validator, blanks dropped."""
        self.assertEqual(parse_id_list("1, 2,x,,3"), [1, 2, "x", 3])


class TestArgumentParser(unittest.TestCase):
    """Subcommand wiring in main."""

    def test_compare_product_args(self) -> None:
        """Paging and sort flags are parsed."""
        args = _build_parser().parse_args([
            "--db", "x.db", "compare-product", "4",
            "--city", "Dubai", "--page", "1", "--size", "10",
            "--sort", "latest", "--in-stock-only", "-f", "json",
        ])
        self.assertEqual(args.command, "compare-product")
        self.assertEqual(args.db_path, Path("x.db"))
        self.assertEqual(args.product_id, 4)
        self.assertEqual((args.page, args.size), (1, 10))
        self.assertTrue(args.in_stock_only)
        self.assertEqual(args.output_format, "json")

    def test_history_range(self) -> None:
        """ISO timestamps become aware datetimes."""
        args = _build_parser().parse_args([
            "history", "1",
            "--start", "2024-01-01T00:00:00Z",
            "--end", "2024-01-02T00:00:00Z",
        ])
        self.assertIsNotNone(args.start.tzinfo)
        self.assertEqual(args.output_format, "table")

    def test_listings_scope_required(self) -> None:
        """listings needs exactly one of --product or --city."""
        args = _build_parser().parse_args(
            ["listings", "--city", "Dubai", "--active-only"],
        )
        self.assertEqual((args.city, args.product_id), ("Dubai", None))
        self.assertTrue(args.active_only)
        with patch("sys.stderr", new_callable=io.StringIO):
            with self.assertRaises(SystemExit):
                _build_parser().parse_args(["listings"])
            with self.assertRaises(SystemExit):
                _build_parser().parse_args(
                    ["listings", "--product", "1", "--city", "Dubai"],
                )

    def test_deactivate_and_verbose(self) -> None:
        """deactivate takes a listing id; -v is a global flag."""
        args = _build_parser().parse_args(["-v", "deactivate", "7"])
        self.assertEqual((args.command, args.listing_id), ("deactivate", 7))
        self.assertTrue(args.verbose)
        self.assertFalse(_build_parser().parse_args(["latest", "1"]).verbose)

    def test_bad_timestamp_exits(self) -> None:
        """argparse rejects malformed timestamps."""
        with patch("sys.stderr", new_callable=io.StringIO):
            with self.assertRaises(SystemExit):
                _build_parser().parse_args(["stats", "1", "--start", "soon"])


class TestRunnerCommands(unittest.TestCase):
    """Commands against a temp database seeded through ingestion."""

    def setUp(self) -> None:
        """Ingest a small batch into a fresh temp DB."""
        self.tmp_dir = tempfile.mkdtemp()
        self.db_path = Path(self.tmp_dir) / "test.db"
        batch = Path(self.tmp_dir) / "batch.json"
        batch.write_text(json.dumps(_rows()), encoding="utf-8")
        with patch("sys.stderr", new_callable=io.StringIO):
            self.assertEqual(run_ingest(batch, self.db_path), EXIT_OK)
        with open_services(self.db_path) as svc:
            product = svc.registry.get_or_create_product("Acme", "Oats", "1kg")
            self.product_id = product.id
            self.listing_ids = [
                listing.id
                for listing in svc.registry.listings_for_product(product.id)
            ]

    def _json(
        self, command: Callable[[], int],
    ) -> tuple[int, dict[str, object]]:
        with patch("sys.stdout", new_callable=io.StringIO) as out:
            code = command()
        return code, json.loads(out.getvalue()) if out.getvalue() else {}

    def test_ingest_missing_file(self) -> None:
        """A missing input file is an error exit."""
        with patch("sys.stderr", new_callable=io.StringIO):
            code = run_ingest(Path(self.tmp_dir) / "nope.json", self.db_path)
        self.assertEqual(code, 1)

    def test_latest_json(self) -> None:
        """The newest observation is printed as JSON."""
        code, payload = self._json(
            lambda: run_latest(self.listing_ids[0], "json", self.db_path),
        )
        self.assertEqual(code, EXIT_OK)
        self.assertEqual(payload["sellingPrice"], "12.00")

    def test_latest_not_found(self) -> None:
        """Unknown listings map to the not-found exit code."""
        with patch("sys.stderr", new_callable=io.StringIO):
            code = run_latest(999, "json", self.db_path)
        self.assertEqual(code, EXIT_NOT_FOUND)

    def test_history_json(self) -> None:
        """History is chronological."""
        code, payload = self._json(
            lambda: run_history(
                self.listing_ids[0], None, None, None, "json",
                db_path=self.db_path,
            ),
        )
        self.assertEqual(code, EXIT_OK)
        self.assertEqual(payload["count"], 2)
        prices = [row["sellingPrice"] for row in payload["history"]]  # type: ignore[index]
        self.assertEqual(prices, ["10.00", "12.00"])

    def test_stats_table(self) -> None:
        """The table form prints the average."""
        with patch("sys.stdout", new_callable=io.StringIO) as out:
            code = run_stats(self.listing_ids[0], None, None, "table", self.db_path)
        self.assertEqual(code, EXIT_OK)
        self.assertIn("11.00", out.getvalue())

    def test_compare_json(self) -> None:
        """Latest prices 12 and 15 give a 25 percent difference."""
        ids = ",".join(str(i) for i in self.listing_ids)
        code, payload = self._json(
            lambda: run_compare(ids, False, None, "json", db_path=self.db_path),
        )
        self.assertEqual(code, EXIT_OK)
        self.assertEqual(payload["totalCompared"], 2)
        self.assertEqual(payload["priceSpread"], "3.00")
        self.assertEqual(payload["percentageDifference"], "25.00")
        self.assertIsNone(payload["page"])

    def test_compare_validation_exit(self) -> None:
        """Comparing a single listing is a validation failure."""
        with patch("sys.stderr", new_callable=io.StringIO):
            code = run_compare(
                str(self.listing_ids[0]), False, None, "json",
                db_path=self.db_path,
            )
        self.assertEqual(code, EXIT_VALIDATION)

    def test_compare_product_paginated(self) -> None:
        """Pagination fields are present when a page is requested."""
        code, payload = self._json(
            lambda: run_compare_product(
                self.product_id, "dubai", False, "price_desc", 0, 1, "json",
                db_path=self.db_path,
            ),
        )
        self.assertEqual(code, EXIT_OK)
        self.assertEqual(payload["totalPages"], 2)
        self.assertEqual(payload["totalItems"], 2)
        results = payload["results"]
        assert isinstance(results, list)
        self.assertEqual(len(results), 1)
        self.assertEqual(results[0]["price"], "15.00")

    # ── Listing maintenance ──────────────────────────────

    def _listings(self, **kwargs: object) -> list[dict[str, object]]:
        args: dict[str, object] = {
            "product_id": None, "city": None, "active_only": False,
        }
        args.update(kwargs)
        with patch("sys.stdout", new_callable=io.StringIO) as out:
            code = run_listings(
                output_format="json", db_path=self.db_path, **args,  # type: ignore[arg-type]
            )
        self.assertEqual(code, EXIT_OK)
        return json.loads(out.getvalue())

    def test_listings_by_product_and_city(self) -> None:
        """Both scopes find the two Dubai listings."""
        by_product = self._listings(product_id=self.product_id)
        self.assertEqual([row["id"] for row in by_product], self.listing_ids)
        by_city = self._listings(city="DUBAI")
        self.assertEqual([row["id"] for row in by_city], self.listing_ids)
        self.assertTrue(all(row["city"] == "dubai" for row in by_city))

    def test_deactivate_excludes_listing(self) -> None:
        """A deactivated listing drops out of product comparisons."""
        removed = self.listing_ids[1]
        with patch("sys.stderr", new_callable=io.StringIO) as err:
            self.assertEqual(run_deactivate(removed, self.db_path), EXIT_OK)
        self.assertIn(f"Listing {removed} deactivated", err.getvalue())

        active = self._listings(product_id=self.product_id, active_only=True)
        self.assertEqual([row["id"] for row in active], [self.listing_ids[0]])
        every = self._listings(product_id=self.product_id)
        flags = {row["id"]: row["isActive"] for row in every}
        self.assertEqual(flags, {self.listing_ids[0]: True, removed: False})

        # One active listing is too few to compare
        with patch("sys.stderr", new_callable=io.StringIO):
            code = run_compare_product(
                self.product_id, None, False, None, None, None, "json",
                db_path=self.db_path,
            )
        self.assertEqual(code, EXIT_VALIDATION)

    def test_deactivate_unknown_listing(self) -> None:
        """Deactivating a missing listing is a not-found exit."""
        with patch("sys.stderr", new_callable=io.StringIO):
            self.assertEqual(run_deactivate(999, self.db_path), EXIT_NOT_FOUND)

    def test_listings_table(self) -> None:
        """The table form shows the platform and city."""
        with patch("sys.stdout", new_callable=io.StringIO) as out:
            code = run_listings(
                self.product_id, None, False, "table", self.db_path,
            )
        self.assertEqual(code, EXIT_OK)
        self.assertIn("dubai", out.getvalue())


if __name__ == "__main__":
    unittest.main()
