# main.py

"""Entry point for the price_intel command line."""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

from src.config.logging_config import setup_logging
from src.models.comparison import ComparisonSortType
from src.utils.timeutil import parse_instant

logger = logging.getLogger("price_intel.main")


def _instant(text: str) -> datetime:
    """argparse type for ISO-8601 timestamps."""
    try:
        return parse_instant(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _add_output_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="table",
        dest="output_format",
        help="Output format (default: table).",
    )


def _add_range_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--start", type=_instant, default=None,
        help="Window start (ISO-8601, requires --end).",
    )
    parser.add_argument(
        "--end", type=_instant, default=None,
        help="Window end (ISO-8601, requires --start).",
    )


def _add_compare_args(parser: argparse.ArgumentParser) -> None:
    sort_choices = ", ".join(s.value for s in ComparisonSortType)
    parser.add_argument(
        "--in-stock-only",
        action="store_true",
        default=False,
        dest="in_stock_only",
        help="Compare only listings that are in stock.",
    )
    parser.add_argument(
        "--sort",
        default=None,
        help=f"Output order: {sort_choices} (default: PRICE_ASC).",
    )
    parser.add_argument(
        "--chart",
        action="store_true",
        default=False,
        help="Also export a Plotly HTML chart.",
    )
    _add_output_args(parser)


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="price_intel",
        description="Listing price history and comparison engine.",
    )
    parser.add_argument(
        "--db",
        default=None,
        type=Path,
        dest="db_path",
        help="SQLite database path (default: data/price_intel.db).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Show INFO log messages on the console.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="Ingest a JSON file of crawled prices.")
    ingest.add_argument("file", type=Path)

    latest = sub.add_parser("latest", help="Latest price of a listing.")
    latest.add_argument("listing_id", type=int)
    _add_output_args(latest)

    history = sub.add_parser("history", help="Price history of a listing.")
    history.add_argument("listing_id", type=int)
    _add_range_args(history)
    history.add_argument("--limit", type=int, default=None)
    history.add_argument(
        "--chart", action="store_true", default=False,
        help="Also export a Plotly HTML chart.",
    )
    _add_output_args(history)

    stats = sub.add_parser("stats", help="Price statistics of a listing.")
    stats.add_argument("listing_id", type=int)
    _add_range_args(stats)
    _add_output_args(stats)

    compare = sub.add_parser("compare", help="Compare listings by id.")
    compare.add_argument(
        "listing_ids", help="Comma-separated listing ids, e.g. 1,2,3.",
    )
    _add_compare_args(compare)

    product = sub.add_parser(
        "compare-product", help="Compare all active listings of a product.",
    )
    product.add_argument("product_id", type=int)
    product.add_argument("--city", default=None)
    product.add_argument("--page", type=int, default=None)
    product.add_argument("--size", type=int, default=None)
    _add_compare_args(product)

    listings = sub.add_parser(
        "listings", help="List listings of a product or in a city.",
    )
    scope = listings.add_mutually_exclusive_group(required=True)
    scope.add_argument("--product", type=int, dest="product_id")
    scope.add_argument("--city")
    listings.add_argument(
        "--active-only", action="store_true", default=False,
        dest="active_only", help="Hide deactivated listings.",
    )
    _add_output_args(listings)

    deactivate = sub.add_parser(
        "deactivate", help="Exclude a listing from product comparisons.",
    )
    deactivate.add_argument("listing_id", type=int)

    return parser


def _dispatch(args: argparse.Namespace) -> int:
    """Route parsed arguments to the matching runner command."""
    from src.cli import runner

    if args.command == "ingest":
        return runner.run_ingest(args.file, args.db_path)
    if args.command == "latest":
        return runner.run_latest(args.listing_id, args.output_format, args.db_path)
    if args.command == "history":
        return runner.run_history(
            args.listing_id, args.start, args.end, args.limit,
            args.output_format, args.chart, args.db_path,
        )
    if args.command == "stats":
        return runner.run_stats(
            args.listing_id, args.start, args.end,
            args.output_format, args.db_path,
        )
    if args.command == "compare":
        return runner.run_compare(
            args.listing_ids, args.in_stock_only, args.sort,
            args.output_format, args.chart, args.db_path,
        )
    if args.command == "listings":
        return runner.run_listings(
            args.product_id, args.city, args.active_only,
            args.output_format, args.db_path,
        )
    if args.command == "deactivate":
        return runner.run_deactivate(args.listing_id, args.db_path)
    return runner.run_compare_product(
        args.product_id, args.city, args.in_stock_only, args.sort,
        args.page, args.size, args.output_format, args.chart, args.db_path,
    )


def main() -> None:
    """Parse arguments and run one command."""
    parser = _build_parser()
    args = parser.parse_args()

    log_file = setup_logging(verbose=args.verbose)
    logger.info(
        "price_intel starting, command=%s, log file: %s",
        args.command,
        log_file,
    )

    try:
        exit_code = _dispatch(args)
    except Exception:
        logger.critical("Fatal error during command run", exc_info=True)
        raise
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
