# src/cli/runner.py

"""Headless CLI commands over the recorder, readers and comparison engine."""

import json
import logging
import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from rich.console import Console
from rich.table import Table

from src.models.comparison import ComparisonResult, PriceHistory, PriceStats
from src.models.errors import (
    ListingNotFoundError,
    NotFoundError,
    PriceIntelError,
    ValidationError,
)
from src.models.listing import Listing
from src.models.observation import Availability, Observation
from src.services.comparison_engine import ComparisonEngine
from src.services.history_reader import HistoryReader
from src.services.ingestion import IngestionService
from src.services.observation_recorder import ObservationRecorder
from src.storage.listing_registry import ListingRegistry
from src.storage.observation_store import ObservationStore
from src.storage.price_db import PriceDB

logger = logging.getLogger("price_intel.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)

EXIT_OK = 0
EXIT_VALIDATION = 2
EXIT_NOT_FOUND = 3


@dataclass
class Services:
    """Wired-up services sharing one database connection."""

    db: PriceDB
    registry: ListingRegistry
    store: ObservationStore
    recorder: ObservationRecorder
    reader: HistoryReader
    engine: ComparisonEngine
    ingestion: IngestionService


@contextmanager
def open_services(db_path: Path | None = None) -> Iterator[Services]:
    """Open the database and build every service on top of it."""
    db = PriceDB(db_path)
    registry = ListingRegistry(db)
    store = ObservationStore(db)
    recorder = ObservationRecorder(store, registry)
    try:
        yield Services(
            db=db,
            registry=registry,
            store=store,
            recorder=recorder,
            reader=HistoryReader(store),
            engine=ComparisonEngine(store, registry),
            ingestion=IngestionService(registry, recorder),
        )
    finally:
        db.close()


def run_guarded(command: Callable[[], int]) -> int:
    """Run a command, mapping typed failures to exit codes."""
    try:
        return command()
    except ValidationError as exc:
        _err.print(f"[red]Invalid request: {exc}[/red]")
        return EXIT_VALIDATION
    except NotFoundError as exc:
        _err.print(f"[yellow]{exc}[/yellow]")
        return EXIT_NOT_FOUND
    except PriceIntelError:
        logger.critical("Internal error", exc_info=True)
        raise


def parse_id_list(raw: str) -> list[object]:
    """Split ``"1,2,x"`` into ints, keeping unparseable tokens as-is.

    Unparseable tokens are later skipped by the comparison validator.
    """
    ids: list[object] = []
    for token in raw.split(","):
        token = token.strip()
        if not token:
            continue
        try:
            ids.append(int(token))
        except ValueError:
            ids.append(token)
    return ids


# ── Serialisation ────────────────────────────────────────


def _money(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


def _instant(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def observation_to_dict(obs: Observation) -> dict[str, object]:
    """Plain dict for JSON output."""
    return {
        "id": obs.id,
        "listingId": obs.listing_id,
        "sellingPrice": _money(obs.selling_price),
        "discount": _money(obs.discount),
        "availability": obs.availability.value,
        "crawlStatus": obs.crawl_status.value,
        "capturedAt": _instant(obs.captured_at),
    }


def history_to_dict(history: PriceHistory) -> dict[str, object]:
    """Plain dict for JSON output."""
    return {
        "listingId": history.listing_id,
        "count": history.count,
        "history": [observation_to_dict(o) for o in history.history],
    }


def stats_to_dict(stats: PriceStats) -> dict[str, object]:
    """Plain dict for JSON output."""
    return {
        "listingId": stats.listing_id,
        "minPrice": _money(stats.min_price),
        "maxPrice": _money(stats.max_price),
        "averagePrice": _money(stats.average_price),
        "lowestSeenAt": _instant(stats.lowest_seen_at),
        "highestSeenAt": _instant(stats.highest_seen_at),
        "totalValidRecords": stats.total_valid_records,
    }


def comparison_to_dict(result: ComparisonResult) -> dict[str, object]:
    """Plain dict for JSON output."""
    return {
        "totalCompared": result.total_compared,
        "cheapestListingId": result.cheapest_listing_id,
        "mostExpensiveListingId": result.most_expensive_listing_id,
        "bestValueListingId": result.best_value_listing_id,
        "priceSpread": _money(result.price_spread),
        "percentageDifference": _money(result.percentage_difference),
        "results": [
            {
                "listingId": item.listing_id,
                "price": _money(item.price),
                "availability": item.availability.value,
                "capturedAt": _instant(item.captured_at),
                "rank": item.rank,
            }
            for item in result.results
        ],
        "page": result.page,
        "size": result.size,
        "totalPages": result.total_pages,
        "totalItems": result.total_items,
    }


def listing_to_dict(listing: Listing) -> dict[str, object]:
    """Plain dict for JSON output."""
    return {
        "id": listing.id,
        "productId": listing.product_id,
        "platformId": listing.platform_id,
        "city": listing.city,
        "productUrl": listing.product_url,
        "isActive": listing.is_active,
        "createdAt": _instant(listing.created_at),
    }


def _dump_json(payload: dict[str, object] | list[dict[str, object]]) -> None:
    json.dump(payload, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


# ── Tables ───────────────────────────────────────────────


def _stock_label(availability: Availability) -> str:
    if availability is Availability.IN_STOCK:
        return "[green]in stock[/green]"
    if availability is Availability.LIMITED_STOCK:
        return "[yellow]limited[/yellow]"
    return "[red]out of stock[/red]"


def _print_history(history: PriceHistory) -> None:
    table = Table(
        title=f"Price History: listing {history.listing_id}",
        show_lines=False,
        title_style="bold cyan",
    )
    table.add_column("Captured at (UTC)", style="dim")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Discount", justify="right")
    table.add_column("Stock", justify="center")
    table.add_column("Crawl", style="magenta")
    for obs in history.history:
        table.add_row(
            obs.captured_at.strftime("%Y-%m-%d %H:%M:%S"),
            _money(obs.selling_price) or "N/A",
            _money(obs.discount) or "—",
            _stock_label(obs.availability),
            obs.crawl_status.value,
        )
    Console().print(table)


def _print_stats(stats: PriceStats) -> None:
    table = Table(
        title=f"Price Stats: listing {stats.listing_id}",
        show_header=False,
        title_style="bold cyan",
    )
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Min", f"{stats.min_price} ({_instant(stats.lowest_seen_at)})")
    table.add_row("Max", f"{stats.max_price} ({_instant(stats.highest_seen_at)})")
    table.add_row("Average", str(stats.average_price))
    table.add_row("Records", str(stats.total_valid_records))
    Console().print(table)


def _print_comparison(result: ComparisonResult) -> None:
    table = Table(
        title="Listing Comparison",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Rank", style="dim", width=5)
    table.add_column("Listing", justify="right")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Stock", justify="center")
    table.add_column("Captured at (UTC)", style="dim")
    for item in result.results:
        marker = " ★" if item.listing_id == result.best_value_listing_id else ""
        table.add_row(
            str(item.rank),
            f"{item.listing_id}{marker}",
            str(item.price),
            _stock_label(item.availability),
            item.captured_at.strftime("%Y-%m-%d %H:%M:%S"),
        )
    Console().print(table)

    _err.print(
        f"[bold]Cheapest:[/bold] {result.cheapest_listing_id}  "
        f"[bold]Most expensive:[/bold] {result.most_expensive_listing_id}  "
        f"[bold]Best value:[/bold] {result.best_value_listing_id or '—'}"
    )
    _err.print(
        f"[bold]Spread:[/bold] {result.price_spread} "
        f"({result.percentage_difference}%)"
    )
    if result.page is not None:
        _err.print(
            f"[dim]Page {result.page} of {result.total_pages} "
            f"(size {result.size}, {result.total_items} items)[/dim]"
        )


def _print_listings(listings: list[Listing], title: str) -> None:
    table = Table(title=title, show_lines=False, title_style="bold cyan")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Product", justify="right")
    table.add_column("Platform", justify="right")
    table.add_column("City")
    table.add_column("Active", justify="center")
    table.add_column("URL", style="blue", overflow="fold")
    for listing in listings:
        table.add_row(
            str(listing.id),
            str(listing.product_id),
            str(listing.platform_id),
            listing.city,
            "[green]yes[/green]" if listing.is_active else "[red]no[/red]",
            listing.product_url,
        )
    Console().print(table)


# ── Commands ─────────────────────────────────────────────


def run_ingest(filepath: Path, db_path: Path | None = None) -> int:
    """Ingest a JSON file of crawled price points."""
    if not filepath.exists():
        _err.print(f"[red]File not found: {filepath}[/red]")
        return 1
    with open_services(db_path) as svc:
        summary = svc.ingestion.ingest_file(filepath)
    _err.print(
        f"[green]✓ {summary.recorded} recorded[/green], "
        f"{summary.duplicates} duplicates, "
        f"[red]{summary.rejected} rejected[/red]"
    )
    return EXIT_OK if summary.rejected == 0 else 1


def run_latest(
    listing_id: int, output_format: str, db_path: Path | None = None,
) -> int:
    """Print the latest observation of a listing."""
    def command() -> int:
        with open_services(db_path) as svc:
            latest = svc.reader.get_latest(listing_id)
        if output_format == "json":
            _dump_json(observation_to_dict(latest))
        else:
            _print_history(PriceHistory(listing_id, 1, [latest]))
        return EXIT_OK

    return run_guarded(command)


def run_history(
    listing_id: int,
    start: datetime | None,
    end: datetime | None,
    limit: int | None,
    output_format: str,
    chart: bool = False,
    db_path: Path | None = None,
) -> int:
    """Print a listing's chronological history."""
    def command() -> int:
        with open_services(db_path) as svc:
            history = svc.reader.get_history(listing_id, start, end, limit)
        if output_format == "json":
            _dump_json(history_to_dict(history))
        else:
            _print_history(history)
        if chart:
            from src.storage.chart_exporter import export_history_chart

            path = export_history_chart(history)
            if path is not None:
                _err.print(f"[dim]Chart saved → {path}[/dim]")
        return EXIT_OK

    return run_guarded(command)


def run_stats(
    listing_id: int,
    start: datetime | None,
    end: datetime | None,
    output_format: str,
    db_path: Path | None = None,
) -> int:
    """Print a listing's aggregate statistics."""
    def command() -> int:
        with open_services(db_path) as svc:
            stats = svc.reader.get_stats(listing_id, start, end)
        if output_format == "json":
            _dump_json(stats_to_dict(stats))
        else:
            _print_stats(stats)
        return EXIT_OK

    return run_guarded(command)


def _emit_comparison(
    result: ComparisonResult, output_format: str, chart: bool,
) -> int:
    if output_format == "json":
        _dump_json(comparison_to_dict(result))
    else:
        _print_comparison(result)
    if chart:
        from src.storage.chart_exporter import export_comparison_chart

        path = export_comparison_chart(result)
        if path is not None:
            _err.print(f"[dim]Chart saved → {path}[/dim]")
    return EXIT_OK


def run_compare(
    listing_ids_csv: str,
    in_stock_only: bool,
    sort: str | None,
    output_format: str,
    chart: bool = False,
    db_path: Path | None = None,
) -> int:
    """Compare an explicit comma-separated set of listings."""
    def command() -> int:
        ids = parse_id_list(listing_ids_csv)
        with open_services(db_path) as svc:
            result = svc.engine.compare_by_ids(ids, in_stock_only, sort)
        return _emit_comparison(result, output_format, chart)

    return run_guarded(command)


def run_compare_product(
    product_id: int,
    city: str | None,
    in_stock_only: bool,
    sort: str | None,
    page: int | None,
    size: int | None,
    output_format: str,
    chart: bool = False,
    db_path: Path | None = None,
) -> int:
    """Compare every active listing of a product."""
    def command() -> int:
        with open_services(db_path) as svc:
            result = svc.engine.compare_by_product(
                product_id, city, in_stock_only, sort, page, size,
            )
        return _emit_comparison(result, output_format, chart)

    return run_guarded(command)


def run_listings(
    product_id: int | None,
    city: str | None,
    active_only: bool,
    output_format: str,
    db_path: Path | None = None,
) -> int:
    """Print the listings of a product, or every listing in a city."""
    def command() -> int:
        with open_services(db_path) as svc:
            if product_id is not None:
                listings = svc.registry.listings_for_product(product_id)
                title = f"Listings: product {product_id}"
            else:
                listings = svc.registry.listings_in_city(city or "")
                title = f"Listings: {city}"
        if active_only:
            listings = [listing for listing in listings if listing.is_active]
        if output_format == "json":
            _dump_json([listing_to_dict(listing) for listing in listings])
        else:
            _print_listings(listings, title)
        return EXIT_OK

    return run_guarded(command)


def run_deactivate(listing_id: int, db_path: Path | None = None) -> int:
    """Mark a listing inactive so product comparisons skip it."""
    def command() -> int:
        with open_services(db_path) as svc:
            if not svc.registry.deactivate_listing(listing_id):
                raise ListingNotFoundError(listing_id)
        _err.print(f"[green]✓ Listing {listing_id} deactivated[/green]")
        return EXIT_OK

    return run_guarded(command)
