# src/services/comparison_engine.py

"""Cross-listing price comparison: filter, rank, measure, sort, paginate.

Every stage is a plain function that returns a new list and leaves its
input untouched, so the pipeline can be exercised one step at a time::

    items = build_items(observations)
    items = filter_in_stock(items)          # optional
    ranked = assign_ranks(items)
    metrics = compute_metrics(ranked)
    ordered = sort_items(ranked, sort_type)
    page_items = paginate(ordered, page, size)
"""

import logging
import time
from collections.abc import Iterable, Sequence
from dataclasses import replace

from src.config.settings import Settings
from src.filters.comparison_validator import ComparisonValidator
from src.models.comparison import (
    ComparisonItem,
    ComparisonMetrics,
    ComparisonResult,
    ComparisonSortType,
)
from src.models.errors import InvariantViolation, ValidationError
from src.models.observation import Availability, Observation
from src.storage.listing_registry import ListingRegistry
from src.storage.observation_store import ObservationStore
from src.utils.money import percentage_difference

logger = logging.getLogger("price_intel.comparison")


# ── Pipeline stages ──────────────────────────────────────


def build_items(observations: Iterable[Observation]) -> list[ComparisonItem]:
    """One unranked item per observation that carries a price."""
    items: list[ComparisonItem] = []
    for obs in observations:
        if obs.selling_price is None:
            logger.debug("Null price for listing %d, skipping", obs.listing_id)
            continue
        items.append(ComparisonItem(
            listing_id=obs.listing_id,
            price=obs.selling_price,
            availability=obs.availability,
            captured_at=obs.captured_at,
        ))

    if len(items) < Settings.MIN_COMPARABLE_ITEMS:
        logger.warning(
            "Insufficient priced listings for comparison. Required: %d, Found: %d",
            Settings.MIN_COMPARABLE_ITEMS,
            len(items),
        )
        msg = (
            f"At least {Settings.MIN_COMPARABLE_ITEMS} valid listings "
            f"required for comparison. Found: {len(items)}"
        )
        raise ValidationError(msg)
    return items


def filter_in_stock(items: Sequence[ComparisonItem]) -> list[ComparisonItem]:
    """Keep IN_STOCK items; at least two must remain."""
    in_stock = [
        item for item in items
        if item.availability is Availability.IN_STOCK
    ]
    logger.debug(
        "Filtered to %d in-stock items from %d", len(in_stock), len(items),
    )
    if len(in_stock) < Settings.MIN_COMPARABLE_ITEMS:
        logger.warning(
            "Insufficient in-stock listings for comparison. Required: %d, Found: %d",
            Settings.MIN_COMPARABLE_ITEMS,
            len(in_stock),
        )
        msg = (
            f"At least {Settings.MIN_COMPARABLE_ITEMS} in-stock listings "
            f"required for comparison. Found: {len(in_stock)}"
        )
        raise ValidationError(msg)
    return in_stock


def assign_ranks(items: Sequence[ComparisonItem]) -> list[ComparisonItem]:
    """Rank by price ascending; equal prices rank the newer capture first.

    Returns ranked copies in rank order.
    """
    newest_first = sorted(items, key=lambda i: i.captured_at, reverse=True)
    by_price = sorted(newest_first, key=lambda i: i.price)
    return [
        replace(item, rank=position)
        for position, item in enumerate(by_price, 1)
    ]


def compute_metrics(items: Sequence[ComparisonItem]) -> ComparisonMetrics:
    """Cheapest, most expensive, spread and percentage difference."""
    cheapest: ComparisonItem | None = None
    priciest: ComparisonItem | None = None
    for item in items:
        if cheapest is None or item.price < cheapest.price:
            cheapest = item
        if priciest is None or item.price > priciest.price:
            priciest = item

    if cheapest is None or priciest is None:
        msg = "Comparison metrics requested for an empty item set"
        raise InvariantViolation(msg)

    spread = priciest.price - cheapest.price
    if cheapest.price == 0:
        logger.debug("Minimum price is zero, percentage difference set to 0")
    metrics = ComparisonMetrics(
        min_price=cheapest.price,
        cheapest_listing_id=cheapest.listing_id,
        max_price=priciest.price,
        most_expensive_listing_id=priciest.listing_id,
        price_spread=spread,
        percentage_difference=percentage_difference(spread, cheapest.price),
    )
    logger.debug(
        "Metrics: cheapest=%d (%s), most expensive=%d (%s), spread=%s, diff=%s%%",
        metrics.cheapest_listing_id,
        metrics.min_price,
        metrics.most_expensive_listing_id,
        metrics.max_price,
        metrics.price_spread,
        metrics.percentage_difference,
    )
    return metrics


def find_best_value(items: Sequence[ComparisonItem]) -> int | None:
    """Listing id of the cheapest IN_STOCK item, if any."""
    in_stock = [
        item for item in items
        if item.availability is Availability.IN_STOCK
    ]
    if not in_stock:
        logger.debug("No in-stock items, best value is empty")
        return None
    best = min(in_stock, key=lambda i: i.price)
    return best.listing_id


def sort_items(
    items: Sequence[ComparisonItem],
    sort_type: ComparisonSortType = ComparisonSortType.PRICE_ASC,
) -> list[ComparisonItem]:
    """Output order; ranks are carried over unchanged."""
    match sort_type:
        case ComparisonSortType.PRICE_ASC:
            ordered = sorted(items, key=lambda i: i.price)
        case ComparisonSortType.PRICE_DESC:
            ordered = sorted(items, key=lambda i: i.price, reverse=True)
        case ComparisonSortType.LATEST:
            ordered = sorted(items, key=lambda i: i.captured_at, reverse=True)
        case _:
            msg = f"Unhandled sort type: {sort_type!r}"
            raise InvariantViolation(msg)
    logger.debug("Sorted %d items by %s", len(ordered), sort_type.value)
    return ordered


def paginate(
    items: Sequence[ComparisonItem], page: int, size: int,
) -> list[ComparisonItem]:
    """Zero-based page slice; out-of-range pages are empty."""
    if page < 0 or size <= 0:
        return []
    start = page * size
    if start >= len(items):
        logger.debug("Page %d exceeds available items, returning empty", page)
        return []
    return list(items[start:start + size])


def total_pages(total_items: int, size: int) -> int:
    """Ceiling of ``total_items / size``."""
    return (total_items + size - 1) // size


# ── Engine ───────────────────────────────────────────────


class ComparisonEngine:
    """Compare the latest prices of several listings."""

    def __init__(
        self, store: ObservationStore, registry: ListingRegistry,
    ) -> None:
        self._store = store
        self._registry = registry

    def compare_by_ids(
        self,
        listing_ids: Sequence[object],
        in_stock_only: bool = False,
        sort_type: ComparisonSortType | str | None = None,
    ) -> ComparisonResult:
        """Compare an explicit set of listings."""
        started = time.monotonic()
        logger.info(
            "Comparing %d listings, in_stock_only=%s, sort=%s",
            len(listing_ids) if listing_ids else 0,
            in_stock_only,
            sort_type,
        )
        ComparisonValidator.validate_listing_ids(listing_ids)
        candidates = ComparisonValidator.sanitize_listing_ids(listing_ids)

        observations = self._store.latest_batch(candidates)
        logger.debug(
            "Fetched %d observations for %d candidates",
            len(observations),
            len(candidates),
        )
        result = self._build_result(
            build_items(observations),
            in_stock_only,
            ComparisonSortType.parse(sort_type),
            page=None,
            size=None,
        )
        logger.info(
            "Listing comparison completed in %.1f ms",
            (time.monotonic() - started) * 1000,
        )
        return result

    def compare_by_product(
        self,
        product_id: int,
        city: str | None = None,
        in_stock_only: bool = False,
        sort_type: ComparisonSortType | str | None = None,
        page: int | None = None,
        size: int | None = None,
    ) -> ComparisonResult:
        """Compare every active listing of a product."""
        started = time.monotonic()
        logger.info(
            "Comparing product %s, city=%s, in_stock_only=%s, sort=%s, "
            "page=%s, size=%s",
            product_id,
            city,
            in_stock_only,
            sort_type,
            page,
            size,
        )
        ComparisonValidator.validate_product_id(product_id)
        ComparisonValidator.validate_pagination(page, size)
        resolved_sort = ComparisonSortType.parse(sort_type)

        listings = self._registry.active_listings_for_product(product_id, city)
        if not listings:
            msg = (
                f"No active listings found for product {product_id} in city {city}"
                if city and city.strip()
                else f"No active listings found for product {product_id}"
            )
            logger.warning(msg)
            raise ValidationError(msg)

        candidates = list(dict.fromkeys(listing.id for listing in listings))
        ComparisonValidator.validate_listing_ids(candidates)

        observations = self._store.latest_batch(candidates)
        logger.debug(
            "Fetched %d observations for %d listings",
            len(observations),
            len(candidates),
        )
        result = self._build_result(
            build_items(observations),
            in_stock_only,
            resolved_sort,
            page=page,
            size=size,
        )
        logger.info(
            "Product comparison completed in %.1f ms",
            (time.monotonic() - started) * 1000,
        )
        return result

    # ── Private helpers ──────────────────────────────────

    @staticmethod
    def _build_result(
        items: list[ComparisonItem],
        in_stock_only: bool,
        sort_type: ComparisonSortType,
        page: int | None,
        size: int | None,
    ) -> ComparisonResult:
        """Run the shared filter/rank/metrics/sort/paginate pipeline."""
        if in_stock_only:
            items = filter_in_stock(items)

        ranked = assign_ranks(items)
        metrics = compute_metrics(ranked)
        best_value = find_best_value(ranked)
        ordered = sort_items(ranked, sort_type)

        total_items = len(ordered)
        effective_size: int | None = None
        pages: int | None = None
        returned = ordered
        if page is not None:
            effective_size = (
                min(size, Settings.MAX_PAGE_SIZE)
                if size is not None
                else Settings.DEFAULT_PAGE_SIZE
            )
            pages = total_pages(total_items, effective_size)
            returned = paginate(ordered, page, effective_size)

        logger.info(
            "Comparison: items=%d, returned=%d, page=%s, size=%s, "
            "cheapest=%d, most_expensive=%d, best_value=%s, spread=%s, diff=%s%%",
            total_items,
            len(returned),
            page,
            effective_size,
            metrics.cheapest_listing_id,
            metrics.most_expensive_listing_id,
            best_value,
            metrics.price_spread,
            metrics.percentage_difference,
        )
        return ComparisonResult(
            total_compared=len(returned),
            cheapest_listing_id=metrics.cheapest_listing_id,
            most_expensive_listing_id=metrics.most_expensive_listing_id,
            best_value_listing_id=best_value,
            price_spread=metrics.price_spread,
            percentage_difference=metrics.percentage_difference,
            results=returned,
            page=page,
            size=effective_size,
            total_pages=pages,
            total_items=total_items if page is not None else None,
        )
