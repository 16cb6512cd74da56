# src/storage/listing_registry.py

"""Lookup-or-create registry of products, platforms and listings."""

import logging
import re
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from src.models.errors import (
    PlatformNotFoundError,
    ProductNotFoundError,
    ValidationError,
)
from src.models.listing import Listing, Platform, Product
from src.storage.price_db import PriceDB
from src.utils.timeutil import from_storage, to_storage, utc_now

logger = logging.getLogger("price_intel.registry")

# Session / campaign params that vary between crawls of the same page
_TRACKING_PARAMS: frozenset[str] = frozenset({
    "ref", "dib", "dib_tag", "qid", "sr", "spc",
    "sp_csd", "xpid", "aref", "sp_cr", "psc",
    "utm_source", "utm_medium", "utm_campaign",
    "utm_term", "utm_content", "gclid", "fbclid",
})

_LISTING_COLUMNS = (
    "id, product_id, platform_id, city, "
    "product_url, is_active, created_at"
)


def normalize_url(raw_url: str) -> str:
    """Trim and strip tracking params to get a stable listing URL."""
    parsed = urlparse(raw_url.strip())

    # Amazon-style path tracking (e.g. /ref=sr_1_243)
    path = re.sub(r"/ref=[^/]*", "", parsed.path)

    params = parse_qs(parsed.query, keep_blank_values=True)
    cleaned = {
        k: v for k, v in params.items()
        if k.lower() not in _TRACKING_PARAMS
    }
    new_query = urlencode(cleaned, doseq=True) if cleaned else ""
    return urlunparse((
        parsed.scheme,
        parsed.netloc,
        path,
        parsed.params,
        new_query,
        "",  # drop fragment
    ))


def normalize_city(city: str | None) -> str:
    """Trimmed, lower-cased city; blank or non-text cities are rejected."""
    if city is not None and not isinstance(city, str):
        logger.warning("Invalid city: expected text, got %s", type(city).__name__)
        msg = "City must be text"
        raise ValidationError(msg)
    if city is None or not city.strip():
        logger.warning("Invalid city: empty or null")
        msg = "City cannot be empty"
        raise ValidationError(msg)
    return city.strip().lower()


def _require_text(value: str | None, field_name: str) -> str:
    if value is not None and not isinstance(value, str):
        logger.warning(
            "Invalid %s: expected text, got %s", field_name, type(value).__name__,
        )
        msg = f"{field_name} must be text"
        raise ValidationError(msg)
    if value is None or not value.strip():
        logger.warning("Invalid %s: empty or null", field_name)
        msg = f"{field_name} cannot be empty"
        raise ValidationError(msg)
    return value.strip()


def _row_to_listing(row: tuple[Any, ...]) -> Listing:
    return Listing(
        id=row[0],
        product_id=row[1],
        platform_id=row[2],
        city=row[3],
        product_url=row[4],
        is_active=bool(row[5]),
        created_at=from_storage(row[6]),
    )


class ListingRegistry:
    """SQLite-backed identity resolution for listings."""

    def __init__(self, db: PriceDB) -> None:
        self._conn = db.connection

    # ── Products ─────────────────────────────────────────

    def get_or_create_product(
        self, brand_name: str, product_name: str, pack_size: str,
    ) -> Product:
        """Return the product for the triple, creating it if needed."""
        brand = _require_text(brand_name, "Brand name")
        name = _require_text(product_name, "Product name")
        pack = _require_text(pack_size, "Pack size")

        row = self._conn.execute(
            "SELECT id, brand_name, product_name, pack_size, created_at "
            "FROM products "
            "WHERE brand_name = ? AND product_name = ? AND pack_size = ?",
            (brand, name, pack),
        ).fetchone()
        if row is not None:
            logger.debug("Returning existing product id=%d", row[0])
            return Product(row[0], row[1], row[2], row[3], from_storage(row[4]))

        created = utc_now()
        with self._conn:
            cur = self._conn.execute(
                "INSERT INTO products "
                "(brand_name, product_name, pack_size, created_at) "
                "VALUES (?, ?, ?, ?)",
                (brand, name, pack, to_storage(created)),
            )
        product_id = int(cur.lastrowid or 0)
        logger.info(
            "Created product id=%d brand=%s name=%s",
            product_id,
            brand,
            name,
        )
        return Product(product_id, brand, name, pack, created)

    def get_product(self, product_id: int) -> Product | None:
        """Product by id, or ``None``."""
        row = self._conn.execute(
            "SELECT id, brand_name, product_name, pack_size, created_at "
            "FROM products WHERE id = ?",
            (product_id,),
        ).fetchone()
        if row is None:
            return None
        return Product(row[0], row[1], row[2], row[3], from_storage(row[4]))

    # ── Platforms ────────────────────────────────────────

    def get_or_create_platform(self, name: str) -> Platform:
        """Case-insensitive lookup by trimmed name, creating if absent."""
        normalized = _require_text(name, "Platform name")
        existing = self.get_platform_by_name(normalized)
        if existing is not None:
            logger.debug("Returning existing platform id=%d", existing.id)
            return existing

        created = utc_now()
        with self._conn:
            cur = self._conn.execute(
                "INSERT INTO platforms (name, created_at) VALUES (?, ?)",
                (normalized, to_storage(created)),
            )
        platform_id = int(cur.lastrowid or 0)
        logger.info("Created platform id=%d name=%s", platform_id, normalized)
        return Platform(platform_id, normalized, created)

    def get_platform(self, platform_id: int) -> Platform | None:
        """Platform by id, or ``None``."""
        row = self._conn.execute(
            "SELECT id, name, created_at FROM platforms WHERE id = ?",
            (platform_id,),
        ).fetchone()
        return Platform(row[0], row[1], from_storage(row[2])) if row else None

    def get_platform_by_name(self, name: str) -> Platform | None:
        """Platform by case-insensitive name, or ``None``."""
        row = self._conn.execute(
            "SELECT id, name, created_at FROM platforms "
            "WHERE name = ? COLLATE NOCASE",
            (name.strip(),),
        ).fetchone()
        return Platform(row[0], row[1], from_storage(row[2])) if row else None

    # ── Listings ─────────────────────────────────────────

    def get_or_create_listing(
        self,
        product_id: int,
        platform_id: int,
        city: str,
        product_url: str,
    ) -> Listing:
        """Resolve the (product, platform, city) listing.

        An existing listing is reactivated if inactive and has its URL
        refreshed when the normalised URL changed.
        """
        normalized_city = normalize_city(city)
        url = normalize_url(_require_text(product_url, "Product URL"))

        if self.get_product(product_id) is None:
            logger.error("Product not found: product_id=%s", product_id)
            raise ProductNotFoundError(product_id)
        if self.get_platform(platform_id) is None:
            logger.error("Platform not found: platform_id=%s", platform_id)
            raise PlatformNotFoundError(platform_id)

        row = self._conn.execute(
            f"SELECT {_LISTING_COLUMNS} FROM listings "
            "WHERE product_id = ? AND platform_id = ? AND city = ?",
            (product_id, platform_id, normalized_city),
        ).fetchone()

        if row is not None:
            listing = _row_to_listing(row)
            if listing.is_active and listing.product_url == url:
                logger.debug("Returning existing listing id=%d", listing.id)
                return listing
            if not listing.is_active:
                logger.info("Reactivating inactive listing id=%d", listing.id)
            if listing.product_url != url:
                logger.info("Updating product URL for listing id=%d", listing.id)
            with self._conn:
                self._conn.execute(
                    "UPDATE listings SET is_active = 1, product_url = ? "
                    "WHERE id = ?",
                    (url, listing.id),
                )
            listing.is_active = True
            listing.product_url = url
            return listing

        created = utc_now()
        with self._conn:
            cur = self._conn.execute(
                "INSERT INTO listings "
                "(product_id, platform_id, city, product_url, "
                " is_active, created_at) "
                "VALUES (?, ?, ?, ?, 1, ?)",
                (
                    product_id,
                    platform_id,
                    normalized_city,
                    url,
                    to_storage(created),
                ),
            )
        listing_id = int(cur.lastrowid or 0)
        logger.info(
            "Created listing id=%d product=%d platform=%d city=%s",
            listing_id,
            product_id,
            platform_id,
            normalized_city,
        )
        return Listing(
            listing_id, product_id, platform_id,
            normalized_city, url, True, created,
        )

    def get(self, listing_id: int) -> Listing | None:
        """Listing by id, or ``None``."""
        row = self._conn.execute(
            f"SELECT {_LISTING_COLUMNS} FROM listings WHERE id = ?",
            (listing_id,),
        ).fetchone()
        return _row_to_listing(row) if row else None

    def exists(self, listing_id: int) -> bool:
        """True when a listing with this id exists."""
        row = self._conn.execute(
            "SELECT 1 FROM listings WHERE id = ?", (listing_id,),
        ).fetchone()
        return row is not None

    def deactivate_listing(self, listing_id: int) -> bool:
        """Mark a listing inactive. Returns False for unknown ids."""
        with self._conn:
            cur = self._conn.execute(
                "UPDATE listings SET is_active = 0 WHERE id = ?",
                (listing_id,),
            )
        if cur.rowcount:
            logger.info("Deactivated listing id=%d", listing_id)
        return bool(cur.rowcount)

    def listings_for_product(self, product_id: int) -> list[Listing]:
        """All listings of a product, active or not."""
        rows = self._conn.execute(
            f"SELECT {_LISTING_COLUMNS} FROM listings "
            "WHERE product_id = ? ORDER BY id",
            (product_id,),
        ).fetchall()
        return [_row_to_listing(r) for r in rows]

    def listings_in_city(self, city: str) -> list[Listing]:
        """All listings in a city (case-insensitive)."""
        rows = self._conn.execute(
            f"SELECT {_LISTING_COLUMNS} FROM listings "
            "WHERE city = ? ORDER BY id",
            (normalize_city(city),),
        ).fetchall()
        return [_row_to_listing(r) for r in rows]

    def active_listings_for_product(
        self, product_id: int, city: str | None = None,
    ) -> list[Listing]:
        """Active listings of a product, optionally in one city."""
        if city is not None and city.strip():
            rows = self._conn.execute(
                f"SELECT {_LISTING_COLUMNS} FROM listings "
                "WHERE product_id = ? AND city = ? AND is_active = 1 "
                "ORDER BY id",
                (product_id, city.strip().lower()),
            ).fetchall()
        else:
            rows = self._conn.execute(
                f"SELECT {_LISTING_COLUMNS} FROM listings "
                "WHERE product_id = ? AND is_active = 1 ORDER BY id",
                (product_id,),
            ).fetchall()
        return [_row_to_listing(r) for r in rows]
