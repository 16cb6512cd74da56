# src/models/listing.py

"""Product, platform and listing records owned by the listing registry."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Product:
    """A branded product in a given pack size."""

    id: int
    brand_name: str
    product_name: str
    pack_size: str
    created_at: datetime


@dataclass
class Platform:
    """A marketplace the product is sold on."""

    id: int
    name: str
    created_at: datetime


@dataclass
class Listing:
    """One (product, platform, city) combination with its outbound URL."""

    id: int
    product_id: int
    platform_id: int
    city: str
    product_url: str
    is_active: bool
    created_at: datetime
