# src/models/errors.py

"""Typed failures raised by the recorder, readers and comparison engine."""


class PriceIntelError(Exception):
    """Base class for every price_intel failure."""


class ValidationError(PriceIntelError, ValueError):
    """Malformed or out-of-range input supplied by the caller."""


class NotFoundError(PriceIntelError, LookupError):
    """Well-formed input that references absent data."""

    entity: str = "Entity"

    def __init__(self, identifier: object) -> None:
        self.identifier = identifier
        super().__init__(f"{self.entity} not found: id={identifier}")


class ListingNotFoundError(NotFoundError):
    """No listing exists for the identifier."""

    entity = "Listing"


class ObservationNotFoundError(NotFoundError):
    """The listing has no (usable) price observations."""

    entity = "Price observation for listing"


class ProductNotFoundError(NotFoundError):
    """No product exists for the identifier."""

    entity = "Product"


class PlatformNotFoundError(NotFoundError):
    """No platform exists for the identifier."""

    entity = "Platform"


class InvariantViolation(PriceIntelError, RuntimeError):
    """An internal consistency check failed; indicates a bug."""
