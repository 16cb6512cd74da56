# src/utils/money.py

"""Fixed-point decimal helpers for prices and percentages."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from src.config.settings import Settings
from src.models.errors import ValidationError

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def _exponent(places: int) -> Decimal:
    return Decimal(1).scaleb(-places)


def to_decimal(value: object, field_name: str = "price") -> Decimal | None:
    """Convert user or storage input to an exact ``Decimal``.

    Floats go through ``str`` so ``19.99`` stays ``19.99``.
    ``None`` and blank strings map to ``None``.
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        msg = f"{field_name} must be a number, got {value!r}"
        raise ValidationError(msg)
    elif isinstance(value, (int, float, str)):
        text = str(value).replace(",", "").strip()
        if not text:
            return None
        try:
            result = Decimal(text)
        except InvalidOperation:
            msg = f"{field_name} is not a valid number: {value!r}"
            raise ValidationError(msg) from None
    else:
        msg = f"{field_name} must be a number, got {type(value).__name__}"
        raise ValidationError(msg)

    if not result.is_finite():
        msg = f"{field_name} must be finite, got {value!r}"
        raise ValidationError(msg)
    return result


def round_money(value: Decimal) -> Decimal:
    """Round to the money scale using ROUND_HALF_UP."""
    return value.quantize(
        _exponent(Settings.MONEY_SCALE), rounding=ROUND_HALF_UP,
    )


def average(total: Decimal, count: int) -> Decimal:
    """Mean of ``count`` prices summing to ``total``, money-rounded."""
    return round_money(total / Decimal(count))


def percentage_difference(spread: Decimal, minimum: Decimal) -> Decimal:
    """Return ``spread / minimum * 100``.

    The ratio is rounded to the intermediate percent scale first, then
    the percentage to the money scale.  A zero minimum yields zero.
    """
    if minimum == ZERO:
        return ZERO
    ratio = (spread / minimum).quantize(
        _exponent(Settings.PERCENT_SCALE), rounding=ROUND_HALF_UP,
    )
    return round_money(ratio * HUNDRED)
