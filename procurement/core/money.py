"""Fixed-precision money helpers.

All monetary values are ``decimal.Decimal`` quantized to a fixed number of
places. Floats are converted through their string form so binary rounding
noise never reaches a total.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Optional, Union

from .errors import ValidationError

MoneyLike = Union[Decimal, int, float, str]

DEFAULT_PLACES = 2

# Widest scale the SQL money columns hold
MAX_PLACES = 6

# Scale of stored line item quantities
QUANTITY_PLACES = 4

ZERO = Decimal("0")


def quantum(places: int = DEFAULT_PLACES) -> Decimal:
    """Return the quantization exponent for ``places`` decimal places."""
    return Decimal(1).scaleb(-places)


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """Convert ``value`` to Decimal without quantizing.

    Raises:
        ValidationError: If the value is not numeric or not finite
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number, got bool", field=field)

    try:
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, float):
            result = Decimal(repr(value))
        else:
            result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} is not a valid number: {value!r}", field=field)

    if not result.is_finite():
        raise ValidationError(f"{field} must be finite, got {value!r}", field=field)

    return result


def to_money(value: MoneyLike, field: str = "amount", places: int = DEFAULT_PLACES) -> Decimal:
    """Validate and quantize a non-negative monetary amount.

    Args:
        value: Amount as Decimal, int, float or numeric string
        field: Field name used in error messages
        places: Number of decimal places to keep

    Returns:
        Quantized Decimal

    Raises:
        ValidationError: If the amount is negative, non-finite or not numeric
    """
    amount = to_decimal(value, field)
    if amount < 0:
        raise ValidationError(f"{field} must be non-negative, got {amount}", field=field)
    return amount.quantize(quantum(places), rounding=ROUND_HALF_UP)


def optional_money(
    value: Optional[MoneyLike], field: str, places: int = DEFAULT_PLACES
) -> Decimal:
    """Like :func:`to_money`, treating ``None`` as zero."""
    if value is None:
        return ZERO.quantize(quantum(places))
    return to_money(value, field, places)


def quantize(value: Decimal, places: int = DEFAULT_PLACES) -> Decimal:
    return value.quantize(quantum(places), rounding=ROUND_HALF_UP)


def money_sum(values: Iterable[Decimal], places: int = DEFAULT_PLACES) -> Decimal:
    return quantize(sum(values, ZERO), places)


def check_places(places: int) -> int:
    """Validate a configured number of money decimal places."""
    if not 0 <= places <= MAX_PLACES:
        raise ValueError(f"Money places must be between 0 and {MAX_PLACES}, got {places}")
    return places


def require_scale(value: Decimal, places: int, field: str) -> Decimal:
    """Reject ``value`` if it carries more than ``places`` significant decimals.

    Raises:
        ValidationError: If the value would lose digits at ``places``
    """
    exponent = value.normalize().as_tuple().exponent
    if -exponent > places:
        raise ValidationError(
            f"{field} allows at most {places} decimal places, got {value}",
            field=field,
        )
    return value
