"""
Value helpers for costs, quantities, and SKU keys.

Pure functions, no I/O.  Every cost and quantity in the kernel is a
``Decimal``; these helpers are the only sanctioned ways to coerce, quantize,
and round them.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

# Matches the Numeric(38, 9) storage scale
AMOUNT_DECIMAL_PLACES = 9
REPORT_DECIMAL_PLACES = 2

_AMOUNT_QUANTUM = Decimal(10) ** -AMOUNT_DECIMAL_PLACES
_REPORT_QUANTUM = Decimal(10) ** -REPORT_DECIMAL_PLACES

ZERO = Decimal("0")


def to_decimal(value: Decimal | int | str) -> Decimal:
    """Convert an int/str/Decimal to Decimal without passing through float.

    Raises:
        TypeError: for floats and other unsupported types.
        decimal.InvalidOperation: for unparseable strings.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Refusing to convert {type(value).__name__} to Decimal")
    if isinstance(value, (int, str)):
        return Decimal(str(value).strip())
    raise TypeError(f"Cannot convert {type(value).__name__} to Decimal")


def is_finite_decimal(value: object) -> bool:
    try:
        return to_decimal(value).is_finite()  # type: ignore[arg-type]
    except (TypeError, InvalidOperation):
        return False


def quantize_amount(value: Decimal) -> Decimal:
    """Round to the storage scale so recomputed values compare equal to stored ones."""
    return value.quantize(_AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)


def round_report(value: Decimal) -> Decimal:
    """Round a reported figure (profit, margin) to 2 places, half-up."""
    return value.quantize(_REPORT_QUANTUM, rounding=ROUND_HALF_UP)


def normalize_sku(sku: str) -> str:
    """Lookup key for a sold SKU: trimmed and casefolded."""
    return sku.strip().casefold()


def utc(value: datetime) -> datetime:
    """Normalize an aware datetime to UTC; tag naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
