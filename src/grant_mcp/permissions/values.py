"""Token amount conversion between base units and human-readable decimals."""

from decimal import Decimal, InvalidOperation
from typing import Optional


def parse_units(formatted: str, decimals: int) -> int:
    """
    Convert a decimal string such as "1.5" into base units.

    Raises:
        ValueError: If the string is not a number or has too many decimal places
    """
    try:
        amount = Decimal(str(formatted).strip())
    except InvalidOperation:
        raise ValueError(f"Not a number: {formatted!r}")
    if not amount.is_finite():
        raise ValueError(f"Not a finite number: {formatted!r}")

    scaled = amount.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Too many decimal places for {decimals} decimals: {formatted!r}")
    return int(scaled)


def format_units(value: int, decimals: int) -> str:
    """Convert base units into a decimal string without trailing zeros."""
    sign = "-" if value < 0 else ""
    whole, fraction = divmod(abs(int(value)), 10**decimals)
    if not fraction:
        return f"{sign}{whole}"
    fraction_str = f"{fraction:0{decimals}d}".rstrip("0")
    return f"{sign}{whole}.{fraction_str}"


def format_units_from_hex(value: Optional[str], decimals: int) -> Optional[str]:
    """Format a 0x-hex base-unit amount; None stays None."""
    if value is None:
        return None
    return format_units(int(value, 16), decimals)


def to_hex(value: int) -> str:
    return hex(int(value))
