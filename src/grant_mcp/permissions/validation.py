"""Shared validation for permission requests and confirmation contexts.

Request validation raises InvalidRequestError. Context validation never
raises: it returns error strings that end up in Metadata.
"""

from typing import Any, Optional, Tuple

from ..errors import InvalidRequestError
from ..lifecycle.restrictions import UINT128_MAX, UINT256_MAX
from .dates import TIME_PERIOD_TO_SECONDS, TimePeriod, now_seconds, readable_to_timestamp, start_of_today_utc
from .values import format_units, parse_units


def validate_hex_integer(name: str, value: Any, required: bool, allow_zero: bool) -> Optional[int]:
    """
    Validate a 0x-hex integer field of a request.

    Returns:
        Parsed value, or None if absent and not required

    Raises:
        InvalidRequestError: If the value is missing, malformed or zero when disallowed
    """
    if value is None:
        if not required:
            return None
        raise InvalidRequestError(f"Invalid {name}: must be defined")

    if not isinstance(value, str) or not value.lower().startswith("0x"):
        raise InvalidRequestError(f"Invalid {name}: must be a valid hex integer")
    try:
        parsed = int(value, 16)
    except ValueError:
        raise InvalidRequestError(f"Invalid {name}: must be a valid hex integer")

    if parsed == 0 and not allow_zero:
        raise InvalidRequestError(f"Invalid {name}: must be greater than 0")
    return parsed


def validate_and_parse_amount(
    amount: Optional[str],
    decimals: int,
    field_name: str,
    allow_zero: bool = False,
    max_value: Optional[int] = UINT256_MAX,
) -> Tuple[Optional[int], Optional[str]]:
    """
    Parse a human-readable amount from the context.

    Amounts above max_value cannot be encoded into a restriction and are
    reported as out of range. Pass None to skip the bound.

    Returns:
        (amount in base units or None, error message or None)
    """
    if not amount:
        return None, None

    try:
        parsed = parse_units(amount, decimals)
    except ValueError:
        return None, f"Invalid {field_name.lower()}"

    if not allow_zero and parsed <= 0:
        return None, f"{field_name} must be greater than 0"
    if allow_zero and parsed < 0:
        return None, f"{field_name} must be greater than or equal to 0"
    if max_value is not None and parsed > max_value:
        return None, f"{field_name} out of range"
    return parsed, None


def validate_start_time(start_time: Any) -> Optional[str]:
    try:
        timestamp = readable_to_timestamp(start_time)
    except ValueError:
        return "Invalid start time"
    if timestamp > UINT256_MAX:
        return "Start time out of range"
    if timestamp < start_of_today_utc():
        return "Start time must be today or later"
    return None


def validate_expiry(expiry: Any) -> Optional[str]:
    try:
        timestamp = readable_to_timestamp(expiry)
    except ValueError:
        return "Invalid expiry"
    if timestamp > UINT128_MAX:
        return "Expiry out of range"
    if timestamp < now_seconds():
        return "Expiry must be in the future"
    return None


def validate_max_amount_vs_initial_amount(
    max_amount: Optional[int], initial_amount: Optional[int]
) -> Optional[str]:
    if max_amount is not None and initial_amount is not None and max_amount < initial_amount:
        return "Max amount must be greater than initial amount"
    return None


def calculate_amount_per_second(amount_per_period: int, time_period: TimePeriod, decimals: int) -> str:
    return format_units(amount_per_period // TIME_PERIOD_TO_SECONDS[time_period], decimals)


def validate_amount_per_second(amount_per_period: int, time_period: TimePeriod) -> Optional[str]:
    if amount_per_period // TIME_PERIOD_TO_SECONDS[time_period] > UINT256_MAX:
        return "Amount per period out of range"
    return None
