"""Context, metadata and request conversion for native token stream permissions."""

from dataclasses import replace

from ...accounts import AccountController
from ...chain_metadata import ChainMetadataRegistry
from ...errors import InvalidRequestError
from ...lifecycle.models import Permission, PermissionRequest
from ..dates import TIME_PERIOD_TO_SECONDS, TimePeriod, readable_to_timestamp, timestamp_to_readable
from ..validation import (
    calculate_amount_per_second,
    validate_amount_per_second,
    validate_and_parse_amount,
    validate_expiry,
    validate_max_amount_vs_initial_amount,
    validate_start_time,
)
from ..values import format_units, format_units_from_hex, parse_units, to_hex
from .types import (
    AccountDetails,
    NativeTokenStreamContext,
    NativeTokenStreamMetadata,
    PermissionDetails,
    TokenMetadata,
)

DEFAULT_MAX_AMOUNT = "0x" + "f" * 64
DEFAULT_INITIAL_AMOUNT = "0x0"
DEFAULT_TIME_PERIOD = TimePeriod.WEEKLY


async def build_context(
    request: PermissionRequest,
    account_controller: AccountController,
    chain_registry: ChainMetadataRegistry,
) -> NativeTokenStreamContext:
    """Project a validated request into the confirmation context."""
    chain = chain_registry.get(request.chain_id)
    address = await account_controller.get_account_address(request.chain_id)
    decimals = chain.decimals
    data = request.permission.data

    amount_per_second = int(data["amountPerSecond"], 16)
    # the grantor edits amount per period; amount per second is derived
    amount_per_period = format_units(amount_per_second * TIME_PERIOD_TO_SECONDS[DEFAULT_TIME_PERIOD], decimals)

    return NativeTokenStreamContext(
        expiry=timestamp_to_readable(request.expiry),
        justification=data.get("justification", ""),
        is_adjustment_allowed=request.is_adjustment_allowed,
        account_details=AccountDetails(address=address, chain_name=chain.name),
        token_metadata=TokenMetadata(symbol=chain.symbol, decimals=decimals),
        permission_details=PermissionDetails(
            initial_amount=format_units_from_hex(data.get("initialAmount"), decimals),
            max_amount=format_units_from_hex(data.get("maxAmount"), decimals),
            time_period=DEFAULT_TIME_PERIOD,
            start_time=timestamp_to_readable(data["startTime"]),
            amount_per_period=amount_per_period,
        ),
    )


async def derive_metadata(context: NativeTokenStreamContext) -> NativeTokenStreamMetadata:
    """Validate every editable field of the context. Never raises."""
    details = context.permission_details
    decimals = context.token_metadata.decimals
    errors = {}

    max_amount, error = validate_and_parse_amount(details.max_amount, decimals, "Max amount")
    if error:
        errors["max_amount"] = error

    initial_amount, error = validate_and_parse_amount(
        details.initial_amount, decimals, "Initial amount", allow_zero=True
    )
    if error:
        errors["initial_amount"] = error

    amount_per_second = "Unknown"
    if not details.amount_per_period:
        errors["amount_per_period"] = "Amount per period is required"
    else:
        amount_per_period, error = validate_and_parse_amount(
            details.amount_per_period, decimals, "Amount per period", max_value=None
        )
        if not error:
            error = validate_amount_per_second(amount_per_period, details.time_period)
        if error:
            errors["amount_per_period"] = error
        else:
            amount_per_second = calculate_amount_per_second(amount_per_period, details.time_period, decimals)

    error = validate_start_time(details.start_time)
    if error:
        errors["start_time"] = error

    error = validate_expiry(context.expiry)
    if error:
        errors["expiry"] = error

    error = validate_max_amount_vs_initial_amount(max_amount, initial_amount)
    if error:
        errors["max_amount"] = error

    return NativeTokenStreamMetadata(amount_per_second=amount_per_second, validation_errors=errors)


async def apply_context(context: NativeTokenStreamContext, original_request: PermissionRequest) -> PermissionRequest:
    """
    Amend the original request with the values of an edited context.

    Raises:
        InvalidRequestError: If a context value no longer parses
    """
    details = context.permission_details
    decimals = context.token_metadata.decimals

    try:
        data = {
            "amountPerSecond": to_hex(
                parse_units(details.amount_per_period, decimals) // TIME_PERIOD_TO_SECONDS[details.time_period]
            ),
            "startTime": readable_to_timestamp(details.start_time),
            "justification": original_request.permission.data.get("justification", ""),
        }
        if details.initial_amount:
            data["initialAmount"] = to_hex(parse_units(details.initial_amount, decimals))
        if details.max_amount:
            data["maxAmount"] = to_hex(parse_units(details.max_amount, decimals))
        expiry = readable_to_timestamp(context.expiry)
    except ValueError as e:
        raise InvalidRequestError(f"Cannot apply confirmation values: {e}")

    return original_request.with_permission(
        Permission(type=original_request.permission.type, data=data)
    ).with_expiry(expiry)


async def populate_permission(permission: Permission) -> Permission:
    """Fill the optional amounts with their defaults."""
    data = dict(permission.data)
    if data.get("initialAmount") is None:
        data["initialAmount"] = DEFAULT_INITIAL_AMOUNT
    if data.get("maxAmount") is None:
        data["maxAmount"] = DEFAULT_MAX_AMOUNT
    return replace(permission, data=data)
