"""Request validation for native token stream permissions."""

from dataclasses import replace
from typing import Any

from ...errors import InvalidRequestError
from ...lifecycle.models import Permission, PermissionRequest
from ..dates import now_seconds
from ..validation import validate_hex_integer
from .types import NATIVE_TOKEN_STREAM


def _validate_permission_data(request: PermissionRequest) -> dict:
    data = dict(request.permission.data)

    justification = data.get("justification")
    if not isinstance(justification, str):
        raise InvalidRequestError("Invalid justification: must be a string")

    initial_amount = validate_hex_integer("initialAmount", data.get("initialAmount"), required=False, allow_zero=False)
    max_amount = validate_hex_integer("maxAmount", data.get("maxAmount"), required=False, allow_zero=False)
    validate_hex_integer("amountPerSecond", data.get("amountPerSecond"), required=True, allow_zero=False)

    if initial_amount is not None and max_amount is not None and max_amount < initial_amount:
        raise InvalidRequestError("Invalid maxAmount: must be greater than initialAmount")

    expiry = request.expiry
    if expiry is None:
        raise InvalidRequestError("Expiry rule is required")

    start_time = data.get("startTime")
    if start_time is None:
        start_time = now_seconds()
    elif isinstance(start_time, bool) or not isinstance(start_time, int) or start_time <= 0:
        raise InvalidRequestError("Invalid startTime: must be a positive integer timestamp")
    elif start_time >= expiry:
        raise InvalidRequestError("Invalid startTime: must be before expiry")

    data["startTime"] = start_time
    for optional in ("initialAmount", "maxAmount"):
        if data.get(optional) is None:
            data.pop(optional, None)
    return data


def parse_and_validate_permission(raw_request: Any) -> PermissionRequest:
    """
    Parse and validate a native token stream request.

    Absent optional amounts stay absent; a missing start time defaults to now.

    Raises:
        InvalidRequestError: If the request is malformed or out of bounds
    """
    request = PermissionRequest.from_dict(raw_request)
    if request.permission.type != NATIVE_TOKEN_STREAM:
        raise InvalidRequestError(
            f"Expected permission type '{NATIVE_TOKEN_STREAM}', got '{request.permission.type}'"
        )

    data = _validate_permission_data(request)
    return replace(request, permission=Permission(type=NATIVE_TOKEN_STREAM, data=data))
