"""Tests for the native-token-stream permission type."""

import time
from dataclasses import replace

import pytest

from src.grant_mcp.chain_metadata import CONTRACTS_1_3_0, Enforcers
from src.grant_mcp.confirmation import DialogUiState, SHOW_MORE_BUTTON
from src.grant_mcp.confirmation.ui import contains_skeleton, find_element, iter_elements
from src.grant_mcp.errors import AdjustmentNotAllowedError, InvalidRequestError
from src.grant_mcp.lifecycle.models import Permission
from src.grant_mcp.lifecycle.restrictions import UINT128_MAX, RestrictionBuilder, native_token_streaming_terms
from src.grant_mcp.permissions.dates import TimePeriod, timestamp_to_readable
from src.grant_mcp.permissions.native_token_stream import DEFAULT_INITIAL_AMOUNT, DEFAULT_MAX_AMOUNT
from src.grant_mcp.permissions.native_token_stream.content import JUSTIFICATION_PREVIEW_LENGTH
from src.grant_mcp.permissions.native_token_stream.rules import (
    AMOUNT_PER_PERIOD_ELEMENT,
    EXPIRY_ELEMENT,
    INITIAL_AMOUNT_ELEMENT,
    MAX_AMOUNT_ELEMENT,
    START_TIME_ELEMENT,
    TIME_PERIOD_ELEMENT,
)
from src.grant_mcp.permissions.native_token_stream.types import NativeTokenStreamContext
from src.grant_mcp.permissions.native_token_stream.validation import parse_and_validate_permission
from tests.conftest import GRANTOR_ADDRESS
from tests.test_utils import AMOUNT_PER_SECOND, make_raw_request


async def _context_and_metadata(handlers, raw_request=None):
    request = handlers.validate_request(raw_request or make_raw_request())
    context = await handlers.build_context(request)
    metadata = await handlers.derive_metadata(context)
    return request, context, metadata


# ============================================================================
# VALIDATION
# ============================================================================


def test_valid_request_parses():
    raw_request = make_raw_request()
    request = parse_and_validate_permission(raw_request)

    assert request.chain_id == 11155111
    assert request.permission.type == "native-token-stream"
    assert request.permission.data["amountPerSecond"] == AMOUNT_PER_SECOND
    assert request.expiry == raw_request["rules"][0]["data"]["timestamp"]


def test_permission_type_may_be_a_descriptor():
    raw_request = make_raw_request()
    raw_request["permission"]["type"] = {"name": "native-token-stream", "description": "Stream"}

    assert parse_and_validate_permission(raw_request).permission.type == "native-token-stream"


def test_missing_start_time_defaults_to_now():
    before = int(time.time())
    request = parse_and_validate_permission(make_raw_request(startTime=None))

    assert before <= request.permission.data["startTime"] <= int(time.time())


def test_absent_optional_amounts_stay_absent():
    request = parse_and_validate_permission(make_raw_request(initialAmount=None, maxAmount=None))

    assert "initialAmount" not in request.permission.data
    assert "maxAmount" not in request.permission.data


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"amountPerSecond": None}, "Invalid amountPerSecond: must be defined"),
        ({"amountPerSecond": "0x0"}, "Invalid amountPerSecond: must be greater than 0"),
        ({"amountPerSecond": "1000"}, "Invalid amountPerSecond: must be a valid hex integer"),
        ({"initialAmount": "0xzz"}, "Invalid initialAmount: must be a valid hex integer"),
        ({"maxAmount": "0x0"}, "Invalid maxAmount: must be greater than 0"),
        ({"maxAmount": hex(10**16)}, "Invalid maxAmount: must be greater than initialAmount"),
        ({"justification": None}, "Invalid justification: must be a string"),
        ({"startTime": -5}, "Invalid startTime"),
    ],
)
def test_invalid_permission_data_is_rejected(overrides, message):
    with pytest.raises(InvalidRequestError, match=message):
        parse_and_validate_permission(make_raw_request(**overrides))


def test_start_time_must_precede_expiry():
    raw_request = make_raw_request(start_offset=40 * 24 * 3600)

    with pytest.raises(InvalidRequestError, match="Invalid startTime: must be before expiry"):
        parse_and_validate_permission(raw_request)


def test_expiry_rule_is_required():
    raw_request = make_raw_request()
    raw_request["rules"] = []

    with pytest.raises(InvalidRequestError, match="Expiry rule is required"):
        parse_and_validate_permission(raw_request)


def test_malformed_expiry_rule_timestamp_is_an_invalid_request():
    raw_request = make_raw_request()
    raw_request["rules"][0]["data"]["timestamp"] = "soon"

    with pytest.raises(InvalidRequestError, match="Invalid expiry rule timestamp"):
        parse_and_validate_permission(raw_request)


def test_other_permission_type_is_rejected():
    raw_request = make_raw_request()
    raw_request["permission"]["type"] = "erc20-token-stream"

    with pytest.raises(InvalidRequestError, match="Expected permission type"):
        parse_and_validate_permission(raw_request)


# ============================================================================
# CONTEXT AND METADATA
# ============================================================================


@pytest.mark.asyncio
async def test_build_context_formats_amounts_and_dates(native_token_stream_handlers):
    raw_request = make_raw_request()
    request, context, metadata = await _context_and_metadata(native_token_stream_handlers, raw_request)

    details = context.permission_details
    assert details.initial_amount == "0.1"
    assert details.max_amount == "1"
    assert details.time_period is TimePeriod.WEEKLY
    assert details.amount_per_period == "604.8"
    assert details.start_time == timestamp_to_readable(raw_request["permission"]["data"]["startTime"])
    assert context.expiry == timestamp_to_readable(request.expiry)
    assert context.account_details.address == GRANTOR_ADDRESS
    assert context.account_details.chain_name == "Sepolia"
    assert context.token_metadata.symbol == "ETH"
    assert context.is_adjustment_allowed is True

    assert metadata.validation_errors == {}
    assert metadata.amount_per_second == "0.001"


@pytest.mark.asyncio
async def test_context_serializes_to_plain_dict(native_token_stream_handlers):
    _, context, metadata = await _context_and_metadata(native_token_stream_handlers)

    data = context.to_dict()
    assert data["permission_details"]["time_period"] == "Weekly"
    assert metadata.to_dict()["validation_errors"] == {}


@pytest.mark.asyncio
async def test_metadata_flags_each_invalid_field(native_token_stream_handlers):
    handlers = native_token_stream_handlers
    _, context, _ = await _context_and_metadata(handlers)

    context = handlers.apply_edit(context, INITIAL_AMOUNT_ELEMENT, "abc")
    context = handlers.apply_edit(context, AMOUNT_PER_PERIOD_ELEMENT, "0")
    context = handlers.apply_edit(context, START_TIME_ELEMENT, "2001-01-01T00:00:00Z")
    context = handlers.apply_edit(context, EXPIRY_ELEMENT, "not a date")
    metadata = await handlers.derive_metadata(context)

    assert metadata.validation_errors == {
        "initial_amount": "Invalid initial amount",
        "amount_per_period": "Amount per period must be greater than 0",
        "start_time": "Start time must be today or later",
        "expiry": "Invalid expiry",
    }
    assert metadata.amount_per_second == "Unknown"
    assert handlers.has_validation_errors(metadata)


@pytest.mark.asyncio
async def test_empty_amount_per_period_is_required(native_token_stream_handlers):
    handlers = native_token_stream_handlers
    _, context, _ = await _context_and_metadata(handlers)

    context = handlers.apply_edit(context, AMOUNT_PER_PERIOD_ELEMENT, "  ")
    metadata = await handlers.derive_metadata(context)

    assert metadata.validation_errors["amount_per_period"] == "Amount per period is required"


@pytest.mark.asyncio
async def test_cleared_max_amount_means_unbounded(native_token_stream_handlers):
    handlers = native_token_stream_handlers
    _, context, _ = await _context_and_metadata(handlers)

    context = handlers.apply_edit(context, MAX_AMOUNT_ELEMENT, "")
    metadata = await handlers.derive_metadata(context)

    assert context.permission_details.max_amount is None
    assert "max_amount" not in metadata.validation_errors


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "element_name, value, field, message",
    [
        (EXPIRY_ELEMENT, "9" * 40, "expiry", "Expiry out of range"),
        (START_TIME_ELEMENT, "9" * 80, "start_time", "Start time out of range"),
        (AMOUNT_PER_PERIOD_ELEMENT, "1e80", "amount_per_period", "Amount per period out of range"),
        (MAX_AMOUNT_ELEMENT, "1e60", "max_amount", "Max amount out of range"),
        (INITIAL_AMOUNT_ELEMENT, "1e60", "initial_amount", "Initial amount out of range"),
    ],
)
async def test_metadata_flags_values_that_cannot_be_encoded(
    native_token_stream_handlers, element_name, value, field, message
):
    handlers = native_token_stream_handlers
    _, context, _ = await _context_and_metadata(handlers)

    context = handlers.apply_edit(context, element_name, value)
    metadata = await handlers.derive_metadata(context)

    assert metadata.validation_errors == {field: message}
    assert handlers.has_validation_errors(metadata)


@pytest.mark.asyncio
async def test_largest_encodable_expiry_is_accepted(native_token_stream_handlers):
    handlers = native_token_stream_handlers
    _, context, _ = await _context_and_metadata(handlers)

    context = handlers.apply_edit(context, EXPIRY_ELEMENT, str(UINT128_MAX))
    metadata = await handlers.derive_metadata(context)

    assert "expiry" not in metadata.validation_errors


# ============================================================================
# EDITS
# ============================================================================


@pytest.mark.asyncio
async def test_apply_edit_returns_new_context(native_token_stream_handlers):
    handlers = native_token_stream_handlers
    _, context, _ = await _context_and_metadata(handlers)

    edited = handlers.apply_edit(context, MAX_AMOUNT_ELEMENT, " 2.5 ")

    assert edited is not context
    assert edited.permission_details.max_amount == "2.5"
    assert context.permission_details.max_amount == "1"


@pytest.mark.asyncio
async def test_date_edits_are_normalized(native_token_stream_handlers):
    handlers = native_token_stream_handlers
    _, context, _ = await _context_and_metadata(handlers)

    edited = handlers.apply_edit(context, EXPIRY_ELEMENT, "2031-02-03T04:05:06+00:00")

    assert edited.expiry == "2031-02-03T04:05:06Z"


@pytest.mark.asyncio
async def test_time_period_edit(native_token_stream_handlers):
    handlers = native_token_stream_handlers
    _, context, _ = await _context_and_metadata(handlers)

    daily = handlers.apply_edit(context, TIME_PERIOD_ELEMENT, "Daily")
    unknown = handlers.apply_edit(context, TIME_PERIOD_ELEMENT, "Hourly")

    assert daily.permission_details.time_period is TimePeriod.DAILY
    assert unknown is context


@pytest.mark.asyncio
async def test_edit_of_unknown_element_raises(native_token_stream_handlers):
    handlers = native_token_stream_handlers
    _, context, _ = await _context_and_metadata(handlers)

    with pytest.raises(KeyError):
        handlers.apply_edit(context, "native-token-stream-color", "blue")


@pytest.mark.asyncio
async def test_edit_on_non_adjustable_context_raises(native_token_stream_handlers):
    handlers = native_token_stream_handlers
    _, context, _ = await _context_and_metadata(handlers, make_raw_request(is_adjustment_allowed=False))

    with pytest.raises(AdjustmentNotAllowedError) as exc_info:
        handlers.apply_edit(context, MAX_AMOUNT_ELEMENT, "5")

    assert str(exc_info.value) == "Adjustment is not allowed"


# ============================================================================
# REQUEST RESOLUTION
# ============================================================================


@pytest.mark.asyncio
async def test_apply_context_converts_edits_back(native_token_stream_handlers):
    handlers = native_token_stream_handlers
    request, context, _ = await _context_and_metadata(handlers)

    context = handlers.apply_edit(context, MAX_AMOUNT_ELEMENT, "2")
    context = handlers.apply_edit(context, EXPIRY_ELEMENT, "2031-01-01T00:00:00Z")
    resolved = await handlers.apply_context(context, request)

    assert resolved.permission.data["maxAmount"] == hex(2 * 10**18)
    assert resolved.permission.data["amountPerSecond"] == AMOUNT_PER_SECOND
    assert resolved.expiry == 1924992000
    assert resolved.signer_address == request.signer_address


@pytest.mark.asyncio
async def test_apply_context_rejects_unparseable_values(native_token_stream_handlers):
    handlers = native_token_stream_handlers
    request, context, _ = await _context_and_metadata(handlers)

    context = handlers.apply_edit(context, START_TIME_ELEMENT, "someday")

    with pytest.raises(InvalidRequestError, match="Cannot apply confirmation values"):
        await handlers.apply_context(context, request)


@pytest.mark.asyncio
async def test_populate_permission_fills_defaults_and_is_idempotent(native_token_stream_handlers):
    handlers = native_token_stream_handlers
    permission = Permission(type="native-token-stream", data={"amountPerSecond": "0x1", "startTime": 1})

    populated = await handlers.populate_permission(permission)
    again = await handlers.populate_permission(populated)

    assert populated.data["initialAmount"] == DEFAULT_INITIAL_AMOUNT
    assert populated.data["maxAmount"] == DEFAULT_MAX_AMOUNT
    assert again == populated
    assert "initialAmount" not in permission.data


@pytest.mark.asyncio
async def test_append_restrictions(native_token_stream_handlers):
    permission = Permission(
        type="native-token-stream",
        data={"initialAmount": "0x0", "maxAmount": "0x64", "amountPerSecond": "0x2", "startTime": 1700000000},
    )

    builder = await native_token_stream_handlers.append_restrictions(permission, RestrictionBuilder(CONTRACTS_1_3_0))
    streaming, calldata = builder.build()

    assert streaming.enforcer == CONTRACTS_1_3_0.enforcer(Enforcers.NATIVE_TOKEN_STREAMING.value)
    assert streaming.terms == native_token_streaming_terms(0, 100, 2, 1700000000)
    assert calldata.enforcer == CONTRACTS_1_3_0.enforcer(Enforcers.EXACT_CALLDATA.value)
    assert calldata.terms == "0x"


# ============================================================================
# CONTENT
# ============================================================================


@pytest.mark.asyncio
async def test_content_renders_every_rule_and_stream_rate(native_token_stream_handlers):
    handlers = native_token_stream_handlers
    _, context, metadata = await _context_and_metadata(handlers)

    content = handlers.create_confirmation_content(context, metadata, DialogUiState())

    for element_name in handlers.editable_elements:
        assert find_element(content, element_name) is not None
    rate = find_element(content, "stream-rate")
    assert rate["value"] == "0.001 ETH/sec"
    assert rate["disabled"] is True
    assert find_element(content, TIME_PERIOD_ELEMENT)["options"] == ["Daily", "Weekly", "Monthly"]
    assert not contains_skeleton(content)


@pytest.mark.asyncio
async def test_short_justification_has_no_toggle(native_token_stream_handlers):
    handlers = native_token_stream_handlers
    _, context, metadata = await _context_and_metadata(handlers)

    content = handlers.create_confirmation_content(context, metadata, DialogUiState())

    assert find_element(content, SHOW_MORE_BUTTON) is None


@pytest.mark.asyncio
async def test_content_shows_field_errors(native_token_stream_handlers):
    handlers = native_token_stream_handlers
    _, context, _ = await _context_and_metadata(handlers)
    context = handlers.apply_edit(context, MAX_AMOUNT_ELEMENT, "0.01")
    metadata = await handlers.derive_metadata(context)

    content = handlers.create_confirmation_content(context, metadata, DialogUiState())

    assert find_element(content, MAX_AMOUNT_ELEMENT)["error"] == "Max amount must be greater than initial amount"


def test_skeleton_content(native_token_stream_handlers):
    assert contains_skeleton(native_token_stream_handlers.create_skeleton_confirmation_content())


def test_ui_state_is_not_part_of_context():
    field_names = set(NativeTokenStreamContext.__dataclass_fields__)
    assert "is_justification_collapsed" not in field_names
    assert DialogUiState().toggled() == replace(DialogUiState(), is_justification_collapsed=False)


@pytest.mark.asyncio
async def test_long_justification_collapses_with_toggle(native_token_stream_handlers):
    handlers = native_token_stream_handlers
    justification = "word " * 40
    _, context, metadata = await _context_and_metadata(handlers, make_raw_request(justification=justification))

    collapsed = handlers.create_confirmation_content(context, metadata, DialogUiState())
    expanded = handlers.create_confirmation_content(context, metadata, DialogUiState().toggled())

    assert find_element(collapsed, SHOW_MORE_BUTTON)["label"] == "Show more"
    assert find_element(expanded, SHOW_MORE_BUTTON)["label"] == "Show less"
    collapsed_texts = [element.get("text") for element in iter_elements(collapsed)]
    expanded_texts = [element.get("text") for element in iter_elements(expanded)]
    preview = justification[:JUSTIFICATION_PREVIEW_LENGTH].rstrip() + "..."
    assert preview in collapsed_texts
    assert justification in expanded_texts
