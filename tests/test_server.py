"""End-to-end tests for the grant server tools."""

import asyncio
import json

import pytest
from fastmcp.exceptions import ToolError

from src.grant_mcp import server
from src.grant_mcp.confirmation import CANCEL_BUTTON, GRANT_BUTTON
from src.grant_mcp.permissions.native_token_stream.rules import MAX_AMOUNT_ELEMENT
from src.grant_mcp.signing import decode_delegations, verify_delegation
from tests.conftest import TEST_DEBOUNCE_SECONDS
from tests.test_utils import (
    GRANTEE_ADDRESS,
    SITE_ORIGIN,
    audit_events,
    make_raw_request,
    wait_for_content,
    wait_until,
)

pytestmark = pytest.mark.integration

SEPOLIA_CHAIN_ID = 11155111


@pytest.fixture
def grant_server(monkeypatch, tmp_path):
    """
    Server module with audit output redirected and a short debounce window.

    Cleanup:
        Cancels debounce timers left behind by the test
    """
    monkeypatch.setattr(server.audit_logger, "log_path", tmp_path / "audit.jsonl")
    monkeypatch.setattr(server.user_event_dispatcher, "debounce_delay", TEST_DEBOUNCE_SECONDS)
    yield server
    server.user_event_dispatcher.clear_debounce_timers()


def _known_interfaces():
    return {hosted.interface_id for hosted in server.dialog_host.list_interfaces(include_closed=True)}


async def _start_grant(raw_requests):
    """Call the grant tool in the background and wait for its dialog to become interactive."""
    known = _known_interfaces()
    task = asyncio.ensure_future(server.grant_attenuated_permissions.fn(SITE_ORIGIN, raw_requests))
    new_ids = await wait_until(lambda: sorted(_known_interfaces() - known))
    interface_id = new_ids[0]
    await wait_for_content(server.dialog_host, interface_id)
    return task, interface_id


async def _press(interface_id, name):
    return await server.submit_user_input.fn(interface_id, {"type": "ButtonClickEvent", "name": name})


# ============================================================================
# GRANT FLOW
# ============================================================================


@pytest.mark.asyncio
async def test_grant_with_edit_returns_signed_response(grant_server):
    task, interface_id = await _start_grant([make_raw_request()])

    confirmation = json.loads(server.get_confirmation.fn(interface_id))
    assert confirmation["closed"] is False

    message = await server.submit_user_input.fn(
        interface_id, {"type": "InputChangeEvent", "name": MAX_AMOUNT_ELEMENT, "value": "2"}
    )
    assert message == f"Input '{MAX_AMOUNT_ELEMENT}' delivered to confirmation {interface_id}"
    await _press(interface_id, GRANT_BUTTON)

    (response,) = json.loads(await asyncio.wait_for(task, timeout=2))

    assert response["chainId"] == hex(SEPOLIA_CHAIN_ID)
    assert response["address"] == server.account_controller.address
    assert response["permission"]["data"]["maxAmount"] == hex(2 * 10**18)
    (delegation,) = decode_delegations(response["context"])
    assert delegation.delegate == GRANTEE_ADDRESS
    assert verify_delegation(delegation, SEPOLIA_CHAIN_ID, server.Config.SIGNING_SECRET)

    granted = audit_events(server.audit_logger.log_path, "permission_granted")
    assert [entry["interface_id"] for entry in granted] == [interface_id]
    assert json.loads(server.get_confirmation.fn(interface_id))["closed"] is True


@pytest.mark.asyncio
async def test_rejection_raises_tool_error(grant_server):
    task, interface_id = await _start_grant([make_raw_request()])

    await _press(interface_id, CANCEL_BUTTON)

    with pytest.raises(ToolError, match="Permission request denied"):
        await asyncio.wait_for(task, timeout=2)
    assert audit_events(server.audit_logger.log_path, "permission_rejected")


@pytest.mark.asyncio
async def test_dismissal_rejects_request(grant_server):
    task, interface_id = await _start_grant([make_raw_request()])

    message = await server.dismiss_confirmation.fn(interface_id)

    assert message == f"Confirmation {interface_id} dismissed"
    with pytest.raises(ToolError, match="Permission request denied"):
        await asyncio.wait_for(task, timeout=2)
    assert await server.dismiss_confirmation.fn(interface_id) == f"Confirmation {interface_id} is already closed"


@pytest.mark.asyncio
async def test_batch_stops_at_first_rejection(grant_server):
    known = _known_interfaces()
    task, interface_id = await _start_grant([make_raw_request(), make_raw_request()])

    await _press(interface_id, CANCEL_BUTTON)

    with pytest.raises(ToolError):
        await asyncio.wait_for(task, timeout=2)
    assert len(_known_interfaces() - known) == 1


# ============================================================================
# REQUEST ERRORS
# ============================================================================


@pytest.mark.asyncio
async def test_unsupported_chains_fail_before_any_dialog(grant_server):
    known = _known_interfaces()
    sepolia = make_raw_request()
    goerli = make_raw_request()
    goerli["chainId"] = "0x5"

    with pytest.raises(ToolError, match="Unsupported chain IDs: 0x5"):
        await server.grant_attenuated_permissions.fn(SITE_ORIGIN, [sepolia, goerli])

    assert _known_interfaces() == known


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "origin, requests, message",
    [
        ("", [{}], "site_origin cannot be empty"),
        (SITE_ORIGIN, [], "permissions_request cannot be empty"),
        (SITE_ORIGIN, ["request"], "expected an object"),
        (SITE_ORIGIN, [{"chainId": "0xaa36a7"}], "permission is required"),
    ],
)
async def test_invalid_input_raises_tool_error(grant_server, origin, requests, message):
    with pytest.raises(ToolError, match=message):
        await server.grant_attenuated_permissions.fn(origin, requests)


@pytest.mark.asyncio
async def test_unsupported_permission_type_raises_tool_error(grant_server):
    raw_request = make_raw_request()
    raw_request["permission"]["type"] = "erc20-token-stream"

    with pytest.raises(ToolError, match="Unsupported permission type: erc20-token-stream"):
        await server.grant_attenuated_permissions.fn(SITE_ORIGIN, [raw_request])


@pytest.mark.asyncio
async def test_invalid_permission_data_raises_tool_error(grant_server):
    raw_request = make_raw_request(maxAmount=hex(1))

    with pytest.raises(ToolError, match="Invalid maxAmount: must be greater than initialAmount"):
        await server.grant_attenuated_permissions.fn(SITE_ORIGIN, [raw_request])


@pytest.mark.asyncio
async def test_malformed_expiry_rule_raises_tool_error(grant_server):
    raw_request = make_raw_request()
    raw_request["rules"][0]["data"]["timestamp"] = "soon"

    with pytest.raises(ToolError, match="Invalid expiry rule timestamp"):
        await server.grant_attenuated_permissions.fn(SITE_ORIGIN, [raw_request])


# ============================================================================
# HOST TOOLS
# ============================================================================


def test_permission_offers_tool():
    offers = json.loads(server.get_permission_offers.fn())

    assert [offer["type"] for offer in offers] == ["native-token-stream"]
    assert offers[0]["id"]


def test_unknown_confirmation_raises_tool_error():
    with pytest.raises(ToolError, match="Confirmation 'missing' not found"):
        server.get_confirmation.fn("missing")


@pytest.mark.asyncio
async def test_input_on_closed_confirmation_raises(grant_server):
    task, interface_id = await _start_grant([make_raw_request()])
    await _press(interface_id, CANCEL_BUTTON)
    with pytest.raises(ToolError):
        await asyncio.wait_for(task, timeout=2)

    with pytest.raises(ToolError, match="is already closed"):
        await _press(interface_id, GRANT_BUTTON)


@pytest.mark.asyncio
async def test_malformed_event_raises_tool_error(grant_server):
    task, interface_id = await _start_grant([make_raw_request()])

    with pytest.raises(ToolError, match="Unknown user input event type"):
        await server.submit_user_input.fn(interface_id, {"type": "Hover", "name": GRANT_BUTTON})

    await _press(interface_id, CANCEL_BUTTON)
    with pytest.raises(ToolError):
        await asyncio.wait_for(task, timeout=2)


@pytest.mark.asyncio
async def test_list_confirmations_filters_closed(grant_server):
    task, interface_id = await _start_grant([make_raw_request()])

    open_ids = [item["interface_id"] for item in json.loads(server.list_confirmations.fn())]
    assert interface_id in open_ids

    await _press(interface_id, CANCEL_BUTTON)
    with pytest.raises(ToolError):
        await asyncio.wait_for(task, timeout=2)

    open_ids = [item["interface_id"] for item in json.loads(server.list_confirmations.fn())]
    all_items = json.loads(server.list_confirmations.fn(include_closed=True))
    assert interface_id not in open_ids
    assert {"interface_id": interface_id, "closed": True} in all_items


@pytest.mark.asyncio
async def test_lifespan_logs_startup_and_drains(grant_server, log_messages):
    async with server.lifespan(server.mcp):
        pass

    messages = [message for _, message in log_messages]
    assert any("Supported chains:" in message for message in messages)
    assert any("Permission types: native-token-stream" in message for message in messages)
    assert any("shutting down" in message for message in messages)
