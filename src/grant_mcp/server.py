"""FastMCP grant server: permission requests, confirmation dialogs and user input."""

import json
import sys
from contextlib import asynccontextmanager
from typing import Any, Dict, List

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from loguru import logger

from .accounts import AccountController
from .audit import audit_logger
from .chain_metadata import ChainMetadataRegistry
from .config import Config
from .confirmation import ConfirmationDialogFactory, InMemoryDialogHost
from .dispatch import TimeoutFactory, UserEventDispatcher
from .errors import GrantFlowError, InvalidRequestError
from .lifecycle.models import parse_chain_id
from .lifecycle.orchestrator import PermissionRequestLifecycleOrchestrator
from .permissions import PermissionHandlerFactory


# Constants
SERVER_NAME = Config.SERVER_NAME
HOST = Config.HOST
PORT = Config.PORT


# ============================================================================
# GRANT FLOW WIRING
# ============================================================================
# One dispatcher per process. Every confirmation shares it; sessions are
# namespaced by interface id. The host keeps dialogs in memory so MCP
# clients can render them (get_confirmation) and report input
# (submit_user_input) while grant_attenuated_permissions is waiting.
# ============================================================================

dialog_host = InMemoryDialogHost()
user_event_dispatcher = UserEventDispatcher()
on_user_input = user_event_dispatcher.create_user_input_event_handler()

chain_registry = ChainMetadataRegistry()
account_controller = AccountController()

orchestrator = PermissionRequestLifecycleOrchestrator(
    account_controller=account_controller,
    dialog_factory=ConfirmationDialogFactory(
        host=dialog_host,
        dispatcher=user_event_dispatcher,
        timeout_factory=TimeoutFactory.from_config(),
    ),
    chain_registry=chain_registry,
    audit=audit_logger,
)
permission_handler_factory = PermissionHandlerFactory(
    orchestrator=orchestrator,
    account_controller=account_controller,
    chain_registry=chain_registry,
)


@asynccontextmanager
async def lifespan(app):
    """
    Server lifecycle manager (startup/shutdown).

    Shutdown cancels pending debounce timers and waits for handlers that
    are already running.
    """
    logger.info(f"Starting {SERVER_NAME} server...")
    chains = ", ".join(f"{c.name} ({c.chain_id})" for c in chain_registry.supported_chains())
    logger.info(f"Supported chains: {chains}")
    logger.info(f"Permission types: {', '.join(permission_handler_factory.supported_types())}")
    logger.info(f"Grantor account: {account_controller.address}")
    logger.info(f"Audit logging: {audit_logger.log_path}")
    logger.info(f"Listening on {HOST}:{PORT}")

    yield  # Server runs here

    logger.info(f"{SERVER_NAME} shutting down...")
    user_event_dispatcher.clear_debounce_timers()
    await user_event_dispatcher.wait_for_pending_handlers()


mcp = FastMCP(name=SERVER_NAME, lifespan=lifespan)


def _check_supported_chains(requests: List[Dict[str, Any]]) -> None:
    unsupported = []
    for request in requests:
        if not isinstance(request, dict):
            raise InvalidRequestError("Invalid permission request: expected an object")
        chain_id = parse_chain_id(request.get("chainId"))
        if not chain_registry.is_supported(chain_id):
            unsupported.append(str(request.get("chainId")))
    if unsupported:
        raise InvalidRequestError(f"Unsupported chain IDs: {', '.join(unsupported)}")


# ============================================================================
# GRANT TOOLS
# ============================================================================

@mcp.tool()
async def grant_attenuated_permissions(site_origin: str, permissions_request: List[Dict[str, Any]]) -> str:
    """
    Request attenuated permissions on behalf of a site.

    Each request opens a confirmation dialog and waits for the grantor's
    decision. Requests are handled in order; a single rejection aborts
    the whole batch.

    Args:
        site_origin: Origin of the requesting site
        permissions_request: Permission requests in wire form

    Returns:
        JSON list of permission responses, one per request

    Raises:
        ToolError: If a request is invalid or the grantor rejects it
    """
    if not site_origin or not site_origin.strip():
        raise ToolError("site_origin cannot be empty")
    if not permissions_request:
        raise ToolError("permissions_request cannot be empty")

    logger.info(f"Grant request from {site_origin} for {len(permissions_request)} permission(s)")

    responses = []
    try:
        _check_supported_chains(permissions_request)
        for raw_request in permissions_request:
            handler = permission_handler_factory.create_permission_handler(raw_request)
            result = await handler.handle_permission_request(site_origin)
            if not result.approved:
                raise ToolError(result.reason)
            responses.append(result.response)
    except GrantFlowError as e:
        logger.warning(f"Grant request from {site_origin} failed: {e}")
        raise ToolError(str(e))

    return json.dumps(responses, indent=2)


@mcp.tool()
def get_permission_offers() -> str:
    """
    List the permission types this server can grant.

    Returns:
        JSON list of offers with type, proposedName and id
    """
    return json.dumps(permission_handler_factory.permission_offers(), indent=2)


# ============================================================================
# HOST TOOLS (dialog rendering and grantor input)
# ============================================================================

def _get_hosted(interface_id: str):
    hosted = dialog_host.get(interface_id)
    if hosted is None:
        raise ToolError(f"Confirmation '{interface_id}' not found")
    return hosted


@mcp.tool()
def get_confirmation(interface_id: str) -> str:
    """
    Get the current UI of a confirmation dialog.

    Args:
        interface_id: Confirmation interface id

    Returns:
        JSON object with the UI tree and close state
    """
    return json.dumps(_get_hosted(interface_id).to_dict(), indent=2)


@mcp.tool()
def list_confirmations(include_closed: bool = False) -> str:
    """
    List confirmation dialogs.

    Args:
        include_closed: Include dialogs that already have a decision

    Returns:
        JSON list of interface ids with their close state
    """
    return json.dumps(
        [
            {"interface_id": hosted.interface_id, "closed": hosted.closed}
            for hosted in dialog_host.list_interfaces(include_closed=include_closed)
        ],
        indent=2,
    )


@mcp.tool()
async def submit_user_input(interface_id: str, event: Dict[str, Any]) -> str:
    """
    Report grantor input on a confirmation dialog.

    Args:
        interface_id: Confirmation interface id
        event: {"type": "ButtonClickEvent" | "InputChangeEvent" | "FormSubmitEvent",
                "name": element name, "value": optional new value}

    Returns:
        Confirmation message
    """
    hosted = _get_hosted(interface_id)
    if hosted.closed:
        raise ToolError(f"Confirmation '{interface_id}' is already closed")

    try:
        await on_user_input(event, interface_id)
    except ValueError as e:
        raise ToolError(str(e))

    return f"Input '{event.get('name')}' delivered to confirmation {interface_id}"


@mcp.tool()
async def dismiss_confirmation(interface_id: str) -> str:
    """
    Close a confirmation dialog without a decision; the request is rejected.

    Args:
        interface_id: Confirmation interface id

    Returns:
        Confirmation message
    """
    hosted = _get_hosted(interface_id)
    if hosted.closed:
        return f"Confirmation {interface_id} is already closed"

    await dialog_host.dismiss(interface_id)
    return f"Confirmation {interface_id} dismissed"


def main():
    """
    Main entry point for the grant server.

    Configures:
    - Loguru for structured logging
    - HTTP/SSE transport
    """
    logger.remove()  # Remove default handler

    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> | <level>{message}</level>",
        level="INFO",
    )

    logger.add(
        Config.LOG_FILE,
        rotation="10 MB",
        retention="7 days",
        compression="zip",
        level="DEBUG",
    )

    try:
        Config.validate()
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)

    logger.info(f"Starting {SERVER_NAME}...")

    try:
        mcp.run(transport="sse", host=HOST, port=PORT)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Server error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
