"""Pytest fixtures and test utilities for the grant server test suite."""

from typing import Any, Dict, List

import pytest
from loguru import logger

from src.grant_mcp.accounts import AccountController
from src.grant_mcp.audit import AuditLogger
from src.grant_mcp.chain_metadata import ChainMetadataRegistry
from src.grant_mcp.confirmation import ConfirmationDialogFactory, InMemoryDialogHost
from src.grant_mcp.dispatch import UserEventDispatcher
from src.grant_mcp.lifecycle.orchestrator import PermissionRequestLifecycleOrchestrator
from src.grant_mcp.permissions.native_token_stream import NativeTokenStreamHandlers

GRANTOR_ADDRESS = "0x1111111111111111111111111111111111111111"
TEST_SIGNING_SECRET = "test_signing_secret_that_is_at_least_32_chars"
TEST_DEBOUNCE_SECONDS = 0.05


# ============================================================================
# DISPATCH AND HOST FIXTURES
# ============================================================================


@pytest.fixture
def dispatcher():
    """
    Provide a dispatcher with a short debounce window.

    Cleanup:
        Cancels debounce timers left behind by the test
    """
    event_dispatcher = UserEventDispatcher(debounce_delay=TEST_DEBOUNCE_SECONDS)
    yield event_dispatcher
    event_dispatcher.clear_debounce_timers()


@pytest.fixture
def host():
    """In-memory dialog host whose render history tests can inspect."""
    return InMemoryDialogHost()


@pytest.fixture
def dialog_factory(host, dispatcher):
    return ConfirmationDialogFactory(host=host, dispatcher=dispatcher)


# ============================================================================
# ACCOUNT AND CHAIN FIXTURES
# ============================================================================


@pytest.fixture
def account_controller():
    """Grantor account with a fixed address and test signing secret."""
    return AccountController(
        address=GRANTOR_ADDRESS,
        signing_secret=TEST_SIGNING_SECRET,
    )


@pytest.fixture
def chain_registry():
    """Registry serving Mainnet and Sepolia from the built-in table."""
    return ChainMetadataRegistry(supported_chain_ids=[1, 11155111], config_path="")


@pytest.fixture
def native_token_stream_handlers(account_controller, chain_registry):
    return NativeTokenStreamHandlers(account_controller, chain_registry)


# ============================================================================
# AUDIT LOG FIXTURES
# ============================================================================


@pytest.fixture
def audit_log_path(tmp_path):
    """
    Provide temporary audit log file for test isolation.

    Returns:
        Path to temporary audit.jsonl file
    """
    return tmp_path / "audit.jsonl"


@pytest.fixture
def audit(audit_log_path):
    return AuditLogger(log_path=str(audit_log_path))


# ============================================================================
# ORCHESTRATOR FIXTURES
# ============================================================================


@pytest.fixture
def orchestrator(account_controller, dialog_factory, chain_registry, audit):
    return PermissionRequestLifecycleOrchestrator(
        account_controller=account_controller,
        dialog_factory=dialog_factory,
        chain_registry=chain_registry,
        audit=audit,
    )


# ============================================================================
# LOG CAPTURE FIXTURES
# ============================================================================


@pytest.fixture
def log_messages():
    """
    Capture loguru messages emitted during the test.

    Returns:
        List that fills with (level name, message) tuples
    """
    messages: List[Dict[str, Any]] = []
    handler_id = logger.add(
        lambda message: messages.append(
            (message.record["level"].name, message.record["message"])
        ),
        level="DEBUG",
    )
    yield messages
    logger.remove(handler_id)
