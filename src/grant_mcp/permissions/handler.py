"""
Permission handlers: bind one raw request to its type's lifecycle hooks.

PermissionHandlerFactory picks the hooks for a request's permission type;
PermissionHandler runs the request through the orchestrator exactly once.
"""

import hashlib
import json
from typing import Any, Callable, Dict, List

from loguru import logger

from ..accounts import AccountController
from ..chain_metadata import ChainMetadataRegistry
from ..errors import InvalidRequestError
from ..lifecycle.handlers import LifecycleOrchestrationHandlers
from ..lifecycle.models import PermissionRequestResult
from ..lifecycle.orchestrator import PermissionRequestLifecycleOrchestrator
from .native_token_stream import NATIVE_TOKEN_STREAM, NativeTokenStreamHandlers

# Permission types offered to requesting sites
PERMISSION_OFFERS: List[Dict[str, str]] = [
    {"type": NATIVE_TOKEN_STREAM, "proposedName": "Native Token Stream"},
]


def offer_id(offer: Dict[str, str]) -> str:
    """Stable id for an offer: SHA-256 of its canonical JSON."""
    canonical = json.dumps(offer, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def extract_permission_type(raw_request: Any) -> str:
    """
    Read the permission type name from a raw request.

    Raises:
        InvalidRequestError: If the request has no permission type
    """
    if not isinstance(raw_request, dict) or not isinstance(raw_request.get("permission"), dict):
        raise InvalidRequestError("Invalid permission request: permission is required")

    permission_type = raw_request["permission"].get("type")
    if isinstance(permission_type, dict):
        permission_type = permission_type.get("name")
    if not isinstance(permission_type, str) or not permission_type:
        raise InvalidRequestError("Invalid permission request: permission type is required")
    return permission_type


class PermissionHandler:
    """Runs a single permission request through the lifecycle. Single use."""

    def __init__(
        self,
        raw_request: Any,
        handlers: LifecycleOrchestrationHandlers,
        orchestrator: PermissionRequestLifecycleOrchestrator,
    ):
        self._raw_request = raw_request
        self._handlers = handlers
        self._orchestrator = orchestrator
        self._handled = False

    @property
    def handlers(self) -> LifecycleOrchestrationHandlers:
        return self._handlers

    async def handle_permission_request(self, origin: str) -> PermissionRequestResult:
        """
        Orchestrate the request on behalf of a site.

        Raises:
            InvalidRequestError: If this handler already handled its request
        """
        if self._handled:
            raise InvalidRequestError("Permission request already handled")
        self._handled = True

        return await self._orchestrator.orchestrate(origin, self._raw_request, self._handlers)


HandlersBuilder = Callable[[AccountController, ChainMetadataRegistry], LifecycleOrchestrationHandlers]


class PermissionHandlerFactory:
    """Creates a PermissionHandler with the hooks matching the request's type."""

    def __init__(
        self,
        orchestrator: PermissionRequestLifecycleOrchestrator,
        account_controller: AccountController,
        chain_registry: ChainMetadataRegistry,
    ):
        self._orchestrator = orchestrator
        self._accounts = account_controller
        self._chains = chain_registry
        self._builders: Dict[str, HandlersBuilder] = {
            NATIVE_TOKEN_STREAM: NativeTokenStreamHandlers,
        }

    def supported_types(self) -> List[str]:
        return sorted(self._builders)

    def create_permission_handler(self, raw_request: Any) -> PermissionHandler:
        """
        Raises:
            InvalidRequestError: If the permission type is missing or unsupported
        """
        permission_type = extract_permission_type(raw_request)
        builder = self._builders.get(permission_type)
        if builder is None:
            raise InvalidRequestError(f"Unsupported permission type: {permission_type}")

        logger.debug(f"Creating {permission_type} permission handler")
        return PermissionHandler(
            raw_request=raw_request,
            handlers=builder(self._accounts, self._chains),
            orchestrator=self._orchestrator,
        )

    def permission_offers(self) -> List[Dict[str, str]]:
        return [
            {**offer, "id": offer_id(offer)}
            for offer in PERMISSION_OFFERS
            if offer["type"] in self._builders
        ]
