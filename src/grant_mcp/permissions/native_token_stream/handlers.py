"""Lifecycle hooks for native token stream permissions."""

from typing import Any

from ...accounts import AccountController
from ...chain_metadata import ChainMetadataRegistry
from ...confirmation.dialog import DialogUiState
from ...confirmation.ui import UiElement
from ...lifecycle.handlers import LifecycleOrchestrationHandlers
from ...lifecycle.models import Permission, PermissionRequest
from ...lifecycle.restrictions import RestrictionBuilder
from ..rules import apply_rule_edit
from . import content
from .context import apply_context, build_context, derive_metadata, populate_permission
from .restrictions import append_restrictions
from .rules import ALL_RULES
from .types import NativeTokenStreamContext, NativeTokenStreamMetadata
from .validation import parse_and_validate_permission


class NativeTokenStreamHandlers(LifecycleOrchestrationHandlers):
    """Hooks for streaming native tokens at a fixed rate from a start time."""

    editable_elements = tuple(rule.name for rule in ALL_RULES)

    def __init__(self, account_controller: AccountController, chain_registry: ChainMetadataRegistry):
        self._accounts = account_controller
        self._chains = chain_registry

    def validate_request(self, raw_request: Any) -> PermissionRequest:
        return parse_and_validate_permission(raw_request)

    async def build_context(self, request: PermissionRequest) -> NativeTokenStreamContext:
        return await build_context(request, self._accounts, self._chains)

    async def derive_metadata(self, context: NativeTokenStreamContext) -> NativeTokenStreamMetadata:
        return await derive_metadata(context)

    def create_confirmation_content(
        self,
        context: NativeTokenStreamContext,
        metadata: NativeTokenStreamMetadata,
        ui_state: DialogUiState,
    ) -> UiElement:
        return content.create_confirmation_content(context, metadata, ui_state)

    def create_skeleton_confirmation_content(self) -> UiElement:
        return content.create_skeleton_confirmation_content()

    def apply_edit(self, context: NativeTokenStreamContext, element_name: str, value: Any) -> NativeTokenStreamContext:
        return apply_rule_edit(ALL_RULES, context, element_name, value)

    async def apply_context(self, context: NativeTokenStreamContext, original_request: PermissionRequest) -> PermissionRequest:
        return await apply_context(context, original_request)

    async def populate_permission(self, permission: Permission) -> Permission:
        return await populate_permission(permission)

    async def append_restrictions(self, permission: Permission, builder: RestrictionBuilder) -> RestrictionBuilder:
        return await append_restrictions(permission, builder)
