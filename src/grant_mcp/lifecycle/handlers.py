"""Collaborator interface the lifecycle orchestrator drives.

A permission type supplies one LifecycleOrchestrationHandlers
implementation. The orchestrator stays agnostic of the context,
metadata and permission data shapes; it only threads them between
these hooks.
"""

from abc import ABC, abstractmethod
from typing import Any, Sequence

from ..confirmation import ui as ui_builder
from ..confirmation.dialog import DialogUiState
from ..confirmation.ui import UiElement
from .models import Permission, PermissionRequest
from .restrictions import RestrictionBuilder


class LifecycleOrchestrationHandlers(ABC):
    """Per-permission-type hooks for PermissionRequestLifecycleOrchestrator.

    Contract summary:
    - validate_request is pure and raises on malformed input
    - build_context may do I/O but encodes recoverable issues in the context
    - derive_metadata and create_confirmation_content are pure
    - apply_edit returns a new context and never mutates the old one
    """

    #: Element names whose INPUT_CHANGE events edit the context.
    editable_elements: Sequence[str] = ()

    @abstractmethod
    def validate_request(self, raw_request: Any) -> PermissionRequest:
        """Parse and validate a raw request.

        Raises:
            InvalidRequestError: If the request is malformed or out of bounds
        """
        pass

    @abstractmethod
    async def build_context(self, request: PermissionRequest) -> Any:
        """Project a validated request into a display context."""
        pass

    @abstractmethod
    async def derive_metadata(self, context: Any) -> Any:
        """Validation output and derived display values for a context."""
        pass

    @abstractmethod
    def create_confirmation_content(
        self, context: Any, metadata: Any, ui_state: DialogUiState
    ) -> UiElement:
        """Render the full confirmation body."""
        pass

    def create_skeleton_confirmation_content(self) -> UiElement:
        """Render the placeholder shown while the context resolves."""
        return ui_builder.box(
            ui_builder.heading("Permission request"),
            ui_builder.skeleton("permission-details"),
            ui_builder.skeleton("account-details"),
        )

    @abstractmethod
    def apply_edit(self, context: Any, element_name: str, value: Any) -> Any:
        """Return a new context with one field edited.

        Raises:
            AdjustmentNotAllowedError: If the context disallows adjustment
        """
        pass

    @abstractmethod
    async def apply_context(self, context: Any, original_request: PermissionRequest) -> PermissionRequest:
        """Convert the final edited context back into a request."""
        pass

    @abstractmethod
    async def populate_permission(self, permission: Permission) -> Permission:
        """Fill defaults for every optional field. Must be idempotent."""
        pass

    @abstractmethod
    async def append_restrictions(
        self, permission: Permission, builder: RestrictionBuilder
    ) -> RestrictionBuilder:
        """Append the type-specific restrictions for a populated permission."""
        pass

    def has_validation_errors(self, metadata: Any) -> bool:
        """Whether metadata carries field errors that must block a grant."""
        errors = getattr(metadata, "validation_errors", None)
        return bool(errors)
