"""Permission types, shared rule binding and the per-request handler glue."""

from .handler import (
    PERMISSION_OFFERS,
    PermissionHandler,
    PermissionHandlerFactory,
    extract_permission_type,
    offer_id,
)
from .rules import RuleDefinition, apply_rule_edit, render_rule, render_rules

__all__ = [
    "PERMISSION_OFFERS",
    "PermissionHandler",
    "PermissionHandlerFactory",
    "RuleDefinition",
    "apply_rule_edit",
    "extract_permission_type",
    "offer_id",
    "render_rule",
    "render_rules",
]
