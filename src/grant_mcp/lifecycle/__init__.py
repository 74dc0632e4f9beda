"""Permission request lifecycle: data model, collaborator hooks and restrictions.

The orchestrator lives in grant_mcp.lifecycle.orchestrator.
"""

from .handlers import LifecycleOrchestrationHandlers
from .models import Permission, PermissionRequest, PermissionRequestResult, Rule
from .restrictions import Restriction, RestrictionBuilder

__all__ = [
    "LifecycleOrchestrationHandlers",
    "Permission",
    "PermissionRequest",
    "PermissionRequestResult",
    "Restriction",
    "RestrictionBuilder",
    "Rule",
]
