"""Grant MCP Server - attenuated permission grants behind a confirmation dialog."""

__version__ = "0.1.0"

from .lifecycle.models import PermissionRequest, PermissionRequestResult

__all__ = ["PermissionRequest", "PermissionRequestResult", "__version__"]
