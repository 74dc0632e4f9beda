"""Host UI primitives consumed by confirmation dialogs.

A host owns the actual dialog surface (a wallet popup, an MCP client, a
test double). Dialogs only talk to it through DialogHost.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger

from .ui import UiElement


class DialogHost(ABC):
    """Abstract dialog surface.

    All methods are async so hosts may involve network round trips or
    GUI interaction. Failures are treated as fatal by callers.
    """

    @abstractmethod
    async def create_interface(self, ui: UiElement) -> str:
        """Create a dialog showing ui.

        Returns:
            Opaque interface identifier
        """
        pass

    @abstractmethod
    async def update_interface(self, interface_id: str, ui: UiElement) -> None:
        """Replace the content of an existing dialog."""
        pass

    @abstractmethod
    async def show_dialog(self, interface_id: str) -> Optional[Any]:
        """Display the dialog and block until it closes.

        Returns:
            The value the dialog was resolved with, or None if the user
            dismissed it without pressing grant or cancel
        """
        pass

    @abstractmethod
    async def resolve_interface(self, interface_id: str, value: Any) -> None:
        """Close the dialog, handing value to whoever waits in show_dialog()."""
        pass


@dataclass
class HostedInterface:
    """State of one dialog held by InMemoryDialogHost."""

    interface_id: str
    ui: UiElement
    history: List[UiElement] = field(default_factory=list)
    closed: bool = False
    result: Any = None
    _closed_event: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "interface_id": self.interface_id,
            "ui": self.ui,
            "closed": self.closed,
            "result": self.result,
            "updates": len(self.history),
        }


class InMemoryDialogHost(DialogHost):
    """
    Dialog host that keeps interfaces in memory.

    Used by the MCP server, where the client renders dialogs it fetches
    with get_confirmation and reports input through submit_user_input,
    and by tests, which inspect the render history.
    """

    def __init__(self):
        self._interfaces: Dict[str, HostedInterface] = {}

    def _get(self, interface_id: str) -> HostedInterface:
        hosted = self._interfaces.get(interface_id)
        if hosted is None:
            raise KeyError(f"Unknown interface: {interface_id}")
        return hosted

    async def create_interface(self, ui: UiElement) -> str:
        interface_id = uuid.uuid4().hex
        self._interfaces[interface_id] = HostedInterface(
            interface_id=interface_id, ui=ui, history=[ui]
        )
        logger.debug(f"Created interface {interface_id}")
        return interface_id

    async def update_interface(self, interface_id: str, ui: UiElement) -> None:
        hosted = self._get(interface_id)
        if hosted.closed:
            logger.debug(f"Ignoring update for closed interface {interface_id}")
            return
        hosted.ui = ui
        hosted.history.append(ui)

    async def show_dialog(self, interface_id: str) -> Optional[Any]:
        hosted = self._get(interface_id)
        await hosted._closed_event.wait()
        return hosted.result

    async def resolve_interface(self, interface_id: str, value: Any) -> None:
        hosted = self._get(interface_id)
        if hosted.closed:
            return
        hosted.closed = True
        hosted.result = value
        hosted._closed_event.set()
        logger.debug(f"Resolved interface {interface_id} with {value!r}")

    async def dismiss(self, interface_id: str) -> None:
        """Close a dialog the way a user closing the window would."""
        await self.resolve_interface(interface_id, None)

    def get(self, interface_id: str) -> Optional[HostedInterface]:
        return self._interfaces.get(interface_id)

    def history(self, interface_id: str) -> List[UiElement]:
        """Every UI shown for an interface, oldest first."""
        return list(self._get(interface_id).history)

    def list_interfaces(self, include_closed: bool = False) -> List[HostedInterface]:
        return [
            hosted
            for hosted in self._interfaces.values()
            if include_closed or not hosted.closed
        ]

    def forget(self, interface_id: str) -> None:
        """Drop a closed interface."""
        hosted = self._interfaces.get(interface_id)
        if hosted is not None and hosted.closed:
            del self._interfaces[interface_id]
