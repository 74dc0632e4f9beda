"""Confirmation dialog: one UI session and its single terminal decision."""

import asyncio
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, List, Optional

from loguru import logger

from ..dispatch import (
    HandlerRegistration,
    ScheduledTask,
    TimeoutFactory,
    UserEventDispatcher,
    UserInputEvent,
    UserInputEventType,
)
from ..errors import ConfirmationClosedError, SessionNotCreatedError
from . import ui as ui_builder
from .host import DialogHost
from .ui import UiElement

GRANT_BUTTON = "grant-button"
CANCEL_BUTTON = "cancel-button"
SHOW_MORE_BUTTON = "show-more-justification"

DENIED_REASON = "Permission request denied"
TIMEOUT_REASON = "Permission request timed out"

BeforeGrantCallback = Callable[[], Awaitable[bool]]
ContentRenderer = Callable[["DialogUiState"], UiElement]


@dataclass(frozen=True)
class DialogUiState:
    """Cosmetic, dialog-local display state. Never part of the business context."""

    is_justification_collapsed: bool = True

    def toggled(self) -> "DialogUiState":
        return replace(self, is_justification_collapsed=not self.is_justification_collapsed)


@dataclass(frozen=True)
class ConfirmationDecision:
    """Terminal outcome of a confirmation dialog."""

    is_confirmation_granted: bool
    reason: Optional[str] = None

    @classmethod
    def granted(cls) -> "ConfirmationDecision":
        return cls(is_confirmation_granted=True)

    @classmethod
    def rejected(cls, reason: str = DENIED_REASON) -> "ConfirmationDecision":
        return cls(is_confirmation_granted=False, reason=reason)


async def _always_grantable() -> bool:
    return True


class ConfirmationDialog:
    """
    Owns one confirmation UI session.

    The dialog wraps caller-supplied content with a footer holding the
    Cancel and Grant buttons. await_decision() binds the button handlers,
    shows the dialog and returns exactly one ConfirmationDecision. Pressing
    grant or cancel closes the host interface as part of producing that
    decision, so callers never close it themselves.
    """

    def __init__(
        self,
        ui: UiElement,
        is_grant_disabled: bool,
        host: DialogHost,
        dispatcher: UserEventDispatcher,
        on_before_grant: Optional[BeforeGrantCallback] = None,
        timeout_factory: Optional[TimeoutFactory] = None,
    ):
        self._ui = ui
        self._is_grant_disabled = is_grant_disabled
        self._host = host
        self._dispatcher = dispatcher
        self.on_before_grant: BeforeGrantCallback = on_before_grant or _always_grantable
        self._timeout_factory = timeout_factory

        self.ui_state = DialogUiState()
        self.content_renderer: Optional[ContentRenderer] = None

        self._interface_id: Optional[str] = None
        self._create_lock = asyncio.Lock()
        self._decision: Optional[asyncio.Future] = None
        self._registrations: List[HandlerRegistration] = []
        self._host_task: Optional[asyncio.Task] = None
        self._timeout: Optional[ScheduledTask] = None
        self._closed = False

    @property
    def interface_id(self) -> Optional[str]:
        return self._interface_id

    @property
    def is_grant_disabled(self) -> bool:
        return self._is_grant_disabled

    @property
    def is_resolved(self) -> bool:
        """True once the dialog is closed or its decision is settled."""
        return self._closed or (self._decision is not None and self._decision.done())

    def _build_confirmation(self) -> UiElement:
        return ui_builder.container(
            self._ui,
            ui_builder.footer(
                ui_builder.button(CANCEL_BUTTON, "Cancel", variant="destructive"),
                ui_builder.button(GRANT_BUTTON, "Grant", disabled=self._is_grant_disabled),
            ),
        )

    async def create_interface(self) -> str:
        """Create the host interface. Calling again returns the same identifier."""
        async with self._create_lock:
            if self._interface_id is None:
                self._interface_id = await self._host.create_interface(self._build_confirmation())
                logger.info(f"Created confirmation interface {self._interface_id}")
            return self._interface_id

    async def update_content(self, ui: UiElement, is_grant_disabled: bool) -> None:
        """
        Replace the displayed content.

        Raises:
            SessionNotCreatedError: If create_interface() has not been called
        """
        if self._interface_id is None:
            raise SessionNotCreatedError()

        self._ui = ui
        self._is_grant_disabled = is_grant_disabled

        if self._closed:
            logger.debug(f"Skipping update for closed interface {self._interface_id}")
            return

        await self._host.update_interface(self._interface_id, self._build_confirmation())

    async def await_decision(self) -> ConfirmationDecision:
        """
        Show the dialog and wait for the grantor's decision.

        Returns:
            The decision; repeated calls return the same decision

        Raises:
            SessionNotCreatedError: If create_interface() has not been called
            ConfirmationClosedError: If close_with_error() closed the dialog first
        """
        if self._interface_id is None:
            raise SessionNotCreatedError()

        if self._decision is not None:
            return await asyncio.shield(self._decision)
        if self._closed:
            raise ConfirmationClosedError(f"Confirmation {self._interface_id} is already closed")

        interface_id = self._interface_id
        self._decision = asyncio.get_running_loop().create_future()

        self._bind(GRANT_BUTTON, self._on_grant)
        self._bind(CANCEL_BUTTON, self._on_cancel)
        self._bind(SHOW_MORE_BUTTON, self._on_toggle_justification)

        self._host_task = asyncio.ensure_future(self._watch_host(interface_id))
        if self._timeout_factory is not None:
            self._timeout = self._timeout_factory.register(self._on_timeout)

        try:
            return await asyncio.shield(self._decision)
        finally:
            self._teardown()

    async def close_with_error(self, reason: str) -> None:
        """
        Close the dialog and fail the pending decision. Safe to call more than once.

        Args:
            reason: Error message for the ConfirmationClosedError
        """
        if self._closed:
            return
        logger.warning(f"Closing confirmation {self._interface_id} with error: {reason}")
        self._unbind_all()
        await self._close_interface(False)
        if self._decision is not None and not self._decision.done():
            self._decision.set_exception(ConfirmationClosedError(reason))

    # ========================================================================
    # Handlers
    # ========================================================================

    def _bind(self, element_name: str, handler) -> None:
        self._registrations.append(
            self._dispatcher.on(
                element_name,
                UserInputEventType.BUTTON_CLICK,
                self._interface_id,
                handler,
            )
        )

    async def _on_grant(self, event: UserInputEvent, interface_id: str) -> None:
        if self.is_resolved:
            return
        if self._is_grant_disabled:
            logger.info(f"Ignoring grant on interface {interface_id}: grant is disabled")
            return
        if not await self.on_before_grant():
            logger.info(f"Grant on interface {interface_id} blocked by validation")
            return
        await self._settle(ConfirmationDecision.granted(), True)

    async def _on_cancel(self, event: UserInputEvent, interface_id: str) -> None:
        if self.is_resolved:
            return
        await self._settle(ConfirmationDecision.rejected(), False)

    async def _on_toggle_justification(self, event: UserInputEvent, interface_id: str) -> None:
        self.ui_state = self.ui_state.toggled()
        if self.content_renderer is None or self.is_resolved:
            return
        await self.update_content(self.content_renderer(self.ui_state), self._is_grant_disabled)

    async def _on_timeout(self) -> None:
        if self.is_resolved:
            return
        logger.info(f"Confirmation {self._interface_id} timed out")
        await self._settle(ConfirmationDecision.rejected(TIMEOUT_REASON), False)

    async def _watch_host(self, interface_id: str) -> None:
        try:
            result = await self._host.show_dialog(interface_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self._decision is not None and not self._decision.done():
                self._decision.set_exception(e)
            return

        if result is None and not self.is_resolved:
            logger.info(f"Confirmation {interface_id} dismissed by host")
            self._closed = True
            self._unbind_all()
            if not self._decision.done():
                self._decision.set_result(ConfirmationDecision.rejected())

    # ========================================================================
    # Cleanup
    # ========================================================================

    async def _settle(self, decision: ConfirmationDecision, host_value: Any) -> None:
        self._unbind_all()
        try:
            await self._close_interface(host_value)
        except Exception as e:
            if not self._decision.done():
                self._decision.set_exception(e)
            raise
        if not self._decision.done():
            self._decision.set_result(decision)

    async def _close_interface(self, value: Any) -> None:
        if self._closed or self._interface_id is None:
            self._closed = True
            return
        self._closed = True
        await self._host.resolve_interface(self._interface_id, value)

    def _unbind_all(self) -> None:
        for registration in self._registrations:
            registration.unbind()
        self._registrations.clear()

    def _teardown(self) -> None:
        self._unbind_all()
        if self._timeout is not None:
            self._timeout.cancel()
            self._timeout = None
        if self._host_task is not None and not self._host_task.done():
            self._host_task.cancel()


class ConfirmationDialogFactory:
    """Creates dialogs bound to one host, dispatcher and timeout policy."""

    def __init__(
        self,
        host: DialogHost,
        dispatcher: UserEventDispatcher,
        timeout_factory: Optional[TimeoutFactory] = None,
    ):
        self.host = host
        self.dispatcher = dispatcher
        self.timeout_factory = timeout_factory

    def create_confirmation(
        self,
        ui: UiElement,
        is_grant_disabled: bool,
        on_before_grant: Optional[BeforeGrantCallback] = None,
    ) -> ConfirmationDialog:
        return ConfirmationDialog(
            ui=ui,
            is_grant_disabled=is_grant_disabled,
            host=self.host,
            dispatcher=self.dispatcher,
            on_before_grant=on_before_grant,
            timeout_factory=self.timeout_factory,
        )
