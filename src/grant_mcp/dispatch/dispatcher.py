"""User event dispatcher shared by all confirmation sessions."""

import asyncio
import inspect
import weakref
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Set, Union

from loguru import logger

from ..config import Config
from ..errors import IngressAlreadyCreatedError
from .events import EventKey, UserInputEvent, UserInputEventType
from .scheduling import ScheduledTask

UserEventHandler = Callable[[UserInputEvent, str], Union[Awaitable[None], None]]
UserInputIngress = Callable[[Union[UserInputEvent, Dict[str, Any]], str], Awaitable[None]]


class HandlerRegistration:
    """Token returned by UserEventDispatcher.on(); unbind() removes the handler."""

    def __init__(self, dispatcher: "UserEventDispatcher", key: EventKey, handler: UserEventHandler):
        self._dispatcher = dispatcher
        self.key = key
        self.handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unbind(self) -> None:
        """Remove the handler. Safe to call more than once."""
        if not self._active:
            return
        self._active = False
        self._dispatcher._remove(self)


class UserEventDispatcher:
    """
    Routes host input events to handlers keyed by (element, event type, interface).

    Execution model:
    - Handlers for one interface run strictly one after another, under a
      per-interface lock. Different interfaces never contend.
    - INPUT_CHANGE events are debounced per key: a newer event cancels the
      pending one and restarts the quiet window, so only the last value runs.
    - Any other event first flushes pending debounced edits for the same
      interface, then runs immediately.
    - A failing handler is logged and never stops sibling handlers or the
      dispatch call itself.
    """

    def __init__(self, debounce_delay: Optional[float] = None):
        """
        Initialize the dispatcher.

        Args:
            debounce_delay: Quiet window in seconds (defaults to Config.DEBOUNCE_DELAY_MS)
        """
        if debounce_delay is None:
            debounce_delay = Config.debounce_delay_seconds()
        self.debounce_delay = debounce_delay
        self._handlers: Dict[EventKey, List[HandlerRegistration]] = {}
        self._debounce_timers: Dict[EventKey, ScheduledTask] = {}
        # a lock lives as long as a handler holds or waits on it
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        self._in_flight: Set[asyncio.Task] = set()
        self._ingress_created = False

    # ========================================================================
    # Registration
    # ========================================================================

    def on(
        self,
        element_name: str,
        event_type: UserInputEventType,
        interface_id: str,
        handler: UserEventHandler,
    ) -> HandlerRegistration:
        """
        Register a handler. Handlers sharing a key run in registration order.

        Args:
            element_name: Name of the UI element
            event_type: Event kind to listen for
            interface_id: Session the handler belongs to
            handler: Callable taking (event, interface_id), sync or async

        Returns:
            Registration token; call unbind() to remove the handler
        """
        key = EventKey(element_name=element_name, event_type=event_type, interface_id=interface_id)
        registration = HandlerRegistration(self, key, handler)
        self._handlers.setdefault(key, []).append(registration)
        logger.debug(f"Bound handler for {key}")
        return registration

    def off(
        self,
        element_name: str,
        event_type: UserInputEventType,
        interface_id: str,
        handler: UserEventHandler,
    ) -> None:
        """Remove the first registration of handler for the key. No-op if absent."""
        key = EventKey(element_name=element_name, event_type=event_type, interface_id=interface_id)
        for registration in self._handlers.get(key, []):
            if registration.handler is handler and registration.active:
                registration.unbind()
                return

    def _remove(self, registration: HandlerRegistration) -> None:
        registrations = self._handlers.get(registration.key)
        if not registrations:
            return
        try:
            registrations.remove(registration)
        except ValueError:
            return
        if not registrations:
            del self._handlers[registration.key]
        logger.debug(f"Unbound handler for {registration.key}")

    def handler_count(self, interface_id: Optional[str] = None) -> int:
        """Number of registered handlers, optionally for one interface."""
        return sum(
            len(registrations)
            for key, registrations in self._handlers.items()
            if interface_id is None or key.interface_id == interface_id
        )

    # ========================================================================
    # Dispatch
    # ========================================================================

    async def dispatch(self, event: UserInputEvent, interface_id: str) -> None:
        """
        Deliver an event to the handlers registered for its key.

        Debounced events return as soon as they are scheduled; use
        wait_for_pending_handlers() to wait for their execution.

        Args:
            event: Input event from the host
            interface_id: Session the event belongs to
        """
        key = EventKey.for_event(event, interface_id)

        if key not in self._handlers:
            logger.debug(f"No handlers for {key}, ignoring event")
            return

        if event.type.is_debounced:
            self._schedule_debounced(key, event)
            return

        await self._flush_pending(interface_id)

        task = self._track(asyncio.ensure_future(self._process(key, event)))
        await task

    def _schedule_debounced(self, key: EventKey, event: UserInputEvent) -> None:
        previous = self._debounce_timers.pop(key, None)
        if previous is not None and self._drop_timer(previous):
            logger.debug(f"Dropped superseded edit for {key}")

        timer: Optional[ScheduledTask] = None

        async def run_debounced() -> None:
            try:
                await self._process(key, event)
            finally:
                if self._debounce_timers.get(key) is timer:
                    del self._debounce_timers[key]

        timer = ScheduledTask(self.debounce_delay, run_debounced, name=f"debounce {key}")
        self._debounce_timers[key] = timer
        logger.debug(f"Scheduled debounced edit for {key} in {self.debounce_delay}s")

    async def _flush_pending(self, interface_id: str) -> None:
        """Run pending debounced edits for an interface right away."""
        keys = [key for key in self._debounce_timers if key.interface_id == interface_id]
        tasks = []
        for key in keys:
            timer = self._debounce_timers.pop(key)
            task = timer.fire_now()
            if task is not None:
                tasks.append(self._track(task))
        if tasks:
            logger.debug(f"Flushing {len(tasks)} pending edit(s) for interface {interface_id}")
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _process(self, key: EventKey, event: UserInputEvent) -> None:
        async with self._lock_for(key.interface_id):
            for registration in list(self._handlers.get(key, [])):
                if not registration.active:
                    continue
                try:
                    result = registration.handler(event, key.interface_id)
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    logger.error(
                        f"Error in {event.type.value} handler for element "
                        f"'{key.element_name}' on interface {key.interface_id}: {e}"
                    )

    def _lock_for(self, interface_id: str) -> asyncio.Lock:
        lock = self._locks.get(interface_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[interface_id] = lock
        return lock

    def _track(self, task: asyncio.Task) -> asyncio.Task:
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    def _drop_timer(self, timer: ScheduledTask) -> bool:
        """
        Cancel a debounce timer, keeping an already running handler drainable.

        Returns:
            True if the timer had not fired yet
        """
        if timer.cancel():
            return True
        running = timer.running_task
        if running is not None:
            self._track(running)
        return False

    @asynccontextmanager
    async def serialized(self, interface_id: str) -> AsyncIterator[None]:
        """
        Hold the interface's handler lock.

        Handlers for the interface that arrive meanwhile wait until the
        block exits, so work done inside never interleaves with them.
        """
        async with self._lock_for(interface_id):
            yield

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def wait_for_pending_handlers(self) -> None:
        """Wait until every pending debounce timer and in-flight dispatch is done."""
        while self._debounce_timers or self._in_flight:
            waiters = [timer.wait() for timer in list(self._debounce_timers.values())]
            waiters.extend(list(self._in_flight))
            await asyncio.gather(*waiters, return_exceptions=True)

    def clear_debounce_timers(self) -> None:
        """
        Cancel every pending debounced edit without running it.

        Edits whose handler already started keep running and are still
        awaited by wait_for_pending_handlers().
        """
        for timer in self._debounce_timers.values():
            self._drop_timer(timer)
        self._debounce_timers.clear()

    def release_session(self, interface_id: str) -> None:
        """Drop pending edits of a finished session. Running handlers stay drainable."""
        for key in [key for key in self._debounce_timers if key.interface_id == interface_id]:
            self._drop_timer(self._debounce_timers.pop(key))

        leftover = [key for key in self._handlers if key.interface_id == interface_id]
        if leftover:
            logger.warning(
                f"Session {interface_id} released with {len(leftover)} bound handler key(s)"
            )

    def create_user_input_event_handler(self) -> UserInputIngress:
        """
        Create the single entry point that feeds host input into this dispatcher.

        Returns:
            Async callable taking (event, interface_id); event may be a
            UserInputEvent or its dict wire form

        Raises:
            IngressAlreadyCreatedError: If the entry point was already created
        """
        if self._ingress_created:
            raise IngressAlreadyCreatedError()
        self._ingress_created = True

        async def on_user_input(
            event: Union[UserInputEvent, Dict[str, Any]], interface_id: str
        ) -> None:
            if isinstance(event, dict):
                event = UserInputEvent.from_dict(event)
            await self.dispatch(event, interface_id)

        return on_user_input
