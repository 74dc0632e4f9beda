"""User event dispatch: handler registry, per-session serialization and debouncing."""

from .dispatcher import HandlerRegistration, UserEventDispatcher, UserEventHandler
from .events import EventKey, UserInputEvent, UserInputEventType
from .scheduling import ScheduledTask, TimeoutFactory

__all__ = [
    "EventKey",
    "HandlerRegistration",
    "ScheduledTask",
    "TimeoutFactory",
    "UserEventDispatcher",
    "UserEventHandler",
    "UserInputEvent",
    "UserInputEventType",
]
