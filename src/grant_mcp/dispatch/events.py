"""User input event types routed through the dispatcher."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class UserInputEventType(str, Enum):
    """Kinds of host input notifications."""

    BUTTON_CLICK = "ButtonClickEvent"
    FORM_SUBMIT = "FormSubmitEvent"
    INPUT_CHANGE = "InputChangeEvent"

    @property
    def is_debounced(self) -> bool:
        """Field-value edits are debounced; presses and submits are not."""
        return self is UserInputEventType.INPUT_CHANGE


@dataclass(frozen=True)
class UserInputEvent:
    """
    A single input notification from the host.

    Attributes:
        type: Event kind
        name: Name of the element that produced the event
        value: New field value for INPUT_CHANGE, form values for FORM_SUBMIT
    """

    type: UserInputEventType
    name: str
    value: Any = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserInputEvent":
        """
        Build an event from its wire form.

        Raises:
            ValueError: If the event type is unknown or the element name is missing
        """
        try:
            event_type = UserInputEventType(data.get("type"))
        except ValueError:
            raise ValueError(f"Unknown user input event type: {data.get('type')!r}")

        name = data.get("name")
        if not name or not isinstance(name, str):
            raise ValueError("User input event requires an element name")

        return cls(type=event_type, name=name, value=data.get("value"))

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "name": self.name, "value": self.value}


@dataclass(frozen=True)
class EventKey:
    """Structured handler and debounce-table key."""

    element_name: str
    event_type: UserInputEventType
    interface_id: str

    @classmethod
    def for_event(cls, event: UserInputEvent, interface_id: str) -> "EventKey":
        return cls(element_name=event.name, event_type=event.type, interface_id=interface_id)

    def __str__(self) -> str:
        return f"{self.element_name}:{self.event_type.value}:{self.interface_id}"
