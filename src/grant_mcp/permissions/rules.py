"""Editable rule fields shared by permission types.

A RuleDefinition ties one editable field of the confirmation to the
context: how to read its value and error, how to render it, and how an
edit produces a new context.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..confirmation import ui as ui_builder
from ..confirmation.ui import UiElement
from ..errors import AdjustmentNotAllowedError

FIELD_TYPES = ("number", "text", "datetime", "dropdown")


@dataclass(frozen=True)
class RuleDefinition:
    """
    One editable field.

    Attributes:
        name: Element name; edits arrive as INPUT_CHANGE events for it
        label: Field label
        field_type: One of FIELD_TYPES
        get_value: context -> displayed value
        update_context: (context, value) -> new context
        get_error: metadata -> error message or None
        tooltip: Optional help text
        options: Choices for dropdown fields
    """

    name: str
    label: str
    field_type: str
    get_value: Callable[[Any], Any]
    update_context: Callable[[Any, Any], Any]
    get_error: Callable[[Any], Optional[str]] = lambda metadata: None
    tooltip: Optional[str] = None
    options: Optional[Sequence[str]] = None

    def __post_init__(self):
        if self.field_type not in FIELD_TYPES:
            raise ValueError(f"Unknown rule type: {self.field_type}")
        if self.field_type == "dropdown" and not self.options:
            raise ValueError("Dropdown rule must have options")


def render_rule(rule: RuleDefinition, context: Any, metadata: Any) -> UiElement:
    return ui_builder.input_field(
        name=rule.name,
        label=rule.label,
        value=rule.get_value(context),
        field_type=rule.field_type,
        disabled=not getattr(context, "is_adjustment_allowed", True),
        error=rule.get_error(metadata),
        tooltip=rule.tooltip,
        options=list(rule.options) if rule.options else None,
    )


def render_rules(rules: Sequence[RuleDefinition], context: Any, metadata: Any) -> List[UiElement]:
    return [render_rule(rule, context, metadata) for rule in rules]


def rules_by_name(rules: Sequence[RuleDefinition]) -> Dict[str, RuleDefinition]:
    return {rule.name: rule for rule in rules}


def apply_rule_edit(rules: Sequence[RuleDefinition], context: Any, element_name: str, value: Any) -> Any:
    """
    Apply an edit of one rule field to an explicit context.

    Args:
        rules: Rule definitions of the permission type
        context: Context the edit applies to
        element_name: Edited element
        value: New field value

    Returns:
        New context

    Raises:
        AdjustmentNotAllowedError: If the context disallows adjustment
        KeyError: If no rule has that element name
    """
    if not getattr(context, "is_adjustment_allowed", True):
        raise AdjustmentNotAllowedError()
    rule = rules_by_name(rules).get(element_name)
    if rule is None:
        raise KeyError(f"No editable rule named '{element_name}'")
    return rule.update_context(context, value)
