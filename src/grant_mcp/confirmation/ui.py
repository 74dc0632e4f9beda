"""Plain-dict UI element builders.

Confirmation UIs are trees of JSON-serializable dicts, each with a
``type`` and optional ``children``. Hosts render them however they like.
"""

from typing import Any, Dict, Iterator, List, Optional

UiElement = Dict[str, Any]


def box(*children: Optional[UiElement], direction: str = "vertical") -> UiElement:
    """Group children; None children are dropped."""
    return {
        "type": "Box",
        "direction": direction,
        "children": [child for child in children if child is not None],
    }


def section(*children: Optional[UiElement]) -> UiElement:
    return {"type": "Section", "children": [child for child in children if child is not None]}


def heading(text_value: str) -> UiElement:
    return {"type": "Heading", "text": text_value}


def text(value: str, muted: bool = False) -> UiElement:
    element: UiElement = {"type": "Text", "text": value}
    if muted:
        element["muted"] = True
    return element


def skeleton(name: Optional[str] = None) -> UiElement:
    """Loading placeholder for content that is not resolved yet."""
    element: UiElement = {"type": "Skeleton"}
    if name:
        element["name"] = name
    return element


def button(name: str, label: str, disabled: bool = False, variant: str = "primary") -> UiElement:
    return {
        "type": "Button",
        "name": name,
        "label": label,
        "disabled": disabled,
        "variant": variant,
    }


def input_field(
    name: str,
    label: str,
    value: Any,
    field_type: str = "text",
    disabled: bool = False,
    error: Optional[str] = None,
    tooltip: Optional[str] = None,
    options: Optional[List[str]] = None,
) -> UiElement:
    """
    Editable field bound to an element name.

    Edits to the field arrive as INPUT_CHANGE events carrying ``name``.
    """
    element: UiElement = {
        "type": "Field",
        "fieldType": field_type,
        "name": name,
        "label": label,
        "value": value,
        "disabled": disabled,
    }
    if error:
        element["error"] = error
    if tooltip:
        element["tooltip"] = tooltip
    if options is not None:
        element["options"] = list(options)
    return element


def container(body: UiElement, footer_element: Optional[UiElement] = None) -> UiElement:
    return {
        "type": "Container",
        "children": [child for child in (body, footer_element) if child is not None],
    }


def footer(*buttons: UiElement) -> UiElement:
    return {"type": "Footer", "children": list(buttons)}


def iter_elements(element: Optional[UiElement]) -> Iterator[UiElement]:
    """Depth-first walk over an element tree."""
    if not element:
        return
    yield element
    for child in element.get("children", []):
        yield from iter_elements(child)


def find_element(element: Optional[UiElement], name: str) -> Optional[UiElement]:
    """Find the first element with the given name."""
    for candidate in iter_elements(element):
        if candidate.get("name") == name:
            return candidate
    return None


def contains_skeleton(element: Optional[UiElement]) -> bool:
    return any(candidate.get("type") == "Skeleton" for candidate in iter_elements(element))
