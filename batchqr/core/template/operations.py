"""
Template Operations
===================

Pure editing operations over Template snapshots. Every operation returns a new
Template; the input is never modified. Index order is paint order, so
move_element is the only way to change which element is drawn on top.
"""

from typing import Any, Dict, Optional

from pydantic import ValidationError

from batchqr.config.logging import get_logger
from batchqr.core.errors import ElementNotFoundError
from batchqr.models.schemas import Element, ElementKind, Template

logger = get_logger(__name__)

DEFAULT_POSITION = (50, 50)

DEFAULT_SIZES = {
    ElementKind.QRCODE: (150, 150),
    ElementKind.IMAGE: (100, 100),
    ElementKind.TEXT: (200, 40),
}

DEFAULT_TEXT_CONTENT = "Sample text"

IMMUTABLE_FIELDS = {"id", "kind", "type"}
NULLABLE_FIELDS = {"column"}


def _display_kind(kind: ElementKind) -> str:
    return {
        ElementKind.TEXT: "Text",
        ElementKind.QRCODE: "QR Code",
        ElementKind.IMAGE: "Image",
    }[kind]


def new_element(template: Template, kind: ElementKind, element_id: Optional[str] = None) -> Element:
    """
    Build an element with default geometry and styling for its kind.

    The name counts existing elements of the same kind, so the first text
    element is "Text 1", the second "Text 2", and so on.
    """
    kind = ElementKind(kind)
    ordinal = sum(1 for element in template.elements if element.kind == kind) + 1
    width, height = DEFAULT_SIZES[kind]

    fields: Dict[str, Any] = {
        "name": f"{_display_kind(kind)} {ordinal}",
        "kind": kind,
        "x": DEFAULT_POSITION[0],
        "y": DEFAULT_POSITION[1],
        "width": width,
        "height": height,
    }
    if kind == ElementKind.TEXT:
        fields["content"] = DEFAULT_TEXT_CONTENT
    if element_id:
        fields["id"] = element_id

    return Element(**fields)


def add_element(template: Template, kind: ElementKind, element_id: Optional[str] = None) -> Template:
    """Append a new default element; it paints above every existing one."""
    element = new_element(template, kind, element_id)
    logger.debug("Element added", element_id=element.id, kind=element.kind.value)
    return Template(elements=template.elements + (element,))


def get_element(template: Template, element_id: str) -> Element:
    index = template.index_of(element_id)
    if index is None:
        raise ElementNotFoundError(element_id)
    return template.elements[index]


def update_element(template: Template, element_id: str, **changes: Any) -> Template:
    """
    Replace fields of one element.

    Args:
        template: Current template
        element_id: Element to change
        **changes: Field names (snake_case) and new values. None is ignored
            except for column, where it unbinds the element

    Returns:
        New template with the updated element at the same index

    Raises:
        ElementNotFoundError: If element_id is unknown
        ValueError: If a change targets an immutable field or fails validation
    """
    index = template.index_of(element_id)
    if index is None:
        raise ElementNotFoundError(element_id)

    forbidden = IMMUTABLE_FIELDS.intersection(changes)
    if forbidden:
        raise ValueError(f"Cannot change element field(s): {', '.join(sorted(forbidden))}")

    current = template.elements[index]
    data = current.model_dump()
    data.update(
        {key: value for key, value in changes.items() if value is not None or key in NULLABLE_FIELDS}
    )

    # Re-validate the merged element so constraints hold after the change.
    try:
        updated = Element.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid element update: {e}") from e

    elements = list(template.elements)
    elements[index] = updated
    return Template(elements=tuple(elements))


def delete_element(template: Template, element_id: str) -> Template:
    index = template.index_of(element_id)
    if index is None:
        raise ElementNotFoundError(element_id)
    elements = template.elements[:index] + template.elements[index + 1:]
    logger.debug("Element deleted", element_id=element_id)
    return Template(elements=elements)


def move_element(template: Template, element_id: str, index: int) -> Template:
    """
    Move an element to a new paint position.

    The element is removed and re-inserted at index, clamped into
    [0, len(elements) - 1]. Index 0 is the bottom layer.
    """
    current = template.index_of(element_id)
    if current is None:
        raise ElementNotFoundError(element_id)

    elements = list(template.elements)
    element = elements.pop(current)
    target = max(0, min(index, len(elements)))
    elements.insert(target, element)
    return Template(elements=tuple(elements))
