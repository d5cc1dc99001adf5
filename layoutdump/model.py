"""Typed view of an inspected UI tree and the property data attached to it."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Union

NodeFamily = Literal["view", "compose"]

EXPORT_FORMAT = "inspector_model_with_properties"
EXPORT_NOTE = "Exported from Layout Inspector model with properties and Compose data"


# ---------------------------------------------------------------------------
# Tree
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class Node:
    """One node of the inspected tree.

    ``family`` is ``"compose"`` for composable nodes, whose properties are
    exported as ``composeParameters``; everything else is a native view.
    """

    id: Any
    kind_name: str
    layout_bounds: Rect
    render_bounds: Rect
    text_value: str = ""
    view_id: str | None = None
    layout: str | None = None
    family: NodeFamily = "view"
    children: tuple[Node, ...] = ()


@dataclass(frozen=True)
class Window:
    id: str
    display_name: str
    is_visible: bool = False


@dataclass(frozen=True)
class DeviceConfig:
    api_level: int | str | None = None
    resource_lookup: bool = False


@dataclass(frozen=True)
class ExportMetadata:
    timestamp: int
    process_name: str = "Unknown"
    note: str = EXPORT_NOTE
    format: str = EXPORT_FORMAT


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SimpleProperty:
    name: str
    value: Any = None


@dataclass(frozen=True)
class GroupProperty:
    """A named group of nested properties.

    Covers both grouped view properties and compose parameter groups.
    A group without children is rendered like a simple property.
    """

    name: str
    value: Any = None
    children: tuple[PropertyItem, ...] = field(default_factory=tuple)


PropertyItem = Union[SimpleProperty, GroupProperty]

# Node id -> ordered property items, built fresh for every export.
PropertyTable = dict[Any, list[PropertyItem]]
