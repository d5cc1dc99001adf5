"""Capture-file adapter: serve a recorded inspector session as a live tree.

A capture is a JSON object::

    {
      "processName": "com.example.app",
      "apiLevel": 34,
      "resourceLookup": true,
      "windows": [{"id": "1", "displayName": "MainActivity", "isVisible": true}],
      "root": {
        "id": 1,
        "kindName": "DecorView",
        "family": "view",
        "layoutBounds": {"x": 0, "y": 0, "width": 1080, "height": 2400},
        "renderBounds": {"x": 0.0, "y": 0.0, "width": 1080.0, "height": 2400.0},
        "textValue": "",
        "viewId": null,
        "layout": null,
        "properties": [{"name": "alpha", "value": "1.0"},
                       {"name": "padding", "children": [...]}],
        "children": [...]
      }
    }

A property with a ``children`` list is a group. A node recorded without
a ``properties`` key has no captured data; requesting its properties fails.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import Any, ContextManager, Literal

from pydantic import BaseModel, Field, ValidationError

from layoutdump._base import InspectorAdapter
from layoutdump.model import (
    DeviceConfig,
    GroupProperty,
    Node,
    PropertyItem,
    Rect,
    SimpleProperty,
    Window,
)

logger = logging.getLogger(__name__)


class SnapshotError(ValueError):
    """The capture data is malformed."""


# ---------------------------------------------------------------------------
# Capture models
# ---------------------------------------------------------------------------

class CaptureRect(BaseModel):
    """Bounds as recorded in a capture."""
    x: float
    y: float
    width: float
    height: float

    def to_rect(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)


class CaptureProperty(BaseModel):
    """A recorded property; a ``children`` list makes it a group."""
    name: str
    value: Any = None
    children: list[CaptureProperty] | None = None

    def to_item(self) -> PropertyItem:
        if self.children is not None:
            return GroupProperty(
                self.name, self.value, tuple(c.to_item() for c in self.children),
            )
        return SimpleProperty(self.name, self.value)


class CaptureNode(BaseModel):
    """A recorded tree node."""

    model_config = {"populate_by_name": True}

    id: int | str
    kind_name: str = Field(alias="kindName")
    family: Literal["view", "compose"] = "view"
    layout_bounds: CaptureRect | None = Field(None, alias="layoutBounds")
    render_bounds: CaptureRect | None = Field(None, alias="renderBounds")
    text_value: str | None = Field(None, alias="textValue")
    view_id: int | str | None = Field(None, alias="viewId")
    layout: str | None = None

    # None and [] both mean "captured, no properties"; a missing key means
    # the node was never captured (see ``has_properties``).
    properties: list[CaptureProperty] | None = None
    children: list[CaptureNode] | None = None

    @property
    def has_properties(self) -> bool:
        return "properties" in self.model_fields_set

    def to_node(self, children: tuple[Node, ...]) -> Node:
        empty = Rect(0, 0, 0, 0)
        return Node(
            id=self.id,
            kind_name=self.kind_name,
            layout_bounds=self.layout_bounds.to_rect() if self.layout_bounds else empty,
            render_bounds=self.render_bounds.to_rect() if self.render_bounds else empty,
            text_value=self.text_value or "",
            view_id=str(self.view_id) if self.view_id is not None else None,
            layout=self.layout,
            family=self.family,
            children=children,
        )


class CaptureWindow(BaseModel):
    model_config = {"populate_by_name": True}

    id: int | str = "unknown"
    display_name: str | None = Field(None, alias="displayName")
    is_visible: bool = Field(False, alias="isVisible")


class Capture(BaseModel):
    """A complete recorded inspector session."""

    model_config = {"populate_by_name": True}

    process_name: str | None = Field(None, alias="processName")
    api_level: int | str | None = Field(None, alias="apiLevel")
    resource_lookup: bool = Field(False, alias="resourceLookup")
    windows: list[CaptureWindow] | None = None
    root: CaptureNode | None = None


def parse_property(data: Any) -> PropertyItem:
    """Build a property item from its recorded form."""
    try:
        return CaptureProperty.model_validate(data).to_item()
    except ValidationError as e:
        raise SnapshotError(f"Invalid property: {e}") from e


def _build_tree(
    root: CaptureNode,
    properties: dict[Any, list[PropertyItem]],
) -> Node:
    """Convert recorded nodes bottom-up without recursing per level.

    Property lists are registered in pre-order; the first node with a
    given id keeps its list.
    """
    built: dict[int, Node] = {}
    stack: list[tuple[CaptureNode, bool]] = [(root, False)]
    while stack:
        capture, expanded = stack.pop()
        kids = capture.children or []
        if not expanded:
            if capture.has_properties and capture.id not in properties:
                properties[capture.id] = [p.to_item() for p in capture.properties or []]
            stack.append((capture, True))
            stack.extend((child, False) for child in reversed(kids))
            continue
        built[id(capture)] = capture.to_node(tuple(built.pop(id(c)) for c in kids))
    return built[id(root)]


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------

class SnapshotAdapter(InspectorAdapter):
    """Inspector adapter backed by a parsed capture."""

    def __init__(self, data: Any) -> None:
        try:
            capture = Capture.model_validate(data)
        except ValidationError as e:
            raise SnapshotError(f"Invalid capture: {e}") from e

        self._lock = threading.RLock()
        self._properties: dict[Any, list[PropertyItem]] = {}
        self._root = _build_tree(capture.root, self._properties) if capture.root else None
        self._process_name = capture.process_name or "Unknown"
        self._windows = [
            Window(
                id=str(w.id),
                display_name=w.display_name or "Unknown",
                is_visible=w.is_visible,
            )
            for w in capture.windows or []
        ]
        self._device = DeviceConfig(
            api_level=capture.api_level,
            resource_lookup=capture.resource_lookup,
        )

    @classmethod
    def from_file(cls, path: str | Path) -> SnapshotAdapter:
        path = Path(path)
        logger.info("Loading capture %s", path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except UnicodeDecodeError as e:
            raise SnapshotError(f"{path} is not UTF-8 text: {e}") from e
        except json.JSONDecodeError as e:
            raise SnapshotError(f"{path} is not valid JSON: {e}") from e
        return cls(data)

    @property
    def process_name(self) -> str:
        return self._process_name

    def get_root(self) -> Node | None:
        return self._root

    def read_access(self) -> ContextManager[object]:
        return self._lock

    async def request_properties(self, node: Node) -> Sequence[PropertyItem]:
        try:
            return self._properties[node.id]
        except KeyError:
            raise LookupError(f"No properties captured for node {node.id}") from None

    def get_windows(self) -> list[Window]:
        return list(self._windows)

    def get_device_config(self) -> DeviceConfig:
        return self._device
