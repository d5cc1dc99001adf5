"""
Layout export format: JSON escaping, property and hierarchy serializers,
document assembler, fallback document and compact outline.

The JSON is emitted as text rather than through ``json.dumps`` so key
order, nesting and indentation are fixed by construction.
"""

from __future__ import annotations

import contextlib
import logging
import re
import time
from collections.abc import Collection, Mapping, Sequence
from typing import Any

from layoutdump.collector import ReadAccess
from layoutdump.flatten import DEFAULT_TRANSPARENT_KINDS, is_transparent, logical_children
from layoutdump.model import (
    DeviceConfig,
    ExportMetadata,
    GroupProperty,
    Node,
    PropertyItem,
    Rect,
    Window,
)

logger = logging.getLogger(__name__)

INDENT = "  "

_CONTROL_CHARS = re.compile(r"[\x00-\x1f]")


class ExportError(RuntimeError):
    """The export as a whole cannot be produced."""


class TransparentRootError(ExportError):
    """The root is transparent and promotes more than one node."""


# ---------------------------------------------------------------------------
# Escaping
# ---------------------------------------------------------------------------

def escape_json_string(text: str) -> str:
    """Escape ``text`` for use inside a JSON string literal.

    Backslash goes first so later substitutions are not escaped twice.
    """
    escaped = (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return _CONTROL_CHARS.sub(lambda m: f"\\u{ord(m.group()):04x}", escaped)


def _quote(value: Any) -> str:
    return '"' + escape_json_string(str(value)) + '"'


def _value_text(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _error_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------

def serialize_property(item: PropertyItem, indent: str = "") -> str:
    """Serialize one property item as a ``"name": value`` member.

    Groups with children become nested objects; everything else, empty
    groups included, becomes a string value (``"null"`` when unset).
    Never raises: a failing item is replaced by a ``"<name>Error"`` member.
    """
    try:
        name = escape_json_string(item.name)
        if isinstance(item, GroupProperty) and item.children:
            members = ",\n".join(
                serialize_property(child, indent + INDENT) for child in item.children
            )
            return f'{indent}"{name}": {{\n{members}\n{indent}}}'
        return f'{indent}"{name}": "{escape_json_string(_value_text(item.value))}"'
    except Exception as e:
        label = getattr(item, "name", None)
        label = label if isinstance(label, str) else "property"
        logger.warning("Failed to serialize property %r", label, exc_info=True)
        return f'{indent}"{escape_json_string(label)}Error": {_quote(_error_message(e))}'


def _properties_member(node: Node, table: Mapping[Any, Sequence[PropertyItem]], pad: str) -> str:
    try:
        items = table.get(node.id)
        items = list(items) if items is not None else []
        if not items:
            return f'{pad}"properties": {{}}'
        key = "composeParameters" if node.family == "compose" else "properties"
        members = ",\n".join(serialize_property(item, pad + INDENT) for item in items)
        return f'{pad}"{key}": {{\n{members}\n{pad}}}'
    except Exception as e:
        logger.warning("Failed to get properties for node %s", node.id, exc_info=True)
        return f'{pad}"propertiesError": {_quote(_error_message(e))}'


# ---------------------------------------------------------------------------
# Hierarchy
# ---------------------------------------------------------------------------

def _bounds_member(name: str, rect: Rect, pad: str) -> str:
    inner = pad + INDENT
    return (
        f'{pad}"{name}": {{\n'
        f'{inner}"x": {int(rect.x)},\n'
        f'{inner}"y": {int(rect.y)},\n'
        f'{inner}"width": {int(rect.width)},\n'
        f'{inner}"height": {int(rect.height)}\n'
        f"{pad}}}"
    )


def _open_node(
    node: Node,
    table: Mapping[Any, Sequence[PropertyItem]],
    indent_level: int,
    transparent_kinds: Collection[str],
    read_access: ReadAccess,
    parts: list[str],
) -> list[Node]:
    """Emit a node up to its children and return its logical children.

    A leaf is emitted complete, closing brace included.
    """
    pad = INDENT * (indent_level + 1)
    members = [
        f'{pad}"id": {_quote(node.id)}',
        f'{pad}"qualifiedName": {_quote(node.kind_name)}',
        _bounds_member("layoutBounds", node.layout_bounds, pad),
        _bounds_member("renderBounds", node.render_bounds, pad),
    ]
    if node.text_value:
        members.append(f'{pad}"textValue": {_quote(node.text_value)}')
    if node.view_id is not None:
        members.append(f'{pad}"viewId": {_quote(node.view_id)}')
    if node.layout is not None:
        members.append(f'{pad}"layout": {_quote(node.layout)}')
    members.append(_properties_member(node, table, pad))

    with read_access():
        children = logical_children(node, transparent_kinds)

    if not children:
        members.append(f'{pad}"children": []')
        parts.append("{\n" + ",\n".join(members) + "\n" + INDENT * indent_level + "}")
    else:
        parts.append("{\n" + ",\n".join(members) + f',\n{pad}"children": [\n')
    return children


def serialize_node(
    node: Node,
    table: Mapping[Any, Sequence[PropertyItem]],
    indent_level: int = 0,
    *,
    transparent_kinds: Collection[str] = DEFAULT_TRANSPARENT_KINDS,
    read_access: ReadAccess = contextlib.nullcontext,
) -> str:
    """Serialize a visible node and its logical descendants.

    The returned text starts with ``{`` and ends with the closing brace
    indented to ``indent_level``; the caller writes whatever precedes the
    opening brace on its line.
    ``node`` itself must not be transparent (see ``serialize_hierarchy``).

    The walk keeps its own stack of open nodes, so tree depth is not
    bounded by the interpreter's recursion limit.
    """
    parts: list[str] = []
    # Each open node: [logical children, index of next child, indent level].
    stack: list[list[Any]] = []

    children = _open_node(node, table, indent_level, transparent_kinds, read_access, parts)
    if children:
        stack.append([children, 0, indent_level])

    while stack:
        frame = stack[-1]
        children, index, level = frame
        if index == len(children):
            parts.append(f"\n{INDENT * (level + 1)}]\n{INDENT * level}}}")
            stack.pop()
            continue
        frame[1] = index + 1
        if index:
            parts.append(",\n")
        parts.append(INDENT * (level + 2))
        grandchildren = _open_node(
            children[index], table, level + 2, transparent_kinds, read_access, parts,
        )
        if grandchildren:
            stack.append([grandchildren, 0, level + 2])

    return "".join(parts)


def resolve_root(
    root: Node | None,
    transparent_kinds: Collection[str] = DEFAULT_TRANSPARENT_KINDS,
    read_access: ReadAccess = contextlib.nullcontext,
) -> Node | None:
    """Return the node exported as ``viewHierarchy``.

    A transparent root is replaced by its single logical child, or by
    ``None`` when it has none.

    Raises:
        TransparentRootError: If a transparent root has several logical
            children, which would leave the hierarchy without one root.
    """
    if root is None or not is_transparent(root, transparent_kinds):
        return root
    with read_access():
        promoted = logical_children(root, transparent_kinds)
    if not promoted:
        return None
    if len(promoted) > 1:
        raise TransparentRootError(
            f"Transparent root {root.kind_name} ({root.id}) has "
            f"{len(promoted)} logical children"
        )
    return promoted[0]


def serialize_hierarchy(
    root: Node | None,
    table: Mapping[Any, Sequence[PropertyItem]],
    indent_level: int = 1,
    *,
    transparent_kinds: Collection[str] = DEFAULT_TRANSPARENT_KINDS,
    read_access: ReadAccess = contextlib.nullcontext,
) -> str:
    """Serialize the ``viewHierarchy`` value: a node object or ``null``."""
    node = resolve_root(root, transparent_kinds, read_access)
    if node is None:
        return "null"
    return serialize_node(
        node, table, indent_level,
        transparent_kinds=transparent_kinds, read_access=read_access,
    )


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------

def _api_level_value(api_level: int | str | None) -> str:
    if api_level is None:
        return "null"
    if isinstance(api_level, int) and not isinstance(api_level, bool):
        return str(api_level)
    return _quote(api_level)


def assemble_document(
    metadata: ExportMetadata,
    windows: Sequence[Window],
    hierarchy: str,
    device: DeviceConfig,
) -> str:
    """Wrap a serialized hierarchy with metadata, windows and device info.

    ``hierarchy`` is the output of ``serialize_hierarchy`` at indent level 1.
    """
    lines = [
        "{",
        '  "metadata": {',
        f'    "timestamp": {int(metadata.timestamp)},',
        f'    "format": {_quote(metadata.format)},',
        f'    "processName": {_quote(metadata.process_name)},',
        f'    "note": {_quote(metadata.note)}',
        "  },",
    ]

    if windows:
        entries = [
            "    {\n"
            f'      "id": {_quote(win.id)},\n'
            f'      "displayName": {_quote(win.display_name)},\n'
            f'      "isVisible": {"true" if win.is_visible else "false"}\n'
            "    }"
            for win in windows
        ]
        lines.append('  "windows": [')
        lines.append(",\n".join(entries))
        lines.append("  ],")
    else:
        lines.append('  "windows": [],')

    lines.append(f'  "viewHierarchy": {hierarchy},')
    lines.extend([
        '  "deviceConfiguration": {',
        f'    "apiLevel": {_api_level_value(device.api_level)},',
        f'    "resourceLookup": "{"true" if device.resource_lookup else "false"}"',
        "  }",
        "}",
    ])
    return "\n".join(lines) + "\n"


def build_fallback_document(message: str, timestamp: int | None = None) -> str:
    """Return the minimal document written when an export fails outright."""
    if timestamp is None:
        timestamp = int(time.time() * 1000)
    return (
        "{\n"
        '  "metadata": {\n'
        f'    "timestamp": {timestamp},\n'
        f'    "error": {_quote(message)}\n'
        "  },\n"
        '  "layout": null\n'
        "}\n"
    )


# ---------------------------------------------------------------------------
# Compact outline
# ---------------------------------------------------------------------------

def _format_line(node: Node, table: Mapping[Any, Sequence[PropertyItem]] | None) -> str:
    """Format a single node as a compact one-liner."""
    parts = [f"[{node.id}]", node.kind_name]

    if node.text_value:
        text = node.text_value[:80] + ("..." if len(node.text_value) > 80 else "")
        text = text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", " ")
        parts.append(f'"{text}"')

    b = node.layout_bounds
    parts.append(f"@{int(b.x)},{int(b.y)} {int(b.width)}x{int(b.height)}")

    if table is not None and node.id in table:
        count = len(table[node.id])
        parts.append(f"({count} prop{'s' if count != 1 else ''})")

    return " ".join(parts)


def format_outline(
    root: Node | None,
    table: Mapping[Any, Sequence[PropertyItem]] | None = None,
    *,
    transparent_kinds: Collection[str] = DEFAULT_TRANSPARENT_KINDS,
    max_depth: int = 999,
    read_access: ReadAccess = contextlib.nullcontext,
) -> str:
    """Render the flattened tree as indented one-line-per-node text."""
    node = resolve_root(root, transparent_kinds, read_access)
    if node is None:
        return "(empty hierarchy)\n"

    lines: list[str] = []
    stack = [(node, 0)]
    while stack:
        current, depth = stack.pop()
        lines.append(f"{INDENT * depth}{_format_line(current, table)}")
        if depth + 1 >= max_depth:
            continue
        with read_access():
            children = logical_children(current, transparent_kinds)
        stack.extend((child, depth + 1) for child in reversed(children))

    return "\n".join(lines) + "\n"
