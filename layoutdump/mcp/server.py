"""layoutdump MCP server: layout export tools for AI agents.

Exposes tools to export a captured UI tree to the layout JSON document
and to preview its flattened structure as compact text.
"""

from __future__ import annotations

import json

from mcp.server.fastmcp import FastMCP

from layoutdump.collector import collect_properties
from layoutdump.export import export_in_background
from layoutdump.flatten import transparent_kinds_from_env
from layoutdump.format import ExportError, format_outline
from layoutdump.model import PropertyTable
from layoutdump.snapshot import SnapshotAdapter, SnapshotError

mcp = FastMCP(
    name="layoutdump",
    instructions=(
        "layoutdump exports captured UI trees (native views and composables) "
        "to a single JSON document with geometry and nested properties. "
        "Use outline_layout to look at the flattened hierarchy first, then "
        "export_layout to write the full document.\n\n"
        "Transparent node kinds (by default ReusableComposeNode and Layout) "
        "are removed and their children promoted; pass transparent_kinds to "
        "override, or an empty list to keep every node."
    ),
)


def _resolve_kinds(transparent_kinds: list[str] | None) -> frozenset[str]:
    if transparent_kinds is None:
        return transparent_kinds_from_env()
    return frozenset(transparent_kinds)


def _failure(error: str) -> str:
    return json.dumps({"success": False, "message": "", "error": error})


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------

@mcp.tool()
def export_layout(
    capture_path: str,
    output_path: str = "layout.json",
    transparent_kinds: list[str] | None = None,
) -> str:
    """Export a captured UI tree to the layout JSON document.

    The document always gets written: if the export fails, a minimal
    fallback document with the error message is written instead and
    the result reports success=false.

    Args:
        capture_path: Path of the capture file to read.
        output_path: Where to write the layout JSON.
        transparent_kinds: Node kinds to flatten away (None = defaults).
    """
    try:
        adapter = SnapshotAdapter.from_file(capture_path)
    except (OSError, SnapshotError) as e:
        return _failure(f"Cannot load capture: {e}")

    result = export_in_background(
        adapter, output_path, transparent_kinds=_resolve_kinds(transparent_kinds),
    ).result()

    return json.dumps({
        "success": result.success,
        "message": result.message,
        "error": result.error,
        "path": str(result.path) if result.path else None,
        "bytes": len(result.document.encode("utf-8")),
    })


@mcp.tool()
async def outline_layout(
    capture_path: str,
    max_depth: int = 0,
    transparent_kinds: list[str] | None = None,
) -> str:
    """Show the flattened hierarchy of a capture as compact text.

    Each line is:

        [id] Kind "text" @x,y wxh (N props)

    Indentation shows the hierarchy after transparent nodes are removed.

    Args:
        capture_path: Path of the capture file to read.
        max_depth: Maximum depth to show (0 = unlimited).
        transparent_kinds: Node kinds to flatten away (None = defaults).
    """
    try:
        adapter = SnapshotAdapter.from_file(capture_path)
    except (OSError, SnapshotError) as e:
        return _failure(f"Cannot load capture: {e}")

    kinds = _resolve_kinds(transparent_kinds)
    root = adapter.get_root()
    table: PropertyTable = {}
    if root is not None:
        table = await collect_properties(
            root, adapter, transparent_kinds=kinds, read_access=adapter.read_access,
        )
    try:
        return format_outline(
            root, table,
            transparent_kinds=kinds,
            max_depth=max_depth if max_depth > 0 else 999,
            read_access=adapter.read_access,
        )
    except ExportError as e:
        return _failure(str(e))


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
