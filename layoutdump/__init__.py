"""
layoutdump -- export an inspected UI tree to a single JSON document.

Quick start::

    import layoutdump

    adapter = layoutdump.SnapshotAdapter.from_file("capture.json")

    # Export on a background worker; the future resolves to an ExportResult
    future = layoutdump.export_in_background(adapter, "layout.json")
    result = future.result()

    # Or render the document text directly
    text = layoutdump.export_text(adapter)
"""

from __future__ import annotations

from collections.abc import Collection

from layoutdump._base import InspectorAdapter
from layoutdump.collector import collect_properties
from layoutdump.export import (
    ExportResult,
    export_in_background,
    export_to_file,
    render_document,
    run_export,
)
from layoutdump.flatten import (
    DEFAULT_TRANSPARENT_KINDS,
    logical_children,
    transparent_kinds_from_env,
)
from layoutdump.format import (
    ExportError,
    TransparentRootError,
    assemble_document,
    escape_json_string,
    format_outline,
    serialize_hierarchy,
    serialize_node,
    serialize_property,
)
from layoutdump.snapshot import SnapshotAdapter, SnapshotError

__all__ = [
    "export_text",
    "export_to_file",
    "export_in_background",
    # Adapters
    "InspectorAdapter",
    "SnapshotAdapter",
    "SnapshotError",
    # Advanced / building blocks
    "ExportResult",
    "ExportError",
    "TransparentRootError",
    "DEFAULT_TRANSPARENT_KINDS",
    "transparent_kinds_from_env",
    "collect_properties",
    "logical_children",
    "render_document",
    "run_export",
    "serialize_hierarchy",
    "serialize_node",
    "serialize_property",
    "assemble_document",
    "escape_json_string",
    "format_outline",
]


def export_text(
    adapter: InspectorAdapter,
    *,
    transparent_kinds: Collection[str] | None = None,
) -> str:
    """Export and return the document text (the fallback document on failure).

    Blocks until the export finishes. Inside a running event loop this
    raises ``RuntimeError``; await ``render_document`` there instead.
    """
    return run_export(adapter, transparent_kinds=transparent_kinds).document
