"""Export pipeline: collect properties, serialize, assemble, write."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Collection
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from layoutdump._base import InspectorAdapter
from layoutdump.collector import collect_properties
from layoutdump.flatten import transparent_kinds_from_env
from layoutdump.format import (
    assemble_document,
    build_fallback_document,
    serialize_hierarchy,
)
from layoutdump.model import ExportMetadata, PropertyTable

logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    """Outcome of one export."""

    success: bool
    message: str
    error: str | None = None
    path: Path | None = None
    document: str = ""


def _now_millis() -> int:
    return int(time.time() * 1000)


async def render_document(
    adapter: InspectorAdapter,
    *,
    transparent_kinds: Collection[str] | None = None,
) -> str:
    """Run the full collect-then-serialize pipeline and return the JSON text.

    Raises whatever the adapter or the assembly raises; per-node failures
    are absorbed into the document.
    """
    if transparent_kinds is None:
        transparent_kinds = transparent_kinds_from_env()

    root = adapter.get_root()
    table: PropertyTable = {}
    if root is not None:
        table = await collect_properties(
            root, adapter,
            transparent_kinds=transparent_kinds,
            read_access=adapter.read_access,
        )
        logger.info("Collected properties for %d node(s)", len(table))

    hierarchy = serialize_hierarchy(
        root, table, 1,
        transparent_kinds=transparent_kinds,
        read_access=adapter.read_access,
    )
    metadata = ExportMetadata(timestamp=_now_millis(), process_name=adapter.process_name)
    return assemble_document(
        metadata, adapter.get_windows(), hierarchy, adapter.get_device_config(),
    )


def run_export(
    adapter: InspectorAdapter,
    *,
    transparent_kinds: Collection[str] | None = None,
) -> ExportResult:
    """Export synchronously, falling back to the error document on failure.

    Raises:
        RuntimeError: If called from a running event loop; await
            ``render_document`` there instead.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        pass
    else:
        raise RuntimeError(
            "run_export() cannot be called from a running event loop; "
            "await render_document() instead"
        )

    try:
        document = asyncio.run(render_document(adapter, transparent_kinds=transparent_kinds))
    except Exception as e:
        logger.exception("Failed to export layout from inspector model")
        error = f"Failed to export from inspector model: {e}"
        return ExportResult(
            success=False, message="",
            error=error,
            document=build_fallback_document(error, _now_millis()),
        )
    return ExportResult(success=True, message="Export completed successfully", document=document)


def export_to_file(
    adapter: InspectorAdapter,
    path: str | Path,
    *,
    transparent_kinds: Collection[str] | None = None,
) -> ExportResult:
    """Export and write the document to ``path``.

    Something is always written: the layout document, or the fallback
    document when the export fails.
    """
    path = Path(path)
    result = run_export(adapter, transparent_kinds=transparent_kinds)
    path.write_text(result.document, encoding="utf-8")
    result.path = path
    if result.success:
        logger.info("Exported layout to %s", path.resolve())
    else:
        logger.warning("Wrote fallback document to %s", path.resolve())
    return result


def export_in_background(
    adapter: InspectorAdapter,
    path: str | Path,
    *,
    transparent_kinds: Collection[str] | None = None,
) -> Future[ExportResult]:
    """Run ``export_to_file`` on a dedicated worker thread.

    The calling thread is never blocked; the returned future resolves once
    the document has been written.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="layoutdump-export")
    try:
        return executor.submit(
            export_to_file, adapter, path, transparent_kinds=transparent_kinds,
        )
    finally:
        executor.shutdown(wait=False)
