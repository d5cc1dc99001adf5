"""CLI for layout export: python -m layoutdump"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time

from layoutdump.collector import collect_properties
from layoutdump.export import export_in_background
from layoutdump.flatten import transparent_kinds_from_env
from layoutdump.format import format_outline
from layoutdump.snapshot import SnapshotAdapter, SnapshotError


def _configure_logging(verbose: bool, quiet: bool) -> None:
    level = logging.INFO
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Export a captured UI tree to a layout JSON document")
    parser.add_argument("capture", type=str,
                        help="Capture file (JSON) to read the tree from")
    parser.add_argument("-o", "--output", type=str, default="layout.json",
                        help="Where to write the layout JSON (default: layout.json)")
    parser.add_argument("--outline", action="store_true",
                        help="Print a compact outline of the flattened tree")
    parser.add_argument("--transparent", action="append", default=None, metavar="KIND",
                        help="Node kind to flatten away (repeatable; "
                             "default: $LAYOUTDUMP_TRANSPARENT_KINDS or "
                             "ReusableComposeNode, Layout)")
    parser.add_argument("--no-flatten", action="store_true",
                        help="Keep every node, including transparent kinds")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log every property request")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Only log warnings and errors")
    args = parser.parse_args(argv)

    _configure_logging(args.verbose, args.quiet)

    if args.no_flatten:
        transparent_kinds: frozenset[str] = frozenset()
    elif args.transparent:
        transparent_kinds = frozenset(args.transparent)
    else:
        transparent_kinds = transparent_kinds_from_env()

    try:
        adapter = SnapshotAdapter.from_file(args.capture)
    except (OSError, SnapshotError) as e:
        print(f"Cannot load capture: {e}", file=sys.stderr)
        return 2

    print(f"=== Layout export ({adapter.process_name}) ===")
    kinds = ", ".join(sorted(transparent_kinds)) or "(none)"
    print(f"Transparent kinds: {kinds}")

    if args.outline:
        root = adapter.get_root()
        table = asyncio.run(collect_properties(
            root, adapter,
            transparent_kinds=transparent_kinds,
            read_access=adapter.read_access,
        )) if root is not None else {}
        outline = format_outline(
            root, table,
            transparent_kinds=transparent_kinds,
            read_access=adapter.read_access,
        )
        print(f"\n{outline}")

    print("Exporting layout...")
    t0 = time.perf_counter()
    result = export_in_background(
        adapter, args.output, transparent_kinds=transparent_kinds,
    ).result()
    elapsed = (time.perf_counter() - t0) * 1000

    size_kb = len(result.document.encode("utf-8")) / 1024
    if result.success:
        print(f"{result.message}: {result.path} ({size_kb:.1f} KB, {elapsed:.1f} ms)")
        return 0
    print(f"Export failed: {result.error}", file=sys.stderr)
    print(f"Fallback document written to {result.path}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
