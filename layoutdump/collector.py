"""Asynchronous per-node property collection."""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Callable, Collection, Sequence
from typing import ContextManager, Protocol

from layoutdump.flatten import DEFAULT_TRANSPARENT_KINDS, is_transparent
from layoutdump.model import Node, PropertyItem, PropertyTable

logger = logging.getLogger(__name__)

ReadAccess = Callable[[], ContextManager[object]]


class PropertyProvider(Protocol):
    async def request_properties(self, node: Node) -> Sequence[PropertyItem]: ...


async def collect_properties(
    root: Node,
    provider: PropertyProvider,
    *,
    transparent_kinds: Collection[str] = DEFAULT_TRANSPARENT_KINDS,
    read_access: ReadAccess = contextlib.nullcontext,
) -> PropertyTable:
    """Request properties for every visible node under ``root``.

    The walk is pre-order over the source tree and strictly sequential:
    a node's request is awaited before any of its children are visited.
    Transparent nodes are walked through but never requested, so they
    never own an entry. A failed request is logged and leaves the node
    without an entry.

    ``read_access`` guards reads of ``node.children``; it is never held
    across an await. The walk uses an explicit worklist with one request
    in flight at a time, so tree depth is not bounded by recursion.
    """
    table: PropertyTable = {}
    worklist = [root]
    while worklist:
        node = worklist.pop()
        if not is_transparent(node, transparent_kinds):
            await _request_node(node, provider, table)

        with read_access():
            children = list(node.children)
        worklist.extend(reversed(children))
    return table


async def _request_node(node: Node, provider: PropertyProvider, table: PropertyTable) -> None:
    if node.id in table:
        logger.warning("Duplicate node id %s, keeping first properties", node.id)
        return
    try:
        items = list(await provider.request_properties(node))
    except Exception:
        logger.warning("Failed to request properties for node %s", node.id, exc_info=True)
        return
    table[node.id] = items
    logger.debug("Requested properties for node %s (%d items)", node.id, len(items))
