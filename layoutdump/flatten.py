"""Transparent-node flattening.

Transparent nodes are framework scaffolding (``ReusableComposeNode``,
``Layout``). They never appear in an export; their children take their
place in the parent's child list.
"""

from __future__ import annotations

import os
from collections.abc import Collection

from layoutdump.model import Node

DEFAULT_TRANSPARENT_KINDS: frozenset[str] = frozenset({"ReusableComposeNode", "Layout"})

TRANSPARENT_KINDS_ENV = "LAYOUTDUMP_TRANSPARENT_KINDS"


def transparent_kinds_from_env() -> frozenset[str]:
    """Return the transparent kinds configured in the environment.

    ``LAYOUTDUMP_TRANSPARENT_KINDS`` is a comma-separated list of kind
    names. Unset means the defaults; set but empty disables flattening.
    """
    raw = os.environ.get(TRANSPARENT_KINDS_ENV)
    if raw is None:
        return DEFAULT_TRANSPARENT_KINDS
    return frozenset(part.strip() for part in raw.split(",") if part.strip())


def is_transparent(node: Node, transparent_kinds: Collection[str]) -> bool:
    return node.kind_name in transparent_kinds


def logical_children(
    node: Node,
    transparent_kinds: Collection[str] = DEFAULT_TRANSPARENT_KINDS,
) -> list[Node]:
    """Return the children of ``node`` with transparent nodes collapsed.

    A transparent child is replaced, at its own position, by its logical
    children, so chains of transparent nodes collapse fully and pre-order
    sibling order is kept.
    """
    result: list[Node] = []
    # One iterator per transparent node currently being expanded.
    pending = [iter(node.children)]
    while pending:
        child = next(pending[-1], None)
        if child is None:
            pending.pop()
        elif is_transparent(child, transparent_kinds):
            pending.append(iter(child.children))
        else:
            result.append(child)
    return result
