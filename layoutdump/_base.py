"""Abstract base for inspector adapters."""

from __future__ import annotations

import contextlib
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import ContextManager

from layoutdump.model import DeviceConfig, Node, PropertyItem, Window


class InspectorAdapter(ABC):
    """Interface each layout source must implement.

    An adapter owns the connection to whatever holds the live tree (an
    inspector session, a capture file) and exposes it through typed
    accessors. The exporter calls only the methods defined here.
    """

    # ---- identity --------------------------------------------------------

    @property
    @abstractmethod
    def process_name(self) -> str:
        """Return the name of the inspected process."""
        ...

    # ---- tree ------------------------------------------------------------

    @abstractmethod
    def get_root(self) -> Node | None:
        """Return the root node, or None if no tree is available."""
        ...

    def read_access(self) -> ContextManager[object]:
        """Return a context manager guarding reads of ``Node.children``.

        Held only long enough to copy a child list; never across an await.
        The default performs no locking.
        """
        return contextlib.nullcontext()

    # ---- properties ------------------------------------------------------

    @abstractmethod
    async def request_properties(self, node: Node) -> Sequence[PropertyItem]:
        """Fetch the property items of one node.

        May raise; the collector treats any exception as "no properties".
        """
        ...

    # ---- session info ----------------------------------------------------

    @abstractmethod
    def get_windows(self) -> list[Window]:
        """Return the windows of the inspected process."""
        ...

    @abstractmethod
    def get_device_config(self) -> DeviceConfig:
        """Return the device configuration reported by the session."""
        ...
