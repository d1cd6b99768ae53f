"""Per-network cache of parsed schema and planned layout."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .layout import OutputLayout, plan_layout
from .schema import NetworkSchema, OutputTensorDescriptor, parse_network

logger = logging.getLogger("tensor.cache")


@dataclass(frozen=True)
class PlannedNetwork:
    """Descriptors and layout derived from one schema blob."""

    network: Optional[NetworkSchema]
    descriptors: Tuple[OutputTensorDescriptor, ...]
    layout: OutputLayout


class SchemaCache:
    """Reuse schema parsing and layout planning while the schema is unchanged.

    Entries are keyed by network id and validated against the exact schema
    bytes, so a changed schema for the same network is parsed again.
    """

    def __init__(self) -> None:
        self._entries: Dict[int, Tuple[bytes, PlannedNetwork]] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def resolve(self, schema_bytes: bytes, network_id: int) -> PlannedNetwork:
        with self._lock:
            entry = self._entries.get(network_id)
            if entry is not None and entry[0] == schema_bytes:
                self.hits += 1
                return entry[1]
        planned = plan_network(schema_bytes, network_id)
        with self._lock:
            self.misses += 1
            self._entries[network_id] = (bytes(schema_bytes), planned)
        logger.debug("Cached schema for network %d", network_id)
        return planned

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


def plan_network(schema_bytes: bytes, network_id: int) -> PlannedNetwork:
    """Parse ``schema_bytes`` for ``network_id`` and plan its output layout."""
    network = parse_network(schema_bytes, network_id)
    if network is None:
        logger.warning("Network id %d not found in schema", network_id)
    descriptors = network.outputs if network is not None else ()
    return PlannedNetwork(network=network, descriptors=tuple(descriptors), layout=plan_layout(descriptors))


__all__ = ["PlannedNetwork", "SchemaCache", "plan_network"]
