"""Data models for Duco nodes, snapshots and publish bookkeeping."""

from .node import (
    NodeId,
    MeasurementValue,
    SupportedNode,
    UnsupportedNode,
    Node,
    Snapshot,
)

from .node_kinds import (
    DEFAULT_NODE_KINDS,
    DEVICE_KIND,
    DEVICE_NODE_ID,
    UNAVAILABLE_SENTINEL,
    MeasurementSpec,
    NodeKindSpec,
    ValueType,
    build_node_kinds,
)

from .state import PublishedState, DiscoveryRegistry

__all__ = [
    # Snapshot models
    "NodeId",
    "MeasurementValue",
    "SupportedNode",
    "UnsupportedNode",
    "Node",
    "Snapshot",
    # Node kind table
    "DEFAULT_NODE_KINDS",
    "DEVICE_KIND",
    "DEVICE_NODE_ID",
    "UNAVAILABLE_SENTINEL",
    "MeasurementSpec",
    "NodeKindSpec",
    "ValueType",
    "build_node_kinds",
    # Publish bookkeeping
    "PublishedState",
    "DiscoveryRegistry",
]
