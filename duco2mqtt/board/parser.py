"""Parser turning Duco board JSON responses into snapshots."""

import logging
import math
from datetime import datetime
from typing import Any, Mapping, Optional

from ..exceptions import DuplicateNodeIdError, MalformedResponseError
from ..models.node import MeasurementValue, Node, Snapshot, SupportedNode, UnsupportedNode
from ..models.node_kinds import (
    DEVICE_KIND,
    DEVICE_NODE_ID,
    MeasurementSpec,
    NodeKindSpec,
    ValueType,
)

logger = logging.getLogger(__name__)

_MISSING = object()


class SnapshotParser:
    """Parser for the board's ``/info/nodes`` and ``/info`` responses.

    ``/info/nodes`` looks like::

        {"Nodes": [
            {"Node": 1,
             "General": {"Type": {"Val": "BOX"}, "Identify": {"Val": 0}},
             "Ventilation": {"State": {"Val": "AUTO"}, "FlowLvlTgt": {"Val": 30}},
             "Sensor": {"Co2": {"Val": 512}}},
            ...
        ]}

    Every reading is the ``Val`` member of its field. Nodes whose type is
    not in the node kind table become UnsupportedNode instead of failing
    the whole parse.
    """

    def __init__(self, node_kinds: Mapping[str, NodeKindSpec]):
        """Initialize the parser.

        Args:
            node_kinds: Node kind table keyed by board type code
        """
        self.node_kinds = node_kinds

    def parse(
        self,
        raw_nodes: Any,
        device_info: Any = None,
        fetched_at: Optional[datetime] = None,
    ) -> Snapshot:
        """Parse a board response into a snapshot.

        Args:
            raw_nodes: Decoded ``/info/nodes`` response
            device_info: Decoded ``/info`` response, if it was fetched
            fetched_at: Fetch timestamp (defaults to now)

        Returns:
            Snapshot with the device record first, then nodes by id

        Raises:
            MalformedResponseError: If the response structure is invalid
            DuplicateNodeIdError: If two nodes share an id
        """
        if not isinstance(raw_nodes, dict):
            raise MalformedResponseError(
                f"Expected a JSON object, got {type(raw_nodes).__name__}"
            )

        node_list = raw_nodes.get("Nodes")
        if not isinstance(node_list, list):
            raise MalformedResponseError("Response has no 'Nodes' list")

        nodes: list[Node] = []
        seen: set = set()
        for raw_node in node_list:
            node = self._parse_node(raw_node)
            if node.id in seen:
                raise DuplicateNodeIdError(node.id)
            seen.add(node.id)
            nodes.append(node)

        nodes.sort(key=lambda n: n.id)

        if device_info is not None:
            nodes.insert(0, self._parse_device(device_info))

        return Snapshot(
            nodes=tuple(nodes),
            fetched_at=fetched_at or datetime.now(),
        )

    def _parse_node(self, raw_node: Any) -> Node:
        if not isinstance(raw_node, dict):
            raise MalformedResponseError(
                f"Node entry is not an object: {raw_node!r}"
            )

        node_id = raw_node.get("Node")
        # bool is an int subclass but never a valid node number
        if isinstance(node_id, bool) or not isinstance(node_id, int):
            raise MalformedResponseError(f"Invalid node id: {node_id!r}")

        kind = _lookup(raw_node, ("General", "Type"))
        spec = self.node_kinds.get(kind) if isinstance(kind, str) else None
        if spec is None:
            logger.debug(f"Node {node_id} has unsupported type {kind!r}")
            return UnsupportedNode(
                id=node_id,
                kind=kind if isinstance(kind, str) else None,
                raw=raw_node,
            )

        return SupportedNode(
            id=node_id,
            kind=kind,
            measurements=self._read_measurements(node_id, spec, raw_node),
        )

    def _parse_device(self, device_info: Any) -> Node:
        if not isinstance(device_info, dict):
            raise MalformedResponseError(
                f"Device info is not an object: {type(device_info).__name__}"
            )

        spec = self.node_kinds.get(DEVICE_KIND)
        if spec is None:
            return UnsupportedNode(id=DEVICE_NODE_ID, kind=DEVICE_KIND, raw=device_info)

        return SupportedNode(
            id=DEVICE_NODE_ID,
            kind=DEVICE_KIND,
            measurements=self._read_measurements(DEVICE_NODE_ID, spec, device_info),
        )

    def _read_measurements(
        self,
        node_id,
        spec: NodeKindSpec,
        data: dict,
    ) -> dict[str, MeasurementValue]:
        values: dict[str, MeasurementValue] = {}
        for measurement in spec.measurements:
            raw_value = _lookup(data, measurement.path)
            if raw_value is _MISSING:
                continue
            value = convert_value(measurement, raw_value)
            if value is None:
                logger.debug(
                    f"Node {node_id}: {measurement.name}={raw_value!r} not available"
                )
                continue
            values[measurement.name] = value
        return values


def _lookup(data: Any, path: tuple[str, ...]) -> Any:
    """Follow a path of keys and return the ``Val`` member at its end."""
    for key in path:
        if not isinstance(data, dict) or key not in data:
            return _MISSING
        data = data[key]
    if isinstance(data, dict):
        return data.get("Val", _MISSING)
    return _MISSING


def convert_value(spec: MeasurementSpec, raw_value: Any) -> Optional[MeasurementValue]:
    """Convert a raw board value according to its measurement spec.

    Returns:
        The typed value, or None when the value is a sentinel or has an
        unexpected type
    """
    if spec.value_type == ValueType.NUMERIC:
        if isinstance(raw_value, bool) or not isinstance(raw_value, (int, float)):
            return None
        if raw_value in spec.sentinels:
            return None
        # NaN, infinity and integers beyond float range cannot be published
        try:
            if not math.isfinite(raw_value):
                return None
        except OverflowError:
            return None
        return raw_value

    if spec.value_type == ValueType.BOOLEAN:
        if isinstance(raw_value, bool):
            return raw_value
        if isinstance(raw_value, int) and raw_value in (0, 1):
            return bool(raw_value)
        return None

    if isinstance(raw_value, bool):
        return None
    if isinstance(raw_value, (str, int)):
        return str(raw_value)
    return None


def parse_snapshot(
    raw_nodes: Any,
    node_kinds: Mapping[str, NodeKindSpec],
    device_info: Any = None,
) -> Snapshot:
    """Parse a board response with a one-off parser.

    See SnapshotParser.parse for details.
    """
    return SnapshotParser(node_kinds).parse(raw_nodes, device_info)
