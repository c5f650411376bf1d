"""Process-local bookkeeping of what has been published to MQTT."""

from typing import Iterator, Optional

from .node import NodeId

StateKey = tuple[NodeId, str]


class PublishedState:
    """Last payload published per (node id, measurement).

    Only used to decide whether a new publish is needed. Never persisted.
    """

    def __init__(self):
        self._values: dict[StateKey, str] = {}

    def get(self, node_id: NodeId, measurement: str) -> Optional[str]:
        return self._values.get((node_id, measurement))

    def set(self, node_id: NodeId, measurement: str, payload: str) -> None:
        self._values[(node_id, measurement)] = payload

    def clear(self) -> None:
        self._values.clear()

    def as_dict(self) -> dict[StateKey, str]:
        """Copy of the current contents."""
        return dict(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, key: StateKey) -> bool:
        return key in self._values


class DiscoveryRegistry:
    """Node ids announced through Home Assistant discovery."""

    def __init__(self):
        self._announced: set[NodeId] = set()

    def add(self, node_id: NodeId) -> None:
        self._announced.add(node_id)

    def __contains__(self, node_id: NodeId) -> bool:
        return node_id in self._announced

    def __iter__(self) -> Iterator[NodeId]:
        return iter(self._announced)

    def __len__(self) -> int:
        return len(self._announced)
