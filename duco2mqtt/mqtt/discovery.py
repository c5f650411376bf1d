"""Home Assistant MQTT Discovery configuration."""

import json
import logging
from typing import Any, Mapping, NamedTuple, Optional

from .. import __version__
from ..config import MQTTConfig
from ..models.node import Snapshot, SupportedNode
from ..models.node_kinds import (
    DEVICE_KIND,
    DEVICE_NODE_ID,
    MeasurementSpec,
    NodeKindSpec,
    ValueType,
)
from ..models.state import DiscoveryRegistry
from .client import MQTTClient

logger = logging.getLogger(__name__)

ORIGIN = {
    "name": "duco2mqtt",
    "sw": __version__,
    "url": "https://github.com/dirkvdb/duco2mqtt",
}


class DiscoveryMessage(NamedTuple):
    """One retained discovery config."""
    topic: str
    payload: str


class DiscoveryPublisher:
    """Publisher for Home Assistant MQTT Discovery.

    Announces one entity per measurement of every node that has not been
    announced yet, so the state topics show up in Home Assistant.
    """

    def __init__(
        self,
        mqtt_client: MQTTClient,
        config: MQTTConfig,
        node_kinds: Mapping[str, NodeKindSpec],
    ):
        """Initialize the discovery publisher.

        Args:
            mqtt_client: MQTT client used for publishing
            config: MQTT configuration
            node_kinds: Node kind table
        """
        self.client = mqtt_client
        self.config = config
        self.node_kinds = node_kinds

    @property
    def enabled(self) -> bool:
        return self.config.hass_discovery

    @staticmethod
    def entity_id(node_id, measurement: str) -> str:
        """Unique id for a node measurement."""
        return f"duco_{node_id}_{measurement}"

    def _discovery_topic(self, component: str, entity_id: str) -> str:
        return f"{self.config.discovery_prefix}/{component}/{entity_id}/config"

    def _state_topic(self, node_id, measurement: str) -> str:
        return f"{self.config.base_topic}/{node_id}/{measurement}"

    def _device_info(
        self,
        node: SupportedNode,
        kind: NodeKindSpec,
        via_device: Optional[str],
    ) -> dict[str, Any]:
        device = {
            "identifiers": [f"duco_{node.id}"],
            "manufacturer": "Duco",
            "model": kind.name,
        }
        if node.kind == DEVICE_KIND:
            device["name"] = "Duco Box"
        else:
            device["name"] = f"Duco {kind.name} {node.id}"
            if via_device:
                device["via_device"] = via_device
        return device

    def _entity_config(
        self,
        node: SupportedNode,
        kind: NodeKindSpec,
        measurement: MeasurementSpec,
        via_device: Optional[str] = None,
    ) -> dict[str, Any]:
        entity_id = self.entity_id(node.id, measurement.name)
        config = {
            "name": measurement.display_name,
            "unique_id": entity_id,
            "object_id": entity_id,
            "state_topic": self._state_topic(node.id, measurement.name),
            "availability_topic": self.config.availability_topic,
            "payload_available": "online",
            "payload_not_available": "offline",
            "device": self._device_info(node, kind, via_device),
            "origin": ORIGIN,
        }

        if measurement.value_type == ValueType.BOOLEAN:
            config["payload_on"] = "true"
            config["payload_off"] = "false"
        elif measurement.unit:
            config["unit_of_measurement"] = measurement.unit

        for key in ["device_class", "state_class", "icon"]:
            value = getattr(measurement, key)
            if value:
                config[key] = value

        return config

    def node_messages(
        self,
        node: SupportedNode,
        via_device: Optional[str] = None,
    ) -> list[DiscoveryMessage]:
        """Discovery messages for all measurements of a node.

        Args:
            node: Supported node to announce
            via_device: Identifier of the board device the node hangs off
        """
        kind = self.node_kinds.get(node.kind)
        if kind is None:
            return []

        messages = []
        for measurement in kind.measurements:
            component = (
                "binary_sensor"
                if measurement.value_type == ValueType.BOOLEAN
                else "sensor"
            )
            config = self._entity_config(node, kind, measurement, via_device)
            messages.append(
                DiscoveryMessage(
                    topic=self._discovery_topic(component, config["unique_id"]),
                    payload=json.dumps(config, sort_keys=True),
                )
            )
        return messages

    def discovery_messages(
        self,
        snapshot: Snapshot,
        registry: DiscoveryRegistry,
        force: bool = False,
    ) -> list[tuple[Any, list[DiscoveryMessage]]]:
        """Compute discovery messages for nodes that still need them.

        Args:
            snapshot: Current board snapshot
            registry: Nodes announced so far
            force: Announce every node regardless of the registry

        Returns:
            (node id, messages) pairs in snapshot order
        """
        if not self.enabled:
            return []

        # Only link nodes to the board device when it is announced too
        board = snapshot.node(DEVICE_NODE_ID)
        via_device = None
        if isinstance(board, SupportedNode):
            via_device = f"duco_{DEVICE_NODE_ID}"

        pending = []
        for node in snapshot.supported_nodes:
            if not force and node.id in registry:
                continue
            pending.append((node.id, self.node_messages(node, via_device)))
        return pending

    async def publish(
        self,
        snapshot: Snapshot,
        registry: DiscoveryRegistry,
        force: bool = False,
    ) -> int:
        """Publish discovery configs and record announced nodes.

        A node is added to the registry once all of its configs were
        published.

        Returns:
            Number of messages published

        Raises:
            PublishError: If a publish fails
        """
        count = 0
        for node_id, messages in self.discovery_messages(snapshot, registry, force):
            for message in messages:
                await self.client.publish(message.topic, message.payload, retain=True)
                count += 1
            registry.add(node_id)
            logger.info(f"Announced node {node_id} ({len(messages)} entities)")
        return count
