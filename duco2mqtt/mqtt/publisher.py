"""State publisher for MQTT."""

import logging
from typing import Mapping, NamedTuple

from ..config import MQTTConfig
from ..models.node import NodeId, Snapshot
from ..models.node_kinds import NodeKindSpec
from ..models.state import PublishedState
from .client import MQTTClient

logger = logging.getLogger(__name__)


class StateUpdate(NamedTuple):
    """One state topic that needs publishing."""
    node_id: NodeId
    measurement: str
    topic: str
    payload: str


class StatePublisher:
    """Publisher for node measurements to MQTT.

    Each measurement goes to its own topic, retained unless ``mqtt.retain``
    is off:
    ``{base_topic}/{node_id}/{measurement}``. Only values that differ from
    what was published before are sent.
    """

    def __init__(
        self,
        mqtt_client: MQTTClient,
        config: MQTTConfig,
        node_kinds: Mapping[str, NodeKindSpec],
    ):
        """Initialize the state publisher.

        Args:
            mqtt_client: MQTT client used for publishing
            config: MQTT configuration
            node_kinds: Node kind table
        """
        self.client = mqtt_client
        self.config = config
        self.node_kinds = node_kinds

    def _topic(self, node_id: NodeId, measurement: str) -> str:
        """Build a state topic.

        Args:
            node_id: Node id
            measurement: Measurement name

        Returns:
            Full topic string
        """
        return f"{self.config.base_topic}/{node_id}/{measurement}"

    def pending_updates(
        self,
        snapshot: Snapshot,
        published: PublishedState,
        force: bool = False,
    ) -> list[StateUpdate]:
        """Compute the state topics that need publishing.

        A measurement is included when forced, when it was never published,
        or when its encoded payload changed. Measurements missing from the
        snapshot are skipped, leaving the retained value in place.

        Args:
            snapshot: Current board snapshot
            published: Payloads published so far
            force: Include every present measurement

        Returns:
            Updates in snapshot and measurement order
        """
        updates = []
        for node in snapshot.supported_nodes:
            kind = self.node_kinds.get(node.kind)
            if kind is None:
                continue

            for measurement in kind.measurements:
                if measurement.name not in node.measurements:
                    continue

                payload = measurement.encode(node.measurements[measurement.name])
                if not force and published.get(node.id, measurement.name) == payload:
                    continue

                updates.append(
                    StateUpdate(
                        node_id=node.id,
                        measurement=measurement.name,
                        topic=self._topic(node.id, measurement.name),
                        payload=payload,
                    )
                )
        return updates

    async def publish(
        self,
        snapshot: Snapshot,
        published: PublishedState,
        force: bool = False,
    ) -> int:
        """Publish changed measurements.

        On ``force`` the published state is cleared first, so it ends up
        holding exactly what this call published. Each value is recorded
        only after the client confirmed its publish.

        Args:
            snapshot: Current board snapshot
            published: Payloads published so far (updated in place)
            force: Republish every present measurement

        Returns:
            Number of messages published

        Raises:
            PublishError: If a publish fails; earlier updates stay recorded
        """
        if force:
            published.clear()

        updates = self.pending_updates(snapshot, published, force)
        for update in updates:
            await self.client.publish(update.topic, update.payload, retain=self.config.retain)
            published.set(update.node_id, update.measurement, update.payload)

        if updates:
            logger.debug(f"Published {len(updates)} state updates")
        return len(updates)
