"""Async MQTT client wrapper."""

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Optional

import aiomqtt

from ..config import MQTTConfig
from ..exceptions import PublishError

logger = logging.getLogger(__name__)


class ConnectionEvent(Enum):
    """Broker connection transitions reported to the bridge."""
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class MQTTClient:
    """Async MQTT client with its own connection task.

    Wraps aiomqtt. ``start()`` spawns a task that connects, keeps the
    connection's read loop running and reconnects after a fixed interval
    whenever the connection drops. Connection changes are put on the
    ``events`` queue.
    """

    def __init__(self, config: MQTTConfig):
        """Initialize the MQTT client.

        Args:
            config: MQTT configuration
        """
        self.config = config
        self.events: asyncio.Queue[ConnectionEvent] = asyncio.Queue()
        self._client: Optional[aiomqtt.Client] = None
        self._connected = False
        self._task: Optional[asyncio.Task] = None

    @property
    def connected(self) -> bool:
        """Check if connected to MQTT broker."""
        return self._connected

    @property
    def availability_topic(self) -> str:
        """Get the availability topic."""
        return self.config.availability_topic

    def _create_client(self) -> aiomqtt.Client:
        return aiomqtt.Client(
            hostname=self.config.host,
            port=self.config.port,
            username=self.config.username,
            password=self.config.password,
            identifier=self.config.client_id,
            max_queued_outgoing_messages=self.config.max_queued_messages,
            # Last Will and Testament for availability
            will=aiomqtt.Will(
                topic=self.availability_topic,
                payload="offline",
                qos=self.config.qos,
                retain=True,
            ),
        )

    def start(self) -> None:
        """Start the connection task."""
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name="mqtt-connection")

    async def _run(self) -> None:
        """Connect, wait for the connection to drop, repeat."""
        while True:
            logger.info(f"Connecting to MQTT broker at {self.config.host}:{self.config.port}")
            try:
                async with self._create_client() as client:
                    self._client = client
                    self._set_connected(True)
                    logger.info("Connected to MQTT broker")

                    # Nothing is subscribed; iterating only ends when the
                    # connection is lost.
                    async for _ in client.messages:
                        pass
            except aiomqtt.MqttError as e:
                logger.warning(f"MQTT connection error: {e}")
            except Exception as e:
                logger.error(f"Unexpected MQTT client error: {e}", exc_info=True)
            finally:
                self._client = None
                self._set_connected(False)

            logger.info(f"Reconnecting to MQTT broker in {self.config.reconnect_interval}s")
            await asyncio.sleep(self.config.reconnect_interval)

    def _set_connected(self, connected: bool) -> None:
        if connected == self._connected:
            return
        self._connected = connected
        self.events.put_nowait(
            ConnectionEvent.CONNECTED if connected else ConnectionEvent.DISCONNECTED
        )

    async def stop(self) -> None:
        """Publish offline and close the connection."""
        if self._connected:
            try:
                await self.publish_availability("offline")
            except PublishError as e:
                logger.warning(f"Could not publish offline status: {e}")

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Disconnected from MQTT broker")

    async def publish(
        self,
        topic: str,
        payload: Any,
        retain: Optional[bool] = None,
        qos: Optional[int] = None,
    ) -> None:
        """Publish a message and wait until the client confirms it.

        Args:
            topic: MQTT topic
            payload: Message payload (will be JSON-encoded if dict/list)
            retain: Whether to retain the message (default from config)
            qos: QoS level (default from config)

        Raises:
            PublishError: If not connected or the publish failed
        """
        client = self._client
        if client is None or not self._connected:
            raise PublishError("Not connected to MQTT broker")

        if retain is None:
            retain = self.config.retain
        if qos is None:
            qos = self.config.qos

        # Convert payload to string
        if isinstance(payload, (dict, list)):
            payload_str = json.dumps(payload)
        elif isinstance(payload, bool):
            payload_str = "true" if payload else "false"
        elif payload is None:
            payload_str = ""
        else:
            payload_str = str(payload)

        try:
            await client.publish(
                topic,
                payload=payload_str,
                qos=qos,
                retain=retain,
            )
        except aiomqtt.MqttError as e:
            raise PublishError(f"Failed to publish to {topic}: {e}") from e
        logger.debug(f"Published to {topic}: {payload_str[:100]}")

    async def publish_availability(self, status: str) -> None:
        """Publish availability status.

        Args:
            status: "online" or "offline"
        """
        await self.publish(
            self.availability_topic,
            status,
            retain=True,
        )
        logger.info(f"Published availability: {status}")
