"""Main application orchestrator for Duco2MQTT."""

import asyncio
import logging
import signal
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from .board.client import BoardClient
from .board.parser import SnapshotParser
from .config import AppConfig, get_config
from .exceptions import FetchError, ParseError, PublishError
from .models import DiscoveryRegistry, PublishedState, Snapshot, build_node_kinds
from .mqtt.client import ConnectionEvent, MQTTClient
from .mqtt.discovery import DiscoveryPublisher
from .mqtt.publisher import StatePublisher
from .utils.logging import setup_logging

logger = logging.getLogger(__name__)


class BridgeState(Enum):
    """Broker side state of the bridge."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class DucoBridge:
    """Main application class.

    Polls the Duco board on a fixed interval and publishes the resulting
    snapshots to MQTT. The board and the broker fail independently: a
    failed fetch skips one tick, a lost broker connection only pauses
    publishing until the MQTT client has reconnected, after which all
    state and discovery is published again.

    PublishedState and DiscoveryRegistry are only touched from the poll
    task.
    """

    def __init__(
        self,
        config: Union[AppConfig, str, None] = None,
        board: Optional[BoardClient] = None,
        mqtt: Optional[MQTTClient] = None,
    ):
        """Initialize the application.

        Args:
            config: AppConfig instance, path to YAML config file, or None for env/defaults
            board: Board client (created from config when omitted)
            mqtt: MQTT client (created from config when omitted)

        Raises:
            ConfigError: If the configuration or certificate is invalid
        """
        if isinstance(config, AppConfig):
            self.config = config
        elif isinstance(config, str):
            self.config = get_config(config)
        else:
            self.config = get_config()

        self.node_kinds = build_node_kinds(self.config.node_kinds)

        self.board = board or BoardClient.from_config(self.config.duco)
        self.mqtt = mqtt or MQTTClient(self.config.mqtt)
        self.parser = SnapshotParser(self.node_kinds)
        self.discovery = DiscoveryPublisher(self.mqtt, self.config.mqtt, self.node_kinds)
        self.publisher = StatePublisher(self.mqtt, self.config.mqtt, self.node_kinds)

        self.published = PublishedState()
        self.registry = DiscoveryRegistry()
        self.state = BridgeState.DISCONNECTED

        self._force_republish = False
        self._force_discovery = False
        self._availability: Optional[str] = None
        self._shutdown_event = asyncio.Event()

        # Statistics
        self._stats = {
            "polls": 0,
            "successful_polls": 0,
            "failed_polls": 0,
            "publishes": 0,
            "publish_errors": 0,
            "last_success": None,
            "start_time": None,
        }

    async def run(self) -> None:
        """Configure logging and signals, then serve until shutdown."""
        setup_logging(self.config.logging)

        logger.info(f"Starting Duco2MQTT for board {self.config.duco.host}")
        if self.config.duco.insecure and not self.config.duco.certificate:
            logger.warning("TLS certificate validation of the Duco board is disabled")

        self._setup_signal_handlers()
        await self.serve()

    async def serve(self) -> None:
        """Open both connections and run the poll loop until shutdown."""
        self._stats["start_time"] = datetime.now()

        try:
            async with self.board:
                self.mqtt.start()
                self.state = BridgeState.CONNECTING
                logger.info(
                    f"Starting poll loop (interval={self.config.duco.poll_interval}s)"
                )
                await self._poll_loop()
        except asyncio.CancelledError:
            logger.info("Application cancelled")
        finally:
            await self.stop()

    async def _poll_loop(self) -> None:
        """Poll, then wait for the next tick, a reconnect or shutdown."""
        while not self._shutdown_event.is_set():
            self._drain_events()
            await self.poll_once()
            await self._wait_next_tick()

    async def _wait_next_tick(self) -> None:
        """Sleep until the poll interval elapsed.

        Returns early on shutdown or when the broker (re)connected, so the
        full republish happens right away.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.duco.poll_interval

        while not self._shutdown_event.is_set():
            remaining = deadline - loop.time()
            if remaining <= 0:
                return

            event_task = asyncio.create_task(self.mqtt.events.get())
            shutdown_task = asyncio.create_task(self._shutdown_event.wait())
            done, pending = await asyncio.wait(
                {event_task, shutdown_task},
                timeout=remaining,
                return_when=asyncio.FIRST_COMPLETED,
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

            if event_task in done:
                event = event_task.result()
                self.handle_connection_event(event)
                if event == ConnectionEvent.CONNECTED:
                    return

    def _drain_events(self) -> None:
        """Apply connection events that are already queued."""
        while True:
            try:
                event = self.mqtt.events.get_nowait()
            except asyncio.QueueEmpty:
                return
            self.handle_connection_event(event)

    def handle_connection_event(self, event: ConnectionEvent) -> None:
        """Update the bridge state for a broker connection change.

        Args:
            event: Event reported by the MQTT client
        """
        if event == ConnectionEvent.CONNECTED:
            logger.info("MQTT connected, scheduling full republish")
            self.state = BridgeState.CONNECTED
            self._force_republish = True
            self._force_discovery = True
            self._availability = None
        elif self.state == BridgeState.CONNECTED:
            logger.warning("MQTT connection lost, waiting for reconnect")
            self.state = BridgeState.CONNECTING

    async def poll_once(self) -> bool:
        """Run one tick: fetch, parse and publish.

        Returns:
            True if the board was read successfully
        """
        self._stats["polls"] += 1

        try:
            snapshot = await self._fetch_snapshot()
        except (FetchError, ParseError) as e:
            self._stats["failed_polls"] += 1
            logger.warning(f"Poll #{self._stats['polls']} failed: {e}")
            await self._set_availability("offline")
            return False
        except Exception as e:
            self._stats["failed_polls"] += 1
            logger.error(f"Poll error: {e}", exc_info=True)
            await self._set_availability("offline")
            return False

        self._stats["successful_polls"] += 1
        self._stats["last_success"] = snapshot.fetched_at
        logger.debug(
            f"Snapshot: {len(snapshot.supported_nodes)} nodes, "
            f"{len(snapshot.unsupported_nodes)} unsupported"
        )

        if self.state != BridgeState.CONNECTED:
            logger.debug("Not connected to MQTT broker, nothing published")
            return True

        try:
            await self._publish_snapshot(snapshot)
        except PublishError as e:
            self._stats["publish_errors"] += 1
            logger.warning(f"Publishing failed, retrying next poll: {e}")
        except Exception as e:
            self._stats["publish_errors"] += 1
            logger.error(f"Publish error: {e}", exc_info=True)
        return True

    async def _fetch_snapshot(self) -> Snapshot:
        raw_nodes = await self.board.fetch_nodes()
        device_info = None
        if self.config.duco.device_info:
            device_info = await self.board.fetch_device_info()
        return self.parser.parse(raw_nodes, device_info)

    async def _publish_snapshot(self, snapshot: Snapshot) -> None:
        """Publish discovery and state.

        The force flags are only cleared once their pass completed.

        Raises:
            PublishError: If any publish fails
        """
        self._stats["publishes"] += await self.discovery.publish(
            snapshot, self.registry, force=self._force_discovery
        )
        self._force_discovery = False

        self._stats["publishes"] += await self.publisher.publish(
            snapshot, self.published, force=self._force_republish
        )
        self._force_republish = False

        await self._set_availability("online")

    async def _set_availability(self, status: str) -> None:
        """Publish availability when it changed."""
        if self.state != BridgeState.CONNECTED or self._availability == status:
            return

        try:
            await self.mqtt.publish_availability(status)
        except PublishError as e:
            logger.warning(f"Could not publish availability {status}: {e}")
            return
        self._availability = status

    def request_shutdown(self) -> None:
        """Let the current tick finish and start no new one."""
        self._shutdown_event.set()

    async def stop(self) -> None:
        """Stop the application gracefully."""
        logger.info("Stopping Duco2MQTT")
        self._shutdown_event.set()

        await self.mqtt.stop()
        self.state = BridgeState.DISCONNECTED

        # Log statistics
        logger.info(
            f"Statistics: polls={self._stats['polls']}, "
            f"success={self._stats['successful_polls']}, "
            f"failed={self._stats['failed_polls']}, "
            f"published={self._stats['publishes']}, "
            f"publish_errors={self._stats['publish_errors']}"
        )
        logger.info("Duco2MQTT stopped")

    def _setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def signal_handler(sig):
            logger.info(f"Received signal {sig.name}, initiating shutdown")
            self.request_shutdown()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))

    @property
    def stats(self) -> dict:
        """Get application statistics."""
        return {
            **self._stats,
            "uptime": (
                str(datetime.now() - self._stats["start_time"])
                if self._stats["start_time"]
                else None
            ),
            "published_values": len(self.published),
            "announced_nodes": len(self.registry),
        }


async def run_app(config: Union[AppConfig, str, None] = None) -> None:
    """Run the application.

    Args:
        config: AppConfig instance, path to config file, or None for env/defaults
    """
    app = DucoBridge(config)
    await app.run()
