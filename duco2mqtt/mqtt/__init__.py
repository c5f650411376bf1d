"""MQTT client, state publishing and Home Assistant discovery."""

from .client import MQTTClient, ConnectionEvent
from .publisher import StatePublisher, StateUpdate
from .discovery import DiscoveryPublisher, DiscoveryMessage

__all__ = [
    "MQTTClient",
    "ConnectionEvent",
    "StatePublisher",
    "StateUpdate",
    "DiscoveryPublisher",
    "DiscoveryMessage",
]
