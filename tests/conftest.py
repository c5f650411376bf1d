"""Shared fixtures: in-memory stand-ins for the board and the broker."""

import asyncio

import pytest

from duco2mqtt.config import AppConfig, MQTTConfig
from duco2mqtt.exceptions import PublishError
from duco2mqtt.models import DEFAULT_NODE_KINDS
from duco2mqtt.mqtt.client import ConnectionEvent


class FakeMQTTClient:
    """Records publishes instead of sending them."""

    def __init__(self, config: MQTTConfig):
        self.config = config
        self.events = asyncio.Queue()
        self.connected = False
        self.messages = []
        self.availability = []
        self.fail_after = None
        self.started = False
        self.stopped = False

    def start(self):
        self.started = True

    async def stop(self):
        self.stopped = True

    def connect(self):
        self.connected = True
        self.events.put_nowait(ConnectionEvent.CONNECTED)

    def disconnect(self):
        self.connected = False
        self.events.put_nowait(ConnectionEvent.DISCONNECTED)

    async def publish(self, topic, payload, retain=None, qos=None):
        if not self.connected:
            raise PublishError("Not connected to MQTT broker")
        if self.fail_after is not None and len(self.messages) >= self.fail_after:
            raise PublishError(f"Failed to publish to {topic}")
        self.messages.append((topic, payload, retain))

    async def publish_availability(self, status):
        await self.publish(self.config.availability_topic, status, retain=True)
        self.availability.append(status)

    def topics(self):
        return [topic for topic, _, _ in self.messages]

    def payloads(self):
        return {topic: payload for topic, payload, _ in self.messages}


class FakeBoard:
    """Serves canned responses, or raises a queued error."""

    def __init__(self, nodes, device_info=None):
        self.nodes = nodes
        self.device_info = device_info if device_info is not None else {}
        self.errors = []
        self.fetches = 0
        self.opened = False
        self.closed = False

    async def __aenter__(self):
        self.opened = True
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.closed = True

    async def fetch_nodes(self):
        self.fetches += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.nodes

    async def fetch_device_info(self):
        return self.device_info


def build_node(node_id, kind, **sections):
    """Build a board node entry; section values are wrapped in Val."""
    data = {"Node": node_id, "General": {"Type": {"Val": kind}}}
    for section, fields in sections.items():
        data.setdefault(section, {})
        for key, value in fields.items():
            data[section][key] = {"Val": value}
    return data


@pytest.fixture
def make_node():
    return build_node


@pytest.fixture
def node_kinds():
    return dict(DEFAULT_NODE_KINDS)


@pytest.fixture
def mqtt_config():
    return MQTTConfig(host="broker")


@pytest.fixture
def fake_mqtt(mqtt_config):
    return FakeMQTTClient(mqtt_config)


@pytest.fixture
def board_response():
    return {
        "Nodes": [
            build_node(
                1, "BOX",
                Ventilation={"State": "AUTO", "Mode": "AUTO", "TimeStateRemain": 0, "FlowLvlTgt": 30},
                General={"Identify": 0},
            ),
            build_node(
                2, "UCCO2",
                Ventilation={"State": "AUTO"},
                Sensor={"Temp": 21.0, "Co2": 512, "IaqCo2": 95},
                General={"Identify": 0},
            ),
        ]
    }


@pytest.fixture
def app_config():
    return AppConfig(
        duco={"host": "duco.local", "device_info": False},
        mqtt={"host": "broker"},
    )


@pytest.fixture
def fake_board(board_response):
    return FakeBoard(board_response)
