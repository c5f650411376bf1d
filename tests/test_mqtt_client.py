"""Tests for the MQTT client wrapper."""

import asyncio

import aiomqtt
import pytest

from duco2mqtt.config import MQTTConfig
from duco2mqtt.exceptions import PublishError
from duco2mqtt.mqtt.client import ConnectionEvent, MQTTClient


class RecordingClient:
    """Stands in for a connected aiomqtt.Client."""

    def __init__(self, error=None):
        self.error = error
        self.published = []

    async def publish(self, topic, payload=None, qos=0, retain=False):
        if self.error:
            raise self.error
        self.published.append((topic, payload, qos, retain))


class ScriptedConnection:
    """Stands in for an aiomqtt.Client context that drops on request."""

    def __init__(self, error=None):
        self.error = error
        self.drop = None
        self.published = []

    async def __aenter__(self):
        if self.error:
            raise self.error
        self.drop = asyncio.Event()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    @property
    def messages(self):
        return self._messages()

    async def _messages(self):
        await self.drop.wait()
        raise aiomqtt.MqttError("connection lost")
        yield

    async def publish(self, topic, payload=None, qos=0, retain=False):
        self.published.append((topic, payload, qos, retain))


@pytest.fixture
def client(mqtt_config):
    return MQTTClient(mqtt_config)


def attach(client, underlying):
    client._client = underlying
    client._set_connected(True)


class TestMQTTClient:
    """Tests for MQTTClient."""

    def test_publish_not_connected(self, client):
        """Test publishing without a connection fails."""
        with pytest.raises(PublishError):
            asyncio.run(client.publish("duco/1/co2", "600"))

    def test_connection_events(self, client):
        """Test each transition is reported once."""
        client._set_connected(True)
        client._set_connected(True)
        client._set_connected(False)

        assert client.events.get_nowait() == ConnectionEvent.CONNECTED
        assert client.events.get_nowait() == ConnectionEvent.DISCONNECTED
        assert client.events.empty()
        assert not client.connected

    def test_publish_payloads(self, client):
        """Test payload encoding and config defaults."""
        underlying = RecordingClient()
        attach(client, underlying)

        asyncio.run(client.publish("a", "21.0"))
        asyncio.run(client.publish("b", True, retain=False, qos=0))
        asyncio.run(client.publish("c", {"x": 1}))

        assert underlying.published == [
            ("a", "21.0", 1, True),
            ("b", "true", 0, False),
            ("c", '{"x": 1}', 1, True),
        ]

    def test_publish_error(self, client):
        """Test library errors become PublishError."""
        attach(client, RecordingClient(error=aiomqtt.MqttError("connection lost")))

        with pytest.raises(PublishError, match="duco/1/co2"):
            asyncio.run(client.publish("duco/1/co2", "600"))

    def test_availability(self, client):
        """Test availability goes to the retained state topic."""
        underlying = RecordingClient()
        attach(client, underlying)

        asyncio.run(client.publish_availability("online"))

        assert underlying.published == [("duco/state", "online", 1, True)]

    def test_stop_publishes_offline(self, client):
        """Test stopping a connected client marks the bridge offline."""
        underlying = RecordingClient()
        attach(client, underlying)

        asyncio.run(client.stop())

        assert underlying.published == [("duco/state", "offline", 1, True)]


class TestConnectionLoop:
    """Tests for the connect and reconnect task."""

    @pytest.fixture
    def client(self):
        return MQTTClient(MQTTConfig(host="broker", reconnect_interval=0.01))

    @staticmethod
    async def next_event(client):
        return await asyncio.wait_for(client.events.get(), timeout=1)

    def test_reconnect_after_drop(self, client):
        """Test a refused and a dropped connection are both retried."""
        first = ScriptedConnection()
        second = ScriptedConnection()
        attempts = [ScriptedConnection(error=aiomqtt.MqttError("refused")), first, second]
        client._create_client = lambda: attempts.pop(0)

        async def run():
            client.start()
            assert await self.next_event(client) == ConnectionEvent.CONNECTED
            assert client._client is first

            first.drop.set()
            assert await self.next_event(client) == ConnectionEvent.DISCONNECTED
            assert await self.next_event(client) == ConnectionEvent.CONNECTED
            assert client._client is second

            await client.stop()

        asyncio.run(run())

        assert attempts == []
        assert first.published == []
        assert second.published == [("duco/state", "offline", 1, True)]
        assert client._task is None
        assert not client.connected

    def test_unexpected_error_retried(self, client):
        """Test the task keeps running after a non-MQTT error."""
        connection = ScriptedConnection()
        attempts = [ScriptedConnection(error=RuntimeError("boom")), connection]
        client._create_client = lambda: attempts.pop(0)

        async def run():
            client.start()
            assert await self.next_event(client) == ConnectionEvent.CONNECTED
            assert not client._task.done()
            await client.stop()

        asyncio.run(run())

        assert attempts == []
        assert connection.published == [("duco/state", "offline", 1, True)]
