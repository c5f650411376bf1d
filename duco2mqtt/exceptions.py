"""Exceptions raised by the Duco2MQTT bridge.

Only ConfigError is fatal. Everything else is raised per poll cycle and
contained by the bridge loop, which logs it and skips the tick.
"""


class Duco2MqttError(Exception):
    """Base class for all bridge errors."""


class ConfigError(Duco2MqttError):
    """Invalid or incomplete configuration detected at startup."""


class FetchError(Duco2MqttError):
    """The board could not be queried."""


class FetchNetworkError(FetchError):
    """Connection, TLS or timeout failure while talking to the board."""


class FetchHttpStatusError(FetchError):
    """The board answered with a non-success HTTP status."""

    def __init__(self, status: int, url: str = ""):
        self.status = status
        self.url = url
        super().__init__(f"HTTP {status} from {url}" if url else f"HTTP {status}")


class FetchDecodeError(FetchError):
    """The board response body was not valid JSON."""


class ParseError(Duco2MqttError):
    """The board response could not be turned into a snapshot."""


class MalformedResponseError(ParseError):
    """The response does not have the expected structure."""


class DuplicateNodeIdError(ParseError):
    """Two nodes in one response share the same id."""

    def __init__(self, node_id):
        self.node_id = node_id
        super().__init__(f"Duplicate node id: {node_id}")


class PublishError(Duco2MqttError):
    """A message could not be handed to the MQTT broker."""
