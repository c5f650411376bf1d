"""Async HTTPS client for the Duco connectivity board REST API."""

import asyncio
import json
import logging
import socket
import ssl
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlsplit

import aiohttp
from aiohttp.abc import AbstractResolver
from aiohttp.resolver import DefaultResolver

from ..config import DucoConfig
from ..exceptions import (
    ConfigError,
    FetchDecodeError,
    FetchError,
    FetchHttpStatusError,
    FetchNetworkError,
)

logger = logging.getLogger(__name__)

NODES_PATH = "/info/nodes"
DEVICE_INFO_PATH = "/info"


class TrustConfig:
    """How the board's TLS certificate is validated.

    Either against a supplied CA certificate, against the system trust
    store, or (explicit opt-out only) not at all.
    """

    def __init__(self, certificate: Optional[Path] = None, insecure: bool = False):
        self.certificate = Path(certificate) if certificate else None
        self.insecure = insecure

    def ssl_context(self):
        """Build the value for aiohttp's ``ssl`` argument.

        Raises:
            ConfigError: If the certificate file cannot be loaded
        """
        if self.certificate:
            try:
                return ssl.create_default_context(cafile=str(self.certificate))
            except (OSError, ssl.SSLError) as e:
                raise ConfigError(
                    f"Cannot load certificate {self.certificate}: {e}"
                ) from e
        if self.insecure:
            return False
        return ssl.create_default_context()

    def describe(self) -> str:
        if self.certificate:
            return f"validating against {self.certificate}"
        if self.insecure:
            return "certificate validation DISABLED"
        return "validating against system trust store"


class StaticResolver(AbstractResolver):
    """Resolve the board host name to a fixed address.

    Keeps the host name in the URL, so TLS validation still checks the
    certificate against the host name.
    """

    def __init__(self, host: str, ip_address: str):
        self._host = host
        self._ip_address = ip_address
        self._fallback = DefaultResolver()

    async def resolve(self, host: str, port: int = 0, family: int = socket.AF_INET):
        if host != self._host:
            return await self._fallback.resolve(host, port, family)

        addr_family = socket.AF_INET6 if ":" in self._ip_address else socket.AF_INET
        return [
            {
                "hostname": host,
                "host": self._ip_address,
                "port": port,
                "family": addr_family,
                "proto": 0,
                "flags": socket.AI_NUMERICHOST,
            }
        ]

    async def close(self) -> None:
        await self._fallback.close()


class BoardClient:
    """Client for the board REST API.

    Performs a single GET per call; retrying is up to the caller.
    Use as an async context manager so the HTTP session is closed.
    """

    def __init__(
        self,
        host: str,
        ip_address: Optional[str] = None,
        trust: Optional[TrustConfig] = None,
        connect_timeout: float = 15.0,
        scheme: str = "https",
    ):
        """Initialize the client.

        Args:
            host: Board host name (optionally host:port)
            ip_address: Fixed address to use for the host name
            trust: TLS validation settings
            connect_timeout: Connect timeout in seconds
            scheme: URL scheme
        """
        self.host = host
        self.ip_address = ip_address
        self.trust = trust or TrustConfig()
        self.base_url = f"{scheme}://{host}"
        # A board that accepts but never answers must not stall the poll loop
        self._timeout = aiohttp.ClientTimeout(connect=connect_timeout, sock_read=connect_timeout)
        self._ssl = self.trust.ssl_context() if scheme == "https" else None
        self._session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_config(cls, config: DucoConfig) -> "BoardClient":
        """Create a client from the board configuration."""
        return cls(
            host=config.host,
            ip_address=config.ip_address,
            trust=TrustConfig(config.certificate, config.insecure),
            connect_timeout=config.connect_timeout,
        )

    async def __aenter__(self) -> "BoardClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def open(self) -> None:
        """Create the HTTP session."""
        if self._session is not None:
            return

        connector_args: dict[str, Any] = {}
        if self._ssl is not None:
            connector_args["ssl"] = self._ssl
        if self.ip_address:
            connector_args["resolver"] = StaticResolver(
                urlsplit(self.base_url).hostname, self.ip_address
            )

        self._session = aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(**connector_args),
            timeout=self._timeout,
        )
        logger.info(f"Board client for {self.base_url} ({self.trust.describe()})")

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def fetch(self, path: str) -> Any:
        """GET a path and decode the JSON body.

        Args:
            path: URL path, e.g. '/info/nodes'

        Returns:
            Decoded JSON document

        Raises:
            FetchNetworkError: On connection, TLS or timeout failures
            FetchHttpStatusError: On a non-2xx status
            FetchDecodeError: If the body is not JSON
        """
        if self._session is None:
            await self.open()

        url = f"{self.base_url}{path}"
        logger.debug(f"GET {url}")

        try:
            async with self._session.get(url) as response:
                if response.status >= 300:
                    raise FetchHttpStatusError(response.status, url)
                body = await response.read()
        except FetchError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchNetworkError(
                f"{e.__class__.__name__} while fetching {url}: {e}"
            ) from e

        try:
            return json.loads(body)
        except (UnicodeDecodeError, ValueError) as e:
            raise FetchDecodeError(f"Invalid JSON from {url}: {e}") from e

    async def fetch_nodes(self) -> Any:
        """Fetch the node list (``/info/nodes``)."""
        return await self.fetch(NODES_PATH)

    async def fetch_device_info(self) -> Any:
        """Fetch the board level record (``/info``)."""
        return await self.fetch(DEVICE_INFO_PATH)
