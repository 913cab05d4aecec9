"""Stream connection to the store.

A Connection owns exactly one socket (an asyncio reader/writer pair) from
an explicit open() to an explicit close(). It knows nothing about which
commands are sent over it; CommandConnection and SubscriptionConnection
build on it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from enum import Enum
from typing import Any, Self, TypeVar

from .config import Endpoint, TcpEndpoint, UnixEndpoint
from .errors import ConfigurationError, ConnectionStateError, TransportError
from .protocol import encode_command

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConnectionState(str, Enum):
    """Connection lifecycle."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    # Stream position unknown after a failed read/write; only close() is legal
    BROKEN = "broken"
    CLOSED = "closed"


async def open_stream(
    endpoint: Endpoint, timeout: float | None = None
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Open a stream socket to the endpoint.

    Raises:
        TransportError: If the connection cannot be established
        ConfigurationError: If the endpoint type is not supported
    """
    if isinstance(endpoint, UnixEndpoint):
        connect = asyncio.open_unix_connection(endpoint.path)
    elif isinstance(endpoint, TcpEndpoint):
        connect = asyncio.open_connection(endpoint.host, endpoint.port)
    else:
        raise ConfigurationError(f"Unsupported endpoint type: {type(endpoint).__name__}")

    try:
        return await asyncio.wait_for(connect, timeout=timeout)
    except TimeoutError as e:
        raise TransportError(f"Timed out connecting to {endpoint}") from e
    except OSError as e:
        raise TransportError(f"Failed to connect to {endpoint}: {e}") from e


class Connection:
    """A single persistent socket to the store.

    Not safe for concurrent use on its own; subclasses decide how access
    is serialized.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        *,
        connect_timeout: float | None = None,
        read_timeout: float | None = None,
    ):
        self.endpoint = endpoint
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self._state = ConnectionState.DISCONNECTED
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def reader(self) -> asyncio.StreamReader:
        if self._reader is None or not self.is_connected:
            raise ConnectionStateError(
                f"{self.__class__.__name__} is not connected ({self._state.value})"
            )
        return self._reader

    async def open(self) -> None:
        """Connect to the endpoint. Opening an open connection is a no-op."""
        if self._state == ConnectionState.CONNECTED:
            return
        if self._state in (ConnectionState.BROKEN, ConnectionState.CLOSED):
            raise ConnectionStateError(
                f"{self.__class__.__name__} is {self._state.value}; open a new connection"
            )

        reader, writer = await open_stream(self.endpoint, self.connect_timeout)
        if self._state == ConnectionState.CLOSED:
            # close() ran while the connect was in flight
            writer.close()
            await self._wait_closed(writer)
            raise ConnectionStateError(f"{self.__class__.__name__} was closed while connecting")

        self._reader, self._writer = reader, writer
        self._state = ConnectionState.CONNECTED
        logger.debug(f"{self.__class__.__name__} connected to {self.endpoint}")

    def mark_broken(self, reason: BaseException) -> None:
        """Drop the socket after a failure that left the stream mid-reply.

        Later reads and writes raise ConnectionStateError instead of
        picking up a reply meant for an earlier request. close() still
        has to be called to finish releasing the socket.
        """
        if self._state != ConnectionState.CONNECTED:
            return
        logger.warning(f"{self.__class__.__name__} to {self.endpoint} is unusable: {reason!r}")
        self._state = ConnectionState.BROKEN
        self._reader = None
        if self._writer is not None:
            self._writer.close()

    async def close(self) -> None:
        """Release the socket. Closing twice is a no-op."""
        if self._state == ConnectionState.CLOSED:
            return

        writer = self._writer
        self._state = ConnectionState.CLOSED
        self._reader = None
        self._writer = None

        if writer is None:
            return

        writer.close()
        await self._wait_closed(writer)
        logger.debug(f"{self.__class__.__name__} to {self.endpoint} closed")

    async def _wait_closed(self, writer: asyncio.StreamWriter) -> None:
        try:
            await writer.wait_closed()
        except OSError as e:
            logger.debug(f"Error while closing {self.__class__.__name__}: {e}")

    async def send(self, verb: str, *args: str) -> None:
        """Write one inline command and flush it.

        Raises:
            InvalidCommandError: If an argument cannot be encoded
            TransportError: If the write fails
        """
        payload = encode_command(verb, *args)
        if self._writer is None or not self.is_connected:
            raise ConnectionStateError(
                f"{self.__class__.__name__} is not connected ({self._state.value})"
            )

        logger.debug(f"-> {verb} {' '.join(args)}")
        try:
            self._writer.write(payload)
            await self._writer.drain()
        except OSError as e:
            self.mark_broken(e)
            raise TransportError(f"Failed to write to {self.endpoint}: {e}") from e
        except BaseException as e:
            # Cancelled mid-drain: the command may still reach the store
            self.mark_broken(e)
            raise

    async def receive(self, decode: Awaitable[T], timeout: float | None = None) -> T:
        """Await a decode call, mapping socket failures to TransportError.

        Args:
            decode: Codec coroutine reading from self.reader
            timeout: Seconds to wait, None waits forever
        """
        try:
            if timeout is None:
                return await decode
            return await asyncio.wait_for(decode, timeout=timeout)
        except TimeoutError as e:
            raise TransportError(f"Timed out waiting for a reply from {self.endpoint}") from e
        except OSError as e:
            raise TransportError(f"Failed to read from {self.endpoint}: {e}") from e

    async def __aenter__(self) -> Self:
        await self.open()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
