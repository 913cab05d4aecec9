"""Request/response connection used for key lookups."""

from __future__ import annotations

import asyncio
import logging

from .config import Endpoint
from .connection import Connection
from .errors import RemoteError
from .protocol import read_reply

logger = logging.getLogger(__name__)


class CommandConnection(Connection):
    """Persistent connection for synchronous lookups.

    Concurrent callers are serialized by an asyncio.Lock (FIFO), so each
    call's write and its reply are never interleaved with another call's.

    An error reply is consumed in full and leaves the connection usable.
    Any other failure while a reply is pending (timeout, cancellation,
    socket or decode error) marks the connection broken, and later calls
    raise ConnectionStateError. There is no automatic reconnect.

    Usage:
        async with CommandConnection(endpoint) as conn:
            value = await conn.lookup("foo")
    """

    def __init__(
        self,
        endpoint: Endpoint,
        *,
        connect_timeout: float | None = None,
        read_timeout: float | None = None,
    ):
        super().__init__(endpoint, connect_timeout=connect_timeout, read_timeout=read_timeout)
        self._lock = asyncio.Lock()

    async def lookup(self, key: str) -> str:
        """GET a key. An absent key yields the empty string."""
        value = await self._round_trip("GET", key, null="")
        return value if value is not None else ""

    async def get(self, key: str) -> str | None:
        """GET a key, returning None when the key does not exist."""
        return await self._round_trip("GET", key, null=None)

    async def _round_trip(self, verb: str, *args: str, null: str | None) -> str | None:
        async with self._lock:
            await self.send(verb, *args)
            try:
                reply = await self.receive(read_reply(self.reader, null=null), self.read_timeout)
            except RemoteError:
                raise
            except BaseException as e:
                self.mark_broken(e)
                raise
        logger.debug(f"<- {verb} reply: {reply!r}")
        return reply


async def fetch_value(
    endpoint: Endpoint,
    key: str,
    *,
    connect_timeout: float | None = None,
    read_timeout: float | None = None,
) -> str | None:
    """One-shot GET over a fresh connection.

    Returns None when the key does not exist.
    """
    async with CommandConnection(
        endpoint, connect_timeout=connect_timeout, read_timeout=read_timeout
    ) as conn:
        return await conn.get(key)
