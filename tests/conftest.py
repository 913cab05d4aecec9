"""Pytest configuration and shared fixtures.

FakeStore is an in-process server speaking the RESP subset the monitor
uses: inline GET and PSUBSCRIBE in, RESP2 replies and pushes out.
"""

from __future__ import annotations

import asyncio
import os
import tempfile

import pytest
import pytest_asyncio

from keyevent_monitor.config import TcpEndpoint, UnixEndpoint

KEYEVENT_PATTERN = "__keyevent@*:*"


def bulk(text: str | bytes) -> bytes:
    data = text if isinstance(text, bytes) else text.encode("utf-8", "surrogateescape")
    return b"$%d\r\n%s\r\n" % (len(data), data)


def multi_bulk(*items: bytes) -> bytes:
    return b"*%d\r\n" % len(items) + b"".join(items)


class FakeStore:
    """Scriptable key-value store endpoint for tests."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.errors: dict[str, str] = {}
        self.commands: list[str] = []
        self.raw_commands: list[bytes] = []
        self.confirmation: bytes | None = None
        self.reply_delay = 0.0
        self.subscribed = asyncio.Event()
        self.connections = 0
        self._subscribers: list[asyncio.StreamWriter] = []
        self._writers: set[asyncio.StreamWriter] = set()
        self.endpoint: TcpEndpoint | UnixEndpoint | None = None
        self._server: asyncio.AbstractServer | None = None

    async def start_tcp(self) -> TcpEndpoint:
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        port = self._server.sockets[0].getsockname()[1]
        self.endpoint = TcpEndpoint("127.0.0.1", port)
        return self.endpoint

    async def start_unix(self, path: str) -> UnixEndpoint:
        self._server = await asyncio.start_unix_server(self._handle, path)
        self.endpoint = UnixEndpoint(path)
        return self.endpoint

    async def close(self) -> None:
        for writer in list(self._writers):
            writer.close()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

    async def push(self, data: bytes) -> None:
        """Send raw bytes to every subscriber."""
        for writer in self._subscribers:
            writer.write(data)
            await writer.drain()

    async def publish(
        self, channel: str, key: str | bytes, pattern: str = KEYEVENT_PATTERN
    ) -> None:
        """Push a pmessage notification."""
        await self.push(multi_bulk(bulk("pmessage"), bulk(pattern), bulk(channel), bulk(key)))

    async def drop_subscribers(self) -> None:
        """Close subscriber sockets from the store side."""
        for writer in self._subscribers:
            writer.close()
        self._subscribers.clear()

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.connections += 1
        self._writers.add(writer)
        try:
            while True:
                line = await reader.readline()
                if not line:
                    break
                self.raw_commands.append(line)
                command = line.decode("utf-8", "surrogateescape").rstrip("\r\n")
                self.commands.append(command)
                verb, *args = command.split(" ")

                if verb == "GET":
                    if self.reply_delay:
                        await asyncio.sleep(self.reply_delay)
                    writer.write(self._get_reply(args[0]))
                elif verb == "PSUBSCRIBE":
                    writer.write(
                        self.confirmation
                        or multi_bulk(bulk("psubscribe"), bulk(args[0]), b":1\r\n")
                    )
                    self._subscribers.append(writer)
                    self.subscribed.set()
                else:
                    writer.write(b"-ERR unknown command '%s'\r\n" % verb.encode())
                await writer.drain()
        except ConnectionError:
            pass
        finally:
            self._writers.discard(writer)
            writer.close()

    def _get_reply(self, key: str) -> bytes:
        if key in self.errors:
            return b"-%s\r\n" % self.errors[key].encode()
        if key in self.values:
            return bulk(self.values[key])
        return b"$-1\r\n"


@pytest_asyncio.fixture
async def fake_store():
    """FakeStore listening on a loopback TCP port."""
    store = FakeStore()
    await store.start_tcp()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def fake_unix_store():
    """FakeStore listening on a Unix domain socket."""
    if not hasattr(asyncio, "start_unix_server") or os.name != "posix":
        pytest.skip("Unix domain sockets not available")
    with tempfile.TemporaryDirectory(prefix="kem") as tmpdir:
        store = FakeStore()
        await store.start_unix(os.path.join(tmpdir, "store.sock"))
        yield store
        await store.close()


def feed(data: bytes) -> asyncio.StreamReader:
    """StreamReader preloaded with data and EOF."""
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    reader.feed_eof()
    return reader


@pytest.fixture
def make_reader():
    """Factory for preloaded StreamReaders."""
    return feed
