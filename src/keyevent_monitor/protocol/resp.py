"""Minimal RESP2 codec.

Only the subset emitted by GET and by pattern-subscription pushes is
supported. This is not a general RESP2/RESP3 implementation.

Wire format:
    outbound:  VERB ARG ARG\\r\\n            (inline command)
    inbound:   +text\\r\\n                   simple string
               :text\\r\\n                   integer (kept as text)
               -text\\r\\n                   error -> RemoteError
               $len\\r\\n<len bytes>\\r\\n    bulk string ($-1 is null)
               *count\\r\\n<count replies>   multi-bulk
"""

from __future__ import annotations

import asyncio
from typing import Protocol, runtime_checkable

from ..errors import EndOfStreamError, InvalidCommandError, ProtocolError, RemoteError

CRLF = b"\r\n"
ENCODING = "utf-8"
# Keys arrive as raw bytes; surrogateescape lets them go back out unchanged.
ENCODING_ERRORS = "surrogateescape"

SIMPLE_STRING = "+"
INTEGER = ":"
ERROR = "-"
BULK_STRING = "$"
ARRAY = "*"

_FORBIDDEN = frozenset(" \t\r\n\v\f")


@runtime_checkable
class ReplyReader(Protocol):
    """Buffered byte source the decoder reads from.

    asyncio.StreamReader satisfies this protocol.
    """

    async def readline(self) -> bytes: ...

    async def readexactly(self, n: int) -> bytes: ...


def encode_command(verb: str, *args: str) -> bytes:
    """Encode an inline command.

    Args:
        verb: Command name (e.g. "GET")
        args: Command arguments

    Returns:
        The command bytes terminated by CRLF

    Raises:
        InvalidCommandError: If a part is empty or contains whitespace/CR/LF
    """
    parts = (verb, *args)
    for part in parts:
        if not part:
            raise InvalidCommandError("Command parts must not be empty")
        if any(ch in _FORBIDDEN for ch in part):
            raise InvalidCommandError(
                f"Inline command argument contains whitespace or CR/LF: {part!r}"
            )
    return " ".join(parts).encode(ENCODING, ENCODING_ERRORS) + CRLF


def _decode(data: bytes) -> str:
    return data.decode(ENCODING, ENCODING_ERRORS)


async def _read_line(reader: ReplyReader) -> str:
    """Read one CRLF-terminated line without its terminator."""
    try:
        raw = await reader.readline()
    except (asyncio.LimitOverrunError, ValueError) as e:
        raise ProtocolError(f"Reply line too long: {e}") from e

    if not raw:
        raise EndOfStreamError()
    if not raw.endswith(b"\n"):
        # readline() returns a partial line when EOF hits mid-line
        raise EndOfStreamError("Unexpected end of stream inside a reply line")

    # Only the terminator is removed; a CR inside the text is data
    return _decode(raw[:-2] if raw.endswith(CRLF) else raw[:-1])


async def _read_exactly(reader: ReplyReader, length: int) -> bytes:
    try:
        return await reader.readexactly(length)
    except asyncio.IncompleteReadError as e:
        raise EndOfStreamError(
            f"Unexpected end of stream while reading bulk string "
            f"({len(e.partial)} of {length} bytes)"
        ) from e


def _parse_int(text: str, what: str) -> int:
    try:
        return int(text)
    except ValueError:
        raise ProtocolError(f"Invalid {what}: {text!r}") from None


async def read_reply(reader: ReplyReader, *, null: str | None = "") -> str | None:
    """Decode one reply object.

    Args:
        reader: Buffered source positioned at the start of a reply
        null: Value returned for a null bulk string ($-1). Defaults to ""
            so that absent and empty values collapse; pass None to keep
            them apart.

    Returns:
        The decoded text

    Raises:
        RemoteError: The store sent an error reply
        EndOfStreamError: The stream ended mid-reply
        ProtocolError: The reply is malformed
    """
    line = await _read_line(reader)
    if not line:
        raise ProtocolError("Empty reply line")

    prefix, rest = line[0], line[1:]

    if prefix in (SIMPLE_STRING, INTEGER):
        return rest

    if prefix == ERROR:
        raise RemoteError(rest)

    if prefix == BULK_STRING:
        length = _parse_int(rest, "bulk string length")
        if length == -1:
            return null
        if length < 0:
            raise ProtocolError(f"Invalid bulk string length: {length}")
        data = await _read_exactly(reader, length)
        # Terminator is fixed-width; its content is not checked.
        await _read_exactly(reader, len(CRLF))
        return _decode(data)

    raise ProtocolError(f"Unexpected RESP type: {prefix!r}")


async def read_multi_bulk(reader: ReplyReader) -> list[str]:
    """Decode a multi-bulk (array) message.

    Every element is decoded with read_reply(); null bulk elements become "".

    Raises:
        EndOfStreamError: The stream ended before all elements arrived
        ProtocolError: The header is missing, malformed, or negative
        RemoteError: An element is an error reply
    """
    header = await _read_line(reader)
    if not header or header[0] != ARRAY:
        raise ProtocolError(f"Expected multi-bulk header starting with '*', got {header!r}")

    count = _parse_int(header[1:], "multi-bulk header count")
    if count < 0:
        raise ProtocolError(f"Invalid multi-bulk header count: {count}")

    message: list[str] = []
    for _ in range(count):
        element = await read_reply(reader)
        message.append(element if element is not None else "")
    return message
