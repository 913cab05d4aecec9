"""Structured key events decoded from notification pushes.

A pattern-subscription push has the shape:
    [0]: message type ("pmessage")
    [1]: subscription pattern
    [2]: channel name (e.g. "__keyevent@0__:set")
    [3]: payload (the affected key)
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict, field_serializer

from .protocol.resp import ENCODING, ENCODING_ERRORS

MIN_MESSAGE_PARTS = 4

_DATABASE_RE = re.compile(r"@(\d+)__:")


def printable(text: str) -> str:
    """Render text for output, showing undecodable bytes as \\xNN escapes."""
    return text.encode(ENCODING, ENCODING_ERRORS).decode(ENCODING, "backslashreplace")


class KeyEvent(BaseModel):
    """A keyspace notification, optionally enriched with the key's value.

    value is None unless a lookup is configured and it succeeded.
    """

    model_config = ConfigDict(frozen=True)

    message_type: str
    pattern: str
    channel: str
    key: str
    value: str | None = None

    @classmethod
    def from_message(cls, message: Sequence[str]) -> KeyEvent:
        """Build an event from a decoded push.

        Raises:
            ValueError: If the message has fewer than four elements
        """
        if len(message) < MIN_MESSAGE_PARTS:
            raise ValueError(
                f"Notification needs {MIN_MESSAGE_PARTS} elements, got {len(message)}"
            )
        return cls(
            message_type=message[0],
            pattern=message[1],
            channel=message[2],
            key=message[3],
        )

    @field_serializer("message_type", "pattern", "channel", "key", "value", when_used="json")
    def _serialize_text(self, text: str | None) -> str | None:
        # Binary keys are surrogate-escaped, which JSON cannot carry
        return printable(text) if text is not None else None

    def with_value(self, value: str | None) -> KeyEvent:
        """Copy of this event carrying a looked-up value."""
        return self.model_copy(update={"value": value})

    @property
    def event_name(self) -> str:
        """Operation name from the channel, e.g. "set" or "expired"."""
        _, sep, name = self.channel.partition(":")
        return name if sep else self.channel

    @property
    def database(self) -> int | None:
        """Database index from a __keyevent@N__ channel."""
        match = _DATABASE_RE.search(self.channel)
        return int(match.group(1)) if match else None

    def summary(self) -> str:
        """One-line human-readable rendering."""
        return printable(
            f"Type={self.message_type}, Pattern={self.pattern}, "
            f"Channel={self.channel}, Key={self.key}, "
            f"Value={self.value if self.value is not None else ''}"
        )
