"""Error taxonomy for the key-event monitor.

Callers branch on recoverability:
- TransportError: the socket failed (connect, read, write, timeout)
- ProtocolError: the byte stream can no longer be trusted
- RemoteError: the store answered with an error reply

All of them derive from KeyEventError so a host can catch the family.
"""

from __future__ import annotations


class KeyEventError(Exception):
    """Base class for all key-event monitor errors."""


class TransportError(KeyEventError, ConnectionError):
    """Socket-level failure. Fatal to the connection that raised it."""


class ProtocolError(KeyEventError):
    """Malformed or unexpected RESP data."""


class EndOfStreamError(ProtocolError):
    """The stream ended before a complete reply was decoded."""

    def __init__(self, message: str = "Unexpected end of stream"):
        super().__init__(message)


class RemoteError(KeyEventError):
    """Error reply (``-`` prefix) reported by the store.

    Attributes:
        message: Full error text as sent by the store (e.g. "ERR bad thing")
        prefix: First word of the message (e.g. "ERR", "WRONGTYPE")
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.prefix = message.split(" ", 1)[0] if message else ""


class InvalidCommandError(KeyEventError, ValueError):
    """A command argument cannot be sent as an inline command."""


class ConnectionStateError(KeyEventError, RuntimeError):
    """Operation is not legal in the connection's current state."""


class ConfigurationError(KeyEventError, ValueError):
    """Invalid endpoint or environment configuration."""


class PipelineStateError(KeyEventError, RuntimeError):
    """Operation is not legal in the pipeline's current state."""
