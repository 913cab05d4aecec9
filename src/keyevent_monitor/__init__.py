"""Key-event monitor.

Watches a store's keyspace-notification pub/sub stream over a minimal RESP2
client, decodes each notification into a KeyEvent, optionally enriches it
with the key's current value, and hands it to a consumer.

Usage:
    from keyevent_monitor import CommandConnection, NotificationPipeline, parse_endpoint

    endpoint = parse_endpoint("unix:/var/run/redis/redis.sock")
    async with CommandConnection(endpoint) as conn:
        pipeline = NotificationPipeline(endpoint, handle_event, lookup=conn.lookup)
        await pipeline.run()
"""

from .command import CommandConnection, fetch_value
from .config import (
    DEFAULT_PATTERN,
    Endpoint,
    MonitorConfig,
    TcpEndpoint,
    UnixEndpoint,
    parse_endpoint,
)
from .connection import Connection, ConnectionState
from .errors import (
    ConfigurationError,
    ConnectionStateError,
    EndOfStreamError,
    InvalidCommandError,
    KeyEventError,
    PipelineStateError,
    ProtocolError,
    RemoteError,
    TransportError,
)
from .events import KeyEvent
from .pipeline import NotificationPipeline, NotificationSink, PipelineState, ValueLookup
from .subscription import SubscriptionConnection

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "DEFAULT_PATTERN",
    "Endpoint",
    "MonitorConfig",
    "TcpEndpoint",
    "UnixEndpoint",
    "parse_endpoint",
    # Connections
    "CommandConnection",
    "Connection",
    "ConnectionState",
    "SubscriptionConnection",
    "fetch_value",
    # Pipeline
    "KeyEvent",
    "NotificationPipeline",
    "NotificationSink",
    "PipelineState",
    "ValueLookup",
    # Errors
    "ConfigurationError",
    "ConnectionStateError",
    "EndOfStreamError",
    "InvalidCommandError",
    "KeyEventError",
    "PipelineStateError",
    "ProtocolError",
    "RemoteError",
    "TransportError",
]
