"""Endpoint and monitor configuration.

An endpoint is chosen once at startup and shared read-only by the command
and subscription connections. It is either a Unix domain socket path or a
TCP host/port pair; nothing about it is negotiated on the wire.

Environment variables (all optional):
    KEYEVENT_MONITOR_ENDPOINT         unix:/path, /path, host:port, tcp://host:port
    KEYEVENT_MONITOR_PATTERN          pattern passed to PSUBSCRIBE
    KEYEVENT_MONITOR_LOOKUP           1/true/yes/on or 0/false/no/off
    KEYEVENT_MONITOR_CONNECT_TIMEOUT  seconds, unset means no timeout
    KEYEVENT_MONITOR_READ_TIMEOUT     seconds, unset means no timeout
    KEYEVENT_MONITOR_LOG_LEVEL        DEBUG, INFO, WARNING, ...
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from .errors import ConfigurationError

DEFAULT_PORT = 6379
DEFAULT_SOCKET_PATH = "/var/run/redis/redis.sock"
DEFAULT_PATTERN = "__keyevent@*:*"

ENV_PREFIX = "KEYEVENT_MONITOR_"

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


@dataclass(frozen=True)
class UnixEndpoint:
    """Stream-oriented Unix domain socket."""

    path: str

    def __str__(self) -> str:
        return f"unix:{self.path}"


@dataclass(frozen=True)
class TcpEndpoint:
    """TCP host/port pair."""

    host: str
    port: int = DEFAULT_PORT

    def __str__(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


Endpoint = UnixEndpoint | TcpEndpoint


def parse_endpoint(text: str) -> Endpoint:
    """Parse an endpoint description.

    Accepted forms:
        unix:/var/run/redis/redis.sock
        unix:///var/run/redis/redis.sock
        /var/run/redis/redis.sock      (also ./relative and ~/home paths)
        tcp://127.0.0.1:6379, redis://localhost:6379
        localhost:6379, localhost, [::1]:6379

    Raises:
        ConfigurationError: If the text is not a recognizable endpoint
    """
    value = text.strip()
    if not value:
        raise ConfigurationError("Endpoint must not be empty")

    if value.startswith("unix:"):
        path = value[len("unix:") :]
        if path.startswith("//"):
            path = path[2:]
        if not path:
            raise ConfigurationError(f"Missing socket path in endpoint: {text!r}")
        return UnixEndpoint(path)

    if value.startswith(("/", ".", "~")):
        return UnixEndpoint(os.path.expanduser(value))

    for scheme in ("tcp://", "redis://"):
        if value.startswith(scheme):
            value = value[len(scheme) :].rstrip("/")
            break

    if value.startswith("["):
        host, sep, rest = value[1:].partition("]")
        if not sep or not host:
            raise ConfigurationError(f"Malformed IPv6 endpoint: {text!r}")
        if rest and not rest.startswith(":"):
            raise ConfigurationError(f"Malformed IPv6 endpoint: {text!r}")
        return TcpEndpoint(host, _parse_port(rest[1:], text) if rest else DEFAULT_PORT)

    host, sep, port = value.rpartition(":")
    if not sep:
        return TcpEndpoint(value)
    if not host or ":" in host:
        raise ConfigurationError(f"Malformed TCP endpoint: {text!r}")
    return TcpEndpoint(host, _parse_port(port, text))


def _parse_port(port: str, original: str) -> int:
    try:
        number = int(port)
    except ValueError:
        raise ConfigurationError(f"Invalid port in endpoint: {original!r}") from None
    if not 0 < number < 65536:
        raise ConfigurationError(f"Port out of range in endpoint: {original!r}")
    return number


def _parse_bool(name: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


def _parse_timeout(name: str, raw: str | None) -> float | None:
    if raw is None or not raw.strip():
        return None
    try:
        timeout = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number of seconds, got {raw!r}") from None
    if timeout <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return timeout


@dataclass
class MonitorConfig:
    """Runtime configuration for the monitor.

    Timeouts default to None: a stalled store blocks the pipeline until
    the host stops it.
    """

    endpoint: Endpoint = field(default_factory=lambda: UnixEndpoint(DEFAULT_SOCKET_PATH))
    pattern: str = DEFAULT_PATTERN
    lookup_values: bool = True
    connect_timeout: float | None = None
    read_timeout: float | None = None
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> MonitorConfig:
        """Build a configuration from KEYEVENT_MONITOR_* variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Raises:
            ConfigurationError: If any variable holds an invalid value
        """
        env = os.environ if environ is None else environ
        config = cls()

        if endpoint := env.get(f"{ENV_PREFIX}ENDPOINT"):
            config.endpoint = parse_endpoint(endpoint)
        if pattern := env.get(f"{ENV_PREFIX}PATTERN"):
            config.pattern = pattern.strip()
        if (lookup := env.get(f"{ENV_PREFIX}LOOKUP")) is not None:
            config.lookup_values = _parse_bool(f"{ENV_PREFIX}LOOKUP", lookup)

        config.connect_timeout = _parse_timeout(
            f"{ENV_PREFIX}CONNECT_TIMEOUT", env.get(f"{ENV_PREFIX}CONNECT_TIMEOUT")
        )
        config.read_timeout = _parse_timeout(
            f"{ENV_PREFIX}READ_TIMEOUT", env.get(f"{ENV_PREFIX}READ_TIMEOUT")
        )

        if log_level := env.get(f"{ENV_PREFIX}LOG_LEVEL"):
            level = log_level.strip().upper()
            if not isinstance(logging.getLevelName(level), int):
                raise ConfigurationError(f"{ENV_PREFIX}LOG_LEVEL is not a log level: {log_level!r}")
            config.log_level = level

        return config

    def to_dict(self) -> dict[str, object]:
        """Plain representation for display."""
        return {
            "endpoint": str(self.endpoint),
            "pattern": self.pattern,
            "lookup_values": self.lookup_values,
            "connect_timeout": self.connect_timeout,
            "read_timeout": self.read_timeout,
            "log_level": self.log_level,
        }
