"""Notification pipeline.

Owns a SubscriptionConnection and turns every pushed notification into a
KeyEvent for a consumer callback:

    starting -> subscribed -> streaming -> stopping -> stopped

Failure policy:
- Reading/decoding failures end the run (no resubscribe). The error is
  re-raised from run() unless a stop was requested.
- Value lookup failures are logged; the event is delivered without a value.
- Sink failures are logged; the stream continues.

Usage:
    async with CommandConnection(endpoint) as conn:
        pipeline = NotificationPipeline(endpoint, print_event, lookup=conn.lookup)
        pipeline.start()
        ...
        await pipeline.stop()
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, TypeVar

from .config import DEFAULT_PATTERN, Endpoint, MonitorConfig
from .errors import KeyEventError, PipelineStateError, RemoteError
from .events import MIN_MESSAGE_PARTS, KeyEvent
from .subscription import SubscriptionConnection

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Callables may be sync or async.
NotificationSink = Callable[[KeyEvent], Awaitable[None] | None]
ValueLookup = Callable[[str], Awaitable[str | None] | str | None]


class PipelineState(str, Enum):
    """Pipeline lifecycle states."""

    IDLE = "idle"
    STARTING = "starting"
    SUBSCRIBED = "subscribed"
    STREAMING = "streaming"
    STOPPING = "stopping"
    STOPPED = "stopped"


async def _resolve(result: Awaitable[T] | T) -> T:
    if inspect.isawaitable(result):
        return await result
    return result


class NotificationPipeline:
    """Long-running loop from subscription pushes to a consumer.

    The loop is strictly sequential: one outstanding read, then lookup,
    then delivery. A stop request is observed once per message boundary;
    stop() additionally closes the connection so a blocked read returns.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        sink: NotificationSink,
        lookup: ValueLookup | None = None,
        *,
        pattern: str = DEFAULT_PATTERN,
        connect_timeout: float | None = None,
        read_timeout: float | None = None,
    ):
        self.endpoint = endpoint
        self.pattern = pattern
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self._sink = sink
        self._lookup = lookup

        self._state = PipelineState.IDLE
        self._stop_requested = False
        self._connection: SubscriptionConnection | None = None
        self._task: asyncio.Task[None] | None = None

        self.error: BaseException | None = None
        self.received = 0
        self.delivered = 0
        self.dropped = 0

    @classmethod
    def from_config(
        cls,
        config: MonitorConfig,
        sink: NotificationSink,
        lookup: ValueLookup | None = None,
    ) -> NotificationPipeline:
        return cls(
            config.endpoint,
            sink,
            lookup,
            pattern=config.pattern,
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
        )

    @property
    def state(self) -> PipelineState:
        """Current pipeline state."""
        return self._state

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def _set_state(self, state: PipelineState) -> None:
        if state != self._state:
            logger.debug(f"Pipeline {self._state.value} -> {state.value}")
            self._state = state

    async def run(self) -> None:
        """Run the pipeline until stopped or until the stream fails.

        Raises:
            PipelineStateError: If the pipeline has already run
            KeyEventError: Transport, protocol or remote failure that ended
                the run (not raised when a stop was requested)
        """
        if self._state != PipelineState.IDLE:
            raise PipelineStateError("A pipeline can only run once")

        logger.info("Starting notification pipeline...")
        self._set_state(PipelineState.STARTING)
        connection = SubscriptionConnection(
            self.endpoint,
            connect_timeout=self.connect_timeout,
            read_timeout=self.read_timeout,
        )
        self._connection = connection

        try:
            if self._stop_requested:
                return
            logger.info(f"Connecting to {self.endpoint}...")
            await connection.open()

            self._set_state(PipelineState.SUBSCRIBED)
            await connection.subscribe(self.pattern)
            logger.info(f"Subscribed to key events: {self.pattern}")

            self._set_state(PipelineState.STREAMING)
            await self._stream(connection)

        except KeyEventError as e:
            if self._stop_requested:
                logger.debug(f"Stream ended after stop request: {e}")
            else:
                self.error = e
                logger.error(f"Notification pipeline failed while {self._state.value}: {e}")
                raise

        finally:
            self._set_state(PipelineState.STOPPING)
            await connection.close()
            self._set_state(PipelineState.STOPPED)
            logger.info(
                f"Notification pipeline stopped "
                f"(received={self.received}, delivered={self.delivered}, dropped={self.dropped})"
            )

    async def _stream(self, connection: SubscriptionConnection) -> None:
        while not self._stop_requested:
            message = await connection.read_message()
            self.received += 1

            if len(message) < MIN_MESSAGE_PARTS:
                self.dropped += 1
                logger.warning(f"Received incomplete message: {message!r}")
                continue

            event = KeyEvent.from_message(message)
            if self._lookup is not None:
                event = await self._enrich(event, self._lookup)
            await self._deliver(event)

    async def _enrich(self, event: KeyEvent, lookup: ValueLookup) -> KeyEvent:
        try:
            value = await _resolve(lookup(event.key))
        except RemoteError as e:
            logger.warning(f"Value lookup for {event.key!r} rejected by store: {e}")
            return event
        except Exception as e:
            logger.exception(f"Value lookup for {event.key!r} failed: {e}")
            return event
        return event.with_value(value)

    async def _deliver(self, event: KeyEvent) -> None:
        try:
            await _resolve(self._sink(event))
        except Exception as e:
            logger.exception(f"Notification sink failed for {event.key!r}: {e}")
            return
        self.delivered += 1

    def request_stop(self) -> None:
        """Ask the loop to stop at the next message boundary."""
        self._stop_requested = True

    async def stop(self) -> None:
        """Stop the loop and close the subscription connection.

        A read already in flight observes end-of-stream and the loop exits
        without raising. Safe to call more than once.
        """
        self.request_stop()
        if self._connection is not None:
            await self._connection.close()

    def start(self) -> asyncio.Task[None]:
        """Run the pipeline in a background task."""
        if self._task is None:
            self._task = asyncio.create_task(self.run(), name="keyevent-pipeline")
        return self._task

    async def wait(self) -> None:
        """Wait for a started pipeline to finish, re-raising its failure."""
        if self._task is None:
            raise PipelineStateError("Pipeline has not been started")
        await self._task

    async def __aenter__(self) -> NotificationPipeline:
        self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()
        if self._task is not None:
            await self._task
