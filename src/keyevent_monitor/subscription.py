"""Dedicated pattern-subscription connection.

PSUBSCRIBE puts a store connection into a restricted mode where only
(un)subscribe commands are legal, so this connection is never used for
request/response calls. Lookups go through CommandConnection instead.
"""

from __future__ import annotations

import logging

from .config import Endpoint
from .connection import Connection
from .errors import ConnectionStateError, ProtocolError
from .protocol import read_multi_bulk

logger = logging.getLogger(__name__)

SUBSCRIBE_COMMAND = "PSUBSCRIBE"
SUBSCRIBE_CONFIRMATION = "psubscribe"


class SubscriptionConnection(Connection):
    """Pattern-subscribe once, then decode pushed messages until closed.

    A single reader is expected: exactly one read_message() may be
    outstanding at a time.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        *,
        connect_timeout: float | None = None,
        read_timeout: float | None = None,
    ):
        super().__init__(endpoint, connect_timeout=connect_timeout, read_timeout=read_timeout)
        self._pattern: str | None = None

    @property
    def pattern(self) -> str | None:
        """Pattern this connection is subscribed to, if any."""
        return self._pattern

    async def subscribe(self, pattern: str) -> list[str]:
        """Send PSUBSCRIBE and consume its confirmation.

        The confirmation is expected to look like
        ["psubscribe", pattern, subscriber_count]. read_timeout, when set,
        bounds the wait for it.

        Returns:
            The decoded confirmation

        Raises:
            ConnectionStateError: If already subscribed
            ProtocolError: If the confirmation is not a psubscribe reply
        """
        if self._pattern is not None:
            raise ConnectionStateError(f"Already subscribed to {self._pattern!r}")

        await self.send(SUBSCRIBE_COMMAND, pattern)
        confirmation = await self.receive(read_multi_bulk(self.reader), self.read_timeout)
        logger.info(f"Subscription confirmation: {' | '.join(confirmation)}")

        if not confirmation or confirmation[0].lower() != SUBSCRIBE_CONFIRMATION:
            raise ProtocolError(f"Unexpected subscription confirmation: {confirmation!r}")

        self._pattern = pattern
        return confirmation

    async def read_message(self) -> list[str]:
        """Decode the next pushed multi-bulk message.

        Blocks until a full message arrives. Closing the connection makes a
        pending call fail with EndOfStreamError.
        """
        if self._pattern is None:
            raise ConnectionStateError("subscribe() must be called before read_message()")

        return await self.receive(read_multi_bulk(self.reader))
