"""Wire protocol layer (RESP2 subset)."""

from .resp import (
    ReplyReader,
    encode_command,
    read_multi_bulk,
    read_reply,
)

__all__ = [
    "ReplyReader",
    "encode_command",
    "read_multi_bulk",
    "read_reply",
]
