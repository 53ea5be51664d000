from .base import Channel, QueueMessage
from .inmemory import InMemoryChannel
from .lmdb_channel import LMDBChannel

__all__ = [
    "Channel",
    "QueueMessage",
    "InMemoryChannel",
    "LMDBChannel",
]
