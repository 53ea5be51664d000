from .base import ResultStore
from .inmemory import InMemoryResultStore

__all__ = [
    "ResultStore",
    "InMemoryResultStore",
]
