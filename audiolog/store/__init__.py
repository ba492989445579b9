"""Document store backends for AudioLog."""

from audiolog.store.base import (
    SERVER_TIMESTAMP,
    ArrayUnion,
    ArrayRemove,
    DocumentSnapshot,
    CollectionSnapshot,
    Feed,
    DocumentStore,
)
from audiolog.store.memory import InMemoryDocumentStore

__all__ = [
    "SERVER_TIMESTAMP",
    "ArrayUnion",
    "ArrayRemove",
    "DocumentSnapshot",
    "CollectionSnapshot",
    "Feed",
    "DocumentStore",
    "InMemoryDocumentStore",
]
