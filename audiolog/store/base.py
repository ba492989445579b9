"""
Document store contract: point reads, live feeds, merge-updates and
append-only collection writes.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional


# --- WRITE SENTINELS ---

class _ServerTimestamp:
    def __repr__(self):
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass
class ArrayUnion:
    """Add each value to an array field unless already present."""
    values: List[Any]


@dataclass
class ArrayRemove:
    """Remove every occurrence of each value from an array field."""
    values: List[Any]


# --- SNAPSHOTS ---

@dataclass
class DocumentSnapshot:
    id: str
    data: Optional[Dict] = None

    @property
    def exists(self) -> bool:
        return self.data is not None


@dataclass
class CollectionSnapshot:
    path: str
    docs: List[DocumentSnapshot] = field(default_factory=list)


_CLOSED = object()


class Feed:
    """
    A lazy, non-restartable async sequence of full-scope snapshots.

    The store pushes snapshots in delivery order; iteration ends once the
    feed is closed. Items queued before close are never yielded afterwards.
    """

    def __init__(self, path: str, on_close: Optional[Callable[["Feed"], None]] = None):
        self.path = path
        self._queue: asyncio.Queue = asyncio.Queue()
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, snapshot):
        if not self._closed:
            self._queue.put_nowait(snapshot)

    def push_error(self, error: Exception):
        if not self._closed:
            self._queue.put_nowait(error)

    def close(self):
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)
        if self._on_close is not None:
            self._on_close(self)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED or self._closed:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            raise item
        return item


# --- STORE ---

class DocumentStore(ABC):
    """Path-addressed document store with live feeds."""

    @abstractmethod
    async def get(self, path: str) -> DocumentSnapshot:
        """Point read of one document."""

    @abstractmethod
    def listen_document(self, path: str) -> Feed:
        """Open a feed of DocumentSnapshot; the first item is the current state."""

    @abstractmethod
    def listen_collection(self, path: str) -> Feed:
        """Open a feed of CollectionSnapshot; the first item is the current state."""

    @abstractmethod
    async def add(self, collection_path: str, data: Dict) -> str:
        """Append a document; the store assigns and returns its id."""

    @abstractmethod
    async def set(self, path: str, data: Dict, merge: bool = False):
        """Write a document, merging field-by-field when `merge` is set."""

    @abstractmethod
    async def update(self, path: str, data: Dict):
        """Update fields of an existing document."""
