"""
In-memory document store.

Used as the default local backend and as the test double. Every write
broadcasts a fresh full snapshot to the feeds open on the written document
and on its parent collection.
"""

import asyncio
import copy
import logging
import random
import string
import time
from collections import defaultdict
from typing import Callable, Dict, List, Optional

from audiolog.config import log_event
from audiolog.errors import RemoteWriteFailed
from audiolog.paths import split_path
from audiolog.store.base import (
    SERVER_TIMESTAMP,
    ArrayRemove,
    ArrayUnion,
    CollectionSnapshot,
    DocumentSnapshot,
    DocumentStore,
    Feed,
)

ID_ALPHABET = string.ascii_letters + string.digits


class InMemoryDocumentStore(DocumentStore):

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._last_timestamp = 0.0
        # collection path -> doc id -> data
        self._collections: Dict[str, Dict[str, Dict]] = defaultdict(dict)
        self._document_feeds: Dict[str, List[Feed]] = defaultdict(list)
        self._collection_feeds: Dict[str, List[Feed]] = defaultdict(list)
        self._fail_next: Optional[Exception] = None
        self._gate: Optional[asyncio.Event] = None
        self.write_count = 0

    # --- TEST & DEMO HOOKS ---

    def fail_next_write(self, error: Optional[Exception] = None):
        """Make the next write raise RemoteWriteFailed."""
        self._fail_next = error or RemoteWriteFailed("Injected write failure")

    def pause_writes(self):
        """Hold every write at its suspension point until resume_writes()."""
        self._gate = asyncio.Event()

    def resume_writes(self):
        if self._gate is not None:
            self._gate.set()
            self._gate = None

    def open_feed_count(self) -> int:
        feeds = list(self._document_feeds.values()) + list(self._collection_feeds.values())
        return sum(len(f) for f in feeds)

    # --- READS ---

    def _snapshot_document(self, path: str) -> DocumentSnapshot:
        collection_path, doc_id = split_path(path)
        data = self._collections[collection_path].get(doc_id)
        return DocumentSnapshot(id=doc_id, data=copy.deepcopy(data))

    def _snapshot_collection(self, collection_path: str) -> CollectionSnapshot:
        docs = self._collections[collection_path]
        return CollectionSnapshot(
            path=collection_path,
            docs=[DocumentSnapshot(id=doc_id, data=copy.deepcopy(docs[doc_id])) for doc_id in sorted(docs)],
        )

    async def get(self, path: str) -> DocumentSnapshot:
        return self._snapshot_document(path)

    # --- FEEDS ---

    def listen_document(self, path: str) -> Feed:
        feed = Feed(path, on_close=lambda f: self._document_feeds[path].remove(f))
        self._document_feeds[path].append(feed)
        feed.push(self._snapshot_document(path))
        log_event(logging.DEBUG, "store_feed_opened", path=path, kind="document")
        return feed

    def listen_collection(self, path: str) -> Feed:
        feed = Feed(path, on_close=lambda f: self._collection_feeds[path].remove(f))
        self._collection_feeds[path].append(feed)
        feed.push(self._snapshot_collection(path))
        log_event(logging.DEBUG, "store_feed_opened", path=path, kind="collection")
        return feed

    def _broadcast(self, path: str):
        """Push fresh snapshots of a document and its collection to their feeds."""
        collection_path, _ = split_path(path)
        for feed in list(self._document_feeds[path]):
            feed.push(self._snapshot_document(path))
        for feed in list(self._collection_feeds[collection_path]):
            feed.push(self._snapshot_collection(collection_path))
        log_event(logging.DEBUG, "store_broadcast", path=path)

    # --- WRITES ---

    def _server_time(self) -> float:
        # Non-decreasing, so concurrent writes may share a timestamp
        self._last_timestamp = max(self._clock(), self._last_timestamp)
        return self._last_timestamp

    def _resolve(self, existing: Optional[Dict], data: Dict, merge: bool) -> Dict:
        result = copy.deepcopy(existing) if existing else {}
        for key, value in data.items():
            current = result.get(key)
            if value is SERVER_TIMESTAMP:
                result[key] = self._server_time()
            elif isinstance(value, ArrayUnion):
                items = list(current) if isinstance(current, list) else []
                items.extend(v for v in value.values if v not in items)
                result[key] = items
            elif isinstance(value, ArrayRemove):
                items = list(current) if isinstance(current, list) else []
                result[key] = [v for v in items if v not in value.values]
            elif merge and isinstance(value, dict) and isinstance(current, dict):
                result[key] = self._resolve(current, value, merge=True)
            else:
                result[key] = copy.deepcopy(value)
        return result

    async def _begin_write(self, path: str):
        self.write_count += 1
        if self._gate is not None:
            await self._gate.wait()
        else:
            await asyncio.sleep(0)
        if self._fail_next is not None:
            error, self._fail_next = self._fail_next, None
            log_event(logging.DEBUG, "store_write_failed", path=path, error=str(error))
            raise error

    async def add(self, collection_path: str, data: Dict) -> str:
        await self._begin_write(collection_path)
        doc_id = "".join(random.choices(ID_ALPHABET, k=20))
        self._collections[collection_path][doc_id] = self._resolve(None, data, merge=False)
        self._broadcast(f"{collection_path}/{doc_id}")
        return doc_id

    async def set(self, path: str, data: Dict, merge: bool = False):
        await self._begin_write(path)
        collection_path, doc_id = split_path(path)
        existing = self._collections[collection_path].get(doc_id) if merge else None
        self._collections[collection_path][doc_id] = self._resolve(existing, data, merge=merge)
        self._broadcast(path)

    async def update(self, path: str, data: Dict):
        await self._begin_write(path)
        collection_path, doc_id = split_path(path)
        existing = self._collections[collection_path].get(doc_id)
        if existing is None:
            raise RemoteWriteFailed(f"No document to update: {path}")
        self._collections[collection_path][doc_id] = self._resolve(existing, data, merge=False)
        self._broadcast(path)
