"""
Firestore-backed document store.

Writes run on a worker thread; snapshot listeners fire on Firestore's own
thread and are handed to the event loop with call_soon_threadsafe.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from google.cloud import firestore

from audiolog.config import log_event, FIRESTORE_PROJECT
from audiolog.errors import RemoteReadFailed, RemoteWriteFailed
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


def _to_firestore(value: Any) -> Any:
    if value is SERVER_TIMESTAMP:
        return firestore.SERVER_TIMESTAMP
    if isinstance(value, ArrayUnion):
        return firestore.ArrayUnion(value.values)
    if isinstance(value, ArrayRemove):
        return firestore.ArrayRemove(value.values)
    if isinstance(value, dict):
        return {k: _to_firestore(v) for k, v in value.items()}
    return value


def _to_plain(value: Any) -> Any:
    """Firestore timestamps become float seconds; pending ones stay None."""
    if isinstance(value, datetime):
        return value.timestamp()
    if isinstance(value, dict):
        return {k: _to_plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_plain(v) for v in value]
    return value


def _document_snapshot(snap) -> DocumentSnapshot:
    data = snap.to_dict() if snap.exists else None
    return DocumentSnapshot(id=snap.id, data=_to_plain(data) if data is not None else None)


class FirestoreDocumentStore(DocumentStore):

    def __init__(self, client: Optional[firestore.Client] = None):
        self._client = client or firestore.Client(project=FIRESTORE_PROJECT)

    async def get(self, path: str) -> DocumentSnapshot:
        try:
            snap = await asyncio.to_thread(self._client.document(path).get)
        except Exception as e:
            raise RemoteReadFailed(str(e)) from e
        return _document_snapshot(snap)

    def _open_feed(self, path: str, ref, convert) -> Feed:
        loop = asyncio.get_running_loop()
        watch = None

        def on_close(feed):
            if watch is not None:
                watch.unsubscribe()
            log_event(logging.DEBUG, "firestore_feed_closed", path=path)

        feed = Feed(path, on_close=on_close)

        def on_snapshot(snapshots, changes, read_time):
            loop.call_soon_threadsafe(feed.push, convert(snapshots))

        try:
            watch = ref.on_snapshot(on_snapshot)
        except Exception as e:
            raise RemoteReadFailed(str(e)) from e
        log_event(logging.DEBUG, "firestore_feed_opened", path=path)
        return feed

    def listen_document(self, path: str) -> Feed:
        return self._open_feed(
            path,
            self._client.document(path),
            lambda snapshots: (
                _document_snapshot(snapshots[0]) if snapshots else DocumentSnapshot(id=split_path(path)[1])
            ),
        )

    def listen_collection(self, path: str) -> Feed:
        return self._open_feed(
            path,
            self._client.collection(path),
            lambda snapshots: CollectionSnapshot(
                path=path,
                docs=[_document_snapshot(s) for s in sorted(snapshots, key=lambda s: s.id)],
            ),
        )

    async def add(self, collection_path: str, data: Dict) -> str:
        try:
            _, ref = await asyncio.to_thread(self._client.collection(collection_path).add, _to_firestore(data))
        except Exception as e:
            raise RemoteWriteFailed(str(e)) from e
        return ref.id

    async def set(self, path: str, data: Dict, merge: bool = False):
        try:
            await asyncio.to_thread(self._client.document(path).set, _to_firestore(data), merge=merge)
        except Exception as e:
            raise RemoteWriteFailed(str(e)) from e

    async def update(self, path: str, data: Dict):
        try:
            await asyncio.to_thread(self._client.document(path).update, _to_firestore(data))
        except Exception as e:
            raise RemoteWriteFailed(str(e)) from e
