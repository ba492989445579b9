"""
Composition root for the client side.

Builds the store, identity, proxy client, sync engine and recording
pipeline once and hands them to each other explicitly.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from audiolog.auth import AnonymousAuth
from audiolog.config import log_event, PROXY_URL, STORE_BACKEND
from audiolog.services.proxy_client import ProxyClient
from audiolog.services.recording import AudioSource, RecordingPipeline
from audiolog.services.sync import SyncEngine
from audiolog.store.base import DocumentStore
from audiolog.store.memory import InMemoryDocumentStore


@dataclass
class AudioLogClient:
    store: DocumentStore
    auth: AnonymousAuth
    proxy: ProxyClient
    engine: SyncEngine
    recorder: RecordingPipeline

    async def start(self) -> str:
        return await self.engine.start()

    async def aclose(self):
        self.engine.stop()
        await self.proxy.aclose()


def build_store(backend: str = STORE_BACKEND) -> DocumentStore:
    if backend == "firestore":
        from audiolog.store.firestore import FirestoreDocumentStore
        return FirestoreDocumentStore()
    if backend != "memory":
        raise ValueError(f"Unknown store backend: {backend}")
    return InMemoryDocumentStore()


def build_client(
    store: Optional[DocumentStore] = None,
    source: Optional[AudioSource] = None,
    proxy_url: str = PROXY_URL,
    user_id: Optional[str] = None,
) -> AudioLogClient:
    store = store or build_store()
    if source is None:
        # Imported here so headless callers never load PortAudio
        from audiolog.capture import SoundDeviceSource
        source = SoundDeviceSource()

    auth = AnonymousAuth(user_id)
    proxy = ProxyClient(auth, base_url=proxy_url)
    engine = SyncEngine(store, auth, proxy)
    recorder = RecordingPipeline(source, proxy, engine.mutations)
    log_event(logging.INFO, "client_built", store=type(store).__name__, proxy=proxy_url)
    return AudioLogClient(store=store, auth=auth, proxy=proxy, engine=engine, recorder=recorder)
