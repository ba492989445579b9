import asyncio

import pytest

from audiolog.auth import AnonymousAuth
from audiolog.errors import ProxyFailed
from audiolog.models import Analysis
from audiolog.services.recording import AudioSource
from audiolog.services.sync import SyncEngine
from audiolog.store.memory import InMemoryDocumentStore

APP = "test-app"


async def drain(rounds: int = 10):
    """Let queued snapshot deliveries run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeProxy:
    """Stands in for ProxyClient; records calls and returns canned replies."""

    def __init__(self, analysis=None, fail=False):
        self.analysis = analysis or Analysis(transcript="hello world", milestone=False, summary="greeting")
        self.fail = fail
        self.calls = []
        self.title = {"title": "Steady Steps", "subtitle": "one log at a time"}
        self.text = "Keep going, you're doing great."

    async def _reply(self, name, arg, value):
        self.calls.append((name, arg))
        await asyncio.sleep(0)
        if self.fail:
            raise ProxyFailed(f"{name} failed")
        return value

    async def transcribe(self, audio_payload, mime_hint):
        return await self._reply("transcribe", (audio_payload, mime_hint), self.analysis)

    async def suggest_title(self, logs_text):
        return await self._reply("suggest_title", logs_text, self.title)

    async def recap(self, logs_text):
        return await self._reply("recap", logs_text, self.text)

    async def insight(self, transcript_text):
        return await self._reply("insight", transcript_text, self.text)

    async def persona(self, logs_text):
        return await self._reply("persona", logs_text, self.text)

    async def aclose(self):
        pass


class FakeSource(AudioSource):

    def __init__(self, chunks=None, mime_type="audio/webm"):
        self.chunks = [b"abc", b"def"] if chunks is None else chunks
        self.mime_type = mime_type
        self.started = False

    def start(self):
        self.started = True

    def stop(self):
        self.started = False
        return list(self.chunks), self.mime_type


def log_doc(user_id, transcript="a log", created_at=None, day_number=1, **extra):
    doc = {
        "userId": user_id,
        "userName": f"Maker {user_id[:4]}",
        "transcript": transcript,
        "milestone": False,
        "summary": "",
        "audioData": "",
        "dayNumber": day_number,
        "category": None,
        "likes": [],
        "aiInsight": None,
    }
    if created_at is not None:
        doc["createdAt"] = created_at
    doc.update(extra)
    return doc


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def proxy():
    return FakeProxy()


@pytest.fixture
def make_engine(store, proxy):
    def factory(user_id="user-alice", app_id=APP, **kwargs):
        return SyncEngine(store, AnonymousAuth(user_id), proxy, app_id=app_id, **kwargs)
    return factory
