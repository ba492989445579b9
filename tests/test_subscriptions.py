import asyncio

from audiolog import paths
from audiolog.services.subscriptions import Scope, SubscriptionManager
from audiolog.state import MirrorState
from audiolog.store import SERVER_TIMESTAMP, CollectionSnapshot, DocumentSnapshot, InMemoryDocumentStore

from conftest import APP, drain, log_doc


def _manager(store):
    return SubscriptionManager(store, MirrorState(), app_id=APP)


def test_second_subscribe_reuses_the_open_feed(store):
    manager = _manager(store)

    async def scenario():
        first = manager.subscribe(Scope.public_logs())
        second = manager.subscribe(Scope.public_logs())
        await drain()
        count = store.open_feed_count()
        manager.close_all()
        return first, second, count

    first, second, count = asyncio.run(scenario())
    assert first is second
    assert count == 1
    assert store.open_feed_count() == 0


def test_logs_sorted_newest_first_with_unconfirmed_last(store):
    manager = _manager(store)
    col = paths.logs_col(APP)

    async def scenario():
        manager.subscribe(Scope.public_logs())
        await store.add(col, log_doc("u1", transcript="old", created_at=100.0))
        await store.add(col, log_doc("u1", transcript="pending"))
        await store.add(col, log_doc("u2", transcript="new", created_at=200.0))
        await drain()
        transcripts = [log.transcript for log in manager.mirror.logs]
        manager.close_all()
        return transcripts

    assert asyncio.run(scenario()) == ["new", "old", "pending"]


def test_comments_oldest_first_ties_in_id_order():
    store = InMemoryDocumentStore(clock=lambda: 50.0)
    manager = _manager(store)
    col = paths.comments_col("log1", APP)

    async def scenario():
        manager.subscribe(Scope.comments("log1"))
        for text in ("one", "two", "three"):
            await store.add(col, {"userId": "u", "userName": "Maker u", "text": text, "timestamp": SERVER_TIMESTAMP})
        await store.set(f"{col}/zzzzzzzzzzzzzzzzzzzz", {"userId": "u", "userName": "Maker u", "text": "early", "timestamp": 10.0})
        await drain()
        comments = manager.mirror.comments["log1"]
        manager.close_all()
        return comments

    comments = asyncio.run(scenario())
    assert comments[0].text == "early"
    same_time = comments[1:]
    assert [c.id for c in same_time] == sorted(c.id for c in same_time)


def test_snapshot_replaces_mirror_wholesale(store):
    manager = _manager(store)

    async def scenario():
        manager.subscribe(Scope.public_logs())
        await drain()
        sub = manager.get(Scope.public_logs())
        sub.deliver(CollectionSnapshot(path="x", docs=[DocumentSnapshot("a", log_doc("u1", transcript="only"))]))
        logs = list(manager.mirror.logs)
        manager.close_all()
        return logs

    logs = asyncio.run(scenario())
    assert [log.transcript for log in logs] == ["only"]


def test_settings_snapshot_merges_into_mirror(store):
    manager = _manager(store)
    path = paths.settings_doc("u1", APP)

    async def scenario():
        manager.subscribe(Scope.settings("u1"))
        await store.set(path, {"category": "music", "avatar": {"eyes": "stars"}}, merge=True)
        await drain()
        settings = manager.mirror.settings
        manager.close_all()
        return settings

    settings = asyncio.run(scenario())
    assert settings.category == "music"
    assert settings.avatar.eyes == "stars"
    assert settings.avatar.mouth == "smile"
    assert settings.title == "My Journey"


def test_late_snapshot_after_unsubscribe_is_ignored(store):
    manager = _manager(store)
    scope = Scope.comments("log1")

    async def scenario():
        sub = manager.subscribe(scope)
        await drain()
        assert "log1" in manager.mirror.comments
        manager.unsubscribe(scope)
        late = CollectionSnapshot(path="x", docs=[DocumentSnapshot("c1", {"text": "zombie"})])
        return sub.deliver(late)

    applied = asyncio.run(scenario())
    assert applied is False
    assert "log1" not in manager.mirror.comments


def test_queued_snapshot_is_dropped_when_thread_closes_first(store):
    manager = _manager(store)
    scope = Scope.comments("log1")
    col = paths.comments_col("log1", APP)

    async def scenario():
        manager.subscribe(scope)
        await drain()
        await store.add(col, {"userId": "u", "userName": "Maker u", "text": "hi", "timestamp": SERVER_TIMESTAMP})
        # Snapshot is queued on the feed but not yet delivered
        manager.unsubscribe(scope)
        await drain()

    asyncio.run(scenario())
    assert "log1" not in manager.mirror.comments
    assert store.open_feed_count() == 0


def test_listeners_hear_every_applied_snapshot(store):
    manager = _manager(store)
    seen = []
    manager.add_listener(seen.append)

    async def scenario():
        manager.subscribe(Scope.public_logs())
        await store.add(paths.logs_col(APP), log_doc("u1", created_at=1.0))
        await drain()
        manager.unsubscribe(Scope.public_logs())

    asyncio.run(scenario())
    assert seen.count(Scope.public_logs()) == 3  # initial, after add, after close


def test_unsubscribe_unknown_scope_is_noop(store):
    manager = _manager(store)
    assert manager.unsubscribe(Scope.comments("never-opened")) is False
