import asyncio

import pytest

from audiolog.errors import RemoteWriteFailed
from audiolog.store import SERVER_TIMESTAMP, ArrayRemove, ArrayUnion, InMemoryDocumentStore

COL = "artifacts/a/public/data/logs"


def test_add_assigns_id_and_server_timestamp():
    store = InMemoryDocumentStore(clock=lambda: 123.0)

    async def scenario():
        doc_id = await store.add(COL, {"text": "hi", "createdAt": SERVER_TIMESTAMP})
        snap = await store.get(f"{COL}/{doc_id}")
        return doc_id, snap

    doc_id, snap = asyncio.run(scenario())
    assert len(doc_id) == 20
    assert snap.exists
    assert snap.data == {"text": "hi", "createdAt": 123.0}


def test_server_timestamps_never_go_backwards():
    times = iter([10.0, 5.0])
    store = InMemoryDocumentStore(clock=lambda: next(times))

    async def scenario():
        a = await store.add(COL, {"t": SERVER_TIMESTAMP})
        b = await store.add(COL, {"t": SERVER_TIMESTAMP})
        return (await store.get(f"{COL}/{a}")).data["t"], (await store.get(f"{COL}/{b}")).data["t"]

    assert asyncio.run(scenario()) == (10.0, 10.0)


def test_array_union_and_remove():
    store = InMemoryDocumentStore()

    async def scenario():
        doc_id = await store.add(COL, {"likes": []})
        path = f"{COL}/{doc_id}"
        await store.update(path, {"likes": ArrayUnion(["u1"])})
        await store.update(path, {"likes": ArrayUnion(["u1"])})
        await store.update(path, {"likes": ArrayUnion(["u2"])})
        after_union = (await store.get(path)).data["likes"]
        await store.update(path, {"likes": ArrayRemove(["u1"])})
        return after_union, (await store.get(path)).data["likes"]

    after_union, after_remove = asyncio.run(scenario())
    assert after_union == ["u1", "u2"]
    assert after_remove == ["u2"]


def test_merge_set_keeps_other_fields():
    store = InMemoryDocumentStore()
    path = "artifacts/a/users/u1/settings/journey"

    async def scenario():
        await store.set(path, {"title": "T", "avatar": {"eyes": "dots", "mouth": "smile"}})
        await store.set(path, {"avatar": {"eyes": "wink"}}, merge=True)
        return (await store.get(path)).data

    data = asyncio.run(scenario())
    assert data == {"title": "T", "avatar": {"eyes": "wink", "mouth": "smile"}}


def test_update_missing_document_fails():
    store = InMemoryDocumentStore()
    with pytest.raises(RemoteWriteFailed):
        asyncio.run(store.update(f"{COL}/nope", {"likes": ArrayUnion(["u1"])}))


def test_injected_failure_applies_to_one_write():
    store = InMemoryDocumentStore()

    async def scenario():
        store.fail_next_write()
        with pytest.raises(RemoteWriteFailed):
            await store.add(COL, {"n": 1})
        await store.add(COL, {"n": 2})
        feed = store.listen_collection(COL)
        snapshot = await feed.__anext__()
        feed.close()
        return snapshot

    snapshot = asyncio.run(scenario())
    assert [d.data["n"] for d in snapshot.docs] == [2]
    assert store.write_count == 2


def test_feed_delivers_current_state_then_changes():
    store = InMemoryDocumentStore()

    async def scenario():
        feed = store.listen_collection(COL)
        first = await feed.__anext__()
        await store.add(COL, {"n": 1})
        second = await feed.__anext__()
        feed.close()
        return first, second

    first, second = asyncio.run(scenario())
    assert first.docs == []
    assert len(second.docs) == 1
    assert store.open_feed_count() == 0


def test_closed_feed_stops_iteration_and_skips_queued_items():
    store = InMemoryDocumentStore()

    async def scenario():
        feed = store.listen_collection(COL)
        feed.close()
        feed.push("late")
        return [item async for item in feed]

    assert asyncio.run(scenario()) == []
