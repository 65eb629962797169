"""Tests for saved history collections."""

import pytest

from meshforge.models.generation import GeneratedResult
from meshforge.services.history.collections import HistoryCollections
from meshforge.services.history.kv_store import COLLECTIONS_KEY, InMemoryKeyValueStore
from meshforge.services.history.result_store import ResultStore


def make_result(index: int) -> GeneratedResult:
    return GeneratedResult(
        prompt=f"prompt {index}",
        model_reference=f"https://cdn.test/models/{index}.glb",
    )


@pytest.fixture
def collections(kv_store, results) -> HistoryCollections:
    return HistoryCollections(kv_store, results, limit=3)


@pytest.mark.asyncio
async def test_create_snapshots_current_history(collections, results):
    await results.add(make_result(1))
    await results.add(make_result(2))

    collection = await collections.create("  Living room  ")

    assert collection.name == "Living room"
    assert collection.id.startswith("collection_")
    assert [r.prompt for r in collection.results] == ["prompt 2", "prompt 1"]

    # Later history changes do not alter the snapshot
    await results.add(make_result(3))
    stored = await collections.get(collection.id)
    assert len(stored.results) == 2


@pytest.mark.asyncio
async def test_create_rejects_blank_name(collections, results):
    await results.add(make_result(1))

    with pytest.raises(ValueError, match="name"):
        await collections.create("   ")


@pytest.mark.asyncio
async def test_create_rejects_empty_history(collections):
    with pytest.raises(ValueError, match="empty"):
        await collections.create("Nothing yet")


@pytest.mark.asyncio
async def test_collections_are_capped_newest_first(collections, results):
    await results.add(make_result(1))

    created = [await collections.create(f"set {i}") for i in range(5)]

    listed = await collections.list_all()
    assert [c.id for c in listed] == [c.id for c in reversed(created[2:])]


@pytest.mark.asyncio
async def test_load_replaces_history(collections, results):
    await results.add(make_result(1))
    await results.add(make_result(2))
    saved = await collections.create("pair")

    await results.clear()
    await results.add(make_result(9))

    loaded = await collections.load(saved.id)

    assert [r.prompt for r in loaded] == ["prompt 2", "prompt 1"]
    assert [r.prompt for r in results.items] == ["prompt 2", "prompt 1"]


@pytest.mark.asyncio
async def test_load_unknown_collection_returns_none(collections, results):
    await results.add(make_result(1))

    assert await collections.load("collection_missing") is None
    assert len(results) == 1


@pytest.mark.asyncio
async def test_delete(collections, results):
    await results.add(make_result(1))
    saved = await collections.create("one")

    assert await collections.delete(saved.id) is True
    assert await collections.delete(saved.id) is False
    assert await collections.list_all() == []


@pytest.mark.asyncio
async def test_collections_survive_reload(kv_store, results):
    await results.add(make_result(1))
    saved = await HistoryCollections(kv_store, results).create("kept")

    reopened = HistoryCollections(kv_store, ResultStore(kv_store))

    assert [c.id for c in await reopened.list_all()] == [saved.id]


@pytest.mark.asyncio
async def test_corrupt_collections_read_as_empty(results):
    store = InMemoryKeyValueStore({COLLECTIONS_KEY: "[{\"broken\": true}]"})

    assert await HistoryCollections(store, results).list_all() == []
