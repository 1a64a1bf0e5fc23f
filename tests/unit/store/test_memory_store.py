"""Tests for the in-memory document store."""

from __future__ import annotations

import json

import pytest

from landshare.errors import NotFoundError
from landshare.store import Increment, InMemoryDocumentStore


@pytest.mark.anyio
async def test_document_id_wins_over_stored_id():
    store = InMemoryDocumentStore({"users": {"u1": {"id": "legacy", "email": "a@x.com"}}})

    (listed,) = await store.list("users")
    fetched = await store.get("users", "u1")

    assert listed["id"] == "u1"
    assert fetched == {"id": "u1", "email": "a@x.com"}


@pytest.mark.anyio
async def test_reads_return_copies():
    store = InMemoryDocumentStore({"users": {"u1": {"tags": ["a"]}}})

    fetched = await store.get("users", "u1")
    fetched["tags"].append("b")

    assert store.snapshot()["users"]["u1"]["tags"] == ["a"]


@pytest.mark.anyio
async def test_missing_collection_and_document():
    store = InMemoryDocumentStore()
    assert await store.list("nothing") == []
    assert await store.get("nothing", "x") is None


@pytest.mark.anyio
async def test_add_update_delete_cycle():
    store = InMemoryDocumentStore()
    doc_id = await store.add("plots", {"availableSqm": 100, "name": "Plot"})

    await store.update("plots", doc_id, {"availableSqm": Increment(-40), "soldSqm": Increment(40), "name": "Plot 1"})

    plot = await store.get("plots", doc_id)
    assert plot["availableSqm"] == 60.0
    assert plot["soldSqm"] == 40.0
    assert plot["name"] == "Plot 1"

    await store.delete("plots", doc_id)
    await store.delete("plots", doc_id)
    assert await store.get("plots", doc_id) is None


@pytest.mark.anyio
async def test_update_missing_document_raises():
    store = InMemoryDocumentStore()
    with pytest.raises(NotFoundError) as excinfo:
        await store.update("plots", "p9", {"name": "x"})
    assert excinfo.value.collection == "plots"
    assert excinfo.value.doc_id == "p9"


@pytest.mark.anyio
async def test_from_json_accepts_mappings_and_lists(tmp_path):
    seed = tmp_path / "seed.json"
    seed.write_text(
        json.dumps(
            {
                "user_profiles": [{"id": "u1", "email": "a@x.com"}],
                "plots": {"p1": {"name": "Plot 77"}},
            }
        ),
        encoding="utf-8",
    )

    store = InMemoryDocumentStore.from_json(seed)

    assert await store.get("user_profiles", "u1") == {"id": "u1", "email": "a@x.com"}
    assert (await store.get("plots", "p1"))["name"] == "Plot 77"
