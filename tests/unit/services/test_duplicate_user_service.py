"""Tests for duplicate detection and the journaled merge workflow."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from landshare.errors import MergeIncompleteError, NotFoundError, StoreError, ValidationError
from landshare.normalization import UserStatus
from landshare.services.duplicates import DuplicateUserService, detect_duplicates, merge_users, profile_update
from landshare.services.portfolio import PortfolioService
from landshare.settings import reload_settings
from landshare.store.memory import InMemoryDocumentStore

T1 = datetime(2023, 1, 1, tzinfo=timezone.utc)
T2 = datetime(2024, 6, 1, tzinfo=timezone.utc)


class _FlakyStore(InMemoryDocumentStore):
    """In-memory store that fails selected writes."""

    def __init__(self, collections=None, *, fail_delete: bool = False, fail_update_in: str | None = None) -> None:
        super().__init__(collections)
        self.fail_delete = fail_delete
        self.fail_update_in = fail_update_in

    async def update(self, collection, doc_id, fields):
        if collection == self.fail_update_in:
            raise StoreError(f"update failed for {collection}/{doc_id}")
        await super().update(collection, doc_id, fields)

    async def delete(self, collection, doc_id):
        if self.fail_delete and collection == "user_profiles":
            raise StoreError(f"delete failed for {collection}/{doc_id}")
        await super().delete(collection, doc_id)


class _ConcurrentDeleteStore(InMemoryDocumentStore):
    """Simulates another operator deleting the secondary during a merge."""

    def __init__(self, collections, *, victim: str) -> None:
        super().__init__(collections)
        self.victim = victim

    async def update(self, collection, doc_id, fields):
        await super().update(collection, doc_id, fields)
        if collection == "user_profiles":
            await super().delete(collection, self.victim)


def _users():
    return {
        "user_profiles": {
            "u1": {"email": "A@X.com ", "full_name": "Ada Obi", "phone": "", "created_at": T2.isoformat()},
            "u2": {"email": "a@x.com", "phone": "123", "bank_name": "GTB", "createdAt": T1.isoformat()},
            "u3": {"email": "c@x.com", "full_name": "Chi"},
        }
    }


def _service(store, **kwargs) -> DuplicateUserService:
    return DuplicateUserService(store, settings=reload_settings(env="local"), **kwargs)


def test_detect_duplicates_groups_by_normalized_email_in_first_seen_order():
    users = [
        {"id": "a", "email": "A@X.com "},
        {"id": "b", "email": "z@x.com"},
        {"id": "c", "email": "a@x.com"},
        {"id": "d", "email": "a@x.com"},
    ]

    groups = detect_duplicates(users)

    assert len(groups) == 1
    assert groups[0].normalized_email == "a@x.com"
    assert [member.id for member in groups[0].members] == ["a", "c", "d"]


def test_detect_duplicates_ignores_missing_emails():
    assert detect_duplicates([{"id": "a"}, {"id": "b", "email": "  "}]) == []


def test_merge_users_prefers_non_empty_and_earliest_created_at():
    merged = merge_users(
        {"id": "p", "phone": "", "createdAt": T2.isoformat()},
        {"id": "s", "phone": "123", "createdAt": T1.isoformat()},
    )
    assert merged.id == "p"
    assert merged.phone == "123"
    assert merged.created_at == T1


def test_merge_users_keeps_primary_values_and_known_status():
    merged = merge_users(
        {"id": "p", "full_name": "Primary", "status": "inactive"},
        {"id": "s", "full_name": "Secondary", "status": "active", "occupation": "Engineer"},
    )
    assert merged.display_name == "Primary"
    assert merged.occupation == "Engineer"
    assert merged.status is UserStatus.INACTIVE

    unknown_primary = merge_users({"id": "p"}, {"id": "s", "isActive": True})
    assert unknown_primary.status is UserStatus.ACTIVE


def test_profile_update_never_blanks_fields():
    update = profile_update(merge_users({"id": "p", "phone": "1"}, {"id": "s"}))
    assert update["phone"] == "1"
    assert "address" not in update
    assert "status" not in update
    assert "updated_at" in update


@pytest.mark.anyio
async def test_merge_updates_primary_deletes_secondary_and_journals():
    store = InMemoryDocumentStore(_users())
    portfolio = PortfolioService(store, settings=reload_settings(env="local"))
    service = _service(store, portfolio=portfolio)
    await portfolio.summary("u1")

    result = await service.merge("u1", "u2", operator="admin@landshare.local")

    snapshot = store.snapshot()
    primary = snapshot["user_profiles"]["u1"]
    assert "u2" not in snapshot["user_profiles"]
    assert primary["phone"] == "123"
    assert primary["bank_name"] == "GTB"
    assert primary["full_name"] == "Ada Obi"
    assert primary["created_at"] == T1
    assert result.phase == "completed"
    journal = snapshot["user_merge_journal"][result.journal_id]
    assert journal["phase"] == "completed"
    assert journal["operator"] == "admin@landshare.local"
    audit = list(snapshot["admin_audit_log"].values())
    assert audit[0]["action"] == "user_merge"
    assert audit[0]["operator"] == "admin@landshare.local"
    assert "u1" not in portfolio._cache
    assert await service.list_duplicate_groups() == []


@pytest.mark.anyio
async def test_merge_rejects_self_merge_and_missing_users():
    store = InMemoryDocumentStore(_users())
    service = _service(store)

    with pytest.raises(ValidationError):
        await service.merge("u1", "u1", operator="op")
    with pytest.raises(NotFoundError):
        await service.merge("u1", "ghost", operator="op")
    assert "user_merge_journal" not in store.snapshot()


@pytest.mark.anyio
async def test_failed_primary_update_aborts_and_leaves_both_records():
    store = _FlakyStore(_users(), fail_update_in="user_profiles")
    service = _service(store)

    with pytest.raises(StoreError) as excinfo:
        await service.merge("u1", "u2", operator="op")

    assert not isinstance(excinfo.value, MergeIncompleteError)
    snapshot = store.snapshot()
    assert {"u1", "u2"} <= set(snapshot["user_profiles"])
    assert snapshot["user_profiles"]["u1"]["phone"] == ""
    (journal,) = snapshot["user_merge_journal"].values()
    assert journal["phase"] == "aborted"
    assert await service.list_incomplete_merges() == []


@pytest.mark.anyio
async def test_failed_delete_is_incomplete_and_resumable():
    store = _FlakyStore(_users(), fail_delete=True)
    service = _service(store)

    with pytest.raises(MergeIncompleteError) as excinfo:
        await service.merge("u1", "u2", operator="op")

    assert excinfo.value.phase == "primary_updated"
    incomplete = await service.list_incomplete_merges()
    assert [entry["id"] for entry in incomplete] == [excinfo.value.journal_id]
    assert store.snapshot()["user_profiles"]["u1"]["phone"] == "123"

    store.fail_delete = False
    result = await service.resume_merge(excinfo.value.journal_id, operator="op")

    assert result.phase == "completed"
    assert result.merged is not None and result.merged.phone == "123"
    assert "u2" not in store.snapshot()["user_profiles"]
    assert await service.list_incomplete_merges() == []


@pytest.mark.anyio
async def test_resume_started_merge_replays_recorded_update():
    store = InMemoryDocumentStore(_users())
    journal_id = await store.add(
        "user_merge_journal",
        {"primaryId": "u1", "secondaryId": "u2", "operator": "op", "phase": "started", "profileUpdate": {"phone": "555"}},
    )
    service = _service(store)

    result = await service.resume_merge(journal_id, operator="op2")

    snapshot = store.snapshot()
    assert result.phase == "completed"
    assert snapshot["user_profiles"]["u1"]["phone"] == "555"
    assert "u2" not in snapshot["user_profiles"]
    assert snapshot["user_merge_journal"][journal_id]["phase"] == "completed"


@pytest.mark.anyio
async def test_resume_rejects_aborted_and_unknown_journals():
    store = InMemoryDocumentStore(_users())
    journal_id = await store.add("user_merge_journal", {"primaryId": "u1", "secondaryId": "u2", "phase": "aborted"})
    service = _service(store)

    with pytest.raises(ValidationError):
        await service.resume_merge(journal_id, operator="op")
    with pytest.raises(NotFoundError):
        await service.resume_merge("missing", operator="op")


@pytest.mark.anyio
async def test_concurrent_delete_of_secondary_surfaces_not_found():
    store = _ConcurrentDeleteStore(_users(), victim="u2")
    service = _service(store)

    with pytest.raises(NotFoundError):
        await service.merge("u1", "u2", operator="op")


@pytest.mark.anyio
async def test_delete_duplicate_removes_record_and_recomputes_groups():
    store = InMemoryDocumentStore(_users())
    service = _service(store)
    assert len(await service.list_duplicate_groups()) == 1

    await service.delete_duplicate("u2", operator="op")

    assert "u2" not in store.snapshot()["user_profiles"]
    assert await service.list_duplicate_groups() == []
    (entry,) = store.snapshot()["admin_audit_log"].values()
    assert entry["action"] == "user_delete"
    assert entry["payload"]["user_id"] == "u2"

    with pytest.raises(NotFoundError):
        await service.delete_duplicate("u2", operator="op")
