"""Duplicate user detection and the two-phase merge workflow.

Users are duplicates when their normalized emails collide. A merge folds the
secondary profile into the primary and then hard-deletes the secondary. The
two writes are not atomic, so each merge is journaled in ``user_merge_journal``:

``started``
    Journal written, primary untouched.
``primary_updated``
    Primary carries the merged profile; the secondary still exists.
``completed``
    Secondary deleted.
``aborted``
    The primary update failed; both records are intact.

A crash between the two writes leaves a ``started`` or ``primary_updated``
journal. :meth:`DuplicateUserService.resume_merge` finishes it by re-applying the
recorded profile update and deleting the secondary; the merge itself is never
recomputed from scratch because the primary may already hold merged values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Union

from landshare.errors import LandshareError, MergeIncompleteError, NotFoundError, ValidationError
from landshare.normalization import CanonicalUser, DuplicateGroup, UserStatus, normalize_email, normalize_user
from landshare.observability import Event, Metric, Observability, get_observability
from landshare.services.audit import AuditLog
from landshare.services.portfolio import PortfolioService
from landshare.settings import Settings, get_settings
from landshare.store.document_store import DocumentStore

LOGGER = logging.getLogger(__name__)

UserLike = Union[CanonicalUser, Mapping[str, Any]]

PHASE_STARTED = "started"
PHASE_PRIMARY_UPDATED = "primary_updated"
PHASE_COMPLETED = "completed"
PHASE_ABORTED = "aborted"
INCOMPLETE_PHASES = frozenset({PHASE_STARTED, PHASE_PRIMARY_UPDATED})

# Canonical attribute -> stored user_profiles key written on merge.
_PROFILE_FIELDS = (
    ("display_name", "full_name"),
    ("phone", "phone"),
    ("address", "address"),
    ("occupation", "occupation"),
    ("bank_name", "bank_name"),
    ("bank_account", "bank_account"),
)


def _as_user(item: UserLike) -> CanonicalUser:
    return item if isinstance(item, CanonicalUser) else normalize_user(item)


def detect_duplicates(users: Iterable[UserLike]) -> List[DuplicateGroup]:
    """Group users by normalized email, keeping only groups with 2+ members.

    Groups and their members follow first-seen input order. Users without an
    email are never grouped.
    """

    groups: Dict[str, DuplicateGroup] = {}
    for item in users:
        user = _as_user(item)
        key = normalize_email(user.email)
        if not key:
            continue
        groups.setdefault(key, DuplicateGroup(normalized_email=key)).members.append(user)
    return [group for group in groups.values() if len(group.members) > 1]


def _earliest(first: datetime | None, second: datetime | None) -> datetime | None:
    if first is None or second is None:
        return first or second
    return min(first, second)


def merge_users(primary: UserLike, secondary: UserLike) -> CanonicalUser:
    """Return the merged profile: first non-empty value wins, primary preferred.

    ``created_at`` keeps the earlier signup. Investment totals are not part of
    the profile; they are recomputed by the portfolio aggregator afterwards.
    """

    first = _as_user(primary)
    second = _as_user(secondary)
    status = first.status if first.status is not UserStatus.UNKNOWN else second.status
    return CanonicalUser(
        id=first.id,
        email=first.email or second.email,
        display_name=first.display_name or second.display_name,
        phone=first.phone or second.phone,
        address=first.address or second.address,
        occupation=first.occupation or second.occupation,
        bank_name=first.bank_name or second.bank_name,
        bank_account=first.bank_account or second.bank_account,
        status=status,
        created_at=_earliest(first.created_at, second.created_at),
        last_login=first.last_login or second.last_login,
    )


def profile_update(merged: CanonicalUser) -> Dict[str, Any]:
    """Build the partial ``user_profiles`` update that persists ``merged``.

    Empty values are left out so a merge never blanks a stored field.
    """

    update: Dict[str, Any] = {}
    for attribute, key in _PROFILE_FIELDS:
        value = getattr(merged, attribute)
        if value:
            update[key] = value
    if merged.status is not UserStatus.UNKNOWN:
        update["status"] = merged.status.value
    if merged.created_at is not None:
        update["created_at"] = merged.created_at
    update["updated_at"] = datetime.now(timezone.utc)
    return update


@dataclass(slots=True)
class MergeResult:
    """Outcome of a merge or resumed merge."""

    journal_id: str
    primary_id: str
    secondary_id: str
    phase: str
    merged: CanonicalUser | None = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "journal_id": self.journal_id,
            "primary_id": self.primary_id,
            "secondary_id": self.secondary_id,
            "phase": self.phase,
            "merged": self.merged.to_dict() if self.merged else None,
        }


class DuplicateUserService:
    """Find, merge, and delete duplicate ``user_profiles`` records."""

    def __init__(
        self,
        store: DocumentStore,
        *,
        settings: Settings | None = None,
        portfolio: PortfolioService | None = None,
        audit: AuditLog | None = None,
        observability: Observability | None = None,
    ) -> None:
        resolved = settings or get_settings()
        self._store = store
        self._collections = resolved.collections
        self._portfolio = portfolio
        self._audit = audit or AuditLog(store, collection=resolved.collections.audit_log)
        self._observability = observability or get_observability(component="duplicates", settings=resolved)

    async def list_duplicate_groups(self) -> List[DuplicateGroup]:
        """Recompute duplicate groups from the current ``user_profiles`` contents."""

        raw_users = await self._store.list(self._collections.user_profiles)
        return detect_duplicates(raw_users)

    async def _load_user(self, user_id: str) -> CanonicalUser:
        raw = await self._store.get(self._collections.user_profiles, user_id)
        if raw is None:
            raise NotFoundError(self._collections.user_profiles, user_id)
        return normalize_user(raw)

    async def _set_phase(self, journal_id: str, phase: str) -> None:
        await self._store.update(
            self._collections.merge_journal,
            journal_id,
            {"phase": phase, "updated_at": datetime.now(timezone.utc)},
        )

    async def merge(self, primary_id: str, secondary_id: str, *, operator: str) -> MergeResult:
        """Fold ``secondary_id`` into ``primary_id`` and delete the secondary.

        Raises:
            ValidationError: If the ids are empty or identical.
            NotFoundError: If either user does not exist.
            StoreError: If the primary update fails; both records stay intact.
            MergeIncompleteError: If the primary was updated but the merge could
                not be finished. Resume it with :meth:`resume_merge`.
        """

        if not primary_id or not secondary_id:
            raise ValidationError("Both primary and secondary user ids are required")
        if primary_id == secondary_id:
            raise ValidationError("Cannot merge a user into itself")

        primary = await self._load_user(primary_id)
        secondary = await self._load_user(secondary_id)
        merged = merge_users(primary, secondary)
        update = profile_update(merged)

        now = datetime.now(timezone.utc)
        journal_id = await self._store.add(
            self._collections.merge_journal,
            {
                "primaryId": primary_id,
                "secondaryId": secondary_id,
                "operator": operator,
                "phase": PHASE_STARTED,
                "profileUpdate": update,
                "created_at": now,
                "updated_at": now,
            },
        )

        try:
            await self._store.update(self._collections.user_profiles, primary_id, update)
        except LandshareError:
            LOGGER.exception("Merge %s aborted: primary %s update failed", journal_id, primary_id)
            try:
                await self._set_phase(journal_id, PHASE_ABORTED)
            except LandshareError:
                LOGGER.exception("Unable to mark merge journal %s as aborted", journal_id)
            raise

        phase = PHASE_STARTED
        try:
            await self._set_phase(journal_id, PHASE_PRIMARY_UPDATED)
            phase = PHASE_PRIMARY_UPDATED
            if await self._store.get(self._collections.user_profiles, secondary_id) is None:
                raise NotFoundError(self._collections.user_profiles, secondary_id, "Secondary user deleted mid-merge")
            await self._store.delete(self._collections.user_profiles, secondary_id)
        except NotFoundError:
            LOGGER.error("Merge %s lost a race: secondary %s already deleted", journal_id, secondary_id)
            raise
        except LandshareError as exc:
            LOGGER.error(
                "Merge %s incomplete at phase=%s: primary %s updated, secondary %s not deleted",
                journal_id,
                phase,
                primary_id,
                secondary_id,
            )
            raise MergeIncompleteError(journal_id, phase, f"Merge {journal_id} incomplete: {exc}") from exc

        await self._finish(journal_id, primary_id, secondary_id, operator=operator, action="user_merge")
        return MergeResult(
            journal_id=journal_id,
            primary_id=primary_id,
            secondary_id=secondary_id,
            phase=PHASE_COMPLETED,
            merged=merged,
        )

    async def resume_merge(self, journal_id: str, *, operator: str) -> MergeResult:
        """Finish an interrupted merge recorded in the journal.

        Only the recorded profile update (for ``started``) and the secondary
        delete are replayed; deleting an already-deleted secondary is a no-op.
        """

        journal = await self._store.get(self._collections.merge_journal, journal_id)
        if journal is None:
            raise NotFoundError(self._collections.merge_journal, journal_id)
        phase = str(journal.get("phase") or "")
        primary_id = str(journal.get("primaryId") or "")
        secondary_id = str(journal.get("secondaryId") or "")

        if phase == PHASE_COMPLETED:
            return MergeResult(journal_id=journal_id, primary_id=primary_id, secondary_id=secondary_id, phase=phase)
        if phase not in INCOMPLETE_PHASES:
            raise ValidationError(f"Merge {journal_id} is {phase or 'unknown'} and cannot be resumed")

        if phase == PHASE_STARTED:
            update = dict(journal.get("profileUpdate") or {})
            await self._store.update(self._collections.user_profiles, primary_id, update)
            await self._set_phase(journal_id, PHASE_PRIMARY_UPDATED)
        await self._store.delete(self._collections.user_profiles, secondary_id)

        await self._finish(journal_id, primary_id, secondary_id, operator=operator, action="user_merge_resumed")
        merged = normalize_user(await self._store.get(self._collections.user_profiles, primary_id) or {})
        return MergeResult(
            journal_id=journal_id,
            primary_id=primary_id,
            secondary_id=secondary_id,
            phase=PHASE_COMPLETED,
            merged=merged,
        )

    async def _finish(self, journal_id: str, primary_id: str, secondary_id: str, *, operator: str, action: str) -> None:
        try:
            await self._set_phase(journal_id, PHASE_COMPLETED)
        except LandshareError:
            LOGGER.exception("Merge %s applied but journal could not be marked completed", journal_id)
        if self._portfolio is not None:
            self._portfolio.invalidate(primary_id, secondary_id)
        await self._audit.record(
            action,
            operator=operator,
            payload={"journal_id": journal_id, "primary_id": primary_id, "secondary_id": secondary_id},
        )
        self._observability.emit_event(
            Event.USER_MERGE_COMPLETED,
            journal_id=journal_id,
            primary_id=primary_id,
            secondary_id=secondary_id,
            operator=operator,
            resumed=action != "user_merge",
        )
        self._observability.increment(Metric.USERS_MERGED)
        LOGGER.info("Merged user %s into %s (journal=%s operator=%s)", secondary_id, primary_id, journal_id, operator)

    async def list_incomplete_merges(self) -> List[Dict[str, Any]]:
        """Return journal entries left in ``started`` or ``primary_updated``."""

        journals = await self._store.list(self._collections.merge_journal)
        return [journal for journal in journals if journal.get("phase") in INCOMPLETE_PHASES]

    async def delete_duplicate(self, user_id: str, *, operator: str) -> None:
        """Hard-delete ``user_id`` regardless of its duplicate status.

        Raises:
            NotFoundError: If the user does not exist (for example it was already
                removed by a concurrent merge).
        """

        user = await self._load_user(user_id)
        await self._store.delete(self._collections.user_profiles, user_id)
        if self._portfolio is not None:
            self._portfolio.invalidate(user_id)
        await self._audit.record(
            "user_delete",
            operator=operator,
            payload={"user_id": user_id, "email": user.email},
        )
        self._observability.emit_event(Event.USER_DELETED, operator=operator, user_id=user_id)
        self._observability.increment(Metric.USERS_DELETED)
        LOGGER.info("Deleted user %s (%s) by %s", user_id, user.email, operator)


__all__ = [
    "DuplicateUserService",
    "MergeResult",
    "detect_duplicates",
    "merge_users",
    "profile_update",
]
