"""Backfill ``plot_ownership`` rows for investments that lack one.

Every ledger investment should have exactly one ownership row keyed by its
``investmentId``. The migration reads both collections once, takes the set
difference, and appends a row per missing investment. Per-investment failures
are recorded in the report and never stop the batch; rows written before a
failure or a cancellation stay in place. Because the existing set is rebuilt
from the store on every run, repeated runs converge and a run after a complete
one writes nothing.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Set

from landshare.errors import LandshareError, ValidationError
from landshare.normalization import (
    CanonicalInvestment,
    InvestmentSource,
    InvestmentStatus,
    normalize_email,
    normalize_investment,
    normalize_ownership,
    normalize_user,
)
from landshare.normalization.normalizer import clean_string
from landshare.observability import Event, Metric, Observability, get_observability
from landshare.services.audit import AuditLog
from landshare.settings import Settings, get_settings
from landshare.store.document_store import DocumentStore, RawDocument

LOGGER = logging.getLogger(__name__)

_DEFAULT_OWNERSHIP_STATUS = "active"
_DEFAULT_OWNERSHIP_TYPE = "plot_purchase"


@dataclass(slots=True)
class MigrationReport:
    """Outcome of one ownership backfill run.

    A report with ``failed > 0`` is a partial batch failure, not an exception:
    every row counted in ``created`` was written and kept.
    """

    total_investments: int = 0
    existing_ownership: int = 0
    created: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def success(self) -> bool:
        return self.failed == 0

    @property
    def message(self) -> str:
        if self.cancelled:
            return (
                f"Migration cancelled: {self.created} ownership records created, "
                f"{self.failed} failed before cancellation"
            )
        return f"Migration completed: {self.created} ownership records created, {self.failed} failed"

    def error_summary(self, limit: int = 10) -> List[str]:
        """Return at most ``limit`` errors plus a trailing count of the rest."""

        limit = max(0, limit)
        shown = self.errors[:limit]
        remaining = len(self.errors) - len(shown)
        if remaining > 0:
            shown = shown + [f"... and {remaining} more errors"]
        return shown

    def as_dict(self, *, error_limit: int | None = None) -> Dict[str, Any]:
        errors = list(self.errors) if error_limit is None else self.error_summary(error_limit)
        return {
            "success": self.success,
            "message": self.message,
            "cancelled": self.cancelled,
            "stats": {
                "total_investments": self.total_investments,
                "existing_ownership": self.existing_ownership,
                "created": self.created,
                "failed": self.failed,
                "errors": errors,
            },
        }


@dataclass(slots=True)
class MigrationStatus:
    """Read-only projection of the investments lacking an ownership row."""

    total_investments: int
    total_ownership: int
    missing_ownership: int
    sample_missing: List[RawDocument] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total_investments": self.total_investments,
            "total_ownership": self.total_ownership,
            "missing_ownership": self.missing_ownership,
            "sample_missing": self.sample_missing,
        }


def existing_investment_ids(ownership_rows: List[RawDocument]) -> Set[str]:
    """Return the investment ids that already have an ownership row."""

    ids: Set[str] = set()
    for row in ownership_rows:
        investment_id = normalize_ownership(row).investment_id
        if investment_id:
            ids.add(investment_id)
    return ids


def _first_text(raw: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = clean_string(raw.get(key))
        if value:
            return value
    return ""


def build_ownership_row(
    investment: CanonicalInvestment,
    raw_investment: Mapping[str, Any],
    *,
    user: Mapping[str, Any],
    plot: Mapping[str, Any],
    operator: str,
    now: datetime | None = None,
) -> Dict[str, Any]:
    """Compose the ``plot_ownership`` document for one investment.

    The investment's own fields win; the user and plot documents only fill in
    names and the project id. Keys are written in both camel and snake case
    because readers across the platform use either.
    """

    timestamp = now or datetime.now(timezone.utc)
    profile = normalize_user(user)
    user_email = investment.user_email or profile.email
    user_name = investment.user_name or profile.display_name
    plot_name = investment.plot_name or _first_text(plot, "name", "plotName", "plot_name")
    project_id = investment.project_id or _first_text(plot, "projectId", "project_id")
    project_name = investment.project_name or _first_text(plot, "projectName", "project_name")
    status = investment.status.value if investment.status is not InvestmentStatus.OTHER else _DEFAULT_OWNERSHIP_STATUS
    source = _first_text(raw_investment, "source", "Source") or InvestmentSource.MIGRATION.value
    created_at = investment.created_at or timestamp

    return {
        "userId": investment.user_id,
        "user_id": investment.user_id,
        "userEmail": user_email,
        "user_email": user_email,
        "userName": user_name,
        "user_name": user_name,
        "plotId": investment.plot_id,
        "plot_id": investment.plot_id,
        "plotName": plot_name,
        "plot_name": plot_name,
        "projectId": project_id,
        "project_id": project_id,
        "projectName": project_name,
        "project_name": project_name,
        "sqm": investment.area_units,
        "sqm_owned": investment.area_units,
        "amountPaid": investment.amount_paid,
        "amount_paid": investment.amount_paid,
        "pricePerSqm": investment.price_per_unit,
        "price_per_sqm": investment.price_per_unit,
        "investmentId": investment.id,
        "investment_id": investment.id,
        "status": status,
        "ownership_type": investment.investment_type or _DEFAULT_OWNERSHIP_TYPE,
        "created_at": created_at,
        "createdAt": created_at,
        "source": source,
        "original_request_id": investment.original_request_id or None,
        "migrated_by": operator,
        "migrated_at": timestamp,
    }


class OwnershipMigration:
    """Backfill ownership rows and report on the gap between the collections."""

    def __init__(
        self,
        store: DocumentStore,
        *,
        settings: Settings | None = None,
        audit: AuditLog | None = None,
        observability: Observability | None = None,
    ) -> None:
        resolved = settings or get_settings()
        self._store = store
        self._collections = resolved.collections
        self._config = resolved.migration
        self._audit = audit or AuditLog(store, collection=resolved.collections.audit_log)
        self._observability = observability or get_observability(component="migration", settings=resolved)

    async def _bulk_read(self) -> tuple[List[RawDocument], List[RawDocument]]:
        investments = await self._store.list(self._collections.investments)
        ownership = await self._store.list(self._collections.plot_ownership)
        return investments, ownership

    async def check_migration_status(self) -> MigrationStatus:
        """Count investments without an ownership row; never writes."""

        investments, ownership = await self._bulk_read()
        existing = existing_investment_ids(ownership)
        missing = [raw for raw in investments if clean_string(raw.get("id")) not in existing]
        return MigrationStatus(
            total_investments=len(investments),
            total_ownership=len(ownership),
            missing_ownership=len(missing),
            sample_missing=missing[: self._config.sample_missing_limit],
        )

    async def run_migration(
        self,
        *,
        operator: str = "system",
        cancel_event: Optional[asyncio.Event] = None,
    ) -> MigrationReport:
        """Create an ownership row for every investment still missing one.

        Args:
            operator: Identity recorded on created rows and on the audit entry.
            cancel_event: When set, no further investment is processed. Rows
                already written are kept.

        Returns:
            The :class:`MigrationReport`. Only failures of the two bulk reads
            propagate; everything per-investment lands in ``errors``.
        """

        started = time.perf_counter()
        investments, ownership = await self._bulk_read()
        existing = existing_investment_ids(ownership)
        report = MigrationReport(total_investments=len(investments), existing_ownership=len(existing))
        LOGGER.info(
            "Starting ownership migration: investments=%s existing_ownership=%s operator=%s",
            report.total_investments,
            report.existing_ownership,
            operator,
        )

        users_by_email: Dict[str, str] | None = None
        for position, raw in enumerate(investments, start=1):
            if cancel_event is not None and cancel_event.is_set():
                report.cancelled = True
                LOGGER.warning("Ownership migration cancelled after %s/%s investments", position - 1, len(investments))
                break
            investment = normalize_investment(raw)
            if investment.id in existing:
                continue
            try:
                if not investment.user_id and investment.user_email:
                    if users_by_email is None:
                        users_by_email = await self._index_users_by_email()
                    investment.user_id = users_by_email.get(investment.user_email, "")
                if not investment.user_id or not investment.plot_id:
                    raise ValidationError("Missing userId or plotId")
                user = await self._store.get(self._collections.user_profiles, investment.user_id) or {}
                plot = await self._store.get(self._collections.plots, investment.plot_id) or {}
                row = build_ownership_row(investment, raw, user=user, plot=plot, operator=operator)
                await self._store.add(self._collections.plot_ownership, row)
            except LandshareError as exc:
                report.failed += 1
                report.errors.append(f"Investment {investment.id}: {exc}")
                LOGGER.warning("[%s/%s] Investment %s failed: %s", position, len(investments), investment.id, exc)
                continue
            except Exception as exc:
                report.failed += 1
                report.errors.append(f"Investment {investment.id}: {exc}")
                LOGGER.exception("[%s/%s] Investment %s failed unexpectedly", position, len(investments), investment.id)
                continue
            existing.add(investment.id)
            report.created += 1
            LOGGER.debug("[%s/%s] Created ownership for investment %s", position, len(investments), investment.id)

        elapsed_ms = (time.perf_counter() - started) * 1000
        self._log_summary(report)
        await self._publish(report, operator=operator, elapsed_ms=elapsed_ms)
        return report

    async def _index_users_by_email(self) -> Dict[str, str]:
        index: Dict[str, str] = {}
        for raw_user in await self._store.list(self._collections.user_profiles):
            user = normalize_user(raw_user)
            email = normalize_email(user.email)
            if email and user.id:
                index.setdefault(email, user.id)
        return index

    def _log_summary(self, report: MigrationReport) -> None:
        LOGGER.info(
            "Ownership migration summary: total=%s existing=%s created=%s failed=%s cancelled=%s",
            report.total_investments,
            report.existing_ownership,
            report.created,
            report.failed,
            report.cancelled,
        )
        if report.errors:
            for line in report.error_summary(self._config.error_display_limit):
                LOGGER.warning("Migration error: %s", line)

    async def _publish(self, report: MigrationReport, *, operator: str, elapsed_ms: float) -> None:
        self._observability.emit_event(
            Event.OWNERSHIP_MIGRATION_COMPLETED,
            operator=operator,
            total_investments=report.total_investments,
            existing_ownership=report.existing_ownership,
            created=report.created,
            failed=report.failed,
            cancelled=report.cancelled,
        )
        self._observability.increment(Metric.MIGRATION_CREATED, float(report.created))
        self._observability.increment(Metric.MIGRATION_FAILED, float(report.failed))
        self._observability.record_timing(Metric.MIGRATION_DURATION_MS, elapsed_ms)
        if self._config.persist_reports:
            await self._audit.record(
                "ownership_migration",
                operator=operator,
                payload=report.as_dict(error_limit=self._config.error_display_limit),
            )


__all__ = [
    "MigrationReport",
    "MigrationStatus",
    "OwnershipMigration",
    "build_ownership_row",
    "existing_investment_ids",
]
