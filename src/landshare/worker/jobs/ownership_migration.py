"""Cloud Run job entrypoint for the scheduled ownership backfill."""

from __future__ import annotations

import asyncio
import logging
import os
import sys

from landshare.errors import LandshareError
from landshare.services.factories import build_document_store
from landshare.services.migration import MigrationReport, OwnershipMigration
from landshare.settings import Settings, get_settings

LOGGER = logging.getLogger("landshare.worker.jobs.ownership_migration")
_BOOL_TRUE = {"1", "true", "yes", "on"}
_DEFAULT_OPERATOR = "ownership-migration-job"


def _configure_logging() -> None:
    level_name = os.getenv("LANDSHARE_RUNTIME__LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _BOOL_TRUE


def _resolve_operator() -> str:
    raw = os.getenv("LANDSHARE_MIGRATION_JOB__OPERATOR", "").strip()
    return raw or _DEFAULT_OPERATOR


def _build_migration(settings: Settings) -> OwnershipMigration:
    return OwnershipMigration(build_document_store(settings), settings=settings)


def _log_report(report: MigrationReport, settings: Settings) -> None:
    LOGGER.info(
        "Ownership migration finished: total=%s existing=%s created=%s failed=%s",
        report.total_investments,
        report.existing_ownership,
        report.created,
        report.failed,
    )
    if not report.success:
        LOGGER.warning(
            "Partial failure: %s", "; ".join(report.error_summary(settings.migration.error_display_limit))
        )


def main() -> int:
    """Entry point executed by the Cloud Run job container."""

    _configure_logging()

    try:
        settings = get_settings()
    except Exception:
        LOGGER.exception("Unable to load settings for ownership migration job")
        return 1

    try:
        migration = _build_migration(settings)
    except (ValueError, NotImplementedError) as exc:
        LOGGER.error("Invalid ownership migration configuration: %s", exc)
        return 1

    dry_run = _env_bool("LANDSHARE_MIGRATION_JOB__DRY_RUN", False)
    operator = _resolve_operator()
    LOGGER.info(
        "Starting ownership migration job: backend=%s operator=%s dry_run=%s",
        settings.storage.backend,
        operator,
        dry_run,
    )

    if dry_run:
        try:
            status = asyncio.run(migration.check_migration_status())
        except LandshareError:
            LOGGER.exception("Ownership migration status check failed")
            return 1
        LOGGER.info(
            "Dry run: %s of %s investments missing ownership rows; skipping writes.",
            status.missing_ownership,
            status.total_investments,
        )
        return 0

    try:
        report = asyncio.run(migration.run_migration(operator=operator))
    except LandshareError:
        LOGGER.exception("Ownership migration failed during bulk read")
        return 1

    _log_report(report, settings)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
