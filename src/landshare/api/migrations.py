"""Ownership migration endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from landshare.api.auth import require_role, require_token
from landshare.api.dependencies import get_app_settings, get_services
from landshare.services.factories import ServiceBundle
from landshare.settings import Settings

router = APIRouter(prefix="/migrations/ownership", tags=["migrations"])
LOGGER = logging.getLogger(__name__)


@router.get("/status", summary="Count investments missing an ownership row")
async def migration_status(
    _: Dict[str, str] = Depends(require_token),
    services: ServiceBundle = Depends(get_services),
) -> Dict[str, Any]:
    status = await services.migration.check_migration_status()
    return status.as_dict()


@router.post("/run", summary="Backfill missing ownership rows")
async def run_migration(
    operator: Dict[str, str] = Depends(require_role("admin")),
    services: ServiceBundle = Depends(get_services),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """Run the backfill; a partial failure still returns 200 with ``success`` false."""

    report = await services.migration.run_migration(operator=operator["email"])
    if not report.success:
        LOGGER.warning("Ownership migration by %s finished with %s failures", operator["email"], report.failed)
    return report.as_dict(error_limit=settings.migration.error_display_limit)
