"""Portfolio read endpoints."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query

from landshare.api.auth import require_token
from landshare.api.dependencies import get_services
from landshare.services.factories import ServiceBundle

router = APIRouter(prefix="/portfolio", tags=["portfolio"])


@router.get("", summary="Aggregate a portfolio by email")
async def portfolio_by_email(
    email: str = Query(..., min_length=1),
    _: Dict[str, str] = Depends(require_token),
    services: ServiceBundle = Depends(get_services),
) -> Dict[str, Any]:
    summary = await services.portfolio.summary_for_email(email)
    return summary.as_dict()


@router.get("/{user_id}", summary="Aggregate a user's portfolio")
async def portfolio_for_user(
    user_id: str,
    _: Dict[str, str] = Depends(require_token),
    services: ServiceBundle = Depends(get_services),
) -> Dict[str, Any]:
    """Return de-duplicated totals and history for ``user_id``."""

    summary = await services.portfolio.summary(user_id)
    return summary.as_dict()
