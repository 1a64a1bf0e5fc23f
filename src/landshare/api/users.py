"""Duplicate user detection, merge, and delete endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from landshare.api.auth import require_role, require_token
from landshare.api.dependencies import get_services
from landshare.services.factories import ServiceBundle

router = APIRouter(prefix="/users", tags=["users"])
LOGGER = logging.getLogger(__name__)


class MergeRequest(BaseModel):
    """Payload for merging ``secondary_id`` into ``primary_id``."""

    primary_id: str
    secondary_id: str


class DuplicateGroupsResponse(BaseModel):
    groups: List[Dict[str, Any]]
    count: int


async def _duplicate_groups(services: ServiceBundle) -> DuplicateGroupsResponse:
    groups = [group.to_dict() for group in await services.duplicates.list_duplicate_groups()]
    return DuplicateGroupsResponse(groups=groups, count=len(groups))


@router.get("/duplicates", response_model=DuplicateGroupsResponse, summary="List users sharing an email")
async def list_duplicates(
    _: Dict[str, str] = Depends(require_token),
    services: ServiceBundle = Depends(get_services),
) -> DuplicateGroupsResponse:
    return await _duplicate_groups(services)


@router.post("/merge", summary="Merge a duplicate user into a primary user")
async def merge_users(
    payload: MergeRequest,
    operator: Dict[str, str] = Depends(require_role("admin")),
    services: ServiceBundle = Depends(get_services),
) -> Dict[str, Any]:
    """Merge and return the result with the recomputed duplicate groups."""

    result = await services.duplicates.merge(payload.primary_id, payload.secondary_id, operator=operator["email"])
    remaining = await _duplicate_groups(services)
    return {**result.as_dict(), "groups": remaining.groups}


@router.get("/merges/incomplete", summary="List merges interrupted between phases")
async def list_incomplete_merges(
    _: Dict[str, str] = Depends(require_token),
    services: ServiceBundle = Depends(get_services),
) -> Dict[str, Any]:
    merges = await services.duplicates.list_incomplete_merges()
    return {"merges": merges, "count": len(merges)}


@router.post("/merges/{journal_id}/resume", summary="Finish an interrupted merge")
async def resume_merge(
    journal_id: str,
    operator: Dict[str, str] = Depends(require_role("admin")),
    services: ServiceBundle = Depends(get_services),
) -> Dict[str, Any]:
    result = await services.duplicates.resume_merge(journal_id, operator=operator["email"])
    return result.as_dict()


@router.delete("/{user_id}", summary="Hard-delete a user record")
async def delete_user(
    user_id: str,
    operator: Dict[str, str] = Depends(require_role("admin")),
    services: ServiceBundle = Depends(get_services),
) -> Dict[str, Any]:
    await services.duplicates.delete_duplicate(user_id, operator=operator["email"])
    remaining = await _duplicate_groups(services)
    return {"deleted": user_id, "groups": remaining.groups}
