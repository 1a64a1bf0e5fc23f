"""Audit logging helpers for operator-initiated back-office actions."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from landshare.errors import LandshareError
from landshare.store.document_store import DocumentStore

LOGGER = logging.getLogger(__name__)


class AuditLog:
    """Append operator actions to the ``admin_audit_log`` collection.

    A failed audit write is logged and swallowed; the action it describes has
    already been applied and must not be reported as failed.
    """

    def __init__(self, store: DocumentStore, *, collection: str = "admin_audit_log") -> None:
        self._store = store
        self._collection = collection

    async def record(self, action: str, *, operator: str, payload: Mapping[str, Any] | None = None) -> str | None:
        """Persist an audit entry and return its id, or ``None`` when the write failed."""

        entry = {
            "action": action,
            "operator": operator,
            "payload": dict(payload or {}),
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            return await self._store.add(self._collection, entry)
        except LandshareError:
            LOGGER.exception("Failed to record audit entry action=%s operator=%s", action, operator)
            return None


__all__ = ["AuditLog"]
