"""Factory helpers that instantiate core services based on configuration.

These helpers centralize the logic for honoring the environment-specific
settings declared in :mod:`landshare.settings`. They return the document store
implementation that matches the current environment profile and wire the
services on top of it, raising ``NotImplementedError`` when a backend is
declared but not supported.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from landshare.services.audit import AuditLog
from landshare.services.duplicates import DuplicateUserService
from landshare.services.investments import ManualInvestmentService
from landshare.services.migration import OwnershipMigration
from landshare.services.portfolio import PortfolioService
from landshare.settings import Settings, get_settings
from landshare.store.document_store import DocumentStore
from landshare.store.firestore_store import FirestoreDocumentStore
from landshare.store.memory import InMemoryDocumentStore

LOGGER = logging.getLogger(__name__)


def build_document_store(settings: Settings | None = None) -> DocumentStore:
    """Return the document store matching ``settings.storage.backend``.

    Raises:
        NotImplementedError: If the configured backend is not supported.
    """

    resolved = settings or get_settings()
    backend = resolved.storage.backend
    if backend == "memory":
        seed_path = resolved.storage.seed_path
        if seed_path and seed_path.exists():
            return InMemoryDocumentStore.from_json(seed_path)
        if seed_path:
            LOGGER.warning("Seed file %s not found; starting with an empty in-memory store", seed_path)
        return InMemoryDocumentStore()

    if backend == "firestore":
        return FirestoreDocumentStore(
            project=resolved.storage.firestore_project,
            database=resolved.storage.firestore_database,
        )

    raise NotImplementedError(f"Unsupported document store backend '{backend}'")


@dataclass(slots=True)
class ServiceBundle:
    """Services sharing one store, one audit log, and one portfolio cache."""

    store: DocumentStore
    portfolio: PortfolioService
    duplicates: DuplicateUserService
    migration: OwnershipMigration
    investments: ManualInvestmentService


def build_services(store: DocumentStore | None = None, settings: Settings | None = None) -> ServiceBundle:
    """Wire every back-office service on top of ``store``."""

    resolved = settings or get_settings()
    target_store = store or build_document_store(resolved)
    audit = AuditLog(target_store, collection=resolved.collections.audit_log)
    portfolio = PortfolioService(target_store, settings=resolved)
    return ServiceBundle(
        store=target_store,
        portfolio=portfolio,
        duplicates=DuplicateUserService(target_store, settings=resolved, portfolio=portfolio, audit=audit),
        migration=OwnershipMigration(target_store, settings=resolved, audit=audit),
        investments=ManualInvestmentService(target_store, settings=resolved, portfolio=portfolio, audit=audit),
    )


__all__ = ["ServiceBundle", "build_document_store", "build_services"]
