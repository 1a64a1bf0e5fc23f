"""Error taxonomy shared by the store adapters, services, and outer surfaces."""

from __future__ import annotations


class LandshareError(Exception):
    """Base class for errors raised by landshare."""


class ValidationError(LandshareError, ValueError):
    """Raised when an operator request is rejected before any write happens."""


class NotFoundError(LandshareError, LookupError):
    """Raised when a referenced document is absent from the store."""

    def __init__(self, collection: str, doc_id: str, message: str | None = None) -> None:
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(message or f"{collection}/{doc_id} not found")


class StoreError(LandshareError, RuntimeError):
    """Raised when the underlying document store fails (transport, permissions)."""


class MergeIncompleteError(StoreError):
    """Raised when a merge stopped after the primary profile was updated.

    The journal entry identified by ``journal_id`` records how far the merge got;
    resume it instead of starting the merge again.
    """

    def __init__(self, journal_id: str, phase: str, message: str) -> None:
        self.journal_id = journal_id
        self.phase = phase
        super().__init__(message)


__all__ = [
    "LandshareError",
    "MergeIncompleteError",
    "NotFoundError",
    "StoreError",
    "ValidationError",
]
