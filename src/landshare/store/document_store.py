"""Abstract async document-store interface consumed by the reconciliation services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

RawDocument = Dict[str, Any]


@dataclass(frozen=True, slots=True)
class Increment:
    """Atomic numeric increment applied by :meth:`DocumentStore.update`.

    Missing fields are treated as ``0`` before the increment is applied.
    """

    amount: float


class DocumentStore:
    """Interface for schema-less document collections.

    Every returned document is a fresh ``dict`` whose ``id`` key holds the
    document id; the document id wins over any stored ``id`` field.
    """

    async def list(self, collection: str) -> List[RawDocument]:  # pragma: no cover - interface only
        raise NotImplementedError

    async def get(self, collection: str, doc_id: str) -> Optional[RawDocument]:  # pragma: no cover - interface only
        raise NotImplementedError

    async def add(self, collection: str, fields: Mapping[str, Any]) -> str:  # pragma: no cover - interface only
        """Create a document with a generated id and return that id."""

        raise NotImplementedError

    async def update(
        self, collection: str, doc_id: str, fields: Mapping[str, Any]
    ) -> None:  # pragma: no cover - interface only
        """Merge ``fields`` into an existing document.

        Raises:
            NotFoundError: If the document does not exist.
        """

        raise NotImplementedError

    async def delete(self, collection: str, doc_id: str) -> None:  # pragma: no cover - interface only
        """Delete a document. Deleting an absent document is a no-op."""

        raise NotImplementedError


def with_document_id(doc_id: str, data: Mapping[str, Any] | None) -> RawDocument:
    return {**dict(data or {}), "id": doc_id}


__all__ = ["DocumentStore", "Increment", "RawDocument", "with_document_id"]
