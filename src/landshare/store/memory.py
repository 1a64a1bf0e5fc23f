"""Dict-backed document store used for the local environment and unit tests."""

from __future__ import annotations

import copy
import json
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from landshare.errors import NotFoundError
from landshare.normalization.normalizer import coerce_number
from landshare.store.document_store import DocumentStore, Increment, RawDocument, with_document_id

LOGGER = logging.getLogger(__name__)


def _resolve_value(current: Any, value: Any) -> Any:
    if isinstance(value, Increment):
        return coerce_number(current) + value.amount
    return copy.deepcopy(value)


class InMemoryDocumentStore(DocumentStore):
    """Keep collections in process memory.

    Reads and writes deep-copy documents so callers can never mutate stored state.
    """

    def __init__(self, collections: Mapping[str, Mapping[str, Mapping[str, Any]]] | None = None) -> None:
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        for name, documents in (collections or {}).items():
            self._collections[name] = {str(doc_id): copy.deepcopy(dict(doc)) for doc_id, doc in documents.items()}

    @classmethod
    def from_json(cls, path: str | Path) -> "InMemoryDocumentStore":
        """Seed a store from a JSON file.

        The file maps collection names either to ``{doc_id: document}`` objects or to
        lists of documents carrying an ``id`` key.
        """

        with Path(path).open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        for name, documents in payload.items():
            if isinstance(documents, list):
                collections[name] = {
                    str(doc.get("id") or uuid.uuid4().hex): {k: v for k, v in doc.items() if k != "id"}
                    for doc in documents
                    if isinstance(doc, dict)
                }
            elif isinstance(documents, dict):
                collections[name] = {str(doc_id): dict(doc) for doc_id, doc in documents.items()}
        LOGGER.info("Seeded in-memory store from %s (%s collections)", path, len(collections))
        return cls(collections)

    def snapshot(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        """Return a deep copy of every collection."""

        return copy.deepcopy(self._collections)

    async def list(self, collection: str) -> List[RawDocument]:
        documents = self._collections.get(collection, {})
        return [with_document_id(doc_id, copy.deepcopy(doc)) for doc_id, doc in documents.items()]

    async def get(self, collection: str, doc_id: str) -> Optional[RawDocument]:
        document = self._collections.get(collection, {}).get(doc_id)
        if document is None:
            return None
        return with_document_id(doc_id, copy.deepcopy(document))

    async def add(self, collection: str, fields: Mapping[str, Any]) -> str:
        doc_id = uuid.uuid4().hex[:20]
        self._collections.setdefault(collection, {})[doc_id] = {
            key: _resolve_value(None, value) for key, value in fields.items()
        }
        return doc_id

    async def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        document = self._collections.get(collection, {}).get(doc_id)
        if document is None:
            raise NotFoundError(collection, doc_id)
        for key, value in fields.items():
            document[key] = _resolve_value(document.get(key), value)

    async def delete(self, collection: str, doc_id: str) -> None:
        self._collections.get(collection, {}).pop(doc_id, None)


__all__ = ["InMemoryDocumentStore"]
