"""Firestore-backed document store using the async client."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore

from landshare.errors import NotFoundError, StoreError
from landshare.store.document_store import DocumentStore, Increment, RawDocument, with_document_id

LOGGER = logging.getLogger(__name__)


def _to_firestore_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    for key, value in fields.items():
        payload[key] = firestore.Increment(value.amount) if isinstance(value, Increment) else value
    return payload


class FirestoreDocumentStore(DocumentStore):
    """Read and write platform collections in Cloud Firestore."""

    def __init__(
        self,
        *,
        project: str | None = None,
        database: str | None = None,
        client: Optional[firestore.AsyncClient] = None,
    ) -> None:
        if client is None:
            if not project:
                raise ValueError("FirestoreDocumentStore requires a project ID")
            kwargs: Dict[str, Any] = {"project": project}
            if database:
                kwargs["database"] = database
            client = firestore.AsyncClient(**kwargs)
        self._client = client

    async def list(self, collection: str) -> List[RawDocument]:
        documents: List[RawDocument] = []
        try:
            async for snapshot in self._client.collection(collection).stream():
                documents.append(with_document_id(snapshot.id, snapshot.to_dict()))
        except google_exceptions.GoogleAPIError as exc:
            LOGGER.exception("Firestore list failed for collection=%s", collection)
            raise StoreError(f"Firestore list failed for {collection}: {exc}") from exc
        return documents

    async def get(self, collection: str, doc_id: str) -> Optional[RawDocument]:
        try:
            snapshot = await self._client.collection(collection).document(doc_id).get()
        except google_exceptions.GoogleAPIError as exc:
            raise StoreError(f"Firestore get failed for {collection}/{doc_id}: {exc}") from exc
        if not snapshot.exists:
            return None
        return with_document_id(snapshot.id, snapshot.to_dict())

    async def add(self, collection: str, fields: Mapping[str, Any]) -> str:
        try:
            _, doc_ref = await self._client.collection(collection).add(_to_firestore_fields(fields))
        except google_exceptions.GoogleAPIError as exc:
            raise StoreError(f"Firestore add failed for {collection}: {exc}") from exc
        return doc_ref.id

    async def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        try:
            await self._client.collection(collection).document(doc_id).update(_to_firestore_fields(fields))
        except google_exceptions.NotFound as exc:
            raise NotFoundError(collection, doc_id) from exc
        except google_exceptions.GoogleAPIError as exc:
            raise StoreError(f"Firestore update failed for {collection}/{doc_id}: {exc}") from exc

    async def delete(self, collection: str, doc_id: str) -> None:
        try:
            await self._client.collection(collection).document(doc_id).delete()
        except google_exceptions.GoogleAPIError as exc:
            raise StoreError(f"Firestore delete failed for {collection}/{doc_id}: {exc}") from exc


__all__ = ["FirestoreDocumentStore"]
