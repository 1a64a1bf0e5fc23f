"""Data store package for landshare.

Async adapters over the schema-less document store that holds user profiles,
investments, investment requests, plot ownership rows, and plots.
"""

from .document_store import DocumentStore, Increment, RawDocument
from .memory import InMemoryDocumentStore

__all__ = ["DocumentStore", "InMemoryDocumentStore", "Increment", "RawDocument"]
