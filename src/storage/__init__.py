"""Document store collaborator."""

from .document_store import DocumentStore, JsonDocumentStore
from .settings import StorageSettings

__all__ = [
    "DocumentStore",
    "JsonDocumentStore",
    "StorageSettings",
]
