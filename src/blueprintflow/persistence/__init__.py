"""Persistence gateway contract and the file-based document store."""

from blueprintflow.persistence.file_store import FileDocumentStore
from blueprintflow.persistence.gateway import PersistenceGateway, StoredDocument, StoredDocumentSummary

__all__ = [
    "FileDocumentStore",
    "PersistenceGateway",
    "StoredDocument",
    "StoredDocumentSummary",
]
