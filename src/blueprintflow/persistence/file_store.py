"""
File-based document store.

One JSON file per stored document under ``<base_dir>/<owner>/<id>.json``.
Thread-safe, atomic writes. Documents go through the wire codec, so the file
holds exactly what the UI would send.
"""

import json
import os
import threading
import uuid
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from pydantic import ValidationError

from blueprintflow.builder.json_graph import document_to_dict, write_json_atomic
from blueprintflow.builder.types import BlueprintFlowchartData
from blueprintflow.exceptions import NotFoundError, SerializationError
from blueprintflow.persistence.gateway import StoredDocument, StoredDocumentSummary, utc_now
from blueprintflow.utilities.logging import get_logger

logger = get_logger(__name__)


class FileDocumentStore:
    """
    File-based persistent storage implementing PersistenceGateway.
    Thread-safe, atomic writes.
    """

    def __init__(self, base_dir: str = "./.blueprintflow_storage") -> None:
        self._base_dir = base_dir
        os.makedirs(self._base_dir, exist_ok=True)
        self._lock = threading.Lock()

    @property
    def base_dir(self) -> str:
        return self._base_dir

    def _owner_dir(self, owner_id: str) -> str:
        if not owner_id:
            raise ValueError("owner_id must not be empty")
        return os.path.join(self._base_dir, quote(owner_id, safe=""))

    def _path(self, owner_id: str, document_id: str) -> str:
        return os.path.join(self._owner_dir(owner_id), f"{quote(document_id, safe='')}.json")

    def _write(self, stored: StoredDocument) -> None:
        payload: Dict[str, Any] = stored.model_dump(mode="json", by_alias=True, exclude={"document"})
        payload["document"] = document_to_dict(stored.document)
        write_json_atomic(json.dumps(payload, indent=2), self._path(stored.owner_id, stored.id))

    def _read(self, path: str) -> StoredDocument:
        with open(path, "r", encoding="utf-8") as f:
            raw = f.read()
        try:
            return StoredDocument.model_validate_json(raw)
        except ValidationError as e:
            raise SerializationError(f"Stored document {path} is unreadable: {e.error_count()} error(s)") from e

    # --- PersistenceGateway ---

    def save(
        self,
        owner_id: str,
        name: str,
        document: BlueprintFlowchartData,
        description: Optional[str] = None,
    ) -> StoredDocument:
        now = utc_now()
        stored = StoredDocument(
            id=uuid.uuid4().hex,
            owner_id=owner_id,
            name=name,
            description=description,
            document=document,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._write(stored)
        logger.info("Saved document %s for owner %s", stored.id, owner_id)
        return stored

    def fetch(self, owner_id: str, document_id: str) -> Optional[StoredDocument]:
        path = self._path(owner_id, document_id)
        with self._lock:
            if not os.path.isfile(path):
                return None
            return self._read(path)

    def list_by_owner(self, owner_id: str) -> List[StoredDocumentSummary]:
        owner_dir = self._owner_dir(owner_id)
        summaries: List[StoredDocumentSummary] = []
        with self._lock:
            if not os.path.isdir(owner_dir):
                return []
            for filename in os.listdir(owner_dir):
                if filename.endswith(".json"):
                    summaries.append(self._read(os.path.join(owner_dir, filename)).summary())
        summaries.sort(key=lambda s: s.updated_at, reverse=True)
        return summaries

    def update(
        self,
        owner_id: str,
        document_id: str,
        *,
        name: Optional[str] = None,
        document: Optional[BlueprintFlowchartData] = None,
        description: Optional[str] = None,
        version: Optional[int] = None,
    ) -> StoredDocument:
        path = self._path(owner_id, document_id)
        with self._lock:
            if not os.path.isfile(path):
                raise NotFoundError(
                    f"Document '{document_id}' not found",
                    details={"owner_id": owner_id, "document_id": document_id},
                )
            current = self._read(path)
            changes: Dict[str, Any] = {"updated_at": utc_now()}
            if name is not None:
                changes["name"] = name
            if document is not None:
                changes["document"] = document
            if description is not None:
                changes["description"] = description
            if version is not None:
                changes["version"] = version
            updated = current.model_copy(update=changes)
            self._write(updated)
        logger.info("Updated document %s for owner %s", document_id, owner_id)
        return updated

    def delete(self, owner_id: str, document_id: str) -> bool:
        path = self._path(owner_id, document_id)
        with self._lock:
            if not os.path.isfile(path):
                return False
            os.remove(path)
        logger.info("Deleted document %s for owner %s", document_id, owner_id)
        return True
