"""
Persistence gateway contract.

The core consumes the document store as a save/fetch service. Any store that
round-trips ``save`` then ``fetch`` field for field satisfies the contract.

``version`` is the document's position in its edit sequence. ``save`` starts it
at 0 and ``update`` stores whatever version the caller passes; the store never
invents one.
"""

import datetime
from typing import List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from blueprintflow.builder.types import BlueprintFlowchartData


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class StoredDocumentSummary(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    owner_id: str
    name: str
    description: Optional[str] = None
    version: int = 0
    node_count: int = 0
    connection_count: int = 0
    created_at: datetime.datetime
    updated_at: datetime.datetime


class StoredDocument(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    owner_id: str
    name: str = Field(min_length=1)
    description: Optional[str] = None
    document: BlueprintFlowchartData
    version: int = Field(default=0, ge=0)
    created_at: datetime.datetime = Field(default_factory=utc_now)
    updated_at: datetime.datetime = Field(default_factory=utc_now)

    def summary(self) -> StoredDocumentSummary:
        return StoredDocumentSummary(
            id=self.id,
            owner_id=self.owner_id,
            name=self.name,
            description=self.description,
            version=self.version,
            node_count=len(self.document.nodes),
            connection_count=len(self.document.connections),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


@runtime_checkable
class PersistenceGateway(Protocol):
    def save(
        self,
        owner_id: str,
        name: str,
        document: BlueprintFlowchartData,
        description: Optional[str] = None,
    ) -> StoredDocument:
        ...

    def fetch(self, owner_id: str, document_id: str) -> Optional[StoredDocument]:
        ...

    def list_by_owner(self, owner_id: str) -> List[StoredDocumentSummary]:
        ...

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
        ...

    def delete(self, owner_id: str, document_id: str) -> bool:
        ...
