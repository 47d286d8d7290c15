# /core/models.py

from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field

# Shared Pydantic data structures for both collections and the repair report.

Rating = Union[int, float, str]

# Fields a client may change on an SCP. Back-references are never client-writable.
SCP_UPDATABLE_FIELDS = (
    "scp_id", "title", "description", "classification",
    "rating", "url", "series", "photo_url", "creator",
)


# --- SCP (entity) ---

class SCPCreate(BaseModel):
    scp_id: str = Field(min_length=1, description="The unique, human-assigned key, e.g. '173'.")
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    classification: Optional[str] = None
    rating: Optional[Rating] = None
    url: Optional[str] = None
    series: Optional[str] = None
    photo_url: Optional[str] = None
    creator: Optional[str] = None


class SCPUpdate(BaseModel):
    scp_id: Optional[str] = Field(None, min_length=1)
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    classification: Optional[str] = None
    rating: Optional[Rating] = None
    url: Optional[str] = None
    series: Optional[str] = None
    photo_url: Optional[str] = None
    creator: Optional[str] = None


class SCP(SCPCreate):
    scp_tales: List[str] = Field(default_factory=list, description="Ids of the tales that reference this SCP.")

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "SCP":
        data = {k: v for k, v in doc.items() if k != "_id"}
        data["scp_tales"] = data.get("scp_tales") or []
        return cls(**data)


# --- Tale (narrative item) ---

class TaleCreate(BaseModel):
    title: str = Field(min_length=1)
    content: Optional[str] = None
    rating: Optional[Rating] = None
    url: Optional[str] = None
    scp_ids: List[str] = Field(default_factory=list, description="Keys of the SCPs this tale references.")


class TaleUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    content: Optional[str] = None
    rating: Optional[Rating] = None
    url: Optional[str] = None
    scp_ids: Optional[List[str]] = None


class Tale(TaleCreate):
    id: str = Field(description="Store-assigned identifier.")

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Tale":
        data = {k: v for k, v in doc.items() if k != "_id"}
        data["id"] = str(doc["_id"])
        data["scp_ids"] = data.get("scp_ids") or []
        return cls(**data)


# --- Responses ---

class SCPPage(BaseModel):
    total: int
    skip: int
    limit: int
    items: List[SCP]


class TalePage(BaseModel):
    total: int
    skip: int
    limit: int
    items: List[Tale]


class MessageResponse(BaseModel):
    message: str


# --- Reconciliation ---

class EntityRepair(BaseModel):
    scp_id: str
    added: List[str] = Field(default_factory=list, description="Tale ids that were missing from scp_tales.")
    removed: List[str] = Field(default_factory=list, description="Stale tale ids dropped from scp_tales.")


class DanglingReference(BaseModel):
    tale_id: str
    scp_id: str


class ReconciliationReport(BaseModel):
    dry_run: bool
    entities_scanned: int = 0
    tales_scanned: int = 0
    repaired: List[EntityRepair] = Field(default_factory=list)
    dangling: List[DanglingReference] = Field(default_factory=list)
    pruned: int = Field(0, description="Dangling references removed from tales.")
    unkeyed: List[str] = Field(default_factory=list, description="Ids of SCP documents with no scp_id, left untouched.")
    consistent: bool = Field(True, description="True when the scan found nothing to repair.")
