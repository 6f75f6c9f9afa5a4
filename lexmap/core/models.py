from __future__ import annotations

import datetime as dt
import re
from enum import Enum
from typing import Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Entity kinds and the catalog tables they live in.
# - root: atomic naming unit (word root) with an abbreviation and synonyms
# - field: standard field composed of an ordered list of word root ids
EntityKind = Literal["root", "field"]

SearchTier = Literal["lexical", "semantic"]

# Separators users type into synonym lists; stored form is single spaces.
_TERM_SEPARATORS = re.compile(r"[,，、;；\s]+")


def normalize_terms(value: Optional[str]) -> Optional[str]:
    """Collapse a free-form synonym list into space separated tokens, or None when empty."""
    if value is None:
        return None
    tokens = [token for token in _TERM_SEPARATORS.split(value) if token]
    return " ".join(tokens) if tokens else None


class SyncStatus(str, Enum):
    """Outcome of a catalog write followed by its index mirror update."""
    COMMITTED = "committed"  # catalog and index both updated
    PARTIAL = "partial"      # catalog committed, index not; repair with bulk resync
    FAILED = "failed"        # catalog not committed (or could not be read)


class WordRootCreate(BaseModel):
    cn_name: str = Field(min_length=1)
    en_abbr: str = Field(min_length=1)
    en_full_name: Optional[str] = None
    associated_terms: Optional[str] = None  # e.g. "钱 费用 价格"; commas are accepted on input
    remark: Optional[str] = None

    @field_validator("cn_name", "en_abbr")
    @classmethod
    def _strip_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("associated_terms")
    @classmethod
    def _normalize_terms(cls, value: Optional[str]) -> Optional[str]:
        return normalize_terms(value)


class WordRoot(BaseModel):
    id: int
    cn_name: str
    en_abbr: str
    en_full_name: Optional[str] = None
    associated_terms: Optional[str] = None
    remark: Optional[str] = None
    created_at: Optional[dt.datetime] = None

    def embedding_text(self) -> str:
        # Name + full English name + synonyms gives the richest vector features
        return " ".join(f"{self.cn_name} {self.en_full_name or ''} {self.associated_terms or ''}".split())


class StandardFieldCreate(BaseModel):
    field_cn_name: str = Field(min_length=1)
    field_en_name: str = Field(min_length=1)
    composition_ids: List[int] = Field(default_factory=list)
    data_type: Optional[str] = None
    associated_terms: Optional[str] = None
    is_standard: bool = False

    @field_validator("field_cn_name", "field_en_name")
    @classmethod
    def _strip_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("associated_terms")
    @classmethod
    def _normalize_terms(cls, value: Optional[str]) -> Optional[str]:
        return normalize_terms(value)


class StandardField(BaseModel):
    id: int
    field_cn_name: str
    field_en_name: str
    composition_ids: List[int] = Field(default_factory=list)
    data_type: Optional[str] = None
    associated_terms: Optional[str] = None
    is_standard: bool = False
    created_at: Optional[dt.datetime] = None

    def embedding_text(self) -> str:
        return " ".join(f"{self.field_cn_name} {self.associated_terms or ''}".split())


class StandardFieldDetail(BaseModel):
    field: StandardField
    roots: List[WordRoot] = Field(default_factory=list)


class IndexPayload(BaseModel):
    """Fixed payload schema stored next to every vector; carries name fields only."""
    model_config = ConfigDict(extra="forbid")

    name: str
    code: str  # abbreviation for roots, English identifier for fields

    @classmethod
    def for_root(cls, root: WordRoot) -> "IndexPayload":
        return cls(name=root.cn_name, code=root.en_abbr)

    @classmethod
    def for_field(cls, field: StandardField) -> "IndexPayload":
        return cls(name=field.field_cn_name, code=field.field_en_name)


class VectorHit(BaseModel):
    id: int
    score: float
    payload: IndexPayload


class Resolution(BaseModel):
    identifier: str
    missing: List[str] = Field(default_factory=list)
    matched_ids: List[int] = Field(default_factory=list)
    tokens: List[str] = Field(default_factory=list)


class SearchResult(BaseModel):
    id: int
    name: str
    code: str
    score: Optional[float] = None  # only semantic hits carry a similarity score
    tier: SearchTier


class SearchResponse(BaseModel):
    query: str
    collection: str
    tier: SearchTier
    results: List[SearchResult] = Field(default_factory=list)
    degraded: bool = False
    error: Optional[str] = None


RecordT = TypeVar("RecordT")


class MutationResult(BaseModel, Generic[RecordT]):
    record: Optional[RecordT] = None
    catalog_committed: bool
    mirror_committed: bool
    status: SyncStatus
    error: Optional[str] = None


class BatchImportResult(BaseModel):
    created: int
    roots: List[WordRoot] = Field(default_factory=list)
    mirror_committed: bool
    status: SyncStatus
    error: Optional[str] = None


class ResyncReport(BaseModel):
    collection: str
    synced: int


class SyncReport(BaseModel):
    kind: EntityKind
    id: int
    status: SyncStatus


class ServiceStatus(BaseModel):
    name: str
    status: Literal["online", "offline", "unknown"]
    latency_ms: Optional[float] = None
    details: Optional[str] = None


class HealthResponse(BaseModel):
    status: Literal["ready", "idle", "degraded"]
    roots: int
    fields: int
    indexed_roots: Optional[int] = None
    indexed_fields: Optional[int] = None
    message: Optional[str] = None
    services: List[ServiceStatus] = Field(default_factory=list)
