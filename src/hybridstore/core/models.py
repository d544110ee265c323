"""
hybridstore.core.models - Core Data Models
===========================================

Pydantic models that flow between the layers of HybridStore.

Model Hierarchy:
    Pointer             → Where a payload lives and how to verify it
    PointerProjection   → The read-only slice of a Pointer kept in the index
    ArtifactRecord      → One row of the metadata index
    *Request            → Inputs of the Artifact API
    *Stats / *Result    → Outputs of statistics, cleanup and bulk operations

Data Flow Through Architecture:
    ┌──────────────┐  CreateArtifactRequest  ┌──────────────┐
    │   Caller      │ ─────────────────────→ │ ArtifactAPI   │
    │              │ ←───────────────────── │              │
    └──────────────┘     ArtifactRecord      └──────┬───────┘
                                                    │
                        payload ──→ BlobStore ──→ Pointer
                                                    │ .projection()
                        ArtifactRecord ──→ MetadataIndex

Pointer Authority:
    Only the BlobStore builds a Pointer. The index persists a
    PointerProjection and hands it back; turning it into a Pointer again
    goes through ``BlobStore.pointer_from_projection``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from hybridstore.core.enums import (
    ArtifactEventType,
    BlobDeleteOutcome,
    HealthStatus,
    OrderBy,
    OrderDirection,
)


def utc_now() -> datetime:
    """Current UTC time, truncated to milliseconds.

    The index stores timestamps with millisecond precision; truncating
    here keeps in-memory values equal to what a read-back returns.
    """
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def as_utc(value: datetime) -> datetime:
    """Read a naive datetime as UTC; aware values are returned unchanged."""
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


# =============================================================================
# Pointer
# =============================================================================
class Pointer(BaseModel):
    """Descriptor locating and verifying a stored payload.

    Attributes:
        file_path: Path of the payload file.
        offset: Byte offset of the payload inside the file. None means the
            whole file is the payload.
        size: Length of the stored (possibly compressed) bytes.
        checksum: SHA-256 hex digest of the stored bytes ("" when
            checksums are disabled).
        compressed: Whether the stored bytes are gzip-compressed.
        created_at: When the payload was written.
        last_accessed: When the payload was last loaded.
    """

    file_path: str = Field(description="Path of the payload file")
    offset: Optional[int] = Field(
        default=None,
        ge=0,
        description="Byte offset for sub-region reads (None = whole file)",
    )
    size: int = Field(ge=0, description="Stored byte length")
    checksum: str = Field(default="", description="SHA-256 hex digest of stored bytes")
    compressed: bool = Field(default=False, description="gzip-compressed bytes")
    created_at: datetime = Field(default_factory=utc_now)
    last_accessed: Optional[datetime] = Field(default=None)

    def projection(self) -> PointerProjection:
        """Return the read-only slice of this pointer kept in the index."""
        return PointerProjection(
            file_path=self.file_path,
            file_offset=self.offset,
            file_size=self.size,
            checksum=self.checksum,
            compressed=self.compressed,
        )

    @property
    def cache_key(self) -> tuple[str, Optional[int], int]:
        """Key under which the decoded payload is cached."""
        return (self.file_path, self.offset, self.size)


class PointerProjection(BaseModel):
    """Immutable projection of a Pointer as persisted in the index."""

    model_config = {"frozen": True}

    file_path: str
    file_offset: Optional[int] = None
    file_size: int = Field(ge=0)
    checksum: str = ""
    compressed: bool = False


# =============================================================================
# Artifact Record
# =============================================================================
class ArtifactRecord(BaseModel):
    """Searchable attributes of one artifact (one index row).

    Attributes:
        id: Unique artifact identifier.
        type: Artifact type (first directory level of the blob tree).
        category: Artifact category (second directory level).
        title: Human-readable title.
        description: Optional longer description.
        metadata: Bounded JSON object of caller-defined attributes.
        priority: Integer priority 0-10.
        tags: Sorted, de-duplicated tags.
        created_at: When the artifact was first created.
        updated_at: Refreshed by the index on every row update.
        access_count: Number of recorded accesses.
        last_accessed: Refreshed by the index when access_count changes.
        storage: Projection of the payload Pointer.
    """

    id: str
    type: str
    category: str
    title: str
    description: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    priority: int = Field(default=0, ge=0, le=10)
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    access_count: int = Field(default=0, ge=0)
    last_accessed: Optional[datetime] = None
    storage: PointerProjection

    @property
    def file_path(self) -> str:
        return self.storage.file_path

    @property
    def file_size(self) -> int:
        """Byte length of the stored (possibly compressed) payload."""
        return self.storage.file_size

    @property
    def compressed(self) -> bool:
        return self.storage.compressed

    @property
    def checksum(self) -> str:
        return self.storage.checksum


# =============================================================================
# Requests
# =============================================================================
class CreateArtifactRequest(BaseModel):
    """Input of ``ArtifactAPI.create``.

    Field values are checked by the validation layer rather than by
    Pydantic constraints, so that a bad id or priority is reported as a
    ValidationError with every problem listed.
    """

    id: Any
    type: Any
    category: Any
    title: Any
    description: Optional[Any] = None
    data: Any = None
    metadata: Optional[Any] = None
    priority: Optional[Any] = None
    tags: Optional[Any] = None
    compress: Optional[bool] = Field(
        default=None,
        description="Force (True) or forbid (False) compression; None = by threshold",
    )


class UpdateArtifactRequest(BaseModel):
    """Input of ``ArtifactAPI.update``.

    Only fields that were explicitly set are applied. ``data`` counts as
    provided whenever it was passed, including an explicit ``None``.
    """

    id: str
    title: Optional[Any] = None
    description: Optional[Any] = None
    metadata: Optional[Any] = None
    priority: Optional[Any] = None
    tags: Optional[Any] = None
    data: Any = None

    @property
    def has_data(self) -> bool:
        return "data" in self.model_fields_set


class SearchRequest(BaseModel):
    """Input of ``ArtifactAPI.search``.

    ``type``, ``category``, ``tags``, ordering and pagination are handled
    by the index; ``query``, the priority range and the date range are
    applied by the API over the page the index returns.
    """

    query: Optional[str] = None
    type: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[list[str]] = None
    min_priority: Optional[int] = None
    max_priority: Optional[int] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    limit: Optional[int] = None
    offset: int = 0
    order_by: OrderBy = OrderBy.PRIORITY
    order_direction: OrderDirection = OrderDirection.DESC


class IndexQuery(BaseModel):
    """Query understood by ``MetadataIndex.search``."""

    type: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[list[str]] = None
    limit: int = Field(default=50, ge=1)
    offset: int = Field(default=0, ge=0)
    order_by: OrderBy = OrderBy.PRIORITY
    order_direction: OrderDirection = OrderDirection.DESC


# =============================================================================
# Validation
# =============================================================================
class ValidationResult(BaseModel):
    """Outcome of a validator: errors block persistence, warnings do not."""

    valid: bool = True
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    def merge(self, other: ValidationResult) -> ValidationResult:
        """Combine two results into a new one."""
        errors = self.errors + other.errors
        return ValidationResult(
            valid=not errors,
            errors=errors,
            warnings=self.warnings + other.warnings,
        )


# =============================================================================
# Blob Store Results
# =============================================================================
class BlobDeleteResult(BaseModel):
    """Tagged result of ``BlobStore.delete``; truthy only when deleted."""

    outcome: BlobDeleteOutcome
    file_path: str
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.outcome == BlobDeleteOutcome.DELETED


class CleanupResult(BaseModel):
    deleted: int = 0
    errors: int = 0


class StorageStats(BaseModel):
    """Summary of the payload tree on disk."""

    total_files: int = 0
    total_size: int = 0
    average_file_size: float = 0.0
    files_by_type: dict[str, int] = Field(default_factory=dict)
    oldest_file: Optional[datetime] = None
    newest_file: Optional[datetime] = None


class FileStats(BaseModel):
    exists: bool
    size: int
    modified_at: datetime


class CacheStats(BaseModel):
    size: int
    max_entries: int
    ttl_seconds: float
    hits: int
    misses: int


# =============================================================================
# Index Results
# =============================================================================
class IndexStats(BaseModel):
    total_artifacts: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)
    by_category: dict[str, int] = Field(default_factory=dict)
    total_size: int = 0
    average_access_count: float = 0.0


class IndexHealth(BaseModel):
    status: HealthStatus
    details: dict[str, Any] = Field(default_factory=dict)


class TagCount(BaseModel):
    tag: str
    count: int


class ArtifactEvent(BaseModel):
    """One row of the ``artifact_events`` time-series table."""

    artifact_id: str
    event: ArtifactEventType
    occurred_at: datetime


# =============================================================================
# Artifact API Results
# =============================================================================
class ArtifactStats(BaseModel):
    """Aggregate view returned by ``ArtifactAPI.stats``."""

    total_artifacts: int
    by_type: dict[str, int]
    by_category: dict[str, int]
    total_size: int
    average_file_size: float
    average_access_count: float
    top_tags: list[TagCount]
    recent_artifacts: list[ArtifactRecord]
    high_priority_artifacts: list[ArtifactRecord]


class BulkFailure(BaseModel):
    """One failed item of a bulk operation."""

    id: Optional[str]
    error_code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class BulkCreateResult(BaseModel):
    created: list[ArtifactRecord] = Field(default_factory=list)
    failed: list[BulkFailure] = Field(default_factory=list)


class BulkDeleteResult(BaseModel):
    deleted: list[str] = Field(default_factory=list)
    failed: list[BulkFailure] = Field(default_factory=list)


class HealthReport(BaseModel):
    """Combined health of the index and the blob store."""

    status: HealthStatus
    index: dict[str, Any] = Field(default_factory=dict)
    storage: dict[str, Any] = Field(default_factory=dict)
