"""
hybridstore.facade - Artifact API
==================================

The single supported entry point of HybridStore. The ArtifactAPI composes
the Blob Store (payload files) and the Metadata Index (searchable rows)
and keeps them consistent: every index row owns exactly one Pointer, and
only the Blob Store builds Pointers.

Architecture Context:
    ┌──────────────────────────────────────────────────┐
    │              ArtifactAPI (Facade)                 │
    │                                                   │
    │  validate → sanitize → write payload → write row  │
    │                                                   │
    │  ┌──────────────────┐      ┌──────────────────┐  │
    │  │    BlobStore      │      │  MetadataIndex    │  │
    │  │  payload files    │      │  SQLite rows      │  │
    │  │  Pointer          │ ───→ │  PointerProjection│  │
    │  └──────────────────┘      └──────────────────┘  │
    └──────────────────────────────────────────────────┘

Replace-Safe Writes:
    Re-creating an id or updating its data never leaves the index pointing
    at a missing or rewritten payload:

        1. copy the current payload file to <name>.json.bak
        2. write the new payload (atomic replace)
        3. write the index row
        4. delete the backup            (on failure of 3: restore backup)

Per-Artifact Lifecycle:
    absent ──create──→ persisted ──update──→ persisted' ──delete──→ absent

    Operations on the same id are not serialized; callers that need
    strict consistency must not issue concurrent mutations for one id.

Usage:
    >>> async with ArtifactAPI(config) as api:
    ...     record = await api.create(CreateArtifactRequest(
    ...         id="a1", type="cache", category="knowledge",
    ...         title="First", data={"name": "a"}, tags=["t"],
    ...     ))
    ...     data = await api.get_data("a1")
    ...     page = await api.search(SearchRequest(category="knowledge", tags=["t"]))
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional, Union

import pydantic
import structlog

from hybridstore.core.config import HybridStoreConfig
from hybridstore.core.enums import (
    BlobDeleteOutcome,
    HealthStatus,
    OrderBy,
    OrderDirection,
)
from hybridstore.core.exceptions import (
    HybridStoreError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from hybridstore.core.models import (
    ArtifactEvent,
    ArtifactRecord,
    ArtifactStats,
    BulkCreateResult,
    BulkDeleteResult,
    BulkFailure,
    CreateArtifactRequest,
    HealthReport,
    IndexQuery,
    Pointer,
    SearchRequest,
    UpdateArtifactRequest,
    as_utc,
    utc_now,
)
from hybridstore.infrastructure.blob_store import BlobStore
from hybridstore.infrastructure.metadata_index import MetadataIndex
from hybridstore.infrastructure.pointer_utils import derive_priority, validate_pointer
from hybridstore.validation.validators import (
    sanitize_artifact,
    validate_artifact,
    validate_search_request,
    validate_update,
)

# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()

_UPDATABLE_FIELDS = ("title", "description", "metadata", "priority", "tags")


def _coerce(model: type[pydantic.BaseModel], value: Any, label: str) -> Any:
    """Build a request model from a mapping, reporting problems as ValidationError."""
    if isinstance(value, model):
        return value
    try:
        return model.model_validate(value)
    except pydantic.ValidationError as exc:
        errors = [
            f"{'.'.join(str(p) for p in err['loc']) or label}: {err['msg']}"
            for err in exc.errors()
        ]
        raise ValidationError(message=f"Invalid {label}", errors=errors) from exc


def _request_id(request: Any) -> Optional[str]:
    raw = request.get("id") if isinstance(request, dict) else getattr(request, "id", None)
    return None if raw is None else str(raw)


def _failure(artifact_id: Optional[str], exc: HybridStoreError) -> BulkFailure:
    return BulkFailure(
        id=artifact_id,
        error_code=exc.error_code,
        message=exc.message,
        details=exc.details,
    )


class ArtifactAPI:
    """Facade over the Blob Store and the Metadata Index.

    Lifecycle:
        1. ``ArtifactAPI(config)``   - build components
        2. ``await initialize()``    - create directories, open the index
        3. CRUD / search / stats / bulk operations
        4. ``await shutdown()``      - close the index, drop the read cache

    Attributes:
        _config: Store configuration.
        _blob_store: Payload storage.
        _index: Metadata index.
        _initialized: Whether initialize() has been called.

    Example:
        >>> api = ArtifactAPI(load_config("hybridstore.yaml"))
        >>> await api.initialize()
        >>> record = await api.create({"id": "a1", "type": "cache",
        ...     "category": "knowledge", "title": "A", "data": [1, 2, 3]})
        >>> await api.shutdown()
    """

    def __init__(
        self,
        config: Optional[HybridStoreConfig] = None,
        *,
        blob_store: Optional[BlobStore] = None,
        index: Optional[MetadataIndex] = None,
    ) -> None:
        """Initialize the facade.

        Args:
            config: Store configuration. Defaults to HybridStoreConfig(),
                which reads HYBRIDSTORE_* environment variables.
            blob_store: Optional custom blob store.
            index: Optional custom metadata index.
        """
        self._config = config or HybridStoreConfig()
        self._blob_store = blob_store or BlobStore(self._config.blob_store)
        self._index = index or MetadataIndex(self._config.index)
        self._initialized = False
        self._logger = logger.bind(component="artifact_api")

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def config(self) -> HybridStoreConfig:
        return self._config

    @property
    def blob_store(self) -> BlobStore:
        """Access the Blob Store for maintenance (cleanup, cache control)."""
        return self._blob_store

    @property
    def index(self) -> MetadataIndex:
        return self._index

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # =========================================================================
    # Lifecycle Management
    # =========================================================================

    async def initialize(self) -> None:
        """Create the storage directory and connect the index.

        Idempotent: Safe to call multiple times.
        """
        if self._initialized:
            self._logger.debug("artifact_api_already_initialized")
            return

        await self._blob_store.initialize()
        await self._index.connect()

        self._initialized = True
        self._logger.info("artifact_api_initialized")

    async def shutdown(self) -> None:
        """Close the index and drop cached payloads.

        Idempotent: Safe to call multiple times.
        """
        if not self._initialized:
            self._logger.debug("artifact_api_not_initialized_skipping_shutdown")
            return

        await self._index.close()
        self._blob_store.clear_cache()

        self._initialized = False
        self._logger.info("artifact_api_shutdown_complete")

    async def __aenter__(self) -> ArtifactAPI:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.shutdown()

    # =========================================================================
    # Create
    # =========================================================================

    async def create(
        self, request: Union[CreateArtifactRequest, dict[str, Any]],
    ) -> ArtifactRecord:
        """Validate, store and index a new artifact.

        Re-creating an existing id replaces both its payload and its row;
        the access counters start again from zero.
        When no priority is given, one is derived from the new Pointer.

        Returns:
            The record as persisted in the index.

        Raises:
            ValidationError: If any field (or the payload) is invalid.
            CapacityError: If the payload exceeds the configured maximum.
            StorageError: If the filesystem or the index fails.
        """
        self._ensure_initialized()
        request = _coerce(CreateArtifactRequest, request, "create request")

        fields = request.model_dump(exclude={"data", "compress"})
        result = validate_artifact(fields, self._config.validation)
        if not result.valid:
            raise ValidationError(
                message=f"Artifact '{request.id}' failed validation",
                errors=result.errors,
                warnings=result.warnings,
            )
        self._log_warnings(request.id, result.warnings)

        clean = sanitize_artifact(fields)
        artifact_id = clean["id"]
        existing = await self._index.get(artifact_id)

        pointer, backup = await self._write_payload(
            artifact_id,
            clean["type"],
            clean["category"],
            request.data,
            request.compress,
            existing,
        )

        priority = clean.get("priority")
        if priority is None:
            priority = derive_priority(pointer)

        now = utc_now()
        record = ArtifactRecord(
            id=artifact_id,
            type=clean["type"],
            category=clean["category"],
            title=clean["title"],
            description=clean.get("description"),
            metadata=clean.get("metadata") or {},
            priority=priority,
            tags=clean.get("tags") or [],
            created_at=now,
            updated_at=now,
            storage=pointer.projection(),
        )
        await self._commit(record, pointer, backup, existing, reset_counters=True)

        self._logger.info(
            "artifact_created",
            artifact_id=artifact_id,
            type=record.type,
            category=record.category,
            file_size=record.file_size,
            compressed=record.compressed,
            replaced=existing is not None,
        )
        return await self._index.get(artifact_id) or record

    # =========================================================================
    # Read
    # =========================================================================

    async def get(self, artifact_id: str, *, track_access: bool = False) -> ArtifactRecord:
        """Return the index record of an artifact.

        Args:
            artifact_id: The artifact id.
            track_access: Count this read as an access.

        Raises:
            NotFoundError: If the id is unknown.
        """
        self._ensure_initialized()
        if track_access:
            await self._index.record_access(artifact_id)
        return await self._require(artifact_id)

    async def get_data(self, artifact_id: str) -> Any:
        """Load and verify the payload of an artifact; counts one access.

        Raises:
            NotFoundError: If the id is unknown.
            StorageError: If the payload file is missing or unreadable.
            IntegrityError: If the payload fails checksum verification.
            DecompressionError / ParseError: If the payload is corrupt.
        """
        self._ensure_initialized()
        record = await self._require(artifact_id)
        data = await self._blob_store.load(self._pointer_for(record))
        await self._index.record_access(artifact_id)
        return data

    async def verify(self, artifact_id: str) -> bool:
        """Re-check the payload file against the stored Pointer (no cache)."""
        self._ensure_initialized()
        record = await self._require(artifact_id)
        return await self._blob_store.validate(self._pointer_for(record))

    async def history(self, artifact_id: str, limit: int = 50) -> list[ArtifactEvent]:
        """Events recorded for an artifact, newest first."""
        self._ensure_initialized()
        return await self._index.events(artifact_id, limit=limit)

    # =========================================================================
    # Update
    # =========================================================================

    async def update(
        self, request: Union[UpdateArtifactRequest, dict[str, Any]],
    ) -> ArtifactRecord:
        """Apply the provided fields to an existing artifact.

        Metadata is shallow-merged into the stored object; other provided
        fields replace their stored values. Type and category never change.
        Providing ``data`` (``None`` included) re-persists the payload and
        swaps the Pointer.

        Raises:
            NotFoundError: If the id is unknown.
            ValidationError: If a provided field is invalid.
            StorageError: If the filesystem or the index fails.
        """
        self._ensure_initialized()
        request = _coerce(UpdateArtifactRequest, request, "update request")
        existing = await self._require(request.id)

        provided = {
            name: getattr(request, name)
            for name in _UPDATABLE_FIELDS
            if name in request.model_fields_set
        }
        # metadata=None leaves the stored object untouched
        if "metadata" in provided and provided["metadata"] is None:
            del provided["metadata"]
        if isinstance(provided.get("metadata"), dict):
            provided["metadata"] = {**existing.metadata, **provided["metadata"]}

        result = validate_update(provided, self._config.validation)
        if not result.valid:
            raise ValidationError(
                message=f"Update of artifact '{request.id}' failed validation",
                errors=result.errors,
                warnings=result.warnings,
            )
        self._log_warnings(request.id, result.warnings)

        changes = sanitize_artifact(provided)
        changes["updated_at"] = utc_now()

        if not request.has_data:
            record = existing.model_copy(update=changes)
            await self._index.upsert(record)
        else:
            pointer, backup = await self._write_payload(
                existing.id, existing.type, existing.category, request.data, None, existing,
            )
            changes["storage"] = pointer.projection()
            record = existing.model_copy(update=changes)
            await self._commit(record, pointer, backup, existing)

        self._logger.info(
            "artifact_updated",
            artifact_id=existing.id,
            fields=sorted(provided),
            data_replaced=request.has_data,
        )
        return await self._index.get(existing.id) or record

    # =========================================================================
    # Delete
    # =========================================================================

    async def delete(self, artifact_id: str) -> None:
        """Remove the payload file and the index row of an artifact.

        A payload file that is already gone is logged and the row is still
        removed. Any other filesystem failure keeps the row so the delete
        can be retried.

        Raises:
            NotFoundError: If the id is unknown.
            StorageError: BLOB_DELETE_FAILED if the payload cannot be removed.
        """
        self._ensure_initialized()
        record = await self._require(artifact_id)

        outcome = await self._blob_store.delete(self._pointer_for(record))
        if outcome.outcome == BlobDeleteOutcome.IO_FAILURE:
            raise StorageError(
                message=f"Failed to delete payload of artifact '{artifact_id}'",
                error_code="BLOB_DELETE_FAILED",
                details={
                    "artifact_id": artifact_id,
                    "path": outcome.file_path,
                    "reason": outcome.error,
                },
            )
        if outcome.outcome == BlobDeleteOutcome.NOT_FOUND:
            self._logger.warning(
                "artifact_payload_missing_on_delete",
                artifact_id=artifact_id,
                file_path=outcome.file_path,
            )

        await self._index.delete(artifact_id)
        self._logger.info("artifact_deleted", artifact_id=artifact_id)

    # =========================================================================
    # Search & Statistics
    # =========================================================================

    async def search(
        self, request: Union[SearchRequest, dict[str, Any], None] = None,
    ) -> list[ArtifactRecord]:
        """Search artifacts.

        The index filters by type, category and tags (any of), orders and
        paginates. Free-text, priority-range and date-range filters are
        then applied to that page, and title ordering is applied last.

        Raises:
            ValidationError: If the search request is invalid.
        """
        self._ensure_initialized()
        request = _coerce(SearchRequest, request or {}, "search request")

        result = validate_search_request(request.model_dump())
        if not result.valid:
            raise ValidationError(
                message="Search request failed validation",
                errors=result.errors,
                warnings=result.warnings,
            )

        page = await self._index.search(
            IndexQuery(
                type=request.type,
                category=request.category,
                tags=request.tags,
                limit=request.limit or self._config.api.default_search_limit,
                offset=request.offset,
                order_by=request.order_by,
                order_direction=request.order_direction,
            )
        )
        records = [r for r in page if self._matches(r, request)]

        if request.order_by == OrderBy.TITLE:
            records.sort(
                key=lambda r: r.title.lower(),
                reverse=request.order_direction == OrderDirection.DESC,
            )
        return records

    @staticmethod
    def _matches(record: ArtifactRecord, request: SearchRequest) -> bool:
        if request.query:
            needle = request.query.lower()
            haystacks = [record.title, record.description or "", *record.tags]
            if not any(needle in text.lower() for text in haystacks):
                return False
        if request.min_priority is not None and record.priority < request.min_priority:
            return False
        if request.max_priority is not None and record.priority > request.max_priority:
            return False
        if request.date_from is not None and record.created_at < as_utc(request.date_from):
            return False
        if request.date_to is not None and record.created_at > as_utc(request.date_to):
            return False
        return True

    async def stats(self) -> ArtifactStats:
        """Index totals plus top tags, recent and high-priority artifacts."""
        self._ensure_initialized()
        api_config = self._config.api

        index_stats = await self._index.stats()
        top_tags = await self._index.tag_counts(api_config.top_tags_limit)

        recent: list[ArtifactRecord] = []
        if api_config.recent_artifacts_limit:
            recent = await self._index.search(
                IndexQuery(
                    limit=api_config.recent_artifacts_limit,
                    order_by=OrderBy.CREATED_AT,
                    order_direction=OrderDirection.DESC,
                )
            )

        high_priority: list[ArtifactRecord] = []
        if api_config.high_priority_limit:
            by_priority = await self._index.search(
                IndexQuery(
                    limit=api_config.high_priority_limit,
                    order_by=OrderBy.PRIORITY,
                    order_direction=OrderDirection.DESC,
                )
            )
            high_priority = [
                r for r in by_priority if r.priority > api_config.high_priority_cutoff
            ]

        total = index_stats.total_artifacts
        return ArtifactStats(
            total_artifacts=total,
            by_type=index_stats.by_type,
            by_category=index_stats.by_category,
            total_size=index_stats.total_size,
            average_file_size=index_stats.total_size / total if total else 0.0,
            average_access_count=index_stats.average_access_count,
            top_tags=top_tags,
            recent_artifacts=recent,
            high_priority_artifacts=high_priority,
        )

    # =========================================================================
    # Bulk Operations
    # =========================================================================

    async def bulk_create(
        self, requests: list[Union[CreateArtifactRequest, dict[str, Any]]],
    ) -> BulkCreateResult:
        """Create many artifacts; a failing item is recorded, never raised.

        Up to ``api.bulk_concurrency`` items run at once. With a
        concurrency above 1, two requests for the same id race.
        """
        self._ensure_initialized()
        semaphore = asyncio.Semaphore(self._config.api.bulk_concurrency)

        async def create_one(request: Any) -> Union[ArtifactRecord, BulkFailure]:
            async with semaphore:
                try:
                    return await self.create(request)
                except HybridStoreError as exc:
                    self._logger.warning(
                        "bulk_create_item_failed",
                        artifact_id=_request_id(request),
                        error_code=exc.error_code,
                    )
                    return _failure(_request_id(request), exc)

        outcomes = await asyncio.gather(*(create_one(r) for r in requests))

        result = BulkCreateResult()
        for outcome in outcomes:
            if isinstance(outcome, BulkFailure):
                result.failed.append(outcome)
            else:
                result.created.append(outcome)

        self._logger.info(
            "bulk_create_completed",
            created=len(result.created),
            failed=len(result.failed),
        )
        return result

    async def bulk_delete(self, artifact_ids: list[str]) -> BulkDeleteResult:
        """Delete many artifacts; a failing item is recorded, never raised."""
        self._ensure_initialized()
        semaphore = asyncio.Semaphore(self._config.api.bulk_concurrency)

        async def delete_one(artifact_id: str) -> Optional[BulkFailure]:
            async with semaphore:
                try:
                    await self.delete(artifact_id)
                    return None
                except HybridStoreError as exc:
                    self._logger.warning(
                        "bulk_delete_item_failed",
                        artifact_id=artifact_id,
                        error_code=exc.error_code,
                    )
                    return _failure(artifact_id, exc)

        outcomes = await asyncio.gather(*(delete_one(i) for i in artifact_ids))

        result = BulkDeleteResult()
        for artifact_id, failure in zip(artifact_ids, outcomes):
            if failure is None:
                result.deleted.append(artifact_id)
            else:
                result.failed.append(failure)

        self._logger.info(
            "bulk_delete_completed",
            deleted=len(result.deleted),
            failed=len(result.failed),
        )
        return result

    # =========================================================================
    # Health
    # =========================================================================

    async def health_check(self) -> HealthReport:
        """Combine index health and blob-store statistics.

        healthy   - index healthy and the payload tree could be summarized
        degraded  - index healthy, storage statistics failed
        unhealthy - index unhealthy
        """
        index_health = await self._index.health_check()

        storage_ok = True
        try:
            storage_stats = await self._blob_store.storage_stats()
            storage = storage_stats.model_dump(mode="json")
        except HybridStoreError as exc:
            storage_ok = False
            storage = {"error": exc.message, "error_code": exc.error_code}
        storage["cache"] = self._blob_store.cache_stats().model_dump()

        if index_health.status == HealthStatus.UNHEALTHY:
            status = HealthStatus.UNHEALTHY
        elif not storage_ok:
            status = HealthStatus.DEGRADED
        else:
            status = HealthStatus.HEALTHY

        if status != HealthStatus.HEALTHY:
            self._logger.warning("health_check_not_healthy", status=status.value)
        return HealthReport(
            status=status,
            index={"status": index_health.status.value, **index_health.details},
            storage=storage,
        )

    # =========================================================================
    # Internal Helpers
    # =========================================================================

    def _ensure_initialized(self) -> None:
        """Check that initialize() has been called.

        Raises:
            RuntimeError: If the facade has not been initialized.
        """
        if not self._initialized:
            raise RuntimeError(
                "ArtifactAPI has not been initialized. "
                "Call await api.initialize() or use 'async with ArtifactAPI() as api:'"
            )

    async def _require(self, artifact_id: str) -> ArtifactRecord:
        record = await self._index.get(artifact_id)
        if record is None:
            raise NotFoundError(
                message=f"Artifact '{artifact_id}' not found",
                artifact_id=artifact_id,
            )
        return record

    def _pointer_for(self, record: ArtifactRecord) -> Pointer:
        return self._blob_store.pointer_from_projection(
            record.storage,
            created_at=record.created_at,
            last_accessed=record.last_accessed,
        )

    async def _write_payload(
        self,
        artifact_id: str,
        artifact_type: str,
        category: str,
        data: Any,
        compress: Optional[bool],
        existing: Optional[ArtifactRecord],
    ) -> tuple[Pointer, Optional[Pointer]]:
        """Store a payload, first backing up a file it would overwrite.

        Returns:
            The new Pointer and the backup Pointer (None when nothing was
            overwritten).

        Raises:
            StorageError: INVALID_POINTER if the stored Pointer fails its
                structural check; the previous payload is put back first.
        """
        target = str(self._blob_store.path_for(artifact_id, artifact_type, category))
        backup: Optional[Pointer] = None
        if existing is not None and existing.file_path == target:
            if await self._blob_store.file_stats(target) is not None:
                backup = await self._blob_store.backup(self._pointer_for(existing))

        try:
            pointer = await self._blob_store.store(
                artifact_id, artifact_type, category, data, compress=compress,
            )
        except HybridStoreError:
            if backup is not None:
                await self._blob_store.delete(backup)
            raise

        check = validate_pointer(pointer)
        if not check.valid:
            await self._undo_payload(artifact_id, pointer, backup)
            raise StorageError(
                message=f"Stored payload of artifact '{artifact_id}' has an invalid pointer",
                error_code="INVALID_POINTER",
                details={"file_path": pointer.file_path, "errors": check.errors},
            )
        if check.warnings:
            self._logger.warning(
                "pointer_warnings", artifact_id=artifact_id, warnings=check.warnings,
            )
        return pointer, backup

    async def _commit(
        self,
        record: ArtifactRecord,
        pointer: Pointer,
        backup: Optional[Pointer],
        existing: Optional[ArtifactRecord],
        *,
        reset_counters: bool = False,
    ) -> None:
        """Write the index row for a freshly stored payload.

        On success the previous payload (backup or a file at another path)
        is removed. On failure the previous payload is put back, or the new
        file is removed when there was none, and the error propagates.
        """
        try:
            await self._index.upsert(record, reset_counters=reset_counters)
        except HybridStoreError:
            await self._undo_payload(record.id, pointer, backup)
            raise

        if backup is not None:
            await self._blob_store.delete(backup)
        elif existing is not None and existing.file_path != pointer.file_path:
            await self._blob_store.delete(self._pointer_for(existing))

    async def _undo_payload(
        self, artifact_id: str, pointer: Pointer, backup: Optional[Pointer],
    ) -> None:
        # No backup means nothing readable was overwritten; the new file goes.
        try:
            if backup is not None:
                await self._blob_store.restore(backup, pointer.file_path)
            else:
                await self._blob_store.delete(pointer)
        except HybridStoreError as undo_exc:
            self._logger.error(
                "payload_rollback_failed",
                artifact_id=artifact_id,
                error=undo_exc.message,
            )

    def _log_warnings(self, artifact_id: Any, warnings: list[str]) -> None:
        if warnings:
            self._logger.warning(
                "artifact_validation_warnings",
                artifact_id=artifact_id,
                warnings=warnings,
            )

    def __repr__(self) -> str:
        return (
            f"ArtifactAPI("
            f"initialized={self._initialized}, "
            f"base_path={self._config.blob_store.base_path!r}, "
            f"database_path={self._config.index.database_path!r})"
        )
