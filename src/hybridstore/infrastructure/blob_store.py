"""
hybridstore.infrastructure.blob_store - File-Based Payload Store
=================================================================

Durable storage of artifact payloads as JSON files, with optional gzip
compression, SHA-256 integrity checks and an in-process read cache.

Architecture Context:
    The BlobStore is the only component that builds Pointers. The
    Artifact API hands it a payload and gets a Pointer back; the Metadata
    Index only ever sees ``pointer.projection()``.

    ┌──────────────┐  store(id, type, category, payload)  ┌─────────────┐
    │ ArtifactAPI   │ ───────────────────────────────────→ │  BlobStore   │
    │              │ ←─────────────────────────────────── │             │
    └──────────────┘               Pointer                 └──────┬──────┘
                                                                  │
                             <base>/<type>/<category>/<id>.json ←─┘

Write Path:
    payload → compact JSON → size check → (gzip) → SHA-256 → temp file
    → os.replace() onto the final path → cache entries for the path dropped

Read Path:
    Pointer → cache lookup (file_path, offset, size)
        hit  → deep copy of the cached payload
        miss → read bytes → length + checksum check → (gunzip) → parse
               → cache put → payload

Filesystem calls run in worker threads (``asyncio.to_thread``) so the
event loop never blocks on disk. There is no cross-call locking:
concurrent stores to the same id race and the last ``os.replace`` wins.

Usage:
    >>> store = BlobStore(BlobStoreConfig(base_path="/tmp/blobs"))
    >>> pointer = await store.store("a1", "cache", "knowledge", {"name": "a"})
    >>> await store.load(pointer)
    {'name': 'a'}
"""

from __future__ import annotations

import asyncio
import json
import os
import re
import shutil
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

import structlog

from hybridstore.core.config import BlobStoreConfig
from hybridstore.core.enums import BlobDeleteOutcome
from hybridstore.core.exceptions import (
    CapacityError,
    DecompressionError,
    IntegrityError,
    ParseError,
    StorageError,
    ValidationError,
)
from hybridstore.core.json_value import dumps_compact
from hybridstore.core.models import (
    BlobDeleteResult,
    CacheStats,
    CleanupResult,
    FileStats,
    Pointer,
    PointerProjection,
    StorageStats,
    utc_now,
)
from hybridstore.infrastructure.codec import CodecError, CompressionCodec, GzipCodec
from hybridstore.infrastructure.pointer_utils import calculate_checksum
from hybridstore.infrastructure.read_cache import ReadCache, TTLLRUCache

# =============================================================================
# Logger
# =============================================================================
logger = structlog.get_logger()

_UNSAFE_SEGMENT_RE = re.compile(r"[^A-Za-z0-9_-]")

PAYLOAD_SUFFIX = ".json"
BACKUP_SUFFIX = ".bak"


def sanitize_segment(segment: str) -> str:
    """Replace every character outside ``[A-Za-z0-9_-]`` with ``_``."""
    return _UNSAFE_SEGMENT_RE.sub("_", segment)


class BlobStore:
    """Checksummed, optionally compressed JSON payload files.

    Attributes:
        config: Blob store settings.
        cache: Read cache for decoded payloads.
        codec: Compression codec used when a payload is compressed.

    Example:
        >>> store = BlobStore(
        ...     BlobStoreConfig(base_path="/tmp/blobs", compression_threshold=1024),
        ... )
        >>> pointer = await store.store("big", "cache", "knowledge", "x" * 2000)
        >>> pointer.compressed, pointer.size < 2000
        (True, True)
    """

    def __init__(
        self,
        config: Optional[BlobStoreConfig] = None,
        cache: Optional[ReadCache] = None,
        codec: Optional[CompressionCodec] = None,
    ) -> None:
        self.config = config or BlobStoreConfig()
        self.cache = cache if cache is not None else TTLLRUCache(
            ttl_seconds=self.config.cache_ttl_seconds,
            max_entries=self.config.cache_max_entries,
        )
        self.codec = codec or GzipCodec(level=self.config.compression_level)
        self._base_path = Path(self.config.base_path)
        self._logger = logger.bind(component="blob_store")

    @property
    def base_path(self) -> Path:
        return self._base_path

    async def initialize(self) -> None:
        """Create the base directory if it does not exist."""
        try:
            await asyncio.to_thread(self._base_path.mkdir, parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(
                message=f"Cannot create storage directory {self._base_path}",
                error_code="FILE_WRITE_FAILED",
                details={"path": str(self._base_path), "reason": str(exc)},
            ) from exc
        self._logger.info("blob_store_initialized", base_path=str(self._base_path))

    def path_for(self, artifact_id: str, artifact_type: str, category: str) -> Path:
        """Location of the payload file for an artifact."""
        return (
            self._base_path
            / sanitize_segment(artifact_type)
            / sanitize_segment(category)
            / f"{sanitize_segment(artifact_id)}{PAYLOAD_SUFFIX}"
        )

    # -------------------------------------------------------------------------
    # Store
    # -------------------------------------------------------------------------
    async def store(
        self,
        artifact_id: str,
        artifact_type: str,
        category: str,
        payload: Any,
        *,
        compress: Optional[bool] = None,
    ) -> Pointer:
        """Persist a payload and return the Pointer describing it.

        Args:
            artifact_id: Artifact id (file name).
            artifact_type: First directory level.
            category: Second directory level.
            payload: Any JSON value.
            compress: True/False forces compression on/off; None compresses
                when enabled and the serialized size exceeds the threshold.

        Returns:
            A fully populated Pointer (offset is None: whole-file payload).

        Raises:
            ValidationError: If the payload is not representable as JSON.
            CapacityError: If the serialized payload exceeds max_file_size.
            StorageError: If the file cannot be written.
        """
        try:
            serialized = dumps_compact(payload).encode("utf-8")
        except (TypeError, ValueError, RecursionError) as exc:
            raise ValidationError(
                message=f"Payload of artifact '{artifact_id}' is not valid JSON",
                errors=[f"Payload is not serializable: {exc}"],
            ) from exc

        original_size = len(serialized)
        if original_size > self.config.max_file_size:
            raise CapacityError(
                message=(
                    f"Payload of artifact '{artifact_id}' is {original_size} bytes, "
                    f"limit is {self.config.max_file_size}"
                ),
                size=original_size,
                limit=self.config.max_file_size,
            )

        if compress is None:
            compress = (
                self.config.enable_compression
                and original_size > self.config.compression_threshold
            )

        data = serialized
        compressed = False
        if compress:
            try:
                data = self.codec.compress(serialized)
                compressed = True
            except CodecError as exc:
                self._logger.warning(
                    "compression_failed_storing_uncompressed",
                    artifact_id=artifact_id,
                    error=str(exc),
                )

        checksum = calculate_checksum(data) if self.config.enable_checksums else ""
        path = self.path_for(artifact_id, artifact_type, category)

        try:
            await asyncio.to_thread(self._write_atomic, path, data)
        except OSError as exc:
            raise StorageError(
                message=f"Failed to write payload of artifact '{artifact_id}'",
                error_code="FILE_WRITE_FAILED",
                details={"path": str(path), "reason": str(exc)},
            ) from exc

        self._evict_path(str(path))

        pointer = Pointer(
            file_path=str(path),
            size=len(data),
            checksum=checksum,
            compressed=compressed,
        )
        self._logger.debug(
            "payload_stored",
            artifact_id=artifact_id,
            file_path=pointer.file_path,
            original_size=original_size,
            stored_size=pointer.size,
            compressed=compressed,
        )
        return pointer

    # -------------------------------------------------------------------------
    # Load
    # -------------------------------------------------------------------------
    async def load(self, pointer: Pointer) -> Any:
        """Read, verify and decode the payload a Pointer refers to.

        Sets ``pointer.last_accessed`` on success.

        Raises:
            StorageError: FILE_NOT_FOUND if the file is missing,
                FILE_READ_FAILED on other I/O failures.
            IntegrityError: If the stored length or checksum does not match.
            DecompressionError: If compressed bytes cannot be decompressed.
            ParseError: If the bytes are not UTF-8 JSON.
        """
        key = pointer.cache_key
        cached = self.cache.get(key)
        if cached is not None:
            pointer.last_accessed = utc_now()
            return cached

        raw = await self._read_or_raise(pointer)
        self._verify_or_raise(pointer, raw)

        if pointer.compressed:
            try:
                raw = self.codec.decompress(raw)
            except CodecError as exc:
                raise DecompressionError(
                    message=f"Cannot decompress {pointer.file_path}",
                    file_path=pointer.file_path,
                    details={"reason": str(exc)},
                ) from exc

        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ParseError(
                message=f"Cannot parse payload in {pointer.file_path}",
                file_path=pointer.file_path,
                details={"reason": str(exc)},
            ) from exc

        # None is indistinguishable from a miss, so null payloads are not cached.
        if payload is not None:
            self.cache.put(key, payload)
        pointer.last_accessed = utc_now()
        return payload

    async def _read_or_raise(self, pointer: Pointer) -> bytes:
        try:
            return await asyncio.to_thread(
                self._read_bytes, pointer.file_path, pointer.offset, pointer.size,
            )
        except FileNotFoundError as exc:
            raise StorageError(
                message=f"Payload file not found: {pointer.file_path}",
                error_code="FILE_NOT_FOUND",
                details={"path": pointer.file_path},
            ) from exc
        except OSError as exc:
            raise StorageError(
                message=f"Failed to read payload file {pointer.file_path}",
                error_code="FILE_READ_FAILED",
                details={"path": pointer.file_path, "reason": str(exc)},
            ) from exc

    def _verify_or_raise(self, pointer: Pointer, raw: bytes) -> None:
        if len(raw) != pointer.size:
            raise IntegrityError(
                message=f"Size mismatch for {pointer.file_path}",
                file_path=pointer.file_path,
                expected=str(pointer.size),
                actual=str(len(raw)),
                error_code="SIZE_MISMATCH",
            )
        if pointer.checksum:
            actual = calculate_checksum(raw)
            if actual != pointer.checksum:
                raise IntegrityError(
                    message=f"Checksum mismatch for {pointer.file_path}",
                    file_path=pointer.file_path,
                    expected=pointer.checksum,
                    actual=actual,
                )

    # -------------------------------------------------------------------------
    # Delete / Validate
    # -------------------------------------------------------------------------
    async def delete(self, pointer: Pointer) -> BlobDeleteResult:
        """Remove a payload file and its cache entries. Never raises."""
        self._evict_path(pointer.file_path)
        try:
            await asyncio.to_thread(os.remove, pointer.file_path)
        except FileNotFoundError:
            self._logger.debug("payload_already_absent", file_path=pointer.file_path)
            return BlobDeleteResult(
                outcome=BlobDeleteOutcome.NOT_FOUND, file_path=pointer.file_path,
            )
        except OSError as exc:
            self._logger.error(
                "payload_delete_failed", file_path=pointer.file_path, error=str(exc),
            )
            return BlobDeleteResult(
                outcome=BlobDeleteOutcome.IO_FAILURE,
                file_path=pointer.file_path,
                error=str(exc),
            )

        self._logger.debug("payload_deleted", file_path=pointer.file_path)
        return BlobDeleteResult(outcome=BlobDeleteOutcome.DELETED, file_path=pointer.file_path)

    async def validate(self, pointer: Pointer) -> bool:
        """Re-read the file and compare length and checksum (cache bypassed)."""
        try:
            raw = await asyncio.to_thread(
                self._read_bytes, pointer.file_path, pointer.offset, pointer.size,
            )
        except OSError as exc:
            self._logger.warning(
                "payload_validation_read_failed",
                file_path=pointer.file_path,
                error=str(exc),
            )
            return False

        if len(raw) != pointer.size:
            return False
        if pointer.checksum and calculate_checksum(raw) != pointer.checksum:
            return False
        return True

    # -------------------------------------------------------------------------
    # Backup / Restore
    # -------------------------------------------------------------------------
    async def backup(self, pointer: Pointer) -> Pointer:
        """Copy a payload file next to itself (``<name>.json.bak``).

        The backup keeps the checksum, size and compression flag of the
        original, so it can be validated or restored as-is.

        Raises:
            StorageError: If the copy fails.
        """
        backup_path = f"{pointer.file_path}{BACKUP_SUFFIX}"
        try:
            await asyncio.to_thread(shutil.copy2, pointer.file_path, backup_path)
        except OSError as exc:
            raise StorageError(
                message=f"Failed to back up {pointer.file_path}",
                error_code="FILE_WRITE_FAILED",
                details={"path": pointer.file_path, "reason": str(exc)},
            ) from exc

        return pointer.model_copy(update={"file_path": backup_path})

    async def restore(self, backup: Pointer, target_path: str) -> Pointer:
        """Move a backup over ``target_path`` and return the restored Pointer.

        Raises:
            StorageError: If the backup cannot be moved.
        """
        try:
            await asyncio.to_thread(os.replace, backup.file_path, target_path)
        except OSError as exc:
            raise StorageError(
                message=f"Failed to restore {target_path} from backup",
                error_code="FILE_WRITE_FAILED",
                details={
                    "path": target_path,
                    "backup": backup.file_path,
                    "reason": str(exc),
                },
            ) from exc

        self._evict_path(target_path)
        self._logger.info("payload_restored", file_path=target_path)
        return backup.model_copy(update={"file_path": target_path})

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------
    async def cleanup(self, older_than_days: Optional[int] = None) -> CleanupResult:
        """Delete payload files whose modification time precedes the cutoff.

        Index rows that point at removed files are left in place.
        """
        days = (
            self.config.cleanup_older_than_days
            if older_than_days is None
            else older_than_days
        )
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        result = await asyncio.to_thread(self._cleanup_sync, cutoff.timestamp())
        self._logger.info(
            "cleanup_completed",
            older_than_days=days,
            deleted=result.deleted,
            errors=result.errors,
        )
        return result

    def _cleanup_sync(self, cutoff: float) -> CleanupResult:
        result = CleanupResult()
        for path in self._payload_files():
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    self._evict_path(str(path))
                    result.deleted += 1
            except OSError as exc:
                self._logger.warning("cleanup_file_failed", path=str(path), error=str(exc))
                result.errors += 1
        return result

    async def storage_stats(self) -> StorageStats:
        """Summarize the payload tree.

        Raises:
            StorageError: If the tree cannot be walked.
        """
        try:
            return await asyncio.to_thread(self._storage_stats_sync)
        except OSError as exc:
            raise StorageError(
                message="Failed to collect storage statistics",
                error_code="FILE_READ_FAILED",
                details={"path": str(self._base_path), "reason": str(exc)},
            ) from exc

    def _storage_stats_sync(self) -> StorageStats:
        stats = StorageStats()
        oldest: Optional[float] = None
        newest: Optional[float] = None

        for path in self._payload_files():
            st = path.stat()
            stats.total_files += 1
            stats.total_size += st.st_size

            file_type = path.relative_to(self._base_path).parts[0]
            stats.files_by_type[file_type] = stats.files_by_type.get(file_type, 0) + 1

            oldest = st.st_mtime if oldest is None else min(oldest, st.st_mtime)
            newest = st.st_mtime if newest is None else max(newest, st.st_mtime)

        if stats.total_files:
            stats.average_file_size = stats.total_size / stats.total_files
            stats.oldest_file = datetime.fromtimestamp(oldest, tz=timezone.utc)
            stats.newest_file = datetime.fromtimestamp(newest, tz=timezone.utc)
        return stats

    async def file_stats(self, file_path: str) -> Optional[FileStats]:
        """Size and modification time of one file, or None if it is missing."""
        try:
            st = await asyncio.to_thread(os.stat, file_path)
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(
                message=f"Failed to stat {file_path}",
                error_code="FILE_READ_FAILED",
                details={"path": file_path, "reason": str(exc)},
            ) from exc

        return FileStats(
            exists=True,
            size=st.st_size,
            modified_at=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
        )

    # -------------------------------------------------------------------------
    # Pointer Authority
    # -------------------------------------------------------------------------
    def pointer_from_projection(
        self,
        projection: PointerProjection,
        created_at: Optional[datetime] = None,
        last_accessed: Optional[datetime] = None,
    ) -> Pointer:
        """Rebuild a Pointer from the projection persisted in the index."""
        return Pointer(
            file_path=projection.file_path,
            offset=projection.file_offset,
            size=projection.file_size,
            checksum=projection.checksum,
            compressed=projection.compressed,
            created_at=created_at or utc_now(),
            last_accessed=last_accessed,
        )

    # -------------------------------------------------------------------------
    # Cache
    # -------------------------------------------------------------------------
    def clear_cache(self) -> None:
        self.cache.clear()
        self._logger.debug("read_cache_cleared")

    def cache_stats(self) -> CacheStats:
        return CacheStats(
            size=len(self.cache),
            max_entries=getattr(self.cache, "max_entries", 0),
            ttl_seconds=getattr(self.cache, "ttl_seconds", 0.0),
            hits=getattr(self.cache, "hits", 0),
            misses=getattr(self.cache, "misses", 0),
        )

    def _evict_path(self, file_path: str) -> None:
        for key in self.cache.keys():
            if isinstance(key, tuple) and key and key[0] == file_path:
                self.cache.delete(key)

    # -------------------------------------------------------------------------
    # Filesystem primitives (run in worker threads)
    # -------------------------------------------------------------------------
    def _read_bytes(self, file_path: str, offset: Optional[int], size: int) -> bytes:
        with open(file_path, "rb") as f:
            if offset is None:
                return f.read()
            f.seek(offset)
            return f.read(size)

    def _write_atomic(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    def _payload_files(self) -> list[Path]:
        if not self._base_path.exists():
            return []
        return [p for p in self._base_path.rglob(f"*{PAYLOAD_SUFFIX}") if p.is_file()]
