"""
Tests for hybridstore.infrastructure.blob_store
================================================

What's Being Tested:
    - Round trip with and without compression
    - The compression threshold scenario (small JSON vs. 2,000 repeated chars)
    - Integrity: corrupted bytes raise IntegrityError and fail validate()
    - Decompression, parse, capacity and missing-file failures
    - Read cache: no second filesystem read within the TTL, a fresh read after
    - Tagged delete outcomes, cleanup, storage statistics, backup/restore

All tests write under pytest's tmp_path.
"""

import json
import os
import time
from pathlib import Path

import pytest

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
from hybridstore.core.models import Pointer, PointerProjection
from hybridstore.infrastructure.blob_store import BlobStore, sanitize_segment
from hybridstore.infrastructure.codec import CodecError, GzipCodec
from hybridstore.infrastructure.pointer_utils import calculate_checksum
from hybridstore.infrastructure.read_cache import TTLLRUCache


# =============================================================================
# Helpers
# =============================================================================
class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class FailingCodec(GzipCodec):
    def compress(self, data: bytes) -> bytes:
        raise CodecError("compression unavailable")


def _count_reads(store: BlobStore, monkeypatch: pytest.MonkeyPatch) -> list:
    calls: list = []
    original = store._read_bytes

    def counting(*args):
        calls.append(args)
        return original(*args)

    monkeypatch.setattr(store, "_read_bytes", counting)
    return calls


def _corrupt(path: str) -> None:
    raw = bytearray(Path(path).read_bytes())
    raw[len(raw) // 2] ^= 0xFF
    Path(path).write_bytes(bytes(raw))


NESTED = {"name": "a", "items": [1, 2.5, None, True], "nested": {"k": ["v"] * 3}}


# =============================================================================
# Tests: Store / Load
# =============================================================================
class TestRoundTrip:
    """Stored payloads load back deep-equal."""

    async def test_round_trip_uncompressed(self, blob_store: BlobStore) -> None:
        pointer = await blob_store.store("a1", "cache", "knowledge", NESTED)
        assert pointer.compressed is False
        assert await blob_store.load(pointer) == NESTED

    async def test_round_trip_compressed(self, blob_store: BlobStore) -> None:
        payload = {"text": "lorem ipsum " * 500, "n": list(range(50))}
        pointer = await blob_store.store("a2", "cache", "knowledge", payload)
        assert pointer.compressed is True
        assert await blob_store.load(pointer) == payload

    async def test_forced_compression(self, blob_store: BlobStore) -> None:
        pointer = await blob_store.store("a3", "cache", "knowledge", NESTED, compress=True)
        assert pointer.compressed is True
        assert await blob_store.load(pointer) == NESTED

    async def test_forbidden_compression(self, blob_store: BlobStore) -> None:
        pointer = await blob_store.store("a4", "cache", "knowledge", "x" * 5000, compress=False)
        assert pointer.compressed is False
        assert pointer.size == 5002

    async def test_null_payload(self, blob_store: BlobStore) -> None:
        pointer = await blob_store.store("a5", "cache", "knowledge", None)
        assert await blob_store.load(pointer) is None

    async def test_load_sets_last_accessed(self, blob_store: BlobStore) -> None:
        pointer = await blob_store.store("a6", "cache", "knowledge", NESTED)
        assert pointer.last_accessed is None
        await blob_store.load(pointer)
        assert pointer.last_accessed is not None


class TestCompressionScenario:
    """Threshold of 1024 bytes: small stays plain, large repetitive shrinks."""

    async def test_small_json_is_not_compressed(self, blob_store: BlobStore) -> None:
        payload = {"name": "a"}
        pointer = await blob_store.store("small", "cache", "knowledge", payload)
        assert pointer.compressed is False
        assert pointer.size == len(dumps_compact(payload).encode("utf-8"))

    async def test_large_repetitive_string_is_compressed(self, blob_store: BlobStore) -> None:
        pointer = await blob_store.store("large", "cache", "knowledge", "a" * 2000)
        assert pointer.compressed is True
        assert pointer.size < 2000

    async def test_compression_disabled(self, tmp_path: Path) -> None:
        store = BlobStore(BlobStoreConfig(base_path=str(tmp_path), enable_compression=False))
        pointer = await store.store("large", "cache", "knowledge", "a" * 2000)
        assert pointer.compressed is False

    async def test_codec_failure_falls_back_to_plain(self, blob_config: BlobStoreConfig) -> None:
        store = BlobStore(blob_config, codec=FailingCodec())
        pointer = await store.store("large", "cache", "knowledge", "a" * 2000)
        assert pointer.compressed is False
        assert await store.load(pointer) == "a" * 2000


class TestLayout:
    """Files land at <base>/<type>/<category>/<id>.json."""

    async def test_path(self, blob_store: BlobStore, blob_config: BlobStoreConfig) -> None:
        pointer = await blob_store.store("a1", "cache", "knowledge", NESTED)
        expected = Path(blob_config.base_path) / "cache" / "knowledge" / "a1.json"
        assert pointer.file_path == str(expected)
        assert expected.exists()

    def test_segments_are_sanitized(self) -> None:
        assert sanitize_segment("a.b/c d") == "a_b_c_d"
        assert sanitize_segment("ok_name-1") == "ok_name-1"

    async def test_sanitized_path(self, blob_store: BlobStore) -> None:
        pointer = await blob_store.store("../escape", "my type", "cat!", 1)
        assert Path(pointer.file_path).parts[-3:] == ("my_type", "cat_", "___escape.json")

    async def test_no_temporary_files_left(self, blob_store: BlobStore) -> None:
        pointer = await blob_store.store("a1", "cache", "knowledge", NESTED)
        siblings = os.listdir(Path(pointer.file_path).parent)
        assert siblings == ["a1.json"]

    async def test_checksum_matches_stored_bytes(self, blob_store: BlobStore) -> None:
        pointer = await blob_store.store("big", "cache", "knowledge", "z" * 3000)
        raw = Path(pointer.file_path).read_bytes()
        assert len(raw) == pointer.size
        assert calculate_checksum(raw) == pointer.checksum


# =============================================================================
# Tests: Failures
# =============================================================================
class TestLoadFailures:
    """Every corrupt or missing payload surfaces as a specific error."""

    async def test_corrupted_byte_raises_integrity_error(self, blob_store: BlobStore) -> None:
        pointer = await blob_store.store("a1", "cache", "knowledge", NESTED)
        _corrupt(pointer.file_path)

        with pytest.raises(IntegrityError):
            await blob_store.load(pointer)
        assert await blob_store.validate(pointer) is False

    async def test_corrupted_compressed_payload(self, blob_store: BlobStore) -> None:
        pointer = await blob_store.store("a1", "cache", "knowledge", "q" * 4000)
        _corrupt(pointer.file_path)

        with pytest.raises(IntegrityError):
            await blob_store.load(pointer)

    async def test_truncated_file_raises_integrity_error(self, blob_store: BlobStore) -> None:
        pointer = await blob_store.store("a1", "cache", "knowledge", NESTED)
        raw = Path(pointer.file_path).read_bytes()
        Path(pointer.file_path).write_bytes(raw[:-3])

        with pytest.raises(IntegrityError):
            await blob_store.load(pointer)
        assert await blob_store.validate(pointer) is False

    async def test_not_gzip_raises_decompression_error(self, blob_store: BlobStore) -> None:
        plain = await blob_store.store("a1", "cache", "knowledge", NESTED)
        flagged = plain.model_copy(update={"compressed": True})

        with pytest.raises(DecompressionError):
            await blob_store.load(flagged)

    async def test_not_json_raises_parse_error(self, blob_store: BlobStore, tmp_path: Path) -> None:
        path = tmp_path / "garbage.json"
        path.write_bytes(b"not json")
        pointer = blob_store.pointer_from_projection(
            PointerProjection(
                file_path=str(path), file_size=8, checksum=calculate_checksum(b"not json"),
            )
        )

        with pytest.raises(ParseError):
            await blob_store.load(pointer)

    async def test_missing_file(self, blob_store: BlobStore, tmp_path: Path) -> None:
        pointer = Pointer(file_path=str(tmp_path / "nope.json"), size=3)

        with pytest.raises(StorageError) as exc_info:
            await blob_store.load(pointer)
        assert exc_info.value.error_code == "FILE_NOT_FOUND"
        assert await blob_store.validate(pointer) is False

    async def test_capacity(self, tmp_path: Path) -> None:
        store = BlobStore(BlobStoreConfig(base_path=str(tmp_path), max_file_size=10))

        with pytest.raises(CapacityError) as exc_info:
            await store.store("a1", "cache", "knowledge", {"name": "too long"})
        assert exc_info.value.limit == 10
        assert not (tmp_path / "cache").exists()

    async def test_non_json_payload(self, blob_store: BlobStore) -> None:
        with pytest.raises(ValidationError):
            await blob_store.store("a1", "cache", "knowledge", {"when": object()})

    async def test_checksums_disabled(self, tmp_path: Path) -> None:
        store = BlobStore(BlobStoreConfig(base_path=str(tmp_path), enable_checksums=False))
        pointer = await store.store("a1", "cache", "knowledge", NESTED)
        assert pointer.checksum == ""
        assert await store.load(pointer) == NESTED
        assert await store.validate(pointer) is True


class TestOffsetReads:
    """A pointer with an offset reads only its byte range."""

    async def test_sub_region(self, blob_store: BlobStore, tmp_path: Path) -> None:
        body = json.dumps({"part": 2}).encode("utf-8")
        path = tmp_path / "packed.bin"
        path.write_bytes(b"HEADER--" + body + b"--TRAILER")
        pointer = blob_store.pointer_from_projection(
            PointerProjection(
                file_path=str(path),
                file_offset=8,
                file_size=len(body),
                checksum=calculate_checksum(body),
            )
        )

        assert await blob_store.load(pointer) == {"part": 2}
        assert await blob_store.validate(pointer) is True


# =============================================================================
# Tests: Read Cache
# =============================================================================
class TestReadCache:
    """Loads within the TTL are served without touching the filesystem."""

    async def test_second_load_within_ttl_skips_read(
        self, blob_config: BlobStoreConfig, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        clock = FakeClock()
        store = BlobStore(blob_config, cache=TTLLRUCache(ttl_seconds=300, clock=clock))
        pointer = await store.store("a1", "cache", "knowledge", NESTED)
        reads = _count_reads(store, monkeypatch)

        first = await store.load(pointer)
        clock.now += 10
        second = await store.load(pointer)
        assert first == second == NESTED
        assert len(reads) == 1

        clock.now += 300
        third = await store.load(pointer)
        assert third == NESTED
        assert len(reads) == 2

    async def test_cached_copy_survives_file_removal(self, blob_store: BlobStore) -> None:
        pointer = await blob_store.store("a1", "cache", "knowledge", NESTED)
        await blob_store.load(pointer)
        os.remove(pointer.file_path)
        assert await blob_store.load(pointer) == NESTED

    async def test_store_invalidates_same_path(self, blob_store: BlobStore) -> None:
        first = await blob_store.store("a1", "cache", "knowledge", {"name": "a"})
        assert await blob_store.load(first) == {"name": "a"}

        second = await blob_store.store("a1", "cache", "knowledge", {"name": "b"})
        assert second.cache_key == first.cache_key
        assert await blob_store.load(second) == {"name": "b"}

    async def test_validate_bypasses_cache(self, blob_store: BlobStore) -> None:
        pointer = await blob_store.store("a1", "cache", "knowledge", NESTED)
        await blob_store.load(pointer)
        _corrupt(pointer.file_path)
        assert await blob_store.validate(pointer) is False

    async def test_cache_stats_and_clear(self, blob_store: BlobStore) -> None:
        pointer = await blob_store.store("a1", "cache", "knowledge", NESTED)
        await blob_store.load(pointer)
        await blob_store.load(pointer)

        stats = blob_store.cache_stats()
        assert stats.size == 1
        assert stats.hits == 1
        assert stats.ttl_seconds == 300.0

        blob_store.clear_cache()
        assert blob_store.cache_stats().size == 0


# =============================================================================
# Tests: Delete
# =============================================================================
class TestDelete:
    """delete() reports a tagged outcome and never raises."""

    async def test_deleted(self, blob_store: BlobStore) -> None:
        pointer = await blob_store.store("a1", "cache", "knowledge", NESTED)
        await blob_store.load(pointer)

        result = await blob_store.delete(pointer)
        assert result.outcome == BlobDeleteOutcome.DELETED
        assert result
        assert not Path(pointer.file_path).exists()
        assert blob_store.cache_stats().size == 0

    async def test_not_found(self, blob_store: BlobStore, tmp_path: Path) -> None:
        result = await blob_store.delete(Pointer(file_path=str(tmp_path / "gone.json"), size=1))
        assert result.outcome == BlobDeleteOutcome.NOT_FOUND
        assert not result

    async def test_io_failure(self, blob_store: BlobStore, tmp_path: Path) -> None:
        directory = tmp_path / "a_directory.json"
        directory.mkdir()

        result = await blob_store.delete(Pointer(file_path=str(directory), size=1))
        assert result.outcome == BlobDeleteOutcome.IO_FAILURE
        assert result.error
        assert directory.exists()


# =============================================================================
# Tests: Maintenance
# =============================================================================
class TestMaintenance:
    """cleanup(), storage_stats(), file_stats(), backup() and restore()."""

    async def test_cleanup_removes_only_old_files(self, blob_store: BlobStore) -> None:
        old = await blob_store.store("old", "cache", "knowledge", NESTED)
        new = await blob_store.store("new", "cache", "knowledge", NESTED)
        forty_days_ago = time.time() - 40 * 86400
        os.utime(old.file_path, (forty_days_ago, forty_days_ago))

        result = await blob_store.cleanup(older_than_days=30)
        assert (result.deleted, result.errors) == (1, 0)
        assert not Path(old.file_path).exists()
        assert Path(new.file_path).exists()

    async def test_storage_stats(self, blob_store: BlobStore) -> None:
        a = await blob_store.store("a", "cache", "knowledge", NESTED)
        b = await blob_store.store("b", "cache", "logs", [1, 2, 3])
        c = await blob_store.store("c", "metrics", "analytics", "m" * 3000)

        stats = await blob_store.storage_stats()
        assert stats.total_files == 3
        assert stats.total_size == a.size + b.size + c.size
        assert stats.average_file_size == pytest.approx(stats.total_size / 3)
        assert stats.files_by_type == {"cache": 2, "metrics": 1}
        assert stats.oldest_file <= stats.newest_file

    async def test_storage_stats_empty(self, blob_store: BlobStore) -> None:
        stats = await blob_store.storage_stats()
        assert stats.total_files == 0
        assert stats.oldest_file is None

    async def test_file_stats(self, blob_store: BlobStore, tmp_path: Path) -> None:
        pointer = await blob_store.store("a", "cache", "knowledge", NESTED)
        stats = await blob_store.file_stats(pointer.file_path)
        assert stats.exists is True
        assert stats.size == pointer.size
        assert await blob_store.file_stats(str(tmp_path / "missing.json")) is None

    async def test_backup_and_restore(self, blob_store: BlobStore) -> None:
        original = await blob_store.store("a", "cache", "knowledge", {"version": 1})
        backup = await blob_store.backup(original)
        assert backup.file_path == original.file_path + ".bak"
        assert await blob_store.validate(backup) is True

        await blob_store.store("a", "cache", "knowledge", {"version": 2, "extra": True})
        restored = await blob_store.restore(backup, original.file_path)

        assert restored.file_path == original.file_path
        assert not Path(backup.file_path).exists()
        assert await blob_store.load(restored) == {"version": 1}

    async def test_backup_files_are_not_counted(self, blob_store: BlobStore) -> None:
        pointer = await blob_store.store("a", "cache", "knowledge", NESTED)
        await blob_store.backup(pointer)
        assert (await blob_store.storage_stats()).total_files == 1

    def test_pointer_from_projection(self, blob_store: BlobStore) -> None:
        projection = PointerProjection(
            file_path="f.json", file_offset=4, file_size=9, checksum="c", compressed=True,
        )
        pointer = blob_store.pointer_from_projection(projection)
        assert pointer.projection() == projection
