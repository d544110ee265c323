"""
Tests for hybridstore.infrastructure.pointer_utils
===================================================

What's Being Tested:
    - SHA-256 checksums
    - Structural pointer checks
    - Age helpers
    - The access-pattern priority heuristic and its 0-10 scaling
"""

from datetime import datetime, timedelta, timezone

from hybridstore.core.models import Pointer
from hybridstore.infrastructure.pointer_utils import (
    calculate_checksum,
    calculate_pointer_priority,
    derive_priority,
    pointer_access_age,
    pointer_age,
    validate_pointer,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _pointer(**overrides) -> Pointer:
    defaults = {
        "file_path": "json/cache/knowledge/a1.json",
        "size": 12,
        "checksum": calculate_checksum(b'{"name":"a"}'),
        "created_at": NOW,
    }
    defaults.update(overrides)
    return Pointer(**defaults)


class TestChecksum:
    """Tests for calculate_checksum()."""

    def test_known_digest(self) -> None:
        assert calculate_checksum(b"") == (
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )

    def test_str_and_bytes_agree(self) -> None:
        assert calculate_checksum("héllo") == calculate_checksum("héllo".encode("utf-8"))


class TestValidatePointer:
    """Tests for validate_pointer()."""

    def test_valid_pointer(self) -> None:
        assert validate_pointer(_pointer()).valid

    def test_empty_path_rejected(self) -> None:
        assert not validate_pointer(_pointer(file_path="")).valid

    def test_malformed_checksum_rejected(self) -> None:
        assert not validate_pointer(_pointer(checksum="abc")).valid

    def test_large_payload_warns(self) -> None:
        result = validate_pointer(_pointer(size=200 * 1024 * 1024))
        assert result.valid
        assert result.warnings


class TestAge:
    """Tests for pointer_age() and pointer_access_age()."""

    def test_age(self) -> None:
        assert pointer_age(_pointer(), now=NOW + timedelta(hours=3)) == timedelta(hours=3)

    def test_never_accessed_has_zero_access_age(self) -> None:
        assert pointer_access_age(_pointer(), now=NOW + timedelta(days=30)) == timedelta(0)

    def test_access_age(self) -> None:
        pointer = _pointer(last_accessed=NOW)
        assert pointer_access_age(pointer, now=NOW + timedelta(hours=2)) == timedelta(hours=2)


class TestPriorityHeuristic:
    """Tests for calculate_pointer_priority() and derive_priority()."""

    def test_fresh_uncompressed(self) -> None:
        assert calculate_pointer_priority(_pointer(), now=NOW) == 100

    def test_freshness_decays_per_day(self) -> None:
        assert calculate_pointer_priority(_pointer(), now=NOW + timedelta(days=40)) == 60

    def test_freshness_floor_is_zero(self) -> None:
        assert calculate_pointer_priority(_pointer(), now=NOW + timedelta(days=400)) == 0

    def test_access_and_compression_bonuses(self) -> None:
        recent = _pointer(last_accessed=NOW - timedelta(minutes=5), compressed=True)
        assert calculate_pointer_priority(recent, now=NOW) == 160

        daily = _pointer(last_accessed=NOW - timedelta(hours=5))
        assert calculate_pointer_priority(daily, now=NOW) == 125

    def test_derive_priority_scales_to_ten(self) -> None:
        assert derive_priority(_pointer(), now=NOW) == 6
        assert derive_priority(_pointer(compressed=True), now=NOW) == 7
        top = _pointer(last_accessed=NOW, compressed=True)
        assert derive_priority(top, now=NOW) == 10
        assert derive_priority(_pointer(), now=NOW + timedelta(days=400)) == 0
