"""
hybridstore.infrastructure.pointer_utils - Pointer Helpers
===========================================================

Checksums, the structural check of freshly stored pointers and the
access-pattern priority heuristic used when an artifact is created
without an explicit priority.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from hybridstore.core.models import Pointer, ValidationResult

LARGE_PAYLOAD_BYTES = 100 * 1024 * 1024
LARGE_EXTENT_BYTES = 1024 * 1024 * 1024

# Raw heuristic scores fall in [0, 160]; this maps them onto priorities 0-10.
MAX_RAW_PRIORITY = 160


def calculate_checksum(data: Union[bytes, str]) -> str:
    """SHA-256 hex digest of ``data`` (strings are UTF-8 encoded)."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def validate_pointer(pointer: Pointer) -> ValidationResult:
    """Structural sanity check of a pointer produced by the Blob Store."""
    errors: list[str] = []
    warnings: list[str] = []

    if not pointer.file_path:
        errors.append("file_path is required")
    if pointer.size < 0:
        errors.append("size must be non-negative")
    if pointer.offset is not None and pointer.offset < 0:
        errors.append("offset must be non-negative if provided")
    if pointer.checksum and len(pointer.checksum) != 64:
        errors.append("checksum must be a SHA-256 hex digest")

    if pointer.size > LARGE_PAYLOAD_BYTES:
        warnings.append("File size exceeds 100MB, consider compression")
    if pointer.offset and pointer.offset + pointer.size > LARGE_EXTENT_BYTES:
        warnings.append("File offset + size exceeds 1GB")

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def pointer_age(pointer: Pointer, now: Optional[datetime] = None) -> timedelta:
    now = now or datetime.now(timezone.utc)
    return now - pointer.created_at


def pointer_access_age(pointer: Pointer, now: Optional[datetime] = None) -> timedelta:
    """Time since the last load; zero for a pointer never loaded."""
    if pointer.last_accessed is None:
        return timedelta(0)
    now = now or datetime.now(timezone.utc)
    return now - pointer.last_accessed


def calculate_pointer_priority(pointer: Pointer, now: Optional[datetime] = None) -> int:
    """Raw access-pattern score of a pointer, 0-160.

    - up to 100 for freshness, losing one point per day of age
    - +50 if accessed within the last hour, +25 within the last day
    - +10 for compressed payloads
    """
    score = max(0.0, 100.0 - pointer_age(pointer, now).total_seconds() / 86400.0)

    if pointer.last_accessed is not None:
        access_age = pointer_access_age(pointer, now)
        if access_age < timedelta(hours=1):
            score += 50
        elif access_age < timedelta(days=1):
            score += 25

    if pointer.compressed:
        score += 10

    return round(score)


def derive_priority(pointer: Pointer, now: Optional[datetime] = None) -> int:
    """Default artifact priority (0-10) derived from a freshly stored pointer."""
    raw = calculate_pointer_priority(pointer, now)
    return max(0, min(10, round(raw * 10 / MAX_RAW_PRIORITY)))
