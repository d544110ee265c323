"""
hybridstore.infrastructure - Storage Layer
===========================================

The two halves of the hybrid store and the pieces they are built from.

Architecture:
    ┌─────────────── API LAYER ───────────────────────────┐
    │  ArtifactAPI (facade)                                │
    └───────────────┬─────────────────────┬───────────────┘
                    │ payloads            │ records
                    ▼                     ▼
    ┌──────── BlobStore ─────────┐  ┌──── MetadataIndex ─────┐
    │  JSON files + gzip codec    │  │  SQLite (WAL)           │
    │  SHA-256 checksums          │  │  artifacts, tags,       │
    │  ReadCache (TTL + LRU)      │  │  events, schema_version │
    └─────────────────────────────┘  └─────────────────────────┘

Components:
    - BlobStore:          Pointer-addressed payload files
    - MetadataIndex:      Searchable artifact records
    - ReadCache:          Cache interface (TTLLRUCache implementation)
    - CompressionCodec:   Codec interface (GzipCodec implementation)
    - pointer_utils:      Checksums and the pointer-priority heuristic

Usage:
    from hybridstore.infrastructure import BlobStore, MetadataIndex
"""

from hybridstore.infrastructure.blob_store import BlobStore, sanitize_segment
from hybridstore.infrastructure.codec import CodecError, CompressionCodec, GzipCodec
from hybridstore.infrastructure.metadata_index import MetadataIndex
from hybridstore.infrastructure.pointer_utils import (
    calculate_checksum,
    calculate_pointer_priority,
    derive_priority,
    validate_pointer,
)
from hybridstore.infrastructure.read_cache import ReadCache, TTLLRUCache

__all__ = [
    "BlobStore",
    "CodecError",
    "CompressionCodec",
    "GzipCodec",
    "MetadataIndex",
    "ReadCache",
    "TTLLRUCache",
    "calculate_checksum",
    "calculate_pointer_priority",
    "derive_priority",
    "sanitize_segment",
    "validate_pointer",
]
