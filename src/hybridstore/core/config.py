"""
hybridstore.core.config - Configuration Management
====================================================

Configuration can be loaded from multiple sources with the following
priority (highest first):

    1. Explicit constructor arguments, including the values of a YAML
       file read by load_config(), which are passed as arguments
    2. Environment variables (prefixed with HYBRIDSTORE_)
    3. Default values defined in the models below

Architecture Context:
    The top-level HybridStoreConfig is created once and its sections are
    handed to the components that need them:

        HybridStoreConfig
            ├── BlobStoreConfig   → BlobStore, TTLLRUCache
            ├── IndexConfig       → MetadataIndex
            ├── ValidationConfig  → validation layer
            └── ArtifactAPIConfig → ArtifactAPI (search/stats/bulk knobs)

Usage:
    # Load from environment variables:
    config = HybridStoreConfig()

    # Load from YAML file:
    config = load_config("hybridstore.yaml")

    # Explicit overrides:
    config = HybridStoreConfig(
        blob_store=BlobStoreConfig(base_path="/var/lib/hybridstore/json"),
    )

Environment Variables:
    HYBRIDSTORE_LOG_LEVEL=DEBUG
    HYBRIDSTORE_BLOB_STORE__BASE_PATH=/var/lib/hybridstore/json
    HYBRIDSTORE_BLOB_STORE__COMPRESSION_THRESHOLD=4096
    HYBRIDSTORE_INDEX__DATABASE_PATH=/var/lib/hybridstore/index.db
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from hybridstore.core.exceptions import ConfigurationError


# =============================================================================
# Blob Store Configuration
# =============================================================================
# Controls where payload files live, when they are gzip-compressed, and how
# long decoded payloads stay in the in-process read cache.
# =============================================================================
class BlobStoreConfig(BaseModel):
    """Configuration for the file-based payload store.

    Attributes:
        base_path: Root of the ``<type>/<category>/<id>.json`` tree.
        enable_compression: Compress payloads larger than the threshold.
        compression_threshold: Serialized size (bytes) above which a
            payload is compressed when compression is enabled.
        compression_level: gzip level, 1 (fast) to 9 (small).
        enable_checksums: Record and verify SHA-256 digests.
        max_file_size: Largest serialized payload accepted, in bytes.
        cache_ttl_seconds: How long a decoded payload stays cached.
        cache_max_entries: Count bound of the LRU read cache.
        cleanup_older_than_days: Default age cutoff for ``cleanup``.
    """

    base_path: str = Field(
        default="./data/json",
        description="Root directory of the payload tree",
    )
    enable_compression: bool = Field(
        default=True,
        description="Compress payloads above compression_threshold",
    )
    compression_threshold: int = Field(
        default=1024,
        ge=0,
        description="Serialized size in bytes above which payloads are compressed",
    )
    compression_level: int = Field(
        default=6,
        ge=1,
        le=9,
        description="gzip compression level",
    )
    enable_checksums: bool = Field(
        default=True,
        description="Record and verify SHA-256 checksums of stored bytes",
    )
    max_file_size: int = Field(
        default=100 * 1024 * 1024,
        gt=0,
        description="Maximum serialized payload size in bytes",
    )
    cache_ttl_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Time-to-live of read cache entries in seconds",
    )
    cache_max_entries: int = Field(
        default=1024,
        ge=1,
        description="Maximum number of decoded payloads kept in the read cache",
    )
    cleanup_older_than_days: int = Field(
        default=30,
        ge=0,
        description="Default age cutoff in days for cleanup()",
    )


# =============================================================================
# Metadata Index Configuration
# =============================================================================
# SQLite tuning for one writer / many readers: WAL journal, large page
# cache, memory-mapped reads.
# =============================================================================
class IndexConfig(BaseModel):
    """Configuration for the SQLite metadata index.

    Attributes:
        database_path: Location of the SQLite database file.
        cache_size_kib: Page cache size in KiB (``PRAGMA cache_size=-N``).
        mmap_size: Bytes of the database file to memory-map.
        busy_timeout_seconds: How long a connection waits on a locked
            database before failing.
        enable_analytics: Record create/update/access/delete events in
            the ``artifact_events`` time-series table.
    """

    database_path: str = Field(
        default="./data/sqlite/hybridstore.db",
        description="Path of the SQLite database file",
    )
    cache_size_kib: int = Field(
        default=64000,
        ge=0,
        description="SQLite page cache size in KiB",
    )
    mmap_size: int = Field(
        default=256 * 1024 * 1024,
        ge=0,
        description="Bytes of the database to memory-map",
    )
    busy_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Seconds to wait for a database lock",
    )
    enable_analytics: bool = Field(
        default=True,
        description="Record artifact events in the time-series table",
    )


# =============================================================================
# Validation Configuration
# =============================================================================
class ValidationConfig(BaseModel):
    """Bounds applied by the validation layer.

    Unknown types and categories only produce warnings; everything else
    listed here is a blocking error when exceeded.
    """

    max_title_length: int = Field(default=500, ge=1)
    max_description_length: int = Field(default=2000, ge=0)
    max_metadata_size: int = Field(
        default=10000,
        ge=2,
        description="Maximum compact-JSON size of metadata in bytes",
    )
    max_metadata_depth: int = Field(
        default=5,
        ge=1,
        description="Maximum nesting depth of metadata containers",
    )
    max_tags: int = Field(default=50, ge=0)
    max_tag_length: int = Field(default=100, ge=1)
    allow_empty_tags: bool = Field(
        default=True,
        description="Accept artifacts without any tag",
    )
    known_types: list[str] = Field(
        default_factory=lambda: [
            "context7", "user_prefs", "metrics", "templates", "cache", "logs",
        ],
    )
    known_categories: list[str] = Field(
        default_factory=lambda: [
            "knowledge", "preferences", "analytics", "templates", "cache", "logs",
        ],
    )


# =============================================================================
# Artifact API Configuration
# =============================================================================
class ArtifactAPIConfig(BaseModel):
    """Knobs of the Artifact API's search, statistics and bulk paths.

    Attributes:
        default_search_limit: Page size when a search does not set one.
        high_priority_cutoff: Artifacts with priority strictly above this
            value are listed as high priority in ``stats()``.
        top_tags_limit: Number of tags in ``stats().top_tags``.
        recent_artifacts_limit: Number of artifacts in
            ``stats().recent_artifacts``.
        high_priority_limit: Number of artifacts in
            ``stats().high_priority_artifacts``.
        bulk_concurrency: Items processed in parallel by bulk operations
            (1 = sequential).
    """

    default_search_limit: int = Field(default=50, ge=1, le=1000)
    high_priority_cutoff: int = Field(default=7, ge=0, le=10)
    top_tags_limit: int = Field(default=10, ge=0)
    recent_artifacts_limit: int = Field(default=5, ge=0)
    high_priority_limit: int = Field(default=5, ge=0)
    bulk_concurrency: int = Field(default=1, ge=1, le=64)


# =============================================================================
# Main Configuration
# =============================================================================
# Environment Variable Mapping:
#   HYBRIDSTORE_LOG_LEVEL                  → config.log_level
#   HYBRIDSTORE_ENVIRONMENT                → config.environment
#   HYBRIDSTORE_BLOB_STORE__BASE_PATH      → config.blob_store.base_path
#   HYBRIDSTORE_INDEX__DATABASE_PATH       → config.index.database_path
#   HYBRIDSTORE_API__BULK_CONCURRENCY      → config.api.bulk_concurrency
# =============================================================================
class HybridStoreConfig(BaseSettings):
    """Top-level configuration for HybridStore.

    Attributes:
        environment: Deployment environment. ``prod`` switches log output
            to JSON lines.
        log_level: Python logging level name used by ``configure_logging``.
        blob_store: Payload storage settings.
        index: SQLite index settings.
        validation: Validation bounds.
        api: Artifact API settings.

    Example:
        >>> config = HybridStoreConfig(
        ...     log_level="DEBUG",
        ...     index=IndexConfig(database_path="/tmp/store.db"),
        ... )
    """

    environment: Literal["dev", "staging", "prod"] = Field(
        default="dev",
        description="Deployment environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )

    blob_store: BlobStoreConfig = Field(default_factory=BlobStoreConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    api: ArtifactAPIConfig = Field(default_factory=ArtifactAPIConfig)

    model_config = {
        "env_prefix": "HYBRIDSTORE_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
    }


# =============================================================================
# Configuration Loader
# =============================================================================
def load_config(path: Optional[str] = None) -> HybridStoreConfig:
    """Load HybridStore configuration from a YAML file and/or environment.

    Keys set in the YAML file take precedence over environment variables;
    environment variables still apply to every key the file leaves out.

    Args:
        path: Path to a YAML configuration file. If None, looks for
            ``hybridstore.yaml`` in the current directory and falls back
            to defaults + environment variables when it does not exist.

    Returns:
        A fully validated HybridStoreConfig instance.

    Raises:
        FileNotFoundError: If an explicit path is provided but doesn't exist.
        ConfigurationError: If the YAML file does not contain a mapping.
    """
    if path is None:
        default_path = Path("hybridstore.yaml")
        if default_path.exists():
            path = str(default_path)

    yaml_data: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(config_path) as f:
            raw_data = yaml.safe_load(f)

        if raw_data is None:
            raw_data = {}
        if not isinstance(raw_data, dict):
            raise ConfigurationError(
                message=f"Configuration file {path} must contain a mapping",
                error_code="INVALID_CONFIG_FILE",
                details={"path": str(path), "found": type(raw_data).__name__},
            )
        yaml_data = raw_data

    return HybridStoreConfig(**yaml_data)


def get_default_config() -> HybridStoreConfig:
    """Create a HybridStoreConfig from defaults and environment variables."""
    return HybridStoreConfig()
