"""
hybridstore.core - Foundation Layer
====================================

Building blocks every other module depends on:

    - config:      Configuration management (HybridStoreConfig and sections)
    - enums:       Type-safe enumerations (OrderBy, HealthStatus, ...)
    - models:      Pydantic data models (Pointer, ArtifactRecord, requests)
    - exceptions:  Structured exception hierarchy
    - json_value:  Bounded JSON value trees
    - logging:     structlog setup

Dependency Rule:
    core/ depends on NOTHING else in the hybridstore package.
"""

from hybridstore.core.config import (
    ArtifactAPIConfig,
    BlobStoreConfig,
    HybridStoreConfig,
    IndexConfig,
    ValidationConfig,
    get_default_config,
    load_config,
)
from hybridstore.core.enums import (
    ArtifactEventType,
    BlobDeleteOutcome,
    HealthStatus,
    OrderBy,
    OrderDirection,
)
from hybridstore.core.exceptions import (
    CapacityError,
    ConfigurationError,
    DecompressionError,
    HybridStoreError,
    IntegrityError,
    NotFoundError,
    ParseError,
    StorageError,
    ValidationError,
)
from hybridstore.core.models import (
    ArtifactRecord,
    CreateArtifactRequest,
    Pointer,
    PointerProjection,
    SearchRequest,
    UpdateArtifactRequest,
)

__all__ = [
    # Config
    "HybridStoreConfig",
    "BlobStoreConfig",
    "IndexConfig",
    "ValidationConfig",
    "ArtifactAPIConfig",
    "load_config",
    "get_default_config",
    # Enums
    "ArtifactEventType",
    "BlobDeleteOutcome",
    "HealthStatus",
    "OrderBy",
    "OrderDirection",
    # Models
    "ArtifactRecord",
    "CreateArtifactRequest",
    "Pointer",
    "PointerProjection",
    "SearchRequest",
    "UpdateArtifactRequest",
    # Exceptions
    "HybridStoreError",
    "ConfigurationError",
    "ValidationError",
    "NotFoundError",
    "IntegrityError",
    "DecompressionError",
    "ParseError",
    "CapacityError",
    "StorageError",
]
