"""
hybridstore.core.enums - Type-Safe Enumerations
================================================

All enums inherit from both ``str`` and ``Enum``, so they serialize to
plain strings in JSON/YAML and compare equal to their values:

    >>> OrderBy.PRIORITY == "priority"
    True
"""

from enum import Enum


# =============================================================================
# Search Ordering
# =============================================================================
# Columns the Metadata Index can order by. Every value except TITLE is
# backed by a column (and, for priority / last_accessed / created_at, by a
# descending index). TITLE is re-sorted by the Artifact API after retrieval.
# =============================================================================
class OrderBy(str, Enum):
    """Sort key for artifact searches."""

    PRIORITY = "priority"
    LAST_ACCESSED = "last_accessed"
    CREATED_AT = "created_at"
    ACCESS_COUNT = "access_count"
    TITLE = "title"


class OrderDirection(str, Enum):
    """Sort direction for artifact searches."""

    ASC = "ASC"
    DESC = "DESC"


# =============================================================================
# Health Status
# =============================================================================
#   HEALTHY   → index answers queries and the blob tree can be walked
#   DEGRADED  → index is fine, blob-store statistics failed
#   UNHEALTHY → index reported unhealthy (nothing can be located)
# =============================================================================
class HealthStatus(str, Enum):
    """Aggregate health of the store."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


# =============================================================================
# Blob Delete Outcome
# =============================================================================
# Tagged result of removing a payload file. "Missing file" and "I/O
# failure" are distinct so the caller can treat the first as benign and
# surface the second.
# =============================================================================
class BlobDeleteOutcome(str, Enum):
    """Outcome of ``BlobStore.delete``."""

    DELETED = "deleted"
    NOT_FOUND = "not_found"
    IO_FAILURE = "io_failure"


# =============================================================================
# Artifact Events
# =============================================================================
# Rows of the ``artifact_events`` time-series table.
# =============================================================================
class ArtifactEventType(str, Enum):
    """Kind of event recorded in the analytics table."""

    CREATED = "created"
    UPDATED = "updated"
    ACCESSED = "accessed"
    DELETED = "deleted"
