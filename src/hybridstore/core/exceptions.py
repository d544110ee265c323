"""
hybridstore.core.exceptions - Custom Exception Hierarchy
=========================================================

This module defines the structured exception hierarchy for HybridStore.
Every public operation either returns a well-typed value or raises one of
these error kinds, each carrying contextual information.

Exception Hierarchy:
    HybridStoreError (base)
        ├── ConfigurationError   - Invalid config file or values
        ├── ValidationError      - Field-level problems, raised before persistence
        ├── NotFoundError        - Unknown artifact id on get/update/delete
        ├── IntegrityError       - Checksum mismatch on load
        ├── DecompressionError   - Stored bytes flagged compressed but not gzip
        ├── ParseError           - Stored bytes are not valid JSON
        ├── CapacityError        - Payload larger than the configured maximum
        └── StorageError         - Filesystem or SQLite failure

Propagation:
    Validation errors block the operation before anything is written.
    Single-item storage/integrity errors propagate to the caller.
    Bulk operations catch per-item errors and record ``to_dict()`` of the
    error in their failure lists instead of aborting the batch.

Usage:
    >>> from hybridstore.core.exceptions import IntegrityError
    >>> raise IntegrityError(
    ...     message="Checksum mismatch",
    ...     file_path="data/json/cache/knowledge/a1.json",
    ...     expected="ab12...",
    ...     actual="ff00...",
    ... )
"""

from __future__ import annotations

from typing import Any, Optional


# =============================================================================
# Base Exception
# =============================================================================
# All HybridStore exceptions inherit from this base class, so callers can
# catch every library failure with a single except clause:
#
#   try:
#       await api.get_data("a1")
#   except HybridStoreError as e:
#       logger.error(e.message, error_code=e.error_code, details=e.details)
# =============================================================================
class HybridStoreError(Exception):
    """Base exception for all HybridStore errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code in UPPER_SNAKE_CASE
            (e.g., "CHECKSUM_MISMATCH", "ARTIFACT_NOT_FOUND").
        details: Additional debugging context (paths, sizes, ids).
    """

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize this exception to a dictionary.

        Used for structured log lines and for the failure records of
        bulk operations.

        Returns:
            Dictionary with error_type, message, error_code, and details.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        """Detailed string representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


# =============================================================================
# Configuration Error
# =============================================================================
class ConfigurationError(HybridStoreError):
    """Raised when HybridStore configuration is invalid.

    Typically raised by ``load_config`` when a YAML file does not contain
    a mapping at the top level.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "CONFIG_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


# =============================================================================
# Validation Error
# =============================================================================
# Raised by the Artifact API when the validation layer reports errors.
# Nothing is persisted when this is raised: validation runs before the
# blob store or the index are touched.
# =============================================================================
class ValidationError(HybridStoreError):
    """Raised when artifact fields or a search query fail validation.

    Attributes:
        errors: Every blocking problem found (one string per problem).
        warnings: Advisory problems found alongside the errors.

    Example:
        >>> raise ValidationError(
        ...     message="Artifact 'a 1' failed validation",
        ...     errors=["ID can only contain alphanumeric characters, "
        ...             "hyphens, and underscores"],
        ... )
    """

    def __init__(
        self,
        message: str,
        errors: Optional[list[str]] = None,
        warnings: Optional[list[str]] = None,
        error_code: str = "VALIDATION_FAILED",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["errors"] = list(errors or [])
        enriched_details["warnings"] = list(warnings or [])

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.errors = list(errors or [])
        self.warnings = list(warnings or [])


# =============================================================================
# Not Found Error
# =============================================================================
class NotFoundError(HybridStoreError):
    """Raised when an artifact id has no index row.

    Attributes:
        artifact_id: The id that was looked up.
    """

    def __init__(
        self,
        message: str,
        artifact_id: str,
        error_code: str = "ARTIFACT_NOT_FOUND",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["artifact_id"] = artifact_id

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.artifact_id = artifact_id


# =============================================================================
# Integrity Error
# =============================================================================
# Raised when the SHA-256 digest of the bytes read from disk does not match
# the checksum recorded in the Pointer. The payload is never parsed or
# cached in that case.
# =============================================================================
class IntegrityError(HybridStoreError):
    """Raised when a stored payload fails checksum verification.

    Attributes:
        file_path: Path of the payload file that was read.
        expected: Checksum recorded in the pointer.
        actual: Checksum computed over the bytes on disk.
    """

    def __init__(
        self,
        message: str,
        file_path: str,
        expected: str,
        actual: str,
        error_code: str = "CHECKSUM_MISMATCH",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["file_path"] = file_path
        enriched_details["expected"] = expected
        enriched_details["actual"] = actual

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.file_path = file_path
        self.expected = expected
        self.actual = actual


# =============================================================================
# Decompression / Parse Errors
# =============================================================================
class DecompressionError(HybridStoreError):
    """Raised when bytes flagged as compressed cannot be decompressed."""

    def __init__(
        self,
        message: str,
        file_path: str,
        error_code: str = "DECOMPRESSION_FAILED",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["file_path"] = file_path

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.file_path = file_path


class ParseError(HybridStoreError):
    """Raised when a stored payload is not valid UTF-8 JSON."""

    def __init__(
        self,
        message: str,
        file_path: str,
        error_code: str = "PAYLOAD_PARSE_FAILED",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["file_path"] = file_path

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.file_path = file_path


# =============================================================================
# Capacity Error
# =============================================================================
class CapacityError(HybridStoreError):
    """Raised when a serialized payload exceeds ``max_file_size``.

    Attributes:
        size: Serialized payload size in bytes (before compression).
        limit: The configured maximum in bytes.
    """

    def __init__(
        self,
        message: str,
        size: int,
        limit: int,
        error_code: str = "PAYLOAD_TOO_LARGE",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        enriched_details["size"] = size
        enriched_details["limit"] = limit

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.size = size
        self.limit = limit


# =============================================================================
# Storage Error
# =============================================================================
# Wraps OSError and sqlite3.Error. The original exception is always
# chained (``raise StorageError(...) from exc``).
# =============================================================================
class StorageError(HybridStoreError):
    """Raised when the filesystem or the SQLite engine fails.

    Common error codes:
        - FILE_NOT_FOUND: the pointer's file is missing on load
        - FILE_READ_FAILED / FILE_WRITE_FAILED: OS-level I/O failure
        - BLOB_DELETE_FAILED: payload removal failed during artifact delete
        - INVALID_POINTER: a freshly stored pointer failed its structural check
        - INDEX_QUERY_FAILED: a SQLite statement failed
        - INDEX_NOT_CONNECTED: the index was used before ``connect()``
    """

    def __init__(
        self,
        message: str,
        error_code: str = "STORAGE_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)
