"""
hybridstore.validation - Validation Layer
==========================================

Stateless predicate checks and sanitation for artifact fields and search
requests. Everything here is pure: no I/O, no logging, no exceptions on
bad input.

Usage:
    from hybridstore.validation import validate_artifact, sanitize_artifact
"""

from hybridstore.validation.validators import (
    RESERVED_METADATA_KEYS,
    sanitize_artifact,
    sanitize_tags,
    validate_artifact,
    validate_artifact_category,
    validate_artifact_id,
    validate_artifact_type,
    validate_description,
    validate_metadata,
    validate_priority,
    validate_search_request,
    validate_tags,
    validate_title,
    validate_update,
)

__all__ = [
    "RESERVED_METADATA_KEYS",
    "sanitize_artifact",
    "sanitize_tags",
    "validate_artifact",
    "validate_artifact_category",
    "validate_artifact_id",
    "validate_artifact_type",
    "validate_description",
    "validate_metadata",
    "validate_priority",
    "validate_search_request",
    "validate_tags",
    "validate_title",
    "validate_update",
]
