"""
hybridstore.validation.validators - Field Validation and Sanitation
====================================================================

Pure functions that check artifact fields and search requests before
anything reaches storage. Each validator returns a ValidationResult:

    errors   → block persistence (the API raises ValidationError)
    warnings → advisory, logged by the API

Validators never raise on bad input; they describe it. ``sanitize_artifact``
normalizes values that passed validation (trimmed strings, de-duplicated
tags, clamped priority) right before they are stored.

Usage:
    >>> result = validate_priority(11)
    >>> result.valid, result.errors
    (False, ['Priority cannot exceed 10'])
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from hybridstore.core.config import ValidationConfig
from hybridstore.core.enums import OrderBy, OrderDirection
from hybridstore.core.json_value import check_json_value, dumps_compact, json_depth
from hybridstore.core.models import ValidationResult, as_utc

# =============================================================================
# Constants
# =============================================================================
MAX_ID_LENGTH = 255
MAX_NAME_LENGTH = 100
MAX_SEARCH_LIMIT = 1000

RESERVED_ID_PREFIXES = ("_", "system_")
RESERVED_METADATA_KEYS = frozenset({"_id", "_type", "_version", "_created", "_updated"})

_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_TAG_RE = re.compile(r"^[A-Za-z0-9_\s-]+$")
_MULTI_SPACE_RE = re.compile(r"\s{2,}")
_WHITESPACE_RE = re.compile(r"\s+")


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _result(errors: list[str], warnings: list[str]) -> ValidationResult:
    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


# =============================================================================
# Identifier-like Fields
# =============================================================================
def validate_artifact_id(artifact_id: Any) -> ValidationResult:
    """Check an artifact id: 1-255 chars of ``[A-Za-z0-9_-]``."""
    errors: list[str] = []
    warnings: list[str] = []

    if not isinstance(artifact_id, str) or not artifact_id:
        errors.append("ID is required and must be a non-empty string")
        return _result(errors, warnings)

    if len(artifact_id) > MAX_ID_LENGTH:
        errors.append(f"ID cannot exceed {MAX_ID_LENGTH} characters")

    if not _IDENTIFIER_RE.match(artifact_id):
        errors.append("ID can only contain alphanumeric characters, hyphens, and underscores")

    if artifact_id.startswith(RESERVED_ID_PREFIXES):
        warnings.append("ID starts with reserved prefix")

    return _result(errors, warnings)


def _validate_name(value: Any, label: str, known: list[str]) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    if not isinstance(value, str) or not value:
        errors.append(f"{label} is required and must be a non-empty string")
        return _result(errors, warnings)

    if len(value) > MAX_NAME_LENGTH:
        errors.append(f"{label} cannot exceed {MAX_NAME_LENGTH} characters")

    if not _IDENTIFIER_RE.match(value):
        errors.append(
            f"{label} can only contain alphanumeric characters, hyphens, and underscores"
        )

    if known and value not in known:
        warnings.append(
            f"Unknown {label.lower()} '{value}', consider one of: {', '.join(known)}"
        )

    return _result(errors, warnings)


def validate_artifact_type(
    artifact_type: Any, config: Optional[ValidationConfig] = None
) -> ValidationResult:
    """Check an artifact type; unknown types only warn."""
    config = config or ValidationConfig()
    return _validate_name(artifact_type, "Type", config.known_types)


def validate_artifact_category(
    category: Any, config: Optional[ValidationConfig] = None
) -> ValidationResult:
    """Check an artifact category; unknown categories only warn."""
    config = config or ValidationConfig()
    return _validate_name(category, "Category", config.known_categories)


# =============================================================================
# Free-text Fields
# =============================================================================
def validate_title(title: Any, max_length: int = 500) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    if not isinstance(title, str) or not title.strip():
        errors.append("Title is required and must be a non-empty string")
        return _result(errors, warnings)

    if len(title) > max_length:
        errors.append(f"Title cannot exceed {max_length} characters")

    if title.strip() != title:
        warnings.append("Title has leading or trailing whitespace")

    if _MULTI_SPACE_RE.search(title.strip()):
        warnings.append("Title contains multiple consecutive spaces")

    return _result(errors, warnings)


def validate_description(description: Any, max_length: int = 2000) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    if description is None:
        return _result(errors, warnings)

    if not isinstance(description, str):
        errors.append("Description must be a string")
        return _result(errors, warnings)

    if len(description) > max_length:
        errors.append(f"Description cannot exceed {max_length} characters")

    if description.strip() != description:
        warnings.append("Description has leading or trailing whitespace")

    return _result(errors, warnings)


# =============================================================================
# Metadata
# =============================================================================
def validate_metadata(
    metadata: Any,
    max_size: int = 10000,
    max_depth: int = 5,
) -> ValidationResult:
    """Check a metadata object.

    The object must be a JSON mapping no deeper than ``max_depth`` whose
    compact serialization is at most ``max_size`` bytes. Keys from
    RESERVED_METADATA_KEYS produce a warning.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if metadata is None:
        return _result(errors, warnings)

    if not isinstance(metadata, dict):
        errors.append("Metadata must be an object")
        return _result(errors, warnings)

    depth = json_depth(metadata, limit=max_depth)
    if depth > max_depth:
        errors.append(f"Metadata nesting depth exceeds limit ({max_depth})")
        return _result(errors, warnings)

    problems = check_json_value(metadata, max_depth, path="metadata")
    if problems:
        errors.extend(problems)
        return _result(errors, warnings)

    size = len(dumps_compact(metadata).encode("utf-8"))
    if size > max_size:
        errors.append(f"Metadata size ({size} bytes) exceeds limit ({max_size} bytes)")

    conflicting = sorted(RESERVED_METADATA_KEYS.intersection(metadata))
    if conflicting:
        warnings.append(f"Metadata contains reserved keys: {', '.join(conflicting)}")

    return _result(errors, warnings)


# =============================================================================
# Tags
# =============================================================================
def validate_tags(
    tags: Any,
    max_tags: int = 50,
    max_tag_length: int = 100,
    allow_empty: bool = True,
) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    if not isinstance(tags, (list, tuple)):
        errors.append("Tags must be an array of strings")
        return _result(errors, warnings)

    if not allow_empty and not tags:
        errors.append("At least one tag is required")

    if len(tags) > max_tags:
        errors.append(f"Cannot have more than {max_tags} tags")

    seen: set[str] = set()
    for i, tag in enumerate(tags):
        if not isinstance(tag, str):
            errors.append(f"Tag at index {i} must be a string")
            continue
        if not tag.strip():
            errors.append(f"Tag at index {i} cannot be empty")
            continue
        if len(tag) > max_tag_length:
            errors.append(f"Tag at index {i} cannot exceed {max_tag_length} characters")
        if not _TAG_RE.match(tag):
            errors.append(f"Tag '{tag}' contains invalid characters")

        normalized = tag.strip().lower()
        if normalized in seen:
            warnings.append(f"Duplicate tag: '{tag}'")
        else:
            seen.add(normalized)

        if tag.strip() != tag:
            warnings.append(f"Tag '{tag}' has leading or trailing whitespace")

    return _result(errors, warnings)


# =============================================================================
# Priority
# =============================================================================
def validate_priority(priority: Any) -> ValidationResult:
    """Check a priority: an integer in [0, 10]."""
    errors: list[str] = []
    warnings: list[str] = []

    if isinstance(priority, bool) or not isinstance(priority, (int, float)):
        errors.append("Priority must be a number")
        return _result(errors, warnings)

    if isinstance(priority, float) and not priority.is_integer():
        errors.append("Priority must be an integer")

    if priority < 0:
        errors.append("Priority cannot be negative")
    if priority > 10:
        errors.append("Priority cannot exceed 10")

    if 0 < priority < 3:
        warnings.append("Low priority (1-2): consider whether this artifact is needed")
    elif 7 < priority <= 10:
        warnings.append("High priority (8-10): ensure this artifact is frequently accessed")

    return _result(errors, warnings)


# =============================================================================
# Aggregates
# =============================================================================
def validate_artifact(
    fields: dict[str, Any],
    config: Optional[ValidationConfig] = None,
) -> ValidationResult:
    """Validate every field of an artifact about to be created.

    Args:
        fields: Mapping with id, type, category, title and optionally
            description, metadata, tags, priority. A missing or None
            priority is accepted (the API derives one).
        config: Validation bounds.
    """
    config = config or ValidationConfig()
    result = ValidationResult()

    for required in ("id", "type", "category", "title"):
        if fields.get(required) is None:
            result = result.merge(
                ValidationResult(valid=False, errors=[f"Required field '{required}' is missing"])
            )

    if fields.get("id") is not None:
        result = result.merge(validate_artifact_id(fields["id"]))
    if fields.get("type") is not None:
        result = result.merge(validate_artifact_type(fields["type"], config))
    if fields.get("category") is not None:
        result = result.merge(validate_artifact_category(fields["category"], config))
    if fields.get("title") is not None:
        result = result.merge(validate_title(fields["title"], config.max_title_length))

    result = result.merge(
        validate_description(fields.get("description"), config.max_description_length)
    )
    result = result.merge(
        validate_metadata(
            fields.get("metadata"), config.max_metadata_size, config.max_metadata_depth
        )
    )
    tags = fields.get("tags")
    result = result.merge(
        validate_tags(
            [] if tags is None else tags,
            config.max_tags,
            config.max_tag_length,
            config.allow_empty_tags,
        )
    )
    if fields.get("priority") is not None:
        result = result.merge(validate_priority(fields["priority"]))

    return result


def validate_update(
    fields: dict[str, Any],
    config: Optional[ValidationConfig] = None,
) -> ValidationResult:
    """Validate only the fields an update actually provides."""
    config = config or ValidationConfig()
    result = ValidationResult()

    if "title" in fields:
        result = result.merge(validate_title(fields["title"], config.max_title_length))
    if "description" in fields:
        result = result.merge(
            validate_description(fields["description"], config.max_description_length)
        )
    if "metadata" in fields:
        result = result.merge(
            validate_metadata(
                fields["metadata"], config.max_metadata_size, config.max_metadata_depth
            )
        )
    if "tags" in fields:
        result = result.merge(
            validate_tags(
                fields["tags"], config.max_tags, config.max_tag_length, config.allow_empty_tags
            )
        )
    if "priority" in fields:
        result = result.merge(validate_priority(fields["priority"]))

    return result


def validate_search_request(query: dict[str, Any]) -> ValidationResult:
    """Validate pagination, ordering and range bounds of a search."""
    errors: list[str] = []
    warnings: list[str] = []

    limit = query.get("limit")
    if limit is not None:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            errors.append("Limit must be a positive integer")
        elif limit > MAX_SEARCH_LIMIT:
            warnings.append("Large limit may impact performance")

    offset = query.get("offset")
    if offset is not None:
        if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
            errors.append("Offset must be a non-negative integer")

    order_by = _plain(query.get("order_by"))
    if order_by is not None and order_by not in {o.value for o in OrderBy}:
        errors.append(
            f"Invalid order_by: {order_by}. "
            f"Must be one of: {', '.join(o.value for o in OrderBy)}"
        )

    direction = _plain(query.get("order_direction"))
    if direction is not None and direction not in {d.value for d in OrderDirection}:
        errors.append("order_direction must be either ASC or DESC")

    min_priority = query.get("min_priority")
    max_priority = query.get("max_priority")
    if min_priority is not None and max_priority is not None and min_priority > max_priority:
        errors.append("min_priority cannot be greater than max_priority")

    date_from = query.get("date_from")
    date_to = query.get("date_to")
    for name, value in (("date_from", date_from), ("date_to", date_to)):
        if value is not None and not isinstance(value, datetime):
            errors.append(f"{name} must be a datetime")
    if (
        isinstance(date_from, datetime)
        and isinstance(date_to, datetime)
        and as_utc(date_from) > as_utc(date_to)
    ):
        errors.append("date_from cannot be later than date_to")

    return _result(errors, warnings)


# =============================================================================
# Sanitation
# =============================================================================
def sanitize_tags(tags: Any) -> list[str]:
    """Trim tags, drop empty or non-string ones, de-duplicate, sort."""
    if not isinstance(tags, (list, tuple)):
        return []
    cleaned = {tag.strip() for tag in tags if isinstance(tag, str) and tag.strip()}
    return sorted(cleaned)


def clamp_priority(priority: Any) -> int:
    return max(0, min(10, int(round(priority))))


def sanitize_artifact(fields: dict[str, Any]) -> dict[str, Any]:
    """Return a normalized copy of validated artifact fields.

    - title: trimmed, inner whitespace runs collapsed to one space
    - description: trimmed
    - tags: see ``sanitize_tags``
    - priority: rounded and clamped to [0, 10]
    """
    sanitized = dict(fields)

    if isinstance(sanitized.get("title"), str):
        sanitized["title"] = _WHITESPACE_RE.sub(" ", sanitized["title"].strip())

    if isinstance(sanitized.get("description"), str):
        sanitized["description"] = sanitized["description"].strip()

    if "tags" in sanitized and sanitized["tags"] is not None:
        sanitized["tags"] = sanitize_tags(sanitized["tags"])

    priority = sanitized.get("priority")
    if isinstance(priority, (int, float)) and not isinstance(priority, bool):
        sanitized["priority"] = clamp_priority(priority)

    return sanitized
