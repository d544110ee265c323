"""
Tests for hybridstore.validation.validators
============================================

What's Being Tested:
    - Field validators (id, type, category, title, description,
      metadata, tags, priority): errors vs. warnings
    - Aggregate validators for create, update and search
    - Sanitation (trimmed strings, de-duplicated tags, clamped priority)

Every validator is pure, so these are plain synchronous unit tests.
"""

from datetime import datetime, timezone

import pytest

from hybridstore.core.config import ValidationConfig
from hybridstore.core.enums import OrderBy
from hybridstore.validation import (
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


# =============================================================================
# Helpers
# =============================================================================
def _fields(**overrides) -> dict:
    defaults = {
        "id": "a1",
        "type": "cache",
        "category": "knowledge",
        "title": "First artifact",
        "tags": ["t"],
    }
    defaults.update(overrides)
    return defaults


# =============================================================================
# Tests: Identifiers
# =============================================================================
class TestIdentifiers:
    """Tests for id, type and category validation."""

    @pytest.mark.parametrize("artifact_id", ["a1", "doc_2024-01", "A" * 255])
    def test_valid_ids(self, artifact_id: str) -> None:
        assert validate_artifact_id(artifact_id).valid

    @pytest.mark.parametrize("artifact_id", ["", "a 1", "a/1", "A" * 256, None, 42])
    def test_invalid_ids(self, artifact_id) -> None:
        assert not validate_artifact_id(artifact_id).valid

    @pytest.mark.parametrize("artifact_id", ["_hidden", "system_core"])
    def test_reserved_prefix_warns(self, artifact_id: str) -> None:
        result = validate_artifact_id(artifact_id)
        assert result.valid
        assert result.warnings

    def test_unknown_type_only_warns(self) -> None:
        result = validate_artifact_type("custom_kind")
        assert result.valid
        assert "Unknown type" in result.warnings[0]

    def test_known_type_has_no_warning(self) -> None:
        assert validate_artifact_type("context7").warnings == []

    def test_known_values_come_from_config(self) -> None:
        config = ValidationConfig(known_categories=["reports"])
        assert validate_artifact_category("reports", config).warnings == []
        assert validate_artifact_category("knowledge", config).warnings

    def test_category_length_bound(self) -> None:
        assert not validate_artifact_category("c" * 101).valid

    def test_category_character_class(self) -> None:
        assert not validate_artifact_category("bad category").valid


# =============================================================================
# Tests: Free Text
# =============================================================================
class TestFreeText:
    """Tests for title and description validation."""

    def test_empty_title_rejected(self) -> None:
        assert not validate_title("   ").valid

    def test_long_title_rejected(self) -> None:
        assert not validate_title("x" * 11, max_length=10).valid

    def test_irregular_whitespace_warns(self) -> None:
        result = validate_title(" padded  title ")
        assert result.valid
        assert len(result.warnings) == 2

    def test_description_optional(self) -> None:
        assert validate_description(None).valid

    def test_description_length(self) -> None:
        assert not validate_description("d" * 21, max_length=20).valid

    def test_description_must_be_string(self) -> None:
        assert not validate_description(["not", "text"]).valid


# =============================================================================
# Tests: Metadata
# =============================================================================
class TestMetadata:
    """Tests for metadata validation."""

    def test_object_accepted(self) -> None:
        assert validate_metadata({"source": "docs", "version": 2}).valid

    @pytest.mark.parametrize("metadata", [["a"], "text", 3])
    def test_non_object_rejected(self, metadata) -> None:
        assert not validate_metadata(metadata).valid

    def test_size_limit(self) -> None:
        result = validate_metadata({"blob": "x" * 100}, max_size=50)
        assert not result.valid
        assert "exceeds limit" in result.errors[0]

    def test_depth_limit_is_an_error(self) -> None:
        deep = {"a": {"b": {"c": {"d": 1}}}}
        assert validate_metadata(deep, max_depth=4).valid
        assert not validate_metadata(deep, max_depth=3).valid

    def test_non_json_value_rejected(self) -> None:
        assert not validate_metadata({"when": datetime.now(timezone.utc)}).valid

    def test_reserved_key_warns(self) -> None:
        result = validate_metadata({"_id": "x", "ok": 1})
        assert result.valid
        assert "_id" in result.warnings[0]


# =============================================================================
# Tests: Tags
# =============================================================================
class TestTags:
    """Tests for tag validation."""

    def test_valid_tags(self) -> None:
        assert validate_tags(["alpha", "beta-2", "with space"]).valid

    def test_not_a_list(self) -> None:
        assert not validate_tags("alpha").valid

    def test_count_limit(self) -> None:
        assert not validate_tags([f"t{i}" for i in range(51)]).valid
        assert validate_tags([f"t{i}" for i in range(50)]).valid

    def test_duplicates_and_whitespace_warn(self) -> None:
        result = validate_tags(["Alpha", "alpha", " beta "])
        assert result.valid
        assert len(result.warnings) == 2

    def test_invalid_characters(self) -> None:
        assert not validate_tags(["bad/tag"]).valid

    def test_empty_tag_rejected(self) -> None:
        assert not validate_tags(["ok", "  "]).valid

    def test_empty_list_depends_on_config(self) -> None:
        assert validate_tags([]).valid
        assert not validate_tags([], allow_empty=False).valid


# =============================================================================
# Tests: Priority
# =============================================================================
class TestPriority:
    """Tests for priority validation."""

    @pytest.mark.parametrize("priority", [0, 5, 10])
    def test_bounds_pass(self, priority: int) -> None:
        assert validate_priority(priority).valid

    @pytest.mark.parametrize("priority", [-1, 11])
    def test_out_of_bounds_fail(self, priority: int) -> None:
        assert not validate_priority(priority).valid

    @pytest.mark.parametrize("priority", [5.5, "5", True, None])
    def test_non_integers_fail(self, priority) -> None:
        assert not validate_priority(priority).valid

    def test_integral_float_passes(self) -> None:
        assert validate_priority(4.0).valid

    def test_extreme_priorities_warn(self) -> None:
        assert validate_priority(1).warnings
        assert validate_priority(9).warnings
        assert validate_priority(5).warnings == []


# =============================================================================
# Tests: Aggregates
# =============================================================================
class TestAggregates:
    """Tests for validate_artifact, validate_update and validate_search_request."""

    def test_valid_artifact(self) -> None:
        assert validate_artifact(_fields()).valid

    def test_missing_priority_accepted(self) -> None:
        assert validate_artifact(_fields(priority=None)).valid

    def test_missing_required_field(self) -> None:
        result = validate_artifact(_fields(title=None))
        assert not result.valid
        assert "Required field 'title' is missing" in result.errors

    def test_collects_every_error(self) -> None:
        result = validate_artifact(_fields(id="bad id", priority=11, tags="x"))
        assert len(result.errors) >= 3

    def test_update_validates_only_provided_fields(self) -> None:
        assert validate_update({"priority": 3}).valid
        assert not validate_update({"priority": 12}).valid
        assert validate_update({}).valid

    def test_search_valid(self) -> None:
        assert validate_search_request({"limit": 10, "offset": 0, "order_by": OrderBy.TITLE}).valid

    @pytest.mark.parametrize(
        "query",
        [
            {"limit": 0},
            {"offset": -1},
            {"order_by": "size"},
            {"order_direction": "sideways"},
            {"min_priority": 8, "max_priority": 2},
            {
                "date_from": datetime(2025, 2, 1, tzinfo=timezone.utc),
                "date_to": datetime(2025, 1, 1, tzinfo=timezone.utc),
            },
            {
                "date_from": datetime(2025, 2, 1),
                "date_to": datetime(2025, 1, 1, tzinfo=timezone.utc),
            },
            {"date_from": "2025-01-01"},
        ],
    )
    def test_search_invalid(self, query: dict) -> None:
        assert not validate_search_request(query).valid

    def test_naive_date_is_read_as_utc(self) -> None:
        result = validate_search_request(
            {
                "date_from": datetime(2025, 1, 1, tzinfo=timezone.utc),
                "date_to": datetime(2025, 1, 1, 0, 30),
            }
        )
        assert result.valid

    def test_large_limit_warns(self) -> None:
        result = validate_search_request({"limit": 5000})
        assert result.valid
        assert result.warnings


# =============================================================================
# Tests: Sanitation
# =============================================================================
class TestSanitation:
    """Tests for sanitize_tags and sanitize_artifact."""

    def test_sanitize_tags(self) -> None:
        assert sanitize_tags([" b ", "a", "b", "", 3]) == ["a", "b"]

    def test_sanitize_artifact(self) -> None:
        clean = sanitize_artifact(
            _fields(
                title="  Many   spaces here ",
                description="  text  ",
                tags=["z", " a", "z"],
                priority=7.6,
            )
        )
        assert clean["title"] == "Many spaces here"
        assert clean["description"] == "text"
        assert clean["tags"] == ["a", "z"]
        assert clean["priority"] == 8

    def test_sanitize_leaves_input_untouched(self) -> None:
        fields = _fields(title=" x ")
        sanitize_artifact(fields)
        assert fields["title"] == " x "

    def test_sanitize_keeps_missing_priority(self) -> None:
        assert sanitize_artifact(_fields(priority=None))["priority"] is None
