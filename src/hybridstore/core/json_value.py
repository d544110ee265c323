"""
hybridstore.core.json_value - Bounded JSON Value Trees
=======================================================

Artifact metadata and payloads are JSON value trees: a closed set of
shapes (null, bool, number, string, list, string-keyed mapping). This
module provides the depth-counting checks applied before a tree is
accepted for storage.

Depth counts container levels:

    "text"                  → 0
    {"a": 1}                → 1
    {"a": {"b": [1, 2]}}    → 3

Usage:
    >>> problems = check_json_value({"a": {"b": 1}}, max_depth=5)
    >>> problems
    []
"""

from __future__ import annotations

import json
import math
from typing import Any, Optional


def json_depth(value: Any, limit: Optional[int] = None) -> int:
    """Return the container nesting depth of a JSON tree.

    Args:
        value: The tree to measure.
        limit: Stop descending once this depth is exceeded and return
            ``limit + 1``. Keeps cyclic structures from recursing forever.

    Returns:
        The depth (0 for scalars).
    """
    if not isinstance(value, (dict, list)):
        return 0
    if limit is not None and limit <= 0:
        return 1

    children = value.values() if isinstance(value, dict) else value
    next_limit = None if limit is None else limit - 1
    deepest = 0
    for child in children:
        deepest = max(deepest, json_depth(child, next_limit))
        if next_limit is not None and deepest > next_limit:
            break
    return 1 + deepest


def check_json_value(value: Any, max_depth: int, path: str = "$") -> list[str]:
    """List every reason ``value`` is not an acceptable JSON tree.

    Checks that only JSON shapes are used, that mapping keys are strings,
    that floats are finite, and that nesting stays within ``max_depth``.

    Args:
        value: The tree to check.
        max_depth: Maximum container depth.
        path: JSONPath-style location used in messages.

    Returns:
        A list of problem descriptions; empty when the tree is acceptable.
    """
    problems: list[str] = []
    _walk(value, max_depth, 0, path, problems)
    return problems


def _walk(value: Any, max_depth: int, depth: int, path: str, problems: list[str]) -> None:
    if value is None or isinstance(value, (bool, int, str)):
        return
    if isinstance(value, float):
        if not math.isfinite(value):
            problems.append(f"{path}: non-finite number {value!r} is not valid JSON")
        return
    if not isinstance(value, (dict, list)):
        problems.append(f"{path}: unsupported type {type(value).__name__}")
        return

    if depth + 1 > max_depth:
        problems.append(f"{path}: nesting depth exceeds limit ({max_depth})")
        return

    if isinstance(value, dict):
        for key, child in value.items():
            if not isinstance(key, str):
                problems.append(f"{path}: mapping key {key!r} is not a string")
                continue
            _walk(child, max_depth, depth + 1, f"{path}.{key}", problems)
    else:
        for i, child in enumerate(value):
            _walk(child, max_depth, depth + 1, f"{path}[{i}]", problems)


def dumps_compact(value: Any) -> str:
    """Serialize a JSON tree with no insignificant whitespace.

    Raises:
        TypeError: If the tree contains a non-JSON type.
        ValueError: If the tree contains a cycle or a non-finite float.
    """
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
