"""Structural diff of an extracted result against ground truth.

Walks the ground truth key by key, in its own order:

1. key absent from the result -> ``missing field: <key>``
2. expected None -> actual must be None
3. expected list/tuple -> actual must be a list/tuple of the same length
   (items are not compared)
4. expected dict -> actual must be a dict; recurse with ``<parent>.`` key paths
5. both strings -> trimmed, case-insensitive; equal or either contains
   the other
6. anything else -> strict equality (``True`` is not ``1``)

Extra keys in the result are ignored.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class DiffResult:
    """Outcome of a diff: valid only when ``errors`` is empty."""

    valid: bool
    errors: list[str] = field(default_factory=list)


def _show(value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        return repr(value)


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


def _strictly_equal(expected: Any, actual: Any) -> bool:
    if isinstance(expected, bool) or isinstance(actual, bool):
        return type(expected) is type(actual) and expected == actual
    return expected == actual


def _strings_match(expected: str, actual: str) -> bool:
    want = expected.strip().lower()
    got = actual.strip().lower()
    return want == got or want in got or got in want


def _diff(result: dict[str, Any], ground_truth: dict[str, Any], prefix: str, errors: list[str]) -> None:
    for key, expected in ground_truth.items():
        path = f"{prefix}{key}"
        if key not in result:
            errors.append(f"missing field: {path}")
            continue
        actual = result[key]

        if expected is None:
            if actual is not None:
                errors.append(f"Field {path}: expected null, got {_show(actual)}")
            continue

        if isinstance(expected, (list, tuple)):
            if not isinstance(actual, (list, tuple)):
                errors.append(f"Field {path}: expected array, got {_type_name(actual)}")
            elif len(actual) != len(expected):
                errors.append(f"Field {path}: expected {len(expected)} items, got {len(actual)}")
            continue

        if isinstance(expected, dict):
            if not isinstance(actual, dict):
                errors.append(f"Field {path}: expected object, got {_type_name(actual)}")
                continue
            _diff(actual, expected, f"{path}.", errors)
            continue

        if isinstance(expected, str) and isinstance(actual, str):
            if not _strings_match(expected, actual):
                errors.append(f'Field {path}: expected "{expected}", got "{actual}"')
            continue

        if not _strictly_equal(expected, actual):
            errors.append(f"Field {path}: expected {_show(expected)}, got {_show(actual)}")


def diff_against_ground_truth(result: Any, ground_truth: dict[str, Any]) -> DiffResult:
    """Compare ``result`` with ``ground_truth``; neither argument is modified."""
    if not isinstance(result, dict):
        return DiffResult(valid=False, errors=[f"expected an object result, got {_type_name(result)}"])
    errors: list[str] = []
    _diff(result, ground_truth, "", errors)
    return DiffResult(valid=not errors, errors=errors)
