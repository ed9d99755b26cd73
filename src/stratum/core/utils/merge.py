"""Canonical deep merge for document inheritance.

Merge rules (base is lower priority, child wins):
- Objects present on both sides merge recursively
- Everything else on the child side replaces the base value outright,
  including arrays: array position carries meaning, so arrays are atomic
- Keys present on only one side pass through unchanged

Inputs are never mutated and the result shares no structure with them.
"""
from __future__ import annotations

import copy
from typing import Any, Dict


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` onto ``base`` without mutating inputs.

    Args:
        base: Base dictionary (lower priority)
        override: Override dictionary (higher priority)

    Returns:
        New merged dictionary

    Example:
        >>> deep_merge({"a": 1, "b": {"x": 1, "y": 2}}, {"b": {"x": 9}})
        {'a': 1, 'b': {'x': 9, 'y': 2}}
        >>> deep_merge({"Fields": ["A", "B"]}, {"Fields": ["C"]})
        {'Fields': ['C']}
    """
    result: Dict[str, Any] = copy.deepcopy(base)
    for key, value in (override or {}).items():
        current = result.get(key)
        if key in result and isinstance(current, dict) and isinstance(value, dict):
            result[key] = deep_merge(current, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


__all__ = ["deep_merge"]
