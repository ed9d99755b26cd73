"""Authoring child documents as patches over a base.

``create_patch`` keeps only what differs from the base so that a child
document stays small and keeps inheriting everything it does not override.
Arrays are compared as whole values, matching the merge rule that replaces
them wholesale.
"""
from __future__ import annotations

import copy
from typing import Any, Dict


def create_patch(base: Dict[str, Any], edited: Dict[str, Any]) -> Dict[str, Any]:
    """Return the properties of ``edited`` that differ from ``base``.

    - Properties only in ``edited`` are emitted as is
    - Properties removed in ``edited`` are emitted as explicit ``null``
    - Objects on both sides are diffed recursively; empty diffs are omitted
    - Anything else is emitted when the values are not equal

    Example:
        >>> create_patch({"a": 1, "b": {"x": 1, "y": 2}}, {"a": 1, "b": {"x": 9, "y": 2}})
        {'b': {'x': 9}}
    """
    patch: Dict[str, Any] = {}
    for key, value in edited.items():
        if key not in base:
            patch[key] = copy.deepcopy(value)
            continue
        current = base[key]
        if isinstance(current, dict) and isinstance(value, dict):
            nested = create_patch(current, value)
            if nested:
                patch[key] = nested
        elif current != value or type(current) is not type(value):
            patch[key] = copy.deepcopy(value)
    for key in base:
        if key not in edited:
            patch[key] = None
    return patch


def create_child_document(
    base: Dict[str, Any],
    edited: Dict[str, Any],
    extends_name: str,
    *,
    extends_key: str = "$extends",
) -> Dict[str, Any]:
    """Build a child document (``$extends`` first) holding only the overrides."""
    child: Dict[str, Any] = {extends_key: extends_name}
    child.update(create_patch(base, edited))
    return child


__all__ = ["create_patch", "create_child_document"]
