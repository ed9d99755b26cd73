"""Directive detection helpers."""
from __future__ import annotations

from typing import Any


def contains_directive(tree: Any, key: str) -> bool:
    """True if ``key`` appears on any object anywhere in ``tree``."""
    if isinstance(tree, dict):
        if key in tree:
            return True
        return any(contains_directive(v, key) for v in tree.values())
    if isinstance(tree, list):
        return any(contains_directive(v, key) for v in tree)
    return False


def describe_value(value: Any) -> str:
    """Short description of an invalid directive value for error messages."""
    if value is None:
        return "null"
    if isinstance(value, str):
        return "empty string" if not value.strip() else repr(value)
    if isinstance(value, bool):
        return f"boolean ({str(value).lower()})"
    if isinstance(value, (int, float)):
        return f"number ({value})"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


__all__ = ["contains_directive", "describe_value"]
