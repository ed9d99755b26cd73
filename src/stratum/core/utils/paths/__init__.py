"""Path utilities for Stratum.

- Resolver: reference resolution against a referencing directory with
  root-containment enforcement
"""
from __future__ import annotations

from .resolver import (
    PathResolver,
    canonicalize,
    ensure_extension,
    is_within,
    resolve_reference,
)

__all__ = [
    "PathResolver",
    "canonicalize",
    "ensure_extension",
    "is_within",
    "resolve_reference",
]
