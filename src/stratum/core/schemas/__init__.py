"""Schema handling for Stratum.

- DocumentSchema: full / extends / fragment variants of one contract
- Shape: capability table compiled from the schema (defaults, pruning)
- validate / Violation: structured validation results
- Sanitizer: Settings-mode migration and drift repair
- SchemaWriter: schema files and ``$schema`` references
"""
from __future__ import annotations

from .document import DocumentSchema
from .sanitize import Migration, SanitizeResult, Sanitizer
from .shape import MISSING, DecodeError, Shape
from .validation import Violation, check_schema, format_path, format_violations, validate
from .writer import SchemaWriter

__all__ = [
    "DocumentSchema",
    "Shape",
    "DecodeError",
    "MISSING",
    "Violation",
    "validate",
    "check_schema",
    "format_path",
    "format_violations",
    "Sanitizer",
    "SanitizeResult",
    "Migration",
    "SchemaWriter",
]
