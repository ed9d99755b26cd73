"""Structural validation of resolved documents.

Documents are checked with ``jsonschema``; every error is mapped onto a
:class:`Violation` carrying a stable kind and a readable property path such
as ``Fields[0].Name``. Results are sorted so that two validations of the same
tree always produce the same list.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Union

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError, ValidationError
from jsonschema.validators import validator_for

from stratum.core.exceptions import InvalidSchemaError

PathSegment = Union[str, int]

ROOT_PATH = "(root)"

MISSING_REQUIRED_PROPERTY = "MissingRequiredProperty"
UNEXPECTED_PROPERTY = "UnexpectedProperty"
TYPE_MISMATCH = "TypeMismatch"
INVALID_VALUE = "InvalidValue"
NO_VARIANT_MATCHED = "NoVariantMatched"
CONSTRAINT_VIOLATION = "ConstraintViolation"

_KIND_BY_KEYWORD = {
    "type": TYPE_MISMATCH,
    "enum": INVALID_VALUE,
    "const": INVALID_VALUE,
    "oneOf": NO_VARIANT_MATCHED,
    "anyOf": NO_VARIANT_MATCHED,
}


@dataclass(frozen=True)
class Violation:
    """One schema violation."""

    kind: str
    path: str
    message: str
    property: Optional[str] = None

    def describe(self) -> str:
        return f"{self.path}: {self.message}"


def format_path(segments: Iterable[PathSegment]) -> str:
    """Render path segments as ``Fields[0].Name``; the empty path is ``(root)``."""
    out = ""
    for seg in segments:
        if isinstance(seg, int):
            out += f"[{seg}]"
        elif out:
            out += f".{seg}"
        else:
            out = str(seg)
    return out or ROOT_PATH


def build_validator(schema: Dict[str, Any]) -> Any:
    """Return a jsonschema validator instance for ``schema``.

    The validator class follows the schema's ``$schema`` dialect and defaults
    to Draft 2020-12.
    """
    cls = validator_for(schema, default=Draft202012Validator)
    return cls(schema)


def check_schema(schema: Any, *, source: Optional[str] = None) -> None:
    """Raise :class:`InvalidSchemaError` unless ``schema`` is a usable object schema."""
    if not isinstance(schema, dict):
        raise InvalidSchemaError(
            f"Schema must be a JSON object, got {type(schema).__name__}",
            source=source,
        )
    cls = validator_for(schema, default=Draft202012Validator)
    try:
        cls.check_schema(schema)
    except SchemaError as exc:
        raise InvalidSchemaError(f"Invalid JSON Schema: {exc.message}", source=source) from exc


def _is_null_schema(node: Any) -> bool:
    return isinstance(node, dict) and (node.get("type") == "null" or node.get("const", object()) is None)


def _flatten(error: ValidationError) -> Iterator[ValidationError]:
    """Descend into ``oneOf``/``anyOf`` that only wrap a nullable variant.

    ``{"oneOf": [{"type": "null"}, {"$ref": ...}]}`` failing on a non-null
    value is reported through the errors of the non-null branch.
    """
    if error.validator in ("oneOf", "anyOf") and error.context:
        variants = error.validator_value if isinstance(error.validator_value, list) else []
        candidates = [i for i, v in enumerate(variants) if not _is_null_schema(v)]
        if len(candidates) == 1:
            branch = [
                e for e in error.context
                if e.relative_schema_path and e.relative_schema_path[0] == candidates[0]
            ]
            if branch:
                for sub in branch:
                    yield from _flatten(sub)
                return
    yield error


def _undeclared_keys(error: ValidationError) -> List[str]:
    instance = error.instance if isinstance(error.instance, dict) else {}
    schema = error.schema if isinstance(error.schema, dict) else {}
    declared = schema.get("properties", {}) or {}
    patterns = list((schema.get("patternProperties", {}) or {}).keys())
    extras = []
    for key in instance:
        if key in declared:
            continue
        if any(re.search(p, key) for p in patterns):
            continue
        extras.append(key)
    return extras


def _to_violations(error: ValidationError) -> List[Violation]:
    segments: List[PathSegment] = list(error.absolute_path)
    keyword = error.validator

    if keyword == "required":
        instance = error.instance if isinstance(error.instance, dict) else {}
        missing = [name for name in error.validator_value or [] if name not in instance]
        return [
            Violation(
                MISSING_REQUIRED_PROPERTY,
                format_path(segments + [name]),
                f"Required property '{name}' is missing",
                property=name,
            )
            for name in missing
        ]

    if keyword in ("additionalProperties", "unevaluatedProperties") and error.validator_value is False:
        extras = _undeclared_keys(error)
        if extras:
            return [
                Violation(
                    UNEXPECTED_PROPERTY,
                    format_path(segments + [name]),
                    f"Property '{name}' is not declared by the schema",
                    property=name,
                )
                for name in extras
            ]

    kind = _KIND_BY_KEYWORD.get(str(keyword), CONSTRAINT_VIOLATION)
    prop = segments[-1] if segments and isinstance(segments[-1], str) else None
    return [Violation(kind, format_path(segments), error.message, property=prop)]


def iter_violations(tree: Any, validator: Any) -> Iterator[Violation]:
    for error in validator.iter_errors(tree):
        for leaf in _flatten(error):
            yield from _to_violations(leaf)


def validate(tree: Any, schema: Union[Dict[str, Any], Any]) -> List[Violation]:
    """Validate ``tree`` against ``schema`` (a dict or a prepared validator).

    Returns:
        Violations sorted by path, kind and message. Empty when valid.
    """
    validator = build_validator(schema) if isinstance(schema, dict) else schema
    unique = set(iter_violations(tree, validator))
    return sorted(unique, key=lambda v: (v.path, v.kind, v.message))


def format_violations(violations: Sequence[Violation]) -> List[str]:
    """Human-readable lines for error messages."""
    return [v.describe() for v in violations]


__all__ = [
    "Violation",
    "ROOT_PATH",
    "MISSING_REQUIRED_PROPERTY",
    "UNEXPECTED_PROPERTY",
    "TYPE_MISMATCH",
    "INVALID_VALUE",
    "NO_VARIANT_MATCHED",
    "CONSTRAINT_VIOLATION",
    "format_path",
    "build_validator",
    "check_schema",
    "iter_violations",
    "validate",
    "format_violations",
]
