"""Settings-mode repair of drifted documents.

Repair is deliberately narrow:

1. Decode the tree through the schema shape. On a type mismatch try the one
   migration that applies (a string where a list is expected becomes a
   one-element list, a number where a string is expected is stringified).
   Each property path is migrated at most once.
2. Re-serialize through the shape: missing properties take their declared
   default, undeclared properties are dropped.
3. Validate the result. Anything still wrong is raised, never guessed at.

Every migration and every added or dropped property is logged.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from stratum.core.exceptions import DocumentValidationError

from .document import DocumentSchema
from .shape import DecodeError
from .validation import TYPE_MISMATCH, PathSegment, Violation

logger = logging.getLogger(__name__)

WRAP_IN_LIST = "wrap-in-list"
STRINGIFY = "stringify"


@dataclass(frozen=True)
class Migration:
    path: str
    kind: str
    old: Any
    new: Any


@dataclass
class SanitizeResult:
    tree: Dict[str, Any]
    migrations: List[Migration] = field(default_factory=list)
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.migrations or self.added or self.removed)


def _stringify(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _set_at(tree: Any, location: Tuple[PathSegment, ...], value: Any) -> None:
    node = tree
    for seg in location[:-1]:
        node = node[seg]
    node[location[-1]] = value


class Sanitizer:
    """Repairs a document tree so it satisfies a :class:`DocumentSchema`."""

    def __init__(self, schema: DocumentSchema) -> None:
        self.schema = schema

    def migration_for(self, error: DecodeError) -> Optional[Migration]:
        """Return the migration that fixes ``error``, if one of the two applies."""
        expected = set(error.expected.split(" | "))
        if "array" in expected and error.found == "string":
            return Migration(error.path, WRAP_IN_LIST, error.value, [error.value])
        if "string" in expected and error.found in ("integer", "number"):
            return Migration(error.path, STRINGIFY, error.value, _stringify(error.value))
        return None

    def _decode_failure(self, error: DecodeError, source: Optional[Path]) -> DocumentValidationError:
        prop = error.location[-1] if error.location and isinstance(error.location[-1], str) else None
        violation = Violation(
            TYPE_MISMATCH,
            error.path,
            f"Expected {error.expected}, found {error.found}",
            property=prop,
        )
        return DocumentValidationError(source, [violation])

    def decode(self, tree: Dict[str, Any], *, source: Optional[Path] = None) -> List[Migration]:
        """Decode ``tree`` in place, applying migrations. Returns those applied."""
        applied: List[Migration] = []
        migrated: Set[Tuple[PathSegment, ...]] = set()
        while True:
            try:
                self.schema.shape.decode(tree)
                return applied
            except DecodeError as exc:
                if not exc.location or exc.location in migrated:
                    raise self._decode_failure(exc, source) from exc
                migration = self.migration_for(exc)
                if migration is None:
                    raise self._decode_failure(exc, source) from exc
                _set_at(tree, exc.location, migration.new)
                migrated.add(exc.location)
                applied.append(migration)
                logger.warning(
                    "Migrated '%s' in %s (%s): %r -> %r",
                    migration.path,
                    source or "<document>",
                    migration.kind,
                    migration.old,
                    migration.new,
                )

    def sanitize(self, tree: Dict[str, Any], *, source: Optional[Path] = None) -> SanitizeResult:
        """Decode, migrate, normalize and re-validate ``tree``.

        Raises:
            DocumentValidationError: When a type mismatch has no migration or
                the normalized tree still violates the schema
        """
        working = self.schema.strip_reserved(copy.deepcopy(tree))
        migrations = self.decode(working, source=source)

        shape = self.schema.shape
        normalized = shape.normalize(working)
        before = set(shape.iter_paths(working))
        after = set(shape.iter_paths(normalized))
        added = sorted(after - before)
        removed = sorted(before - after)
        for path in added:
            logger.warning("Added missing property '%s' to %s", path, source or "<document>")
        for path in removed:
            logger.warning("Removed undeclared property '%s' from %s", path, source or "<document>")

        violations = self.schema.validate(normalized)
        if violations:
            raise DocumentValidationError(source, violations)
        return SanitizeResult(normalized, migrations, added, removed)


__all__ = ["Sanitizer", "SanitizeResult", "Migration", "WRAP_IN_LIST", "STRINGIFY"]
