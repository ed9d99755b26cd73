"""One stored document: read with composition, write with validation.

Read state machine::

    not loaded -> raw loaded -> {directives | none} -> resolved
        -> valid -> decoded
        -> invalid -> sanitized -> decoded      (Settings only)
        -> invalid -> failed

Every read starts from the files on disk; nothing is kept between calls
except the fragment cache of a single read.
"""
from __future__ import annotations

import copy
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from stratum.core.composition import FragmentExpander, InheritanceResolver, contains_directive
from stratum.core.config import EngineConfig
from stratum.core.exceptions import (
    DocumentLoadError,
    DocumentValidationError,
    InvalidDocumentIdError,
    InvalidSchemaError,
    MergedValidationFailedError,
    PathEscapesRootError,
    ReadNotSupportedError,
    SettingsReviewRequiredError,
)
from stratum.core.schemas import DocumentSchema, Sanitizer, SchemaWriter, format_violations
from stratum.core.schemas.shape import json_type
from stratum.core.schemas.validation import ROOT_PATH, TYPE_MISMATCH, Violation
from stratum.core.utils.io import read_json, write_json_atomic
from stratum.core.utils.paths import PathResolver, canonicalize

from .behavior import BehaviorMode

logger = logging.getLogger(__name__)


class ComposableDocument:
    """A JSON document under ``root_dir`` handled according to ``behavior``.

    Args:
        path: Document file; must carry the configured extension and live
            inside ``root_dir``
        root_dir: Composition boundary; no directive may reach outside it
        schema: Contract for Settings/State documents (optional for Output)
        behavior: Settings, State or Output
        config: Engine configuration (defaults when omitted)
    """

    def __init__(
        self,
        path: Path,
        root_dir: Path,
        schema: Optional[DocumentSchema],
        behavior: BehaviorMode | str,
        *,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self.behavior = BehaviorMode.parse(behavior)
        if schema is None and self.behavior is not BehaviorMode.OUTPUT:
            raise InvalidSchemaError(f"{self.behavior.value} documents require a schema", source=path)
        self.schema = schema
        self.config = config or (schema.config if schema is not None else EngineConfig())
        self.resolver = PathResolver(root_dir, extension=self.config.extension)

        resolved = canonicalize(path)
        extension = self.config.extension
        if extension and not resolved.name.lower().endswith(extension.lower()):
            raise InvalidDocumentIdError(resolved.name, f"document file must have a '{extension}' extension")
        if not self.resolver.contains(resolved):
            raise PathEscapesRootError(str(path), resolved, self.resolver.root_dir)
        self.path = resolved

        self.schema_writer: Optional[SchemaWriter] = (
            SchemaWriter(self.resolver.root_dir, schema, self.config) if schema is not None else None
        )

    def __repr__(self) -> str:
        return f"ComposableDocument({self.resolver.relative(self.path)!r}, {self.behavior.value})"

    @property
    def exists(self) -> bool:
        return self.path.exists()

    # ----- read -----

    def read(self) -> Dict[str, Any]:
        """Return the resolved, validated document value.

        Raises:
            ReadNotSupportedError: Output documents
            SettingsReviewRequiredError: Settings document was missing; a
                default has been written
            CompositionError: ``$extends``/``$include`` resolution failed
            DocumentValidationError: The document does not satisfy the schema
        """
        if self.behavior is BehaviorMode.OUTPUT:
            raise ReadNotSupportedError(self.path)
        if not self.path.exists():
            return self._create_default()

        tree = self._load()
        extends_key = self.config.extends_key
        is_extending = extends_key in tree
        if is_extending or contains_directive(tree, self.config.include_key):
            return self._read_composed(tree, is_extending)
        return self._read_plain(tree)

    def _load(self) -> Dict[str, Any]:
        try:
            data = read_json(self.path)
        except ValueError as exc:
            raise DocumentLoadError(self.path, f"invalid JSON ({exc})") from exc
        if not isinstance(data, dict):
            raise DocumentLoadError(self.path, f"expected a JSON object, found {json_type(data)}")
        return data

    def _inject_writer(self) -> Optional[SchemaWriter]:
        return self.schema_writer if self.config.inject_on_read else None

    def _read_plain(self, tree: Dict[str, Any]) -> Dict[str, Any]:
        assert self.schema is not None
        writer = self._inject_writer()
        if self.behavior is BehaviorMode.SETTINGS:
            result = Sanitizer(self.schema).sanitize(tree, source=self.path)
            if result.tree != self.schema.strip_reserved(tree):
                self._write_tree(result.tree)
                logger.info("Rewrote %s to match the current schema", self.resolver.relative(self.path))
            elif writer is not None:
                writer.ensure_reference(self.path, tree)
            return result.tree

        violations = self.schema.validate(tree)
        if violations:
            raise DocumentValidationError(self.path, violations)
        if writer is not None:
            writer.ensure_reference(self.path, tree)
        return self.schema.normalize(tree)

    def _read_composed(self, tree: Dict[str, Any], is_extending: bool) -> Dict[str, Any]:
        assert self.schema is not None
        writer = self._inject_writer()
        expander = FragmentExpander(
            self.resolver,
            include_key=self.config.include_key,
            items_key=self.config.fragment_items_key,
            extends_key=self.config.extends_key,
            schema_writer=writer,
            cache={},
        )
        inheritance = InheritanceResolver(
            self.resolver,
            self.schema,
            expander,
            config=self.config,
            sanitizer=Sanitizer(self.schema) if self.behavior is BehaviorMode.SETTINGS else None,
            schema_writer=self.schema_writer,
        )

        base_path: Optional[Path] = None
        merged = tree
        if is_extending:
            extends_name = tree[self.config.extends_key]
            merged = inheritance.resolve(self.path, tree, extends_name, [self.path])
            base_path = self.resolver.resolve(self.path.parent, extends_name, referrer=self.path)
        resolved = expander.expand(merged, inheritance.include_dir(self.path), source=self.path)

        if writer is not None:
            writer.ensure_reference(self.path, tree, extends=is_extending)

        if self.behavior is BehaviorMode.SETTINGS:
            try:
                return Sanitizer(self.schema).sanitize(resolved, source=self.path).tree
            except DocumentValidationError as exc:
                if is_extending:
                    raise MergedValidationFailedError(
                        self.path, base_path, exc.violations, format_violations(exc.violations)
                    ) from exc
                raise

        violations = self.schema.validate(resolved)
        if violations:
            if is_extending:
                raise MergedValidationFailedError(
                    self.path, base_path, violations, format_violations(violations)
                )
            raise DocumentValidationError(self.path, violations)
        return self.schema.normalize(resolved)

    def _create_default(self) -> Dict[str, Any]:
        assert self.schema is not None
        default = self.schema.default_document()
        self._write_tree(default)
        logger.info("Created default document %s", self.resolver.relative(self.path))
        if self.behavior is BehaviorMode.SETTINGS:
            raise SettingsReviewRequiredError(self.path)
        return copy.deepcopy(default)

    # ----- write -----

    def _write_tree(self, tree: Dict[str, Any]) -> None:
        if self.schema_writer is not None:
            self.schema_writer.write_document(self.path, tree)
        else:
            write_json_atomic(self.path, tree, **self.config.json_options)

    def write(self, value: Any) -> Path:
        """Write ``value`` and return the file path.

        Settings/State values are validated first and written normalized with
        a ``$schema`` reference. Output values are written as given.
        """
        if self.behavior is BehaviorMode.OUTPUT:
            write_json_atomic(self.path, value, **self.config.json_options)
            logger.debug("Wrote output document %s", self.path)
            return self.path

        assert self.schema is not None
        if not isinstance(value, dict):
            raise DocumentValidationError(
                self.path,
                [Violation(TYPE_MISMATCH, ROOT_PATH, f"Expected object, found {json_type(value)}")],
            )
        tree = self.schema.strip_reserved(value)
        violations = self.schema.validate(tree)
        if violations:
            raise DocumentValidationError(self.path, violations)
        self._write_tree(self.schema.normalize(tree))
        return self.path

    # ----- cache freshness -----

    def is_cache_valid(
        self,
        max_age_minutes: float,
        predicate: Optional[Callable[[Dict[str, Any]], bool]] = None,
    ) -> bool:
        """True when the file exists, is younger than ``max_age_minutes`` and,
        if given, ``predicate`` accepts its value."""
        if not self.path.exists():
            return False
        age_minutes = (time.time() - self.path.stat().st_mtime) / 60.0
        if age_minutes > max_age_minutes:
            return False
        if predicate is None:
            return True
        return bool(predicate(self.read()))


__all__ = ["ComposableDocument"]
