"""Document store façade keyed by document id.

A document id is a name relative to the store's root directory, with or
without the configured extension (``"profiles/MechEquip"``). Ids that would
resolve outside the root are rejected like any other directive reference.
"""
from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from stratum.core.composition import create_child_document
from stratum.core.config import EngineConfig
from stratum.core.exceptions import DocumentValidationError, InvalidDocumentIdError, StratumError
from stratum.core.schemas import DocumentSchema
from stratum.core.utils.io import ensure_directory
from stratum.core.utils.paths import PathResolver

from .behavior import BehaviorMode
from .document import ComposableDocument

logger = logging.getLogger(__name__)


class Outcome(NamedTuple):
    """Result of a boundary call: a value or the error that prevented it."""

    value: Any
    error: Optional[StratumError]

    @property
    def ok(self) -> bool:
        return self.error is None


def list_document_ids(directory: Path, config: EngineConfig, *, recursive: bool = False) -> List[str]:
    """Ids of the documents under ``directory``.

    Schema files and any path segment matching ``discovery.exclude_patterns``
    (fragment folders such as ``_fragments``) are skipped. Ids are relative
    to ``directory``, use ``/`` and carry no extension.
    """
    base = Path(directory)
    if not base.is_dir():
        return []
    extension = config.extension
    pattern = f"*{extension}"
    candidates = base.rglob(pattern) if recursive else base.glob(pattern)
    schema_files = {name.lower() for name in config.schema_files}
    patterns = config.exclude_patterns

    ids: List[str] = []
    for path in candidates:
        if not path.is_file():
            continue
        rel = path.relative_to(base)
        if rel.name.lower() in schema_files:
            continue
        if any(fnmatch.fnmatchcase(part, pat) for part in rel.parts for pat in patterns):
            continue
        posix = rel.as_posix()
        ids.append(posix[: -len(extension)] if extension else posix)
    return sorted(ids)


class DocumentStore:
    """Read and write documents of one type under ``root_dir``.

    Usage:
        store = DocumentStore(root, schema, BehaviorMode.SETTINGS)
        profile = store.read("profiles/MechEquip")
        value, error = store.read_result("profiles/Broken")
    """

    def __init__(
        self,
        root_dir: Path,
        schema: Optional[DocumentSchema],
        behavior: BehaviorMode | str,
        *,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self.behavior = BehaviorMode.parse(behavior)
        self.schema = schema
        self.config = config or (schema.config if schema is not None else EngineConfig.load(Path(root_dir)))
        self.resolver = PathResolver(ensure_directory(Path(root_dir)), extension=self.config.extension)

    @property
    def root_dir(self) -> Path:
        return self.resolver.root_dir

    def path_for(self, document_id: str) -> Path:
        if not isinstance(document_id, str) or not document_id.strip():
            raise InvalidDocumentIdError(document_id, "must be a non-empty string")
        return self.resolver.resolve_document(document_id)

    def document(self, document_id: str) -> ComposableDocument:
        return ComposableDocument(
            self.path_for(document_id),
            self.root_dir,
            self.schema,
            self.behavior,
            config=self.config,
        )

    # ----- operations -----

    def read(self, document_id: str) -> Dict[str, Any]:
        return self.document(document_id).read()

    def write(self, document_id: str, value: Any) -> Path:
        return self.document(document_id).write(value)

    def is_cache_valid(
        self,
        document_id: str,
        max_age_minutes: float,
        predicate: Optional[Callable[[Dict[str, Any]], bool]] = None,
    ) -> bool:
        return self.document(document_id).is_cache_valid(max_age_minutes, predicate)

    def read_result(self, document_id: str) -> Outcome:
        """``read`` returning ``Outcome(value, None)`` or ``Outcome(None, error)``."""
        try:
            return Outcome(self.read(document_id), None)
        except StratumError as exc:
            return Outcome(None, exc)

    def write_result(self, document_id: str, value: Any) -> Outcome:
        """``write`` returning ``Outcome(path, None)`` or ``Outcome(None, error)``."""
        try:
            return Outcome(self.write(document_id, value), None)
        except StratumError as exc:
            return Outcome(None, exc)

    # ----- discovery -----

    def list_documents(self, recursive: bool = False) -> List[str]:
        """Ids of the documents in the store (see :func:`list_document_ids`)."""
        return list_document_ids(self.root_dir, self.config, recursive=recursive)

    # ----- child authoring -----

    def create_child(self, document_id: str, base_id: str, edited: Dict[str, Any]) -> Path:
        """Write ``document_id`` as a child of ``base_id`` holding only what
        ``edited`` changes.

        ``edited`` is validated as a complete document first. Properties it
        drops from the base are written as explicit ``null``.
        """
        if self.behavior is BehaviorMode.OUTPUT or self.schema is None:
            raise ValueError("Output documents cannot extend a base document")

        child_path = self.path_for(document_id)
        base_path = self.path_for(base_id)
        edited_tree = self.schema.strip_reserved(edited)
        violations = self.schema.validate(edited_tree)
        if violations:
            raise DocumentValidationError(child_path, violations)

        base_value = self.read(base_id)
        extends_name = Path(os.path.relpath(base_path, child_path.parent)).as_posix()
        if self.config.extension and extends_name.lower().endswith(self.config.extension.lower()):
            extends_name = extends_name[: -len(self.config.extension)]

        child = create_child_document(
            base_value,
            self.schema.normalize(edited_tree),
            extends_name,
            extends_key=self.config.extends_key,
        )
        document = self.document(document_id)
        assert document.schema_writer is not None
        document.schema_writer.write_document(child_path, child, extends=True)
        logger.info(
            "Created %s extending %s (%d override(s))",
            self.resolver.relative(child_path),
            extends_name,
            len(child) - 1,
        )
        return child_path


__all__ = ["DocumentStore", "Outcome", "list_document_ids"]
