"""Schema files next to the documents, and ``$schema`` references to them.

The ``$schema`` value injected into a document is informational only: it lets
editors validate and complete hand-edited files. It is ignored on read.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from stratum.core.config import EngineConfig
from stratum.core.utils.io import dump_json_string, read_text, write_json_atomic, write_text

from .document import DocumentSchema

logger = logging.getLogger(__name__)


class SchemaWriter:
    """Writes schema files into ``root_dir`` and references them from documents."""

    def __init__(
        self,
        root_dir: Path,
        schema: DocumentSchema,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self.root_dir = Path(root_dir)
        self.schema = schema
        self.config = config or schema.config
        self._written = False

    # ----- schema files -----

    def schema_path(self, *, extends: bool = False, fragment: bool = False) -> Path:
        if fragment:
            return self.root_dir / self.config.fragment_schema_file
        if extends:
            return self.root_dir / self.config.extends_schema_file
        return self.root_dir / self.config.full_schema_file

    def _payloads(self) -> List[tuple]:
        payloads = [
            (self.schema_path(), self.schema.editor_full),
            (self.schema_path(extends=True), self.schema.editor_extends),
        ]
        if self.schema.editor_fragment is not None:
            payloads.append((self.schema_path(fragment=True), self.schema.editor_fragment))
        return payloads

    def write_schema_files(self) -> List[Path]:
        """Write the schema files whose content changed. Returns the paths written."""
        written: List[Path] = []
        for path, payload in self._payloads():
            text = dump_json_string(payload, **self.config.json_options)
            if path.exists() and read_text(path) == text:
                continue
            write_text(path, text)
            logger.debug("Wrote schema file %s", path)
            written.append(path)
        self._written = True
        return written

    def _ensure_schema_files(self) -> None:
        if not self._written:
            self.write_schema_files()

    # ----- references -----

    def reference_for(self, target: Path, *, extends: bool = False, fragment: bool = False) -> str:
        """Relative POSIX path from ``target``'s directory to the matching schema file."""
        schema_file = self.schema_path(extends=extends, fragment=fragment)
        rel = os.path.relpath(schema_file, Path(target).parent)
        return Path(rel).as_posix()

    def inject(
        self,
        tree: Dict[str, Any],
        target: Path,
        *,
        extends: bool = False,
        fragment: bool = False,
    ) -> Dict[str, Any]:
        """Return ``tree`` with ``$schema`` as its first key."""
        key = self.config.schema_key
        out: Dict[str, Any] = {key: self.reference_for(target, extends=extends, fragment=fragment)}
        out.update({k: v for k, v in tree.items() if k != key})
        return out

    def write_document(
        self,
        path: Path,
        tree: Dict[str, Any],
        *,
        extends: bool = False,
        fragment: bool = False,
    ) -> Path:
        """Write ``tree`` to ``path`` with its schema reference injected."""
        self._ensure_schema_files()
        write_json_atomic(
            path,
            self.inject(tree, path, extends=extends, fragment=fragment),
            **self.config.json_options,
        )
        return Path(path)

    def ensure_reference(self, path: Path, tree: Dict[str, Any], *, extends: bool = False) -> bool:
        """Rewrite ``path`` when its ``$schema`` reference is missing or stale."""
        expected = self.reference_for(path, extends=extends)
        if tree.get(self.config.schema_key) == expected:
            return False
        self.write_document(path, tree, extends=extends)
        logger.debug("Injected schema reference %s into %s", expected, path)
        return True

    def ensure_fragment_reference(self, path: Path, fragment_obj: Dict[str, Any]) -> bool:
        """Give a fragment file a ``$schema`` reference when it has none."""
        if self.schema.fragment is None or self.config.schema_key in fragment_obj:
            return False
        self.write_document(path, fragment_obj, fragment=True)
        logger.debug("Injected fragment schema reference into %s", path)
        return True


__all__ = ["SchemaWriter"]
