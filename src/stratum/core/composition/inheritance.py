"""``$extends`` resolution.

A document may name one base document on its root object. Bases may extend
other bases; chains are resolved bottom-up and merged child-wins (objects
recursively, everything else including arrays replaced wholesale).

Every base is expanded (its own ``$include`` directives, relative to the
base) before it is validated and merged, so the merged tree only carries the
child's directives.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from stratum.core.config import EngineConfig
from stratum.core.exceptions import (
    BaseNotFoundError,
    BaseValidationFailedError,
    CircularInheritanceError,
    DocumentValidationError,
    InvalidExtendsValueError,
)
from stratum.core.schemas import DocumentSchema, Sanitizer, SchemaWriter, format_violations
from stratum.core.schemas.shape import json_type
from stratum.core.utils.io import read_json, write_json_atomic
from stratum.core.utils.merge import deep_merge
from stratum.core.utils.paths import PathResolver, canonicalize

from .directives import contains_directive, describe_value
from .includes import FragmentExpander

logger = logging.getLogger(__name__)


def _in_chain(path: Path, chain: Sequence[Path]) -> bool:
    key = os.path.normcase(str(path))
    return any(os.path.normcase(str(item)) == key for item in chain)


class InheritanceResolver:
    """Resolves a document's ``$extends`` chain into one merged tree.

    When ``sanitizer`` is given (Settings documents) an invalid leaf base is
    repaired instead of rejected; the repaired base is written back unless
    it contains ``$include`` directives, which a rewrite would flatten.
    """

    def __init__(
        self,
        resolver: PathResolver,
        schema: DocumentSchema,
        expander: FragmentExpander,
        *,
        config: Optional[EngineConfig] = None,
        sanitizer: Optional[Sanitizer] = None,
        schema_writer: Optional[SchemaWriter] = None,
    ) -> None:
        self.resolver = resolver
        self.schema = schema
        self.expander = expander
        self.config = config or schema.config
        self.sanitizer = sanitizer
        self.schema_writer = schema_writer

    @property
    def _injects(self) -> bool:
        return self.schema_writer is not None and self.config.inject_on_read

    def include_dir(self, path: Path) -> Path:
        """Directory a document's ``$include`` references resolve against."""
        if self.config.fragment_base == "root":
            return self.resolver.root_dir
        return Path(path).parent

    def resolve(
        self,
        child_path: Path,
        child_tree: Dict[str, Any],
        extends_name: Any,
        chain: Optional[Sequence[Path]] = None,
    ) -> Dict[str, Any]:
        """Return ``child_tree`` merged over its fully resolved base.

        Args:
            child_path: File the child tree was read from
            child_tree: Parsed child document (still holding ``$extends``)
            extends_name: The ``$extends`` value
            chain: Documents already on the inheritance chain, child first

        Raises:
            InvalidExtendsValueError, PathEscapesRootError, CircularInheritanceError,
            BaseNotFoundError, BaseValidationFailedError
        """
        child_path = canonicalize(child_path)
        chain_list: List[Path] = [Path(p) for p in chain] if chain else [child_path]

        if not isinstance(extends_name, str) or not extends_name.strip():
            raise InvalidExtendsValueError(child_path, describe_value(extends_name))

        base_path = self.resolver.resolve(child_path.parent, extends_name, referrer=child_path)
        if _in_chain(base_path, chain_list):
            raise CircularInheritanceError(
                child_path, chain_list + [base_path], root_dir=self.resolver.root_dir
            )
        chain_list = chain_list + [base_path]

        if not base_path.exists():
            raise BaseNotFoundError(child_path, extends_name, base_path)

        base_tree = self._load_base(child_path, base_path)
        logger.debug(
            "Resolving %s -> %s",
            self.resolver.relative(child_path),
            self.resolver.relative(base_path),
        )

        extends_key = self.config.extends_key
        if extends_key in base_tree:
            resolved = self.resolve(base_path, base_tree, base_tree[extends_key], chain_list)
            resolved = self.expander.expand(resolved, self.include_dir(base_path), source=base_path)
            if self._injects:
                self.schema_writer.ensure_reference(base_path, base_tree, extends=True)
        else:
            resolved = self.expander.expand(base_tree, self.include_dir(base_path), source=base_path)
            violations = self.schema.validate(resolved)
            if violations:
                resolved = self._repair(child_path, base_path, base_tree, resolved, violations)
            elif self._injects:
                self.schema_writer.ensure_reference(base_path, base_tree)

        resolved.pop(self.config.schema_key, None)
        cleaned = {k: v for k, v in child_tree.items() if k != extends_key}
        return deep_merge(resolved, cleaned)

    def _load_base(self, child_path: Path, base_path: Path) -> Dict[str, Any]:
        try:
            data = read_json(base_path)
        except (OSError, ValueError) as exc:
            raise BaseValidationFailedError(
                child_path, base_path, f"Could not read base document: {exc}"
            ) from exc
        if not isinstance(data, dict):
            raise BaseValidationFailedError(
                child_path, base_path, f"Base document must be a JSON object, found {json_type(data)}"
            )
        return data

    def _repair(
        self,
        child_path: Path,
        base_path: Path,
        base_tree: Dict[str, Any],
        expanded: Dict[str, Any],
        violations: List[Any],
    ) -> Dict[str, Any]:
        if self.sanitizer is None:
            raise BaseValidationFailedError(
                child_path,
                base_path,
                "\n  ".join(format_violations(violations)),
                violations=violations,
            )
        try:
            result = self.sanitizer.sanitize(expanded, source=base_path)
        except DocumentValidationError as exc:
            raise BaseValidationFailedError(
                child_path,
                base_path,
                "\n  ".join(format_violations(exc.violations)),
                violations=exc.violations,
            ) from exc

        if contains_directive(base_tree, self.config.include_key):
            logger.info(
                "Sanitized base %s in memory; the file has include directives and was not rewritten",
                self.resolver.relative(base_path),
            )
        else:
            if self.schema_writer is not None:
                self.schema_writer.write_document(base_path, result.tree)
            else:
                write_json_atomic(base_path, result.tree, **self.config.json_options)
            logger.info("Rewrote base %s to match the current schema", self.resolver.relative(base_path))
        return dict(result.tree)


__all__ = ["InheritanceResolver"]
