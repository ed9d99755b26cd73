"""Reference resolution for ``$extends`` / ``$include`` values.

Every path the engine opens on behalf of a directive goes through
:func:`resolve_reference`, which canonicalizes the target and refuses
anything outside the configured root directory. The containment check
happens before any file is opened.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from stratum.core.exceptions import PathEscapesRootError


def canonicalize(path: Path | str) -> Path:
    """Return the canonical absolute form of ``path`` (``..`` and symlinks resolved)."""
    return Path(os.path.realpath(os.path.abspath(os.fspath(path))))


def is_within(path: Path, root_dir: Path) -> bool:
    """True when canonical ``path`` is ``root_dir`` itself or a descendant of it.

    Both arguments must already be canonical. Comparison is a prefix match on
    the case-normalized strings, anchored on a path separator so that
    ``/data/settings2`` is not treated as inside ``/data/settings``.
    """
    target = os.path.normcase(str(path))
    root = os.path.normcase(str(root_dir))
    if target == root:
        return True
    prefix = root if root.endswith(os.sep) else root + os.sep
    return target.startswith(prefix)


def ensure_extension(name: str, extension: str) -> str:
    """Append ``extension`` unless ``name`` already ends with it (case-insensitive)."""
    if not extension:
        return name
    if name.lower().endswith(extension.lower()):
        return name
    return f"{name}{extension}"


def resolve_reference(
    referencing_dir: Path | str,
    reference: str,
    root_dir: Path | str,
    *,
    extension: str = ".json",
    referrer: Optional[Path] = None,
) -> Path:
    """Resolve ``reference`` relative to ``referencing_dir`` inside ``root_dir``.

    Args:
        referencing_dir: Directory of the document that holds the directive
        reference: Directive value, e.g. ``"MechEquip"`` or ``"../_fragments/header"``
        root_dir: Composition security boundary
        extension: Appended when the reference lacks it
        referrer: Document holding the directive (reported in errors)

    Returns:
        Canonical absolute path of the referenced file

    Raises:
        PathEscapesRootError: If the resolved path is outside ``root_dir``
    """
    root = canonicalize(root_dir)
    candidate = Path(referencing_dir) / ensure_extension(reference, extension)
    resolved = canonicalize(candidate)
    if not is_within(resolved, root):
        raise PathEscapesRootError(reference, resolved, root, referrer=referrer)
    return resolved


class PathResolver:
    """Reference resolution bound to one root directory and extension."""

    def __init__(self, root_dir: Path | str, *, extension: str = ".json") -> None:
        self.root_dir = canonicalize(root_dir)
        self.extension = extension

    def resolve(self, referencing_dir: Path | str, reference: str, *, referrer: Optional[Path] = None) -> Path:
        """Resolve a directive value found in a document living in ``referencing_dir``."""
        return resolve_reference(
            referencing_dir,
            reference,
            self.root_dir,
            extension=self.extension,
            referrer=referrer,
        )

    def resolve_document(self, document_id: str) -> Path:
        """Resolve a document id (name relative to the root) to its canonical path."""
        return self.resolve(self.root_dir, document_id)

    def contains(self, path: Path | str) -> bool:
        return is_within(canonicalize(path), self.root_dir)

    def relative(self, path: Path | str) -> str:
        """Render ``path`` relative to the root when possible (POSIX separators)."""
        p = canonicalize(path)
        try:
            return p.relative_to(self.root_dir).as_posix()
        except ValueError:
            return str(p)


__all__ = [
    "PathResolver",
    "canonicalize",
    "ensure_extension",
    "is_within",
    "resolve_reference",
]
