from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence

if TYPE_CHECKING:
    from stratum.core.schemas.validation import Violation


class StratumError(Exception):
    """Base exception for Stratum."""

    context: Dict[str, Any]

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        if context is not None:
            # Store a shallow copy to avoid accidental mutation.
            self.context = dict(context)
        else:
            self.context = {}

    def to_json_error(self) -> Dict[str, Any]:
        """Return a JSON-serializable error payload."""
        return {
            "message": str(self),
            "code": self.__class__.__name__,
            "context": self.context,
        }


def _name(path: Optional[Path | str]) -> str:
    return Path(path).name if path else "<unknown>"


def render_chain(chain: Sequence[Path | str], root_dir: Optional[Path] = None) -> str:
    """Render a chain of files as ``a.json -> b.json -> a.json``."""
    parts: List[str] = []
    for item in chain:
        p = Path(item)
        if root_dir is not None:
            try:
                parts.append(p.relative_to(root_dir).as_posix())
                continue
            except ValueError:
                pass
        parts.append(str(p))
    return " -> ".join(parts)


class CompositionError(StratumError):
    """Failure while resolving ``$extends`` or ``$include`` directives.

    ``kind`` names the taxonomy entry; paths and the chain that produced a
    cycle are exposed both as attributes and in ``context``.
    """

    kind = "CompositionError"

    def __init__(
        self,
        message: str,
        *,
        child_path: Optional[Path | str] = None,
        base_path: Optional[Path | str] = None,
        chain: Optional[Sequence[Path | str]] = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        ctx = dict(context or {})
        ctx["kind"] = self.kind
        if child_path is not None:
            ctx["child_path"] = str(child_path)
        if base_path is not None:
            ctx["base_path"] = str(base_path)
        if chain:
            ctx["chain"] = [str(c) for c in chain]
        super().__init__(message, context=ctx)
        self.child_path = Path(child_path) if child_path is not None else None
        self.base_path = Path(base_path) if base_path is not None else None
        self.chain: List[str] = [str(c) for c in chain or []]


class PathEscapesRootError(CompositionError):
    kind = "PathEscapesRoot"

    def __init__(self, reference: str, resolved: Path, root_dir: Path, *, referrer: Optional[Path] = None) -> None:
        super().__init__(
            f"Reference '{reference}' would escape the root directory.\n"
            f"  Resolved to: {resolved}\n"
            f"  Root: {root_dir}",
            child_path=referrer,
            base_path=resolved,
            context={"reference": reference, "root_dir": str(root_dir)},
        )
        self.reference = reference


class CircularInheritanceError(CompositionError):
    kind = "CircularInheritance"

    def __init__(self, child_path: Path, chain: Sequence[Path], *, root_dir: Optional[Path] = None) -> None:
        super().__init__(
            "Circular inheritance detected in document chain:\n"
            f"  {render_chain(chain, root_dir)}\n\n"
            "Document inheritance must form a tree, not a cycle.",
            child_path=child_path,
            chain=chain,
        )


class CircularFragmentIncludeError(CompositionError):
    kind = "CircularFragmentInclude"

    def __init__(
        self,
        fragment_path: Path,
        chain: Sequence[Path],
        *,
        root_dir: Optional[Path] = None,
        referrer: Optional[Path] = None,
    ) -> None:
        super().__init__(
            "Circular fragment include detected.\n"
            f"  Fragment: {_name(fragment_path)}\n"
            f"  Included from: {_name(referrer)}\n"
            f"  Include chain: {render_chain(chain, root_dir)}\n\n"
            "Fragment includes must form a tree, not a cycle.",
            child_path=referrer,
            base_path=fragment_path,
            chain=chain,
        )


class BaseNotFoundError(CompositionError, FileNotFoundError):
    kind = "BaseNotFound"

    def __init__(self, child_path: Path, extends_name: str, expected: Path) -> None:
        CompositionError.__init__(
            self,
            f"Document '{_name(child_path)}' extends '{extends_name}', but the base document was not found.\n"
            f"  Expected: {expected}\n"
            "  Hint: Ensure the base document exists and the name is spelled correctly (case-sensitive).",
            child_path=child_path,
            base_path=expected,
            context={"extends": extends_name},
        )


class FragmentNotFoundError(CompositionError, FileNotFoundError):
    kind = "FragmentNotFound"

    def __init__(self, fragment_path: Path, *, referrer: Optional[Path] = None) -> None:
        CompositionError.__init__(
            self,
            "Fragment file not found.\n"
            f"  Expected: {fragment_path}\n"
            "  Hint: Ensure the fragment file exists and the path in '$include' is correct.",
            child_path=referrer,
            base_path=fragment_path,
        )


class InvalidExtendsValueError(CompositionError):
    kind = "InvalidExtendsValue"

    def __init__(self, child_path: Path, found: str) -> None:
        super().__init__(
            f"Invalid '$extends' value in '{_name(child_path)}'.\n"
            '  Expected: a non-empty string (e.g., "MechEquip")\n'
            f"  Found: {found}",
            child_path=child_path,
            context={"found": found},
        )


class InvalidIncludeValueError(CompositionError):
    kind = "InvalidIncludeValue"

    def __init__(self, found: str, *, referrer: Optional[Path] = None) -> None:
        super().__init__(
            f"Invalid '$include' value in '{_name(referrer)}'.\n"
            '  Expected: a non-empty string path (e.g., "_fragments/header-fields")\n'
            f"  Found: {found}",
            child_path=referrer,
            context={"found": found},
        )


class InvalidFragmentFormatError(CompositionError):
    kind = "InvalidFragmentFormat"

    def __init__(self, fragment_path: Path, detail: str, *, items_key: str = "Items") -> None:
        super().__init__(
            f"Fragment '{_name(fragment_path)}' has invalid format.\n"
            f'  Expected: an object with an array property (e.g., {{"{items_key}": [ ... ]}})\n'
            f"  Found: {detail}",
            base_path=fragment_path,
            context={"detail": detail},
        )


class FragmentLoadFailedError(CompositionError):
    kind = "FragmentLoadFailed"

    def __init__(self, fragment_path: Path, error: BaseException) -> None:
        super().__init__(
            f"Failed to load fragment '{_name(fragment_path)}'.\n"
            f"  Path: {fragment_path}\n"
            f"  Error: {error}",
            base_path=fragment_path,
        )


class BaseValidationFailedError(CompositionError):
    kind = "BaseValidationFailed"

    def __init__(
        self,
        child_path: Path,
        base_path: Path,
        detail: str,
        *,
        violations: Optional[Sequence["Violation"]] = None,
    ) -> None:
        super().__init__(
            f"Base document '{_name(base_path)}' failed validation (required by '{_name(child_path)}'):\n"
            f"  {detail}\n\n"
            "Fix the base document before loading documents that extend it.",
            child_path=child_path,
            base_path=base_path,
        )
        self.violations = list(violations or [])


class MergedValidationFailedError(CompositionError):
    kind = "MergedValidationFailed"

    def __init__(
        self,
        child_path: Path,
        base_path: Optional[Path],
        violations: Sequence["Violation"],
        formatted: Sequence[str],
    ) -> None:
        joined = "\n  - ".join(formatted)
        super().__init__(
            f"Document '{_name(child_path)}' (extending '{_name(base_path)}') failed schema validation:\n"
            f"  - {joined}\n\n"
            f"This error is likely in the child document's override. Check '{_name(child_path)}'.",
            child_path=child_path,
            base_path=base_path,
        )
        self.violations = list(violations)


class MisplacedDirectiveError(CompositionError):
    kind = "MisplacedDirective"

    def __init__(self, directive: str, location: str, *, referrer: Optional[Path] = None) -> None:
        super().__init__(
            f"Directive '{directive}' is not allowed at {location} in '{_name(referrer)}'.",
            child_path=referrer,
            context={"directive": directive, "location": location},
        )


class DocumentValidationError(StratumError, ValueError):
    """Raised when a document does not satisfy its schema."""

    def __init__(
        self,
        path: Optional[Path | str],
        violations: Sequence["Violation"],
        formatted: Optional[Sequence[str]] = None,
    ) -> None:
        lines = list(formatted) if formatted is not None else [v.describe() for v in violations]
        message = f"Document '{_name(path)}' failed schema validation:\n  - " + "\n  - ".join(lines)
        StratumError.__init__(
            self,
            message,
            context={"path": str(path) if path else None, "violations": lines},
        )
        ValueError.__init__(self, message)
        self.path = Path(path) if path else None
        self.violations = list(violations)


class DocumentLoadError(StratumError, ValueError):
    """Raised when a document cannot be parsed or is not a JSON object."""

    def __init__(self, path: Path, detail: str) -> None:
        message = f"Failed to load document '{path}': {detail}"
        StratumError.__init__(self, message, context={"path": str(path), "detail": detail})
        ValueError.__init__(self, message)
        self.path = path


class InvalidDocumentIdError(StratumError, ValueError):
    """Raised when a document id cannot name a file under the root."""

    def __init__(self, document_id: Any, reason: str) -> None:
        message = f"Invalid document id {document_id!r}: {reason}"
        StratumError.__init__(self, message, context={"document_id": repr(document_id), "reason": reason})
        ValueError.__init__(self, message)
        self.document_id = document_id
        self.reason = reason


class InvalidSchemaError(StratumError, ValueError):
    """Raised when a schema document is not a usable JSON Schema."""

    def __init__(self, message: str, *, source: Optional[Path | str] = None) -> None:
        StratumError.__init__(self, message, context={"source": str(source) if source else None})
        ValueError.__init__(self, message)


class SettingsReviewRequiredError(StratumError, RuntimeError):
    """Raised when a settings file was missing and a default was written in its place."""

    def __init__(self, path: Path) -> None:
        message = (
            f"File {path} did not exist. A default file was created, "
            "please review it and try again."
        )
        StratumError.__init__(self, message, context={"path": str(path)})
        RuntimeError.__init__(self, message)
        self.path = path


class ReadNotSupportedError(StratumError, RuntimeError):
    """Raised when reading a write-only output document."""

    def __init__(self, path: Path) -> None:
        message = f"Cannot read output-only file: {path}"
        StratumError.__init__(self, message, context={"path": str(path)})
        RuntimeError.__init__(self, message)
        self.path = path


__all__ = [
    "StratumError",
    "CompositionError",
    "PathEscapesRootError",
    "CircularInheritanceError",
    "CircularFragmentIncludeError",
    "BaseNotFoundError",
    "FragmentNotFoundError",
    "InvalidExtendsValueError",
    "InvalidIncludeValueError",
    "InvalidFragmentFormatError",
    "FragmentLoadFailedError",
    "BaseValidationFailedError",
    "MergedValidationFailedError",
    "MisplacedDirectiveError",
    "DocumentValidationError",
    "DocumentLoadError",
    "InvalidDocumentIdError",
    "InvalidSchemaError",
    "SettingsReviewRequiredError",
    "ReadNotSupportedError",
    "render_chain",
]
