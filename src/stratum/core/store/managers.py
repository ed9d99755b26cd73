"""Directory managers: ``settings/``, ``state/`` and ``output/`` under a parent.

Each manager owns one directory and hands out documents living in it with
the matching behavior mode. Subdirectories share their parent's composition
root so that documents in nested folders can extend documents above them.
"""
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional

from stratum.core.config import EngineConfig
from stratum.core.schemas import DocumentSchema
from stratum.core.utils.io import ensure_directory
from stratum.core.utils.paths import canonicalize, ensure_extension, is_within

from .behavior import BehaviorMode
from .document import ComposableDocument
from .store import DocumentStore, list_document_ids

TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


class BaseLocalManager:
    """A named directory under ``parent_dir``."""

    default_name = ""
    behavior = BehaviorMode.STATE

    def __init__(
        self,
        parent_dir: Path,
        name: Optional[str] = None,
        *,
        root_dir: Optional[Path] = None,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self.name = name or self.default_name
        self.directory = canonicalize(ensure_directory(Path(parent_dir) / self.name))
        self.root_dir = canonicalize(root_dir) if root_dir is not None else self.directory
        self.config = config or EngineConfig.load(self.root_dir)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.directory)!r})"

    def json_path(self, filename: Optional[str] = None) -> Path:
        """Path of ``filename`` (default: the manager name) with the extension added."""
        return self.directory / ensure_extension(filename or Path(self.name).name, self.config.extension)

    def dated_json_path(self, filename: Optional[str] = None, *, now: Optional[datetime] = None) -> Path:
        """Like :meth:`json_path` with ``_<timestamp>`` appended to the stem."""
        name = filename or Path(self.name).name
        extension = self.config.extension
        if extension and name.lower().endswith(extension.lower()):
            name = name[: -len(extension)]
        stamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
        return self.json_path(f"{name}_{stamp}")

    def _subdir_path(self, subdirectory: str) -> Path:
        target = canonicalize(self.directory / subdirectory)
        if not is_within(target, self.directory):
            raise ValueError(f"Subdirectory path '{subdirectory}' would escape base directory.")
        return target

    def _document(self, path: Path, schema: Optional[DocumentSchema]) -> ComposableDocument:
        return ComposableDocument(path, self.root_dir, schema, self.behavior, config=self.config)


class SettingsManager(BaseLocalManager):
    """Hand-edited settings: missing files are created for review, drift is repaired."""

    default_name = "settings"
    behavior = BehaviorMode.SETTINGS

    def store(self, schema: DocumentSchema) -> DocumentStore:
        return DocumentStore(self.root_dir, schema, self.behavior, config=self.config)

    def document(self, schema: DocumentSchema, name: Optional[str] = None) -> ComposableDocument:
        return self._document(self.json_path(name), schema)

    def subdir(self, subdirectory: str, recursive: bool = False) -> "SettingsSubDir":
        self._subdir_path(subdirectory)
        return SettingsSubDir(
            self.directory,
            subdirectory,
            recursive=recursive,
            root_dir=self.root_dir,
            config=self.config,
        )

    def list_documents(self, recursive: bool = False) -> List[str]:
        """Document ids in this directory, relative to it."""
        return list_document_ids(self.directory, self.config, recursive=recursive)


class SettingsSubDir(SettingsManager):
    """A settings subdirectory with optional recursive discovery."""

    def __init__(
        self,
        parent_dir: Path,
        name: str,
        *,
        recursive: bool = False,
        root_dir: Optional[Path] = None,
        config: Optional[EngineConfig] = None,
    ) -> None:
        super().__init__(parent_dir, name, root_dir=root_dir, config=config)
        self.recursive = recursive

    def list_documents(self, recursive: Optional[bool] = None) -> List[str]:
        return super().list_documents(self.recursive if recursive is None else recursive)


class StateManager(BaseLocalManager):
    """Machine-maintained state: defaults are created silently, reads are strict."""

    default_name = "state"
    behavior = BehaviorMode.STATE

    def store(self, schema: DocumentSchema) -> DocumentStore:
        return DocumentStore(self.root_dir, schema, self.behavior, config=self.config)

    def document(self, schema: DocumentSchema, name: Optional[str] = None) -> ComposableDocument:
        return self._document(self.json_path(name), schema)


class OutputManager(BaseLocalManager):
    """Write-only output files, optionally timestamped."""

    default_name = "output"
    behavior = BehaviorMode.OUTPUT

    def store(self, schema: Optional[DocumentSchema] = None) -> DocumentStore:
        return DocumentStore(self.root_dir, schema, self.behavior, config=self.config)

    def document(self, name: str) -> ComposableDocument:
        return self._document(self.json_path(name), None)

    def dated_document(self, name: str, *, now: Optional[datetime] = None) -> ComposableDocument:
        return self._document(self.dated_json_path(name, now=now), None)

    def write(self, name: str, value: Any) -> Path:
        return self.document(name).write(value)

    def subdir(self, subdirectory: str) -> "OutputManager":
        self._subdir_path(subdirectory)
        return OutputManager(self.directory, subdirectory, root_dir=self.root_dir, config=self.config)

    def timestamped_subdir(self, prefix: Optional[str] = None, *, now: Optional[datetime] = None) -> "OutputManager":
        """Subdirectory grouping the files of one run, e.g. ``run_2024-05-01_09-30-00``."""
        stamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
        name = f"{prefix}_{stamp}" if prefix and prefix.strip() else stamp
        return self.subdir(name)


__all__ = [
    "BaseLocalManager",
    "SettingsManager",
    "SettingsSubDir",
    "StateManager",
    "OutputManager",
    "TIMESTAMP_FORMAT",
]
