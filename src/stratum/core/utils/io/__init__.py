"""I/O utilities for Stratum.

This package provides the file operations the engine relies on:
- Core: atomic writes, directory management, text I/O
- JSON: document read/write
- YAML: configuration read
"""
from __future__ import annotations

from .core import (
    PathLike,
    atomic_write,
    ensure_directory,
    ensure_parent_dir,
    read_text,
    write_text,
)
from .json import (
    DEFAULT_JSON_CONFIG,
    dump_json_string,
    read_json,
    write_json_atomic,
)
from .yaml import read_yaml

__all__ = [
    # core
    "PathLike",
    "ensure_parent_dir",
    "ensure_directory",
    "atomic_write",
    "read_text",
    "write_text",
    # json
    "DEFAULT_JSON_CONFIG",
    "dump_json_string",
    "read_json",
    "write_json_atomic",
    # yaml
    "read_yaml",
]
