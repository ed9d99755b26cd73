"""Test helper modules for the Stratum test suite.

- io_utils: writing JSON / YAML fixture files
- read_spy: recording which files the engine reads
- schemas: shared schema fixtures and sample documents
"""
from __future__ import annotations
