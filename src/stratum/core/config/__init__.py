"""Engine configuration for Stratum.

Layers (lowest to highest priority):
1. Bundled defaults: stratum.data/config/defaults.yaml
2. Project file: <root_dir>/.stratum.yaml (or an explicit path)
3. Environment variables: STRATUM_*
"""
from __future__ import annotations

from .engine import EngineConfig
from .manager import PROJECT_CONFIG_FILENAME, ConfigManager

__all__ = ["ConfigManager", "EngineConfig", "PROJECT_CONFIG_FILENAME"]
