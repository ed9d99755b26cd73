"""Document storage: behavior modes, per-file documents, the store façade
and directory managers."""
from __future__ import annotations

from .behavior import BehaviorMode
from .document import ComposableDocument
from .managers import BaseLocalManager, OutputManager, SettingsManager, SettingsSubDir, StateManager
from .store import DocumentStore, Outcome

__all__ = [
    "BehaviorMode",
    "ComposableDocument",
    "DocumentStore",
    "Outcome",
    "BaseLocalManager",
    "SettingsManager",
    "SettingsSubDir",
    "StateManager",
    "OutputManager",
]
