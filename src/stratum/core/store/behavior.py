"""Behavior modes for stored documents."""
from __future__ import annotations

from enum import Enum


class BehaviorMode(str, Enum):
    """Policy for missing files, read strictness and write validation.

    - SETTINGS: missing file gets a default and the read fails for review;
      drifted files are sanitized
    - STATE: missing file gets a default which is returned; reads are strict
    - OUTPUT: write-only sink; no validation, no schema reference
    """

    SETTINGS = "Settings"
    STATE = "State"
    OUTPUT = "Output"

    @classmethod
    def parse(cls, value: "BehaviorMode | str") -> "BehaviorMode":
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for member in cls:
            if text.lower() in (member.value.lower(), member.name.lower()):
                return member
        raise ValueError(f"Unknown behavior mode '{value}'. Expected one of: {', '.join(m.value for m in cls)}")


__all__ = ["BehaviorMode"]
