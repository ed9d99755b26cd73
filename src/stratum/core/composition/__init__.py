"""Document composition: ``$extends`` inheritance and ``$include`` fragments."""
from __future__ import annotations

from .directives import contains_directive, describe_value
from .includes import FragmentExpander
from .inheritance import InheritanceResolver
from .patch import create_child_document, create_patch

__all__ = [
    "FragmentExpander",
    "InheritanceResolver",
    "contains_directive",
    "describe_value",
    "create_patch",
    "create_child_document",
]
