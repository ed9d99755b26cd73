"""
Stratum - composable JSON configuration documents

Stratum reads and writes JSON configuration files that inherit from a base
document (``$extends``) and splice reusable array fragments (``$include``),
validating every resolved document against a schema before trusting it.
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
