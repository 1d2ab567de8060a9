"""
rna - build orchestration for web projects.

Wraps script, style, HTML, web manifest and icon bundlers behind a single
command surface, with incremental rebuilds driven by file-system changes.
"""

from __future__ import annotations

from ._version import get_version
from .core.errors import BuildError, ConfigError, ResolutionError, RnaError

__version__ = get_version()

__all__ = [
    "__version__",
    "RnaError",
    "ResolutionError",
    "ConfigError",
    "BuildError",
]
