"""
Build targets produced by the entry resolver.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict

from .files import FileKind, Project

# package.json fields that can point at a buildable source or output
ENTRY_FIELDS = ("lib", "module", "main", "browser", "style")


class FileTarget(BaseModel):
    """A single source file given on the command line."""

    type: Literal["file"] = "file"
    path: Path
    kind: FileKind

    model_config = ConfigDict(frozen=True)


class PackageTarget(BaseModel):
    """A package (root project or workspace) to build from its declared fields."""

    type: Literal["package"] = "package"
    project: Project
    linked: bool = False

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @property
    def name(self) -> str:
        return self.project.name

    @property
    def root(self) -> Path:
        return self.project.root

    def entry(self, field_name: str) -> Path | None:
        """Absolute path declared by an entry field, if set."""
        value = self.project.get(field_name)
        if not value or not isinstance(value, str):
            return None
        return self.project.file(value)

    @property
    def entries(self) -> dict[str, Path]:
        return {
            field_name: path
            for field_name in ENTRY_FIELDS
            if (path := self.entry(field_name)) is not None
        }


BuildTarget = FileTarget | PackageTarget
