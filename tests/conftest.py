"""Shared pytest fixtures for rna tests."""

import json
from collections.abc import Callable
from io import BytesIO
from pathlib import Path
from typing import Any

import pytest
from PIL import Image

from rna.core.events import LifecycleEvent
from rna.core.files import Project


def write_files(root: Path, files: dict[str, str | bytes]) -> None:
    """Write a tree of files below ``root``."""
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content)


def png_bytes(width: int = 64, height: int = 64, color: tuple[int, ...] = (255, 0, 0, 255)) -> bytes:
    buffer = BytesIO()
    Image.new("RGBA", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def make_project(tmp_path: Path) -> Callable[..., Project]:
    """
    Create a project directory.

    Usage:
        project = make_project({"name": "app", "lib": "src/index.js"}, {"src/index.js": "..."})
    """

    def factory(
        package: dict[str, Any] | None = None,
        files: dict[str, str | bytes] | None = None,
        root: Path | None = None,
    ) -> Project:
        directory = root or tmp_path
        directory.mkdir(parents=True, exist_ok=True)
        if package is not None:
            (directory / "package.json").write_text(json.dumps(package))
        write_files(directory, files or {})
        return Project(directory)

    return factory


@pytest.fixture
def project(make_project) -> Project:
    """A plain project named ``app``."""
    return make_project({"name": "app", "description": "A test app"})


@pytest.fixture
def events() -> list[LifecycleEvent]:
    """Collects lifecycle events; pass ``events.append`` as a listener."""
    return []


@pytest.fixture
def png() -> Callable[..., bytes]:
    """Factory for in-memory PNG images."""
    return png_bytes
