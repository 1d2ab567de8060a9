"""
File-system helpers: source kinds, sizes and project metadata.

A ``Project`` is a directory described by a ``package.json``. Monorepos
declare member packages through the ``workspaces`` field; each member is
itself a ``Project``.
"""

from __future__ import annotations

import glob
import gzip
import json
import logging
from collections import deque
from enum import StrEnum
from pathlib import Path
from typing import Any

from .errors import RnaError

logger = logging.getLogger(__name__)


class FileKind(StrEnum):
    """Source kinds the bundlers know how to build."""

    SCRIPT = "script"
    STYLE = "style"
    MARKUP = "markup"
    MANIFEST = "manifest"


SCRIPT_EXTENSIONS = (".js", ".mjs", ".cjs", ".jsx", ".ts", ".tsx")
STYLE_EXTENSIONS = (".css", ".scss", ".sass")
MARKUP_EXTENSIONS = (".html", ".htm")
MANIFEST_EXTENSIONS = (".webmanifest",)
MANIFEST_NAMES = ("manifest.json",)

DEFAULT_BROWSERSLIST = [
    "ie >= 11",
    "last 3 iOS major versions",
    "Android >= 4.4",
    "last 3 Safari major versions",
    "last 3 Firefox major versions",
    "unreleased Firefox versions",
    "Chrome 45",
    "last 3 Chrome major versions",
    "unreleased Chrome versions",
    "last 3 Edge major versions",
]

DEPENDENCY_FIELDS = ("dependencies", "devDependencies", "peerDependencies")


def is_script_file(path: Path | str) -> bool:
    return Path(path).suffix.lower() in SCRIPT_EXTENSIONS


def is_style_file(path: Path | str) -> bool:
    return Path(path).suffix.lower() in STYLE_EXTENSIONS


def is_markup_file(path: Path | str) -> bool:
    return Path(path).suffix.lower() in MARKUP_EXTENSIONS


def is_manifest_file(path: Path | str) -> bool:
    p = Path(path)
    return p.suffix.lower() in MANIFEST_EXTENSIONS or p.name.lower() in MANIFEST_NAMES


def file_kind(path: Path | str) -> FileKind | None:
    """Return the kind of a source file, or None if no bundler handles it."""
    # Manifest first: manifest.json would otherwise be an unknown .json file
    if is_manifest_file(path):
        return FileKind.MANIFEST
    if is_script_file(path):
        return FileKind.SCRIPT
    if is_style_file(path):
        return FileKind.STYLE
    if is_markup_file(path):
        return FileKind.MARKUP
    return None


def real_path(path: Path | str) -> Path:
    """Absolute path with symlinks resolved; works for missing files too."""
    return Path(path).resolve(strict=False)


def format_bytes(size: int) -> str:
    """Prettify a byte size."""
    size = abs(size)
    kilo = 1024
    mega = kilo**2
    giga = kilo**3

    if size > giga:
        return f"{size / giga:.1f} GB"
    if size > mega:
        return f"{size / mega:.1f} MB"
    if size > kilo:
        return f"{size / kilo:.1f} KB"
    return f"{size} B"


def file_sizes(path: Path) -> tuple[str, str]:
    """Return the (raw, gzipped) sizes of a file as human-readable strings."""
    data = path.read_bytes()
    return format_bytes(len(data)), format_bytes(len(gzip.compress(data, mtime=0)))


class Project:
    """
    A package reference backed by ``package.json``.

    Directories without a ``package.json`` are still valid projects: they get
    a name derived from the directory and no metadata.
    """

    def __init__(self, root: Path | str):
        self.root = Path(root).resolve()
        self.package_json = self.root / "package.json"
        self.data: dict[str, Any]
        if self.package_json.exists():
            self.data = self._load()
        else:
            self.data = {"name": self.root.name.lower().replace(" ", "_")}
        self._workspaces: list[Project] | None = None
        self._workspaces_loaded = False

    def _load(self) -> dict[str, Any]:
        try:
            data = json.loads(self.package_json.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise RnaError(f"Invalid JSON in {self.package_json}: {e}") from e
        if not isinstance(data, dict):
            raise RnaError(f"{self.package_json} must contain a JSON object")
        return data

    def __repr__(self) -> str:
        return f"Project({self.name!r}, {str(self.root)!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Project) and other.root == self.root

    def __hash__(self) -> int:
        return hash(self.root)

    @property
    def is_new(self) -> bool:
        """True if the project has no package.json yet."""
        return not self.package_json.exists()

    @property
    def name(self) -> str:
        return str(self.data.get("name", self.root.name))

    @property
    def scope_name(self) -> str:
        """Scope of a scoped package name (or the name itself)."""
        return self.name.split("/")[0].lstrip("@").lower()

    @property
    def scope_module(self) -> str:
        """Module part of a scoped package name."""
        return self.name.split("/")[-1].lower()

    def get(self, key: str, default: Any = None) -> Any:
        """Get a (dotted) field from package.json."""
        value: Any = self.data
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]
        return value

    def file(self, relative: str | Path) -> Path:
        return (self.root / relative).resolve()

    def relative(self, path: Path | str) -> str:
        """Path relative to the project root, when inside it."""
        p = Path(path)
        try:
            return str(p.resolve().relative_to(self.root))
        except ValueError:
            return str(p)

    @property
    def directories(self) -> dict[str, Path]:
        """Paths declared in the ``directories`` field."""
        config = self.get("directories") or {}
        return {key: self.file(value) for key, value in config.items()}

    @property
    def workspaces(self) -> list[Project] | None:
        """Member projects if this is a monorepo, else None."""
        if self._workspaces_loaded:
            return self._workspaces

        self._workspaces_loaded = True
        patterns = self.get("workspaces")
        if isinstance(patterns, dict):
            # yarn style: {"packages": [...]}
            patterns = patterns.get("packages")
        if not patterns:
            self._workspaces = None
            return None

        members: list[Project] = []
        for directory in self.glob(patterns):
            if directory.is_dir() and (directory / "package.json").exists():
                member = Project(directory)
                if member not in members:
                    members.append(member)
        self._workspaces = members
        return members

    @property
    def parent(self) -> Project | None:
        """The monorepo root this project is a workspace of, if any."""
        for directory in self.root.parents:
            if not (directory / "package.json").exists():
                continue
            candidate = Project(directory)
            workspaces = candidate.workspaces
            if not workspaces:
                return None
            if self in workspaces:
                return candidate
            return None
        return None

    @property
    def browserslist(self) -> list[str]:
        """The browserslist query for the project."""
        config_file = self.root / "browserslist.json"
        if config_file.exists():
            data = json.loads(config_file.read_text(encoding="utf-8"))
            return [data] if isinstance(data, str) else list(data)

        query = self.get("browserslist")
        if query:
            return [query] if isinstance(query, str) else list(query)

        parent = self.parent
        if parent is not None:
            return parent.browserslist

        return list(DEFAULT_BROWSERSLIST)

    def dependency_names(self) -> list[str]:
        """Names from every dependency table, in declaration order."""
        names: list[str] = []
        for field_name in DEPENDENCY_FIELDS:
            for name in self.get(field_name) or {}:
                if name not in names:
                    names.append(name)
        return names

    def workspace_dependencies(self, entry: Project) -> list[Project]:
        """
        Workspaces ``entry`` depends on, transitively, dependencies first.

        Only meaningful on a monorepo root.
        """
        workspaces = self.workspaces or []
        by_name = {ws.name: ws for ws in workspaces}

        collected: list[Project] = []
        queue = deque([entry])
        while queue:
            current = queue.popleft()
            for name in current.dependency_names():
                dep = by_name.get(name)
                if dep is None or dep == entry or dep in collected:
                    continue
                collected.append(dep)
                queue.append(dep)

        return sort_projects(collected)

    def linked_dependencies(self) -> list[Project]:
        """
        Dependencies installed as symlinks in ``node_modules``.

        Hoisted installs are looked up in the monorepo root as well.
        """
        search_roots = [self.root / "node_modules"]
        parent = self.parent
        if parent is not None:
            search_roots.append(parent.root / "node_modules")

        linked: list[Project] = []
        for name in self.dependency_names():
            for modules_dir in search_roots:
                candidate = modules_dir / name
                if candidate.is_symlink() and (candidate / "package.json").exists():
                    project = Project(candidate.resolve())
                    if project not in linked:
                        linked.append(project)
                    break
        return linked

    def glob(self, patterns: str | list[str]) -> list[Path]:
        """Expand glob patterns relative to the project root (de-duplicated)."""
        if isinstance(patterns, str):
            patterns = [patterns]

        results: list[Path] = []
        for pattern in patterns:
            matches = sorted(glob.glob(pattern, root_dir=self.root, recursive=True))
            if not matches and not glob.has_magic(pattern):
                # Literal paths that exist but glob() skipped (e.g. dot files)
                literal = self.root / pattern
                matches = [pattern] if literal.exists() else []
            for match in matches:
                path = (self.root / match).resolve()
                if path not in results:
                    results.append(path)
        return results

    def resolve(self, patterns: list[str]) -> list[Project | Path]:
        """
        Resolve CLI patterns to workspaces, directories and files.

        Exact workspace names take priority over glob expansion.
        """
        entries: list[Project | Path] = []
        file_patterns: list[str] = []
        by_name = {ws.name: ws for ws in self.workspaces or []}

        for pattern in patterns:
            workspace = by_name.get(pattern)
            if workspace is not None:
                if workspace not in entries:
                    entries.append(workspace)
            else:
                file_patterns.append(pattern)

        for path in self.glob(file_patterns):
            if path.is_dir():
                project = Project(path)
                if project.is_new:
                    logger.debug("Skipping directory without package.json: %s", path)
                    continue
                if project not in entries:
                    entries.append(project)
            elif path.is_file() and path not in entries:
                entries.append(path)

        return entries


def sort_projects(projects: list[Project]) -> list[Project]:
    """
    Order projects so that dependencies come before their dependents.

    Uses Kahn's algorithm over the dependency tables of the given projects.
    Projects caught in a cycle keep their input order at the end.
    """
    by_name = {p.name: p for p in projects}
    dependencies: dict[str, set[str]] = {
        p.name: {name for name in p.dependency_names() if name in by_name and name != p.name}
        for p in projects
    }

    in_degree = {name: len(deps) for name, deps in dependencies.items()}
    queue = deque([p.name for p in projects if in_degree[p.name] == 0])
    ordered: list[Project] = []

    while queue:
        name = queue.popleft()
        ordered.append(by_name[name])
        for other in (p.name for p in projects):
            if name in dependencies[other]:
                in_degree[other] -= 1
                if in_degree[other] == 0:
                    queue.append(other)

    if len(ordered) < len(projects):
        cyclic = [p for p in projects if p not in ordered]
        logger.warning(
            "Circular dependency between packages: %s", ", ".join(p.name for p in cyclic)
        )
        ordered.extend(cyclic)

    return ordered
