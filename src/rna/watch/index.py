"""
Dependency index: source file to the bundles that depend on it.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from rna.core.files import real_path


class Rebuildable(Protocol):
    """What the watch engine needs from a bundle."""

    @property
    def files(self) -> list[Path]: ...

    @property
    def links(self) -> list[Path]: ...

    async def build(self, *invalidated: Path | str) -> list[Path]: ...

    async def write(self) -> list[Path]: ...


class DependencyIndex:
    """
    Reverse mapping from absolute file paths to bundles.

    ``update`` replaces every entry of a bundle, so files a bundle stopped
    using no longer trigger it.
    """

    def __init__(self) -> None:
        self._by_path: dict[Path, dict[Rebuildable, None]] = {}
        self._by_bundle: dict[Rebuildable, set[Path]] = {}

    def update(self, bundle: Rebuildable) -> None:
        """
        Replace the entries of ``bundle`` with its current files.

        Symlinks the bundle reads through are kept under their own path, so
        deleting the link still maps to the bundle.
        """
        self.remove(bundle)
        paths = {real_path(p) for p in bundle.files} | set(bundle.links)
        self._by_bundle[bundle] = paths
        for path in paths:
            self._by_path.setdefault(path, {})[bundle] = None

    def remove(self, bundle: Rebuildable) -> None:
        for path in self._by_bundle.pop(bundle, set()):
            dependents = self._by_path.get(path)
            if dependents is None:
                continue
            dependents.pop(bundle, None)
            if not dependents:
                del self._by_path[path]

    def lookup(self, path: Path | str) -> list[Rebuildable]:
        """Bundles depending on ``path`` (symlinks resolved)."""
        return list(self._by_path.get(real_path(path), {}))

    def lookup_many(self, paths: Iterable[Path | str]) -> list[Rebuildable]:
        """Union of ``lookup`` over ``paths``, in first-seen order."""
        found: dict[Rebuildable, None] = {}
        for path in paths:
            for bundle in self.lookup(path):
                found[bundle] = None
        return list(found)

    def files_of(self, bundle: Rebuildable) -> set[Path]:
        return set(self._by_bundle.get(bundle, set()))

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        return real_path(path) in self._by_path

    def __len__(self) -> int:
        return len(self._by_path)

    @property
    def bundles(self) -> list[Rebuildable]:
        return list(self._by_bundle)
