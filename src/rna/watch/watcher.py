"""
File-system change watcher.

A watchdog observer runs in its own thread; its handler only marshals
``(event_type, path)`` pairs onto the asyncio loop, where the ignore
predicate runs against the current index state.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Iterable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[str, Path], None]
IgnorePredicate = Callable[[Path], bool]

# Version control internals never feed a build
VCS_DIRECTORIES = {".git", ".hg", ".svn"}


class ChangeEventHandler(FileSystemEventHandler):
    """Translate watchdog events into ``create``/``modify``/``unlink`` calls."""

    def __init__(self, loop: asyncio.AbstractEventLoop, dispatch: ChangeCallback):
        super().__init__()
        self._loop = loop
        self._dispatch = dispatch

    def _push(self, event_type: str, path: bytes | str) -> None:
        self._loop.call_soon_threadsafe(self._dispatch, event_type, Path(os.fsdecode(path)))

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._push("create", event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._push("modify", event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._push("unlink", event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._push("unlink", event.src_path)
            self._push("create", event.dest_path)


class ChangeWatcher:
    """
    Watch directory trees and forward file changes to a callback.

    Usage:
        watcher = ChangeWatcher([project.root], scheduler.on_change, ignore=scheduler.is_ignored)
        watcher.start(asyncio.get_running_loop())
        ...
        watcher.stop()
    """

    def __init__(
        self,
        roots: Iterable[Path],
        callback: ChangeCallback,
        *,
        ignore: IgnorePredicate | None = None,
        observer_factory: Callable[[], Observer] = Observer,
    ):
        self.roots = _outermost(Path(r).resolve() for r in roots)
        self.callback = callback
        self.ignore = ignore
        self._observer_factory = observer_factory
        self._observer: Observer | None = None

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def _dispatch(self, event_type: str, path: Path) -> None:
        if VCS_DIRECTORIES.intersection(path.parts):
            return
        if self.ignore is not None and self.ignore(path):
            logger.debug("Ignoring %s %s", event_type, path)
            return
        logger.debug("Change: %s %s", event_type, path)
        self.callback(event_type, path)

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        """Start the observer thread; events are delivered on ``loop``."""
        if self._observer is not None:
            logger.warning("Watcher already running")
            return

        handler = ChangeEventHandler(loop, self._dispatch)
        observer = self._observer_factory()
        for root in self.roots:
            if not root.is_dir():
                logger.warning("Cannot watch missing directory %s", root)
                continue
            observer.schedule(handler, str(root), recursive=True)
        observer.start()
        self._observer = observer
        logger.debug("Watching %s", ", ".join(str(r) for r in self.roots))

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._observer = None


def _outermost(roots: Iterable[Path]) -> list[Path]:
    """Drop roots nested in another root; a recursive watch covers them."""
    result: list[Path] = []
    for root in sorted(set(roots), key=lambda p: len(p.parts)):
        if not any(root.is_relative_to(other) for other in result):
            result.append(root)
    return result
