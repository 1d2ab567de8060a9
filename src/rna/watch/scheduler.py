"""
Debounced rebuild scheduling.

Changes are buffered until the debounce window closes. The batch is then
mapped to bundles through the dependency index and each affected bundle runs
``build(*batch)`` then ``write()``. Cycles of one bundle are strictly
sequential; changes arriving while a bundle builds are coalesced into exactly
one follow-up cycle. Different bundles rebuild concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

from rna.core.config import DEFAULT_DEBOUNCE
from rna.core.files import real_path

from .index import DependencyIndex, Rebuildable

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[Rebuildable, Exception], None]


@dataclass(frozen=True)
class ChangeBatch:
    """De-duplicated changed paths of one debounce window, in arrival order."""

    paths: tuple[Path, ...]

    def __iter__(self) -> Iterator[Path]:
        return iter(self.paths)

    def __len__(self) -> int:
        return len(self.paths)


@dataclass
class BundleRunState:
    """Scheduling state of one bundle."""

    running: bool = False
    pending: dict[Path, None] = field(default_factory=dict)
    task: asyncio.Task[None] | None = None
    cycles: int = 0
    failures: int = 0


class RebuildScheduler:
    """
    Turn change notifications into serialized per-bundle rebuild cycles.

    Changes received before ``start`` are kept and flushed once the index is
    populated.
    """

    def __init__(
        self,
        index: DependencyIndex,
        *,
        debounce: float = DEFAULT_DEBOUNCE,
        on_error: ErrorCallback | None = None,
    ):
        self.index = index
        self.debounce = debounce
        self.on_error = on_error
        self._buffer: dict[Path, None] = {}
        self._timer: asyncio.TimerHandle | None = None
        self._states: dict[Rebuildable, BundleRunState] = {}
        self._accepting = False
        self._closed = False

    @property
    def accepting(self) -> bool:
        return self._accepting

    @property
    def rebuilds(self) -> int:
        """Rebuild cycles run so far, across bundles."""
        return sum(state.cycles for state in self._states.values())

    @property
    def failures(self) -> int:
        return sum(state.failures for state in self._states.values())

    def state(self, bundle: Rebuildable) -> BundleRunState:
        return self._states.setdefault(bundle, BundleRunState())

    def is_ignored(self, path: Path | str) -> bool:
        """
        Watch ignore predicate.

        Until ``start`` nothing is ignored, since the index is still being
        populated; afterwards paths no bundle depends on are skipped.
        """
        return self._accepting and not self.index.lookup(path)

    def on_change(self, event_type: str, path: Path | str) -> None:
        """Record a change and restart the debounce timer."""
        if self._closed:
            return
        self._buffer[real_path(path)] = None
        if self._accepting:
            self._restart_timer()

    def _restart_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().call_later(self.debounce, self.flush)

    def start(self) -> None:
        """Begin scheduling; changes buffered so far are flushed after the window."""
        if self._closed or self._accepting:
            return
        self._accepting = True
        if self._buffer:
            self._restart_timer()

    def flush(self) -> ChangeBatch | None:
        """
        Close the current debounce window.

        Returns:
            The flushed batch, or None when nothing was buffered.
        """
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self._accepting or not self._buffer:
            return None

        batch = ChangeBatch(tuple(self._buffer))
        self._buffer.clear()

        bundles = self.index.lookup_many(batch.paths)
        if not bundles:
            logger.debug("No bundle depends on %d changed files", len(batch))
            return batch

        logger.debug("%d changed files affect %d bundles", len(batch), len(bundles))
        for bundle in bundles:
            self.schedule(bundle, batch.paths)
        return batch

    def schedule(self, bundle: Rebuildable, paths: Iterable[Path]) -> None:
        """Queue invalidated paths for a bundle, starting a cycle if it is idle."""
        state = self.state(bundle)
        state.pending.update(dict.fromkeys(paths))
        if state.running:
            return
        state.running = True
        state.task = asyncio.get_running_loop().create_task(self._run(bundle, state))

    async def _run(self, bundle: Rebuildable, state: BundleRunState) -> None:
        try:
            while state.pending:
                paths = tuple(state.pending)
                state.pending.clear()
                state.cycles += 1
                try:
                    await bundle.build(*paths)
                    await bundle.write()
                except Exception as e:
                    state.failures += 1
                    arrived = bool(state.pending)
                    # Keep the failed invalidations for the next attempt
                    state.pending = {**dict.fromkeys(paths), **state.pending}
                    self.index.update(bundle)
                    self._report(bundle, e)
                    if not arrived:
                        break
                    continue
                self.index.update(bundle)
        finally:
            state.running = False
            state.task = None

    def _report(self, bundle: Rebuildable, error: Exception) -> None:
        logger.debug("Rebuild of %r failed: %s", bundle, error)
        if self.on_error is not None:
            self.on_error(bundle, error)

    async def drain(self) -> None:
        """Wait until no rebuild cycle is in flight."""
        while True:
            tasks = [s.task for s in self._states.values() if s.task is not None]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    def close(self) -> None:
        """Stop accepting changes and cancel the pending timer."""
        self._closed = True
        self._accepting = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._buffer.clear()
