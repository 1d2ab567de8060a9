"""
Build session: initial build of every bundle, then watch mode.

    summary = await run_build(project, plans, config, listener=reporter.handle)

In watch mode the watcher starts before the initial build so that no change
is missed; the scheduler takes over once every bundle has built and the
dependency index is populated. The session runs until ``stop`` is set or the
task is cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from rna.bundlers import Bundle
from rna.core.config import BuildConfig
from rna.core.errors import BuildError, ConfigError
from rna.core.events import Listener
from rna.core.files import Project
from rna.core.planner import BundlePlan, create_bundles

from .index import DependencyIndex
from .scheduler import RebuildScheduler
from .watcher import ChangeWatcher

logger = logging.getLogger(__name__)


@dataclass
class BuildSummary:
    """Outcome of a build session."""

    bundles: list[Bundle] = field(default_factory=list)
    config_errors: list[tuple[BundlePlan, ConfigError]] = field(default_factory=list)
    build_errors: list[tuple[Bundle, BuildError]] = field(default_factory=list)
    rebuilds: int = 0
    failures: int = 0

    @property
    def ok(self) -> bool:
        return not self.config_errors and not self.build_errors


async def build_and_write(bundle: Bundle) -> None:
    await bundle.build()
    await bundle.write()


async def run_build(
    project: Project,
    plans: list[BundlePlan],
    config: BuildConfig,
    *,
    listener: Listener | None = None,
    stop: asyncio.Event | None = None,
    on_ready: Callable[[BuildSummary], None] | None = None,
) -> BuildSummary:
    """
    Create, build and write the planned bundles; keep rebuilding in watch mode.

    Args:
        project: The project the command runs in
        plans: Bundles to create
        config: The invocation's configuration
        listener: Receives every lifecycle event of every bundle
        stop: Ends watch mode when set
        on_ready: Called once the initial build settled, in watch mode

    Returns:
        The session summary; build failures are reported there, not raised.
    """
    bundles, config_errors = await create_bundles(plans)
    if listener is not None:
        for bundle in bundles:
            bundle.subscribe(listener)

    index = DependencyIndex()
    scheduler: RebuildScheduler | None = None
    watcher: ChangeWatcher | None = None
    if config.watch:
        scheduler = RebuildScheduler(index, debounce=config.debounce)
        roots = [project.root, *(plan.project.root for plan in plans)]
        watcher = ChangeWatcher(roots, scheduler.on_change, ignore=scheduler.is_ignored)
        watcher.start(asyncio.get_running_loop())

    summary = BuildSummary(bundles=bundles, config_errors=config_errors)
    try:
        results = await asyncio.gather(
            *(build_and_write(bundle) for bundle in bundles), return_exceptions=True
        )
        for bundle, result in zip(bundles, results):
            # Failed bundles are indexed too, so fixing a file retries them
            index.update(bundle)
            if isinstance(result, BuildError):
                summary.build_errors.append((bundle, result))
            elif isinstance(result, BaseException):
                raise result

        if scheduler is None:
            return summary

        scheduler.start()
        logger.debug("Watching %d files for %d bundles", len(index), len(bundles))
        if on_ready is not None:
            on_ready(summary)
        await (stop or asyncio.Event()).wait()
    finally:
        if watcher is not None:
            watcher.stop()
        if scheduler is not None:
            scheduler.close()
            await scheduler.drain()
            summary.rebuilds = scheduler.rebuilds
            summary.failures = scheduler.failures

    return summary
