"""Incremental rebuilds: dependency index, change watcher and scheduler."""

from .index import DependencyIndex, Rebuildable
from .scheduler import BundleRunState, ChangeBatch, RebuildScheduler
from .session import BuildSummary, run_build
from .watcher import ChangeWatcher

__all__ = [
    "BuildSummary",
    "BundleRunState",
    "ChangeBatch",
    "ChangeWatcher",
    "DependencyIndex",
    "Rebuildable",
    "RebuildScheduler",
    "run_build",
]
