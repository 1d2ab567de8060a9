"""
Entry resolution: CLI patterns and project metadata to build targets.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from .errors import ResolutionError
from .files import Project, file_kind, sort_projects
from .targets import BuildTarget, FileTarget, PackageTarget

logger = logging.getLogger(__name__)


def compile_link_patterns(patterns: list[str]) -> list[re.Pattern[str]]:
    """Compile ``--link`` filters (comma-separated regular expressions)."""
    compiled = []
    for pattern in patterns:
        for part in pattern.split(","):
            part = part.strip()
            if not part:
                continue
            try:
                compiled.append(re.compile(part))
            except re.error as e:
                raise ResolutionError(f"Invalid --link pattern '{part}': {e}") from e
    return compiled


def collect_linked(project: Project, filters: list[re.Pattern[str]]) -> list[Project]:
    """
    Transitive closure of linked dependencies and workspaces matching ``filters``.

    Returns packages sorted so that dependencies come before dependents.
    """
    results: list[Project] = []

    def visit(current: Project) -> None:
        candidates = current.linked_dependencies() + (current.workspaces or [])
        for pkg in candidates:
            if not any(f.search(pkg.name) for f in filters):
                continue
            if any(p.name == pkg.name for p in results):
                continue
            results.append(pkg)
            visit(pkg)

    visit(project)
    return sort_projects(results)


def _in_list(targets: list[BuildTarget], project: Project) -> bool:
    return any(isinstance(t, PackageTarget) and t.name == project.name for t in targets)


def resolve(
    project: Project,
    patterns: list[str],
    *,
    recursive: bool = False,
    link: list[str] | None = None,
) -> list[BuildTarget]:
    """
    Resolve CLI arguments to a list of build targets.

    Args:
        project: The project the command runs in
        patterns: Positional CLI arguments (globs or workspace names)
        recursive: Also build workspaces the selected packages depend on
        link: Name filters selecting linked dependencies to build first

    Returns:
        Targets in build order; linked dependencies first.

    Raises:
        ResolutionError: If nothing resolves
    """
    targets: list[BuildTarget] = []

    if patterns:
        for entry in project.resolve(patterns):
            if isinstance(entry, Path):
                kind = file_kind(entry)
                if kind is None:
                    logger.warning("No bundler for %s, skipping", project.relative(entry))
                    continue
                targets.append(FileTarget(path=entry, kind=kind))
                continue

            if _in_list(targets, entry):
                continue
            if recursive:
                for dep in project.workspace_dependencies(entry):
                    if not _in_list(targets, dep):
                        targets.append(PackageTarget(project=dep))
            targets.append(PackageTarget(project=entry))
    else:
        packages = project.workspaces or [project]
        targets.extend(PackageTarget(project=p) for p in packages)

    if not targets:
        raise ResolutionError("missing files to build")

    if link:
        filters = compile_link_patterns(link)
        linked = [
            PackageTarget(project=p, linked=True)
            for p in collect_linked(project, filters)
            if not _in_list(targets, p)
        ]
        if linked:
            logger.debug("Linked packages: %s", ", ".join(t.name for t in linked))
        targets = [*linked, *targets]

    return targets


def is_output_relative(patterns: list[str]) -> bool:
    """
    True when ``--output`` is relative to each entry rather than the project.

    This is the case with several arguments or a glob pattern.
    """
    return len(patterns) > 1 or any("*" in p for p in patterns)
