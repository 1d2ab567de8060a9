"""
Bundle planning: resolved targets to configured bundles.

Planning is pure: ``plan_bundles`` decides which bundler builds which file
into which output with which options, and raises ``ResolutionError`` before
any bundle exists. ``create_bundles`` then instantiates and sets up the
planned bundles.

Package routing follows the package.json fields:

- ``lib``: the source. Built to ``--output`` if given, otherwise to
  ``module`` (esm), ``main`` (cjs) and ``browser`` (umd).
- ``style``: built next to the script outputs in ``directories.dist`` or
  ``directories.lib``.
- ``module`` / ``style`` without ``lib``: legacy layout where ``module`` is the
  source and ``main`` the output.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from rna.bundlers import Bundle, BundlerKind, bundler_kind_for, create_bundle
from rna.bundlers.options import (
    BundleOptions,
    HTMLOptions,
    ScriptOptions,
    StyleOptions,
    WebManifestOptions,
)

from .config import BuildConfig, ScriptFormat
from .errors import ConfigError, ResolutionError
from .files import Project
from .resolver import is_output_relative
from .targets import BuildTarget, FileTarget, PackageTarget

logger = logging.getLogger(__name__)

# Targets for the esm "module" output: browsers with native modules and async
MODULE_TARGETS = ["supports es6-module", "supports async-functions"]


@dataclass(frozen=True)
class BundlePlan:
    """One bundle to create: its kind, owning project and options."""

    kind: BundlerKind
    project: Project
    options: BundleOptions
    linked: bool = False

    @property
    def input(self) -> Path | None:
        return self.options.input

    @property
    def output(self) -> Path | None:
        return self.options.output


def targets_for(project: Project, config: BuildConfig) -> list[str]:
    """Browserslist queries for a project: explicit, disabled, or from metadata."""
    if not config.use_targets:
        return []
    if config.targets:
        return [q.strip() for q in config.targets.split(",") if q.strip()]
    return project.browserslist


def _jsx(config: BuildConfig):
    jsx = config.jsx
    return jsx if (jsx.pragma or jsx.pragma_frag or jsx.module) else None


def make_options(
    kind: BundlerKind,
    project: Project,
    source: Path,
    output: Path | None,
    config: BuildConfig,
    **overrides: Any,
) -> BundleOptions:
    """Options for one bundle, from the build configuration plus overrides."""
    values: dict[str, Any] = {
        "input": source,
        "output": output,
        "targets": targets_for(project, config),
        "map": config.map,
        "lint": config.lint,
        "production": config.production,
    }

    if kind == BundlerKind.SCRIPT:
        values.update(
            format=config.format or ScriptFormat.ESM,
            name=config.name,
            bundle=config.bundle,
            analyze=config.analyze,
            jsx=_jsx(config),
        )
        values.update(overrides)
        return ScriptOptions(**values)
    if kind == BundlerKind.STYLE:
        values.update(overrides)
        return StyleOptions(**values)
    if kind == BundlerKind.HTML:
        values.update(
            title=project.get("name"),
            description=project.get("description"),
            format=config.format,
            jsx=_jsx(config),
        )
        values.update(overrides)
        return HTMLOptions(**values)
    if kind == BundlerKind.WEBMANIFEST:
        values.update(name=project.get("name"), description=project.get("description"))
        values.update(overrides)
        return WebManifestOptions(**values)
    raise ResolutionError(f"Cannot plan a {kind} bundle for {project.relative(source)}")


class _Planner:
    def __init__(self, project: Project, config: BuildConfig, patterns: list[str]):
        self.project = project
        self.config = config
        self.output_relative = is_output_relative(patterns)
        self.plans: list[BundlePlan] = []

    def add(self, entry: Project, source: Path, output: Path | None, linked: bool = False, **overrides: Any) -> None:
        kind = bundler_kind_for(source)
        if kind is None:
            raise ResolutionError(f"No bundler for {self.project.relative(source)}")
        options = make_options(kind, entry, source, output, self.config, **overrides)
        self.plans.append(BundlePlan(kind=kind, project=entry, options=options, linked=linked))

    def plan_file(self, target: FileTarget) -> None:
        output_option = self.config.output
        if not output_option:
            raise ResolutionError("missing `output` option")
        if self.output_relative:
            output = (target.path.parent / output_option).resolve()
        else:
            output = self.project.file(output_option)
        self.add(self.project, target.path, output)

    def plan_package(self, target: PackageTarget) -> None:
        entry = target.project
        config = self.config
        lib = target.entry("lib")
        module = target.entry("module")
        main = target.entry("main")
        browser = target.entry("browser")
        style = target.entry("style")

        output: Path | None = None
        if config.output:
            if self.output_relative:
                source = lib or module
                if source is None:
                    raise ResolutionError(f'missing source file to build for {entry.name}')
                output = (source.parent / config.output).resolve()
            elif Path(config.output).suffix:
                output = self.project.file(config.output)
            elif main is not None:
                output = main
            else:
                output = self.project.file(config.output)

        count = len(self.plans)
        if lib is not None:
            self._plan_lib(target, lib, module, main, browser, style, output)
            if len(self.plans) == count:
                raise ResolutionError(f'missing "input" option for project {entry.root}')
        elif module is not None or style is not None:
            if output is None:
                if main is None:
                    raise ResolutionError('missing "output" option')
                output = self.project.file(main.parent)
            if module is not None:
                self.add(entry, module, main or output, target.linked, bundle=True)
            if style is not None:
                style_output = main.parent / f"{main.stem}.css" if main is not None else output
                self.add(entry, style, style_output, target.linked)
        else:
            raise ResolutionError("missing source file to build")

    def _plan_lib(
        self,
        target: PackageTarget,
        lib: Path,
        module: Path | None,
        main: Path | None,
        browser: Path | None,
        style: Path | None,
        output: Path | None,
    ) -> None:
        entry = target.project
        linked = target.linked

        if output is not None and not linked:
            self.add(entry, lib, output)
            return

        if module is not None:
            self.add(
                entry,
                lib,
                module,
                linked,
                targets=MODULE_TARGETS,
                format=ScriptFormat.ESM,
                lint=main is None and self.config.lint,
            )
        if main is not None and (not linked or module is None):
            self.add(entry, lib, main, linked, format=ScriptFormat.CJS)
        if browser is not None and (not linked or (main is None and module is None)):
            self.add(entry, lib, browser, linked, format=ScriptFormat.UMD)

        directories = entry.directories
        dist_dir = directories.get("dist") or directories.get("lib")
        if style is not None and dist_dir is not None:
            stem = next((f.stem for f in (main, module, browser) if f is not None), self.project.scope_name)
            self.add(entry, style, dist_dir / f"{stem}.css", linked)

        public_dir = directories.get("public") or directories.get("lib")
        if lib.suffix.lower() in (".html", ".htm") and public_dir is not None:
            self.add(entry, lib, public_dir, linked)


def plan_bundles(
    project: Project,
    targets: list[BuildTarget],
    config: BuildConfig,
    patterns: list[str] | None = None,
) -> list[BundlePlan]:
    """
    Plan the bundles for resolved targets.

    Args:
        project: The project the command runs in
        targets: Targets from ``resolve``
        config: The invocation's build configuration
        patterns: The CLI arguments (decide whether ``--output`` is per entry)

    Raises:
        ResolutionError: If a target has no source or no output
    """
    planner = _Planner(project, config, patterns or [])
    for target in targets:
        if isinstance(target, FileTarget):
            planner.plan_file(target)
        else:
            planner.plan_package(target)
    logger.debug("Planned %d bundles", len(planner.plans))
    return planner.plans


async def create_bundles(plans: list[BundlePlan]) -> tuple[list[Bundle], list[tuple[BundlePlan, ConfigError]]]:
    """
    Create and set up a bundle per plan.

    A plan whose setup fails is dropped and reported; the others proceed.
    """
    bundles: list[Bundle] = []
    errors: list[tuple[BundlePlan, ConfigError]] = []
    for plan in plans:
        bundle = create_bundle(plan.kind, plan.project)
        try:
            await bundle.setup(plan.options)
        except ConfigError as e:
            logger.debug("Dropping %s bundle for %s: %s", plan.kind, plan.input, e.message)
            errors.append((plan, e))
            continue
        bundles.append(bundle)
    return bundles, errors
