"""
Bundle base class.

A ``Bundle`` wraps one configured bundler invocation:

    bundle = ScriptBundler(project)
    await bundle.setup(ScriptOptions(input=..., output=...))
    await bundle.build()          # full build
    await bundle.write()
    await bundle.build(changed)   # partial hint, same result as a full build

Subclasses implement ``_build`` and return the output files as bytes. The
base class owns the lifecycle: status, event emission, file tracking, the
source cache, linting and child bundles.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from enum import StrEnum
from pathlib import Path
from typing import Any, ClassVar

from pydantic import ValidationError

from rna.core.errors import BuildError, ConfigError, LintError, WriteError
from rna.core.events import BundleEvent, EventSource, LifecycleEvent
from rna.core.files import Project, real_path
from rna.linters.base import Linter, LintResult

from .options import BundleOptions, BundlerKind

logger = logging.getLogger(__name__)


class BundleStatus(StrEnum):
    IDLE = "idle"
    BUILDING = "building"
    WRITING = "writing"
    ERROR = "error"


class Bundle(EventSource):
    """
    Stateful wrapper around one bundler invocation.

    Attributes:
        project: Project the bundle belongs to
        options: Frozen options, set by ``setup``
        status: Current lifecycle status
        children: Child bundles driven by this bundle
        lint_result: Lint result of the last build, if linting is enabled
        builds: Number of successful builds
    """

    kind: ClassVar[BundlerKind]
    options_type: ClassVar[type[BundleOptions]] = BundleOptions
    label: ClassVar[str] = "bundle"
    linter_types: ClassVar[tuple[type[Linter], ...]] = ()

    def __init__(self, project: Project | None = None):
        super().__init__()
        self.project = project
        self.options: Any = None
        self.status = BundleStatus.IDLE
        self.children: list[Bundle] = []
        self.lint_result: LintResult | None = None
        self.builds = 0
        self._files: dict[Path, None] = {}
        self._collected: dict[Path, None] = {}
        self._links: dict[Path, None] = {}
        self._collected_links: dict[Path, None] = {}
        self._outputs: dict[Path, bytes] = {}
        self._sources: dict[Path, tuple[tuple[int, int], str]] = {}
        self._known_children: dict[tuple[Any, ...], Bundle] = {}
        self._next_children: list[Bundle] = []
        self._linters: list[Linter] = []

    def __repr__(self) -> str:
        source = self.input if self.options is not None else None
        return f"{type(self).__name__}({str(source)!r})"

    @property
    def input(self) -> Path | None:
        return self.options.input if self.options is not None else None

    @property
    def output(self) -> Path | None:
        return self.options.output if self.options is not None else None

    @property
    def files(self) -> list[Path]:
        """Absolute paths this bundle depends on, in discovery order."""
        return list(self._files)

    @property
    def links(self) -> list[Path]:
        """Symlinked source paths this bundle reads through; their targets are in ``files``."""
        return list(self._links)

    @property
    def outputs(self) -> list[Path]:
        """Files produced by the last successful build (children excluded)."""
        return list(self._outputs)

    def output_bytes(self, path: Path) -> bytes:
        return self._outputs[path]

    @property
    def root(self) -> Path:
        if self.project is not None:
            return self.project.root
        if self.input is not None:
            return self.input.parent
        return Path.cwd()

    def relative(self, path: Path) -> str:
        return self.project.relative(path) if self.project is not None else str(path)

    # Setup

    async def setup(self, options: BundleOptions | dict[str, Any] | None = None, **values: Any) -> Bundle:
        """
        Validate and freeze the bundle configuration.

        Raises:
            ConfigError: If the options are invalid or miss input/output
        """
        if options is None or isinstance(options, dict):
            try:
                options = self.options_type(**{**(options or {}), **values})
            except ValidationError as e:
                raise ConfigError(f"Invalid options for {self.label}: {e}") from e
        elif values:
            options = options.model_copy(update=values)

        if not isinstance(options, self.options_type):
            raise ConfigError(
                f"{self.label} expects {self.options_type.__name__}, got {type(options).__name__}"
            )
        if options.input is None and options.code is None:
            raise ConfigError(f'missing "input" option for {self.label}')
        if options.output is None:
            raise ConfigError(f'missing "output" option for {self.label}')

        updates: dict[str, Any] = {"output": Path(options.output).resolve()}
        if options.input is not None:
            updates["input"] = real_path(options.input)
        options = self._configure(options.model_copy(update=updates))

        self.options = options
        self._linters = [linter_type() for linter_type in self.linter_types] if options.lint else []
        logger.debug("Configured %s: %s -> %s", self.label, options.input, options.output)
        return self

    def _configure(self, options: Any) -> Any:
        """Hook for bundler-specific normalization (e.g. directory outputs)."""
        return options

    # Build

    def emit(self, event_type: BundleEvent, **fields: Any) -> None:
        self.publish(LifecycleEvent(type=event_type, bundle=self, **fields))

    def add_resource(self, path: Path) -> Path:
        """Record a file the current build depends on."""
        path = Path(path).absolute()
        resolved = real_path(path)
        self._collected[resolved] = None
        link = real_path(path.parent) / path.name
        if link != resolved:
            self._collected_links[link] = None
        return resolved

    def read_source(self, path: Path) -> str:
        """
        Read a source file through the cache and track it as a resource.

        Cached text is reused while the file's mtime and size are unchanged.
        """
        resolved = self.add_resource(path)
        try:
            stat = resolved.stat()
        except OSError as e:
            raise BuildError(f"Cannot read {self.relative(resolved)}: {e.strerror}") from e

        key = (stat.st_mtime_ns, stat.st_size)
        cached = self._sources.get(resolved)
        if cached is not None and cached[0] == key:
            return cached[1]

        try:
            text = resolved.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise BuildError(f"Cannot read {self.relative(resolved)}: {e}") from e
        self._sources[resolved] = (key, text)
        return text

    async def build(self, *invalidated: Path | str) -> list[Path]:
        """
        Build the bundle.

        Args:
            invalidated: Changed paths; empty for a full build

        Returns:
            The new list of tracked files.

        Raises:
            ConfigError: If the bundle was not set up
            BuildError: If the build fails
        """
        if self.options is None:
            raise ConfigError(f"{self.label} is not set up")

        changed = {real_path(p) for p in invalidated}
        for path in changed:
            self._sources.pop(path, None)

        self.status = BundleStatus.BUILDING
        self._collected = {}
        self._collected_links = {}
        self._next_children = []
        if self.options.code is None:
            self.add_resource(self.options.input)
        self.emit(BundleEvent.BUILD_START, input=self.input, code=self.options.code)

        try:
            outputs = await self._build(changed)
            if self._linters:
                self._lint(changed)
        except Exception as e:
            # Keep watching what we had plus whatever the failed attempt found
            self._files = {**self._files, **self._collected}
            self._links = {**self._links, **self._collected_links}
            self.status = BundleStatus.ERROR
            error = e if isinstance(e, BuildError) else BuildError(f"{self.label} failed: {e}")
            self.emit(BundleEvent.ERROR, input=self.input, error=error)
            if error is e:
                raise
            raise error from e

        self._files = dict(self._collected)
        self._links = dict(self._collected_links)
        self._outputs = outputs
        self.children = self._next_children
        self.status = BundleStatus.IDLE
        self.builds += 1
        self.emit(BundleEvent.BUILD_END, input=self.input, code=self.options.code)
        self.emit(BundleEvent.BUNDLE_END, input=self.input)
        return self.files

    async def _build(self, changed: set[Path]) -> dict[Path, bytes]:
        raise NotImplementedError

    def _lint(self, changed: set[Path]) -> None:
        # Files of a failed attempt are tracked but were never linted
        linted = {r.file_path for r in self.lint_result.results} if self.lint_result is not None else set()
        if changed:
            files = [f for f in self._collected if f in changed or f not in linted]
        else:
            files = list(self._collected)

        merged = self.lint_result or LintResult()
        for linter in self._linters:
            merged = merged.merge(linter.lint(files))
        # Drop results for files the bundle no longer uses
        merged = LintResult(results=[r for r in merged.results if r.file_path in self._collected])
        self.lint_result = merged

        if merged.has_errors():
            raise LintError(merged.format(self.root))

    # Children

    def _forward(self, child: Bundle):
        def forward(event: LifecycleEvent) -> None:
            self.publish(replace(event, bundle=self, child=event.child or child))

        return forward

    async def child_bundle(self, bundle_type: type[Bundle], options: BundleOptions) -> Bundle:
        """
        Get a configured child bundle, reusing the previous one if unchanged.
        """
        key = (bundle_type, options.input, options.output)
        child = self._known_children.get(key)
        if child is None or child.options != self._normalized(child, options):
            child = bundle_type(self.project)
            child.subscribe(self._forward(child))
            await child.setup(options)
            self._known_children[key] = child
        if child not in self._next_children:
            self._next_children.append(child)
        return child

    @staticmethod
    def _normalized(child: Bundle, options: BundleOptions) -> Any:
        updates: dict[str, Any] = {"output": Path(options.output).resolve()}
        if options.input is not None:
            updates["input"] = real_path(options.input)
        return child._configure(options.model_copy(update=updates))

    async def build_child(self, child: Bundle, changed: set[Path]) -> None:
        """
        Build a child unless the change set cannot affect it.

        The child's files are tracked as resources of this bundle either way.
        """
        up_to_date = (
            changed
            and child.builds > 0
            and child.status == BundleStatus.IDLE
            and changed.isdisjoint(child.files)
        )
        if not up_to_date:
            await child.build(*changed)
        for path in child.files:
            self.add_resource(path)
        self._collected_links.update(dict.fromkeys(child.links))

    # Write

    async def write(self) -> list[Path]:
        """
        Persist the last successful build, children included.

        Returns:
            Every written path.

        Raises:
            WriteError: If nothing was built yet or a file cannot be written
        """
        if self.builds == 0:
            raise WriteError(f"{self.label} has no build to write")

        self.status = BundleStatus.WRITING
        self.emit(BundleEvent.WRITE_START, input=self.input)
        written: list[Path] = []
        try:
            for path, data in self._outputs.items():
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_bytes(data)
                written.append(path)
                self.emit(BundleEvent.WRITE_PROGRESS, input=self.input, file=path)
            for child in self.children:
                written.extend(await child.write())
        except OSError as e:
            self.status = BundleStatus.ERROR
            error = WriteError(f"Cannot write {e.filename or self.output}: {e.strerror}")
            self.emit(BundleEvent.ERROR, input=self.input, error=error)
            raise error from e
        except BuildError:
            self.status = BundleStatus.ERROR
            raise

        self.status = BundleStatus.IDLE
        self.emit(BundleEvent.WRITE_END, input=self.input)
        return written
