"""
Progress reporting for bundle lifecycle events.

``BuildReporter.handle`` is registered as a listener on every bundle; the
bundles themselves never print.
"""

from __future__ import annotations

import time
from pathlib import Path

from rich.console import Console
from rich.style import Style
from rich.table import Table
from rich.text import Text

from rna.core.events import LifecycleEvent
from rna.core.files import Project, file_sizes, format_bytes
from rna.linters.base import FileLintResult, LintResult, Severity

STYLES = {
    "title": Style(color="bright_cyan", bold=True),
    "success": Style(color="green", bold=True),
    "error": Style(color="red", bold=True),
    "warning": Style(color="yellow"),
    "info": Style(color="cyan"),
    "muted": Style(color="bright_black"),
}


def format_time(millis: float) -> str:
    """Format a duration as ``Ns`` or ``M:SSm``."""
    minutes = int(millis // 60000)
    seconds = round((millis % 60000) / 1000)
    if not minutes:
        return f"{seconds}s"
    return f"{minutes}:{seconds:02d}m"


def format_lint(result: LintResult, root: Path | None = None, warnings: bool = True) -> str:
    if warnings:
        return result.format(root)
    errors_only = LintResult(
        results=[
            FileLintResult(r.file_path, [m for m in r.messages if m.severity == Severity.ERROR])
            for r in result.results
        ]
    )
    return errors_only.format(root)


class BuildReporter:
    """Render lifecycle events with rich."""

    def __init__(self, project: Project, console: Console | None = None):
        self.project = project
        self.console = console or Console()
        self._started: dict[int, float] = {}
        self._analysis: dict[int, list] = {}

    def _name(self, event: LifecycleEvent) -> str:
        label = event.bundle.label
        if event.child is not None:
            label = f"{label} > {event.child.label}"
        return label

    def _source(self, event: LifecycleEvent) -> str:
        if event.code is not None:
            return "inline"
        return self.project.relative(event.input) if event.input is not None else ""

    def print_success(self, message: str) -> None:
        self.console.print(Text(f"✓ {message}", style=STYLES["success"]))

    def print_error(self, message: str) -> None:
        self.console.print(Text(f"✗ {message}", style=STYLES["error"]))

    def print_warning(self, message: str) -> None:
        self.console.print(Text(f"⚠ {message}", style=STYLES["warning"]))

    def print_info(self, message: str) -> None:
        self.console.print(Text(message, style=STYLES["info"]))

    def handle(self, event: LifecycleEvent) -> None:
        handler = getattr(self, f"_on_{event.type.value}", None)
        if handler is not None:
            handler(event)

    def _on_build_start(self, event: LifecycleEvent) -> None:
        if event.child is None:
            self._started[id(event.bundle)] = time.perf_counter()
        self.console.print(
            Text.assemble(("generating ", STYLES["muted"]), self._name(event), " ", (self._source(event), STYLES["info"]))
        )

    def _on_build_end(self, event: LifecycleEvent) -> None:
        if event.child is not None:
            return
        started = self._started.pop(id(event.bundle), time.perf_counter())
        elapsed = (time.perf_counter() - started) * 1000
        self.print_success(f"{self._name(event)} ready {format_time(elapsed)}")

    def _on_bundle_end(self, event: LifecycleEvent) -> None:
        if event.child is not None:
            return
        lint_result = event.bundle.lint_result
        if lint_result is not None and (lint_result.has_errors() or lint_result.has_warnings()):
            self.console.print(lint_result.format(self.project.root))
        report = self._analysis.pop(id(event.bundle), None)
        if report:
            self.console.print(self.analysis_table(report))

    def _on_analysis(self, event: LifecycleEvent) -> None:
        self._analysis[id(event.bundle)] = list(event.report or [])

    def _on_warn(self, event: LifecycleEvent) -> None:
        self.print_warning(event.message or "")

    def _on_error(self, event: LifecycleEvent) -> None:
        # Forwarded child errors resurface as the parent's own error
        if event.child is not None:
            return
        self.print_error(f"{self._name(event)} failed: {event.error}")

    def _on_write_progress(self, event: LifecycleEvent) -> None:
        if event.file is None or not event.file.exists():
            return
        size, zipped = file_sizes(event.file)
        self.console.print(
            Text.assemble(
                (self.project.relative(event.file), STYLES["info"]),
                (f"  {size}, {zipped} zipped", STYLES["muted"]),
            )
        )

    def analysis_table(self, report: list) -> Table:
        table = Table(title="Bundle analysis", title_style=STYLES["title"])
        table.add_column("Module")
        table.add_column("Size", justify="right")
        total = sum(entry.size for entry in report)
        for entry in report:
            share = f"{entry.size / total:.0%}" if total else "-"
            table.add_row(entry.path, f"{format_bytes(entry.size)} ({share})")
        table.add_row(Text("total", style=STYLES["muted"]), format_bytes(total))
        return table
