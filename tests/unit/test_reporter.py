"""Tests for the rich build reporter."""

from io import StringIO
from pathlib import Path

import pytest
from rich.console import Console

from rna.bundlers import ScriptBundler
from rna.cli.reporter import BuildReporter, format_lint, format_time
from rna.core.errors import BuildError
from rna.core.events import BundleEvent, LifecycleEvent
from rna.linters.base import FileLintResult, LintMessage, LintResult, Severity


class Labelled:
    def __init__(self, label: str):
        self.label = label
        self.lint_result = None


def make_reporter(project) -> tuple[BuildReporter, StringIO]:
    stream = StringIO()
    return BuildReporter(project, Console(file=stream, width=120, color_system=None)), stream


class TestFormatting:
    @pytest.mark.parametrize(
        "millis,expected",
        [(0, "0s"), (3000, "3s"), (59400, "59s"), (65000, "1:05m"), (600000, "10:00m")],
    )
    def test_format_time(self, millis: int, expected: str) -> None:
        assert format_time(millis) == expected

    def test_format_lint_hides_warnings(self) -> None:
        result = LintResult(
            [
                FileLintResult(
                    Path("/project/a.js"),
                    [
                        LintMessage("no-console", Severity.WARNING, 1, 1, "Unexpected console statement"),
                        LintMessage("no-debugger", Severity.ERROR, 2, 1, "Unexpected 'debugger' statement"),
                    ],
                )
            ]
        )
        full = format_lint(result, Path("/project"))
        errors = format_lint(result, Path("/project"), warnings=False)

        assert "no-console" in full
        assert "no-console" not in errors
        assert "no-debugger" in errors


class TestBuildReporter:
    @pytest.mark.asyncio
    async def test_build_progress(self, make_project) -> None:
        project = make_project({"name": "app"}, {"src/index.js": "export const a = 1;\n"})
        reporter, stream = make_reporter(project)
        bundle = ScriptBundler(project)
        bundle.subscribe(reporter.handle)
        await bundle.setup(
            input=project.root / "src" / "index.js", output=project.root / "dist" / "index.js", lint=False, map=False
        )
        await bundle.build()
        await bundle.write()

        output = stream.getvalue()
        assert "generating script src/index.js" in output
        assert "✓ script ready" in output
        assert str(Path("dist") / "index.js") in output
        assert "zipped" in output

    def test_errors(self, project) -> None:
        reporter, stream = make_reporter(project)
        bundle = Labelled("style")
        reporter.handle(LifecycleEvent(BundleEvent.ERROR, bundle, error=BuildError("Unclosed block")))

        assert "✗ style failed: Unclosed block" in stream.getvalue()

    def test_child_events_are_labelled(self, project) -> None:
        reporter, stream = make_reporter(project)
        parent, child = Labelled("webmanifest"), Labelled("icon")
        reporter.handle(
            LifecycleEvent(BundleEvent.BUILD_START, parent, input=project.root / "icon.png", child=child)
        )
        reporter.handle(LifecycleEvent(BundleEvent.ERROR, parent, error=BuildError("bad"), child=child))

        output = stream.getvalue()
        assert "generating webmanifest > icon icon.png" in output
        assert "failed" not in output

    def test_warnings(self, project) -> None:
        reporter, stream = make_reporter(project)
        reporter.handle(LifecycleEvent(BundleEvent.WARN, Labelled("script"), message="Cannot resolve 'x'"))
        assert "⚠ Cannot resolve 'x'" in stream.getvalue()
