"""
``rna lint`` command.
"""

from pathlib import Path

import typer

from rna.core.errors import RnaError
from rna.core.files import Project
from rna.linters import Linter, LintResult, ScriptLinter, StyleLinter

from .reporter import BuildReporter, format_lint
from .utils import find_project_root

SKIPPED_DIRECTORIES = {"node_modules", ".git", "dist", "build"}


def collect_lint_files(project: Project, patterns: list[str], extensions: tuple[str, ...]) -> list[Path]:
    """
    Expand CLI arguments into source files.

    Directories are searched below their ``src`` folder when they have one.
    Without arguments the project (or every workspace) is searched.
    """
    if patterns:
        entries = project.glob(patterns)
    else:
        entries = [ws.root for ws in project.workspaces or [project]]

    files: list[Path] = []
    for entry in entries:
        if entry.is_file():
            candidates = [entry]
        else:
            base = entry / "src" if (entry / "src").is_dir() else entry
            candidates = sorted(
                path
                for path in base.rglob("*")
                if path.is_file() and not SKIPPED_DIRECTORIES.intersection(path.relative_to(base).parts)
            )
        for path in candidates:
            if path.suffix.lower() in extensions and path not in files:
                files.append(path)
    return files


def lint_command(
    args: list[str] | None = typer.Argument(None, help="Files, globs or directories to lint"),
    no_scripts: bool = typer.Option(False, "--no-scripts", help="Skip script files"),
    no_styles: bool = typer.Option(False, "--no-styles", help="Skip style files"),
    no_warnings: bool = typer.Option(False, "--no-warnings", help="Only report errors"),
) -> None:
    """
    Lint script and style sources.
    """
    try:
        project = Project(find_project_root())
    except RnaError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    linters: list[Linter] = []
    if not no_scripts:
        linters.append(ScriptLinter())
    if not no_styles:
        linters.append(StyleLinter())

    extensions = tuple(ext for linter in linters for ext in linter.extensions)
    files = collect_lint_files(project, args or [], extensions)
    reporter = BuildReporter(project)
    if not files:
        reporter.print_warning("No files to lint")
        return

    result = LintResult()
    for linter in linters:
        result = result.merge(linter.lint(files))

    report = format_lint(result, project.root, warnings=not no_warnings)
    if report:
        reporter.console.print(report)
    else:
        reporter.print_success(f"Everything is fine ({len(files)} files)")

    if result.has_errors():
        raise typer.Exit(code=1)
