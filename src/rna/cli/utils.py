"""
Shared CLI utilities.
"""

import logging
import platform
from pathlib import Path

import typer
from rich.logging import RichHandler

from rna._version import get_version


def version_callback(value: bool) -> None:
    """Display version and environment information."""
    if value:
        import rna

        typer.echo(f"rna version {get_version()}")
        typer.echo("")
        typer.echo("Environment:")
        typer.echo(f"  Python:        {platform.python_implementation()} {platform.python_version()}")
        typer.echo(f"  Platform:      {platform.system()} {platform.release()}")
        typer.echo(f"  Location:      {Path(rna.__file__).parent}")
        raise typer.Exit()


def configure_logging(verbose: bool = False) -> None:
    """Route log records through rich; DEBUG with ``--verbose``."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=verbose, rich_tracebacks=verbose)],
        force=True,
    )
    # Observer internals are noisy at DEBUG
    logging.getLogger("watchdog").setLevel(logging.WARNING)


def find_project_root(start: Path | None = None) -> Path:
    """Nearest directory holding a package.json, or ``start`` itself."""
    start = (start or Path.cwd()).resolve()
    for directory in (start, *start.parents):
        if (directory / "package.json").exists():
            return directory
    return start
