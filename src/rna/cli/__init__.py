"""
rna CLI.

- build.py: ``rna build``
- lint.py: ``rna lint``
- manifest.py: ``rna manifest``
- reporter.py: rich rendering of bundle lifecycle events
- serve.py: static server for ``--serve``
"""

import sys

import typer

from rna._version import get_version

from .build import build_command
from .lint import lint_command
from .manifest import manifest_command
from .utils import configure_logging, version_callback

__version__ = get_version()

app = typer.Typer(
    help="""rna – build orchestration for web projects

Commands:
  • build: bundle scripts, styles, pages and manifests (add --watch to rebuild on change)
  • lint: check script and style sources
  • manifest: generate a web app manifest and its icons
""",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and environment information",
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    """rna CLI main callback for global options."""
    configure_logging(verbose)


app.command(name="build")(build_command)
app.command(name="lint")(lint_command)
app.command(name="manifest")(manifest_command)


def main(argv: list[str] | None = None) -> None:
    app(args=argv, standalone_mode=True)


__all__ = ["__version__", "app", "main"]


if __name__ == "__main__":
    main(sys.argv[1:])
