"""
``rna manifest`` command.
"""

import asyncio

import typer

from rna.bundlers import WebManifestBundler, WebManifestOptions
from rna.core.errors import RnaError
from rna.core.files import Project
from rna.watch.session import build_and_write

from .reporter import BuildReporter
from .utils import find_project_root


def manifest_command(
    path: str | None = typer.Argument(None, help="The webapp directory"),
    output: str | None = typer.Option(None, "--output", "-o", help="Where to save the generated manifest"),
    manifest: str | None = typer.Option(None, "--manifest", help="An input manifest file"),
    icon: str | None = typer.Option(None, "--icon", help="Main icon to generate the icon set from"),
    scope: str | None = typer.Option(None, "--scope", help="Force the manifest scope"),
) -> None:
    """
    Generate a web app manifest.
    """
    try:
        project = Project(find_project_root())
        root = project.file(path) if path else project.root

        source = project.file(manifest) if manifest else root / "manifest.json"
        if output:
            target = project.file(output) / (source.name if manifest else "manifest.json")
        else:
            target = root / "manifest.json"

        options = WebManifestOptions(
            input=source,
            output=target,
            name=project.get("name"),
            description=project.get("description"),
            scope=scope,
            icon=project.file(icon) if icon else None,
            lint=False,
            map=False,
        )
        reporter = BuildReporter(project)
        bundle = WebManifestBundler(project)
        bundle.subscribe(reporter.handle)

        async def generate() -> None:
            await bundle.setup(options)
            await build_and_write(bundle)

        asyncio.run(generate())
    except RnaError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
