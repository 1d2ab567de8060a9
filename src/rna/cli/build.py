"""
``rna build`` command.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import typer

from rna.core.config import BuildConfig, load_config
from rna.core.errors import RnaError
from rna.core.files import Project
from rna.core.planner import BundlePlan, plan_bundles
from rna.core.resolver import resolve
from rna.watch.session import BuildSummary, run_build

from .reporter import BuildReporter
from .serve import StaticServer
from .utils import find_project_root


def collect_overrides(**flags: Any) -> dict[str, Any]:
    """
    Turn CLI flag values into configuration overrides.

    Boolean switches only override when given, so rna.toml defaults survive.
    """
    jsx = {
        key: flags.pop(f"jsx_{key}")
        for key in ("pragma", "pragma_frag", "module")
    }
    overrides: dict[str, Any] = {
        "output": flags["output"],
        "targets": flags["targets"],
        "name": flags["name"],
        "format": flags["format"],
        "link": flags["link"],
        "port": flags["port"],
        "watch": True if flags["watch"] or flags["serve"] else None,
        "serve": True if flags["serve"] else None,
        "bundle": True if flags["bundle"] else None,
        "production": True if flags["production"] else None,
        "recursive": True if flags["recursive"] else None,
        "analyze": True if flags["analyze"] else None,
        "use_targets": False if flags["no_targets"] else None,
        "map": False if flags["no_map"] else None,
        "lint": False if flags["no_lint"] else None,
    }
    if any(jsx.values()):
        overrides["jsx"] = jsx
    return overrides


def serve_directory(project: Project, plans: list[BundlePlan], config: BuildConfig) -> Path:
    """Directory served with ``--serve``: the output directory."""
    if config.output:
        output = project.file(config.output)
    elif plans and plans[0].output is not None:
        output = plans[0].output
    else:
        return project.root
    return output.parent if output.suffix else output


async def run_session(
    project: Project,
    plans: list[BundlePlan],
    config: BuildConfig,
    reporter: BuildReporter,
) -> BuildSummary:
    server: StaticServer | None = None
    if config.serve:
        server = StaticServer(serve_directory(project, plans, config), port=config.port)
        server.start()
        reporter.print_info(f"Serving {project.relative(server.directory)} at {server.url}")

    try:
        return await run_build(
            project,
            plans,
            config,
            listener=reporter.handle,
            on_ready=lambda summary: reporter.print_info("Watching for changes..."),
        )
    finally:
        if server is not None:
            server.stop()


def build_command(
    args: list[str] | None = typer.Argument(None, help="Files, globs, directories or workspace names"),
    output: str | None = typer.Option(None, "--output", "-o", help="The destination file or directory"),
    watch: bool = typer.Option(False, "--watch", "-w", help="Rebuild on file changes"),
    targets: str | None = typer.Option(None, "--targets", help="Browserslist query (comma-separated)"),
    no_targets: bool = typer.Option(False, "--no-targets", help="Do not transpile for targets"),
    name: str | None = typer.Option(None, "--name", help="Global name for umd/iife bundles"),
    format: str | None = typer.Option(None, "--format", help="Script format: esm, cjs, umd, iife"),
    bundle: bool = typer.Option(False, "--bundle", help="Bundle node_modules dependencies"),
    production: bool = typer.Option(False, "--production", help="Minify output"),
    no_map: bool = typer.Option(False, "--no-map", help="Do not emit source maps"),
    no_lint: bool = typer.Option(False, "--no-lint", help="Do not lint sources"),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Also build workspace dependencies"),
    link: str | None = typer.Option(None, "--link", help="Linked dependencies to build (comma-separated patterns)"),
    analyze: bool = typer.Option(False, "--analyze", help="Print a bundle size report"),
    jsx_pragma: str | None = typer.Option(None, "--jsx-pragma", help="JSX factory"),
    jsx_pragma_frag: str | None = typer.Option(None, "--jsx-pragma-frag", help="JSX fragment factory"),
    jsx_module: str | None = typer.Option(None, "--jsx-module", help="Module to import the JSX factory from"),
    serve: bool = typer.Option(False, "--serve", help="Serve the output directory (implies --watch)"),
    port: int | None = typer.Option(None, "--port", help="Port for --serve"),
) -> None:
    """
    Build scripts, styles, pages and manifests.

    Without arguments, builds the project (or every workspace of a monorepo)
    from its package.json fields.
    """
    patterns = args or []
    project = Project(find_project_root())

    try:
        overrides = collect_overrides(
            output=output,
            watch=watch,
            targets=targets,
            no_targets=no_targets,
            name=name,
            format=format,
            bundle=bundle,
            production=production,
            no_map=no_map,
            no_lint=no_lint,
            recursive=recursive,
            link=link,
            analyze=analyze,
            jsx_pragma=jsx_pragma,
            jsx_pragma_frag=jsx_pragma_frag,
            jsx_module=jsx_module,
            serve=serve,
            port=port,
        )
        config = load_config(project.root, overrides)
        build_targets = resolve(project, patterns, recursive=config.recursive, link=config.link)
        plans = plan_bundles(project, build_targets, config, patterns)
    except RnaError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    reporter = BuildReporter(project)
    try:
        summary = asyncio.run(run_session(project, plans, config, reporter))
    except KeyboardInterrupt:
        typer.echo("\nWatch mode stopped.")
        return
    except RnaError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    for plan, error in summary.config_errors:
        source = project.relative(plan.input) if plan.input is not None else plan.kind
        reporter.print_error(f"{plan.kind} {source}: {error.message}")

    if not summary.ok:
        raise typer.Exit(code=1)
