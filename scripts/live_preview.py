#!/usr/bin/env python3
"""
Live LaTeX preview CLI

Builds LaTeX projects on change and serves a synchronized PDF preview.

Commands:
    serve    - Watch a project, rebuild on change, serve viewers over WebSocket
    build    - Build a project once and report the outcome
    forward  - Map source FILE:LINE to a PDF position using SyncTeX data
    inverse  - Map a PDF position back to FILE:LINE

Examples:\n

    live_preview.py serve thesis/main.tex                      # Watch and serve

    live_preview.py serve thesis/chapters/intro.tex --port 9000

    live_preview.py build thesis/chapters/intro.tex            # Builds the including root

    live_preview.py forward thesis/chapters/intro.tex 42

    live_preview.py inverse thesis/main.tex 3 120.5 310.0
"""

import asyncio
import os
from pathlib import Path
from typing import List, Optional

import typer
import uvicorn
from dotenv import load_dotenv
from typing_extensions import Annotated

from latexsync.contexts.building import BuildOrchestrator, BuildStatus
from latexsync.contexts.navigation import PositionLocator
from latexsync.contexts.resolution import RootResolver
from latexsync.editor import LoggingEditor
from latexsync.session import build_live_session
from latexsync.utils.config import Settings, load_settings
from latexsync.utils.exceptions import ConfigurationError
from latexsync.utils.logger import setup_logger
from latexsync.utils.timestamp import now

load_dotenv()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="YAML settings file (default: $LATEXSYNC_CONFIG)"),
]
SetOption = Annotated[
    Optional[List[str]],
    typer.Option("--set", "-s", help="Override a setting, e.g. triggers.debounce_s=0.5"),
]

app = typer.Typer(
    help="Build LaTeX projects on change and keep PDF viewers in sync",
    add_completion=False,
    invoke_without_command=True,
)


@app.callback()
def main(ctx: typer.Context):
    """Show help by default when no command is provided."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def _settings(config: Optional[Path], overrides: Optional[List[str]]) -> Settings:
    try:
        return load_settings(config, overrides)
    except ConfigurationError as e:
        typer.secho(f"Error: {e}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)


def _logs_path(settings: Settings) -> Path:
    """LATEXSYNC_LOGS_PATH wins over logging.log_dir."""
    return Path(os.getenv("LATEXSYNC_LOGS_PATH") or settings.logging.log_dir)


def _resolve(settings: Settings, document: Path) -> Path:
    root = RootResolver(settings.resolution).resolve_root(document)
    if root is None:
        typer.secho(f"Cannot find LaTeX root file for {document}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return root


@app.command("serve")
def serve_command(
    document: Annotated[Path, typer.Argument(help="Any document of the project", exists=True)],
    host: Annotated[Optional[str], typer.Option("--host", help="Bind address")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Bind port")] = None,
    initial_build: Annotated[
        bool, typer.Option("--build/--no-build", help="Build once before serving")
    ] = True,
    config: ConfigOption = None,
    overrides: SetOption = None,
):
    """
    Watch a project, rebuild it on change and serve viewers.

    Viewers connect to ws://HOST:PORT/ws, announce the project with a
    "ready" message and fetch the PDF from /output?project=ROOT.
    """
    settings = _settings(config, overrides)
    log_file = setup_logger(
        context_name="serve",
        log_dir=_logs_path(settings) / f"serve_{now()}",
        extra_provenance={"Toolchain": ", ".join(s.command for s in settings.build.toolchain)},
        console_level=settings.logging.console_level,
    )
    host = host or settings.preview.host
    port = port or settings.preview.port

    async def _serve() -> None:
        session = build_live_session(settings, LoggingEditor(), workspace=document.resolve().parent)
        root = session.notify_document_opened(document)
        if root is None:
            typer.secho(f"{document} is not a LaTeX document", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1)

        typer.secho(f"\nProject: {root}", fg=typer.colors.BLUE, bold=True)
        typer.echo(f"Viewer:  ws://{host}:{port}/ws")
        typer.echo(f"PDF:     http://{host}:{port}/output?project={root}")
        typer.echo(f"Log:     {log_file}\n")

        if initial_build:
            session.request_manual_build(root)
        session.watcher.start()

        server = uvicorn.Server(uvicorn.Config(session.create_app(), host=host, port=port, log_level="warning"))
        try:
            await server.serve()
        finally:
            await session.close()

    asyncio.run(_serve())


@app.command("build")
def build_command(
    document: Annotated[Path, typer.Argument(help="Any document of the project", exists=True)],
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Show detailed toolchain output")
    ] = False,
    config: ConfigOption = None,
    overrides: SetOption = None,
):
    """
    Build the project containing DOCUMENT once.

    Exit code is 0 on success, 1 on failure and 3 when the output was
    produced with errors.
    """
    settings = _settings(config, overrides)
    setup_logger(
        context_name="build",
        log_dir=_logs_path(settings) / f"build_{now()}",
        console_level="DEBUG" if verbose else settings.logging.console_level,
    )
    root = _resolve(settings, document)

    typer.secho(f"\nBuilding: {root}", fg=typer.colors.BLUE, bold=True)
    typer.echo(f"Steps: {', '.join(s.name for s in settings.build.toolchain)}\n")

    orchestrator = BuildOrchestrator(settings.build, verbose=verbose)
    outcome = asyncio.run(orchestrator.build(root))

    typer.echo("")
    if outcome.status is BuildStatus.SUCCESS:
        typer.secho("✓ Build succeeded", fg=typer.colors.GREEN, bold=True)
        typer.echo(f"  Warnings: {len(outcome.warnings)}")
    elif outcome.status is BuildStatus.PARTIAL:
        typer.secho(
            f"! Output produced with {len(outcome.errors)} errors", fg=typer.colors.YELLOW, bold=True
        )
    else:
        typer.secho(f"✗ Build failed with {len(outcome.errors)} errors", fg=typer.colors.RED, bold=True)

    for error in outcome.errors[:10]:
        typer.secho(f"  - {error}", fg=typer.colors.RED)
    if len(outcome.errors) > 10:
        typer.echo(f"  ... and {len(outcome.errors) - 10} more")

    if outcome.output_path:
        typer.echo(f"  Output: {outcome.output_path}")
    typer.echo(f"  Time: {outcome.elapsed_s:.2f}s\n")

    exit_codes = {BuildStatus.SUCCESS: 0, BuildStatus.PARTIAL: 3}
    raise typer.Exit(code=exit_codes.get(outcome.status, 1))


def _locator(settings: Settings, root: Path) -> PositionLocator:
    orchestrator = BuildOrchestrator(settings.build)
    locator = PositionLocator(settings.navigation, orchestrator.output_dir)
    if locator.reload(root, revision=0) is None:
        typer.secho(f"No SyncTeX data for {root}; build it first", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return locator


@app.command("forward")
def forward_command(
    document: Annotated[Path, typer.Argument(help="Source file", exists=True)],
    line: Annotated[int, typer.Argument(help="Source line (1-based)", min=1)],
    config: ConfigOption = None,
    overrides: SetOption = None,
):
    """Map DOCUMENT:LINE to a page and position in the PDF."""
    settings = _settings(config, overrides)
    root = _resolve(settings, document)
    position = _locator(settings, root).forward(root, document.resolve(), line)
    if position is None:
        typer.secho(f"No position recorded for {document}:{line}", fg=typer.colors.YELLOW)
        raise typer.Exit(code=1)
    typer.echo(f"page {position.page}  x {position.x:.2f}  y {position.y:.2f}")


@app.command("inverse")
def inverse_command(
    root: Annotated[Path, typer.Argument(help="Root document", exists=True)],
    page: Annotated[int, typer.Argument(help="PDF page (1-based)", min=1)],
    x: Annotated[float, typer.Argument(help="Points from the left edge")],
    y: Annotated[float, typer.Argument(help="Points from the top edge")],
    config: ConfigOption = None,
    overrides: SetOption = None,
):
    """Map a PDF position back to a source FILE:LINE."""
    settings = _settings(config, overrides)
    root = root.resolve()
    source = _locator(settings, root).inverse(root, page, x, y)
    if source is None:
        typer.secho(f"Nothing recorded near page {page} ({x}, {y})", fg=typer.colors.YELLOW)
        raise typer.Exit(code=1)
    typer.echo(f"{source.path}:{source.line}")


if __name__ == "__main__":
    app()
