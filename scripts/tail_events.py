#!/usr/bin/env python3
"""
Build event log viewer

Reads the JSON Lines build log written when LATEXSYNC_EVENTS_FILE (or
logging.events_file) is set.

Commands:
    show     - Print the most recent events
    summary  - Per-root build counts and the latest revision

Examples:\n

    tail_events.py show                                  # Last 10 events

    tail_events.py show -e build_completed -n 20

    tail_events.py show -r thesis/main.tex --compact

    tail_events.py summary
"""

import json
from collections import Counter, defaultdict
from pathlib import Path
from typing import Dict, Optional

import typer
from dotenv import load_dotenv
from typing_extensions import Annotated

from latexsync.utils.event_logging import BUILD_EVENT_TYPES, default_events_file, get_recent_events
from latexsync.utils.timestamp import format_timestamp

load_dotenv()

FileOption = Annotated[
    Optional[Path],
    typer.Option("--file", "-f", help="Event log (default: $LATEXSYNC_EVENTS_FILE)"),
]

app = typer.Typer(
    help="View the latexsync build event log",
    add_completion=False,
    invoke_without_command=True,
)


@app.callback()
def main(ctx: typer.Context):
    """Show help by default when no command is provided."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def _events_file(events_file: Optional[Path]) -> Path:
    events_file = events_file or default_events_file()
    if events_file is None:
        typer.secho(
            "No event log configured (set LATEXSYNC_EVENTS_FILE or pass --file)",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=2)
    return events_file


@app.command("show")
def show_command(
    n: Annotated[int, typer.Option("--num", "-n", help="Number of events to show", min=1)] = 10,
    root: Annotated[
        Optional[Path], typer.Option("--root", "-r", help="Only events for this root document")
    ] = None,
    event_type: Annotated[
        Optional[str], typer.Option("--event-type", "-e", help="Only events of this type")
    ] = None,
    compact: Annotated[
        bool, typer.Option("--compact", "-c", help="One JSON object per line")
    ] = False,
    relative: Annotated[
        bool, typer.Option("--relative", help="Relative timestamps (e.g., '2h ago')")
    ] = False,
    events_file: FileOption = None,
):
    """
    Print the last N build events, oldest first.

    Examples:\n

        $ tail_events.py show -n 5 -e trigger_suppressed
    """
    events_file = _events_file(events_file)
    if event_type and event_type not in BUILD_EVENT_TYPES:
        typer.secho(
            f"Unknown event type '{event_type}' (one of: {', '.join(sorted(BUILD_EVENT_TYPES))})",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=2)

    events = get_recent_events(
        n=n,
        root=str(root.resolve()) if root else None,
        event_type=event_type,
        events_file=events_file,
    )
    if not events:
        typer.secho("No events found", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1)

    for event in events:
        if compact:
            typer.echo(json.dumps(event))
            continue

        when = format_timestamp(event.get("timestamp", ""), relative=relative)
        status = event.get("status")
        color = {"success": typer.colors.GREEN, "partial": typer.colors.YELLOW}.get(
            status, typer.colors.RED if status else typer.colors.BLUE
        )
        typer.secho(f"{when}  {event.get('event_type')}  {Path(event.get('root', '')).name}", fg=color, bold=True)
        details = {k: v for k, v in event.items() if k not in ("timestamp", "event_type")}
        for key, value in details.items():
            typer.echo(f"    {key:<14} {value}")
        typer.echo("")


@app.command("summary")
def summary_command(events_file: FileOption = None):
    """Count completed builds per root and status, with the latest revision."""
    events_file = _events_file(events_file)
    completed = get_recent_events(
        n=10**9, event_type="build_completed", events_file=events_file
    )
    if not completed:
        typer.secho("No completed builds recorded", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1)

    statuses: Dict[str, Counter] = defaultdict(Counter)
    revisions: Dict[str, int] = {}
    for event in completed:
        root = event.get("root", "?")
        statuses[root][event.get("status", "unknown")] += 1
        if "revision" in event:
            revisions[root] = max(revisions.get(root, 0), event["revision"])

    for root in sorted(statuses):
        counts = ", ".join(f"{status} {count}" for status, count in sorted(statuses[root].items()))
        typer.secho(root, fg=typer.colors.BLUE, bold=True)
        typer.echo(f"    builds    {counts}")
        typer.echo(f"    revision  {revisions.get(root, 0)}")


if __name__ == "__main__":
    app()
