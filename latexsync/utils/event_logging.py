"""
Build event logging utilities (Tier 2 logging).

Appends structured build events to a JSON Lines file so that builds can be
audited across sessions (scripts/tail_events.py reads them back).

For detailed within-context logging (Tier 1), use latexsync.utils.logger instead.

Usage:
    from latexsync.utils.event_logging import log_build_event

    log_build_event(
        event_type="build_completed",
        root="/home/me/thesis/main.tex",
        source="save",
        status="success",
        revision=4,
    )
"""

import json
import os
from pathlib import Path
from typing import Dict, List, Optional, Union

from dotenv import load_dotenv

from latexsync.utils.timestamp import now_exact

load_dotenv()

# Event types recognized by the tail CLI
BUILD_EVENT_TYPES = {
    "build_started",
    "build_completed",
    "build_cancelled",
    "trigger_suppressed",
}


def default_events_file() -> Optional[Path]:
    """Events file from LATEXSYNC_EVENTS_FILE, or None when event logging is off."""
    value = os.getenv("LATEXSYNC_EVENTS_FILE")
    return Path(value) if value else None


def log_build_event(
    event_type: str,
    root: Union[str, Path],
    source: str,
    events_file: Optional[Path] = None,
    **extra_fields,
) -> None:
    """
    Append one event to the build event log.

    No-op when neither events_file nor LATEXSYNC_EVENTS_FILE is set.

    Args:
        event_type: Type of event (e.g., "build_started", "build_completed")
        root: Root document the event concerns
        source: Trigger source (e.g., "save", "change", "manual", "periodic")
        events_file: Explicit log path (defaults to LATEXSYNC_EVENTS_FILE)
        **extra_fields: Additional event-specific fields
    """
    events_file = events_file or default_events_file()
    if events_file is None:
        return

    events_file.parent.mkdir(parents=True, exist_ok=True)

    event = {
        "timestamp": now_exact(),
        "event_type": event_type,
        "root": str(root),
        "source": source,
        **extra_fields,
    }

    with open(events_file, "a", encoding="utf-8") as f:
        f.write(json.dumps(event, default=str) + "\n")


def get_recent_events(
    n: int = 10,
    root: Optional[str] = None,
    event_type: Optional[str] = None,
    events_file: Optional[Path] = None,
) -> List[Dict]:
    """
    Get the last n events from the build log, optionally filtered.

    Args:
        n: Number of recent events to return (default: 10)
        root: Filter to only events for this root document (optional)
        event_type: Filter to only events of this type (optional)
        events_file: Explicit log path (defaults to LATEXSYNC_EVENTS_FILE)

    Returns:
        List of event dicts (most recent last)
    """
    events_file = events_file or default_events_file()
    if events_file is None or not events_file.exists():
        return []

    events = []
    with open(events_file, "r", encoding="utf-8") as f:
        for line in f:
            try:
                events.append(json.loads(line.strip()))
            except json.JSONDecodeError:
                # Skip malformed lines
                continue

    if root:
        events = [e for e in events if e.get("root") == str(root)]

    if event_type:
        events = [e for e in events if e.get("event_type") == event_type]

    return events[-n:] if len(events) > n else events
