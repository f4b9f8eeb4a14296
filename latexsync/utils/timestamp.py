"""Timestamps for log directories and the build event log."""

from datetime import datetime

# (seconds per unit, suffix), largest first
_RELATIVE_UNITS = ((86400, "d"), (3600, "h"), (60, "m"))


def now_exact() -> str:
    """ISO 8601 local time with microseconds (event log records)."""
    return datetime.now().isoformat()


def now() -> str:
    """Compact local time for directory names, e.g. 20251114_123456."""
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def format_timestamp(iso_timestamp: str, relative: bool = False) -> str:
    """
    Render an event-log timestamp for humans.

    Returns "2025-11-13 18:45:40", or "2h ago" when relative is set. Anything
    that does not parse as ISO 8601 is returned unchanged.
    """
    try:
        moment = datetime.fromisoformat(iso_timestamp)
    except (ValueError, TypeError):
        return iso_timestamp

    if not relative:
        return moment.strftime("%Y-%m-%d %H:%M:%S")

    seconds = (datetime.now() - moment).total_seconds()
    suffix = "ago" if seconds >= 0 else "from now"
    seconds = int(abs(seconds))
    for size, unit in _RELATIVE_UNITS:
        if seconds >= size:
            return f"{seconds // size}{unit} {suffix}"
    return f"{seconds}s {suffix}"
