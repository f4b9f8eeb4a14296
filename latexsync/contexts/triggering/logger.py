"""
Triggering context logger.

Provides logging interface for triggering context with automatic [trigger] prefix.
"""

from pathlib import Path

from loguru import logger

CONTEXT_PREFIX = "[trigger]"


def _log_info(message: str) -> None:
    """Log info message with [trigger] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [trigger] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [trigger] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


def log_decision(path: Path, source: str, decision: str, reason: str = "") -> None:
    """Log what a trigger led to."""
    suffix = f" ({reason})" if reason else ""
    if decision == "started":
        _log_info(f"{source} on {path.name}: build started{suffix}")
    else:
        _log_debug(f"{source} on {path.name}: {decision}{suffix}")
