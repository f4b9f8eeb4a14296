"""
Resolution context logger.

Provides logging interface for resolution context with automatic [root] prefix.
"""

from pathlib import Path
from typing import List

from loguru import logger

CONTEXT_PREFIX = "[root]"


def _log_info(message: str) -> None:
    """Log info message with [root] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [root] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [root] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


def log_root_found(document: Path, root: Path, how: str) -> None:
    """Log a freshly resolved root and the rule that produced it."""
    if document == root:
        _log_info(f"{document.name} is its own root ({how})")
    else:
        _log_info(f"Root for {document.name}: {root} ({how})")


def log_ambiguous_root(document: Path, candidates: List[Path], chosen: Path) -> None:
    """Log a tie-break between several including roots."""
    names = ", ".join(str(c) for c in candidates)
    _log_warning(f"{document.name} is included by {len(candidates)} roots ({names}); using {chosen}")
