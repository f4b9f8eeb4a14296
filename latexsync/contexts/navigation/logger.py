"""
Navigation context logger.

Provides logging interface for navigation context with automatic [synctex] prefix.
"""

from loguru import logger

CONTEXT_PREFIX = "[synctex]"


def _log_info(message: str) -> None:
    """Log info message with [synctex] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [synctex] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [synctex] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")
