"""
Loguru sinks for a live-preview session (Tier 1 logging).

A session writes everything to <log_dir>/<session>.log and echoes the
configured level to the console. The first lines of every log identify the
run (command line, working directory, interpreter, latexsync version and the
toolchain in use) so a log file can be read on its own.

Per-context prefixes come from contexts/{context}/logger.py.
"""

import sys
from pathlib import Path
from typing import Dict, Optional

from loguru import logger

from latexsync import __version__

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <7} | {message}"
CONSOLE_FORMAT = "<dim>{time:HH:mm:ss}</dim> | <level>{level: <7}</level> | <level>{message}</level>"

# Console colors per level; INFO keeps loguru's default
LEVEL_COLORS = {
    "DEBUG": "<blue>",
    "WARNING": "<yellow>",
    "ERROR": "<red>",
    "CRITICAL": "<bold><red>",
}


def setup_logger(
    context_name: str,
    log_dir: Path,
    extra_provenance: Optional[Dict[str, str]] = None,
    console_level: str = "INFO",
    level_colors: Optional[Dict[str, str]] = None,
) -> Path:
    """
    Route loguru output to a session log file and the console.

    Args:
        context_name: Session name, used for the file name ("serve", "build")
        log_dir: Directory created for this session
        extra_provenance: Extra header lines (e.g., {"Toolchain": "pdflatex"})
        console_level: Minimum level shown on the console; the file gets DEBUG
        level_colors: Console color overrides (e.g., {"INFO": "<cyan>"})

    Returns:
        Path to the session log file
    """
    log_dir.mkdir(exist_ok=True, parents=True)
    log_file = log_dir / f"{context_name}.log"

    logger.remove()
    for level_name, color in {**LEVEL_COLORS, **(level_colors or {})}.items():
        logger.level(level_name, color=color)

    logger.add(log_file, format=FILE_FORMAT, level="DEBUG", encoding="utf-8")
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=console_level.upper(), colorize=True)

    log_provenance({"Session": context_name, **(extra_provenance or {})})
    return log_file


def log_provenance(extra_context: Optional[Dict[str, str]] = None) -> None:
    """Write the run header: how latexsync was invoked and with what."""
    header = {
        "Command": " ".join(sys.argv),
        "Working directory": str(Path.cwd()),
        "Python": sys.version.split()[0],
        "latexsync": __version__,
        **(extra_context or {}),
    }
    width = max(len(key) for key in header)

    logger.info("-" * 72)
    for key, value in header.items():
        logger.info(f"{key:<{width}} : {value}")
    logger.info("-" * 72)
