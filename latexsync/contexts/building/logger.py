"""
Building context logger.

Provides logging interface for building context with automatic [build] prefix.
All building modules should import from this module, not from loguru directly.
"""

from pathlib import Path
from typing import List

from loguru import logger

CONTEXT_PREFIX = "[build]"


def _log_info(message: str) -> None:
    """Log info message with [build] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_success(message: str) -> None:
    """Log success message with [build] prefix."""
    logger.success(f"{CONTEXT_PREFIX} {message}")


def _log_error(message: str) -> None:
    """Log error message with [build] prefix."""
    logger.error(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [build] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [build] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


def log_build_start(root: Path, step_names: List[str], working_dir: Path) -> None:
    """Log start of a build with context."""
    _log_info(f"Building {root.name}")
    _log_debug(f"  Root: {root}")
    _log_debug(f"  Working directory: {working_dir}")
    _log_debug(f"  Steps: {', '.join(step_names)}")


def log_step_result(step) -> None:
    """Log one finished toolchain step (StepResult)."""
    if step.timed_out:
        _log_error(f"  {step.name}: timed out after {step.elapsed_s:.2f}s")
    elif step.exit_code == 0:
        _log_debug(f"  {step.name}: ok ({step.elapsed_s:.2f}s)")
    else:
        kind = "fatal" if step.fatal else "recoverable"
        _log_warning(f"  {step.name}: exit code {step.exit_code}, {kind} ({step.elapsed_s:.2f}s)")


def log_build_outcome(outcome, verbose: bool = False) -> None:
    """
    Log a build outcome with diagnostics.

    Args:
        outcome: BuildOutcome from BuildOrchestrator.build()
        verbose: Show more errors/warnings and always dump toolchain output
    """
    name = outcome.root.name
    status = outcome.status.value

    if status == "cancelled":
        _log_info(f"{name}: build cancelled ({outcome.elapsed_s:.2f}s)")
        return

    if status == "success":
        _log_success(f"{name}: built with {len(outcome.warnings)} warnings ({outcome.elapsed_s:.2f}s)")
    elif status == "partial":
        _log_warning(
            f"{name}: built with {len(outcome.errors)} errors, output may be degraded "
            f"({outcome.elapsed_s:.2f}s)"
        )
    else:
        _log_error(f"{name}: build failed with {len(outcome.errors)} errors ({outcome.elapsed_s:.2f}s)")

    error_limit = 10 if verbose else 5
    for i, err in enumerate(outcome.errors[:error_limit], 1):
        _log_error(f"  Error {i}: {err}")
    if len(outcome.errors) > error_limit:
        _log_error(f"  ... and {len(outcome.errors) - error_limit} more errors")

    if outcome.warnings:
        warning_limit = 10 if verbose else 3
        for i, warn in enumerate(outcome.warnings[:warning_limit], 1):
            _log_debug(f"  Warning {i}: {warn}")
        if len(outcome.warnings) > warning_limit:
            _log_debug(f"  ... and {len(outcome.warnings) - warning_limit} more warnings")

    # Raw output bypasses the format template so multi-line output stays readable
    if verbose or status == "failure":
        for step in outcome.steps:
            if step.stdout:
                logger.opt(raw=True).debug(
                    f"\n{'=' * 80}\n{step.name.upper()} STDOUT:\n{'=' * 80}\n{step.stdout}\n"
                )
            if step.stderr:
                logger.opt(raw=True).debug(
                    f"\n{'=' * 80}\n{step.name.upper()} STDERR:\n{'=' * 80}\n{step.stderr}\n"
                )
