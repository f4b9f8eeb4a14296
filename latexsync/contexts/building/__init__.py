"""
Building Context

Responsibilities:
- Runs the configured toolchain steps against a root document
- Distinguishes fatal from recoverable step failures
- Bounds every step by a timeout and stops whole process trees on cancel
- Parses the toolchain log for errors and warnings

Owns: BuildJob lifecycle, external process execution
Never: Touches viewer sessions or build revisions (reports outcomes upward)
"""

from latexsync.contexts.building.orchestrator import (
    BuildJob,
    BuildOrchestrator,
    BuildOutcome,
    BuildStatus,
    StepResult,
)

__all__ = ["BuildJob", "BuildOrchestrator", "BuildOutcome", "BuildStatus", "StepResult"]
