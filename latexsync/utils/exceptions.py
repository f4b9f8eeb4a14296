"""Exception taxonomy shared by every context.

Components raise these at the point of detection and catch them at their own
boundary, turning them into structured outcomes. Only ConfigurationError is
meant to reach callers.
"""

from pathlib import Path
from typing import Optional


class LatexSyncError(Exception):
    """Base class for all latexsync errors."""


class ConfigurationError(LatexSyncError):
    """Raised when settings cannot be loaded or fail validation."""


class ResolutionError(LatexSyncError):
    """
    Raised when no root document can be determined for a path.

    Attributes:
        document: The document whose root was requested
        reason: Short human-readable explanation
    """

    def __init__(self, document: Path, reason: str):
        self.document = document
        self.reason = reason
        super().__init__(f"Cannot resolve root for {document}: {reason}")


class ToolchainStepFailure(LatexSyncError):
    """
    Raised when a toolchain step exits unsuccessfully.

    Attributes:
        step_name: Name of the failing step
        exit_code: Process exit code (None if the process never exited normally)
        fatal: True if the build sequence must abort
        diagnostics: Captured diagnostic text
    """

    def __init__(
        self,
        step_name: str,
        exit_code: Optional[int],
        fatal: bool,
        diagnostics: str = "",
    ):
        self.step_name = step_name
        self.exit_code = exit_code
        self.fatal = fatal
        self.diagnostics = diagnostics

        kind = "fatal" if fatal else "recoverable"
        super().__init__(f"Step '{step_name}' failed ({kind}, exit code {exit_code})")


class ToolchainTimeout(ToolchainStepFailure):
    """Raised when a toolchain step exceeds its wall-clock bound. Always fatal."""

    def __init__(self, step_name: str, timeout_s: float, diagnostics: str = ""):
        self.timeout_s = timeout_s
        super().__init__(step_name, None, fatal=True, diagnostics=diagnostics)
        self.args = (f"Step '{step_name}' timed out after {timeout_s:.1f}s",)


class MappingUnavailable(LatexSyncError):
    """Raised when the SyncTeX mapping artifact is missing or malformed."""


class SessionDeliveryFailure(LatexSyncError):
    """Raised when an event cannot be written to a viewer session."""
