"""
Editor-side collaborator interface.

The core never depends on a particular editor's extension API. A host
adapter implements EditorBridge and receives build-status updates and
navigation requests through it.
"""

from pathlib import Path
from typing import List, Protocol, Tuple

from loguru import logger


class EditorBridge(Protocol):
    def build_status(self, root: Path, state: str, message: str) -> None:
        """
        Report build progress.

        state is one of "started", "success", "partial", "failure",
        "cancelled" or "unresolved".
        """
        ...

    def navigate_to(self, path: Path, line: int) -> None:
        """Ask the editor to reveal path:line."""
        ...


class LoggingEditor:
    """EditorBridge for headless use: statuses and jumps go to the log."""

    def build_status(self, root: Path, state: str, message: str) -> None:
        if state in ("failure", "unresolved"):
            logger.error(f"[editor] {root.name}: {message}")
        elif state == "partial":
            logger.warning(f"[editor] {root.name}: {message}")
        else:
            logger.info(f"[editor] {root.name}: {message}")

    def navigate_to(self, path: Path, line: int) -> None:
        logger.info(f"[editor] Go to {path}:{line}")


class RecordingEditor:
    """EditorBridge that keeps every call, for embedding hosts that poll."""

    def __init__(self):
        self.statuses: List[Tuple[Path, str, str]] = []
        self.navigations: List[Tuple[Path, int]] = []

    def build_status(self, root: Path, state: str, message: str) -> None:
        self.statuses.append((root, state, message))

    def navigate_to(self, path: Path, line: int) -> None:
        self.navigations.append((path, line))

    def states(self) -> List[str]:
        return [state for _, state, _ in self.statuses]
