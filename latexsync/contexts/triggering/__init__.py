"""
Triggering Context

Responsibilities:
- Decides whether an event starts, defers, queues or suppresses a build
- Serializes builds per root (Idle / Building / BuildingWithPendingRerun)
- Owns Project state and build revisions (single writer)
- Debounces change-driven triggers through an injectable clock
- Polls project dependencies for external changes

Owns: Project table, build revisions, trigger policy
Never: Runs processes directly
"""

from latexsync.contexts.triggering.clock import LoopClock, VirtualClock
from latexsync.contexts.triggering.coordinator import (
    BuildState,
    Project,
    TriggerCoordinator,
    TriggerDecision,
    TriggerSource,
)
from latexsync.contexts.triggering.watcher import PollingWatcher

__all__ = [
    "BuildState",
    "LoopClock",
    "PollingWatcher",
    "Project",
    "TriggerCoordinator",
    "TriggerDecision",
    "TriggerSource",
    "VirtualClock",
]
