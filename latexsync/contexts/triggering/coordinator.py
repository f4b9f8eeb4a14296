"""
Trigger policy and per-project build state.

State machine per root:

    Idle + trigger                       -> Building (start job)
    Building + trigger                   -> BuildingWithPendingRerun (coalesce)
    Building + job completes             -> Idle
    BuildingWithPendingRerun + completes -> Building (start the queued rerun)

Change-driven triggers (save, external change, periodic check) are debounced:
a burst inside the interval collapses into one trigger when the timer fires.
Manual builds bypass the debounce and are never suppressed. External
changes (watcher, periodic check) within suppress_after_build_s of a finished
build are suppressed.

The coordinator is the only writer of Project state and build revisions. All
methods must be called from the event loop that runs the builds.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Set

from loguru import logger

from latexsync.contexts.building import BuildOrchestrator, BuildOutcome, BuildStatus
from latexsync.contexts.navigation import PositionLocator
from latexsync.contexts.preview import PreviewHub
from latexsync.contexts.resolution import RootResolver
from latexsync.contexts.triggering.clock import Clock, LoopClock, TimerHandle
from latexsync.contexts.triggering.logger import _log_debug, _log_info, log_decision
from latexsync.editor import EditorBridge
from latexsync.utils.config import TriggerSettings
from latexsync.utils.event_logging import log_build_event
from latexsync.utils.exceptions import ResolutionError


class TriggerSource(str, Enum):
    SAVE = "save"
    CHANGE = "change"
    PERIODIC = "periodic"
    MANUAL = "manual"


class BuildState(str, Enum):
    IDLE = "idle"
    BUILDING = "building"
    BUILDING_WITH_PENDING_RERUN = "building_with_pending_rerun"


class TriggerDecision(str, Enum):
    STARTED = "started"
    QUEUED = "queued"
    DEFERRED = "deferred"
    SUPPRESSED = "suppressed"


# Sources that may be caused by the toolchain's own writes
EXTERNAL_SOURCES = {TriggerSource.CHANGE, TriggerSource.PERIODIC}


@dataclass(eq=False)
class Project:
    """
    A root document and everything the coordinator tracks for it.

    Attributes:
        root: Absolute path of the root document
        dependencies: Files pulled into the build (watch scope)
        revision: Number of the latest build that produced output
        state: Position in the build state machine
        last_outcome: Outcome of the latest non-cancelled build
        last_success_at: Wall-clock time of the latest build that produced output
        open_documents: Documents of this project currently open in the editor
    """

    root: Path
    dependencies: FrozenSet[Path] = frozenset()
    revision: int = 0
    state: BuildState = BuildState.IDLE
    last_outcome: Optional[BuildOutcome] = None
    last_success_at: Optional[float] = None
    last_finished_at: Optional[float] = None
    open_documents: Set[Path] = field(default_factory=set)
    pending_source: Optional[TriggerSource] = None
    debounce_timer: Optional[TimerHandle] = None
    debounce_source: Optional[TriggerSource] = None
    task: Optional["asyncio.Task"] = None
    discard_when_idle: bool = False


class TriggerCoordinator:
    """
    Entry point for build triggers.

    Attributes:
        settings: Trigger policy settings
        resolver: Root lookup
        orchestrator: Runs builds
        locator: Reloaded after every build that produced output
        hub: Receives refresh / failure notices
        editor: Receives build-status updates
        clock: Debounce timer source
        cancel_superseded: Stop the running job when a rerun is queued
    """

    def __init__(
        self,
        settings: TriggerSettings,
        resolver: RootResolver,
        orchestrator: BuildOrchestrator,
        locator: PositionLocator,
        hub: PreviewHub,
        editor: EditorBridge,
        clock: Optional[Clock] = None,
        cancel_superseded: bool = True,
        events_file: Optional[Path] = None,
    ):
        self.settings = settings
        self.resolver = resolver
        self.orchestrator = orchestrator
        self.locator = locator
        self.hub = hub
        self.editor = editor
        self.clock = clock or LoopClock()
        self.cancel_superseded = cancel_superseded
        self.events_file = events_file
        self._projects: Dict[Path, Project] = {}
        # Survives project discard so revisions never restart
        self._revisions: Dict[Path, int] = {}
        self._active_document: Optional[Path] = None

    # Queries

    def project(self, root: Path) -> Optional[Project]:
        return self._projects.get(Path(root).resolve())

    def projects(self) -> List[Project]:
        return list(self._projects.values())

    def state(self, root: Path) -> BuildState:
        project = self.project(root)
        return project.state if project else BuildState.IDLE

    def revision(self, root: Path) -> int:
        return self._revisions.get(Path(root).resolve(), 0)

    # Editor entry points

    def notify_document_saved(self, path: Path) -> TriggerDecision:
        return self.trigger(path, TriggerSource.SAVE)

    def notify_document_changed(self, path: Path) -> TriggerDecision:
        return self.trigger(path, TriggerSource.CHANGE)

    def notify_periodic_check(self, path: Path) -> TriggerDecision:
        return self.trigger(path, TriggerSource.PERIODIC)

    def request_manual_build(self, path: Path) -> TriggerDecision:
        return self.trigger(path, TriggerSource.MANUAL)

    def set_active_document(self, path: Optional[Path]) -> None:
        """The document focused in the editor; external changes to it are ignored."""
        self._active_document = Path(path).resolve() if path else None

    def notify_document_opened(self, path: Path) -> Optional[Path]:
        """Resolve path's project and mark the document open. Returns the root."""
        path = Path(path).resolve()
        root = self.resolver.resolve_root(path)
        if root is None:
            return None
        project = self._ensure_project(root)
        project.open_documents.add(path)
        project.discard_when_idle = False
        return root

    def notify_document_closed(self, path: Path) -> None:
        """Mark path closed; an idle project with no open documents is discarded."""
        path = Path(path).resolve()
        for project in list(self._projects.values()):
            if path not in project.open_documents:
                continue
            project.open_documents.discard(path)
            if not project.open_documents:
                project.discard_when_idle = True
                self._discard_if_idle(project)

    # Policy

    def trigger(self, path: Path, source: TriggerSource) -> TriggerDecision:
        """
        Apply trigger policy to an event on path.

        Returns:
            What happened: STARTED, QUEUED (coalesced into a pending rerun),
            DEFERRED (debounce timer armed) or SUPPRESSED
        """
        path = Path(path).resolve()
        source = TriggerSource(source)

        if source is not TriggerSource.MANUAL:
            if not self.resolver.is_project_file(path):
                return self._suppress(path, source, "not a project file")
            if source is TriggerSource.SAVE and not self.settings.build_on_save:
                return self._suppress(path, source, "build on save disabled")
            if source in EXTERNAL_SOURCES and not self.settings.build_on_change:
                return self._suppress(path, source, "build on change disabled")
            if source in EXTERNAL_SOURCES and path == self._active_document:
                return self._suppress(path, source, "active document")

        if self.resolver.is_project_file(path):
            # The file may have gained or lost inclusion directives
            self.resolver.invalidate(path)

        try:
            root = self.resolver.require_root(path)
        except ResolutionError as exc:
            self.editor.build_status(path, "unresolved", f"Cannot find LaTeX root file: {exc.reason}")
            return self._suppress(path, source, exc.reason)

        project = self._ensure_project(root)

        if source is TriggerSource.MANUAL:
            self._cancel_debounce(project)
            return self._request_build(project, source, path)

        if source in EXTERNAL_SOURCES and self._within_quiet_period(project):
            return self._suppress(path, source, "just built")

        if self.settings.debounce_s > 0:
            self._arm_debounce(project, source)
            log_decision(path, source.value, TriggerDecision.DEFERRED.value)
            return TriggerDecision.DEFERRED

        return self._request_build(project, source, path)

    # Lifecycle helpers

    async def wait_idle(self, root: Optional[Path] = None) -> None:
        """Wait until no build (including queued reruns) is running."""
        while True:
            projects = [self.project(root)] if root else self.projects()
            tasks = [p.task for p in projects if p and p.task and not p.task.done()]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    async def shutdown(self) -> None:
        """Drop pending timers, cancel running builds and wait for them."""
        for project in self.projects():
            self._cancel_debounce(project)
            project.pending_source = None
            if project.state is BuildState.BUILDING_WITH_PENDING_RERUN:
                project.state = BuildState.BUILDING
            if project.state is not BuildState.IDLE:
                self.orchestrator.cancel(project.root)
        await self.wait_idle()

    # Internals

    def _ensure_project(self, root: Path) -> Project:
        project = self._projects.get(root)
        if project is None:
            project = Project(
                root=root,
                dependencies=self.resolver.dependencies(root),
                revision=self._revisions.get(root, 0),
            )
            self._projects[root] = project
            _log_debug(f"Tracking project {root}")
        else:
            project.dependencies = self.resolver.dependencies(root) or project.dependencies
        return project

    def _discard_if_idle(self, project: Project) -> None:
        if project.open_documents or project.debounce_timer is not None:
            return
        if project.state is not BuildState.IDLE:
            return
        self._projects.pop(project.root, None)
        self.locator.forget(project.root)
        self.resolver.forget(project.root)
        _log_info(f"Discarded project {project.root.name} (no open documents)")

    def _suppress(self, path: Path, source: TriggerSource, reason: str) -> TriggerDecision:
        log_decision(path, source.value, TriggerDecision.SUPPRESSED.value, reason)
        log_build_event(
            "trigger_suppressed", path, source.value, events_file=self.events_file, reason=reason
        )
        return TriggerDecision.SUPPRESSED

    def _within_quiet_period(self, project: Project) -> bool:
        if project.last_finished_at is None or self.settings.suppress_after_build_s <= 0:
            return False
        return self.clock.now() - project.last_finished_at < self.settings.suppress_after_build_s

    def _arm_debounce(self, project: Project, source: TriggerSource) -> None:
        if project.debounce_timer is not None:
            project.debounce_timer.cancel()
        project.debounce_source = source
        project.debounce_timer = self.clock.call_later(
            self.settings.debounce_s, lambda: self._debounce_elapsed(project)
        )

    def _cancel_debounce(self, project: Project) -> None:
        if project.debounce_timer is not None:
            project.debounce_timer.cancel()
        project.debounce_timer = None
        project.debounce_source = None

    def _debounce_elapsed(self, project: Project) -> None:
        source = project.debounce_source or TriggerSource.CHANGE
        project.debounce_timer = None
        project.debounce_source = None
        if self._projects.get(project.root) is not project:
            return
        self._request_build(project, source, project.root)

    def _request_build(
        self, project: Project, source: TriggerSource, path: Path
    ) -> TriggerDecision:
        if project.state is BuildState.IDLE:
            self._start(project, source)
            log_decision(path, source.value, TriggerDecision.STARTED.value)
            return TriggerDecision.STARTED

        project.state = BuildState.BUILDING_WITH_PENDING_RERUN
        if project.pending_source is not TriggerSource.MANUAL:
            project.pending_source = source
        if self.cancel_superseded:
            self.orchestrator.cancel(project.root)
        log_decision(path, source.value, TriggerDecision.QUEUED.value, "build in progress")
        return TriggerDecision.QUEUED

    def _start(self, project: Project, source: TriggerSource) -> None:
        project.state = BuildState.BUILDING
        project.pending_source = None
        log_build_event("build_started", project.root, source.value, events_file=self.events_file)
        self.editor.build_status(project.root, "started", f"Building {project.root.name}")
        project.task = asyncio.get_running_loop().create_task(self._run(project, source))

    async def _run(self, project: Project, source: TriggerSource) -> None:
        try:
            self.locator.mark_build_started(project.root)
            outcome = await self.orchestrator.build(project.root, source=source.value)
            await self._publish(project, outcome)
        except Exception:
            # Keep the state machine moving even if publishing blew up
            logger.exception(f"[trigger] Unexpected error while building {project.root.name}")
        finally:
            project.last_finished_at = self.clock.now()
            self._advance(project)

    async def _publish(self, project: Project, outcome: BuildOutcome) -> None:
        root = project.root

        if outcome.status is BuildStatus.CANCELLED:
            log_build_event("build_cancelled", root, outcome.source, events_file=self.events_file)
            self.editor.build_status(root, "cancelled", f"Build of {root.name} superseded")
            return

        project.last_outcome = outcome
        self.resolver.record_build(root, time.time())

        if not outcome.produced_output:
            log_build_event(
                "build_completed",
                root,
                outcome.source,
                events_file=self.events_file,
                status=outcome.status.value,
                errors=outcome.errors[:5],
                elapsed_s=round(outcome.elapsed_s, 2),
            )
            first_error = outcome.errors[0] if outcome.errors else "unknown error"
            self.editor.build_status(root, "failure", f"Build failed: {first_error}")
            await self.hub.publish_failure(root)
            return

        revision = self._revisions.get(root, 0) + 1
        self._revisions[root] = revision
        project.revision = revision
        project.last_success_at = time.time()
        project.dependencies = self.resolver.refresh_dependencies(root)

        await asyncio.to_thread(self.locator.reload, root, revision)
        await self.hub.publish_revision(root, revision)

        log_build_event(
            "build_completed",
            root,
            outcome.source,
            events_file=self.events_file,
            status=outcome.status.value,
            revision=revision,
            warning_count=len(outcome.warnings),
            error_count=len(outcome.errors),
            elapsed_s=round(outcome.elapsed_s, 2),
        )
        if outcome.status is BuildStatus.PARTIAL:
            self.editor.build_status(
                root, "partial", f"Built with errors (revision {revision}): {outcome.diagnostics[:200]}"
            )
        else:
            self.editor.build_status(root, "success", f"Built {root.name} (revision {revision})")

    def _advance(self, project: Project) -> None:
        if project.state is BuildState.BUILDING_WITH_PENDING_RERUN:
            source = project.pending_source or TriggerSource.MANUAL
            _log_debug(f"Starting queued rerun of {project.root.name}")
            self._start(project, source)
            return

        project.state = BuildState.IDLE
        project.task = None
        if project.discard_when_idle:
            self._discard_if_idle(project)
