"""
Unit tests for TriggerCoordinator.

Builds are replaced by FakeOrchestrator, whose jobs stay running until the
test resolves them, and debounce timers run on a VirtualClock.
"""

import asyncio
from pathlib import Path
from typing import List, Tuple

import pytest

from latexsync.contexts.building import BuildOutcome, BuildStatus
from latexsync.contexts.navigation import PositionLocator
from latexsync.contexts.preview import PreviewHub
from latexsync.contexts.resolution import RootResolver
from latexsync.contexts.triggering import (
    BuildState,
    TriggerCoordinator,
    TriggerDecision,
    TriggerSource,
)
from latexsync.contexts.triggering.clock import VirtualClock
from latexsync.editor import RecordingEditor
from tests.helpers import RecordingConnection, wait_until

ROOT_TEX = "\\documentclass{article}\n\\begin{document}\nHello.\n\\end{document}\n"


class FakeOrchestrator:
    """Build jobs that finish only when the test says so."""

    def __init__(self):
        self.calls: List[Tuple[Path, str]] = []
        self.gates: List[asyncio.Future] = []
        self.cancelled: List[Path] = []

    async def build(self, root: Path, source: str = "manual") -> BuildOutcome:
        self.calls.append((root, source))
        gate = asyncio.get_running_loop().create_future()
        self.gates.append(gate)
        status = await gate
        errors = [] if status is BuildStatus.SUCCESS else ["! Undefined control sequence."]
        return BuildOutcome(root=root, status=status, errors=errors, source=source)

    def cancel(self, root: Path) -> bool:
        self.cancelled.append(root)
        running = [g for g in self.gates if not g.done()]
        for gate in running:
            gate.set_result(BuildStatus.CANCELLED)
        return bool(running)

    def finish(self, status: BuildStatus = BuildStatus.SUCCESS) -> None:
        next(g for g in self.gates if not g.done()).set_result(status)

    @property
    def running(self) -> int:
        return sum(1 for g in self.gates if not g.done())


class Harness:
    def __init__(self, settings, cancel_superseded=False):
        self.clock = VirtualClock()
        self.editor = RecordingEditor()
        self.orchestrator = FakeOrchestrator()
        self.hub = PreviewHub(settings.preview)
        self.resolver = RootResolver(settings.resolution)
        self.locator = PositionLocator(settings.navigation, output_dir_for=lambda root: root.parent)
        self.coordinator = TriggerCoordinator(
            settings.triggers,
            resolver=self.resolver,
            orchestrator=self.orchestrator,
            locator=self.locator,
            hub=self.hub,
            editor=self.editor,
            clock=self.clock,
            cancel_superseded=cancel_superseded,
        )

    async def started(self, count: int) -> None:
        await wait_until(lambda: len(self.orchestrator.calls) >= count)

    async def finish(self, status: BuildStatus = BuildStatus.SUCCESS) -> None:
        await wait_until(lambda: self.orchestrator.running > 0)
        self.orchestrator.finish(status)
        # Let _run publish and advance the state machine
        for _ in range(5):
            await asyncio.sleep(0)

    async def idle(self) -> None:
        await self.coordinator.wait_idle()


@pytest.fixture
def harness(settings):
    return Harness(settings)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_builds_and_refreshes_viewer(harness, project):
    viewer = RecordingConnection()
    await harness.hub.register_session(project, harness.hub.open_session(viewer))

    decision = harness.coordinator.notify_document_saved(project)
    assert decision is TriggerDecision.STARTED
    assert harness.coordinator.state(project) is BuildState.BUILDING

    await harness.started(1)
    await harness.finish()
    await harness.idle()

    assert harness.coordinator.revision(project) == 1
    assert harness.coordinator.state(project) is BuildState.IDLE
    assert viewer.sent == [{"type": "refresh", "revision": 1}]
    assert harness.editor.states() == ["started", "success"]
    assert harness.orchestrator.calls == [(project, "save")]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_included_file_builds_its_root(harness, project, chapter):
    harness.coordinator.notify_document_saved(chapter)
    await harness.started(1)

    assert harness.orchestrator.calls[0][0] == project
    await harness.finish()
    await harness.idle()

    assert chapter in harness.coordinator.project(project).dependencies


@pytest.mark.unit
@pytest.mark.asyncio
async def test_triggers_during_build_coalesce_into_one_rerun(harness, project, chapter):
    harness.coordinator.notify_document_saved(project)
    await harness.started(1)

    assert harness.coordinator.notify_document_saved(chapter) is TriggerDecision.QUEUED
    assert harness.coordinator.notify_document_saved(project) is TriggerDecision.QUEUED
    assert harness.coordinator.notify_document_changed(chapter) is TriggerDecision.QUEUED
    assert harness.coordinator.state(project) is BuildState.BUILDING_WITH_PENDING_RERUN
    assert harness.orchestrator.cancelled == []

    await harness.finish()
    await harness.started(2)
    assert harness.coordinator.state(project) is BuildState.BUILDING
    await harness.finish()
    await harness.idle()

    assert len(harness.orchestrator.calls) == 2
    assert harness.coordinator.revision(project) == 2
    assert harness.coordinator.state(project) is BuildState.IDLE


@pytest.mark.unit
@pytest.mark.asyncio
async def test_superseded_build_is_cancelled(settings, project):
    harness = Harness(settings, cancel_superseded=True)
    viewer = RecordingConnection()
    await harness.hub.register_session(project, harness.hub.open_session(viewer))

    harness.coordinator.notify_document_saved(project)
    await harness.started(1)
    assert harness.coordinator.notify_document_saved(project) is TriggerDecision.QUEUED
    assert harness.orchestrator.cancelled == [project]

    await harness.started(2)
    await harness.finish()
    await harness.idle()

    # The cancelled job never published a revision
    assert harness.coordinator.revision(project) == 1
    assert viewer.sent == [{"type": "refresh", "revision": 1}]
    assert "cancelled" in harness.editor.states()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failed_build_keeps_revision_and_pushes_nothing(harness, project):
    viewer = RecordingConnection()
    await harness.hub.register_session(project, harness.hub.open_session(viewer))

    harness.coordinator.request_manual_build(project)
    await harness.finish(BuildStatus.FAILURE)
    await harness.idle()

    assert harness.coordinator.revision(project) == 0
    assert viewer.sent == []
    assert harness.editor.states() == ["started", "failure"]
    assert harness.coordinator.project(project).last_outcome.status is BuildStatus.FAILURE


@pytest.mark.unit
@pytest.mark.asyncio
async def test_partial_build_publishes_revision(harness, project):
    harness.coordinator.request_manual_build(project)
    await harness.finish(BuildStatus.PARTIAL)
    await harness.idle()

    assert harness.coordinator.revision(project) == 1
    assert harness.editor.states()[-1] == "partial"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_burst_is_debounced_into_one_build(settings, project, chapter):
    settings.triggers.debounce_s = 0.5
    harness = Harness(settings)

    assert harness.coordinator.notify_document_saved(chapter) is TriggerDecision.DEFERRED
    harness.clock.advance(0.3)
    assert harness.coordinator.notify_document_saved(project) is TriggerDecision.DEFERRED
    harness.clock.advance(0.3)
    harness.coordinator.notify_document_saved(chapter)
    harness.clock.advance(0.4)
    assert harness.orchestrator.calls == []

    harness.clock.advance(0.2)
    await harness.started(1)
    await harness.finish()
    await harness.idle()

    assert harness.orchestrator.calls == [(project, "save")]
    assert harness.coordinator.revision(project) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_manual_build_bypasses_debounce(settings, project):
    settings.triggers.debounce_s = 0.5
    harness = Harness(settings)

    harness.coordinator.notify_document_saved(project)
    assert harness.clock.pending() == 1

    assert harness.coordinator.request_manual_build(project) is TriggerDecision.STARTED
    assert harness.clock.pending() == 0

    await harness.finish()
    await harness.idle()
    harness.clock.advance(1.0)

    assert harness.orchestrator.calls == [(project, "manual")]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_external_changes_suppressed_right_after_build(settings, project):
    settings.triggers.suppress_after_build_s = 1.0
    harness = Harness(settings)

    harness.coordinator.notify_document_saved(project)
    await harness.finish()
    await harness.idle()

    assert harness.coordinator.notify_document_changed(project) is TriggerDecision.SUPPRESSED
    assert harness.coordinator.notify_periodic_check(project) is TriggerDecision.SUPPRESSED
    assert harness.coordinator.notify_document_saved(project) is TriggerDecision.STARTED
    await harness.finish()
    await harness.idle()

    harness.clock.advance(1.5)
    assert harness.coordinator.notify_document_changed(project) is TriggerDecision.STARTED
    await harness.finish()
    await harness.idle()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_disabled_trigger_sources(settings, project):
    settings.triggers.build_on_save = False
    settings.triggers.build_on_change = False
    harness = Harness(settings)

    assert harness.coordinator.notify_document_saved(project) is TriggerDecision.SUPPRESSED
    assert harness.coordinator.notify_document_changed(project) is TriggerDecision.SUPPRESSED
    assert harness.coordinator.request_manual_build(project) is TriggerDecision.STARTED

    await harness.finish()
    await harness.idle()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_external_change_to_active_document_ignored(harness, project, chapter):
    harness.coordinator.set_active_document(chapter)

    assert harness.coordinator.notify_document_changed(chapter) is TriggerDecision.SUPPRESSED
    assert harness.coordinator.notify_document_saved(chapter) is TriggerDecision.STARTED

    await harness.finish()
    await harness.idle()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_non_project_files(harness, tmp_path):
    image = tmp_path / "figure.png"
    image.write_bytes(b"png")

    assert harness.coordinator.notify_document_saved(image) is TriggerDecision.SUPPRESSED
    assert harness.coordinator.request_manual_build(image) is TriggerDecision.SUPPRESSED
    assert harness.editor.states() == ["unresolved"]
    assert harness.orchestrator.calls == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_independent_roots_build_concurrently(harness, tmp_path):
    first = tmp_path / "a" / "a.tex"
    second = tmp_path / "b" / "b.tex"
    for path in (first, second):
        path.parent.mkdir()
        path.write_text(ROOT_TEX, encoding="utf-8")

    assert harness.coordinator.notify_document_saved(first) is TriggerDecision.STARTED
    assert harness.coordinator.notify_document_saved(second) is TriggerDecision.STARTED
    await harness.started(2)
    assert harness.orchestrator.running == 2

    await harness.finish()
    await harness.finish()
    await harness.idle()

    assert harness.coordinator.revision(first) == 1
    assert harness.coordinator.revision(second) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_closing_last_document_discards_project(harness, project, chapter):
    assert harness.coordinator.notify_document_opened(chapter) == project

    harness.coordinator.notify_document_saved(chapter)
    await harness.finish()
    await harness.idle()
    harness.coordinator.notify_document_closed(chapter)

    assert harness.coordinator.project(project) is None

    # Revisions keep counting after the project is tracked again
    harness.coordinator.notify_document_saved(chapter)
    await harness.finish()
    await harness.idle()
    assert harness.coordinator.revision(project) == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_close_during_build_discards_when_idle(harness, project):
    harness.coordinator.notify_document_opened(project)
    harness.coordinator.notify_document_saved(project)
    await harness.started(1)

    harness.coordinator.notify_document_closed(project)
    assert harness.coordinator.project(project) is not None

    await harness.finish()
    await harness.idle()
    assert harness.coordinator.project(project) is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_shutdown_cancels_running_and_pending(harness, project):
    harness.coordinator.notify_document_saved(project)
    await harness.started(1)
    harness.coordinator.notify_document_saved(project)

    await harness.coordinator.shutdown()

    assert harness.orchestrator.cancelled == [project]
    assert len(harness.orchestrator.calls) == 1
    assert harness.coordinator.state(project) is BuildState.IDLE
    assert harness.coordinator.revision(project) == 0


@pytest.mark.unit
def test_trigger_source_values():
    assert TriggerSource("save") is TriggerSource.SAVE
    assert {s.value for s in TriggerSource} == {"save", "change", "periodic", "manual"}
