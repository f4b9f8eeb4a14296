"""
Composition root for a live-preview session.

Constructs RootResolver, BuildOrchestrator, PositionLocator, PreviewHub and
TriggerCoordinator once and hands each its collaborators explicitly. The
LiveSession exposes the editor-facing entry points.

Usage:
    session = build_live_session(load_settings(), LoggingEditor())
    session.notify_document_saved(Path("thesis/chapters/intro.tex"))
    await session.request_navigate_to_output(Path("thesis/chapters/intro.tex"), 42)
"""

from pathlib import Path
from typing import Optional

from fastapi import FastAPI

from latexsync.contexts.building import BuildOrchestrator
from latexsync.contexts.navigation import OutputPosition, PositionLocator
from latexsync.contexts.preview import PreviewHub, ViewerSession
from latexsync.contexts.preview.protocol import ClickedMessage
from latexsync.contexts.preview.server import create_app
from latexsync.contexts.resolution import RootResolver
from latexsync.contexts.triggering import (
    PollingWatcher,
    TriggerCoordinator,
    TriggerDecision,
)
from latexsync.contexts.triggering.clock import Clock
from latexsync.editor import EditorBridge
from latexsync.utils.config import Settings


class LiveSession:
    """
    Editor-facing facade over the five core components.

    Attributes:
        settings: Settings the components were built from
        editor: Receives statuses and navigation requests
    """

    def __init__(
        self,
        settings: Settings,
        editor: EditorBridge,
        resolver: RootResolver,
        orchestrator: BuildOrchestrator,
        locator: PositionLocator,
        hub: PreviewHub,
        coordinator: TriggerCoordinator,
    ):
        self.settings = settings
        self.editor = editor
        self.resolver = resolver
        self.orchestrator = orchestrator
        self.locator = locator
        self.hub = hub
        self.coordinator = coordinator
        self.watcher = PollingWatcher(coordinator, settings.triggers.watch_interval_s)
        hub.on_inbound(self._on_viewer_click)

    def notify_document_saved(self, path: Path) -> TriggerDecision:
        return self.coordinator.notify_document_saved(path)

    def notify_document_changed(self, path: Path) -> TriggerDecision:
        return self.coordinator.notify_document_changed(path)

    def request_manual_build(self, path: Path) -> TriggerDecision:
        return self.coordinator.request_manual_build(path)

    def notify_document_opened(self, path: Path) -> Optional[Path]:
        return self.coordinator.notify_document_opened(path)

    def notify_document_closed(self, path: Path) -> None:
        self.coordinator.notify_document_closed(path)

    def set_active_document(self, path: Optional[Path]) -> None:
        self.coordinator.set_active_document(path)

    async def request_navigate_to_output(self, path: Path, line: int) -> Optional[OutputPosition]:
        """
        Forward navigation: scroll every viewer of path's project to path:line.

        Returns:
            The output position pushed to viewers, or None if unavailable
        """
        path = Path(path).resolve()
        root = self.resolver.resolve_root(path)
        if root is None:
            self.editor.build_status(path, "unresolved", "Cannot find LaTeX root file")
            return None

        position = self.locator.forward(root, path, line)
        if position is None:
            self.editor.build_status(root, "partial", f"No SyncTeX data for {path.name}:{line}")
            return None

        await self.hub.scroll_to(root, position.page, position.x, position.y)
        return position

    def _on_viewer_click(self, session: ViewerSession, message: ClickedMessage) -> None:
        """Inverse navigation: a click in a viewer moves the editor."""
        source = self.locator.inverse(session.project, message.page, message.x, message.y)
        if source is None:
            return
        self.editor.navigate_to(source.path, source.line)

    def create_app(self) -> FastAPI:
        return create_app(self.hub, self.orchestrator.output_path)

    async def close(self) -> None:
        await self.watcher.stop()
        await self.coordinator.shutdown()


def build_live_session(
    settings: Settings,
    editor: EditorBridge,
    workspace: Optional[Path] = None,
    clock: Optional[Clock] = None,
) -> LiveSession:
    """Wire the core components together."""
    resolver = RootResolver(settings.resolution, workspace=workspace)
    orchestrator = BuildOrchestrator(settings.build, verbose=settings.logging.verbose)
    locator = PositionLocator(settings.navigation, orchestrator.output_dir)
    hub = PreviewHub(settings.preview)
    events_file = Path(settings.logging.events_file) if settings.logging.events_file else None
    coordinator = TriggerCoordinator(
        settings.triggers,
        resolver,
        orchestrator,
        locator,
        hub,
        editor,
        clock=clock,
        cancel_superseded=settings.build.cancel_superseded,
        events_file=events_file,
    )
    return LiveSession(settings, editor, resolver, orchestrator, locator, hub, coordinator)
