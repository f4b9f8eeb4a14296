"""
Viewer session registry and event fan-out.

Delivery is best-effort: a session whose write fails or times out is pruned
and never retried. Pushes for one project are serialized by that project's
lock, so every viewer sees refreshes in revision order.
"""

import asyncio
import inspect
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Set, Union

from pydantic import ValidationError

from latexsync.contexts.preview.logger import _log_debug, _log_info, _log_warning
from latexsync.contexts.preview.protocol import (
    ClickedMessage,
    LoadedMessage,
    OutboundEvent,
    ReadyMessage,
    RefreshEvent,
    ScrollToEvent,
    StatusEvent,
    encode,
    parse_inbound,
)
from latexsync.utils.config import PreviewSettings
from latexsync.utils.exceptions import SessionDeliveryFailure


class Connection(Protocol):
    """Anything that can send a JSON-able dict to a viewer (e.g. a Starlette WebSocket)."""

    async def send_json(self, data: Any) -> None: ...


ClickHandler = Callable[["ViewerSession", ClickedMessage], Union[None, Awaitable[None]]]


@dataclass(eq=False)
class ViewerSession:
    """
    One connected viewer.

    Attributes:
        connection: Transport used to reach the viewer
        project: Root document the viewer displays (None until "ready")
        revision: Highest revision delivered to or acknowledged by the viewer
    """

    connection: Connection
    project: Optional[Path] = None
    revision: int = 0
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])


class PreviewHub:
    """
    Registry of viewer sessions per project.

    Attributes:
        settings: Preview settings (failure notices, send timeout)
    """

    def __init__(self, settings: PreviewSettings):
        self.settings = settings
        self._sessions: Dict[Path, Set[ViewerSession]] = {}
        self._unbound: Set[ViewerSession] = set()
        self._locks: Dict[Path, asyncio.Lock] = {}
        self._revisions: Dict[Path, int] = {}
        self._click_handlers: List[ClickHandler] = []

    # Registry

    def open_session(self, connection: Connection) -> ViewerSession:
        """Track a freshly connected viewer that has not announced a project yet."""
        session = ViewerSession(connection=connection)
        self._unbound.add(session)
        _log_debug(f"Viewer {session.session_id} connected")
        return session

    async def register_session(
        self, project_path: Path, session: ViewerSession
    ) -> ViewerSession:
        """
        Bind session to project_path, rebinding it if it viewed another project.

        The viewer immediately receives one refresh for the latest known
        revision of its new project.
        """
        project = Path(project_path).resolve()
        await self._unbind(session)

        async with self._lock(project):
            session.project = project
            session.revision = 0
            self._sessions.setdefault(project, set()).add(session)
            _log_info(f"Viewer {session.session_id} now showing {project.name}")

            latest = self._revisions.get(project, 0)
            if latest > 0:
                await self._deliver(project, [session], RefreshEvent(revision=latest))
        return session

    async def close_session(self, session: ViewerSession) -> None:
        await self._unbind(session)
        _log_debug(f"Viewer {session.session_id} closed")

    def sessions(self, project_path: Path) -> List[ViewerSession]:
        return list(self._sessions.get(Path(project_path).resolve(), ()))

    def known_projects(self) -> Set[Path]:
        return set(self._revisions) | {p for p, s in self._sessions.items() if s}

    def latest_revision(self, project_path: Path) -> int:
        return self._revisions.get(Path(project_path).resolve(), 0)

    def record_revision(self, project_path: Path, revision: int) -> None:
        """Remember the latest revision without pushing (revisions never go backwards)."""
        project = Path(project_path).resolve()
        self._revisions[project] = max(revision, self._revisions.get(project, 0))

    # Outbound

    async def push(self, project_path: Path, event: OutboundEvent) -> int:
        """
        Deliver event to every viewer of project_path.

        A refresh is skipped for viewers that already have that revision or
        a later one.

        Returns:
            Number of viewers the event reached
        """
        project = Path(project_path).resolve()
        if isinstance(event, RefreshEvent):
            self.record_revision(project, event.revision)

        async with self._lock(project):
            targets = list(self._sessions.get(project, ()))
            return await self._deliver(project, targets, event)

    async def publish_revision(self, project_path: Path, revision: int) -> int:
        return await self.push(project_path, RefreshEvent(revision=revision))

    async def publish_failure(self, project_path: Path) -> int:
        """Tell viewers a build failed; they keep showing the last good output."""
        if not self.settings.notify_failures:
            return 0
        return await self.push(
            project_path, StatusEvent(revision=self.latest_revision(project_path))
        )

    async def scroll_to(self, project_path: Path, page: int, x: float, y: float) -> int:
        return await self.push(project_path, ScrollToEvent(page=page, x=x, y=y))

    # Inbound

    def on_inbound(self, handler: ClickHandler) -> None:
        """Register a handler for viewer clicks (sync or async callable)."""
        self._click_handlers.append(handler)

    async def handle_inbound(self, session: ViewerSession, raw: Union[str, bytes, dict]) -> None:
        """Dispatch one inbound viewer message. Malformed messages are logged and dropped."""
        try:
            message = parse_inbound(raw)
        except ValidationError as exc:
            _log_warning(f"Ignoring malformed message from viewer {session.session_id}: {exc.errors()[:1]}")
            return

        if isinstance(message, ReadyMessage):
            await self.register_session(Path(message.project_path), session)
        elif isinstance(message, LoadedMessage):
            session.revision = max(session.revision, message.revision)
        elif isinstance(message, ClickedMessage):
            if session.project is None:
                _log_debug(f"Click from unbound viewer {session.session_id} ignored")
                return
            for handler in list(self._click_handlers):
                try:
                    result = handler(session, message)
                    if inspect.isawaitable(result):
                        await result
                except Exception as exc:
                    # One failing handler must not drop the viewer or skip the others
                    _log_warning(
                        f"Click handler {getattr(handler, '__name__', handler)!r} failed "
                        f"for viewer {session.session_id}: {exc}"
                    )

    # Internals

    def _lock(self, project: Path) -> asyncio.Lock:
        return self._locks.setdefault(project, asyncio.Lock())

    async def _unbind(self, session: ViewerSession) -> None:
        self._unbound.discard(session)
        project = session.project
        if project is None:
            return
        async with self._lock(project):
            bound = self._sessions.get(project)
            if bound is not None:
                bound.discard(session)
                if not bound:
                    del self._sessions[project]
        session.project = None

    async def _deliver(
        self, project: Path, targets: List[ViewerSession], event: OutboundEvent
    ) -> int:
        """Send event to targets; caller holds project's lock."""
        payload = encode(event)
        delivered = 0
        dead: List[ViewerSession] = []

        for session in targets:
            if isinstance(event, RefreshEvent) and event.revision <= session.revision:
                _log_debug(
                    f"Skipping stale refresh {event.revision} for viewer {session.session_id} "
                    f"(at {session.revision})"
                )
                continue
            try:
                await self._send(session, payload)
            except SessionDeliveryFailure as exc:
                _log_debug(str(exc))
                dead.append(session)
                continue
            if isinstance(event, RefreshEvent):
                session.revision = event.revision
            delivered += 1

        bound = self._sessions.get(project)
        for session in dead:
            if bound is not None:
                bound.discard(session)
            session.project = None
            _log_info(f"Pruned unresponsive viewer {session.session_id}")
        if bound is not None and not bound:
            del self._sessions[project]

        return delivered

    async def _send(self, session: ViewerSession, payload: dict) -> None:
        try:
            await asyncio.wait_for(
                session.connection.send_json(payload), timeout=self.settings.send_timeout_s
            )
        except asyncio.TimeoutError as exc:
            raise SessionDeliveryFailure(f"Viewer {session.session_id} timed out") from exc
        except Exception as exc:
            # Any transport error means the viewer is gone
            raise SessionDeliveryFailure(f"Viewer {session.session_id} unreachable: {exc}") from exc
