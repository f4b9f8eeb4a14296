"""Integration tests for the viewer HTTP / WebSocket transport."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from latexsync.editor import RecordingEditor
from latexsync.session import build_live_session


@pytest.fixture
def built_session(settings, project):
    """A LiveSession whose project has been built once (revision 1)."""
    session = build_live_session(settings, RecordingEditor())

    async def build():
        session.request_manual_build(project)
        await session.coordinator.wait_idle()

    asyncio.run(build())
    return session


@pytest.mark.integration
def test_landing_lists_projects(built_session, project):
    client = TestClient(built_session.create_app())

    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["projects"] == [str(project)]


@pytest.mark.integration
def test_output_served_for_known_project(built_session, project):
    client = TestClient(built_session.create_app())

    response = client.get("/output", params={"project": str(project)})

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")


@pytest.mark.integration
def test_output_unknown_project(built_session, tmp_path):
    client = TestClient(built_session.create_app())

    response = client.get("/output", params={"project": str(tmp_path / "other.tex")})

    assert response.status_code == 404


@pytest.mark.integration
def test_viewer_ready_receives_latest_revision(built_session, project):
    client = TestClient(built_session.create_app())

    with client.websocket_connect("/ws") as websocket:
        websocket.send_json({"type": "ready", "projectPath": str(project)})
        assert websocket.receive_json() == {"type": "refresh", "revision": 1}

    # Disconnect removes the session
    assert built_session.hub.sessions(project) == []


@pytest.mark.integration
def test_viewer_click_moves_editor(built_session, project):
    client = TestClient(built_session.create_app())
    main_line = 3  # "Intro paragraph."
    position = built_session.locator.forward(project, project, main_line)

    with client.websocket_connect("/ws") as websocket:
        websocket.send_json({"type": "ready", "projectPath": str(project)})
        websocket.receive_json()
        websocket.send_json(
            {"type": "clicked", "page": position.page, "x": position.x, "y": position.y}
        )
        # A malformed message is dropped without closing the socket
        websocket.send_text("{")
        websocket.send_json({"type": "loaded", "revision": 1})

    assert built_session.editor.navigations == [(project, main_line)]
