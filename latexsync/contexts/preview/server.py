"""
HTTP and WebSocket transport for viewers.

Routes:
    GET /                  landing payload for health checks
    GET /output?project=…  the output artifact of a known project
    WS  /ws                viewer protocol (see protocol.py)
"""

from pathlib import Path
from typing import Callable

from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse, JSONResponse

from latexsync import __version__
from latexsync.contexts.preview.hub import PreviewHub
from latexsync.contexts.preview.logger import _log_debug


def create_app(hub: PreviewHub, output_path_for: Callable[[Path], Path]) -> FastAPI:
    """
    Build the viewer-facing app.

    Args:
        hub: Session registry that owns every connected viewer
        output_path_for: Maps a root document to its output artifact
    """
    app = FastAPI(title="latexsync preview", version=__version__)

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Lightweight landing payload for container and liveness checks."""
        return JSONResponse(
            {
                "message": "latexsync preview server",
                "websocket": "/ws",
                "projects": sorted(str(p) for p in hub.known_projects()),
            }
        )

    @app.get("/output")
    async def output(project: str = Query(..., min_length=1)) -> FileResponse:
        root = Path(project).resolve()
        if root not in hub.known_projects():
            raise HTTPException(status_code=404, detail="unknown project")
        artifact = output_path_for(root)
        if not artifact.exists():
            raise HTTPException(status_code=404, detail="output not built yet")
        return FileResponse(artifact, media_type="application/pdf", headers={"Cache-Control": "no-store"})

    @app.websocket("/ws")
    async def viewer_socket(websocket: WebSocket) -> None:
        await websocket.accept()
        session = hub.open_session(websocket)
        try:
            while True:
                message = await websocket.receive_text()
                await hub.handle_inbound(session, message)
        except WebSocketDisconnect:
            _log_debug(f"Viewer {session.session_id} disconnected")
        finally:
            await hub.close_session(session)

    return app
