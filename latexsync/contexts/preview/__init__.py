"""
Preview Context

Responsibilities:
- Keeps the registry of connected viewer sessions per project
- Pushes refresh / scroll events to every viewer of a project
- Hands inbound viewer clicks to the registered handler
- Serves the output artifact and the viewer WebSocket over HTTP

Owns: ViewerSession lifecycle, wire protocol
Never: Builds or resolves positions itself
"""

from latexsync.contexts.preview.hub import PreviewHub, ViewerSession

__all__ = ["PreviewHub", "ViewerSession"]
