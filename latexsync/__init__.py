"""
latexsync - live LaTeX build orchestration and preview synchronization

Recompiles a multi-file LaTeX project on change and keeps connected PDF
viewers in step with the source, in both directions.

Architecture:
- Resolution Context: Root-document lookup and dependency sets
- Building Context: Toolchain execution with multi-pass recovery
- Navigation Context: SyncTeX forward/inverse position mapping
- Preview Context: Viewer session registry and WebSocket protocol
- Triggering Context: Build policy, debouncing and coalescing per root
"""

__version__ = "0.1.0"
