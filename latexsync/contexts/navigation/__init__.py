"""
Navigation Context

Responsibilities:
- Reads the SyncTeX mapping artifact written by the toolchain
- Maps source positions to output positions and back
- Keeps one PositionMap per root, swapped atomically on reload

Owns: PositionMap lifecycle, forward/inverse lookups
Never: Runs builds or talks to viewers
"""

from latexsync.contexts.navigation.locator import PositionLocator
from latexsync.contexts.navigation.synctex import (
    OutputPosition,
    PositionMap,
    PositionRecord,
    SourcePosition,
)

__all__ = ["OutputPosition", "PositionLocator", "PositionMap", "PositionRecord", "SourcePosition"]
