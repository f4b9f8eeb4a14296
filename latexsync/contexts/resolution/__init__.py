"""
Resolution Context

Responsibilities:
- Decides which document is handed to the toolchain for any open document
- Follows inclusion directives and "% !TEX root" magic comments
- Tracks each root's dependency set for watch scope and membership checks

Owns: Root-document lookup, dependency sets
Never: Runs the toolchain
"""

from latexsync.contexts.resolution.resolver import RootResolver

__all__ = ["RootResolver"]
