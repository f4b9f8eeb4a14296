"""
Root document resolution.

Given any open document, determines the file that should be handed to the
toolchain. Rules, in order:

1. A cached answer for the document, if one exists.
2. A "% !TEX root = ..." magic comment near the top of the document.
3. The document itself, if it contains \\begin{document}.
4. Roots in the document's directory and up to max_parent_levels above it
   that include the document (directly or transitively). Several matches are
   broken by the most recently built root, else the first found (nearest
   directory first, file names sorted).
5. Self-root fallback: the document is treated as its own root.
"""

from pathlib import Path
from typing import Dict, FrozenSet, List, Optional

from latexsync.contexts.resolution.includes import (
    collect_dependencies,
    find_magic_root,
    is_root_document,
)
from latexsync.contexts.resolution.logger import (
    _log_debug,
    log_ambiguous_root,
    log_root_found,
)
from latexsync.utils.config import ResolutionSettings
from latexsync.utils.exceptions import ResolutionError


class RootResolver:
    """
    Resolves root documents and tracks each root's dependency set.

    Attributes:
        settings: Resolution settings (extensions, scan depth)
        workspace: Optional directory above which scanning never goes
    """

    def __init__(self, settings: ResolutionSettings, workspace: Optional[Path] = None):
        self.settings = settings
        self.workspace = workspace.resolve() if workspace else None
        self._roots: Dict[Path, Path] = {}
        self._dependencies: Dict[Path, FrozenSet[Path]] = {}
        self._last_built: Dict[Path, float] = {}

    def is_project_file(self, path: Path) -> bool:
        return Path(path).suffix.lower() in self.settings.extensions

    def resolve_root(self, document: Path) -> Optional[Path]:
        """
        Resolve the root for document.

        Returns:
            Absolute root path, or None if document is not a recognized
            project file type
        """
        try:
            return self.require_root(document)
        except ResolutionError as exc:
            _log_debug(str(exc))
            return None

    def require_root(self, document: Path) -> Path:
        """
        Resolve the root for document.

        Raises:
            ResolutionError: If document is not a recognized project file type
        """
        document = Path(document).resolve()
        if not self.is_project_file(document):
            raise ResolutionError(document, f"'{document.suffix}' is not a project file type")

        cached = self._roots.get(document)
        if cached is not None:
            return cached

        root = find_magic_root(document, self.settings.magic_comment_lines)
        if root is not None and self.is_project_file(root):
            how = "magic comment"
        elif is_root_document(document):
            root, how = document, "contains \\begin{document}"
        else:
            root, how = self._find_including_root(document)

        self._remember(document, root)
        log_root_found(document, root, how)
        return root

    def dependencies(self, root: Path) -> FrozenSet[Path]:
        """Files pulled into root's build, root included. Empty if root is unknown."""
        return self._dependencies.get(Path(root).resolve(), frozenset())

    def owns(self, root: Path, path: Path) -> bool:
        """True if path is part of root's project."""
        return Path(path).resolve() in self.dependencies(root)

    def record_build(self, root: Path, timestamp: float) -> None:
        """Remember when root was last built; used to break ties between roots."""
        self._last_built[Path(root).resolve()] = timestamp

    def refresh_dependencies(self, root: Path) -> FrozenSet[Path]:
        """Rescan root's inclusion directives and store the new dependency set."""
        root = Path(root).resolve()
        deps = frozenset(collect_dependencies(root))
        self._dependencies[root] = deps
        return deps

    def invalidate(self, path: Path) -> None:
        """
        Drop cached answers that a change to path could affect.

        A changed file may add or remove inclusion directives, so every cached
        root whose dependency set contains path is forgotten together with the
        documents mapped to it. Documents that fell back to being their own
        root are forgotten too, since path may now include them.
        """
        path = Path(path).resolve()
        stale_roots = {root for root, deps in self._dependencies.items() if path in deps}
        stale_roots.add(path)

        for document in [
            d for d, r in self._roots.items() if r in stale_roots or d in (path, r)
        ]:
            del self._roots[document]
        for root in stale_roots:
            self._dependencies.pop(root, None)

    def forget(self, root: Path) -> None:
        """Drop everything known about root (project discarded)."""
        root = Path(root).resolve()
        self._dependencies.pop(root, None)
        self._last_built.pop(root, None)
        for document in [d for d, r in self._roots.items() if r == root]:
            del self._roots[document]

    def _remember(self, document: Path, root: Path) -> None:
        self._roots[document] = root
        if root not in self._dependencies:
            self.refresh_dependencies(root)
        # A magic comment claims membership even without an inclusion directive
        if document not in self._dependencies[root]:
            self._dependencies[root] = self._dependencies[root] | {document}

    def _scan_directories(self, document: Path) -> List[Path]:
        directories = [document.parent]
        for parent in document.parent.parents:
            if len(directories) > self.settings.max_parent_levels:
                break
            if self.workspace and self.workspace not in (parent, *parent.parents):
                break
            directories.append(parent)
        return directories

    def _find_including_root(self, document: Path):
        matches: List[Path] = []

        for directory in self._scan_directories(document):
            candidates = sorted(
                p
                for ext in self.settings.extensions
                for p in directory.glob(f"*{ext}")
                if p.is_file()
            )
            for candidate in candidates:
                candidate = candidate.resolve()
                if candidate == document or candidate in matches:
                    continue
                if not is_root_document(candidate):
                    continue
                deps = self._dependencies.get(candidate)
                if deps is None:
                    deps = self.refresh_dependencies(candidate)
                if document in deps:
                    matches.append(candidate)

        if not matches:
            return document, "no including root found"
        if len(matches) == 1:
            return matches[0], "included by root"

        built = [m for m in matches if m in self._last_built]
        chosen = max(built, key=lambda m: self._last_built[m]) if built else matches[0]
        log_ambiguous_root(document, matches, chosen)
        return chosen, "most recently built of several roots" if built else "first of several roots"
