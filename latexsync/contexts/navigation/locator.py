"""
Position lookups against the current PositionMap of each root.

Maps are replaced by a single dictionary assignment, so a lookup that has
already fetched a map keeps working on that fully-built map while a reload
installs the next one.
"""

from pathlib import Path
from typing import Callable, Dict, Optional

from latexsync.contexts.navigation.logger import _log_debug, _log_info, _log_warning
from latexsync.contexts.navigation.synctex import (
    OutputPosition,
    PositionMap,
    SourcePosition,
    find_synctex_file,
    load_position_map,
    synctex_mtimes,
)
from latexsync.utils.config import NavigationSettings
from latexsync.utils.exceptions import MappingUnavailable


class PositionLocator:
    """
    Forward (source -> output) and inverse (output -> source) navigation.

    Attributes:
        settings: Navigation settings
        output_dir_for: Callable giving the directory a root's artifacts are written to
    """

    def __init__(
        self,
        settings: NavigationSettings,
        output_dir_for: Callable[[Path], Path],
    ):
        self.settings = settings
        self.output_dir_for = output_dir_for
        self._maps: Dict[Path, PositionMap] = {}
        self._baselines: Dict[Path, Dict[Path, Optional[int]]] = {}

    def current(self, root: Path) -> Optional[PositionMap]:
        return self._maps.get(Path(root).resolve())

    def mark_build_started(self, root: Path) -> None:
        """Record the SyncTeX files on disk before a build of root starts."""
        root = Path(root).resolve()
        self._baselines[root] = synctex_mtimes(self.output_dir_for(root), root.stem)

    def reload(self, root: Path, revision: int) -> Optional[PositionMap]:
        """
        Load the mapping artifact produced by the build with the given revision.

        A SyncTeX file the build did not rewrite (unchanged since
        mark_build_started) counts as missing. A missing artifact keeps the
        previous map, flagged stale. A malformed one leaves the root with no map.

        Returns:
            The map now current for root, or None
        """
        root = Path(root).resolve()
        baseline = self._baselines.pop(root, None)
        artifact = find_synctex_file(self.output_dir_for(root), root.stem, baseline)

        if artifact is None:
            previous = self._maps.get(root)
            if previous is None:
                _log_warning(f"No SyncTeX file from this build of {root.name}; navigation unavailable")
                return None
            _log_warning(
                f"No SyncTeX file from this build of {root.name}; "
                f"keeping revision {previous.revision} map as stale"
            )
            stale = previous.as_stale()
            self._maps[root] = stale
            return stale

        try:
            position_map = load_position_map(artifact, root, revision)
        except MappingUnavailable as exc:
            _log_warning(f"{exc}; navigation unavailable for {root.name}")
            self._maps.pop(root, None)
            return None

        self._maps[root] = position_map
        _log_info(f"Loaded {len(position_map)} SyncTeX records for {root.name} (revision {revision})")
        return position_map

    def forget(self, root: Path) -> None:
        root = Path(root).resolve()
        self._maps.pop(root, None)
        self._baselines.pop(root, None)

    def forward(self, root: Path, source: Path, line: int) -> Optional[OutputPosition]:
        """Output position for source:line in root's output, or None."""
        position_map = self.current(root)
        if position_map is None:
            _log_debug(f"Forward lookup without a map for {Path(root).name}")
            return None
        return position_map.forward(source, line)

    def inverse(self, root: Path, page: int, x: float, y: float) -> Optional[SourcePosition]:
        """Source position nearest to (page, x, y) in root's output, or None."""
        position_map = self.current(root)
        if position_map is None:
            _log_debug(f"Inverse lookup without a map for {Path(root).name}")
            return None
        return position_map.inverse(page, x, y, max_distance=self.settings.max_inverse_distance)
