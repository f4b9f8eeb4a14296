"""
SyncTeX mapping artifact reader and the PositionMap built from it.

Only the parts of the format needed for position correlation are read: the
preamble (inputs, unit, magnification, offsets) and the per-page records that
carry "tag,line:x,y". Coordinates are converted to PDF big points measured
from the top-left corner of the page.

Record kinds kept: "[" vbox, "(" hbox, "h"/"v" void boxes, "x" current
point, "k" kern, "g" glue, "$" math.
"""

import gzip
import math
import re
from bisect import bisect_left, bisect_right
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from latexsync.utils.exceptions import MappingUnavailable

# scaled points per big point: 65536 * 72.27 / 72
SP_PER_BP = 65781.76

RECORD_PATTERN = re.compile(
    r"^(?P<kind>[\[(hvxkg$])(?P<tag>\d+),(?P<line>-?\d+)(?:,(?P<column>-?\d+))?"
    r":(?P<x>-?\d+),(?P<y>-?\d+)"
)
INPUT_PATTERN = re.compile(r"^Input:(\d+):(.+)$")
PAGE_PATTERN = re.compile(r"^\{(\d+)$")

# Lower sorts first when two records sit at the same point
KIND_PRIORITY = {"x": 0, "k": 0, "g": 0, "$": 0, "h": 1, "v": 1, "(": 2, "[": 3}


@dataclass(frozen=True)
class PositionRecord:
    source: Path
    line: int
    page: int
    x: float
    y: float
    kind: str = "x"


@dataclass(frozen=True)
class OutputPosition:
    page: int
    x: float
    y: float


@dataclass(frozen=True)
class SourcePosition:
    path: Path
    line: int


def synctex_candidates(output_dir: Path, stem: str) -> List[Path]:
    return [output_dir / f"{stem}.synctex.gz", output_dir / f"{stem}.synctex"]


def synctex_mtimes(output_dir: Path, stem: str) -> Dict[Path, Optional[int]]:
    """Modification time (ns) of each candidate file, None where absent."""
    mtimes: Dict[Path, Optional[int]] = {}
    for candidate in synctex_candidates(output_dir, stem):
        try:
            mtimes[candidate] = candidate.stat().st_mtime_ns
        except FileNotFoundError:
            mtimes[candidate] = None
    return mtimes


def find_synctex_file(
    output_dir: Path, stem: str, baseline: Optional[Dict[Path, Optional[int]]] = None
) -> Optional[Path]:
    """
    First existing SyncTeX file for stem, preferring the gzipped one.

    With a baseline from synctex_mtimes(), files left untouched since the
    baseline was taken are ignored.
    """
    baseline = baseline or {}
    for candidate, mtime in synctex_mtimes(output_dir, stem).items():
        if mtime is None:
            continue
        if candidate in baseline and baseline[candidate] == mtime:
            continue
        return candidate
    return None


def _read_lines(path: Path) -> List[str]:
    try:
        if path.suffix == ".gz":
            with gzip.open(path, "rt", encoding="utf-8", errors="replace") as f:
                return f.read().splitlines()
        return path.read_text(encoding="utf-8", errors="replace").splitlines()
    except (OSError, EOFError) as exc:
        raise MappingUnavailable(f"Cannot read {path}: {exc}") from exc


def parse_synctex(path: Path, base_dir: Optional[Path] = None) -> List[PositionRecord]:
    """
    Parse a SyncTeX file into position records.

    Args:
        path: .synctex or .synctex.gz file
        base_dir: Directory relative input paths are resolved against
            (defaults to the file's directory)

    Raises:
        MappingUnavailable: If the file cannot be read or is not SyncTeX
    """
    lines = _read_lines(path)
    if not lines or not lines[0].startswith("SyncTeX Version:"):
        raise MappingUnavailable(f"{path} is not a SyncTeX file")

    base_dir = base_dir or path.parent
    inputs: Dict[int, Path] = {}
    unit = 1.0
    magnification = 1000.0
    x_offset = 0.0
    y_offset = 0.0

    records: List[PositionRecord] = []
    page: Optional[int] = None
    in_content = False

    for line in lines[1:]:
        if not in_content:
            match = INPUT_PATTERN.match(line)
            if match:
                inputs[int(match.group(1))] = (base_dir / match.group(2).strip()).resolve()
            elif line.startswith("Unit:"):
                unit = _header_number(line, path)
            elif line.startswith("Magnification:"):
                magnification = _header_number(line, path)
            elif line.startswith("X Offset:"):
                x_offset = _header_number(line, path)
            elif line.startswith("Y Offset:"):
                y_offset = _header_number(line, path)
            elif line.startswith("Content:"):
                in_content = True
            continue

        # Inputs may also appear inside content for files opened mid-run
        match = INPUT_PATTERN.match(line)
        if match:
            inputs[int(match.group(1))] = (base_dir / match.group(2).strip()).resolve()
            continue

        match = PAGE_PATTERN.match(line)
        if match:
            page = int(match.group(1))
            continue
        if line.startswith("}"):
            page = None
            continue
        if line.startswith("Postamble:"):
            break
        if page is None:
            continue

        match = RECORD_PATTERN.match(line)
        if not match:
            continue
        source = inputs.get(int(match.group("tag")))
        source_line = int(match.group("line"))
        if source is None or source_line <= 0:
            continue

        scale = unit * magnification / 1000.0 / SP_PER_BP
        records.append(
            PositionRecord(
                source=source,
                line=source_line,
                page=page,
                x=(int(match.group("x")) + x_offset) * scale,
                y=(int(match.group("y")) + y_offset) * scale,
                kind=match.group("kind"),
            )
        )

    if not in_content:
        raise MappingUnavailable(f"{path} has no Content section")
    return records


def _header_number(line: str, path: Path) -> float:
    try:
        return float(line.split(":", 1)[1].strip())
    except ValueError as exc:
        raise MappingUnavailable(f"Malformed header in {path}: {line!r}") from exc


class PositionMap:
    """
    Immutable index of position records for one build of one root.

    Attributes:
        root: Root document the map belongs to
        revision: Build revision that produced the map
        stale: True if the artifact was missing after a later successful build
        artifact: File the records were read from
    """

    def __init__(
        self,
        records: Iterable[PositionRecord],
        root: Path,
        revision: int = 0,
        stale: bool = False,
        artifact: Optional[Path] = None,
    ):
        self.root = root
        self.revision = revision
        self.stale = stale
        self.artifact = artifact
        self._records: Tuple[PositionRecord, ...] = tuple(records)

        by_file: Dict[Path, List[PositionRecord]] = {}
        by_page: Dict[int, List[PositionRecord]] = {}
        for record in self._records:
            by_file.setdefault(record.source, []).append(record)
            by_page.setdefault(record.page, []).append(record)

        self._by_file: Dict[Path, Tuple[List[int], List[PositionRecord]]] = {}
        for source, items in by_file.items():
            items.sort(key=lambda r: (r.line, r.page, r.y, r.x, KIND_PRIORITY[r.kind]))
            self._by_file[source] = ([r.line for r in items], items)
        self._by_page = by_page

    def __len__(self) -> int:
        return len(self._records)

    @property
    def sources(self) -> List[Path]:
        return list(self._by_file)

    def as_stale(self) -> "PositionMap":
        """Same records, flagged stale."""
        return PositionMap(
            self._records, self.root, self.revision, stale=True, artifact=self.artifact
        )

    def forward(self, source: Path, line: int) -> Optional[OutputPosition]:
        """
        Output position for source:line.

        Uses the last recorded line not after the requested one; if every
        record comes later, the nearest (first) one is used.
        """
        entry = self._by_file.get(Path(source).resolve())
        if entry is None:
            return None
        lines, records = entry

        index = bisect_right(lines, line)
        if index == 0:
            record = records[0]
        else:
            record = records[bisect_left(lines, lines[index - 1])]
        return OutputPosition(page=record.page, x=record.x, y=record.y)

    def inverse(
        self, page: int, x: float, y: float, max_distance: Optional[float] = None
    ) -> Optional[SourcePosition]:
        """Source position of the record nearest to (x, y) on page."""
        records = self._by_page.get(page)
        if not records:
            return None

        best = min(
            records,
            key=lambda r: (math.hypot(r.x - x, r.y - y), KIND_PRIORITY[r.kind]),
        )
        if max_distance is not None and math.hypot(best.x - x, best.y - y) > max_distance:
            return None
        return SourcePosition(path=best.source, line=best.line)


def load_position_map(path: Path, root: Path, revision: int = 0) -> PositionMap:
    """Parse path and index it for root. Raises MappingUnavailable."""
    records = parse_synctex(path, base_dir=root.parent)
    return PositionMap(records, root=root, revision=revision, artifact=path)
