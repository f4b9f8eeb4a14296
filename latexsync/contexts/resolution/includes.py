"""
Static scan of LaTeX inclusion directives.

Only the directives that pull other source files into a build are followed;
nothing else about the document is interpreted.
"""

import re
from pathlib import Path
from typing import Iterator, List, Optional, Set

BEGIN_DOCUMENT = re.compile(r"\\begin\s*\{document\}")

# \input{x}, \include{x}, \subfile{x}, \InputIfFileExists{x}
INCLUDE_PATTERN = re.compile(r"\\(input|include|subfile|InputIfFileExists)\s*\{([^}]+)\}")

# \import{dir}{file}, \subimport{dir}{file}, \inputfrom, \subinputfrom, \includefrom, \subincludefrom
IMPORT_PATTERN = re.compile(
    r"\\(sub)?(?:import|inputfrom|includefrom)\*?\s*\{([^}]*)\}\s*\{([^}]+)\}"
)

MAGIC_ROOT_PATTERN = re.compile(r"^\s*%\s*!\s*TEX\s+root\s*=\s*(.+?)\s*$", re.IGNORECASE)

# A % that is not escaped starts a comment
COMMENT_PATTERN = re.compile(r"(?<!\\)%.*")


def read_source(path: Path) -> Optional[str]:
    """Read a source file, or None if it cannot be read."""
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None


def strip_comments(text: str) -> str:
    return COMMENT_PATTERN.sub("", text)


def is_root_document(path: Path) -> bool:
    """A root is any readable source containing \\begin{document} outside comments."""
    text = read_source(path)
    if text is None:
        return False
    return BEGIN_DOCUMENT.search(strip_comments(text)) is not None


def find_magic_root(path: Path, max_lines: int = 20) -> Optional[Path]:
    """
    Return the root named by a "% !TEX root = ..." comment near the top of path.

    The named file is resolved relative to the document's directory. Returns
    None if there is no such comment or the named file does not exist.
    """
    text = read_source(path)
    if text is None:
        return None

    for line in text.splitlines()[:max_lines]:
        match = MAGIC_ROOT_PATTERN.match(line)
        if match:
            candidate = _with_tex_suffix((path.parent / match.group(1)).resolve())
            return candidate if candidate.exists() else None
    return None


def _with_tex_suffix(path: Path) -> Path:
    if path.suffix:
        return path
    return path.with_suffix(".tex")


def iter_included_files(source: Path, root_dir: Path) -> Iterator[Path]:
    """
    Yield files directly included by source.

    \\input and \\include paths are relative to the root's directory (the
    toolchain's working directory), falling back to the including file's own
    directory. \\sub* variants and \\subfile are relative to the including file.
    """
    text = read_source(source)
    if text is None:
        return

    content = strip_comments(text)

    for match in INCLUDE_PATTERN.finditer(content):
        command, target = match.group(1), match.group(2).strip()
        if command == "subfile":
            bases = [source.parent]
        else:
            bases = [root_dir, source.parent]
        resolved = _first_existing(target, bases)
        if resolved is not None:
            yield resolved

    for match in IMPORT_PATTERN.finditer(content):
        is_sub, directory, target = match.group(1), match.group(2).strip(), match.group(3).strip()
        base = source.parent if is_sub else root_dir
        resolved = _first_existing(target, [base / directory])
        if resolved is not None:
            yield resolved


def _first_existing(target: str, bases: List[Path]) -> Optional[Path]:
    for base in bases:
        candidate = _with_tex_suffix((base / target).resolve())
        if candidate.is_file():
            return candidate
    return None


def collect_dependencies(root: Path) -> Set[Path]:
    """Transitive closure of files included from root, root included."""
    root = root.resolve()
    seen: Set[Path] = {root}
    pending = [root]

    while pending:
        current = pending.pop()
        for included in iter_included_files(current, root.parent):
            if included not in seen:
                seen.add(included)
                pending.append(included)

    return seen
