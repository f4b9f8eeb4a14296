"""Extract errors and warnings from a LaTeX toolchain log."""

import re
from pathlib import Path
from typing import List, Tuple

# "! Error message"
ERROR_PATTERN = re.compile(r"^! (.+)$", re.MULTILINE)

# -file-line-error style: "./chapter.tex:12: Undefined control sequence."
FILE_LINE_ERROR_PATTERN = re.compile(r"^(.+?\.tex):(\d+): (.+)$", re.MULTILINE)

# Errors that do not always start with "!"
ADDITIONAL_ERROR_PATTERNS = [
    r"File ended while scanning use of",
    r"Emergency stop",
]

WARNING_PATTERNS = [
    r"LaTeX Warning: (.+)",
    r"Package \w+ Warning: (.+)",
    r"Overfull \\hbox \((.+)\)",
    r"Underfull \\hbox \((.+)\)",
]


def parse_latex_log(log_content: str) -> Tuple[List[str], List[str]]:
    """
    Parse LaTeX log content for errors and warnings.

    Args:
        log_content: Content of the .log file

    Returns:
        Tuple of (errors, warnings), each de-duplicated in first-seen order
    """
    errors: List[str] = []
    warnings: List[str] = []

    for match in FILE_LINE_ERROR_PATTERN.finditer(log_content):
        entry = f"{match.group(1)}:{match.group(2)}: {match.group(3).strip()}"
        if entry not in errors:
            errors.append(entry)

    for match in ERROR_PATTERN.finditer(log_content):
        message = match.group(1).strip()
        if not any(message in e for e in errors):
            errors.append(message)

    for pattern in ADDITIONAL_ERROR_PATTERNS:
        match = re.search(rf"({pattern}.*?)$", log_content, re.MULTILINE)
        if match and not any(match.group(1) in e for e in errors):
            errors.append(match.group(1))

    for pattern in WARNING_PATTERNS:
        for match in re.finditer(pattern, log_content, re.MULTILINE):
            message = match.group(1).strip()
            if message not in warnings:
                warnings.append(message)

    return errors, warnings


def read_latex_log(log_file: Path) -> Tuple[List[str], List[str]]:
    """Parse log_file if it exists; ([], []) otherwise."""
    if not log_file.exists():
        return [], []
    # pdflatex writes log files in latin-1 (font metadata is not always UTF-8)
    return parse_latex_log(log_file.read_text(encoding="latin-1"))
