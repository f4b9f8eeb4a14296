#!/usr/bin/env python3
"""
Stand-in for pdflatex used by the test suite.

Writes DOC.pdf, DOC.synctex and DOC.log next to the root document so that
build, navigation and preview behavior can be tested without TeX installed.

Usage:
    fake_latex.py DOC [--exit CODE] [--no-pdf] [--no-synctex] [--sleep-file PATH]
                      [--log-error MESSAGE] [--stdout TEXT]
"""

import argparse
import re
import sys
import time
from pathlib import Path

SP_PER_INCH = 4736286
LINE_SKIP_SP = 786432  # 12pt

INPUT_PATTERN = re.compile(r"\\(?:input|include)\{([^}]+)\}")


def included_files(root: Path):
    files = [root]
    for match in INPUT_PATTERN.finditer(root.read_text(encoding="utf-8")):
        target = root.parent / match.group(1)
        if not target.suffix:
            target = target.with_suffix(".tex")
        if target.exists():
            files.append(target)
    return files


def write_synctex(doc: Path, root: Path) -> None:
    lines = ["SyncTeX Version:1"]
    files = included_files(root)
    for tag, path in enumerate(files, 1):
        lines.append(f"Input:{tag}:./{path.relative_to(root.parent)}")
    lines += ["Output:pdf", "Magnification:1000", "Unit:1", "X Offset:0", "Y Offset:0", "Content:"]

    # One page per file, one record per non-blank line
    for tag, path in enumerate(files, 1):
        lines.append(f"{{{tag}")
        for number, text in enumerate(path.read_text(encoding="utf-8").splitlines(), 1):
            if text.strip():
                y = SP_PER_INCH + number * LINE_SKIP_SP
                lines.append(f"x{tag},{number}:{SP_PER_INCH},{y}")
        lines.append(f"}}{tag}")
    lines.append("Postamble:")
    doc.with_suffix(".synctex").write_text("\n".join(lines) + "\n", encoding="utf-8")


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("doc")
    parser.add_argument("--exit", type=int, default=0)
    parser.add_argument("--no-pdf", action="store_true")
    parser.add_argument("--no-synctex", action="store_true")
    parser.add_argument("--sleep-file")
    parser.add_argument("--log-error")
    parser.add_argument("--stdout", default="This is fakeTeX, Version 3.14")
    args = parser.parse_args()

    doc = Path(args.doc)
    root = doc.with_suffix(".tex")
    doc.with_suffix(".started").write_text(str(time.time()), encoding="utf-8")

    if args.sleep_file:
        sleep_file = Path(args.sleep_file)
        if sleep_file.exists():
            time.sleep(float(sleep_file.read_text().strip() or 0))

    print(args.stdout)

    log_lines = ["This is fakeTeX, Version 3.14 (preloaded format=fakelatex)"]
    if args.log_error:
        log_lines.append(f"! {args.log_error}")
        print(f"! {args.log_error}", file=sys.stderr)
    log_lines.append("LaTeX Warning: Reference `fig:1' on page 1 undefined on input line 3.")
    doc.with_suffix(".log").write_text("\n".join(log_lines) + "\n", encoding="latin-1")

    if not args.no_pdf:
        doc.with_suffix(".pdf").write_bytes(b"%PDF-1.4\n% fake output\n%%EOF\n")
    if not args.no_synctex:
        write_synctex(doc, root)

    return args.exit


if __name__ == "__main__":
    sys.exit(main())
