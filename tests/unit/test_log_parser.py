"""Unit tests for LaTeX log parsing."""

import pytest

from latexsync.contexts.building.log_parser import parse_latex_log, read_latex_log

SAMPLE_LOG = r"""This is pdfTeX, Version 3.141592653-2.6-1.40.25 (TeX Live 2023)
(./main.tex
LaTeX2e <2022-11-01>
./chapters/one.tex:12: Undefined control sequence.
l.12 \foo

! Undefined control sequence.
LaTeX Warning: Citation `knuth84' on page 2 undefined on input line 30.
Package hyperref Warning: Token not allowed in a PDF string.
Overfull \hbox (12.3pt too wide) in paragraph at lines 4--5
LaTeX Warning: Citation `knuth84' on page 2 undefined on input line 30.
)
"""


@pytest.mark.unit
def test_file_line_errors_come_first():
    errors, _ = parse_latex_log(SAMPLE_LOG)

    assert errors[0] == "./chapters/one.tex:12: Undefined control sequence."
    # The matching "!" line does not add a duplicate
    assert len(errors) == 1


@pytest.mark.unit
def test_warnings_deduplicated():
    _, warnings = parse_latex_log(SAMPLE_LOG)

    assert warnings == [
        "Citation `knuth84' on page 2 undefined on input line 30.",
        "Token not allowed in a PDF string.",
        "12.3pt too wide",
    ]


@pytest.mark.unit
def test_emergency_stop_without_bang():
    errors, _ = parse_latex_log("*** (job aborted, no legal \\end found)\nEmergency stop.\n")

    assert errors == ["Emergency stop."]


@pytest.mark.unit
def test_clean_log():
    assert parse_latex_log("Output written on main.pdf (1 page, 1234 bytes).\n") == ([], [])


@pytest.mark.unit
def test_missing_log_file(tmp_path):
    assert read_latex_log(tmp_path / "absent.log") == ([], [])


@pytest.mark.unit
def test_latin1_log_file(tmp_path):
    log = tmp_path / "main.log"
    log.write_bytes("! Missing $ inserted \xe9.\n".encode("latin-1"))

    errors, _ = read_latex_log(log)

    assert errors == ["Missing $ inserted \xe9."]
