"""Shared fixtures: sample projects and settings running the fake toolchain."""

from pathlib import Path

import pytest

from latexsync.utils.config import load_settings
from tests.helpers import fake_step

MAIN_TEX = r"""\documentclass{article}
\begin{document}
Intro paragraph.

\input{chapters/one}

Closing words.
\end{document}
"""

CHAPTER_TEX = r"""\section{One}
First line of chapter one.

Second paragraph of chapter one.
"""


@pytest.fixture
def project(tmp_path) -> Path:
    """A two-file project; returns the root document."""
    (tmp_path / "chapters").mkdir()
    (tmp_path / "chapters" / "one.tex").write_text(CHAPTER_TEX, encoding="utf-8")
    root = tmp_path / "main.tex"
    root.write_text(MAIN_TEX, encoding="utf-8")
    return root.resolve()


@pytest.fixture
def chapter(project) -> Path:
    return project.parent / "chapters" / "one.tex"


@pytest.fixture
def settings(monkeypatch):
    """Settings with no debounce and no quiet period, running the fake compiler."""
    monkeypatch.delenv("LATEXSYNC_CONFIG", raising=False)
    settings = load_settings(
        config_path=None,
        overrides=[
            "triggers.debounce_s=0",
            "triggers.suppress_after_build_s=0",
            "build.kill_grace_s=1.0",
        ],
    )
    settings.build.toolchain = [fake_step()]
    return settings
