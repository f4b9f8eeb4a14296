"""Test helpers shared across unit and integration tests."""

import asyncio
import sys
from pathlib import Path
from typing import Callable, List

from latexsync.utils.config import ToolchainStep

FAKE_LATEX = Path(__file__).parent / "fixtures" / "fake_latex.py"


def fake_step(*extra_args: str, name: str = "fakelatex", timeout_s: float = 30.0) -> ToolchainStep:
    """A toolchain step running the fake compiler with extra_args."""
    return ToolchainStep(
        name=name,
        command=sys.executable,
        args=[str(FAKE_LATEX), "%DOC%", *extra_args],
        timeout_s=timeout_s,
    )


class RecordingConnection:
    """Viewer connection that keeps every payload it is sent."""

    def __init__(self, fail: bool = False):
        self.sent: List[dict] = []
        self.fail = fail

    async def send_json(self, data) -> None:
        if self.fail:
            raise ConnectionResetError("viewer went away")
        self.sent.append(data)

    def of_type(self, kind: str) -> List[dict]:
        return [m for m in self.sent if m["type"] == kind]


async def wait_until(predicate: Callable[[], bool], timeout: float = 10.0) -> None:
    """Poll predicate on the event loop until it holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)
