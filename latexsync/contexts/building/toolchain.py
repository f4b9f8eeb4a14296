"""
External toolchain process execution.

Each step runs in its own process group so that a timeout or a superseding
build can stop the whole tree (e.g. latexmk and the pdflatex it spawned).
"""

import asyncio
import os
import signal
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from latexsync.contexts.building.logger import _log_debug
from latexsync.utils.config import ToolchainStep
from latexsync.utils.exceptions import ToolchainStepFailure, ToolchainTimeout

POSIX = os.name != "nt"


@dataclass
class ProcessResult:
    """Raw result of one process invocation."""

    command: List[str]
    exit_code: Optional[int]
    stdout: str
    stderr: str
    elapsed_s: float
    interrupted: bool = False


def expand_placeholders(args: List[str], root: Path, output_dir: Path) -> List[str]:
    """Substitute %DOC%, %DOCFILE%, %DOC_EXT%, %DIR% and %OUTDIR% in args."""
    replacements: Dict[str, str] = {
        "%DOC_EXT%": str(root),
        "%DOCFILE%": root.stem,
        "%DOC%": str(root.with_suffix("")),
        "%OUTDIR%": str(output_dir),
        "%DIR%": str(root.parent),
    }
    expanded = []
    for arg in args:
        for placeholder, value in replacements.items():
            arg = arg.replace(placeholder, value)
        expanded.append(arg)
    return expanded


async def terminate_process_tree(process: asyncio.subprocess.Process, grace_s: float) -> None:
    """SIGTERM the process group, then SIGKILL it if it is still alive after grace_s."""
    if process.returncode is not None:
        return

    _send_signal(process, signal.SIGTERM)
    try:
        await asyncio.wait_for(process.wait(), timeout=grace_s)
    except asyncio.TimeoutError:
        _log_debug(f"Process {process.pid} ignored SIGTERM, killing")
        _send_signal(process, signal.SIGKILL if POSIX else signal.SIGTERM)
        await process.wait()


def _send_signal(process: asyncio.subprocess.Process, sig: int) -> None:
    try:
        if POSIX:
            os.killpg(process.pid, sig)
        else:
            process.kill()
    except ProcessLookupError:
        pass


async def run_step(
    step: ToolchainStep,
    root: Path,
    output_dir: Path,
    stop_event: asyncio.Event,
    kill_grace_s: float = 2.0,
) -> ProcessResult:
    """
    Run one toolchain step in the root document's directory.

    The step ends when the process exits, when stop_event is set (the process
    tree is terminated and the result is marked interrupted), or when the
    step's timeout elapses.

    Raises:
        ToolchainTimeout: If the step exceeded step.timeout_s
        ToolchainStepFailure: If the command could not be started (fatal)
    """
    command = [step.command, *expand_placeholders(step.args, root, output_dir)]
    _log_debug(f"  $ {' '.join(command)}")

    start = time.monotonic()
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=root.parent,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=POSIX,
        )
    except OSError as exc:
        raise ToolchainStepFailure(step.name, None, fatal=True, diagnostics=str(exc)) from exc

    communicate = asyncio.ensure_future(process.communicate())
    stopped = asyncio.ensure_future(stop_event.wait())
    try:
        done, _ = await asyncio.wait(
            {communicate, stopped},
            timeout=step.timeout_s,
            return_when=asyncio.FIRST_COMPLETED,
        )
    finally:
        stopped.cancel()

    interrupted = communicate not in done
    if interrupted:
        await terminate_process_tree(process, kill_grace_s)

    stdout_bytes, stderr_bytes = await communicate
    elapsed = time.monotonic() - start
    stdout = stdout_bytes.decode("utf-8", errors="replace")
    stderr = stderr_bytes.decode("utf-8", errors="replace")

    if interrupted and not stop_event.is_set():
        raise ToolchainTimeout(step.name, step.timeout_s, diagnostics=_tail(stdout, stderr))

    return ProcessResult(
        command=command,
        exit_code=process.returncode,
        stdout=stdout,
        stderr=stderr,
        elapsed_s=elapsed,
        interrupted=interrupted,
    )


def _tail(stdout: str, stderr: str, lines: int = 40) -> str:
    text = "\n".join(part for part in (stdout, stderr) if part)
    return "\n".join(text.splitlines()[-lines:])
