"""
Build orchestration.

Runs the configured toolchain against a root document and reports a
structured BuildOutcome. Builds of one root are strictly serialized; builds
of different roots run in parallel.

Step failure policy:
    - exit code 0                        -> step ok
    - non-zero, output artifact produced -> recoverable, sequence continues
    - non-zero, no output artifact       -> fatal, sequence aborts
    - timeout or command not startable   -> fatal, sequence aborts

The outcome is SUCCESS when every step succeeded and the artifact exists,
PARTIAL when the artifact exists despite recoverable failures, FAILURE
otherwise, and CANCELLED when cancel() stopped the job.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from latexsync.contexts.building.log_parser import read_latex_log
from latexsync.contexts.building.logger import (
    _log_debug,
    _log_info,
    log_build_outcome,
    log_build_start,
    log_step_result,
)
from latexsync.contexts.building.toolchain import run_step
from latexsync.utils.config import BuildSettings
from latexsync.utils.exceptions import ToolchainStepFailure, ToolchainTimeout


class BuildStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"
    CANCELLED = "cancelled"


@dataclass
class StepResult:
    """
    Result of one toolchain step.

    Attributes:
        name: Step name from the toolchain settings
        command: Expanded command line
        exit_code: Process exit code (None if it never ran or was killed by timeout)
        stdout: Captured standard output
        stderr: Captured standard error
        elapsed_s: Wall-clock duration
        fatal: Whether this step aborted the sequence
        timed_out: Whether the step exceeded its timeout
    """

    name: str
    command: List[str] = field(default_factory=list)
    exit_code: Optional[int] = None
    stdout: str = ""
    stderr: str = ""
    elapsed_s: float = 0.0
    fatal: bool = False
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


@dataclass
class BuildJob:
    """
    One compilation attempt, owned by BuildOrchestrator until it finishes.

    Attributes:
        root: Root document being built
        step_names: Ordered names of the steps to run
        source: What triggered the build ("save", "manual", ...)
        started_at: Wall-clock start (time.time())
        cancelled: Set by cancel(); a cancelled job never publishes a revision
    """

    root: Path
    step_names: List[str]
    source: str = "manual"
    started_at: float = field(default_factory=time.time)
    cancelled: bool = False
    steps: List[StepResult] = field(default_factory=list)
    stop_event: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    def cancel(self) -> None:
        self.cancelled = True
        self.stop_event.set()


@dataclass
class BuildOutcome:
    """
    Structured result of a build, reported upward to the coordinator.

    Attributes:
        root: Root document that was built
        status: SUCCESS, PARTIAL, FAILURE or CANCELLED
        output_path: Output artifact (None if it does not exist)
        steps: Per-step results in execution order
        errors: Errors parsed from the toolchain log and failing steps
        warnings: Warnings parsed from the toolchain log
        elapsed_s: Total wall-clock duration
        source: Trigger source that started the build
    """

    root: Path
    status: BuildStatus
    output_path: Optional[Path] = None
    steps: List[StepResult] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    elapsed_s: float = 0.0
    source: str = "manual"

    @property
    def produced_output(self) -> bool:
        return self.status in (BuildStatus.SUCCESS, BuildStatus.PARTIAL)

    @property
    def diagnostics(self) -> str:
        """Errors, then the output of every step that did not succeed."""
        parts = list(self.errors)
        for step in self.steps:
            if not step.ok:
                parts.extend(text for text in (step.stdout.strip(), step.stderr.strip()) if text)
        return "\n".join(parts)


class BuildOrchestrator:
    """
    Runs toolchain builds for root documents.

    Attributes:
        settings: Build settings (toolchain, output location, kill grace)
        verbose: Log more diagnostics per build
    """

    def __init__(self, settings: BuildSettings, verbose: bool = False):
        self.settings = settings
        self.verbose = verbose
        self._locks: Dict[Path, asyncio.Lock] = {}
        self._jobs: Dict[Path, BuildJob] = {}

    def output_dir(self, root: Path) -> Path:
        root = Path(root).resolve()
        if self.settings.output_dir:
            return (root.parent / self.settings.output_dir).resolve()
        return root.parent

    def output_path(self, root: Path) -> Path:
        root = Path(root).resolve()
        return self.output_dir(root) / f"{root.stem}{self.settings.output_extension}"

    def log_path(self, root: Path) -> Path:
        root = Path(root).resolve()
        return self.output_dir(root) / f"{root.stem}.log"

    def is_building(self, root: Path) -> bool:
        return Path(root).resolve() in self._jobs

    def cancel(self, root: Path) -> bool:
        """
        Cancel the in-flight job for root, stopping its process tree.

        Returns:
            True if a job was running and has been marked cancelled
        """
        job = self._jobs.get(Path(root).resolve())
        if job is None or job.cancelled:
            return False
        _log_info(f"Cancelling build of {job.root.name}")
        job.cancel()
        return True

    async def build(self, root: Path, source: str = "manual") -> BuildOutcome:
        """
        Build root and return its outcome.

        Concurrent calls for the same root wait for each other; failures are
        reported in the outcome, never raised.
        """
        root = Path(root).resolve()
        lock = self._locks.setdefault(root, asyncio.Lock())
        async with lock:
            job = BuildJob(
                root=root,
                step_names=[step.name for step in self.settings.toolchain],
                source=source,
            )
            self._jobs[root] = job
            try:
                outcome = await self._run(job)
            finally:
                del self._jobs[root]

        log_build_outcome(outcome, verbose=self.verbose)
        return outcome

    async def _run(self, job: BuildJob) -> BuildOutcome:
        output_dir = self.output_dir(job.root)
        output_dir.mkdir(parents=True, exist_ok=True)
        artifact = self.output_path(job.root)
        baseline = _mtime_ns(artifact)
        log_path = self.log_path(job.root)
        log_baseline = _mtime_ns(log_path)
        start = time.monotonic()

        log_build_start(job.root, job.step_names, job.root.parent)

        fatal = False
        recoverable = False
        errors: List[str] = []

        for step in self.settings.toolchain:
            if job.cancelled:
                break

            result = StepResult(name=step.name)
            try:
                process = await run_step(
                    step,
                    job.root,
                    output_dir,
                    job.stop_event,
                    kill_grace_s=self.settings.kill_grace_s,
                )
            except ToolchainTimeout as exc:
                result.timed_out = True
                result.fatal = True
                result.stderr = exc.diagnostics
                result.elapsed_s = exc.timeout_s
                errors.append(str(exc))
            except ToolchainStepFailure as exc:
                result.fatal = True
                result.stderr = exc.diagnostics
                errors.append(str(exc))
            else:
                result.command = process.command
                result.exit_code = process.exit_code
                result.stdout = process.stdout
                result.stderr = process.stderr
                result.elapsed_s = process.elapsed_s
                if not job.cancelled and process.exit_code != 0:
                    produced = _mtime_ns(artifact) not in (None, baseline)
                    result.fatal = not produced
                    if not produced:
                        errors.append(
                            f"Step '{step.name}' exited with code {process.exit_code} "
                            f"and produced no {artifact.name}"
                        )

            job.steps.append(result)
            log_step_result(result)

            if result.fatal:
                fatal = True
                break
            if not result.ok:
                recoverable = True

        elapsed = time.monotonic() - start
        if _mtime_ns(log_path) in (None, log_baseline):
            # Whatever is on disk belongs to an earlier build
            _log_debug(f"{log_path.name} not written by this build; skipping log diagnostics")
            log_errors, warnings = [], []
        else:
            log_errors, warnings = read_latex_log(log_path)
        errors = log_errors + errors

        produced = _mtime_ns(artifact) not in (None, baseline)
        if job.cancelled:
            status = BuildStatus.CANCELLED
        elif fatal:
            status = BuildStatus.FAILURE
        elif not produced:
            status = BuildStatus.FAILURE
            errors.append(f"{artifact.name} was not generated")
        elif recoverable:
            status = BuildStatus.PARTIAL
        else:
            status = BuildStatus.SUCCESS

        _log_debug(f"{job.root.name}: {len(job.steps)}/{len(job.step_names)} steps ran")
        return BuildOutcome(
            root=job.root,
            status=status,
            output_path=artifact if artifact.exists() else None,
            steps=job.steps,
            errors=errors,
            warnings=warnings,
            elapsed_s=elapsed,
            source=job.source,
        )


def _mtime_ns(path: Path) -> Optional[int]:
    try:
        return path.stat().st_mtime_ns
    except FileNotFoundError:
        return None
