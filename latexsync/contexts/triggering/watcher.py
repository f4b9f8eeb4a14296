"""
Periodic mtime scan of every tracked project's dependency set.

Changed files are reported to the coordinator as PERIODIC triggers, which go
through the same policy as external file changes.
"""

import asyncio
from pathlib import Path
from typing import Dict, List, Optional

from latexsync.contexts.triggering.coordinator import TriggerCoordinator, TriggerSource
from latexsync.contexts.triggering.logger import _log_debug, _log_info


class PollingWatcher:
    """
    Polls project files for modification.

    Attributes:
        coordinator: Receives a trigger for every changed file
        interval_s: Seconds between scans
    """

    def __init__(self, coordinator: TriggerCoordinator, interval_s: float = 1.0):
        self.coordinator = coordinator
        self.interval_s = interval_s
        self._mtimes: Dict[Path, int] = {}
        self._task: Optional[asyncio.Task] = None

    def watched_files(self) -> List[Path]:
        files = set()
        for project in self.coordinator.projects():
            files.add(project.root)
            files.update(project.dependencies)
        return sorted(files)

    def poll_once(self) -> List[Path]:
        """
        Scan once and trigger for files whose mtime moved since the last scan.

        Files seen for the first time are only recorded.

        Returns:
            The changed files
        """
        changed = []
        seen = set()
        for path in self.watched_files():
            seen.add(path)
            try:
                mtime = path.stat().st_mtime_ns
            except FileNotFoundError:
                continue
            previous = self._mtimes.get(path)
            self._mtimes[path] = mtime
            if previous is not None and previous != mtime:
                changed.append(path)

        for path in set(self._mtimes) - seen:
            del self._mtimes[path]

        for path in changed:
            _log_debug(f"{path.name} changed on disk")
            self.coordinator.trigger(path, TriggerSource.PERIODIC)
        return changed

    async def run(self) -> None:
        _log_info(f"Watching project files every {self.interval_s:.1f}s")
        while True:
            self.poll_once()
            await asyncio.sleep(self.interval_s)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
