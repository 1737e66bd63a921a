"""Deferred removal of transient deployment directories."""

import asyncio
import shutil
from dataclasses import dataclass
from pathlib import Path

from deployer.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class _PendingCleanup:
    path: Path
    task: asyncio.Task


class CleanupScheduler:
    """Removes transient directories after a grace period.

    Pending removals are keyed by project name. Scheduling a new removal for
    a name cancels the pending one and starts deleting its directory in the
    background, so a republish never races a stale timer.
    """

    def __init__(self, grace_seconds: float):
        self.grace_seconds = grace_seconds
        self._pending: dict[str, _PendingCleanup] = {}
        self._removals: dict[Path, asyncio.Task] = {}

    @property
    def pending(self) -> dict[str, Path]:
        return {key: item.path for key, item in self._pending.items()}

    @property
    def removing(self) -> list[Path]:
        """Superseded directories whose removal is still running."""
        return list(self._removals)

    def schedule(self, key: str, path: Path) -> asyncio.Task:
        """Schedule removal of ``path`` after the grace period.

        Must be called from within a running event loop.
        """
        stale = self._pending.pop(key, None)
        if stale is not None and stale.path != path:
            stale.task.cancel()
            logger.info("cleanup.superseded", key=key, path=str(stale.path))
            self._start_removal(stale.path)
        elif stale is not None:
            stale.task.cancel()

        task = asyncio.get_running_loop().create_task(self._run(key, path))
        self._pending[key] = _PendingCleanup(path=path, task=task)
        return task

    def cancel(self, key: str) -> bool:
        """Cancel a pending removal without deleting anything."""
        item = self._pending.pop(key, None)
        if item is None:
            return False
        item.task.cancel()
        return True

    async def flush(self) -> None:
        """Remove every pending directory now and wait for running removals."""
        items = list(self._pending.values())
        self._pending.clear()
        for item in items:
            item.task.cancel()
            await asyncio.to_thread(_remove_tree, item.path)
        if self._removals:
            await asyncio.gather(*list(self._removals.values()))

    def _start_removal(self, path: Path) -> None:
        if path in self._removals:
            return
        task = asyncio.get_running_loop().create_task(asyncio.to_thread(_remove_tree, path))
        self._removals[path] = task
        task.add_done_callback(lambda _: self._removals.pop(path, None))

    async def _run(self, key: str, path: Path) -> None:
        await asyncio.sleep(self.grace_seconds)
        current = self._pending.get(key)
        if current is not None and current.path == path:
            del self._pending[key]
        await asyncio.to_thread(_remove_tree, path)


def _remove_tree(path: Path) -> None:
    if not path.exists():
        return
    logger.info("cleanup.removing", path=str(path))
    try:
        shutil.rmtree(path)
    except OSError as e:
        logger.warning("cleanup.failed", path=str(path), error=str(e))
