"""Permanent serving root with generation indirection.

Layout::

    {root}/{name}                      -> .generations/{name}-{generation}
    {root}/.generations/{name}-{gen}/  published files

A publish fills a fresh generation directory and then atomically replaces the
``{name}`` symlink. Readers take a lease on whatever generation the pointer
named when they started; a superseded generation is deleted once its last
lease is released, so a reader never sees a missing or half-copied tree.
"""

import os
import shutil
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from deployer.utils.logging import get_logger

logger = get_logger(__name__)

GENERATIONS_DIR = ".generations"


def is_valid_project_name(name: str) -> bool:
    """Whether ``name`` can be used as a single path segment under the root."""
    return bool(name) and not name.startswith(".") and "/" not in name and "\\" not in name


class ServingRoot:
    """Name-addressed store of published project trees."""

    def __init__(self, root: Path):
        self.root = Path(root).resolve()
        self.generations = self.root / GENERATIONS_DIR
        self.generations.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self._leases: dict[Path, int] = {}
        self._retired: set[Path] = set()

    def new_generation(self, name: str) -> Path:
        """Create an empty directory for the next generation of ``name``."""
        if not is_valid_project_name(name):
            raise ValueError(f"invalid project name: {name!r}")
        path = self.generations / f"{name}-{time.time_ns()}"
        path.mkdir(parents=True)
        return path

    def current(self, name: str) -> Path | None:
        """Resolved directory currently published under ``name``."""
        if not is_valid_project_name(name):
            return None
        pointer = self.root / name
        if not pointer.is_dir():
            return None
        return pointer.resolve()

    def activate(self, name: str, generation: Path) -> Path | None:
        """Point ``name`` at ``generation`` and retire what it pointed at before.

        Returns:
            The retired directory, if there was one
        """
        pointer = self.root / name
        target = Path(generation).resolve()

        with self._lock:
            previous: Path | None = None
            if pointer.is_symlink():
                previous = pointer.resolve()
            elif pointer.is_dir():
                # Plain directory from an older layout: move it into the arena first
                previous = self.generations / f"{name}-legacy-{time.time_ns()}"
                pointer.rename(previous)

            swap = self.root / f".{name}.swap-{time.time_ns()}"
            os.symlink(os.path.relpath(target, self.root), swap, target_is_directory=True)
            os.replace(swap, pointer)

            stale = None
            if previous is not None and previous != target:
                if self._leases.get(previous):
                    self._retired.add(previous)
                else:
                    stale = previous

        logger.info(
            "serving_root.activated",
            project=name,
            generation=target.name,
            retired=previous.name if previous else None,
        )
        if stale is not None:
            self._remove(stale)
        return previous

    @contextmanager
    def lease(self, name: str) -> Iterator[Path | None]:
        """Pin the generation currently published under ``name``.

        Yields ``None`` when nothing is published under that name.
        """
        with self._lock:
            path = self.current(name)
            if path is not None:
                self._leases[path] = self._leases.get(path, 0) + 1
        try:
            yield path
        finally:
            if path is not None:
                self._release(path)

    def list_projects(self) -> list[tuple[str, Path]]:
        """Published ``(name, directory)`` pairs in name order."""
        projects = []
        for entry in sorted(self.root.iterdir()):
            if entry.name.startswith(".") or not entry.is_dir():
                continue
            projects.append((entry.name, entry.resolve()))
        return projects

    def _release(self, path: Path) -> None:
        with self._lock:
            remaining = self._leases.get(path, 0) - 1
            if remaining > 0:
                self._leases[path] = remaining
                return
            self._leases.pop(path, None)
            if path not in self._retired:
                return
            self._retired.discard(path)
        self._remove(path)

    def _remove(self, path: Path) -> None:
        try:
            shutil.rmtree(path)
        except OSError as e:
            logger.warning("serving_root.remove_failed", path=str(path), error=str(e))
        else:
            logger.info("serving_root.generation_removed", generation=path.name)
