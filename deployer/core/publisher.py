"""Artifact publisher.

Moves build output from a deployment's transient directory into the
permanent serving root under the project's clean name.
"""

import asyncio
import shutil
from pathlib import Path

from deployer.core.cleanup import CleanupScheduler
from deployer.core.exceptions import PublishFailedError
from deployer.core.layout import EXCLUDED_DIRS, clean_name, find_build_dir
from deployer.core.serving_root import ServingRoot, is_valid_project_name
from deployer.models.published import PublishedProject
from deployer.utils.logging import get_logger


def copy_tree(source: Path, target: Path) -> None:
    """Recursively copy ``source`` into ``target``, skipping excluded dirs at every level."""
    shutil.copytree(
        source,
        target,
        ignore=shutil.ignore_patterns(*EXCLUDED_DIRS),
        symlinks=True,
        dirs_exist_ok=True,
    )


class ArtifactPublisher:
    """Publishes build output and schedules removal of the transient copy."""

    def __init__(self, serving_root: ServingRoot, cleanup: CleanupScheduler):
        self.serving_root = serving_root
        self.cleanup = cleanup
        self.logger = get_logger("publisher")
        self._locks: dict[str, asyncio.Lock] = {}

    async def publish(
        self,
        source_dir: Path,
        deployment_id: str,
        transient_dir: Path | None = None,
    ) -> PublishedProject:
        """Publish ``source_dir`` under the clean name of ``deployment_id``.

        The first candidate build output directory found in ``source_dir`` is
        copied under its own name; when there is none the whole tree is
        copied. The previous generation of the project stays readable until
        the new one is fully in place. ``transient_dir`` (default ``source_dir``)
        is removed after the cleanup grace period.

        Raises:
            PublishFailedError: If copying or swapping fails
        """
        source_dir = Path(source_dir)
        name = clean_name(deployment_id)
        if not is_valid_project_name(name):
            raise PublishFailedError(name, "invalid project name")
        if not source_dir.is_dir():
            raise PublishFailedError(name, f"source directory missing: {source_dir.name}")

        lock = self._locks.setdefault(name, asyncio.Lock())
        async with lock:
            build_dir = find_build_dir(source_dir)
            if build_dir:
                self.logger.info("publisher.build_dir_found", project=name, build_dir=build_dir)
            else:
                self.logger.info("publisher.copying_whole_tree", project=name)

            generation: Path | None = None
            try:
                generation = self.serving_root.new_generation(name)
                if build_dir:
                    await asyncio.to_thread(copy_tree, source_dir / build_dir, generation / build_dir)
                else:
                    await asyncio.to_thread(copy_tree, source_dir, generation)
                await asyncio.to_thread(self.serving_root.activate, name, generation)
            except (OSError, shutil.Error, ValueError) as e:
                self.logger.error("publisher.failed", project=name, error=str(e))
                if generation is not None:
                    shutil.rmtree(generation, ignore_errors=True)
                raise PublishFailedError(name, str(e)) from e

        self.logger.info(
            "publisher.published",
            project=name,
            deployment_id=deployment_id,
            generation=generation.name,
        )

        self.cleanup.schedule(name, Path(transient_dir or source_dir))

        return PublishedProject(
            name=name,
            directory=generation,
            generation=generation.name,
            build_dir=build_dir,
        )
