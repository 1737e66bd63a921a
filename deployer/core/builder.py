"""Build orchestration per project type."""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from deployer.config import Settings
from deployer.core.commands import CommandResult, CommandRunner, run_command
from deployer.core.exceptions import BuildFailedError, BuildTimeoutError
from deployer.core.layout import clean_name, find_build_dir
from deployer.core.processes import ProcessRegistry, derive_port
from deployer.models.deployment import ProjectType
from deployer.utils.logging import get_logger


@dataclass
class BuildResult:
    """Outcome of a build.

    ``publish_source`` is set for project types served from the serving root;
    launched types carry the process they started instead.
    """

    project_type: ProjectType
    deploy_url: str
    publish_source: Path | None = None
    build_dir: str | None = None
    port: int | None = None
    pid: int | None = None


class BuildOrchestrator:
    """Runs the type-specific build and launch sequence for a project.

    - node: install, build (a failing build is tolerated), publish the output
    - go: compile, launch the binary
    - python: virtualenv, install requirements, launch app.py
    - static / unknown: publish the tree as is
    """

    def __init__(
        self,
        settings: Settings,
        processes: ProcessRegistry,
        runner: CommandRunner = run_command,
    ):
        self.settings = settings
        self.processes = processes
        self.runner = runner
        self.logger = get_logger("builder")

    async def build(
        self, project_dir: Path, project_type: ProjectType, deployment_id: str
    ) -> BuildResult:
        """Build ``project_dir`` according to ``project_type``.

        Raises:
            BuildFailedError: If a fatal step fails
            BuildTimeoutError: If a step exceeds the command timeout
        """
        project_dir = Path(project_dir)
        self.logger.info(
            "builder.started",
            deployment_id=deployment_id,
            project_type=project_type.value,
            project_dir=str(project_dir),
        )

        if project_type == ProjectType.NODE:
            result = await self._build_node(project_dir, deployment_id)
        elif project_type == ProjectType.GO:
            result = await self._build_go(project_dir, deployment_id)
        elif project_type == ProjectType.PYTHON:
            result = await self._build_python(project_dir, deployment_id)
        else:
            if project_type == ProjectType.UNKNOWN:
                self.logger.warning(
                    "builder.unknown_project_type",
                    deployment_id=deployment_id,
                    fallback="static",
                )
            result = self._build_static(project_dir, deployment_id, project_type)

        self.logger.info(
            "builder.completed",
            deployment_id=deployment_id,
            deploy_url=result.deploy_url,
        )
        return result

    async def _build_node(self, project_dir: Path, deployment_id: str) -> BuildResult:
        try:
            set_homepage(project_dir, f"/projects/{clean_name(deployment_id)}")
        except (OSError, ValueError) as e:
            self.logger.warning("builder.homepage_not_updated", error=str(e))

        await self._run("npm install", ["npm", "install"], project_dir)

        result = await self._run(
            "npm run build", ["npm", "run", "build"], project_dir, fatal=False
        )
        if not result.ok:
            self.logger.warning(
                "builder.node_build_failed",
                deployment_id=deployment_id,
                returncode=result.exit_code,
                output=result.output[-500:],
            )

        build_dir = find_build_dir(project_dir)
        if build_dir:
            self.logger.info("builder.build_dir_found", build_dir=build_dir)
        else:
            self.logger.warning("builder.no_build_dir", deployment_id=deployment_id)

        return BuildResult(
            project_type=ProjectType.NODE,
            deploy_url=self.settings.project_url(clean_name(deployment_id)),
            publish_source=project_dir,
            build_dir=build_dir,
        )

    async def _build_go(self, project_dir: Path, deployment_id: str) -> BuildResult:
        await self._run("go build", ["go", "build", "-o", deployment_id], project_dir)

        port = derive_port(self.settings.go_base_port)
        return self._launch(
            ProjectType.GO,
            deployment_id,
            [str(project_dir / deployment_id)],
            project_dir,
            port,
        )

    async def _build_python(self, project_dir: Path, deployment_id: str) -> BuildResult:
        await self._run(
            "venv",
            [self.settings.python_executable, "-m", "venv", "venv"],
            project_dir,
        )

        pip, python = venv_executables(project_dir / "venv")
        await self._run(
            "pip install",
            [str(pip), "install", "-r", "requirements.txt"],
            project_dir,
        )

        port = derive_port(self.settings.python_base_port)
        return self._launch(
            ProjectType.PYTHON,
            deployment_id,
            [str(python), "app.py"],
            project_dir,
            port,
        )

    def _build_static(
        self, project_dir: Path, deployment_id: str, project_type: ProjectType
    ) -> BuildResult:
        return BuildResult(
            project_type=project_type,
            deploy_url=self.settings.project_url(clean_name(deployment_id)),
            publish_source=project_dir,
            build_dir=find_build_dir(project_dir),
        )

    def _launch(
        self,
        project_type: ProjectType,
        deployment_id: str,
        command: Sequence[str],
        project_dir: Path,
        port: int,
    ) -> BuildResult:
        try:
            launched = self.processes.launch(
                deployment_id,
                command,
                cwd=project_dir,
                port=port,
                log_file=project_dir / f"{deployment_id}.log",
            )
        except OSError as e:
            raise BuildFailedError("launch", str(e)) from e

        return BuildResult(
            project_type=project_type,
            deploy_url=f"http://{self.settings.launch_host}:{port}",
            port=port,
            pid=launched.pid,
        )

    async def _run(
        self,
        step: str,
        command: Sequence[str],
        cwd: Path,
        fatal: bool = True,
    ) -> CommandResult:
        timeout = self.settings.command_timeout_seconds
        try:
            result = await self.runner(command, cwd=cwd, timeout=timeout)
        except OSError as e:
            raise BuildFailedError(step, str(e)) from e

        if result.timed_out:
            raise BuildTimeoutError(step, timeout)
        if fatal and not result.ok:
            raise BuildFailedError(
                step, f"exit status {result.exit_code}", result.output
            )
        return result


def set_homepage(project_dir: Path, homepage: str) -> None:
    """Point ``package.json`` ``homepage`` at the project's serving path."""
    package_json = project_dir / "package.json"
    package = json.loads(package_json.read_text(encoding="utf-8"))
    if not isinstance(package, dict):
        raise ValueError("package.json is not an object")
    package["homepage"] = homepage
    package_json.write_text(json.dumps(package, indent=2) + "\n", encoding="utf-8")


def venv_executables(venv_dir: Path) -> tuple[Path, Path]:
    """Paths of ``pip`` and ``python`` inside a virtualenv."""
    if os.name == "nt":
        scripts = venv_dir / "Scripts"
        return scripts / "pip.exe", scripts / "python.exe"
    scripts = venv_dir / "bin"
    return scripts / "pip", scripts / "python"
