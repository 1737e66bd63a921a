"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from deployer.config import Settings
from deployer.core.commands import CommandResult
from deployer.core.processes import LaunchedProcess, ProcessRegistry
from deployer.core.services import Services, build_services
from deployer.main import create_app


class FakeRunner:
    """Stands in for ``run_command``.

    ``git clone`` materializes ``repo_files`` in the target directory and
    ``npm run build`` writes ``build_files`` relative to its working
    directory. Any command starting with a key of ``results`` returns that
    result instead.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[list[str], Path | None]] = []
        self.repo_files: dict[str, str] = {}
        self.build_files: dict[str, str] = {}
        self.results: dict[str, CommandResult] = {}

    @property
    def commands(self) -> list[str]:
        return [" ".join(cmd) for cmd, _ in self.calls]

    async def __call__(self, command, cwd=None, timeout=600.0, env=None, redact=()):
        cmd = [str(part) for part in command]
        self.calls.append((cmd, Path(cwd) if cwd else None))
        line = " ".join(cmd)

        for prefix, result in self.results.items():
            if line.startswith(prefix):
                return CommandResult(
                    command=cmd,
                    exit_code=result.exit_code,
                    output=result.output,
                    timed_out=result.timed_out,
                )

        if cmd[:2] == ["git", "clone"]:
            write_tree(Path(cmd[-1]), self.repo_files)
        elif cmd[:3] == ["npm", "run", "build"]:
            write_tree(Path(cwd), self.build_files)

        return CommandResult(command=cmd, exit_code=0)


class FakeProcess:
    pid = 4242

    def poll(self):
        return None


class RecordingRegistry(ProcessRegistry):
    """Records launches without starting anything."""

    def __init__(self) -> None:
        super().__init__()
        self.launches: list[dict] = []

    def launch(self, deployment_id, command, cwd, port, log_file=None):
        self.launches.append(
            {"deployment_id": deployment_id, "command": list(command), "cwd": cwd, "port": port}
        )
        launched = LaunchedProcess(
            deployment_id=deployment_id,
            command=list(command),
            cwd=Path(cwd),
            port=port,
            process=FakeProcess(),
        )
        self._processes[deployment_id] = launched
        return launched


def write_tree(root: Path, files: dict[str, str]) -> None:
    """Create ``files`` (relative path -> text) under ``root``."""
    root.mkdir(parents=True, exist_ok=True)
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)


VITE_INDEX = """<!doctype html>
<html lang="en">
  <head>
    <link rel="stylesheet" href="/src/index.css" />
  </head>
  <body>
    <div id="root"></div>
    <script type="module" src="/src/main.jsx"></script>
  </body>
</html>
"""


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings rooted in a temporary directory."""
    return Settings(
        _env_file=None,
        deployments_root=tmp_path / "deployments",
        serving_root=tmp_path / "Deployed",
        log_directory=tmp_path / "logs",
        public_base_url="http://test",
        cleanup_grace_seconds=0.05,
        command_timeout_seconds=5,
        clone_timeout_seconds=5,
    )


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def services(settings: Settings, runner: FakeRunner) -> Services:
    """Components wired to the fake runner."""
    return build_services(settings, runner=runner)


@pytest.fixture
async def client(settings: Settings, services: Services) -> AsyncClient:
    """Async test client for an app built from the test services."""
    app = create_app(settings, services)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await services.cleanup.flush()
