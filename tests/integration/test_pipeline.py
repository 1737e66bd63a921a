"""Integration tests for the clone, classify, build and publish pipeline."""

import json
from pathlib import Path

import httpx
import pytest

from conftest import FakeRunner, RecordingRegistry
from deployer.config import Settings
from deployer.core.commands import CommandResult
from deployer.core.exceptions import BuildFailedError, CloneFailedError, DeploymentConflictError
from deployer.core.routes import HttpRouteRegistrar
from deployer.core.services import Services, build_services
from deployer.models.deployment import DeploymentStatus, ProjectType


def _clock(*timestamps: int):
    values = iter(timestamps)
    return lambda: next(values)


class TestRepositoryIngestor:
    """Tests for RepositoryIngestor."""

    @pytest.mark.asyncio
    async def test_node_project_in_subdirectory(self, services: Services, runner: FakeRunner):
        services.ingestor.clock = _clock(1_700_000_000)
        runner.repo_files = {
            "README.md": "monorepo",
            "frontend/package.json": json.dumps({"name": "web"}),
        }
        runner.build_files = {"build/index.html": "<h1>web</h1>"}

        deployment = await services.ingestor.deploy("octocat", "demo", "token")

        work_dir = Path(deployment.work_dir)
        assert deployment.id == "demo-1700000000"
        assert deployment.status == DeploymentStatus.LIVE
        assert deployment.project_type == ProjectType.NODE
        assert deployment.project_dir == str(work_dir / "frontend")
        assert deployment.project_name == "demo"
        assert deployment.deploy_url == "http://test/projects/demo"

        published = services.serving_root.root / "demo" / "build" / "index.html"
        assert published.read_text() == "<h1>web</h1>"

        assert services.cleanup.pending == {"demo": work_dir}
        await services.cleanup.flush()
        assert not work_dir.exists()

    @pytest.mark.asyncio
    async def test_republish_replaces_previous_version(
        self, services: Services, runner: FakeRunner
    ):
        services.ingestor.clock = _clock(100, 200)
        runner.repo_files = {"index.html": "v1", "old.html": "only in v1"}
        first = await services.ingestor.deploy("octocat", "site", "token")

        runner.repo_files = {"index.html": "v2"}
        second = await services.ingestor.deploy("octocat", "site", "token")

        target = services.serving_root.root / "site"
        assert (target / "index.html").read_text() == "v2"
        assert not (target / "old.html").exists()
        assert services.cleanup.pending == {"site": Path(second.work_dir)}
        assert services.resolver.resolve("site", "").content == b"v2"
        await services.cleanup.flush()
        assert not Path(first.work_dir).exists()

    @pytest.mark.asyncio
    async def test_go_project_is_launched(self, services: Services, runner: FakeRunner):
        registry = RecordingRegistry()
        services.builder.processes = registry
        runner.repo_files = {"go.mod": "module svc", "main.go": "package main"}

        deployment = await services.ingestor.deploy("octocat", "svc", "token")

        assert deployment.status == DeploymentStatus.LIVE
        assert deployment.project_type == ProjectType.GO
        assert deployment.pid == 4242
        assert deployment.project_name is None
        assert deployment.deploy_url == f"http://localhost:{registry.launches[0]['port']}"
        assert services.cleanup.pending == {}
        assert Path(deployment.work_dir).exists()

    @pytest.mark.asyncio
    async def test_unknown_project_falls_back_to_static_copy(
        self, services: Services, runner: FakeRunner
    ):
        runner.repo_files = {"README.md": "just docs"}

        deployment = await services.ingestor.deploy("octocat", "docs", "token")

        assert deployment.status == DeploymentStatus.LIVE
        assert deployment.project_type == ProjectType.UNKNOWN
        assert (services.serving_root.root / "docs" / "README.md").exists()
        await services.cleanup.flush()

    @pytest.mark.asyncio
    async def test_clone_failure(self, services: Services, runner: FakeRunner):
        runner.results["git clone"] = CommandResult(
            command=[], exit_code=128, output="fatal: Authentication failed"
        )

        with pytest.raises(CloneFailedError):
            await services.ingestor.deploy("octocat", "private", "bad-token")

        deployment = services.store.list_deployments()[0]
        assert deployment.status == DeploymentStatus.FAILED
        assert deployment.error_status == DeploymentStatus.CLONING
        assert "Authentication failed" in deployment.error
        assert len(runner.calls) == 1

    @pytest.mark.asyncio
    async def test_build_failure_schedules_cleanup(
        self, services: Services, runner: FakeRunner
    ):
        runner.repo_files = {"package.json": "{}"}
        runner.results["npm install"] = CommandResult(command=[], exit_code=1)

        with pytest.raises(BuildFailedError):
            await services.ingestor.deploy("octocat", "broken", "token")

        deployment = services.store.list_deployments()[0]
        assert deployment.status == DeploymentStatus.FAILED
        assert deployment.error_status == DeploymentStatus.BUILDING
        assert services.cleanup.pending == {deployment.id: Path(deployment.work_dir)}
        assert services.resolver.list_projects() == []
        await services.cleanup.flush()

    @pytest.mark.asyncio
    async def test_same_second_redeploy_leaves_running_deployment_alone(
        self, services: Services, runner: FakeRunner
    ):
        services.builder.processes = RecordingRegistry()
        services.ingestor.clock = _clock(1_700_000_000, 1_700_000_000)
        runner.repo_files = {"go.mod": "module svc", "main.go": "package main"}
        first = await services.ingestor.deploy("octocat", "svc", "token")

        with pytest.raises(DeploymentConflictError) as exc_info:
            await services.ingestor.deploy("octocat", "svc", "token")

        assert exc_info.value.status_code == 409
        assert (Path(first.work_dir) / "main.go").exists()
        assert services.store.get(first.id) is first
        assert first.status == DeploymentStatus.LIVE
        assert [cmd[:2] for cmd, _ in runner.calls].count(["git", "clone"]) == 1
        assert services.cleanup.pending == {}

    @pytest.mark.asyncio
    async def test_unusable_deployments_root_fails_deployment(
        self, services: Services, runner: FakeRunner, tmp_path: Path
    ):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        services.settings.deployments_root = blocker / "deployments"

        with pytest.raises(CloneFailedError):
            await services.ingestor.deploy("octocat", "demo", "token")

        deployment = services.store.list_deployments()[0]
        assert deployment.status == DeploymentStatus.FAILED
        assert deployment.error_status == DeploymentStatus.CLONING
        assert deployment.error.startswith("failed to clone repository: cannot create")
        assert runner.calls == []

    @pytest.mark.asyncio
    async def test_unexpected_error_fails_deployment(
        self, services: Services, runner: FakeRunner, monkeypatch: pytest.MonkeyPatch
    ):
        def unreadable(work_dir):
            raise PermissionError(13, "Permission denied", str(work_dir))

        monkeypatch.setattr("deployer.core.ingestor.classify", unreadable)
        runner.repo_files = {"index.html": "<h1>hi</h1>"}

        with pytest.raises(PermissionError):
            await services.ingestor.deploy("octocat", "locked", "token")

        deployment = services.store.list_deployments()[0]
        assert deployment.status == DeploymentStatus.FAILED
        assert deployment.error_status == DeploymentStatus.CLASSIFYING
        assert "Permission denied" in deployment.error
        assert services.cleanup.pending == {deployment.id: Path(deployment.work_dir)}
        await services.cleanup.flush()

    def test_clone_url_embeds_credential(self, services: Services):
        assert (
            services.ingestor.clone_url("octocat", "demo", "tok")
            == "https://tok@github.com/octocat/demo.git"
        )
        assert services.ingestor.clone_url("octocat", "demo", "") == "https://github.com/octocat/demo.git"


class TestRouteRegistration:
    """Tests for reverse-proxy route registration after publishing."""

    @pytest.mark.asyncio
    async def test_posts_route_to_proxy(self, settings: Settings, runner: FakeRunner):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"ok": True})

        registrar = HttpRouteRegistrar(
            "http://proxy/admin/routes", transport=httpx.MockTransport(handler)
        )
        services = build_services(settings, runner=runner, routes=registrar)
        runner.repo_files = {"index.html": "<h1>hi</h1>"}

        await services.ingestor.deploy("octocat", "site", "token")

        assert len(requests) == 1
        payload = json.loads(requests[0].content)
        assert payload == {
            "project": "site",
            "host": "site.localhost",
            "root": str((services.serving_root.root / "site").resolve()),
        }
        await services.cleanup.flush()

    @pytest.mark.asyncio
    async def test_proxy_failure_does_not_fail_deploy(
        self, settings: Settings, runner: FakeRunner
    ):
        registrar = HttpRouteRegistrar(
            "http://proxy/admin/routes",
            transport=httpx.MockTransport(lambda request: httpx.Response(503)),
        )
        services = build_services(settings, runner=runner, routes=registrar)
        runner.repo_files = {"index.html": "<h1>hi</h1>"}

        deployment = await services.ingestor.deploy("octocat", "site", "token")

        assert deployment.status == DeploymentStatus.LIVE
        await services.cleanup.flush()
