"""Deploy pipeline driver.

Clones a repository into a fresh transient directory and runs it through
classification, build and publication, recording every lifecycle transition
on the deployment.
"""

import asyncio
import shutil
import time
from pathlib import Path
from typing import Callable

import httpx

from deployer.config import Settings
from deployer.core.builder import BuildOrchestrator
from deployer.core.classifier import classify
from deployer.core.commands import CommandRunner, run_command
from deployer.core.exceptions import CloneFailedError, DeployerError, DeploymentConflictError
from deployer.core.publisher import ArtifactPublisher
from deployer.core.routes import LoggingRouteRegistrar, RouteRegistrar, host_pattern_for
from deployer.core.store import DeploymentStore
from deployer.models.deployment import Deployment, DeploymentStatus, deployment_id_for
from deployer.utils.logging import get_logger


class RepositoryIngestor:
    """Runs clone -> classify -> build -> publish for a repository."""

    def __init__(
        self,
        settings: Settings,
        builder: BuildOrchestrator,
        publisher: ArtifactPublisher,
        store: DeploymentStore,
        routes: RouteRegistrar | None = None,
        runner: CommandRunner = run_command,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.builder = builder
        self.publisher = publisher
        self.store = store
        self.routes = routes or LoggingRouteRegistrar()
        self.runner = runner
        self.clock = clock
        self.logger = get_logger("ingestor")

    def clone_url(self, owner: str, repo_name: str, credential: str) -> str:
        auth = f"{credential}@" if credential else ""
        return f"https://{auth}{self.settings.git_host}/{owner}/{repo_name}.git"

    async def deploy(self, owner: str, repo_name: str, credential: str) -> Deployment:
        """Deploy ``owner/repo_name`` and return the live deployment.

        Raises:
            DeploymentConflictError: If a deployment with the same id still
                owns its working directory; nothing of it is touched
            DeployerError: If any step fails; the deployment is left ``failed``
        """
        timestamp = int(self.clock())
        work_dir = Path(self.settings.deployments_root).resolve() / deployment_id_for(
            repo_name, timestamp
        )
        deployment = Deployment.start(repo_name, owner, str(work_dir), timestamp)

        try:
            claimed = self._claim_work_dir(work_dir)
        except OSError as e:
            self.store.add(deployment)
            error = CloneFailedError(repo_name, f"cannot create work directory: {e}")
            self._record_failure(deployment, error.message)
            raise error from e

        if not claimed:
            # Same repository deployed twice within one second
            self.logger.warning("ingestor.deploy.conflict", deployment_id=deployment.id)
            raise DeploymentConflictError(deployment.id)

        self.store.add(deployment)
        self.logger.info(
            "ingestor.deploy.started",
            deployment_id=deployment.id,
            owner=owner,
            repo=repo_name,
        )

        try:
            await self._clone(deployment, work_dir, credential)

            deployment.advance(DeploymentStatus.CLASSIFYING)
            project_dir, project_type = await asyncio.to_thread(classify, work_dir)
            deployment.project_dir = str(project_dir)
            deployment.project_type = project_type
            self.logger.info(
                "ingestor.classified",
                deployment_id=deployment.id,
                project_type=project_type.value,
                project_dir=str(project_dir),
            )

            deployment.advance(DeploymentStatus.BUILDING)
            result = await self.builder.build(project_dir, project_type, deployment.id)

            deployment.advance(DeploymentStatus.PUBLISHING)
            if result.publish_source is not None:
                published = await self.publisher.publish(
                    result.publish_source, deployment.id, transient_dir=work_dir
                )
                deployment.project_name = published.name
                await self._register_route(published.name)
            else:
                deployment.pid = result.pid

            deployment.deploy_url = result.deploy_url
            deployment.advance(DeploymentStatus.LIVE)

        except Exception as e:
            if isinstance(e, DeployerError):
                message = e.message
            else:
                message = str(e) or type(e).__name__
            self._record_failure(deployment, message)
            if work_dir.exists():
                self.publisher.cleanup.schedule(deployment.id, work_dir)
            raise

        self.logger.info(
            "ingestor.deploy.completed",
            deployment_id=deployment.id,
            deploy_url=deployment.deploy_url,
        )
        return deployment

    def _claim_work_dir(self, work_dir: Path) -> bool:
        """Create ``work_dir`` for this deployment alone.

        Returns:
            False if the directory already exists
        """
        work_dir.parent.mkdir(parents=True, exist_ok=True)
        try:
            work_dir.mkdir()
        except FileExistsError:
            return False
        return True

    def _record_failure(self, deployment: Deployment, message: str) -> None:
        deployment.fail(message)
        self.logger.error(
            "ingestor.deploy.failed",
            deployment_id=deployment.id,
            failed_in=deployment.error_status.value if deployment.error_status else None,
            error=message,
        )

    async def _clone(self, deployment: Deployment, work_dir: Path, credential: str) -> None:
        url = self.clone_url(deployment.owner, deployment.repo_name, credential)
        timeout = self.settings.clone_timeout_seconds

        try:
            result = await self.runner(
                ["git", "clone", url, str(work_dir)],
                timeout=timeout,
                redact=[credential],
            )
        except OSError as e:
            raise CloneFailedError(deployment.repo_name, str(e)) from e

        if result.timed_out:
            shutil.rmtree(work_dir, ignore_errors=True)
            raise CloneFailedError(deployment.repo_name, f"clone timed out after {timeout:g}s")
        if not result.ok:
            shutil.rmtree(work_dir, ignore_errors=True)
            lines = result.output.strip().splitlines()
            reason = lines[-1] if lines else f"exit status {result.exit_code}"
            raise CloneFailedError(deployment.repo_name, reason)

        self.logger.info("ingestor.cloned", deployment_id=deployment.id, path=str(work_dir))

    async def _register_route(self, project_name: str) -> None:
        directory = self.publisher.serving_root.root / project_name
        host = host_pattern_for(project_name, self.settings.proxy_host)
        try:
            await self.routes.register_route(project_name, directory, host)
        except (httpx.HTTPError, OSError) as e:
            # The proxy is optional; serving under /projects keeps working without it
            self.logger.warning("ingestor.route_registration_failed", project=project_name, error=str(e))
