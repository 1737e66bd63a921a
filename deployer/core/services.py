"""Construction of the application's components from one settings value."""

from dataclasses import dataclass

from deployer.config import Settings
from deployer.core.builder import BuildOrchestrator
from deployer.core.cleanup import CleanupScheduler
from deployer.core.commands import CommandRunner, run_command
from deployer.core.ingestor import RepositoryIngestor
from deployer.core.processes import ProcessRegistry
from deployer.core.publisher import ArtifactPublisher
from deployer.core.resolver import AssetResolver
from deployer.core.routes import HttpRouteRegistrar, LoggingRouteRegistrar, RouteRegistrar
from deployer.core.serving_root import ServingRoot
from deployer.core.store import DeploymentStore


@dataclass
class Services:
    """Everything the API layer talks to."""

    settings: Settings
    store: DeploymentStore
    processes: ProcessRegistry
    serving_root: ServingRoot
    cleanup: CleanupScheduler
    publisher: ArtifactPublisher
    builder: BuildOrchestrator
    ingestor: RepositoryIngestor
    resolver: AssetResolver


def build_services(
    settings: Settings,
    runner: CommandRunner = run_command,
    routes: RouteRegistrar | None = None,
) -> Services:
    """Wire up all components for ``settings``.

    ``runner`` executes clone and build commands; tests substitute a fake.
    """
    settings.deployments_root.mkdir(parents=True, exist_ok=True)

    if routes is None:
        if settings.proxy_admin_url:
            routes = HttpRouteRegistrar(settings.proxy_admin_url)
        else:
            routes = LoggingRouteRegistrar()

    store = DeploymentStore()
    processes = ProcessRegistry()
    serving_root = ServingRoot(settings.serving_root)
    cleanup = CleanupScheduler(settings.cleanup_grace_seconds)
    publisher = ArtifactPublisher(serving_root, cleanup)
    builder = BuildOrchestrator(settings, processes, runner=runner)
    ingestor = RepositoryIngestor(
        settings,
        builder,
        publisher,
        store,
        routes=routes,
        runner=runner,
    )

    return Services(
        settings=settings,
        store=store,
        processes=processes,
        serving_root=serving_root,
        cleanup=cleanup,
        publisher=publisher,
        builder=builder,
        ingestor=ingestor,
        resolver=AssetResolver(serving_root),
    )
