"""In-memory record of deployments."""

from datetime import datetime, timedelta

from deployer.models.deployment import Deployment, DeploymentStatus


class DeploymentStore:
    """Keeps deployment records for status queries.

    Records do not survive a restart; the published files on disk are the
    only durable state.
    """

    def __init__(self, ttl_hours: int = 24):
        self._deployments: dict[str, Deployment] = {}
        self._ttl = timedelta(hours=ttl_hours)

    def add(self, deployment: Deployment) -> Deployment:
        self._deployments[deployment.id] = deployment
        return deployment

    def get(self, deployment_id: str) -> Deployment | None:
        """Get a deployment by ID, dropping it if it has expired."""
        deployment = self._deployments.get(deployment_id)
        if deployment and self._expired(deployment, datetime.utcnow()):
            del self._deployments[deployment_id]
            return None
        return deployment

    def list_deployments(self, status: DeploymentStatus | None = None) -> list[Deployment]:
        """List deployments, newest first."""
        deployments = list(self._deployments.values())
        if status:
            deployments = [d for d in deployments if d.status == status]
        deployments.sort(key=lambda d: d.created_at, reverse=True)
        return deployments

    def cleanup_expired(self) -> int:
        """Remove expired records. Returns count of removed records."""
        now = datetime.utcnow()
        expired = [
            did for did, deployment in self._deployments.items()
            if self._expired(deployment, now)
        ]
        for did in expired:
            del self._deployments[did]
        return len(expired)

    def _expired(self, deployment: Deployment, now: datetime) -> bool:
        # In-flight deployments are never expired
        return deployment.status.is_terminal and now - deployment.updated_at > self._ttl
