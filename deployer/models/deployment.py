"""Deployment data models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class ProjectType(str, Enum):
    """Kind of buildable project, derived from marker files."""

    NODE = "node"
    GO = "go"
    PYTHON = "python"
    STATIC = "static"
    UNKNOWN = "unknown"


class DeploymentStatus(str, Enum):
    """Deployment lifecycle status."""

    CLONING = "cloning"
    CLASSIFYING = "classifying"
    BUILDING = "building"
    PUBLISHING = "publishing"
    LIVE = "live"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (DeploymentStatus.LIVE, DeploymentStatus.FAILED)


# Forward edges of the lifecycle; FAILED is reachable from any non-terminal state
_NEXT_STATUS: dict[DeploymentStatus, DeploymentStatus] = {
    DeploymentStatus.CLONING: DeploymentStatus.CLASSIFYING,
    DeploymentStatus.CLASSIFYING: DeploymentStatus.BUILDING,
    DeploymentStatus.BUILDING: DeploymentStatus.PUBLISHING,
    DeploymentStatus.PUBLISHING: DeploymentStatus.LIVE,
}


class StatusChange(BaseModel):
    """A single recorded lifecycle transition."""

    status: DeploymentStatus
    at: datetime = Field(default_factory=datetime.utcnow)


class Deployment(BaseModel):
    """One clone-build-publish attempt."""

    id: str
    repo_name: str
    owner: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    status: DeploymentStatus = DeploymentStatus.CLONING
    history: list[StatusChange] = Field(default_factory=list)

    work_dir: str
    project_dir: str | None = None
    project_type: ProjectType | None = None
    project_name: str | None = None

    deploy_url: str | None = None
    pid: int | None = None

    error: str | None = None
    error_status: DeploymentStatus | None = None

    @classmethod
    def start(cls, repo_name: str, owner: str, work_dir: str, timestamp: int) -> "Deployment":
        """Create a deployment in its initial ``cloning`` state."""
        deployment = cls(
            id=deployment_id_for(repo_name, timestamp),
            repo_name=repo_name,
            owner=owner,
            work_dir=work_dir,
        )
        deployment.history.append(StatusChange(status=deployment.status))
        return deployment

    def advance(self, status: DeploymentStatus) -> None:
        """Move to the next lifecycle state.

        Raises:
            ValueError: If ``status`` is not the successor of the current state
        """
        if _NEXT_STATUS.get(self.status) != status:
            raise ValueError(
                f"invalid transition {self.status.value} -> {status.value}"
            )
        self._record(status)

    def fail(self, error: str) -> None:
        """Move to the absorbing ``failed`` state."""
        if self.status.is_terminal:
            raise ValueError(f"deployment already {self.status.value}")
        self.error = error
        self.error_status = self.status
        self._record(DeploymentStatus.FAILED)

    def _record(self, status: DeploymentStatus) -> None:
        change = StatusChange(status=status)
        self.status = status
        self.history.append(change)
        self.updated_at = change.at


def deployment_id_for(repo_name: str, timestamp: int) -> str:
    """Format the opaque deployment id ``{repo_name}-{unix_timestamp}``."""
    return f"{repo_name}-{timestamp}"


class DeployRequest(BaseModel):
    """Request body for the deploy trigger."""

    repo_name: str = Field(..., min_length=1, max_length=100, pattern=r"^[A-Za-z0-9_.-]+$")
    owner: str | None = Field(default=None, max_length=100, pattern=r"^[A-Za-z0-9_.-]+$")


class DeployResponse(BaseModel):
    """Response for a successful deploy."""

    message: str = "Repository deployed successfully"
    deploy_url: str
    deployment_id: str


class DeploymentResponse(BaseModel):
    """API view of a deployment record."""

    deployment_id: str
    repo_name: str
    status: DeploymentStatus
    project_type: ProjectType | None = None
    project_name: str | None = None
    deploy_url: str | None = None
    created_at: datetime
    updated_at: datetime
    error: str | None = None
    history: list[StatusChange] = Field(default_factory=list)

    @classmethod
    def from_deployment(cls, deployment: Deployment) -> "DeploymentResponse":
        """Create response from deployment model."""
        return cls(
            deployment_id=deployment.id,
            repo_name=deployment.repo_name,
            status=deployment.status,
            project_type=deployment.project_type,
            project_name=deployment.project_name,
            deploy_url=deployment.deploy_url,
            created_at=deployment.created_at,
            updated_at=deployment.updated_at,
            error=deployment.error,
            history=deployment.history,
        )


class DeploymentListResponse(BaseModel):
    """Response for listing deployments."""

    deployments: list[DeploymentResponse]
    total: int

    @classmethod
    def from_deployments(cls, deployments: list[Deployment]) -> "DeploymentListResponse":
        return cls(
            deployments=[DeploymentResponse.from_deployment(d) for d in deployments],
            total=len(deployments),
        )

