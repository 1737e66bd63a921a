"""Data models for the deployer."""

from deployer.models.deployment import (
    Deployment,
    DeploymentListResponse,
    DeploymentResponse,
    DeploymentStatus,
    DeployRequest,
    DeployResponse,
    ProjectType,
    StatusChange,
)
from deployer.models.published import (
    PublishedProject,
    PublishedProjectInfo,
    PublishedProjectListResponse,
)

__all__ = [
    # Deployment models
    "Deployment",
    "DeploymentListResponse",
    "DeploymentResponse",
    "DeploymentStatus",
    "DeployRequest",
    "DeployResponse",
    "ProjectType",
    "StatusChange",
    # Published project models
    "PublishedProject",
    "PublishedProjectInfo",
    "PublishedProjectListResponse",
]
