"""Core functionality for the deployer."""

from deployer.core.exceptions import (
    AssetNotFoundError,
    BuildFailedError,
    BuildTimeoutError,
    CloneFailedError,
    DeployerError,
    DeploymentConflictError,
    DeploymentNotFoundError,
    PublishFailedError,
)
from deployer.core.services import Services, build_services

__all__ = [
    "AssetNotFoundError",
    "BuildFailedError",
    "BuildTimeoutError",
    "CloneFailedError",
    "DeployerError",
    "DeploymentConflictError",
    "DeploymentNotFoundError",
    "PublishFailedError",
    "Services",
    "build_services",
]
