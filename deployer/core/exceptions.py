"""Custom exceptions for the deployer."""

from typing import Any


class DeployerError(Exception):
    """Base exception for the deployer."""

    status_code: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class CloneFailedError(DeployerError):
    """Cloning the repository failed."""

    status_code = 502

    def __init__(self, repo_name: str, message: str):
        super().__init__(
            f"failed to clone repository: {message}",
            {"repo_name": repo_name},
        )


class BuildFailedError(DeployerError):
    """A build step exited unsuccessfully."""

    def __init__(self, step: str, message: str, output: str | None = None):
        details: dict[str, Any] = {"step": step}
        if output:
            details["output"] = output[-1000:]
        super().__init__(f"{step} failed: {message}", details)
        self.step = step


class BuildTimeoutError(BuildFailedError):
    """A build step did not finish within its time limit."""

    def __init__(self, step: str, timeout: float):
        DeployerError.__init__(
            self,
            f"build timed out: {step} exceeded {timeout:g}s",
            {"step": step, "timeout_seconds": timeout},
        )
        self.step = step


class PublishFailedError(DeployerError):
    """Copying or swapping published artifacts failed."""

    def __init__(self, project_name: str, message: str):
        super().__init__(
            f"failed to publish {project_name}: {message}",
            {"project_name": project_name},
        )


class AssetNotFoundError(DeployerError):
    """No file could be resolved for a request."""

    status_code = 404

    def __init__(self, requested_path: str):
        super().__init__(f"File not found: {requested_path}")
        self.requested_path = requested_path


class DeploymentNotFoundError(DeployerError):
    """Deployment not found."""

    status_code = 404

    def __init__(self, deployment_id: str):
        super().__init__(
            f"Deployment not found: {deployment_id}",
            {"deployment_id": deployment_id},
        )


class DeploymentConflictError(DeployerError):
    """Another deployment already owns the working directory for this id."""

    status_code = 409

    def __init__(self, deployment_id: str):
        super().__init__(
            f"deployment already in progress: {deployment_id}",
            {"deployment_id": deployment_id},
        )
        self.deployment_id = deployment_id
