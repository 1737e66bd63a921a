"""Deploy trigger and deployment status endpoints."""

from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, Request, status

from deployer.api.deps import CredentialDep, DeploymentDep, ServicesDep
from deployer.models.deployment import (
    DeploymentListResponse,
    DeploymentResponse,
    DeploymentStatus,
    DeployRequest,
    DeployResponse,
)

router = APIRouter()


@router.post(
    "/deploy",
    response_model=DeployResponse,
    summary="Clone, build and publish a repository",
    description="Runs the whole pipeline before responding; expect this to take as long as the build.",
)
async def deploy(
    data: DeployRequest,
    request: Request,
    services: ServicesDep,
    credential: CredentialDep,
) -> DeployResponse:
    """Deploy one of the caller's repositories."""
    owner = data.owner or request.cookies.get("github_user")
    if not owner:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="repository owner is required",
        )

    deployment = await services.ingestor.deploy(owner, data.repo_name, credential)

    return DeployResponse(
        deploy_url=deployment.deploy_url or "",
        deployment_id=deployment.id,
    )


@router.get(
    "/deployments",
    response_model=DeploymentListResponse,
    summary="List deployments",
)
async def list_deployments(
    services: ServicesDep,
    status_filter: Annotated[DeploymentStatus | None, Query(alias="status")] = None,
) -> DeploymentListResponse:
    """List recorded deployments, newest first."""
    return DeploymentListResponse.from_deployments(
        services.store.list_deployments(status=status_filter)
    )


@router.get(
    "/deployments/{deployment_id}",
    response_model=DeploymentResponse,
    summary="Get deployment status",
)
async def get_deployment(deployment: DeploymentDep) -> DeploymentResponse:
    """Get the lifecycle state of a deployment."""
    return DeploymentResponse.from_deployment(deployment)
