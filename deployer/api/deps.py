"""Dependency injection for API endpoints."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from deployer.core.exceptions import DeploymentNotFoundError
from deployer.core.services import Services
from deployer.models.deployment import Deployment


def get_services(request: Request) -> Services:
    """Components built for this application instance."""
    return request.app.state.services


ServicesDep = Annotated[Services, Depends(get_services)]


async def get_deployment_by_id(deployment_id: str, services: ServicesDep) -> Deployment:
    """Get a deployment by ID or raise 404."""
    deployment = services.store.get(deployment_id)
    if not deployment:
        raise DeploymentNotFoundError(deployment_id)
    return deployment


async def get_credential(request: Request) -> str:
    """Source-control credential supplied by the caller.

    Taken from a bearer token or the ``access_token`` cookie. Validating it
    is the source-control host's job; here it is only passed through.
    """
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer ") and header[7:].strip():
        return header[7:].strip()
    cookie = request.cookies.get("access_token")
    if cookie:
        return cookie
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="unauthorized",
    )


DeploymentDep = Annotated[Deployment, Depends(get_deployment_by_id)]
CredentialDep = Annotated[str, Depends(get_credential)]
