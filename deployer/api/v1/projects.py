"""Published project listing."""

from fastapi import APIRouter

from deployer.api.deps import ServicesDep
from deployer.models.published import PublishedProjectListResponse

router = APIRouter()


@router.get(
    "/deployed-projects",
    response_model=PublishedProjectListResponse,
    summary="List published projects",
)
def list_deployed_projects(services: ServicesDep) -> PublishedProjectListResponse:
    """Enumerate projects in the serving root with their serving paths."""
    return PublishedProjectListResponse(projects=services.resolver.list_projects())
