"""Static serving of published projects under ``/projects``."""

from fastapi import APIRouter, Response

from deployer.api.deps import ServicesDep

router = APIRouter(prefix="/projects", tags=["serving"])


@router.get("/{project_name}", include_in_schema=False)
def serve_project_root(project_name: str, services: ServicesDep) -> Response:
    """Serve a project's entry page."""
    return serve_project_path(project_name, "", services)


@router.get("/{project_name}/{file_path:path}", include_in_schema=False)
def serve_project_path(project_name: str, file_path: str, services: ServicesDep) -> Response:
    """Serve a file, a rewritten entry page, or the SPA fallback."""
    asset = services.resolver.resolve(project_name, "/" + file_path if file_path else "")
    return Response(content=asset.content, media_type=asset.media_type)
