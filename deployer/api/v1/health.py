"""Health check endpoints."""

from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel

from deployer import __version__
from deployer.api.deps import ServicesDep

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str
    environment: str
    published_projects: int
    running_processes: int
    timestamp: datetime


@router.get("/health", response_model=HealthResponse)
def health_check(services: ServicesDep) -> HealthResponse:
    """Check API health status."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=services.settings.app_env,
        published_projects=len(services.serving_root.list_projects()),
        running_processes=sum(1 for p in services.processes.list_processes() if p.running),
        timestamp=datetime.utcnow(),
    )
