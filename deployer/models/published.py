"""Published project models."""

from pathlib import Path

from pydantic import BaseModel, Field


class PublishedProject(BaseModel):
    """A project currently live under the serving root."""

    name: str
    directory: Path
    generation: str
    build_dir: str | None = None


class PublishedProjectInfo(BaseModel):
    """Listing entry for a published project."""

    id: str
    name: str
    path: str
    build_dir: str = ""


class PublishedProjectListResponse(BaseModel):
    """Response for listing published projects."""

    projects: list[PublishedProjectInfo] = Field(default_factory=list)
