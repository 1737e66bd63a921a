"""Application configuration using pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file without overriding variables already set by the caller
load_dotenv(override=False)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    A single instance is built at startup and handed to every component;
    nothing below the API layer reads settings on its own.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="DEPLOYER_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = True

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    public_base_url: str = "http://localhost:8000"
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])

    # Filesystem namespaces
    deployments_root: Path = Path("deployments")
    serving_root: Path = Path("Deployed")

    # Source control
    git_host: str = "github.com"
    clone_timeout_seconds: float = 300.0

    # Builds
    command_timeout_seconds: float = 600.0
    python_executable: str = "python3"
    go_base_port: int = 8000
    python_base_port: int = 5000
    launch_host: str = "localhost"

    # Publishing
    cleanup_grace_seconds: float = 10.0

    # Reverse proxy side-channel (disabled when unset)
    proxy_admin_url: str | None = None
    proxy_host: str = "localhost"

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["console", "json"] = "console"
    log_directory: Path = Path("logs")
    log_file_name: str = "deployer.log"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"

    def project_url(self, project_name: str) -> str:
        """Public URL under which a published project is served."""
        return f"{self.public_base_url.rstrip('/')}/projects/{project_name}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
