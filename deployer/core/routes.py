"""Route registration with an external reverse proxy.

The proxy itself is managed elsewhere. This module only tells it which
directory backs ``{project}.{host}``.
"""

from pathlib import Path
from typing import Protocol

import httpx

from deployer.utils.logging import get_logger

logger = get_logger(__name__)


class RouteRegistrar(Protocol):
    async def register_route(self, project_name: str, directory: Path, host_pattern: str) -> None:
        ...


class LoggingRouteRegistrar:
    """Registrar used when no proxy is configured."""

    async def register_route(self, project_name: str, directory: Path, host_pattern: str) -> None:
        logger.info(
            "routes.register_skipped",
            project=project_name,
            host=host_pattern,
            root=str(directory),
        )


class HttpRouteRegistrar:
    """Posts new routes to a proxy admin endpoint."""

    def __init__(self, admin_url: str, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None):
        self.admin_url = admin_url
        self.timeout = timeout
        self._transport = transport

    async def register_route(self, project_name: str, directory: Path, host_pattern: str) -> None:
        payload = {
            "project": project_name,
            "host": host_pattern,
            "root": str(Path(directory).resolve()),
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(self.admin_url, json=payload)
            response.raise_for_status()
        logger.info("routes.registered", project=project_name, host=host_pattern)


def host_pattern_for(project_name: str, proxy_host: str) -> str:
    return f"{project_name}.{proxy_host}"
