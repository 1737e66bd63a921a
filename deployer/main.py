"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from deployer import __version__
from deployer.api.middleware import RequestLoggingMiddleware
from deployer.api.serving import router as serving_router
from deployer.api.v1.router import router as v1_router
from deployer.config import Settings, get_settings
from deployer.core.exceptions import AssetNotFoundError, DeployerError
from deployer.core.services import Services, build_services
from deployer.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    services: Services = app.state.services
    configure_logging(services.settings)
    logger.info(
        "application.starting",
        version=__version__,
        environment=services.settings.app_env,
        serving_root=str(services.serving_root.root),
    )

    yield

    # Transient directories waiting for their grace period go now
    await services.cleanup.flush()
    running = [p for p in services.processes.list_processes() if p.running]
    logger.info("application.shutdown", running_processes=len(running))


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or (services.settings if services else get_settings())
    services = services or build_services(settings)

    app = FastAPI(
        title="Deployer API",
        description="Builds repositories and serves their output under /projects",
        version=__version__,
        docs_url="/docs" if settings.app_debug else None,
        redoc_url="/redoc" if settings.app_debug else None,
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.is_development else settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    @app.exception_handler(AssetNotFoundError)
    async def asset_not_found_handler(
        request: Request, exc: AssetNotFoundError
    ) -> PlainTextResponse:
        """Echo the unresolved path; never expose filesystem locations."""
        return PlainTextResponse(exc.message, status_code=status.HTTP_404_NOT_FOUND)

    @app.exception_handler(DeployerError)
    async def deployer_error_handler(
        request: Request, exc: DeployerError
    ) -> JSONResponse:
        """Handle application-specific errors."""
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": {
                    "code": type(exc).__name__.upper(),
                    "message": exc.message,
                    "details": exc.details,
                }
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected errors."""
        logger.error(
            "unhandled_exception",
            error=str(exc),
            path=request.url.path,
            exc_info=True,
        )

        message = str(exc) if settings.is_development else "An unexpected error occurred"
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": {"code": "INTERNAL_ERROR", "message": message}},
        )

    app.include_router(v1_router)
    app.include_router(serving_router)

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.api_host,
        port=settings.api_port,
    )
