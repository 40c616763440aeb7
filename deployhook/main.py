"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from deployhook import __version__
from deployhook.api.hooks import router as hooks_router
from deployhook.api.middleware import RequestLoggingMiddleware
from deployhook.api.v1.router import router as v1_router
from deployhook.config import settings
from deployhook.core.coordinator import get_coordinator
from deployhook.core.exceptions import (
    DeployhookError,
    InvalidPayloadError,
    ResolutionError,
    SignatureError,
)
from deployhook.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    configure_logging()
    coordinator = get_coordinator()
    logger.info(
        "application.starting",
        version=__version__,
        environment=settings.app_env,
        config_path=settings.config_path,
        projects=len(coordinator.registry),
    )

    yield

    # Shutdown
    await coordinator.shutdown()
    logger.info("application.shutdown")


def _error_response(status_code: int, exc: DeployhookError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": type(exc).__name__.upper(),
                "message": exc.message,
                "details": exc.details,
            }
        },
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="deployhook",
        description="Turns source-control webhooks and manual triggers into ordered deployment runs",
        version=__version__,
        docs_url="/docs" if settings.app_debug else None,
        redoc_url="/redoc" if settings.app_debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)

    # Register exception handlers
    @app.exception_handler(SignatureError)
    async def signature_error_handler(
        request: Request, exc: SignatureError
    ) -> JSONResponse:
        """Reject requests that fail signature verification."""
        logger.warning(
            "webhook.signature_rejected",
            reason=exc.reason,
            path=request.url.path,
        )
        return _error_response(status.HTTP_403_FORBIDDEN, exc)

    @app.exception_handler(ResolutionError)
    async def resolution_error_handler(
        request: Request, exc: ResolutionError
    ) -> JSONResponse:
        """Explain which projects or branches are configured."""
        logger.info("request.unresolved", message=exc.message, path=request.url.path)
        return _error_response(status.HTTP_400_BAD_REQUEST, exc)

    @app.exception_handler(InvalidPayloadError)
    async def invalid_payload_handler(
        request: Request, exc: InvalidPayloadError
    ) -> JSONResponse:
        """Handle bodies that cannot be interpreted."""
        return _error_response(status.HTTP_400_BAD_REQUEST, exc)

    @app.exception_handler(DeployhookError)
    async def deployhook_error_handler(
        request: Request, exc: DeployhookError
    ) -> JSONResponse:
        """Handle other application-specific errors."""
        logger.error("request.failed", error=exc.message, path=request.url.path)
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, exc)

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

        if settings.is_development:
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": {
                        "code": "INTERNAL_ERROR",
                        "message": str(exc),
                        "type": type(exc).__name__,
                    }
                },
            )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                }
            },
        )

    # Include routers
    app.include_router(hooks_router, tags=["hooks"])
    app.include_router(v1_router)

    return app


# Create app instance
app = create_app()


def run() -> None:
    """Console entry point."""
    import uvicorn

    uvicorn.run(
        "deployhook.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
    )


if __name__ == "__main__":
    run()
