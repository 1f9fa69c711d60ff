"""
FastAPI application entry point for program registration.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from app.api.common.response_negotiator import exception_response
from app.api.registration_flow.routes.shared_utils import limiter
from app.api.settings import Settings, get_settings
from app.api.workflow_base.exceptions import WorkflowException

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)

settings = get_settings()

# Step payloads are small JSON bodies
MAX_REQUEST_SIZE = 1024 * 1024


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log startup configuration and shutdown."""
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"Debug mode: {settings.debug}")
    logger.info(f"Registration backend: {settings.registration_api_base_url}")
    if not settings.registration_api_token:
        logger.warning("No registration API token configured; backend calls are unauthenticated")

    yield

    logger.info("Shutting down application")


async def workflow_exception_handler(request: Request, exc: WorkflowException):
    """Render flow errors as an error envelope or inline fragment."""
    logger.warning(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return exception_response(request, exc)


def configure_middleware(app: FastAPI, settings: Settings) -> None:
    """
    Install rate limiting, error handlers, size limits and cookie sessions.

    Args:
        app: FastAPI application instance
        settings: Application settings
    """
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(WorkflowException, workflow_exception_handler)

    @app.middleware("http")
    async def limit_request_size(request: Request, call_next):
        """Reject oversized request bodies."""
        content_length = request.headers.get("content-length")
        if content_length and int(content_length) > MAX_REQUEST_SIZE:
            return JSONResponse(
                status_code=413, content={"detail": "Request too large. Maximum size is 1MB."}
            )
        return await call_next(request)

    app.add_middleware(SessionMiddleware, secret_key=settings.session_secret_key)

    # Browser clients on another origin are only expected during development
    if settings.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins.split(","),
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )


def configure_routes(app: FastAPI) -> None:
    """Register the health check and the registration flow router."""

    @app.get("/health")
    async def health_check():
        """Health check endpoint for monitoring."""
        return {"status": "healthy", "app": settings.app_name, "version": "0.1.0"}

    from app.api.registration_flow.routes import router as registration_router

    app.include_router(registration_router)


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.app_name,
        description="Resumable program registration flow with payment",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
    )

    configure_middleware(app, settings)
    configure_routes(app)

    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=7001,
        reload=settings.debug,
        log_level="info" if settings.debug else "warning",
    )
