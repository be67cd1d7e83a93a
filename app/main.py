"""
FastAPI application entry point for Crosspost Media.

This module provides:
- FastAPI application setup with middleware
- Service context lifecycle (created on startup, background runs cancelled on shutdown)
- Prometheus metrics endpoint
- Static serving of uploads and renditions
- Global exception handling
"""

# Load environment variables BEFORE any other imports
from pathlib import Path
from dotenv import load_dotenv

project_root = Path(__file__).parent.parent
env_file = project_root / ".env"
if env_file.exists():
    load_dotenv(env_file)

import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles

from .core.config import Settings, settings as default_settings
from .core.logging import create_request_id, get_logger, setup_logging, with_logging_context
from .observability.metrics import metrics, get_metrics_response
from .services.context import AppContext
from .api.routes import router as api_router
from .api.upload import router as upload_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build (or adopt) the service context on startup; cancel background runs on shutdown."""
    logger = get_logger("app.lifespan")
    settings: Settings = app.state.settings

    context: AppContext | None = app.state.context
    if context is None:
        context = AppContext.create(settings)
        app.state.context = context

    try:
        context.start()
    except OSError as e:
        logger.error("Could not prepare storage directories", error=str(e))
        raise

    metrics.app_info.info({
        'version': settings.app.version,
        'environment': settings.app.environment,
        'name': settings.app.app_name
    })
    logger.info("Crosspost Media started", environment=settings.app.environment)

    try:
        yield
    finally:
        await context.shutdown()
        logger.info("Crosspost Media stopped")


def create_application(settings: Settings | None = None, context: AppContext | None = None) -> FastAPI:
    """Create and configure FastAPI application."""
    settings = settings or (context.settings if context else default_settings)

    # Initialize logging first
    setup_logging(settings.app)
    logger = get_logger("app")

    app = FastAPI(
        title="Crosspost Media API",
        description="Video format detection and multi-platform rendition service",
        version=settings.app.version,
        debug=settings.app.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.app.is_development else None,
        redoc_url="/redoc" if settings.app.is_development else None
    )
    app.state.settings = settings
    app.state.context = context

    setup_middleware(app, settings)

    app.include_router(api_router, prefix="/api")
    app.include_router(upload_router, prefix="/api")

    # Source files and renditions; the directory is created at startup
    app.mount(
        settings.storage.public_url_prefix,
        StaticFiles(directory=settings.storage.uploads_dir, check_dir=False),
        name="uploads",
    )

    @app.get("/metrics", response_class=Response)
    async def metrics_endpoint():
        """Prometheus metrics endpoint."""
        content, headers = get_metrics_response()
        return Response(content=content, headers=headers)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Convert anything unhandled into a JSON 500."""
        request_id = getattr(request.state, "request_id", None)
        with with_logging_context(request_id=request_id):
            get_logger("app.error").error(
                "Unhandled exception in request",
                path=request.url.path,
                method=request.method,
                error=str(exc),
                exc_info=True,
            )

        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "message": str(exc) if settings.app.debug else "An unexpected error occurred",
                "request_id": request_id,
            },
        )

    logger.info(
        "FastAPI application created",
        version=settings.app.version,
        environment=settings.app.environment,
        debug=settings.app.debug
    )

    return app


def _endpoint_label(request: Request) -> str:
    """Route template for metrics labels, so filenames do not become label values."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def setup_middleware(app: FastAPI, settings: Settings):
    """Configure application middleware."""
    logger = get_logger("app.middleware")

    open_cors = settings.app.is_development or not settings.app.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if open_cors else settings.app.cors_origins,
        allow_credentials=not open_cors,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Accept", "Accept-Language", "Content-Language", "Content-Type", "X-Request-ID"],
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        """Bind a request id to the logging context and record request metrics."""
        request_id = request.headers.get("X-Request-ID") or create_request_id()
        request.state.request_id = request_id
        request_logger = get_logger("app.request")
        started = time.perf_counter()
        status_code = 500

        with with_logging_context(request_id=request_id):
            request_logger.debug("Request started", method=request.method, path=request.url.path)
            try:
                response = await call_next(request)
                status_code = response.status_code
                response.headers["X-Request-ID"] = request_id
                return response
            except Exception as exc:
                request_logger.error("Request failed with exception", error=str(exc), exc_info=True)
                raise
            finally:
                duration = time.perf_counter() - started
                request_logger.info(
                    "Request completed",
                    method=request.method,
                    path=request.url.path,
                    status_code=status_code,
                    duration_seconds=round(duration, 3),
                )
                metrics.track_request(request.method, _endpoint_label(request), status_code, duration)

    logger.info("Middleware configuration completed", cors_origins=["*"] if open_cors else settings.app.cors_origins)


# Create application instance
app = create_application()


def main():
    """Run the application with Uvicorn."""
    uvicorn.run(
        "app.main:app",
        host=default_settings.app.api_host,
        port=default_settings.app.api_port,
        workers=default_settings.app.api_workers,
        reload=default_settings.app.is_development,
        log_level=default_settings.app.log_level.lower(),
        access_log=True,
        server_header=False,
        date_header=False,
    )


if __name__ == "__main__":
    main()
