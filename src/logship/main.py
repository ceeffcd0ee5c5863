"""
Demo FastAPI application.

Installs the shipping bridge as the process's log sink for the lifetime of
the app and serves a route that generates sample log traffic.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import CollectorRegistry

from .api import demo_router, healthz_router, metrics_router
from .bootstrap import build_bridge, configure_logging
from .config import Settings, get_settings
from .core.exceptions import LogShipException
from .core.metrics import MetricsCollector


def create_lifespan_handler(settings: Settings) -> Any:
    """Create a lifespan handler with access to settings."""
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """
        FastAPI lifespan context manager.

        Builds and starts the shipping bridge on the serving loop and drains
        it on shutdown.
        """
        metrics_collector = MetricsCollector(registry=CollectorRegistry())
        app.state.metrics = metrics_collector

        bridge = build_bridge(settings, metrics=metrics_collector)
        app.state.bridge = bridge
        await bridge.start()

        logger = structlog.get_logger(__name__)
        logger.info(
            "Log shipping started",
            version=app.version,
            group=settings.stream.log_group,
            stream=settings.stream.log_stream,
            backend=settings.stream.backend,
        )

        try:
            yield
        finally:
            logger.info("Shutting down log shipping")
            await bridge.stop(drain_timeout=settings.stream.drain_timeout_seconds)

    return lifespan


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This factory function ensures all configuration is applied
    whether running via uvicorn or direct execution.
    """
    settings = settings or get_settings()

    configure_logging()

    lifespan = create_lifespan_handler(settings)

    app = FastAPI(
        title="logship",
        description="Terminal + CloudWatch Logs shipping demo",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_exception_handler(LogShipException, logship_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(demo_router, tags=["demo"])
    app.include_router(metrics_router, tags=["metrics"])
    app.include_router(healthz_router, tags=["health"])

    return app


async def logship_exception_handler(request: Request, exc: LogShipException) -> JSONResponse:
    """Handle custom log shipper exceptions."""
    logger = structlog.get_logger(__name__)
    logger.error(
        "Log shipper exception occurred",
        error=str(exc),
        error_code=exc.error_code,
        path=request.url.path,
        method=request.method,
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": exc.error_code,
            "message": str(exc),
            "details": exc.details,
        },
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger = structlog.get_logger(__name__)
    logger.error(
        "Unexpected exception occurred",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred",
        },
    )


def run() -> None:
    """Console entry point: serve the demo app with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
