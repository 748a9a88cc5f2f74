"""
IronMonitor - FastAPI Application
Main entry point for the monitoring API and its tick scheduler
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn
import structlog
from contextlib import asynccontextmanager

from ironmonitor.api.routes import dashboard, devices, health, reports
from ironmonitor.core.config import settings
from ironmonitor.core.logging_config import configure_logging
from ironmonitor.runtime import MonitorRuntime

configure_logging()

logger = structlog.get_logger(__name__)


def build_runtime() -> MonitorRuntime:
    """Runtime for the server process, with the status history store when enabled"""
    session_factory = None
    if settings.status_history_enabled:
        from ironmonitor.database.connection import SessionLocal, init_database
        init_database()
        session_factory = SessionLocal
    return MonitorRuntime(settings, session_factory=session_factory)


def create_app(runtime: MonitorRuntime = None, run_scheduler: bool = True) -> FastAPI:
    """Create the API application around a monitoring runtime"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager"""
        logger.info("Starting IronMonitor API")
        if app.state.runtime is None:
            app.state.runtime = build_runtime()
        # Startup
        if run_scheduler:
            await app.state.runtime.start()
        yield
        # Shutdown
        if run_scheduler:
            await app.state.runtime.stop()
        logger.info("Shutting down IronMonitor API")

    app = FastAPI(
        title="IronMonitor API",
        description="Live status, alarms and reports for the mixing and packaging lines",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.runtime = runtime

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health.router, prefix="/api/v1", tags=["health"])
    app.include_router(dashboard.router, prefix="/api/v1", tags=["dashboard"])
    app.include_router(devices.router, prefix="/api/v1", tags=["devices"])
    app.include_router(reports.router, prefix="/api/v1", tags=["reports"])

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": "IronMonitor API",
            "version": "1.0.0",
            "docs": "/docs",
            "dashboard": "/api/v1/dashboard",
            "health": "/api/v1/health"
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """Global exception handler"""
        logger.error("Unhandled exception", exc_info=exc, path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"}
        )

    return app


app = create_app()


def run():
    """Console entry point"""
    uvicorn.run(
        "ironmonitor.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    run()
