from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from helpdesk.config.logging import setup_logging
from helpdesk.config.settings import Settings, get_settings, settings as default_settings
from helpdesk.infra.database import Database
from helpdesk.v1.core.exceptions import (
    HelpdeskException,
    RequestContextMiddleware,
    general_exception_handler,
    helpdesk_exception_handler,
    http_exception_handler,
    request_validation_exception_handler,
)
from helpdesk.v1.healthz import router as health_router
from helpdesk.v1.infra.jobs.routes import router as jobs_router
from helpdesk.v1.infra.jobs.startup import JobSystem


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or default_settings

    # Initialize structured logging
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database = Database(settings)
        if settings.db_create_all:
            await database.create_all()
        job_system = JobSystem.build(database, settings)
        app.state.database = database
        app.state.job_system = job_system

        await job_system.initialize()
        try:
            yield
        finally:
            await job_system.shutdown()
            await database.close()

    app = FastAPI(
        title=settings.app_name,
        description="Customer support helpdesk with background job processing",
        version=settings.version,
        debug=settings.debug,
        lifespan=lifespan,
        # All endpoints will be under /v1/ prefix
        openapi_url="/v1/openapi.json" if settings.debug else None,
        docs_url="/v1/docs" if settings.debug else None,
        redoc_url="/v1/redoc" if settings.debug else None,
    )
    app.dependency_overrides[get_settings] = lambda: settings

    # Add middleware
    app.add_middleware(RequestContextMiddleware)

    # Add CORS middleware for development
    if settings.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Add exception handlers
    app.add_exception_handler(HelpdeskException, helpdesk_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(
        RequestValidationError, request_validation_exception_handler
    )
    app.add_exception_handler(Exception, general_exception_handler)

    # Include routers with /v1 prefix
    app.include_router(health_router, prefix="/v1", tags=["health"])
    app.include_router(jobs_router, prefix="/v1")

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "helpdesk.main:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.debug,
        workers=1 if default_settings.debug else default_settings.workers,
    )
