"""
Concierge Pipeline API - Main Application.

FastAPI application with CORS enabled for frontend communication.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import __version__
from api.dependencies import shutdown_notifiers
from config.logging_config import configure_logging
from domain.errors import (
    AccessDenied,
    NotFoundError,
    PipelineError,
    TokenRejected,
    TransitionConflict,
    ValidationFailure,
)

ERROR_STATUS_CODES = (
    (TransitionConflict, 400),
    (ValidationFailure, 400),
    (NotFoundError, 404),
    (TokenRejected, 401),
    (AccessDenied, 403),
)


def _status_for(exc: PipelineError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 400


async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    status_code = _status_for(exc)
    return JSONResponse(
        status_code=status_code,
        content={**exc.to_dict(), "status_code": status_code},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Let queued notification emails drain before the process exits
    shutdown_notifiers()


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(
        title="Concierge Pipeline API",
        description="REST API for consultation booking, the admin-gated client pipeline and onboarding",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Configure CORS - Allow all origins for development
    # TODO: Restrict origins to FRONTEND_URL in production
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(PipelineError, pipeline_error_handler)

    @app.get("/health", tags=["Health"])
    def health_check():
        """
        Health check endpoint.

        Returns the API status and version.
        """
        return {
            "status": "healthy",
            "version": __version__,
            "service": "concierge-pipeline-api"
        }

    @app.get("/", tags=["Root"])
    def root():
        """
        Root endpoint with API information.
        """
        return {
            "message": "Concierge Pipeline API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health"
        }

    from api.routers import (
        applications,
        consultations,
        leads,
        onboarding,
        profile,
        registration,
    )

    app.include_router(leads.router, prefix="/api/v1", tags=["Leads"])
    app.include_router(consultations.router, prefix="/api/v1", tags=["Consultations"])
    app.include_router(registration.router, prefix="/api/v1", tags=["Registration"])
    app.include_router(profile.router, prefix="/api/v1", tags=["Profile"])
    app.include_router(onboarding.router, prefix="/api/v1", tags=["Onboarding"])
    app.include_router(applications.router, prefix="/api/v1", tags=["Applications"])

    return app


app = create_app()
