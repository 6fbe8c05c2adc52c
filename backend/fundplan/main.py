"""
Fund Planning Workflow Service - Main FastAPI Application

Entry point for the FastAPI application. Configures middleware, routes and
the MongoDB connection lifecycle.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pymongo.database import Database
from pymongo.errors import PyMongoError

from .config.settings import settings
from .api.routes import api_router
from .api.middleware import CorrelationIdMiddleware, register_error_handlers
from .repositories.mongo_client import create_client, create_indexes, health_check
from .utils.logger import setup_logging, get_logger

# Setup logging first
setup_logging()
logger = get_logger(__name__)

APP_VERSION = "1.0.0"


# =============================================================================
# Application Lifecycle
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
        - Connects to MongoDB unless a database was injected
        - Creates MongoDB indexes

    Shutdown:
        - Closes the client this process opened
    """
    logger.info("Starting Fund Planning Workflow Service...")

    if app.state.db is None:
        client = create_client(settings)
        app.state.mongo_client = client
        app.state.db = client[settings.mongo_db]

    try:
        create_indexes(app.state.db)
    except PyMongoError as e:
        logger.error(f"Failed to create indexes: {e}")

    logger.info("Application started successfully")

    yield

    logger.info("Shutting down...")
    if app.state.mongo_client is not None:
        app.state.mongo_client.close()
        app.state.mongo_client = None
        logger.info("MongoDB connection closed")
    logger.info("Application shutdown complete")


# =============================================================================
# Application Factory
# =============================================================================

def create_app(db: Optional[Database] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        db: Pre-built database handle (tests); when omitted the lifespan
            connects using settings.mongo_uri

    Returns:
        Configured FastAPI application instance
    """
    application = FastAPI(
        title="Fund Planning Workflow Service",
        description="Submission, withdrawal and review workflow for fund-planning records",
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
        openapi_url="/api/openapi.json" if settings.debug else None,
    )
    application.state.db = db
    application.state.mongo_client = None

    _configure_middleware(application)
    register_error_handlers(application)
    _configure_routes(application)

    return application


def _configure_middleware(app: FastAPI) -> None:
    """Configure application middleware."""
    # allow_credentials must be False when allowing all origins
    allow_all = settings.cors_origins.strip() == "*"

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_origins_list,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-Id"],
    )

    app.add_middleware(CorrelationIdMiddleware)


def _configure_routes(app: FastAPI) -> None:
    """Configure application routes."""
    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health", tags=["Health"])
    async def health(request: Request):
        """Health check with database connectivity (no auth required)"""
        db = request.app.state.db
        mongo_health = health_check(db.client, db.name)
        return {
            "status": "healthy" if mongo_health.get("status") == "healthy" else "degraded",
            "version": APP_VERSION,
            "environment": settings.environment,
            "mongo": mongo_health
        }

    @app.get("/", tags=["Health"])
    async def root():
        return {
            "name": "Fund Planning Workflow Service",
            "version": APP_VERSION,
            "docs": "/api/docs" if settings.debug else None
        }


# =============================================================================
# Application Instance
# =============================================================================

app = create_app()
