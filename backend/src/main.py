"""FastAPI application entry point for Helix Hub.

Enquiry identity service REST API.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from helix_hub import __version__
from helix_hub.api import register_exception_handlers
from helix_hub.api.enquiries import router as enquiries_router
from helix_hub.api.middleware import RequestLoggingMiddleware
from helix_hub.config import get_settings
from helix_hub.db import INSTRUCTIONS, MAIN, close_all_connections, get_engine
from helix_hub.logging import get_logger, setup_logging

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown events."""
    settings = get_settings()
    logger.info(
        "Starting Helix Hub API",
        extra={
            "environment": settings.environment,
            "debug": settings.api_debug,
        },
    )

    yield

    logger.info("Shutting down Helix Hub API")
    await close_all_connections()


settings = get_settings()

app = FastAPI(
    title="Helix Hub API",
    description="Enquiry identity resolution for the Helix Hub intake platform",
    version=__version__,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    openapi_url="/openapi.json" if settings.is_development else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)


# =========================
# Health Check Endpoints
# =========================


@app.get("/health", tags=["Health"])
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "helix-hub-api"}


@app.get("/health/ready", tags=["Health"])
async def readiness_check():
    """Readiness check that verifies database connectivity."""
    checks = {MAIN: "unknown", INSTRUCTIONS: "unknown"}

    for database in checks:
        try:
            async with get_engine(database).connect() as conn:
                await conn.execute(text("SELECT 1"))
            checks[database] = "healthy"
        except Exception as e:
            checks[database] = f"unhealthy: {str(e)}"

    all_healthy = all(v == "healthy" for v in checks.values())
    return JSONResponse(
        status_code=200 if all_healthy else 503,
        content={
            "status": "ready" if all_healthy else "not_ready",
            "checks": checks,
        },
    )


@app.get("/health/live", tags=["Health"])
async def liveness_check():
    """Liveness check - just confirms the service is running."""
    return {"status": "alive"}


# =========================
# API Routers
# =========================

app.include_router(enquiries_router, prefix="/api/v1", tags=["Enquiries"])


@app.get("/", tags=["Root"])
async def root():
    """API root endpoint."""
    return {
        "name": "Helix Hub API",
        "version": __version__,
        "description": "Enquiry identity resolution",
        "docs": "/docs" if settings.is_development else None,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
    )
