"""Main FastAPI application for the lead intelligence pipeline."""

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from leadintel.config import settings
from leadintel.database import Base
from leadintel import models  # noqa: F401  registers tables with Base
from leadintel.dependencies import close_pipeline, init_pipeline
from leadintel.exceptions import NotFoundError, RepositoryError, ValidationError
from leadintel.routers import competitor_routes, lead_pipeline_routes

# Configure logging
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Lead Intelligence Pipeline API",
    description="Lead aggregation, intent scoring, follow-ups and competitor monitoring",
    version="1.0.0",
    redirect_slashes=False
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================
# ERROR MAPPING
# ============================================

@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"detail": str(exc)})


@app.exception_handler(RepositoryError)
async def repository_error_handler(request: Request, exc: RepositoryError):
    logger.error(f"Repository error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Storage temporarily unavailable"}
    )


# ============================================
# ROUTER REGISTRATION
# ============================================

app.include_router(lead_pipeline_routes.router, prefix="/api/v1/pipeline", tags=["Pipeline"])
app.include_router(competitor_routes.router, prefix="/api/v1/competitors", tags=["Competitors"])


# ============================================
# HEALTH & ROOT ENDPOINTS
# ============================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    monitor = getattr(app.state, "monitor", None)
    return {
        "status": "healthy",
        "version": "1.0.0",
        "registered_tables": len(Base.metadata.tables),
        "monitoring": bool(monitor and monitor.is_running),
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Lead Intelligence Pipeline API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health"
    }


# ============================================
# STARTUP & SHUTDOWN
# ============================================

@app.on_event("startup")
async def startup_event():
    """Run on application startup."""
    logger.info("Starting Lead Intelligence Pipeline API...")
    await init_pipeline(app)
    logger.info("Application started successfully!")


@app.on_event("shutdown")
async def shutdown_event():
    """Run on application shutdown."""
    logger.info("Shutting down Lead Intelligence Pipeline API...")
    await close_pipeline(app)
