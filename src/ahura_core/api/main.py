"""Ahurasense Core FastAPI application."""
import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from ..config import get_settings
from ..errors import TrackerError
from .routers import board, issues, projects, sprints, users, workspaces

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("ahura-core")

logger.info("Starting Ahurasense Core API")

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Issue & board consistency engine for Ahurasense",
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TrackerError)
async def tracker_error_handler(request: Request, exc: TrackerError):
    """Render expected failures (404/403/400/409) with their message."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    """A concurrent writer won a uniqueness race; the transaction was rolled back."""
    logger.warning(f"Integrity conflict on {request.method} {request.url.path}: {exc.orig}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "Conflicting update, please retry"},
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    """Anything else is a 500 with a generic message."""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Unexpected server error"},
    )


# Include all business logic routers under the API prefix
app.include_router(workspaces.router, prefix=f"{settings.api_prefix}/workspaces")
app.include_router(projects.router, prefix=f"{settings.api_prefix}/projects")
app.include_router(board.router, prefix=f"{settings.api_prefix}/projects")
app.include_router(issues.router, prefix=f"{settings.api_prefix}")
app.include_router(sprints.router, prefix=f"{settings.api_prefix}")
app.include_router(users.router, prefix=f"{settings.api_prefix}/users")


@app.get("/")
def root():
    """Root endpoint with server info."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "description": "Issue & board consistency engine",
    }


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
