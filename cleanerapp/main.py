"""FastAPI application entry point."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cleanerapp.config import settings
from cleanerapp.errors import (
    ActionInFlight,
    AppError,
    AuthError,
    NotFound,
    StoreError,
    TransitionError,
    UploadError,
    ValidationError,
)
from cleanerapp.routes import auth, jobs

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Cleaner Field Service",
    description="Job lifecycle and photo evidence API for cleaning staff",
    version="0.1.0",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router)
app.include_router(jobs.router)

# Most specific first
ERROR_STATUS = [
    (ActionInFlight, 409),
    (ValidationError, 422),
    (AuthError, 401),
    (NotFound, 404),
    (UploadError, 502),
    (TransitionError, 502),
    (StoreError, 502),
]


def status_for(error: AppError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return 500


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Render every application error as a displayable message."""
    status_code = status_for(exc)
    body = {"detail": exc.message, "error": type(exc).__name__}
    if isinstance(exc, UploadError):
        body.update(kind=exc.kind.value, job_id=exc.job_id, photo_kind=exc.photo_kind, step=exc.step)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status_code, content=body)


@app.on_event("startup")
async def startup_event():
    """Create tables when running against a direct database."""
    logger.info("Starting application...")
    if settings.STORE_BACKEND == "sql":
        from cleanerapp.database import init_db

        init_db()
        logger.info("Database tables ready")


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "name": "Cleaner Field Service",
        "version": "0.1.0",
        "status": "running",
    }
