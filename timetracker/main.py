"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from timetracker.config import settings
from timetracker.database import database
from timetracker.errors import TimeTrackerError
from timetracker.routers import auth, organizations, projects, reports, timers


def configure_logging() -> None:
    """Root logging setup, driven by settings.log_level."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown events."""
    # Startup
    configure_logging()
    await database.connect()
    yield
    # Shutdown
    await database.disconnect()


app = FastAPI(
    title="Time Tracker API",
    description="Multi-tenant time tracking: timers, entries and summaries",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TimeTrackerError)
async def time_tracker_error_handler(request: Request, exc: TimeTrackerError):
    """Render domain errors with their status and machine-readable code."""
    logger.info("%s on %s: %s", exc.code, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


# Include routers
app.include_router(auth.router)
app.include_router(organizations.router)
app.include_router(projects.router)
app.include_router(timers.router)
app.include_router(reports.router)


@app.get("/")
async def root():
    """Root endpoint - health check."""
    return {"status": "ok", "message": "Time Tracker API"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
