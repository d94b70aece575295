"""
Main application initialization and configuration.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.routes import rooms, songs, spotify, users
from app.core import scheduler
from app.db.session import create_db_and_tables
from app.dependencies import db_dependency
from app.middleware.rate_limit import (
    RateLimitExceeded,
    global_limiter,
    rate_limit_exceeded_handler,
)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "ALLOWED_ORIGINS", "https://localhost,http://localhost:3000"
    ).split(",")
    if origin.strip()
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    if scheduler.SCHEDULER_ENABLED:
        scheduler.start_scheduler()
    yield
    scheduler.shutdown_scheduler()


# Initialize FastAPI application
app = FastAPI(
    title="RoomTunes API",
    lifespan=lifespan,
    dependencies=[Depends(global_limiter)],
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(users.router)
app.include_router(rooms.router)
app.include_router(songs.router)
app.include_router(spotify.router)

app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed requests are plain 400s."""
    return JSONResponse(
        status_code=400, content={"detail": jsonable_encoder(exc.errors())}
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/")
def read_root():
    """Return a welcome message at the root endpoint."""
    return {"message": "Welcome to RoomTunes API"}


@app.get("/api/health")
def health_check(db: Session = Depends(db_dependency)):
    """Health check endpoint to verify the API and its database are up."""
    try:
        db.execute(text("SELECT 1"))
        database = "online"
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        database = "offline"

    return {
        "status": "healthy" if database == "online" else "degraded",
        "services": {
            "api": "online",
            "database": database,
            "scheduler": "online" if scheduler.scheduler.running else "offline",
        },
    }
