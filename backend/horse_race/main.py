"""
FastAPI application entry point.

Sets up the ledger host API: middleware, routers, error mapping and
startup/shutdown events.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import os
import logging
from contextlib import asynccontextmanager
from dotenv import load_dotenv
from pathlib import Path

from horse_race.api.routes import feed, races, tokens, transactions
from horse_race.database import engine, Base
from horse_race.errors import (
    AuthorizationError,
    CollaboratorError,
    ConfigurationError,
    DecodingError,
    DuplicateTransaction,
    HorseRaceError,
    StateError,
)
from horse_race.schemas import ErrorResponse

# Load environment variables from .env file
# Get the backend directory (parent of horse_race/)
backend_dir = Path(__file__).parent.parent
load_dotenv(dotenv_path=backend_dir / ".env")

# Get configuration from environment
API_V1_PREFIX = os.getenv("API_V1_PREFIX", "/api/v1")
DEBUG = os.getenv("DEBUG", "False").lower() == "true"
PROJECT_NAME = os.getenv("PROJECT_NAME", "Horse Race Ledger Host")

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="[%(asctime)s] %(levelname)5s %(name)s | %(message)s"
)
logger = logging.getLogger(__name__)

# HTTP status per error family
ERROR_STATUS_CODES = [
    (AuthorizationError, 403),
    (StateError, 409),
    (DuplicateTransaction, 409),
    (DecodingError, 400),
    (CollaboratorError, 422),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.

    - Startup: Create database tables (if they don't exist)
    """
    logger.info("Starting Horse Race ledger host...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified.")

    yield

    logger.info("Shutting down Horse Race ledger host...")


# Create FastAPI application
app = FastAPI(
    title=PROJECT_NAME,
    description="Ledger host for the pooled-wager horse race program",
    version="1.0.0",
    debug=DEBUG,
    lifespan=lifespan
)

ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:8080").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include API routers
app.include_router(races.router, prefix=API_V1_PREFIX, tags=["races"])
app.include_router(tokens.router, prefix=API_V1_PREFIX, tags=["token-accounts"])
app.include_router(transactions.router, prefix=API_V1_PREFIX, tags=["transactions"])
app.include_router(feed.router, tags=["feed"])


@app.get("/")
async def root():
    """Root endpoint - API health check."""
    return {
        "message": "Horse Race Ledger Host API",
        "version": "1.0.0",
        "status": "healthy",
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy"}


@app.exception_handler(HorseRaceError)
async def horse_race_exception_handler(request: Request, exc: HorseRaceError):
    """Render program and host failures with their stable error code."""
    status_code = next((code for cls, code in ERROR_STATUS_CODES if isinstance(exc, cls)), 400)
    body = ErrorResponse(error=exc.code, kind=type(exc).__name__, message=str(exc))
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(ConfigurationError)
async def configuration_exception_handler(request: Request, exc: ConfigurationError):
    """Missing or invalid configuration such as SOLANA_PROGRAM_ID."""
    logger.error(f"Configuration error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Configuration error",
            "message": str(exc) if DEBUG else "Server is not configured"
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unexpected errors."""
    logger.exception(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": str(exc) if DEBUG else "An error occurred"
        }
    )


if __name__ == "__main__":
    import uvicorn

    # In production, use: uvicorn horse_race.main:app --host 0.0.0.0 --port 8000
    uvicorn.run(
        "horse_race.main:app",
        host="0.0.0.0",
        port=8000,
        reload=DEBUG
    )
