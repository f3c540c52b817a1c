"""
Database connection and session management.

This module handles SQLAlchemy database setup and session management for
the ledger host. Race accounts, token holdings and the transaction log
all live in this database.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
import os
import logging
from typing import Generator
from dotenv import load_dotenv
from pathlib import Path

logger = logging.getLogger(__name__)

# Load environment variables from .env file
# Get the backend directory (parent of horse_race/)
backend_dir = Path(__file__).parent.parent
load_dotenv(dotenv_path=backend_dir / ".env")

# Get database URL from environment variable
DATABASE_URL = os.getenv("DATABASE_URL")

engine = None

if DATABASE_URL and not DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        DATABASE_URL,
        pool_size=10,  # Number of connections to maintain
        max_overflow=20,  # Additional connections beyond pool_size
        pool_pre_ping=True,  # Verify connections before using them
        pool_recycle=3600,  # Recycle connections after 1 hour
        echo=False,
    )
    logger.info("Database engine created (connection will be tested on first use)")
else:
    if not DATABASE_URL:
        logger.warning("DATABASE_URL not set. Using SQLite for local testing.")
        DATABASE_URL = f"sqlite:///{backend_dir / 'horse_race.db'}"
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        echo=False
    )

# Create session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

# Base class for declarative models
Base = declarative_base()


def get_db() -> Generator:
    """
    Dependency function for FastAPI routes.
    Yields a database session and ensures it's closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
