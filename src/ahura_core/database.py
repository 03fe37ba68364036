"""Database connection and session management."""
import logging
from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from .config import get_settings

logger = logging.getLogger("ahura-core.database")

settings = get_settings()


def _engine_options(database_url: str) -> dict:
    """Build engine keyword arguments for the configured backend."""
    if database_url.startswith("sqlite"):
        # SQLite connections are shared with the FastAPI threadpool
        return {"connect_args": {"check_same_thread": False}}

    # Conservative pool settings for managed Postgres
    return {
        "pool_pre_ping": True,       # Verify connections before using
        "pool_size": 5,              # Base pool of 5 connections
        "max_overflow": 10,          # Allow up to 15 total connections
        "pool_recycle": 3600,        # Recycle connections every hour
        "pool_timeout": 30,          # Timeout after 30 seconds
    }


# Create database engine
engine = create_engine(
    settings.database_url,
    echo=settings.sql_echo,
    **_engine_options(settings.database_url),
)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency function to get database session.

    Closing the session rolls back anything left uncommitted, so an aborted
    request never leaves partial writes behind.

    Yields:
        Session: SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """
    Run a block of work as a single transaction.

    Commits when the block exits normally. Any exception rolls back every
    write made inside the block and is re-raised to the caller.

    Args:
        db: Database session

    Yields:
        Session: The same session, for convenience
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        logger.debug("Transaction rolled back", exc_info=True)
        raise
