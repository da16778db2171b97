from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from fitplan.config.settings import settings

# Lazy initialization to avoid import-time database connections
_engine: Engine | None = None
_SessionLocal: sessionmaker[Session] | None = None


def _validate_postgresql_driver() -> None:
    """Validate PostgreSQL driver is installed when using PostgreSQL."""
    try:
        import psycopg2  # noqa: F401

        logger.info("PostgreSQL driver (psycopg2) is available")
    except ImportError as e:
        logger.error("⚠️ CRITICAL: PostgreSQL driver (psycopg2) is not installed! Install with: pip install psycopg2-binary")
        raise ImportError("PostgreSQL driver required. Install with: pip install psycopg2-binary") from e


def _get_engine() -> Engine:
    """Get or create the database engine (lazy initialization)."""
    global _engine
    if _engine is None:
        logger.info(f"Initializing database engine: {settings.database_url}")

        url = settings.database_url.lower()
        is_postgresql = "postgresql" in url or "postgres" in url
        connect_args: dict = {}
        if is_postgresql:
            _validate_postgresql_driver()
            connect_args = {"connect_timeout": 10, "application_name": "fitplan"}
        elif "sqlite" in url:
            logger.warning("Using SQLite database (local development only)")
            connect_args = {"check_same_thread": False}

        _engine = create_engine(
            settings.database_url,
            connect_args=connect_args,
            echo=False,
            pool_pre_ping=True,
        )
        logger.info("Database engine initialized")
    return _engine


def get_engine() -> Engine:
    """Get or create the database engine (public API)."""
    return _get_engine()


def get_session_factory() -> sessionmaker[Session]:
    """Get or create the session factory (lazy initialization)."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_get_engine())
        logger.info("Database session factory initialized")
    return _SessionLocal


@contextmanager
def session_scope(factory: sessionmaker[Session] | None = None) -> Generator[Session, None, None]:
    """Transactional session scope.

    Commits on clean exit, rolls back and re-raises on any exception.

    Args:
        factory: Session factory to use. Defaults to the application factory.
    """
    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        logger.debug("Exception in session scope, rolling back")
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Engine | None = None) -> None:
    """Create all tables if they do not exist."""
    from fitplan.db.models import Base

    Base.metadata.create_all(bind=engine or _get_engine())
    logger.info("Database schema ensured")
