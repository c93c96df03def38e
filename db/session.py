# WORKFLOW: Database session management and connection handling.
# Used by: All database operations throughout the application
# Functions:
# 1. get_db() - Dependency injection for FastAPI endpoints
# 2. init_db() - Ensure the prices table exists with every known column
# 3. check_db_connection() - Health check for database connectivity
# 4. override_engine() - Swap the engine (tests, scripts)
#
# Database lifecycle:
# Startup: init_db() -> Create missing tables -> Add missing optional columns
# Runtime: get_db() -> Session -> Query -> Close session
# Health checks: check_db_connection() -> Monitor connectivity

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from core.config import settings
import logging
from typing import List, Optional

logger = logging.getLogger(__name__)

# Lazy-loaded database engine and session factory
_engine = None
_SessionLocal = None


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    return {
        "pool_pre_ping": True,
        "connect_args": {"options": "-c timezone=utc"},
    }


def get_engine():
    """Get database engine (lazy-loaded)."""
    global _engine
    if _engine is None:
        _engine = create_engine(
            settings.database_url,
            echo=settings.debug,
            **_engine_options(settings.database_url),
        )
    return _engine


def get_session_factory():
    """Get session factory (lazy-loaded)."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _SessionLocal


def override_engine(engine: Optional[Engine]) -> None:
    """
    Replace the lazily created engine and session factory.

    Passing None resets both so the next call rebuilds them from settings.
    """
    global _engine, _SessionLocal
    _engine = engine
    _SessionLocal = None


def get_db():
    """
    Dependency to get database session.
    Yields a database session and ensures it's closed after use.
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    logger.debug("Database session created")
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()
        logger.debug("Database session closed")


def _add_missing_columns(engine: Engine) -> List[str]:
    """
    Add optional columns the model knows about but the existing table lacks.

    Required columns are never added to an existing table; a table missing
    one of those is left as is and fails at insert time.
    """
    from db.models import Price

    table = Price.__table__
    existing = {column["name"] for column in inspect(engine).get_columns(table.name)}
    added = []

    with engine.begin() as conn:
        for column in table.columns:
            if column.name in existing or not column.nullable:
                continue
            column_type = column.type.compile(dialect=engine.dialect)
            conn.execute(text(f"ALTER TABLE {table.name} ADD COLUMN {column.name} {column_type}"))
            added.append(column.name)

    for name in added:
        logger.info(f"Added missing column {table.name}.{name}")
    return added


def init_db(engine: Optional[Engine] = None) -> None:
    """
    Ensure database tables exist. Safe to call repeatedly.
    """
    from db.models import Base

    engine = engine or get_engine()
    try:
        Base.metadata.create_all(bind=engine)
        _add_missing_columns(engine)
        logger.info("Database schema ensured")

    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


def check_db_connection() -> bool:
    """
    Check if database connection is working.
    """
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
