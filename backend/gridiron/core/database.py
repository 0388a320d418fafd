"""
Database plumbing: engine, session factory, declarative Base and the
request-scoped session dependency.

Ledger and scoring code relies on row locks and conditional UPDATEs, so the
production target is PostgreSQL. SQLite is supported for local runs and tests;
an in-memory SQLite database is pinned to a single connection so every session
sees the same tables.
"""
import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from gridiron.core.config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(database_url: str, echo: bool = False) -> Engine:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        options = {"connect_args": {"check_same_thread": False}}
        if not url.database or url.database == ":memory:":
            options["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **options)
    return create_engine(url, pool_pre_ping=True, pool_recycle=300, echo=echo)


def make_session_factory(bind: Engine) -> sessionmaker:
    # Services commit explicitly; nothing is flushed behind their back
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


# Engine for the configured DATABASE_URL; None when it cannot be built
try:
    engine: Optional[Engine] = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    logger.info(
        "Database engine created for "
        f"{make_url(settings.DATABASE_URL).render_as_string(hide_password=True)}"
    )
except Exception as e:
    logger.warning(f"Failed to create database engine: {e}")
    engine = None

SessionLocal = make_session_factory(engine) if engine is not None else None


def get_db():
    """Dependency to get database session"""
    if SessionLocal is None:
        raise HTTPException(status_code=503, detail="Database not available")
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Optional[Engine] = None) -> bool:
    """Create any missing card game tables; migrations remain the source of truth"""
    bind = bind if bind is not None else engine
    if bind is None:
        logger.warning("Database engine not available, skipping table creation")
        return False

    try:
        # Registers every model on Base.metadata
        from gridiron.models import database_models  # noqa: F401

        existing = set(inspect(bind).get_table_names())
        missing = [t for t in Base.metadata.sorted_tables if t.name not in existing]
        Base.metadata.create_all(bind=bind)
        if missing:
            logger.info(f"Created {len(missing)} table(s): {', '.join(t.name for t in missing)}")
        return True

    except Exception as e:
        logger.error(f"Error initializing database: {e}")
        return False


def check_db_connection(bind: Optional[Engine] = None) -> bool:
    """Check if database connection is working"""
    bind = bind if bind is not None else engine
    if bind is None:
        logger.warning("Database not available")
        return False

    try:
        with bind.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
