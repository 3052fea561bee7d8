"""
Database Configuration and Session Management
============================================

This module provides the main database engine, session factory, and table creation
functionality for the GameVault marketplace backend.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from config import Config
from models import Base

logger = logging.getLogger(__name__)


def build_engine(database_url: str, echo: bool = False):
    """Create an engine with pooling suited to the backend in use"""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}, "echo": echo}
        # In-memory databases vanish with their connection, so keep a single one
        if ":memory:" in database_url or database_url == "sqlite://":
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)

    return create_engine(
        database_url,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,    # Validate connections before use
        pool_recycle=3600,     # Recycle connections every hour
        pool_timeout=30,
        echo=echo,
    )


engine = build_engine(Config.DATABASE_URL, echo=Config.SQL_ECHO)

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


def create_tables(bind=None) -> bool:
    """Create all database tables if they don't exist"""
    target = bind or engine
    logger.info(f"🏗️ Creating database tables ({len(Base.metadata.tables)} models registered)")
    Base.metadata.create_all(bind=target, checkfirst=True)

    existing_tables = inspect(target).get_table_names()
    logger.info(f"✅ Database schema verified: {len(existing_tables)} tables available")
    logger.info(f"📋 Tables: {', '.join(sorted(existing_tables))}")
    return True


@contextmanager
def managed_session() -> Iterator[Session]:
    """Sync context manager for database sessions"""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"Database session error: {e}")
        raise
    finally:
        session.close()


def get_db() -> Iterator[Session]:
    """FastAPI dependency yielding a managed session"""
    with managed_session() as session:
        yield session


def test_connection() -> bool:
    """Test database connection"""
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
            logger.info("✅ Database connection test successful")
            return True
    except Exception as e:
        logger.error(f"❌ Database connection test failed: {e}")
        return False
