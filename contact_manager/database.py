"""Database configuration and session management.

This module defines the declarative base and the :class:`Database`
storage handle. The handle owns the SQLAlchemy engine (and with it the
connection pool) plus the session factory; it is constructed by the
process entry point and attached to the application, never kept as a
module global.
"""

import logging

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .core import Settings


logger = logging.getLogger(__name__)


Base = declarative_base()
"""Declarative base class for SQLAlchemy models."""


class Database:
    """Engine and session factory bound to one database URL."""

    def __init__(self, url: str, **engine_options):
        self.url = url
        self.engine = create_engine(url, future=True, **engine_options)
        self.session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
            future=True,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        """
        Build a handle from application settings.

        Server databases get a fixed-size pool; requests wait up to
        ``DB_POOL_TIMEOUT`` seconds for a free connection. SQLite uses
        SQLAlchemy's default pool.

        Args:
            settings (Settings): Application settings.

        Returns:
            Database: Configured storage handle.
        """
        options: dict = {}
        if settings.DATABASE_URL.startswith("sqlite"):
            options["connect_args"] = {"check_same_thread": False}
        else:
            options.update(
                pool_size=settings.DB_POOL_SIZE,
                max_overflow=settings.DB_MAX_OVERFLOW,
                pool_timeout=settings.DB_POOL_TIMEOUT,
                pool_pre_ping=True,
            )
        return cls(settings.DATABASE_URL, **options)

    def create_all(self):
        """Create all tables that do not exist yet."""
        Base.metadata.create_all(bind=self.engine)

    def dispose(self):
        """Close every pooled connection."""
        logger.info("Disposing connection pool for %s", self.engine.url)
        self.engine.dispose()


def get_db(request: Request):
    """
    Provide a SQLAlchemy database session.

    This function is used as a FastAPI dependency.
    It yields a session from the storage handle attached to the
    application and ensures it is closed after the request is completed.
    """

    database: Database = request.app.state.database
    db = database.session_factory()
    try:
        yield db
    finally:
        db.close()
