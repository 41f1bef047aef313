"""SQLAlchemy engine and session helpers for the content store."""

from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import get_config

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _build_engine(url: str) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    connect_args = {"check_same_thread": False}  # Needed for SQLite
    if url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise every session sees its own empty database.
        engine = create_engine(url, connect_args=connect_args, poolclass=StaticPool)
    else:
        engine = create_engine(url, connect_args=connect_args)
    _enable_sqlite_foreign_keys(engine)
    return engine


class DatabaseService:
    """Own the engine and hand out transactional sessions."""

    def __init__(self, url: str | None = None):
        self.url = url or get_config().database_url
        self.engine = _build_engine(self.url)
        self._session_factory = sessionmaker(
            bind=self.engine, autoflush=False, expire_on_commit=False
        )

    def initialize(self) -> None:
        """Create every table of the schema."""
        from . import schema  # noqa: F401  (registers the mapped tables)

        Base.metadata.create_all(self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session committed on success and rolled back on any error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError:
            logger.exception("Database error, rolling back")
            session.rollback()
            raise
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()


_database_service: Optional[DatabaseService] = None


def get_database_service() -> DatabaseService:
    """Get or create the database service singleton."""
    global _database_service
    if _database_service is None:
        _database_service = DatabaseService()
    return _database_service


def init_database(url: str | None = None) -> DatabaseService:
    """Convenience wrapper creating the schema."""
    service = DatabaseService(url)
    service.initialize()
    return service


__all__ = ["Base", "DatabaseService", "get_database_service", "init_database"]
