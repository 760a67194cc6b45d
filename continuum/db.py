"""Database engine, declarative base and session helpers."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from continuum.config import get_settings

Base = declarative_base()


class DatabaseManager:
    """Owns the engine and session factory. The engine is created on first use."""

    def __init__(self) -> None:
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            settings = get_settings()
            self.bind(
                create_engine(
                    settings.database_url,
                    pool_size=settings.database_pool_size,
                    max_overflow=settings.database_max_overflow,
                    pool_pre_ping=True,
                    connect_args={"application_name": settings.app_name},
                )
            )
        return self._engine

    def bind(self, engine: Engine) -> None:
        """Point the manager at an engine (tests bind an in-memory database)."""
        self._engine = engine
        self._session_factory = sessionmaker(
            autocommit=False, autoflush=False, bind=engine
        )

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            self.engine  # noqa: B018 - creates the factory
        return self._session_factory

    @contextmanager
    def db_session(self) -> Iterator[Session]:
        """Session scope for work outside a request (background tasks, Celery)."""
        db = self.session_factory()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


db_manager = DatabaseManager()
db_session = db_manager.db_session


def get_db() -> Iterator[Session]:
    """FastAPI dependency yielding a request-scoped session."""
    db = db_manager.session_factory()
    try:
        yield db
    finally:
        db.close()
