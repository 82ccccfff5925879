"""
Engine and session handling for the live data tables.

Backends:
- DATABASE_URL, when set, is used as-is (tests point this at SQLite)
- DB_HOST set -> MySQL via PyMySQL with a pooled engine
- otherwise a local SQLite file (SQLITE_PATH) for development

Sessions are not thread-safe: the background sync opens one session per unit
of work through session_scope().
"""

import threading
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine
from sqlalchemy.orm import Session, sessionmaker

from ..models import Base
from ..utils.config import (
    DATABASE_URL, DB_HOST, DB_PORT, DB_NAME, DB_USER, DB_PASSWORD, SQLITE_PATH,
    config
)
from ..utils.logger import logger, log_database_error


def build_database_url() -> str:
    """
    Resolve the connection URL from configuration.

    Returns:
        SQLAlchemy URL string
    """
    if DATABASE_URL:
        return DATABASE_URL

    if DB_HOST:
        # URL.create keeps the password out of logged URLs
        return URL.create(
            drivername="mysql+pymysql",
            username=DB_USER,
            password=DB_PASSWORD,
            host=DB_HOST,
            port=DB_PORT,
            database=DB_NAME,
            query={
                "charset": "utf8mb4",
                "init_command": "SET time_zone='+00:00'",  # Force UTC for all connections
            },
        ).render_as_string(hide_password=False)

    return f"sqlite:///{SQLITE_PATH}"


class Database:
    """
    Owns the engine and the session factory.

    Example:
        >>> db = Database("sqlite:///:memory:")
        >>> db.create_all()
        >>> with db.session_scope() as session:
        ...     repo = LiveDataRepository(session)
        ...     park = repo.get_park("epcot")
    """

    def __init__(self, url: Optional[str] = None, echo: bool = False):
        self.url = url or build_database_url()
        self._echo = echo
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None
        # Sync workers can hit a cold Database at the same time
        self._engine_lock = threading.Lock()

    def get_engine(self) -> Engine:
        """
        Get or create the SQLAlchemy engine. Safe to call from several threads;
        only one engine is ever built.

        Raises:
            DatabaseConnectionError: If the engine cannot be created
        """
        if self._engine is None:
            with self._engine_lock:
                if self._engine is None:
                    self._build_engine()
        return self._engine

    def _build_engine(self) -> None:
        try:
            kwargs = {"echo": self._echo, "hide_parameters": True}
            if self.url.startswith("sqlite"):
                # Sync workers run on their own threads
                kwargs["connect_args"] = {"check_same_thread": False}
            else:
                kwargs.update(pool_size=10, max_overflow=20, pool_recycle=3600, pool_pre_ping=True)

            engine = create_engine(self.url, **kwargs)
        except Exception as e:
            log_database_error(e, "Failed to create database engine")
            raise DatabaseConnectionError(f"Failed to create database engine: {e}") from e

        # Factory first: a thread that sees the engine also sees its factory
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        self._engine = engine
        logger.info("Database engine initialized", extra={
            "dialect": engine.dialect.name,
            "environment": config.environment
        })

    def create_session(self) -> Session:
        """Create a session the caller must commit and close."""
        self.get_engine()
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Context manager for ORM database sessions.

        Commits on success, rolls back and logs on error.
        """
        session = self.create_session()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            log_database_error(e, "ORM transaction failed, rolled back")
            raise
        finally:
            session.close()

    def create_all(self) -> None:
        """Create any missing live data tables."""
        Base.metadata.create_all(self.get_engine())

    def test_connection(self) -> bool:
        """Run ``SELECT 1``; False (logged) when the database is unreachable."""
        try:
            with self.get_engine().connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            return True
        except Exception as e:
            logger.error("Database ping failed", extra={"error": str(e)})
            return False

    def close(self) -> None:
        """Dispose of the engine; the next call to get_engine() rebuilds it."""
        with self._engine_lock:
            if self._engine is None:
                return
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
        logger.info("Database engine disposed")


class DatabaseConnectionError(Exception):
    """The engine could not be created from the configured URL."""
