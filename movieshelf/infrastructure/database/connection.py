"""
Database Connection Manager

Provides database connection management with transaction support.
"""

from __future__ import annotations

import logging
import os
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from movieshelf.domain.exceptions import StoreError

from .models import Base

logger = logging.getLogger(__name__)

DEFAULT_BUSY_TIMEOUT_MS = 30000
PRAGMA_RETRIES = 3


def _execute_pragma(cursor, statement: str, retries: int = PRAGMA_RETRIES) -> None:
    """Run a PRAGMA, retrying while the database is locked."""
    for attempt in range(1, retries + 1):
        try:
            cursor.execute(statement)
            return
        except sqlite3.OperationalError as e:
            if attempt == retries:
                logger.warning("%s failed after %d attempts: %s", statement, attempt, e)
                return
            time.sleep(0.05 * attempt)


class DatabaseManager:
    """
    Manages database connections and sessions.

    Features:
    - SQLite backend in WAL mode
    - Session management with transaction support
    - Bounded lock waits (busy_timeout)
    - Automatic table creation and additive migrations
    """

    def __init__(
        self,
        db_path: str | Path | None = None,
        *,
        db_url: str | None = None,
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
    ):
        """
        Initialize the database manager.

        Args:
            db_path: Path to SQLite database file, or ":memory:"
            db_url: Explicit SQLite SQLAlchemy URL
            busy_timeout_ms: How long a statement waits on a locked database
        """
        self.db_url, self.db_path = self._resolve_connection_target(db_path=db_path, db_url=db_url)
        self.busy_timeout_ms = int(busy_timeout_ms)

        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None
        self._initialized = False

    @staticmethod
    def _resolve_connection_target(
        db_path: str | Path | None,
        db_url: str | None,
    ) -> tuple[str, Optional[Path]]:
        normalized_url = (db_url or "").strip()

        if normalized_url:
            if normalized_url.startswith("sqlite://"):
                parsed = make_url(normalized_url)
                sqlite_db = parsed.database
                sqlite_path = Path(sqlite_db) if sqlite_db and sqlite_db != ":memory:" else None
                return normalized_url, sqlite_path
            logger.warning("Only sqlite:// URL is supported, ignore db_url=%s", normalized_url)

        if db_path is None:
            raise ValueError("SQLite backend requires db_path when db_url is not set")

        if str(db_path).strip() == ":memory:":
            return "sqlite:///:memory:", None

        sqlite_path = Path(db_path)
        return f"sqlite:///{sqlite_path}", sqlite_path

    @property
    def is_memory(self) -> bool:
        return self.db_path is None and ":memory:" in self.db_url

    @property
    def engine(self) -> Engine:
        """Get the database engine, creating it if necessary."""
        if self._engine is None:
            self._create_engine()
        return self._engine

    def _create_engine(self) -> None:
        """Create the SQLAlchemy engine."""
        if self.db_path is not None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        engine_kwargs = {
            "echo": False,
            "pool_pre_ping": True,
            "connect_args": {
                "check_same_thread": False,
                "timeout": self.busy_timeout_ms / 1000.0,
            },
        }
        if self.is_memory:
            # One shared connection, otherwise every thread sees an empty database
            engine_kwargs["poolclass"] = StaticPool

        self._engine = create_engine(self.db_url, **engine_kwargs)
        busy_timeout_ms = self.busy_timeout_ms

        @event.listens_for(self._engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            _execute_pragma(cursor, "PRAGMA journal_mode=WAL")
            _execute_pragma(cursor, "PRAGMA synchronous=NORMAL")
            _execute_pragma(cursor, f"PRAGMA busy_timeout={busy_timeout_ms}")
            _execute_pragma(cursor, "PRAGMA foreign_keys=ON")
            _execute_pragma(cursor, "PRAGMA temp_store=MEMORY")
            cursor.close()

        self._session_factory = sessionmaker(
            bind=self._engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

        target = str(self.db_path) if self.db_path else self.db_url
        logger.info("Database engine created: %s", target)

    def init_db(self) -> None:
        """
        Initialize the database, creating all tables.

        Raises:
            StoreError: If the database is unreachable
        """
        if self._initialized:
            return

        self._health_check_or_raise()
        Base.metadata.create_all(self.engine)
        self._apply_migrations()
        self._initialized = True
        logger.info("Database tables initialized")

    def _health_check_or_raise(self) -> None:
        """Check connection availability before full initialization."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error("Database health check failed: %s", e)
            raise StoreError(f"Database unreachable: {e}") from e

    def get_session(self) -> Session:
        """
        Get a new database session.

        Returns:
            Session: A new SQLAlchemy session
        """
        if self._session_factory is None:
            self._create_engine()
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope around a series of operations.

        Usage:
            with db_manager.session_scope() as session:
                session.add(obj)
                # Automatically commits on success, rolls back on exception

        Yields:
            Session: Database session
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            try:
                session.close()
            except SQLAlchemyError as e:
                logger.error("Failed to close session: %s", e)

    def close(self) -> None:
        """Close the database connection."""
        if self._engine:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
            self._initialized = False
            logger.info("Database connection closed")

    def _apply_migrations(self) -> None:
        """Apply lightweight schema migrations (additive only)."""
        try:
            with self.engine.begin() as conn:
                result = conn.execute(text("PRAGMA table_info(movies)"))
                columns = [row[1] for row in result.fetchall()]

                new_columns = [
                    ("data_path_index", "data_path_index INTEGER NOT NULL DEFAULT 0"),
                    ("folder_updated_at", "folder_updated_at DATETIME"),
                    ("video_path", "video_path VARCHAR(1024)"),
                    ("playable", "playable BOOLEAN NOT NULL DEFAULT 0"),
                ]

                for name, ddl in new_columns:
                    if name in columns:
                        continue
                    conn.execute(text(f"ALTER TABLE movies ADD COLUMN {ddl}"))
                    logger.info("Added column movies.%s", name)

                # Older releases stored Windows separators
                conn.execute(
                    text(
                        "UPDATE movies SET folder_path = REPLACE(folder_path, '\\', '/') "
                        "WHERE folder_path LIKE '%\\%'"
                    )
                )

                index_sql = [
                    "CREATE INDEX IF NOT EXISTS idx_movies_folder ON movies (data_path_index, folder_path)",
                    "CREATE INDEX IF NOT EXISTS idx_movies_folder_updated_at ON movies (folder_updated_at)",
                ]
                for sql in index_sql:
                    conn.execute(text(sql))
        except SQLAlchemyError as e:
            logger.error("Database migration failed: %s", e)


def _resolve_runtime_database_config() -> tuple[str, Optional[Path]]:
    from movieshelf.core.config import AppConfig
    from movieshelf.runtime.runtime_config import get_database_dir

    configured_url = str(AppConfig.get("database.url", "") or "").strip()
    sqlite_filename = str(AppConfig.get("database.sqlite_filename", "movieshelf.db") or "movieshelf.db").strip()
    env_url = (os.environ.get("MOVIESHELF_DATABASE_URL") or "").strip()

    for url in (env_url, configured_url):
        if not url:
            continue
        if url.startswith("sqlite://"):
            return url, None
        logger.warning("Ignore non-sqlite database URL, fallback to local sqlite file")

    return "", get_database_dir() / sqlite_filename


# Global database manager instance
_db_manager: Optional[DatabaseManager] = None
_db_init_lock = None  # Will be initialized as threading.Lock()


def get_db_manager() -> DatabaseManager:
    """
    Get the global database manager.
    Thread-safe initialization with lock to prevent race conditions.

    Returns:
        DatabaseManager: The database manager instance
    """
    global _db_manager, _db_init_lock

    if _db_init_lock is None:
        import threading

        _db_init_lock = threading.Lock()

    if _db_manager is None:
        with _db_init_lock:
            if _db_manager is None:
                from movieshelf.core.config import AppConfig

                busy_timeout_ms = int(AppConfig.get("database.busy_timeout_ms", DEFAULT_BUSY_TIMEOUT_MS))
                db_url, db_path = _resolve_runtime_database_config()
                if db_url:
                    manager = DatabaseManager(db_url=db_url, busy_timeout_ms=busy_timeout_ms)
                else:
                    manager = DatabaseManager(db_path=db_path, busy_timeout_ms=busy_timeout_ms)
                manager.init_db()
                _db_manager = manager
                logger.info("Database manager initialized (thread-safe)")

    return _db_manager


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Provide a transactional scope.

    Yields:
        Session: Database session
    """
    with get_db_manager().session_scope() as session:
        yield session
