"""
Database session management for the Book Instance MCP Server.

Sessions are short-lived: one per tool call, resource read or sweep.
The lifecycle engine depends on that, because each transition is one
conditional UPDATE plus one commit inside its own session. If the
caller goes away before the commit, the rollback in ``session_scope``
discards the work.
"""

import logging
from collections.abc import Callable, Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..config import get_config
from .schema import Base

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Session.info key overriding how long a SQLite session waits on locks
LOCK_TIMEOUT_KEY = "lock_timeout_seconds"


class RepositoryException(Exception):
    """Base exception for repository operations."""


class StorageError(RepositoryException):
    """Raised when the database cannot serve a query or commit."""


class DatabaseManager:
    """
    Manages database connections and sessions for the MCP server.

    This class provides:
    - Lazily created engine with a bounded lock timeout
    - Per-session lock waits through ``session.info[LOCK_TIMEOUT_KEY]``
    - Session factory with explicit transactions
    - Schema creation for development and tests
    """

    def __init__(self, database_url: str | None = None, timeout_seconds: float | None = None):
        """
        Initialize the database manager.

        Args:
            database_url: SQLAlchemy database URL. If None, uses the configured SQLite file.
            timeout_seconds: Lock wait for SQLite. If None, uses configuration.
        """
        config = get_config()
        if database_url is None:
            db_path = config.database_path

            if not db_path.is_absolute():
                db_path = Path.cwd() / db_path

            db_path.parent.mkdir(exist_ok=True, parents=True)

            database_url = f"sqlite:///{db_path}"
            logger.info("Using SQLite database at: %s", db_path)

        self.database_url = database_url
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else config.database_timeout_seconds
        )
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def engine(self) -> Engine:
        """
        Get or create the database engine.

        SQLite files get one pooled connection per thread so that two
        concurrent transitions really do race on the database lock
        instead of sharing a connection.
        """
        if self._engine is None:
            if self.database_url.startswith("sqlite"):
                self._engine = create_engine(
                    self.database_url,
                    connect_args={
                        "check_same_thread": False,
                        "timeout": self.timeout_seconds,
                    },
                    echo=False,
                )

                @event.listens_for(self._engine, "connect")
                def set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ARG001
                    cursor = dbapi_connection.cursor()
                    cursor.execute("PRAGMA foreign_keys=ON")
                    cursor.close()
            else:
                self._engine = create_engine(
                    self.database_url,
                    pool_size=10,
                    max_overflow=20,
                    pool_pre_ping=True,
                    pool_timeout=self.timeout_seconds,
                    echo=False,
                )

            logger.info("Database engine created: %s", self._engine.url)

        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        """Get or create the session factory."""
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine,
                autocommit=False,
                autoflush=False,
                expire_on_commit=False,
            )
            if self.database_url.startswith("sqlite"):

                @event.listens_for(self._session_factory, "after_begin")
                def set_lock_wait(session, transaction, connection):  # noqa: ARG001
                    # busy_timeout is per connection and pooled connections are
                    # reused, so every transaction sets its own value
                    seconds = session.info.get(LOCK_TIMEOUT_KEY, self.timeout_seconds)
                    millis = max(0, int(seconds * 1000))
                    connection.exec_driver_sql(f"PRAGMA busy_timeout = {millis}")

        return self._session_factory

    def create_session(self) -> Session:
        """Create a new database session."""
        return self.session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope for database operations.

        ```python
        with db_manager.session_scope() as session:
            instance = session.get(BookInstance, instance_id)
        # Session is automatically committed or rolled back
        ```
        """
        session = self.create_session()
        try:
            yield session
            session.commit()
            logger.debug("Database transaction committed successfully")
        except BaseException:
            # BaseException so task cancellation also rolls back
            logger.debug("Database transaction rolled back")
            session.rollback()
            raise
        finally:
            session.close()

    def init_database(self, drop_existing: bool = False) -> None:
        """
        Initialize the database schema.

        Args:
            drop_existing: If True, drop all tables before creating
        """
        engine = self.engine

        if drop_existing:
            logger.warning("Dropping all existing tables...")
            Base.metadata.drop_all(bind=engine)

        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database initialization complete")

    def verify_connection(self) -> bool:
        """Verify the database connection is working."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database connection verified")
            return True
        except SQLAlchemyError:
            logger.exception("Database connection failed")
            return False

    def close(self) -> None:
        """Close the database connection and cleanup resources."""
        if self._engine:
            self._engine.dispose()
            logger.info("Database engine disposed")
        self._engine = None
        self._session_factory = None


_db_manager: DatabaseManager | None = None


def get_db_manager(database_url: str | None = None) -> DatabaseManager:
    """
    Get the global database manager instance.

    Args:
        database_url: Database URL (only used on first call)
    """
    global _db_manager  # noqa: PLW0603 - Singleton pattern for database manager

    if _db_manager is None:
        _db_manager = DatabaseManager(database_url)

    return _db_manager


def reset_db_manager() -> None:
    """Dispose the global manager (useful for testing)."""
    global _db_manager  # noqa: PLW0603
    if _db_manager is not None:
        _db_manager.close()
    _db_manager = None


def get_session() -> Session:
    """
    Get a new database session.

    SQLAlchemy sessions are context managers, so handlers write
    ``with get_session() as session:`` and commit explicitly.
    """
    return get_db_manager().create_session()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Convenience context manager for database sessions."""
    with get_db_manager().session_scope() as session:
        yield session


def mcp_safe_commit(session: Session, operation: str) -> None:
    """
    Commit a session, rolling back and raising StorageError on failure.

    Args:
        session: The database session
        operation: Description of the operation (for error messages)
    """
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise StorageError(f"Database operation '{operation}' failed: {e!s}") from e


def mcp_safe_query(session: Session, query_func: Callable[[Session], T], error_msg: str) -> T:
    """
    Execute a query, raising StorageError on driver failures.

    Args:
        session: The database session
        query_func: Function that performs the query
        error_msg: Error message prefix
    """
    try:
        return query_func(session)
    except SQLAlchemyError as e:
        logger.exception("Query failed")
        raise StorageError(f"{error_msg}: Database query failed") from e
