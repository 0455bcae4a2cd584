"""Test configuration and fixtures for the Book Instance MCP Server.

1. Isolated test databases - each test gets its own SQLite file
2. Configuration overrides - settings come from a per-test environment
3. Deterministic time - lifecycle code takes a fixed clock
4. Inline notifications - listeners run on the test thread and are recorded
"""

import os
from collections.abc import Callable, Generator
from contextlib import contextmanager
from datetime import date, timedelta
from pathlib import Path

import pytest
from sqlalchemy.orm import Session

from book_instance_mcp.config import ServerConfig, reset_config
from book_instance_mcp.database.schema import Book as BookDB
from book_instance_mcp.database.schema import BookInstance as BookInstanceDB
from book_instance_mcp.database.schema import InstanceStatusEnum
from book_instance_mcp.database.schema import LibraryPolicy as PolicyDB
from book_instance_mcp.database.session import DatabaseManager, reset_db_manager
from book_instance_mcp.lifecycle.notifications import AvailabilityListener, NotificationDispatcher
from book_instance_mcp.lifecycle.services import set_dispatcher
from book_instance_mcp.models.policy import MAX_LOAN_DURATION
from book_instance_mcp.observability import ObservabilityConfig, initialize_observability

TODAY = date(2024, 1, 1)
READER = "user_alice"
OTHER_READER = "user_bob"


# === Pytest Configuration ===


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "concurrency: mark test as racing real threads")


@pytest.fixture(scope="session", autouse=True)
def offline_observability():
    """Configure logfire once, with nothing leaving the process."""
    initialize_observability(
        ObservabilityConfig(token="", enabled=True, console_output=False, send_to_logfire=False)
    )


# === Environment Fixtures ===


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Provide a clean environment without BOOK_INSTANCE_* variables."""
    original_env = os.environ.copy()

    for key in list(os.environ.keys()):
        if key.startswith("BOOK_INSTANCE_"):
            del os.environ[key]

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch) -> Generator[None, None, None]:
    """Point the default database at the test's temp dir and reset singletons."""
    monkeypatch.setenv("BOOK_INSTANCE_DATABASE_PATH", str(tmp_path / "default.db"))
    reset_config()
    reset_db_manager()

    yield

    set_dispatcher(None)
    reset_db_manager()
    reset_config()


# === Test Database Fixtures ===


@pytest.fixture
def test_db_path(tmp_path: Path) -> Path:
    """Provide a temporary database path for each test."""
    return tmp_path / "test_library.db"


@pytest.fixture
def test_database_url(test_db_path: Path) -> str:
    """Provide a SQLAlchemy database URL for testing."""
    return f"sqlite:///{test_db_path}"


@pytest.fixture
def db_manager(test_database_url: str) -> Generator[DatabaseManager, None, None]:
    """A database manager over a fresh file database with the schema created."""
    manager = DatabaseManager(test_database_url, timeout_seconds=5.0)
    manager.init_database()

    yield manager

    manager.close()


@pytest.fixture
def session_factory(db_manager: DatabaseManager) -> Callable[[], Session]:
    """Fresh session per operation, as the MCP handlers use it."""
    return db_manager.create_session


@pytest.fixture
def test_db_session(db_manager: DatabaseManager) -> Generator[Session, None, None]:
    """Provide a SQLAlchemy session for direct database setup and checks."""
    session = db_manager.create_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@pytest.fixture
def mock_get_session(db_manager: DatabaseManager):
    """Replacement for ``get_session`` bound to the test database."""

    @contextmanager
    def _get_session():
        session = db_manager.create_session()
        try:
            yield session
        finally:
            session.close()

    return _get_session


# === Configuration Fixtures ===


@pytest.fixture
def test_config(test_db_path: Path) -> Generator[ServerConfig, None, None]:
    """Provide a test-specific server configuration."""
    reset_config()

    config = ServerConfig(
        server_name="test-book-instances",
        server_version="0.0.1-test",
        database_path=test_db_path,
        debug=True,
        log_level="DEBUG",
        pagination_limit=5,
        sweep_timeout_seconds=1.0,
        notification_workers=1,
    )

    yield config

    reset_config()


# === Lifecycle Fixtures ===


@pytest.fixture
def fixed_clock() -> Callable[[], date]:
    """A clock pinned to 2024-01-01."""
    return lambda: TODAY


class RecordingListener(AvailabilityListener):
    """Availability listener that remembers every event it receives."""

    def __init__(self):
        self.events: list[tuple[str, str]] = []

    def on_instance_available(self, instance_id: str, book_id: str) -> None:
        self.events.append((instance_id, book_id))


class FailingListener(AvailabilityListener):
    """Availability listener that always raises."""

    def __init__(self):
        self.calls = 0

    def on_instance_available(self, instance_id: str, book_id: str) -> None:
        self.calls += 1
        raise RuntimeError("reservation queue is down")


@pytest.fixture
def recording_listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def failing_listener() -> FailingListener:
    return FailingListener()


@pytest.fixture
def dispatcher(recording_listener: RecordingListener) -> NotificationDispatcher:
    """Inline dispatcher, installed as the process-wide one for handler tests."""
    inline = NotificationDispatcher([recording_listener])
    set_dispatcher(inline)
    return inline


# === Test Data Fixtures ===


@pytest.fixture
def library(test_db_session: Session) -> Session:
    """Seed two books and a 14 day MaxLoanDuration policy."""
    test_db_session.add_all(
        [
            BookDB(book_id="book_gatsby01", title="The Great Gatsby"),
            BookDB(book_id="book_orwell84", title="1984"),
            PolicyDB(name=MAX_LOAN_DURATION, value=14, description="Loan length in days"),
        ]
    )
    test_db_session.commit()
    return test_db_session


@pytest.fixture
def make_instance(library: Session):
    """Insert an instance in any state, bypassing the lifecycle engine."""
    counter = {"n": 0}

    def _make(
        status: str = "A",
        user_id: str | None = None,
        available_by: date | None = None,
        book_id: str = "book_gatsby01",
        imprint: str = "Scribner, 2004",
        instance_id: str | None = None,
    ) -> str:
        counter["n"] += 1
        if status in ("L", "R"):
            user_id = user_id or READER
            available_by = available_by or TODAY + timedelta(days=3)
        instance = BookInstanceDB(
            instance_id=instance_id or f"instance-{counter['n']:04d}",
            book_id=book_id,
            imprint=imprint,
            status=InstanceStatusEnum(status),
            user_id=user_id,
            available_by=available_by,
        )
        library.add(instance)
        library.commit()
        return instance.instance_id

    return _make


def load_instance(session: Session, instance_id: str) -> BookInstanceDB | None:
    """Read an instance row as currently committed."""
    session.expire_all()
    return session.get(BookInstanceDB, instance_id)


@pytest.fixture
def fetch(test_db_session: Session):
    """Fetch the committed row of an instance."""
    return lambda instance_id: load_instance(test_db_session, instance_id)
