"""
Database package for the Book Instance MCP Server.

This package provides:
- SQLAlchemy schema definitions (schema.py)
- Session management and connection handling (session.py)
- Repositories for instances, policies and the catalog
"""

from .catalog_repository import BookRepository
from .instance_repository import BookInstanceRepository
from .policy_repository import PolicyRepository
from .repository import (
    BaseRepository,
    DuplicateError,
    NotFoundError,
    PaginatedResponse,
    PaginationParams,
)
from .schema import (
    Base,
    Book,
    BookInstance,
    InstanceStatusEnum,
    LibraryPolicy,
)
from .session import (
    DatabaseManager,
    RepositoryException,
    StorageError,
    get_db_manager,
    get_session,
    mcp_safe_commit,
    mcp_safe_query,
    reset_db_manager,
    session_scope,
)

__all__ = [
    "Base",
    "BaseRepository",
    "Book",
    "BookInstance",
    "BookInstanceRepository",
    "BookRepository",
    "DatabaseManager",
    "DuplicateError",
    "InstanceStatusEnum",
    "LibraryPolicy",
    "NotFoundError",
    "PaginatedResponse",
    "PaginationParams",
    "PolicyRepository",
    "RepositoryException",
    "StorageError",
    "get_db_manager",
    "get_session",
    "mcp_safe_commit",
    "mcp_safe_query",
    "reset_db_manager",
    "session_scope",
]
