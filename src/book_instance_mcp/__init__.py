"""
Book Instance MCP Server Package.

This package implements an MCP (Model Context Protocol) server that
manages the lifecycle of physical book copies in a library.

Key Components:
- models: Pydantic models for data validation and serialization
- database: SQLAlchemy models, session management and repositories
- lifecycle: status transitions, reservation sweeping, notifications
- config: Configuration management with Pydantic v2
- resources: MCP resources (read-only endpoints)
- tools: MCP tools (operations with side effects)
"""

__version__ = "0.1.0"

# Make database module available at package level
from . import database

__all__ = [
    "__version__",
    "database",
]
