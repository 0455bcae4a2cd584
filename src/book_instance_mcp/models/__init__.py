"""
Book Instance MCP Server Models.

Pydantic models for the entities the lifecycle core works with:
- Book: the catalog title a copy belongs to
- BookInstance: one borrowable copy and its lifecycle state
- TransitionOutcome: what an executed status change did
- LibraryPolicy: administratively configured numeric parameters
"""

from .book import Book
from .instance import (
    BookInstance,
    BookInstanceDetails,
    BookInstanceUpdate,
    InstanceStatus,
    TransitionOutcome,
)
from .policy import MAX_LOAN_DURATION, LibraryPolicy

__all__ = [
    "MAX_LOAN_DURATION",
    "Book",
    "BookInstance",
    "BookInstanceDetails",
    "BookInstanceUpdate",
    "InstanceStatus",
    "LibraryPolicy",
    "TransitionOutcome",
]
