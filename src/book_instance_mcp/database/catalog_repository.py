"""
Catalog repository for the Book Instance MCP Server.

The catalog itself is maintained by another part of the library system.
The lifecycle core only asks two things of it: does a ``book_id`` exist,
and what is its title. ``create`` exists for seeding and tests.
"""

from sqlalchemy.exc import IntegrityError

from ..database.schema import Book as BookDB
from ..database.session import mcp_safe_commit
from ..models.book import Book as BookModel
from .repository import BaseRepository, DuplicateError


class BookRepository(BaseRepository[BookDB, BookModel]):
    """Repository for catalog lookups used by provisioning and read views."""

    @property
    def model_class(self):
        return BookDB

    @property
    def response_schema(self):
        return BookModel

    def book_exists(self, book_id: str) -> bool:
        """Catalog validator used by provisioning and instance updates."""
        return self.exists(book_id)

    def create(self, book: BookModel) -> BookModel:
        """
        Add a catalog entry.

        Raises:
            DuplicateError: If the book id is already taken
        """
        db_obj = BookDB(book_id=book.book_id, title=book.title)
        self.session.add(db_obj)
        try:
            self.session.flush()
        except IntegrityError as e:
            self.session.rollback()
            raise DuplicateError(f"Book {book.book_id} already exists") from e
        mcp_safe_commit(self.session, "create book")
        return self._to_response_model(db_obj)
