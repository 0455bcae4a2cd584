"""
Catalog maintenance and read views for book instances.

These operations do not change lifecycle state (except ``delete``,
which removes a copy that nobody holds). Reads run the reservation
sweep first so lapsed holds never show up as Reserved.
"""

import logging
from collections.abc import Callable
from contextlib import AbstractContextManager
from typing import Any

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..database.catalog_repository import BookRepository
from ..database.instance_repository import BookInstanceRepository
from ..database.repository import PaginatedResponse, PaginationParams
from ..database.session import RepositoryException
from ..models.instance import (
    BookInstance,
    BookInstanceDetails,
    BookInstanceUpdate,
    InstanceStatus,
)
from .errors import BadRequestError, ConflictError, DependencyFailureError, NotFoundError

logger = logging.getLogger(__name__)

DELETABLE_STATUSES = {InstanceStatus.AVAILABLE, InstanceStatus.MAINTENANCE}


class InstanceCatalog:
    """Lookups, listings and non-lifecycle edits of book instances."""

    def __init__(
        self,
        session_factory: Callable[[], AbstractContextManager[Session]],
        pre_operation_hook: Callable[[], Any] | None = None,
        page_size: int = 10,
    ):
        self._session_factory = session_factory
        self._pre_operation_hook = pre_operation_hook
        self.page_size = page_size

    def _before_read(self) -> None:
        if self._pre_operation_hook is not None:
            self._pre_operation_hook()

    def _run(self, description: str, operation: Callable[[Session], Any]) -> Any:
        try:
            with self._session_factory() as session:
                return operation(session)
        except (RepositoryException, SQLAlchemyError) as e:
            logger.exception("Storage failure while trying to %s", description)
            raise DependencyFailureError(f"Failed to {description}: {e!s}") from e

    def _pagination(self, page: int) -> PaginationParams:
        if page < 1:
            raise BadRequestError("Page must be >= 1")
        return PaginationParams(page=page, page_size=self.page_size)

    def get_instance(self, instance_id: str) -> BookInstanceDetails:
        """Instance details with its book title."""
        self._before_read()
        details = self._run(
            "get book instance",
            lambda s: BookInstanceRepository(s).find_details(instance_id),
        )
        if details is None:
            raise NotFoundError(f"Book instance {instance_id} not found")
        return details

    def list_instances(
        self, page: int = 1, status: InstanceStatus | str | None = None
    ) -> PaginatedResponse[BookInstanceDetails]:
        """One page of instances, optionally restricted to a status."""
        parsed = None
        if status is not None:
            try:
                parsed = InstanceStatus.parse(status)
            except ValueError as e:
                raise BadRequestError(str(e)) from e

        pagination = self._pagination(page)
        self._before_read()
        return self._run(
            "list book instances",
            lambda s: BookInstanceRepository(s).list_instances(pagination, status=parsed),
        )

    def list_held_by(self, user_id: str) -> list[BookInstanceDetails]:
        """Copies a reader has on loan or on reservation."""
        if not user_id or not user_id.strip():
            raise BadRequestError("A user id is required")
        self._before_read()
        return self._run(
            "list instances held by reader",
            lambda s: BookInstanceRepository(s).find_by_holder(user_id.strip()),
        )

    def update_details(
        self, instance_id: str, book_id: str | None = None, imprint: str | None = None
    ) -> BookInstance:
        """
        Change a copy's book or imprint.

        Raises:
            NotFoundError: Unknown instance
            BadRequestError: Unknown book
        """
        try:
            data = BookInstanceUpdate(book_id=book_id, imprint=imprint)
        except ValidationError as e:
            raise BadRequestError(f"Invalid book instance update: {e}") from e

        def operation(session: Session) -> BookInstance | None:
            if book_id is not None and not BookRepository(session).book_exists(book_id):
                raise BadRequestError(f"No such book found: {book_id}")
            return BookInstanceRepository(session).update_details(instance_id, data)

        updated = self._run("update book instance", operation)
        if updated is None:
            raise NotFoundError(f"Book instance {instance_id} not found")
        logger.info("Updated details of book instance %s", instance_id)
        return updated

    def delete_instance(self, instance_id: str) -> None:
        """
        Remove a copy from the collection.

        Raises:
            NotFoundError: Unknown instance
            ConflictError: The copy is loaned or reserved
        """
        self._before_read()

        def operation(session: Session) -> BookInstance | None:
            repo = BookInstanceRepository(session)
            current = repo.find_by_id(instance_id)
            if current is None:
                return None
            if current.status not in DELETABLE_STATUSES or not repo.delete_if_status(
                instance_id, DELETABLE_STATUSES
            ):
                raise ConflictError(
                    f"Book instance {instance_id} is held by a reader and cannot be deleted"
                )
            return current

        deleted = self._run("delete book instance", operation)
        if deleted is None:
            raise NotFoundError(f"Book instance {instance_id} not found")
        logger.info("Deleted book instance %s", instance_id)
