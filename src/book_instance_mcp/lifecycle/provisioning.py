"""Provisioning of new book instances.

A new copy always starts Available with no holder and no date, and it
is announced through the same availability notification as a returned
copy so queue matching treats both alike.
"""

import logging
from collections.abc import Callable
from contextlib import AbstractContextManager
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..database.catalog_repository import BookRepository
from ..database.instance_repository import BookInstanceRepository
from ..database.session import RepositoryException
from ..observability import trace_lifecycle_operation
from .errors import BadRequestError, DependencyFailureError
from .notifications import NotificationDispatcher

logger = logging.getLogger(__name__)


class InstanceProvisioner:
    """Creates new copies of catalog books."""

    def __init__(
        self,
        session_factory: Callable[[], AbstractContextManager[Session]],
        notifier: NotificationDispatcher | None = None,
        catalog_source: Callable[[Session], Any] = BookRepository,
    ):
        self._session_factory = session_factory
        self._notifier = notifier or NotificationDispatcher()
        self._catalog_source = catalog_source

    def provision(self, book_id: str, imprint: str = "") -> str:
        """
        Create a new Available copy of ``book_id``.

        Returns:
            The new instance id

        Raises:
            BadRequestError: If the book is not in the catalog
            DependencyFailureError: On storage failures
        """
        with trace_lifecycle_operation("provision", book_id=book_id) as span:
            try:
                with self._session_factory() as session:
                    if not self._catalog_source(session).book_exists(book_id):
                        raise BadRequestError(f"No such book found: {book_id}")
                    instance = BookInstanceRepository(session).insert(book_id, imprint)
            except (RepositoryException, SQLAlchemyError) as e:
                logger.exception("Storage failure while provisioning a copy of %s", book_id)
                raise DependencyFailureError(f"Book instance storage unavailable: {e!s}") from e

            span.set_attribute("lifecycle.instance_id", instance.instance_id)

        logger.info("Provisioned book instance %s of book %s", instance.instance_id, book_id)
        self._notifier.dispatch(instance.instance_id, book_id, source="provisioning")
        return instance.instance_id
