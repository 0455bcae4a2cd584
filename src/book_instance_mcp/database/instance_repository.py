"""
Book instance repository for the Book Instance MCP Server.

Every lifecycle write here is a single conditional UPDATE keyed by
``instance_id``. The WHERE clause repeats the state the caller read, so
a write based on a stale read matches zero rows instead of clobbering a
newer state. Callers treat ``False`` from these methods as a lost race.

Read helpers join the catalog title, matching what the listing resources
show.
"""

import logging
import uuid
from datetime import date

from sqlalchemy import and_, delete, func, select, update

from ..database.schema import Book as BookDB
from ..database.schema import BookInstance as BookInstanceDB
from ..database.schema import InstanceStatusEnum
from ..database.session import mcp_safe_commit, mcp_safe_query
from ..models.instance import (
    BookInstance as BookInstanceModel,
)
from ..models.instance import (
    BookInstanceDetails,
    BookInstanceUpdate,
    InstanceStatus,
)
from .repository import BaseRepository, PaginatedResponse, PaginationParams

logger = logging.getLogger(__name__)


def _db_status(status: InstanceStatus) -> InstanceStatusEnum:
    return InstanceStatusEnum(status.value)


def _matches(column, expected):
    """SQL predicate for ``column == expected`` that also handles NULL."""
    return column.is_(None) if expected is None else column == expected


class BookInstanceRepository(BaseRepository[BookInstanceDB, BookInstanceModel]):
    """
    Repository for book instance state.

    - Read methods back the instance resources
    - Conditional writes back the lifecycle engine and the sweeper
    - ``insert`` backs provisioning
    """

    @property
    def model_class(self):
        return BookInstanceDB

    @property
    def response_schema(self):
        return BookInstanceModel

    def _to_response_model(self, db_obj: BookInstanceDB) -> BookInstanceModel:
        return BookInstanceModel(
            instance_id=db_obj.instance_id,
            book_id=db_obj.book_id,
            imprint=db_obj.imprint or "",
            status=InstanceStatus(db_obj.status.value),
            user_id=db_obj.user_id,
            available_by=db_obj.available_by,
            created_at=db_obj.created_at,
            updated_at=db_obj.updated_at,
        )

    def _to_details(self, db_obj: BookInstanceDB, title: str | None) -> BookInstanceDetails:
        return BookInstanceDetails(
            **self._to_response_model(db_obj).model_dump(),
            title=title,
        )

    def _details_query(self):
        return select(BookInstanceDB, BookDB.title).join(
            BookDB, BookDB.book_id == BookInstanceDB.book_id, isouter=True
        )

    # === Reads ===

    def find_by_id(self, instance_id: str) -> BookInstanceModel | None:
        """Point lookup of an instance's current state."""
        return self.get_by_id(instance_id)

    def find_details(self, instance_id: str) -> BookInstanceDetails | None:
        """Point lookup joined with the catalog title."""
        query = self._details_query().where(BookInstanceDB.instance_id == instance_id)
        row = mcp_safe_query(
            self.session,
            lambda s: s.execute(query).one_or_none(),
            "Failed to get book instance details",
        )
        if row is None:
            return None
        db_obj, title = row
        return self._to_details(db_obj, title)

    def list_instances(
        self,
        pagination: PaginationParams,
        status: InstanceStatus | None = None,
    ) -> PaginatedResponse[BookInstanceDetails]:
        """
        Page through instances, optionally filtered by status.

        Ordering is by creation time then id so pages are stable.
        """
        pagination.validate_params()

        conditions = []
        if status is not None:
            conditions.append(BookInstanceDB.status == _db_status(status))

        count_query = select(func.count()).select_from(BookInstanceDB)
        query = self._details_query()
        if conditions:
            count_query = count_query.where(and_(*conditions))
            query = query.where(and_(*conditions))

        total = (
            mcp_safe_query(
                self.session,
                lambda s: s.execute(count_query).scalar(),
                "Failed to count book instances",
            )
            or 0
        )

        query = (
            query.order_by(BookInstanceDB.created_at, BookInstanceDB.instance_id)
            .offset(pagination.offset)
            .limit(pagination.page_size)
        )
        rows = mcp_safe_query(
            self.session,
            lambda s: s.execute(query).all(),
            "Failed to list book instances",
        )

        items = [self._to_details(db_obj, title) for db_obj, title in rows]
        return PaginatedResponse[BookInstanceDetails].build(items, total, pagination)

    def find_by_status(self, status: InstanceStatus) -> list[BookInstanceModel]:
        """Filtered scan by status."""
        query = select(BookInstanceDB).where(BookInstanceDB.status == _db_status(status))
        results = mcp_safe_query(
            self.session,
            lambda s: s.execute(query).scalars().all(),
            f"Failed to scan {status.label} instances",
        )
        return [self._to_response_model(item) for item in results]

    def find_by_holder(self, user_id: str) -> list[BookInstanceDetails]:
        """Instances a reader currently holds or has reserved."""
        query = (
            self._details_query()
            .where(BookInstanceDB.user_id == user_id)
            .order_by(BookInstanceDB.available_by)
        )
        rows = mcp_safe_query(
            self.session,
            lambda s: s.execute(query).all(),
            "Failed to get instances held by reader",
        )
        return [self._to_details(db_obj, title) for db_obj, title in rows]

    def find_expired_reservation_ids(self, today: date) -> list[str]:
        """Ids of reserved instances whose reservation lapsed before ``today``."""
        query = (
            select(BookInstanceDB.instance_id)
            .where(
                and_(
                    BookInstanceDB.status == InstanceStatusEnum.RESERVED,
                    BookInstanceDB.available_by < today,
                )
            )
            .order_by(BookInstanceDB.available_by)
        )
        return list(
            mcp_safe_query(
                self.session,
                lambda s: s.execute(query).scalars().all(),
                "Failed to scan expired reservations",
            )
        )

    # === Writes ===

    def insert(self, book_id: str, imprint: str = "") -> BookInstanceModel:
        """Insert a fresh Available instance with a new UUID4 identifier."""
        db_obj = BookInstanceDB(
            instance_id=str(uuid.uuid4()),
            book_id=book_id,
            imprint=imprint,
            status=InstanceStatusEnum.AVAILABLE,
            user_id=None,
            available_by=None,
        )
        self.session.add(db_obj)
        mcp_safe_commit(self.session, "create book instance")
        self.session.refresh(db_obj)
        logger.debug("Inserted book instance %s for book %s", db_obj.instance_id, book_id)
        return self._to_response_model(db_obj)

    def update_fields(
        self,
        instance_id: str,
        *,
        expected_status: InstanceStatus,
        expected_user_id: str | None,
        status: InstanceStatus,
        user_id: str | None,
        available_by: date | None,
    ) -> bool:
        """
        Atomically replace the lifecycle fields if the row is still as read.

        Returns:
            True if the row was updated, False if it changed underneath us
        """
        statement = (
            update(BookInstanceDB)
            .where(
                and_(
                    BookInstanceDB.instance_id == instance_id,
                    BookInstanceDB.status == _db_status(expected_status),
                    _matches(BookInstanceDB.user_id, expected_user_id),
                )
            )
            .values(status=_db_status(status), user_id=user_id, available_by=available_by)
            .execution_options(synchronize_session=False)
        )
        result = mcp_safe_query(
            self.session,
            lambda s: s.execute(statement),
            "Failed to update book instance status",
        )
        mcp_safe_commit(self.session, "update book instance status")
        return result.rowcount == 1

    def revert_expired_reservation(self, instance_id: str, today: date) -> bool:
        """
        Return one lapsed reservation to Available.

        The row must still be Reserved and still expired at write time, so
        a copy loaned out a moment ago is never touched.
        """
        statement = (
            update(BookInstanceDB)
            .where(
                and_(
                    BookInstanceDB.instance_id == instance_id,
                    BookInstanceDB.status == InstanceStatusEnum.RESERVED,
                    BookInstanceDB.available_by < today,
                )
            )
            .values(status=InstanceStatusEnum.AVAILABLE, user_id=None, available_by=None)
            .execution_options(synchronize_session=False)
        )
        result = mcp_safe_query(
            self.session,
            lambda s: s.execute(statement),
            "Failed to revert expired reservation",
        )
        mcp_safe_commit(self.session, "revert expired reservation")
        return result.rowcount == 1

    def update_details(
        self, instance_id: str, data: BookInstanceUpdate
    ) -> BookInstanceModel | None:
        """Update catalog fields (book, imprint). Returns None if not found."""
        values = data.model_dump(exclude_unset=True, exclude_none=True)
        db_obj = self._get_db_object(instance_id)
        if db_obj is None:
            return None
        if not values:
            return self._to_response_model(db_obj)

        for field, value in values.items():
            setattr(db_obj, field, value)

        mcp_safe_commit(self.session, "update book instance")
        self.session.refresh(db_obj)
        return self._to_response_model(db_obj)

    def delete_if_status(self, instance_id: str, allowed: set[InstanceStatus]) -> bool:
        """Delete an instance only while its status is one of ``allowed``."""
        statement = (
            delete(BookInstanceDB)
            .where(
                and_(
                    BookInstanceDB.instance_id == instance_id,
                    BookInstanceDB.status.in_([_db_status(s) for s in allowed]),
                )
            )
            .execution_options(synchronize_session=False)
        )
        result = mcp_safe_query(
            self.session,
            lambda s: s.execute(statement),
            "Failed to delete book instance",
        )
        mcp_safe_commit(self.session, "delete book instance")
        return result.rowcount == 1
