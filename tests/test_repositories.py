"""Tests for the repository layer.

These tests verify:
1. Conditional lifecycle writes only apply to the state that was read
2. Expired reservation scans and reverts
3. Listings, pagination and the title join
4. Policy reads always hit the database
"""

from datetime import date, timedelta

import pytest

from book_instance_mcp.database import (
    BookInstanceRepository,
    BookRepository,
    DuplicateError,
    NotFoundError,
    PaginationParams,
    PolicyRepository,
)
from book_instance_mcp.models import Book, BookInstanceUpdate, InstanceStatus

TODAY = date(2024, 1, 1)


class TestBookInstanceRepository:
    """Instance reads and conditional writes."""

    def test_insert_creates_available_instance(self, library):
        repo = BookInstanceRepository(library)
        instance = repo.insert("book_gatsby01", "Scribner, 2004")

        assert len(instance.instance_id) == 36
        assert instance.status == InstanceStatus.AVAILABLE
        assert instance.user_id is None
        assert instance.available_by is None
        assert instance.imprint == "Scribner, 2004"

    def test_insert_generates_unique_ids(self, library):
        repo = BookInstanceRepository(library)
        ids = {repo.insert("book_gatsby01").instance_id for _ in range(5)}
        assert len(ids) == 5

    def test_find_by_id_missing(self, library):
        assert BookInstanceRepository(library).find_by_id("nope") is None

    def test_update_fields_applies_when_state_matches(self, make_instance, fetch, library):
        instance_id = make_instance("A")
        repo = BookInstanceRepository(library)

        written = repo.update_fields(
            instance_id,
            expected_status=InstanceStatus.AVAILABLE,
            expected_user_id=None,
            status=InstanceStatus.LOANED,
            user_id="user_alice",
            available_by=TODAY + timedelta(days=14),
        )

        assert written is True
        row = fetch(instance_id)
        assert row.status.value == "L"
        assert row.user_id == "user_alice"
        assert row.available_by == date(2024, 1, 15)

    def test_update_fields_refuses_stale_status(self, make_instance, fetch, library):
        instance_id = make_instance("M")
        repo = BookInstanceRepository(library)

        written = repo.update_fields(
            instance_id,
            expected_status=InstanceStatus.AVAILABLE,
            expected_user_id=None,
            status=InstanceStatus.LOANED,
            user_id="user_alice",
            available_by=TODAY,
        )

        assert written is False
        assert fetch(instance_id).status.value == "M"

    def test_update_fields_refuses_stale_holder(self, make_instance, fetch, library):
        instance_id = make_instance("R", user_id="user_bob")
        repo = BookInstanceRepository(library)

        written = repo.update_fields(
            instance_id,
            expected_status=InstanceStatus.RESERVED,
            expected_user_id="user_alice",
            status=InstanceStatus.AVAILABLE,
            user_id=None,
            available_by=None,
        )

        assert written is False
        assert fetch(instance_id).user_id == "user_bob"

    def test_find_expired_reservation_ids(self, make_instance, library):
        lapsed = make_instance("R", available_by=TODAY - timedelta(days=1))
        make_instance("R", available_by=TODAY)
        make_instance("R", available_by=TODAY + timedelta(days=2))
        make_instance("L", available_by=TODAY - timedelta(days=5))

        assert BookInstanceRepository(library).find_expired_reservation_ids(TODAY) == [lapsed]

    def test_revert_expired_reservation(self, make_instance, fetch, library):
        lapsed = make_instance("R", available_by=TODAY - timedelta(days=1))
        repo = BookInstanceRepository(library)

        assert repo.revert_expired_reservation(lapsed, TODAY) is True
        row = fetch(lapsed)
        assert row.status.value == "A"
        assert row.user_id is None
        assert row.available_by is None

        assert repo.revert_expired_reservation(lapsed, TODAY) is False

    def test_revert_leaves_loaned_copy_alone(self, make_instance, fetch, library):
        loaned = make_instance("L", available_by=TODAY - timedelta(days=1))
        assert BookInstanceRepository(library).revert_expired_reservation(loaned, TODAY) is False
        assert fetch(loaned).status.value == "L"

    def test_list_instances_paginates_with_titles(self, make_instance, library):
        for _ in range(3):
            make_instance("A")
        make_instance("M", book_id="book_orwell84")
        repo = BookInstanceRepository(library)

        page = repo.list_instances(PaginationParams(page=1, page_size=3))
        assert page.total == 4
        assert len(page.items) == 3
        assert page.has_next is True
        assert page.total_pages == 2

        second = repo.list_instances(PaginationParams(page=2, page_size=3))
        assert [i.title for i in second.items] == ["1984"]
        assert second.has_previous is True

    def test_list_instances_filters_status(self, make_instance, library):
        make_instance("A")
        loaned = make_instance("L")
        repo = BookInstanceRepository(library)

        page = repo.list_instances(PaginationParams(), status=InstanceStatus.LOANED)
        assert [i.instance_id for i in page.items] == [loaned]
        assert [i.instance_id for i in repo.find_by_status(InstanceStatus.LOANED)] == [loaned]

    def test_find_by_holder(self, make_instance, library):
        mine = make_instance("L", user_id="user_alice")
        reserved = make_instance("R", user_id="user_alice", available_by=TODAY + timedelta(days=1))
        make_instance("L", user_id="user_bob")

        held = BookInstanceRepository(library).find_by_holder("user_alice")
        assert {i.instance_id for i in held} == {mine, reserved}
        assert all(i.title == "The Great Gatsby" for i in held)

    def test_update_details(self, make_instance, library):
        instance_id = make_instance("L")
        repo = BookInstanceRepository(library)

        updated = repo.update_details(
            instance_id, BookInstanceUpdate(book_id="book_orwell84", imprint="Secker, 1949")
        )

        assert updated.book_id == "book_orwell84"
        assert updated.imprint == "Secker, 1949"
        assert updated.status == InstanceStatus.LOANED
        assert repo.update_details("missing", BookInstanceUpdate(imprint="x")) is None

    def test_delete_if_status(self, make_instance, fetch, library):
        available = make_instance("A")
        loaned = make_instance("L")
        repo = BookInstanceRepository(library)
        allowed = {InstanceStatus.AVAILABLE, InstanceStatus.MAINTENANCE}

        assert repo.delete_if_status(loaned, allowed) is False
        assert fetch(loaned) is not None
        assert repo.delete_if_status(available, allowed) is True
        assert fetch(available) is None


class TestPolicyRepository:
    def test_get_policy_value(self, library):
        assert PolicyRepository(library).get_policy_value("MaxLoanDuration") == 14

    def test_missing_policy(self, library):
        with pytest.raises(NotFoundError):
            PolicyRepository(library).get_policy_value("MaxRenewals")

    def test_set_policy_value_is_visible_immediately(self, library, session_factory):
        PolicyRepository(library).set_policy_value("MaxLoanDuration", 21)

        with session_factory() as other:
            assert PolicyRepository(other).get_policy_value("MaxLoanDuration") == 21


class TestBookRepository:
    def test_book_exists(self, library):
        repo = BookRepository(library)
        assert repo.book_exists("book_gatsby01") is True
        assert repo.book_exists("book_missing") is False

    def test_create_duplicate(self, library, session_factory):
        BookRepository(library).create(Book(book_id="book_new", title="New Book"))

        with session_factory() as other, pytest.raises(DuplicateError):
            BookRepository(other).create(Book(book_id="book_new", title="Again"))
