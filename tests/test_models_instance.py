"""Tests for the book instance Pydantic models."""

from datetime import date

import pytest
from pydantic import ValidationError

from book_instance_mcp.models import (
    BookInstance,
    BookInstanceDetails,
    BookInstanceUpdate,
    InstanceStatus,
    TransitionOutcome,
)


class TestInstanceStatus:
    """Status codes and parsing."""

    def test_codes(self):
        assert [s.value for s in InstanceStatus] == ["A", "L", "R", "M"]

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("A", InstanceStatus.AVAILABLE),
            (" L ", InstanceStatus.LOANED),
            ("reserved", InstanceStatus.RESERVED),
            ("MAINTENANCE", InstanceStatus.MAINTENANCE),
            (InstanceStatus.LOANED, InstanceStatus.LOANED),
        ],
    )
    def test_parse_accepts_codes_and_names(self, raw, expected):
        assert InstanceStatus.parse(raw) is expected

    @pytest.mark.parametrize("raw", ["X", "", "a", None, 3])
    def test_parse_rejects_unknown(self, raw):
        with pytest.raises(ValueError, match="Unknown instance status"):
            InstanceStatus.parse(raw)

    def test_requires_holder(self):
        assert InstanceStatus.LOANED.requires_holder
        assert InstanceStatus.RESERVED.requires_holder
        assert not InstanceStatus.AVAILABLE.requires_holder
        assert not InstanceStatus.MAINTENANCE.requires_holder


class TestBookInstanceModel:
    """The holder invariant is checked on every model."""

    def test_available_instance(self):
        instance = BookInstance(instance_id="i-1", book_id="book_1")
        assert instance.status == InstanceStatus.AVAILABLE
        assert instance.user_id is None
        assert instance.available_by is None
        assert instance.is_held is False

    def test_loaned_instance(self):
        instance = BookInstance(
            instance_id="i-1",
            book_id="book_1",
            status="L",
            user_id="user_1",
            available_by=date(2024, 1, 15),
        )
        assert instance.status == InstanceStatus.LOANED
        assert instance.is_held is True

    @pytest.mark.parametrize(
        "status,user_id,available_by",
        [
            ("L", None, date(2024, 1, 15)),
            ("L", "user_1", None),
            ("R", None, None),
            ("A", "user_1", None),
            ("M", None, date(2024, 1, 15)),
        ],
    )
    def test_invariant_violations_rejected(self, status, user_id, available_by):
        with pytest.raises(ValidationError, match="holder"):
            BookInstance(
                instance_id="i-1",
                book_id="book_1",
                status=status,
                user_id=user_id,
                available_by=available_by,
            )

    def test_details_carry_title(self):
        details = BookInstanceDetails(instance_id="i-1", book_id="book_1", title="1984")
        assert details.model_dump(mode="json")["title"] == "1984"
        assert details.model_dump(mode="json")["status"] == "A"


class TestBookInstanceUpdate:
    def test_only_catalog_fields_accepted(self):
        with pytest.raises(ValidationError):
            BookInstanceUpdate(status="L")

    def test_partial_update(self):
        update = BookInstanceUpdate(imprint="Penguin, 1990")
        assert update.model_dump(exclude_none=True) == {"imprint": "Penguin, 1990"}


class TestTransitionOutcome:
    def test_loan_message_includes_due_date(self):
        outcome = TransitionOutcome(
            instance_id="i-1",
            book_id="book_1",
            previous_status=InstanceStatus.AVAILABLE,
            status=InstanceStatus.LOANED,
            user_id="user_1",
            available_by=date(2024, 1, 15),
        )
        assert outcome.message == "Book instance i-1 moved from Available to Loaned, due 2024-01-15."

    def test_return_message(self):
        outcome = TransitionOutcome(
            instance_id="i-1",
            book_id="book_1",
            previous_status=InstanceStatus.LOANED,
            status=InstanceStatus.AVAILABLE,
        )
        assert outcome.message == "Book instance i-1 moved from Loaned to Available."
