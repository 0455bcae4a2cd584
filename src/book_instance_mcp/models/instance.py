"""
Book instance models for the Book Instance MCP Server.

A book instance is one physical copy of a catalog title. Its lifecycle
state is the triple (status, holder, available_by), and the three only
ever change together:

- Available / Maintenance: no holder, no date
- Loaned: holder is the reader, date is the due date
- Reserved: holder is the reader, date is the reservation expiry
"""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class InstanceStatus(str, Enum):
    """Lifecycle status of a book instance, keyed by its one-letter code."""

    AVAILABLE = "A"
    LOANED = "L"
    RESERVED = "R"
    MAINTENANCE = "M"

    @property
    def label(self) -> str:
        """Human-readable status name."""
        return self.name.capitalize()

    @property
    def requires_holder(self) -> bool:
        """Whether an instance in this status must carry a holder and date."""
        return self in HELD_STATUSES

    @classmethod
    def parse(cls, value: "InstanceStatus | str") -> "InstanceStatus":
        """Accept an enum member, a one-letter code or a status name.

        Raises:
            ValueError: If the value names no status
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            text = value.strip()
            for member in cls:
                if text == member.value or text.upper() == member.name:
                    return member
        raise ValueError(f"Unknown instance status: {value!r}")


HELD_STATUSES = frozenset({InstanceStatus.LOANED, InstanceStatus.RESERVED})


class BookInstance(BaseModel):
    """
    Represents one borrowable copy of a book.

    The model refuses any combination of fields that breaks the holder
    invariant, so an instance read back from storage is always coherent.
    """

    model_config = ConfigDict(from_attributes=True, use_enum_values=False)

    instance_id: str = Field(
        ...,
        description="Unique identifier of the copy (UUID4)",
        min_length=1,
        max_length=36,
        examples=["3f6c1f2e-8d5b-4a53-9f3c-1f0a6c2b7e11"],
    )

    book_id: str = Field(
        ...,
        description="Catalog entry this copy belongs to",
        min_length=1,
        max_length=50,
        examples=["book_gatsby01"],
    )

    imprint: str = Field(
        default="",
        description="Publisher imprint and edition details",
        max_length=1000,
        examples=["Scribner, 2004 paperback"],
    )

    status: InstanceStatus = Field(
        default=InstanceStatus.AVAILABLE,
        description="Current lifecycle status",
    )

    user_id: str | None = Field(
        default=None,
        description="Reader holding or reserving the copy",
    )

    available_by: date | None = Field(
        default=None,
        description="Due date (loaned) or reservation expiry (reserved)",
    )

    created_at: datetime | None = Field(default=None)
    updated_at: datetime | None = Field(default=None)

    @model_validator(mode="after")
    def validate_holder_invariant(self) -> "BookInstance":
        """Holder and date are set exactly when the copy is loaned or reserved."""
        held = self.status.requires_holder
        has_holder = self.user_id is not None
        has_date = self.available_by is not None

        if held and not (has_holder and has_date):
            raise ValueError(
                f"{self.status.label} instances require both a holder and an available_by date"
            )
        if not held and (has_holder or has_date):
            raise ValueError(
                f"{self.status.label} instances cannot carry a holder or an available_by date"
            )
        return self

    @property
    def is_held(self) -> bool:
        """Whether a reader currently holds or reserves this copy."""
        return self.status.requires_holder


class BookInstanceDetails(BookInstance):
    """A book instance joined with its catalog title for read views."""

    title: str | None = Field(default=None, description="Title of the catalog entry")


class BookInstanceUpdate(BaseModel):
    """Catalog-maintenance update. Status, holder and date are not accepted here."""

    model_config = ConfigDict(extra="forbid")

    book_id: str | None = Field(default=None, min_length=1, max_length=50)
    imprint: str | None = Field(default=None, max_length=1000)


class TransitionOutcome(BaseModel):
    """Result of an executed status transition."""

    instance_id: str
    book_id: str
    previous_status: InstanceStatus
    status: InstanceStatus
    user_id: str | None = None
    available_by: date | None = None

    @property
    def message(self) -> str:
        """Summary line for tool responses."""
        text = (
            f"Book instance {self.instance_id} moved from "
            f"{self.previous_status.label} to {self.status.label}"
        )
        if self.status == InstanceStatus.LOANED and self.available_by is not None:
            text += f", due {self.available_by.isoformat()}"
        return text + "."
