"""
SQLAlchemy database schema for the Book Instance MCP Server.

Three tables back the lifecycle core:

1. ``books`` - the catalog titles an instance can belong to
2. ``book_instances`` - one row per physical copy, carrying its lifecycle state
3. ``library_policies`` - named numeric policies such as ``MaxLoanDuration``

The holder/due-date invariant is enforced by a CHECK constraint on
``book_instances`` so an inconsistent row can never be committed, no
matter which code path writes it.
"""

import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

# Base class for all SQLAlchemy models
Base = declarative_base()


class InstanceStatusEnum(str, enum.Enum):
    """Database enum for book instance status (stored as one-letter codes)."""

    AVAILABLE = "A"
    LOANED = "L"
    RESERVED = "R"
    MAINTENANCE = "M"


class Book(Base):
    """
    Books table - the catalog entries instances are copies of.

    The catalog is owned elsewhere; this service only needs to know a
    title exists and what it is called.
    """

    __tablename__ = "books"

    book_id = Column(String(50), primary_key=True)
    title = Column(String(500), nullable=False, index=True)

    created_at = Column(DateTime, nullable=False, default=func.now())

    instances = relationship("BookInstance", back_populates="book")


class BookInstance(Base):
    """
    Book instances table - one row per borrowable copy.

    MCP Usage:
    - Resource: library://instances/list, library://instances/{instance_id}
    - Tools: update_instance_status, create_book_instance modify this table
    """

    __tablename__ = "book_instances"

    instance_id = Column(String(36), primary_key=True)
    book_id = Column(String(50), ForeignKey("books.book_id"), nullable=False)
    imprint = Column(Text, nullable=False, default="")
    status = Column(
        Enum(
            InstanceStatusEnum,
            values_callable=lambda e: [member.value for member in e],
            native_enum=False,
            length=1,
            validate_strings=True,
        ),
        nullable=False,
        default=InstanceStatusEnum.AVAILABLE,
    )
    # Holder of a loaned or reserved copy
    user_id = Column(String(50), nullable=True)
    # Due date (loaned) or reservation expiry (reserved)
    available_by = Column(Date, nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    book = relationship("Book", back_populates="instances")

    __table_args__ = (
        Index("idx_instance_book", "book_id"),
        Index("idx_instance_status", "status"),
        Index("idx_instance_user", "user_id"),
        Index("idx_instance_status_available_by", "status", "available_by"),
        CheckConstraint(
            "(status IN ('L', 'R') AND user_id IS NOT NULL AND available_by IS NOT NULL)"
            " OR (status IN ('A', 'M') AND user_id IS NULL AND available_by IS NULL)",
            name="check_holder_matches_status",
        ),
    )


class LibraryPolicy(Base):
    """Library policies table - administratively configured numeric parameters."""

    __tablename__ = "library_policies"

    name = Column("property", String(100), primary_key=True)
    value = Column(Integer, nullable=False)
    description = Column(Text, nullable=True)

    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())
