"""Catalog book model: the title a book instance is a copy of."""

from pydantic import BaseModel, ConfigDict, Field


class Book(BaseModel):
    """A catalog entry as seen by the instance lifecycle."""

    model_config = ConfigDict(from_attributes=True)

    book_id: str = Field(
        ...,
        description="Catalog identifier",
        min_length=1,
        max_length=50,
        examples=["book_gatsby01"],
    )

    title: str = Field(
        ...,
        description="The title of the book",
        min_length=1,
        max_length=500,
        examples=["The Great Gatsby"],
    )
