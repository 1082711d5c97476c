# bookshelf/models.py
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Entity(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[int] = None


class Author(Entity):
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")


class Book(Entity):
    title: Optional[str] = None
    cover_text: Optional[str] = Field(default=None, alias="coverText")
    # Id of the owning author; None when the requested author did not resolve.
    author_id: Optional[int] = None


class AuthorPayload(BaseModel):
    """Request body accepted by POST/PUT /api/authors."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")


class BookPayload(BaseModel):
    """Request body accepted by POST/PUT /api/books.

    ``idAuthor`` is not part of this schema; it is read from the raw body by
    the book service.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: Optional[str] = None
    cover_text: Optional[str] = Field(default=None, alias="coverText")
