"""Pydantic schemas for data validation.

These schemas describe books, the user's shelf entries, reading sessions
and the profile, and validate data on its way into the database.
"""

import json
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..utils import snap_rating

# Alias for fields named "date"
DateType = date


class BookStatus(str, Enum):
    """Shelf status of a book. Any status may follow any other."""

    READING = "reading"
    FINISHED = "finished"
    WANT_TO_READ = "want_to_read"  # TBR
    DNF = "dnf"  # Did not finish


def _normalize_rating(v) -> Optional[float]:
    """Snap a rating to quarter stars; 0 or empty means unrated."""
    if v is None or v == "":
        return None
    v = float(v)
    if v == 0:
        return None
    return snap_rating(v)


# ============================================================================
# Book Schemas
# ============================================================================


class BookBase(BaseModel):
    """Shared book metadata fields."""

    title: str = Field(..., min_length=1, description="Book title")
    author: str = Field(..., min_length=1, description="Primary author")
    cover_url: Optional[str] = None
    total_pages: Optional[int] = Field(None, ge=0)
    genres: list[str] = Field(default_factory=list)
    published_year: Optional[int] = None
    isbn: Optional[str] = Field(None, max_length=17)
    description: Optional[str] = None
    ol_id: Optional[str] = Field(None, description="Open Library work ID, e.g. OL45883W")

    @field_validator("genres", mode="before")
    @classmethod
    def parse_genres(cls, v) -> list[str]:
        """Accept the JSON text stored in the database as well as lists."""
        if v is None:
            return []
        if isinstance(v, str):
            return json.loads(v) if v else []
        return list(v)


class BookCreate(BookBase):
    """Schema for creating a new book."""

    pass


class BookUpdate(BaseModel):
    """Schema for updating an existing book. All fields optional."""

    title: Optional[str] = Field(None, min_length=1)
    author: Optional[str] = Field(None, min_length=1)
    cover_url: Optional[str] = None
    total_pages: Optional[int] = Field(None, ge=0)
    genres: Optional[list[str]] = None
    published_year: Optional[int] = None
    isbn: Optional[str] = None
    description: Optional[str] = None
    ol_id: Optional[str] = None


class BookResponse(BookBase):
    """Schema for book responses (includes DB-generated fields)."""

    id: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ============================================================================
# User Book Schemas
# ============================================================================


class UserBookBase(BaseModel):
    """A book on the user's shelf."""

    book_id: str
    status: BookStatus = BookStatus.WANT_TO_READ
    current_page: int = Field(0, ge=0)
    start_date: Optional[date] = None
    finish_date: Optional[date] = None
    rating: Optional[float] = Field(None, ge=0, le=5, description="0-5 in quarter steps")
    review: Optional[str] = None
    goodreads_id: Optional[str] = None

    @field_validator("rating", mode="before")
    @classmethod
    def normalize_rating(cls, v) -> Optional[float]:
        return _normalize_rating(v)


class UserBookCreate(UserBookBase):
    """Schema for putting a book on the shelf."""

    pass


class UserBookUpdate(BaseModel):
    """Schema for updating a shelf entry. All fields optional."""

    status: Optional[BookStatus] = None
    current_page: Optional[int] = Field(None, ge=0)
    start_date: Optional[date] = None
    finish_date: Optional[date] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    review: Optional[str] = None
    goodreads_id: Optional[str] = None

    @field_validator("rating", mode="before")
    @classmethod
    def normalize_rating(cls, v) -> Optional[float]:
        return _normalize_rating(v)


class UserBookResponse(UserBookBase):
    """Schema for shelf entry responses."""

    id: str
    added_at: datetime

    model_config = {"from_attributes": True}


# ============================================================================
# Reading Session Schemas
# ============================================================================


class ReadingSessionBase(BaseModel):
    """Base reading session fields."""

    user_book_id: str
    date: date
    duration_seconds: int = Field(0, ge=0)
    pages_read: int = Field(0, ge=0)
    start_page: Optional[int] = Field(None, ge=0)
    end_page: Optional[int] = Field(None, ge=0)
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None


class ReadingSessionCreate(ReadingSessionBase):
    """Schema for creating a reading session."""

    pass


class ReadingSessionUpdate(BaseModel):
    """Editable session fields. Identity and book never change."""

    date: Optional[DateType] = None
    duration_seconds: Optional[int] = Field(None, ge=0)
    pages_read: Optional[int] = Field(None, ge=0)
    start_page: Optional[int] = Field(None, ge=0)
    end_page: Optional[int] = Field(None, ge=0)


class ReadingSessionResponse(ReadingSessionBase):
    """Schema for reading session responses."""

    id: str
    created_at: datetime

    model_config = {"from_attributes": True}


# ============================================================================
# Profile Schemas
# ============================================================================


class ProfileUpdate(BaseModel):
    """Schema for updating the profile."""

    username: Optional[str] = None
    yearly_goal: Optional[int] = Field(None, ge=1, le=1000)


class ProfileResponse(BaseModel):
    """Schema for profile responses."""

    id: str
    username: Optional[str] = None
    yearly_goal: int = 50

    model_config = {"from_attributes": True}
