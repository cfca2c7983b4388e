"""
Typed records crossing the storage boundary.

ORM rows and snapshot rows are validated into these shapes before the
recommendation services see them; nothing downstream touches SQLAlchemy objects.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models import BorrowingStatus


class UserProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    affiliation: Optional[str] = None
    interests: List[str] = Field(default_factory=list)

    @field_validator("interests", mode="before")
    @classmethod
    def _dedupe_interests(cls, value):
        if not value:
            return []
        seen = []
        for interest in value:
            if interest and interest not in seen:
                seen.append(interest)
        return seen


class BorrowingRecord(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    user_id: str
    book_id: str
    status: BorrowingStatus
    borrowed_at: datetime
    category: Optional[str] = None  # Joined from the borrowed book for history queries


class CatalogItem(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    title: str
    author: Optional[str] = None
    category: str
    department: str
    available_copies: int = Field(ge=0)
    added_at: datetime


class SnapshotBook(BaseModel):
    """One row of the denormalized catalog snapshot (CSV export)."""
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    author: str = ""
    publisher: str = ""
    department: str
    copies: int = Field(default=0, ge=0)
