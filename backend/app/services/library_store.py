"""
Storage collaborator for the recommendation services.

LibraryStore is the read-only port the recommendation pipeline depends on.
SqlAlchemyLibraryStore implements it over the ORM models; every read opens its
own short-lived session so reads can be issued from worker threads.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, FrozenSet, List, Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.models import Book, Borrowing, BorrowingStatus, User
from app.schemas.library import BorrowingRecord, CatalogItem, UserProfile


@dataclass(frozen=True)
class BorrowingFilter:
    """Borrowing query: all fields optional, results newest first."""
    user_id: Optional[str] = None
    statuses: Optional[FrozenSet[BorrowingStatus]] = None
    since: Optional[datetime] = None
    limit: Optional[int] = None


@dataclass(frozen=True)
class ItemFilter:
    """
    Query over items with copies on the shelf, newest arrivals first.

    ``categories`` and ``department`` are OR-ed together; when both are empty
    no category/department restriction applies.
    """
    exclude_ids: FrozenSet[str] = field(default_factory=frozenset)
    categories: Sequence[str] = ()
    department: Optional[str] = None
    limit: Optional[int] = None


class LibraryStore(ABC):
    """Read-only access to users, borrowings and catalog items."""

    @abstractmethod
    def find_user(self, user_id: str) -> Optional[UserProfile]:
        ...

    @abstractmethod
    def find_borrowings(self, filters: BorrowingFilter) -> List[BorrowingRecord]:
        ...

    @abstractmethod
    def find_items(self, filters: ItemFilter) -> List[CatalogItem]:
        ...

    @abstractmethod
    def find_items_by_ids(self, item_ids: Sequence[str]) -> List[CatalogItem]:
        """Return the items that exist, in the order of ``item_ids``."""
        ...


def resolve_affiliation(user: User) -> Optional[str]:
    """Branch wins over department; blank values count as missing."""
    for value in (user.branch, user.department):
        if value and value.strip():
            return value.strip()
    return None


class SqlAlchemyLibraryStore(LibraryStore):
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def find_user(self, user_id: str) -> Optional[UserProfile]:
        with self._session_factory() as db:
            user = db.query(User).filter(User.id == user_id).one_or_none()
            if user is None:
                return None
            interests = [
                interest.strip()
                for interest in (user.interests or [])
                if isinstance(interest, str) and interest.strip()
            ]
            return UserProfile(
                id=user.id,
                affiliation=resolve_affiliation(user),
                interests=interests,
            )

    def find_borrowings(self, filters: BorrowingFilter) -> List[BorrowingRecord]:
        with self._session_factory() as db:
            query = (
                db.query(
                    Borrowing.user_id,
                    Borrowing.book_id,
                    Borrowing.status,
                    Borrowing.borrow_date,
                    Book.category,
                )
                .outerjoin(Book, Book.id == Borrowing.book_id)
            )
            if filters.user_id is not None:
                query = query.filter(Borrowing.user_id == filters.user_id)
            if filters.statuses:
                query = query.filter(Borrowing.status.in_(list(filters.statuses)))
            if filters.since is not None:
                query = query.filter(Borrowing.borrow_date >= filters.since)
            query = query.order_by(Borrowing.borrow_date.desc())
            if filters.limit is not None:
                query = query.limit(filters.limit)

            return [
                BorrowingRecord(
                    user_id=row.user_id,
                    book_id=row.book_id,
                    status=row.status,
                    borrowed_at=row.borrow_date,
                    category=row.category,
                )
                for row in query.all()
            ]

    def find_items(self, filters: ItemFilter) -> List[CatalogItem]:
        with self._session_factory() as db:
            query = db.query(Book).filter(Book.available_copies > 0)
            if filters.exclude_ids:
                query = query.filter(Book.id.notin_(list(filters.exclude_ids)))

            or_clauses = []
            if filters.categories:
                or_clauses.append(Book.category.in_(list(filters.categories)))
            if filters.department:
                or_clauses.append(Book.department == filters.department)
            if or_clauses:
                query = query.filter(or_(*or_clauses))

            query = query.order_by(Book.added_at.desc())
            if filters.limit is not None:
                query = query.limit(filters.limit)

            return [CatalogItem.model_validate(book) for book in query.all()]

    def find_items_by_ids(self, item_ids: Sequence[str]) -> List[CatalogItem]:
        if not item_ids:
            return []
        with self._session_factory() as db:
            books = db.query(Book).filter(Book.id.in_(list(item_ids))).all()
            by_id = {book.id: CatalogItem.model_validate(book) for book in books}
        return [by_id[item_id] for item_id in item_ids if item_id in by_id]
