"""Pytest configuration for backend tests."""
import sys
import os
import tempfile
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional, Sequence

import pytest

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Tests never touch the configured DATABASE_URL. TEST_DATABASE_URL wins if set,
# otherwise a throwaway SQLite file is used. This must run before app imports.
_test_db_dir = Path(tempfile.mkdtemp(prefix="shelfwise-tests-"))
os.environ["DATABASE_URL"] = os.getenv("TEST_DATABASE_URL", f"sqlite:///{_test_db_dir / 'test.db'}")
os.environ["DEBUG"] = "false"

from app.database import Base, engine as app_engine, SessionLocal  # noqa: E402
import app.models  # noqa: E402,F401
from app.models import BorrowingStatus  # noqa: E402
from app.schemas.library import BorrowingRecord, CatalogItem, UserProfile  # noqa: E402
from app.services.library_store import (  # noqa: E402
    BorrowingFilter,
    ItemFilter,
    LibraryStore,
    SqlAlchemyLibraryStore,
)

# Fixed evaluation time so new-arrival and popularity windows are stable
NOW = datetime(2026, 10, 1, 12, 0, 0)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture(scope="function")
def session_factory():
    """
    Session factory bound to a freshly created schema.

    Tables are dropped after each test for isolation. The store opens its own
    sessions (possibly on worker threads), so a rolled-back outer transaction
    would not be visible to it.
    """
    Base.metadata.create_all(bind=app_engine)
    yield SessionLocal
    Base.metadata.drop_all(bind=app_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def sql_store(session_factory) -> SqlAlchemyLibraryStore:
    return SqlAlchemyLibraryStore(session_factory)


class FakeLibraryStore(LibraryStore):
    """
    In-memory LibraryStore with the same filter semantics as the SQL adapter.

    ``calls`` records (method, argument) pairs so tests can assert which tiers ran.
    """

    def __init__(self):
        self.users = {}
        self.borrowings: List[BorrowingRecord] = []
        self.items: List[CatalogItem] = []
        self.calls = []

    def add_user(self, user_id: str, interests: Sequence[str] = (), affiliation: Optional[str] = None) -> UserProfile:
        profile = UserProfile(id=user_id, interests=list(interests), affiliation=affiliation)
        self.users[user_id] = profile
        return profile

    def add_item(
        self,
        item_id: str,
        category: str = "General",
        department: str = "H & AS",
        available_copies: int = 1,
        added_at: datetime = NOW - timedelta(days=365),
        title: Optional[str] = None,
        author: Optional[str] = "Some Author",
    ) -> CatalogItem:
        item = CatalogItem(
            id=item_id,
            title=title or f"Title {item_id}",
            author=author,
            category=category,
            department=department,
            available_copies=available_copies,
            added_at=added_at,
        )
        self.items.append(item)
        return item

    def add_borrowing(
        self,
        user_id: str,
        book_id: str,
        status: BorrowingStatus = BorrowingStatus.RETURNED,
        borrowed_at: datetime = NOW - timedelta(days=5),
    ) -> BorrowingRecord:
        category = next((item.category for item in self.items if item.id == book_id), None)
        record = BorrowingRecord(
            user_id=user_id,
            book_id=book_id,
            status=status,
            borrowed_at=borrowed_at,
            category=category,
        )
        self.borrowings.append(record)
        return record

    def find_user(self, user_id):
        self.calls.append(("find_user", user_id))
        return self.users.get(user_id)

    def find_borrowings(self, filters: BorrowingFilter):
        self.calls.append(("find_borrowings", filters))
        records = [
            record for record in self.borrowings
            if (filters.user_id is None or record.user_id == filters.user_id)
            and (not filters.statuses or record.status in filters.statuses)
            and (filters.since is None or record.borrowed_at >= filters.since)
        ]
        records.sort(key=lambda record: record.borrowed_at, reverse=True)
        return records if filters.limit is None else records[: filters.limit]

    def find_items(self, filters: ItemFilter):
        self.calls.append(("find_items", filters))
        items = [
            item for item in self.items
            if item.available_copies > 0
            and item.id not in filters.exclude_ids
        ]
        if filters.categories or filters.department:
            items = [
                item for item in items
                if item.category in filters.categories
                or (filters.department and item.department == filters.department)
            ]
        items.sort(key=lambda item: item.added_at, reverse=True)
        return items if filters.limit is None else items[: filters.limit]

    def find_items_by_ids(self, item_ids):
        self.calls.append(("find_items_by_ids", list(item_ids)))
        by_id = {item.id: item for item in self.items}
        return [by_id[item_id] for item_id in item_ids if item_id in by_id]

    def item_queries(self) -> List[ItemFilter]:
        return [arg for name, arg in self.calls if name == "find_items"]


@pytest.fixture
def fake_store() -> FakeLibraryStore:
    return FakeLibraryStore()


SNAPSHOT_HEADER = "title,author,publishercode,Department,Count\n"


@pytest.fixture
def write_snapshot(tmp_path):
    """Write CSV rows (without header) to a snapshot file and return its path."""
    def _write(rows: str, name: str = "Books Dataset.csv") -> Path:
        path = tmp_path / name
        path.write_text(SNAPSHOT_HEADER + rows, encoding="utf-8")
        return path
    return _write
