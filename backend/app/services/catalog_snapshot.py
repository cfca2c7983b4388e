"""
Denormalized catalog snapshot read from the library's CSV export.

The snapshot is independent of the database and may lag behind it. It backs the
dataset fallback only, so it is cached in-process and reloaded whenever the file
on disk changes.
"""
import csv
import io
import logging
import os
import threading
from pathlib import Path
from typing import List, Optional

from app.core.config import settings
from app.core.departments import resolve_department
from app.schemas.library import SnapshotBook

logger = logging.getLogger(__name__)


class SnapshotError(Exception):
    """Raised when the catalog snapshot file is missing or unreadable."""
    pass


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def _parse_copies(value: Optional[str]) -> int:
    try:
        parsed = int(_clean(value))
    except ValueError:
        return 0
    return parsed if parsed > 0 else 0


def parse_snapshot_csv(content: str) -> List[SnapshotBook]:
    """
    Parse the CSV export into SnapshotBook rows.

    Expected columns: title, author, publishercode, Department, Count.
    Rows without a title are skipped but still advance the row counter, so ids
    stay stable when a blank row is fixed later.
    """
    reader = csv.DictReader(io.StringIO(content))
    books: List[SnapshotBook] = []
    for index, record in enumerate(reader, start=1):
        title = _clean(record.get("title"))
        if not title:
            continue
        books.append(
            SnapshotBook(
                id=f"book-{index}",
                title=title,
                author=_clean(record.get("author")),
                publisher=_clean(record.get("publishercode")),
                department=resolve_department(record.get("Department")),
                copies=_parse_copies(record.get("Count")),
            )
        )
    return books


class CatalogSnapshotCache:
    """
    Read-through cache over the snapshot file.

    get() loads on first use and reloads when the file's mtime moves past the
    cached one. invalidate() forces the next get() to reload.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._books: Optional[List[SnapshotBook]] = None
        self._mtime: Optional[float] = None
        self._lock = threading.Lock()

    def _current_mtime(self) -> Optional[float]:
        try:
            return os.stat(self.path).st_mtime
        except OSError as e:
            logger.error("[catalog-snapshot] Failed to stat %s: %s", self.path, e)
            return None

    def _load(self) -> List[SnapshotBook]:
        try:
            content = self.path.read_text(encoding="utf-8-sig")
        except OSError as e:
            raise SnapshotError(f"Catalog snapshot {self.path} is missing or unreadable") from e
        books = parse_snapshot_csv(content)
        logger.info("[catalog-snapshot] Loaded %d books from %s", len(books), self.path)
        return books

    def is_fresh(self) -> bool:
        """True when a cached copy exists and the file hasn't changed since it was read."""
        if self._books is None:
            return False
        current = self._current_mtime()
        return current is None or (self._mtime is not None and current <= self._mtime)

    def get(self) -> List[SnapshotBook]:
        with self._lock:
            if self.is_fresh():
                return list(self._books)
            current = self._current_mtime()
            self._books = self._load()
            self._mtime = current
            return list(self._books)

    def invalidate(self) -> None:
        with self._lock:
            self._books = None
            self._mtime = None


_snapshot_cache: Optional[CatalogSnapshotCache] = None


def get_catalog_snapshot_cache() -> CatalogSnapshotCache:
    """Process-wide cache for settings.CATALOG_SNAPSHOT_PATH, created on first use."""
    global _snapshot_cache
    if _snapshot_cache is None:
        _snapshot_cache = CatalogSnapshotCache(Path(settings.CATALOG_SNAPSHOT_PATH))
    return _snapshot_cache
