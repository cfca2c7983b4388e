"""
Last-resort recommendations from the catalog snapshot.

Used only when the database path produced nothing. Matching is lexical
(interest text inside title/author) because the snapshot has no categories.
"""
import csv
import logging
from typing import Iterable, List, Optional

from app.schemas.library import SnapshotBook
from app.schemas.recommendation import ScoredRecommendation
from app.services.catalog_snapshot import CatalogSnapshotCache, SnapshotError
from app.services.recommendation_common import (
    DATASET_ID_PREFIX,
    DATASET_STOCK_THRESHOLD,
    REASON_DATASET_FEATURED,
    REASON_DATASET_STOCK,
    REASON_DEPARTMENT,
    UNKNOWN_AUTHOR,
    W_DATASET_DEPARTMENT,
    W_DATASET_INTEREST,
    W_DATASET_STOCK,
    interest_reason,
)

logger = logging.getLogger(__name__)


def _score_book(
    book: SnapshotBook,
    interests: List[str],
    department: Optional[str],
) -> ScoredRecommendation:
    reasons = {}
    score = 1
    matched_interest = None

    searchable = f"{book.title} {book.author}".lower()
    for interest in interests:
        token = interest.strip().lower()
        if token and token in searchable:
            score += W_DATASET_INTEREST
            reasons[interest_reason(interest)] = None
            if matched_interest is None:
                matched_interest = interest

    if department and book.department.lower() == department.lower():
        score += W_DATASET_DEPARTMENT
        reasons[REASON_DEPARTMENT] = None

    well_stocked = book.copies >= DATASET_STOCK_THRESHOLD
    if well_stocked:
        score += W_DATASET_STOCK
        reasons[REASON_DATASET_STOCK] = None

    return ScoredRecommendation(
        id=f"{DATASET_ID_PREFIX}{book.id}",
        title=book.title,
        author=book.author or UNKNOWN_AUTHOR,
        category=matched_interest or book.department,
        department=book.department,
        available_copies=max(book.copies, 1),
        score=score,
        reasons=list(reasons) or [REASON_DATASET_FEATURED],
        is_new_arrival=False,
        is_popular=well_stocked,
    )


def rank_snapshot_books(
    books: Iterable[SnapshotBook],
    interests: List[str],
    department: Optional[str],
    limit: int,
    exclude_ids: Iterable[str] = (),
) -> List[ScoredRecommendation]:
    """Score desc, copies desc, title asc. Fully deterministic for a given snapshot."""
    excluded = set(exclude_ids)
    scored = [
        (_score_book(book, interests, department), book.copies)
        for book in books
        if book.id not in excluded and f"{DATASET_ID_PREFIX}{book.id}" not in excluded
    ]
    scored.sort(key=lambda pair: (-pair[0].score, -pair[1], pair[0].title.casefold(), pair[0].title))
    return [rec for rec, _ in scored[:limit]]


def build_dataset_fallback(
    snapshot_cache: CatalogSnapshotCache,
    interests: List[str],
    department: Optional[str],
    limit: int,
    exclude_ids: Iterable[str] = (),
) -> List[ScoredRecommendation]:
    """
    Recommendations from the snapshot, or [] if it can't be read.

    Snapshot failures never reach the caller.
    """
    try:
        books = snapshot_cache.get()
        if not books:
            return []
        return rank_snapshot_books(books, interests, department, limit, exclude_ids)
    except (SnapshotError, OSError, csv.Error, ValueError) as e:
        logger.error("[dataset-fallback] Failed to load catalog snapshot: %s", e, exc_info=True)
        return []
