"""
Personalization signals: what the user asked for, what they actually borrow,
where they belong, what they already hold, and what everyone else is borrowing.
"""
import logging
from collections import Counter
from concurrent.futures import Executor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import FrozenSet, Iterable, List, Optional

from app.models import ACTIVE_BORROWING_STATUSES
from app.schemas.library import BorrowingRecord, UserProfile
from app.services.library_store import BorrowingFilter, LibraryStore
from app.services.recommendation_common import (
    HISTORY_SAMPLE_SIZE,
    MIN_DERIVED_CATEGORY_COUNT,
    POPULAR_LOOKBACK_DAYS,
    POPULAR_SAMPLE_SIZE,
    await_or_default,
    await_result,
)
from app.utils.timing import Deadline

logger = logging.getLogger(__name__)


@dataclass
class UserSignals:
    """Inputs driving personalization for one recommendation call."""
    exclude_ids: FrozenSet[str] = frozenset()
    explicit_interests: List[str] = field(default_factory=list)
    derived_categories: List[str] = field(default_factory=list)
    department: Optional[str] = None

    @property
    def candidate_categories(self) -> List[str]:
        """Explicit interests then derived categories, without repeats."""
        return list(dict.fromkeys([*self.explicit_interests, *self.derived_categories]))


def build_exclude_set(
    exclude_ids: Optional[Iterable[str]],
    active_borrowings: Iterable[BorrowingRecord],
) -> FrozenSet[str]:
    excluded = {item_id for item_id in (exclude_ids or []) if item_id}
    excluded.update(record.book_id for record in active_borrowings if record.book_id)
    return frozenset(excluded)


def derive_top_categories(history: Iterable[BorrowingRecord]) -> List[str]:
    """
    Categories seen at least twice in the sampled history, most frequent first.

    Counter keeps first-seen order and sorted() is stable, so equal counts stay
    in history order (most recent borrowing first).
    """
    counts = Counter(
        record.category.strip()
        for record in history
        if record.category and record.category.strip()
    )
    frequent = [(category, count) for category, count in counts.items() if count >= MIN_DERIVED_CATEGORY_COUNT]
    return [category for category, _ in sorted(frequent, key=lambda pair: pair[1], reverse=True)]


def collect_signals(
    store: LibraryStore,
    user: UserProfile,
    exclude_ids: Optional[Iterable[str]],
    executor: Executor,
    deadline: Optional[Deadline] = None,
) -> UserSignals:
    """
    Gather exclusions, history-derived categories, interests and department.

    The active-borrowing and history reads run concurrently. A failed history
    read is logged and treated as empty. A failed active-borrowing read
    propagates, since held items could otherwise be recommended.
    """
    deadline = deadline or Deadline()

    active_future = executor.submit(
        store.find_borrowings,
        BorrowingFilter(user_id=user.id, statuses=ACTIVE_BORROWING_STATUSES),
    )
    history_future = executor.submit(
        store.find_borrowings,
        BorrowingFilter(user_id=user.id, limit=HISTORY_SAMPLE_SIZE),
    )

    active_borrowings = await_result(active_future, deadline, "active borrowings read")
    history = await_or_default(history_future, deadline, "borrowing history read", [])

    signals = UserSignals(
        exclude_ids=build_exclude_set(exclude_ids, active_borrowings),
        explicit_interests=list(user.interests),
        derived_categories=derive_top_categories(history),
        department=user.affiliation,
    )
    logger.debug(
        "user=%s signals: interests=%d derived=%s department=%s excluded=%d",
        user.id,
        len(signals.explicit_interests),
        signals.derived_categories,
        signals.department,
        len(signals.exclude_ids),
    )
    return signals


def rank_popular_items(store: LibraryStore, now: datetime) -> List[str]:
    """
    Item ids by descending borrow count over a recent, bounded sample.

    Only the newest POPULAR_SAMPLE_SIZE borrowings within the lookback window
    are counted. Ties keep sample order; no secondary key is applied.
    """
    sample = store.find_borrowings(
        BorrowingFilter(
            since=now - timedelta(days=POPULAR_LOOKBACK_DAYS),
            limit=POPULAR_SAMPLE_SIZE,
        )
    )
    counts = Counter(record.book_id for record in sample if record.book_id)
    return [item_id for item_id, _ in sorted(counts.items(), key=lambda pair: pair[1], reverse=True)]
