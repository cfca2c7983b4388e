"""
Tiered candidate retrieval.

1. primary: available items matching the user's categories or department
2. broad: any available item, when the primary tier came up short
3. popular: top-up by id from the popular set, when still short

Tiers run one after another because each depends on what the previous ones
collected. Every tier honors the same exclusion set.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from app.schemas.library import CatalogItem
from app.services.library_store import ItemFilter, LibraryStore
from app.services.recommendation_common import (
    CANDIDATE_MULTIPLIER,
    POPULAR_TOPUP_MULTIPLIER,
    check_deadline,
    run_or_default,
)
from app.services.recommendation_signals import UserSignals
from app.utils.timing import Deadline

logger = logging.getLogger(__name__)


@dataclass
class CandidatePool:
    """Deduplicated candidates in first-seen order; the first tier to find an id wins."""
    exclude_ids: frozenset = frozenset()
    candidates: Dict[str, CatalogItem] = field(default_factory=dict)
    fallback_used: bool = False
    tiers_run: List[str] = field(default_factory=list)

    def merge(self, items: Iterable[CatalogItem]) -> int:
        added = 0
        for item in items:
            if item.id in self.exclude_ids or item.id in self.candidates:
                continue
            self.candidates[item.id] = item
            added += 1
        return added

    def __len__(self) -> int:
        return len(self.candidates)

    def items(self) -> List[CatalogItem]:
        return list(self.candidates.values())


def retrieve_candidates(
    store: LibraryStore,
    signals: UserSignals,
    popular_ids: List[str],
    limit: int,
    deadline: Optional[Deadline] = None,
) -> CandidatePool:
    deadline = deadline or Deadline()
    pool = CandidatePool(exclude_ids=signals.exclude_ids)
    cap = limit * CANDIDATE_MULTIPLIER

    # Tier 1: primary
    check_deadline(deadline, "primary candidate tier")
    primary = run_or_default(
        lambda: store.find_items(
            ItemFilter(
                exclude_ids=signals.exclude_ids,
                categories=signals.candidate_categories,
                department=signals.department,
                limit=cap,
            )
        ),
        "primary candidate tier",
        [],
    )
    pool.merge(primary)
    pool.tiers_run.append("primary")

    if len(pool) >= limit:
        return pool

    # Tier 2: broad fallback, no category/department filter
    pool.fallback_used = True
    check_deadline(deadline, "broad fallback tier")
    broad = run_or_default(
        lambda: store.find_items(ItemFilter(exclude_ids=signals.exclude_ids, limit=cap)),
        "broad fallback tier",
        [],
    )
    added = pool.merge(broad)
    pool.tiers_run.append("broad")
    logger.debug("broad fallback tier added %d candidates (pool=%d)", added, len(pool))

    # Tier 3: popularity top-up
    if len(pool) < limit and popular_ids:
        remaining = [
            item_id
            for item_id in popular_ids
            if item_id not in pool.candidates and item_id not in signals.exclude_ids
        ][: limit * POPULAR_TOPUP_MULTIPLIER]
        if remaining:
            check_deadline(deadline, "popularity top-up tier")
            popular_items = run_or_default(
                lambda: store.find_items_by_ids(remaining),
                "popularity top-up tier",
                [],
            )
            added = pool.merge(popular_items)
            pool.tiers_run.append("popular")
            logger.debug("popularity top-up added %d candidates (pool=%d)", added, len(pool))

    return pool
