"""
Personalized library recommendations.

Pipeline for one call:
    profile read  ──┐ popularity ranking runs alongside from the start
    signals (active borrowings + history, concurrent)
    candidate tiers (primary → broad → popular, sequential)
    multi-signal scoring → rank → truncate
    dataset fallback from the catalog snapshot if nothing survived

The engine keeps no state between calls. A missing user is not an error: it
yields an empty result flagged as fallback. A failed profile or active-borrowing
read propagates, as does an exceeded deadline.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Iterable, Optional

from app.core.config import settings
from app.schemas.recommendation import RecommendationContext, RecommendationResult
from app.services.candidate_retriever import retrieve_candidates
from app.services.catalog_snapshot import CatalogSnapshotCache, get_catalog_snapshot_cache
from app.services.dataset_bridge import build_dataset_fallback
from app.services.library_store import LibraryStore
from app.services.recommendation_common import (
    DEFAULT_LIMIT,
    POPULAR_TOP_N,
    RecommendationTimeoutError,
    await_or_default,
    await_result,
    check_deadline,
)
from app.services.recommendation_scoring import rank_recommendations, score_candidates
from app.services.recommendation_signals import collect_signals, rank_popular_items
from app.utils.timing import Deadline, log_elapsed, now_ms, utcnow

logger = logging.getLogger(__name__)

__all__ = ["recommend", "RecommendationTimeoutError"]


def _empty_result() -> RecommendationResult:
    return RecommendationResult(items=[], context=RecommendationContext(fallback_used=True))


def recommend(
    store: LibraryStore,
    user_id: str,
    limit: int = DEFAULT_LIMIT,
    exclude_ids: Optional[Iterable[str]] = None,
    snapshot_cache: Optional[CatalogSnapshotCache] = None,
    now: Optional[datetime] = None,
    timeout: Optional[float] = None,
) -> RecommendationResult:
    """
    Return up to ``limit`` scored recommendations for ``user_id``.

    Args:
        store: Storage collaborator
        user_id: User to personalize for
        limit: Maximum number of items, must be >= 1
        exclude_ids: Extra item ids that must not be recommended
        snapshot_cache: Catalog snapshot for the dataset fallback
            (defaults to the process-wide cache)
        now: Evaluation time, naive UTC (defaults to the current time)
        timeout: Deadline in seconds shared by every read of this call

    Raises:
        ValueError: limit < 1
        RecommendationTimeoutError: the deadline ran out
    """
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")

    now = now or utcnow()
    deadline = Deadline(timeout)
    exclude_ids = list(exclude_ids or [])
    t0 = now_ms()
    t = t0

    executor = ThreadPoolExecutor(max_workers=settings.RECS_MAX_WORKERS, thread_name_prefix="recs")
    try:
        popular_future = executor.submit(rank_popular_items, store, now)
        profile_future = executor.submit(store.find_user, user_id)

        user = await_result(profile_future, deadline, "user profile read")
        if settings.DEBUG:
            t = log_elapsed(t, f"user={user_id} phase=load_profile", logger.debug)
        if user is None:
            logger.info("Unknown user %s: returning empty recommendations", user_id)
            popular_future.cancel()
            return _empty_result()

        signals = collect_signals(store, user, exclude_ids, executor, deadline)
        popular_ids = await_or_default(popular_future, deadline, "popularity ranking", [])[:POPULAR_TOP_N]
        if settings.DEBUG:
            t = log_elapsed(t, f"user={user_id} phase=signals", logger.debug)

        pool = retrieve_candidates(store, signals, popular_ids, limit, deadline)
        if settings.DEBUG:
            t = log_elapsed(t, f"user={user_id} phase=candidates tiers={pool.tiers_run}", logger.debug)

        context = RecommendationContext(
            explicit_interests=signals.explicit_interests,
            derived_categories=signals.derived_categories,
            department=signals.department,
            fallback_used=pool.fallback_used,
        )
        items = rank_recommendations(
            score_candidates(pool.items(), context, set(popular_ids), now),
            limit,
        )

        if not items:
            check_deadline(deadline, "dataset fallback")
            fallback_items = build_dataset_fallback(
                snapshot_cache or get_catalog_snapshot_cache(),
                interests=signals.explicit_interests,
                department=signals.department,
                limit=limit,
                exclude_ids=signals.exclude_ids,
            )
            if fallback_items:
                items = fallback_items
                context.fallback_used = True
            if settings.DEBUG:
                t = log_elapsed(t, f"user={user_id} phase=dataset_fallback", logger.debug)
    finally:
        # Don't block on reads abandoned after a timeout
        executor.shutdown(wait=False, cancel_futures=True)

    logger.info(
        "Recommendations for user %s: candidates=%d returned=%d fallback=%s tiers=%s elapsed=%.2fms",
        user_id,
        len(pool),
        len(items),
        context.fallback_used,
        ",".join(pool.tiers_run),
        now_ms() - t0,
    )
    return RecommendationResult(items=items, context=context)
