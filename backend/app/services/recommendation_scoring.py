"""Multi-signal scoring and ranking of retrieved candidates."""
from datetime import datetime, timedelta
from typing import Iterable, List, Set

from app.schemas.library import CatalogItem
from app.schemas.recommendation import RecommendationContext, ScoredRecommendation
from app.services.recommendation_common import (
    BASELINE_SCORE,
    NEW_ARRIVAL_DAYS,
    REASON_BASELINE,
    REASON_DEPARTMENT,
    REASON_NEW_ARRIVAL,
    REASON_POPULAR,
    UNKNOWN_AUTHOR,
    W_DEPARTMENT,
    W_DERIVED,
    W_INTEREST,
    W_NEW_ARRIVAL,
    W_POPULAR,
    derived_reason,
    interest_reason,
)


def is_new_arrival(added_at: datetime, now: datetime) -> bool:
    return abs(now - added_at) <= timedelta(days=NEW_ARRIVAL_DAYS)


def score_candidate(
    candidate: CatalogItem,
    context: RecommendationContext,
    popular_ids: Set[str],
    now: datetime,
) -> ScoredRecommendation:
    # dict keeps insertion order and drops repeated reasons
    reasons = {}
    score = 0

    if candidate.category in context.explicit_interests:
        score += W_INTEREST
        reasons[interest_reason(candidate.category)] = None

    if candidate.category in context.derived_categories:
        score += W_DERIVED
        reasons[derived_reason(candidate.category)] = None

    if context.department and candidate.department == context.department:
        score += W_DEPARTMENT
        reasons[REASON_DEPARTMENT] = None

    new_arrival = is_new_arrival(candidate.added_at, now)
    if new_arrival:
        score += W_NEW_ARRIVAL
        reasons[REASON_NEW_ARRIVAL] = None

    popular = candidate.id in popular_ids
    if popular:
        score += W_POPULAR
        reasons[REASON_POPULAR] = None

    if score == 0:
        score = BASELINE_SCORE
        reasons[REASON_BASELINE] = None

    return ScoredRecommendation(
        id=candidate.id,
        title=candidate.title,
        author=candidate.author or UNKNOWN_AUTHOR,
        category=candidate.category,
        department=candidate.department,
        available_copies=candidate.available_copies,
        score=score,
        reasons=list(reasons),
        is_new_arrival=new_arrival,
        is_popular=popular,
    )


def score_candidates(
    candidates: Iterable[CatalogItem],
    context: RecommendationContext,
    popular_ids: Set[str],
    now: datetime,
) -> List[ScoredRecommendation]:
    return [score_candidate(candidate, context, popular_ids, now) for candidate in candidates]


def rank_recommendations(scored: Iterable[ScoredRecommendation], limit: int) -> List[ScoredRecommendation]:
    """
    Score desc, then available copies desc, then id asc; truncated to ``limit``.

    The id key makes exact ties deterministic instead of depending on retrieval order.
    """
    ordered = sorted(scored, key=lambda rec: (-rec.score, -rec.available_copies, rec.id))
    return ordered[:limit]
