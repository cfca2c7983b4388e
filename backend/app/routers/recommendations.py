from typing import List
import uuid as uuid_lib

from fastapi import APIRouter, Depends, HTTPException, Query, status
import logging

from app.core.config import settings
from app.database import SessionLocal
from app.schemas.recommendation import RecommendationsResponse
from app.services import recommendation_engine
from app.services.catalog_snapshot import CatalogSnapshotCache, get_catalog_snapshot_cache
from app.services.library_store import LibraryStore, SqlAlchemyLibraryStore
from app.services.recommendation_common import RecommendationTimeoutError
from app.utils.instrumentation import log_event_best_effort
from app.utils.timing import now_ms

logger = logging.getLogger(__name__)

router = APIRouter(tags=["recommendations"])


def get_library_store() -> LibraryStore:
    """Dependency: storage collaborator opening one session per read."""
    return SqlAlchemyLibraryStore(SessionLocal)


def get_snapshot_cache() -> CatalogSnapshotCache:
    return get_catalog_snapshot_cache()


@router.get("/users/{user_id}/recommendations", response_model=RecommendationsResponse)
def get_recommendations(
    user_id: str,
    limit: int = Query(settings.RECS_DEFAULT_LIMIT, ge=1, le=settings.RECS_MAX_LIMIT),
    exclude: List[str] = Query([], description="Item ids that must not be recommended"),
    store: LibraryStore = Depends(get_library_store),
    snapshot_cache: CatalogSnapshotCache = Depends(get_snapshot_cache),
):
    """Personalized recommendations with the reasons each item was picked."""
    t0 = now_ms()
    request_id = str(uuid_lib.uuid4())

    try:
        result = recommendation_engine.recommend(
            store,
            user_id,
            limit=limit,
            exclude_ids=exclude,
            snapshot_cache=snapshot_cache,
            timeout=settings.RECS_TIMEOUT_SECONDS,
        )
    except RecommendationTimeoutError as e:
        logger.warning("Recommendations timed out for user %s: %s", user_id, e)
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail="Recommendations took too long, please retry",
        )
    except Exception as e:
        logger.exception("Failed to get recommendations for user %s", user_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to get recommendations: {e}",
        )

    item_ids = [item.id for item in result.items]
    log_event_best_effort(
        event_name="recommendations_impression",
        user_id=user_id,
        properties={
            "request_id": request_id,
            "count": len(item_ids),
            "top_item_id": item_ids[0] if item_ids else None,
            "item_ids": item_ids,
            "fallback_used": result.context.fallback_used,
        },
        request_id=request_id,
    )

    if settings.DEBUG:
        logger.debug(f"req_id={request_id} user={user_id} total={now_ms() - t0:.2f}ms limit={limit} count={len(item_ids)}")

    return RecommendationsResponse(request_id=request_id, items=result.items, context=result.context)


@router.post("/catalog-snapshot/invalidate", status_code=status.HTTP_204_NO_CONTENT)
def invalidate_catalog_snapshot(
    snapshot_cache: CatalogSnapshotCache = Depends(get_snapshot_cache),
):
    """Drop the cached snapshot so the next fallback re-reads the CSV export."""
    snapshot_cache.invalidate()
    logger.info("[catalog-snapshot] Cache invalidated for %s", snapshot_cache.path)
