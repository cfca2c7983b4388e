"""Constants, errors and future helpers shared by the recommendation services."""
import logging
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from typing import Optional, TypeVar

from app.utils.timing import Deadline

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_LIMIT = 6

# Signal collection
HISTORY_SAMPLE_SIZE = 40
MIN_DERIVED_CATEGORY_COUNT = 2

# Popularity
POPULAR_LOOKBACK_DAYS = 90
POPULAR_SAMPLE_SIZE = 300
POPULAR_TOP_N = 20

# Candidate retrieval
CANDIDATE_MULTIPLIER = 3
POPULAR_TOPUP_MULTIPLIER = 2

# Scoring
NEW_ARRIVAL_DAYS = 60
W_INTEREST = 3
W_DERIVED = 2
W_DEPARTMENT = 2
W_NEW_ARRIVAL = 1
W_POPULAR = 1
BASELINE_SCORE = 1

# Dataset fallback
DATASET_ID_PREFIX = "dataset-"
W_DATASET_INTEREST = 3
W_DATASET_DEPARTMENT = 2
W_DATASET_STOCK = 1
DATASET_STOCK_THRESHOLD = 5

UNKNOWN_AUTHOR = "Unknown author"
REASON_DEPARTMENT = "From your department collection"
REASON_NEW_ARRIVAL = "New arrival this term"
REASON_POPULAR = "Popular with other students"
REASON_BASELINE = "Handpicked by the library team"
REASON_DATASET_STOCK = "Popular in the general catalog"
REASON_DATASET_FEATURED = "Featured from the library catalog"


def interest_reason(category: str) -> str:
    return f"Matches your interest in {category}"


def derived_reason(category: str) -> str:
    return f"You often borrow {category} titles"


class RecommendationTimeoutError(Exception):
    """Raised when a recommendation call runs past its caller-supplied deadline."""
    pass


def check_deadline(deadline: Deadline, label: str) -> None:
    if deadline.expired():
        raise RecommendationTimeoutError(f"Deadline of {deadline.seconds}s exceeded before {label}")


def await_result(future: "Future[T]", deadline: Deadline, label: str) -> T:
    """Wait for ``future`` within the remaining budget; infrastructure errors propagate."""
    try:
        return future.result(timeout=deadline.remaining())
    except FutureTimeoutError as e:
        if future.done():
            # The read itself raised a timeout; that's an infrastructure error
            raise
        future.cancel()
        raise RecommendationTimeoutError(
            f"Deadline of {deadline.seconds}s exceeded waiting for {label}"
        ) from e


def await_or_default(future: "Future[T]", deadline: Deadline, label: str, default: T) -> T:
    """
    Like await_result, but a failed non-critical read degrades to ``default``.

    Deadline expiry still raises RecommendationTimeoutError.
    """
    try:
        return await_result(future, deadline, label)
    except RecommendationTimeoutError:
        raise
    except Exception as e:
        logger.warning("%s failed, continuing with an empty signal: %s", label, e, exc_info=True)
        return default


def run_or_default(fn, label: str, default: Optional[T] = None):
    """Run a non-critical read inline, degrading to ``default`` on failure."""
    try:
        return fn()
    except Exception as e:
        logger.warning("%s failed, continuing with an empty signal: %s", label, e, exc_info=True)
        return default
