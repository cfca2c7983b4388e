"""
Server-side event logging helper.

Logs events to both the database (for querying) and structured logs (for immediate visibility).
"""
import logging
from typing import Optional, Dict, Any
from sqlalchemy.exc import OperationalError, ProgrammingError
from app.models import EventLog
from app.database import SessionLocal

logger = logging.getLogger(__name__)


def log_event_best_effort(
    event_name: str,
    user_id: Optional[str] = None,
    properties: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None,
    session_factory=None,
) -> bool:
    """
    Log an event using a separate database session.

    Creates its own session and commits independently, so it can never break
    the request that triggered it.

    Args:
        event_name: Name of the event (e.g., "recommendations_impression")
        user_id: Optional user ID
        properties: Optional dict of event properties
        request_id: Optional request ID for correlating events
        session_factory: Session factory to use (defaults to SessionLocal)

    Returns:
        True if the event was persisted. Failures are logged as warnings, never raised.
    """
    db = None
    try:
        db = (session_factory or SessionLocal)()
        db.add(EventLog(
            event_name=event_name,
            user_id=user_id,
            properties=properties,
            request_id=request_id,
        ))
        db.commit()

        logger.info(
            "event_logged",
            extra={
                "event_name": event_name,
                "user_id": user_id,
                "request_id": request_id,
                "properties": properties,
            },
        )
        return True
    except (OperationalError, ProgrammingError) as e:
        error_str = str(e).lower()
        if "no such table" in error_str or "does not exist" in error_str:
            logger.warning("event_logs table missing; event logging disabled until init_db() runs")
        else:
            logger.warning(
                "Failed to log event (database error): event_name=%s, user_id=%s, error=%s",
                event_name,
                user_id,
                str(e),
                exc_info=True,
            )
        if db:
            db.rollback()
        return False
    except Exception as e:
        # Never break the request path
        logger.warning(
            "Failed to log event: event_name=%s, user_id=%s, error=%s",
            event_name,
            user_id,
            str(e),
            exc_info=True,
        )
        if db:
            db.rollback()
        return False
    finally:
        if db:
            db.close()
