"""
Schedule endpoints. Stateless: the caller sends the fully loaded event and
persists what comes back.

Error mapping:
- configuration / validation errors -> 400
- window exceeded -> 409 with code SCHEDULE_WINDOW_EXCEEDED or AUTO_RESCHEDULE_END_LIMIT
- single-match conflicts -> 409 with code MATCH_UPDATE_CONFLICT
- unknown match -> 404
"""
import logging
from typing import Any, Dict, Optional, Union

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from event_scheduler.errors import (
    MatchNotFoundError,
    MatchUpdateConflictError,
    ScheduleWindowExceededError,
    SchedulerError,
)
from event_scheduler.models.event import Competition, League, Tournament
from event_scheduler.services.reschedule_engine import reschedule_preserving_locks
from event_scheduler.services.schedule_invariants import verify_schedule
from event_scheduler.services.schedule_orchestrator import schedule_event
from event_scheduler.services.standings import compute_standings

logger = logging.getLogger(__name__)

router = APIRouter()


class EventRequest(BaseModel):
    event: Union[Tournament, League]


class StandingsRequest(BaseModel):
    event: League
    division_id: Optional[str] = None


def scheduler_http_exception(exc: SchedulerError, event: Optional[Competition] = None) -> HTTPException:
    """Map an engine error to the HTTP status the API surfaces"""
    if isinstance(exc, MatchNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ScheduleWindowExceededError):
        detail: Dict[str, Any] = {"code": exc.code, "message": str(exc), "match_id": exc.match_id}
        if event is not None:
            detail["event"] = event.model_dump(mode="json")
        return HTTPException(status_code=409, detail=detail)
    if isinstance(exc, MatchUpdateConflictError):
        return HTTPException(
            status_code=409,
            detail={"code": exc.code, "message": str(exc), "match_ids": exc.match_ids},
        )
    return HTTPException(status_code=400, detail={"code": exc.code, "message": str(exc)})


@router.post("/events/schedule")
def schedule(payload: EventRequest) -> Dict[str, Any]:
    """Build and pack every match of the event, replacing existing matches"""
    event = payload.event
    try:
        result = schedule_event(event)
    except SchedulerError as exc:
        logger.warning("Schedule failed for event %s: %s", event.id, exc)
        raise scheduler_http_exception(exc)
    return result.to_dict()


@router.post("/events/reschedule")
def reschedule(payload: EventRequest) -> Dict[str, Any]:
    """Re-pack unlocked matches around locked ones; lock problems come back as warnings"""
    event = payload.event
    try:
        result = reschedule_preserving_locks(event)
    except SchedulerError as exc:
        logger.warning("Reschedule failed for event %s: %s", event.id, exc)
        raise scheduler_http_exception(exc)
    return result.to_dict()


@router.post("/events/schedule/sanity")
def schedule_sanity(payload: EventRequest) -> Dict[str, Any]:
    """Invariant report for an already scheduled event"""
    return verify_schedule(payload.event).to_dict()


@router.post("/events/standings")
def standings(payload: StandingsRequest) -> Dict[str, Any]:
    rows = compute_standings(payload.event, payload.division_id)
    return {"standings": [row.to_dict() for row in rows]}
