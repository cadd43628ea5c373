"""
Match update endpoints: single edit/finalize and all-or-nothing bulk edit.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter
from pydantic import BaseModel

from event_scheduler.errors import SchedulerError
from event_scheduler.models.event import League, Tournament
from event_scheduler.models.match import MatchUpdate
from event_scheduler.routes.schedule import scheduler_http_exception
from event_scheduler.services.match_updates import update_match, update_matches

logger = logging.getLogger(__name__)

router = APIRouter()


class MatchUpdateRequest(BaseModel):
    event: Union[Tournament, League]
    update: MatchUpdate
    time: Optional[datetime] = None  # "now" for the auto-reschedule lower bound


class BulkMatchUpdateItem(MatchUpdate):
    match_id: str


class BulkMatchUpdateRequest(BaseModel):
    event: Union[Tournament, League]
    updates: List[BulkMatchUpdateItem]


def _to_engine_update(item: BulkMatchUpdateItem) -> MatchUpdate:
    return MatchUpdate(**item.model_dump(exclude_unset=True, exclude={"match_id"}))


@router.patch("/events/matches/{match_id}")
def patch_match(match_id: str, payload: MatchUpdateRequest) -> Dict[str, Any]:
    """Edit one match; finalize=True records the result and may auto-reschedule successors"""
    event = payload.event
    try:
        result = update_match(event, match_id, payload.update, current_time=payload.time)
    except SchedulerError as exc:
        logger.warning("Update of match %s failed: %s", match_id, exc)
        # The event carries the recorded result when only the downstream re-pack failed
        raise scheduler_http_exception(exc, event=event)
    response = result.to_dict()
    response["event"] = event.model_dump(mode="json")
    return response


@router.patch("/events/matches")
def patch_matches(payload: BulkMatchUpdateRequest) -> Dict[str, Any]:
    """Apply several match edits; nothing changes unless all of them succeed"""
    event = payload.event
    updates = [(item.match_id, _to_engine_update(item)) for item in payload.updates]
    try:
        matches = update_matches(event, updates)
    except SchedulerError as exc:
        logger.warning("Bulk update failed for event %s: %s", event.id, exc)
        raise scheduler_http_exception(exc)
    return {"matches": [m.model_dump(mode="json") for m in matches]}
