"""
Schedule Orchestrator - full schedule build

Pipeline:
1. Validate the event window and configuration
2. Build every division's matches (bracket or round robin)
3. Pack all matches onto fields/time windows
4. Assign referees
5. Extend the end of open-ended events to the last match

The event is only modified once packing succeeded.
"""
import logging
from typing import Any, Dict, List, Optional

from event_scheduler.errors import ScheduleConfigurationError
from event_scheduler.models.event import Competition
from event_scheduler.models.match import Match
from event_scheduler.services.referee_assignment import assign_referees
from event_scheduler.services.schedule_builder import build_matches
from event_scheduler.services.slot_packer import PackResult, pack_matches
from event_scheduler.utils.calendar import has_templates

logger = logging.getLogger(__name__)

FIXED_END_MESSAGE = 'End date/time must be after start date/time when "No fixed end date/time" is disabled.'


def get_match_order_key(match: Match) -> tuple:
    return (match.division_id, match.match_number, match.id)


class ScheduleResult:
    """Complete result of a full schedule build"""

    def __init__(self, event: Competition, matches: List[Match], pack: Optional[PackResult] = None):
        self.event = event
        self.matches = matches
        self.pack = pack or PackResult()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.event.model_dump(mode="json"),
            "matches": [m.model_dump(mode="json") for m in self.matches],
            "pack": self.pack.to_dict(),
        }


def validate_event_window(event: Competition) -> None:
    if not event.fields:
        raise ScheduleConfigurationError(
            "Unable to schedule event because no fields are available. Add at least one field."
        )
    if not event.no_fixed_end_date_time:
        if event.end is None or event.end <= event.start:
            raise ScheduleConfigurationError(FIXED_END_MESSAGE)
    if event.is_league and not has_templates(event):
        raise ScheduleConfigurationError("League scheduling requires at least one time slot")


def latest_end(matches: List[Match]):
    ends = [m.end for m in matches if m.end is not None]
    return max(ends) if ends else None


def schedule_event(event: Competition) -> ScheduleResult:
    """Replace all matches of the event with a freshly built and packed schedule"""
    validate_event_window(event)

    matches = build_matches(event)
    pack = pack_matches(event, matches)

    event.matches = {m.id: m for m in matches}
    assign_referees(event)

    if event.no_fixed_end_date_time:
        end = latest_end(matches)
        if end is not None:
            event.end = end

    logger.info(
        "Scheduled event %s: %d matches across %d windows",
        event.id,
        pack.placed_count,
        pack.window_count,
    )
    return ScheduleResult(event, sorted(matches, key=get_match_order_key), pack)
