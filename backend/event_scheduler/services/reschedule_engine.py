"""
Reschedule preserving locks.

Re-packs every match that is free to move around the matches that are not:
- Fixed: locked matches and terminal (FINALIZED / CANCELLED) matches. Placed
  fixed matches are reserved intervals for the packer and are never moved.
- Free: everything else. Placement is cleared and recomputed; ids are kept.

A division is rebuilt from scratch only when its team composition no longer
matches the teams referenced by its matches. Rebuilt matches reuse ids by
(division_id, match_number). A division with locked or finalized matches
cannot be rebuilt.

After packing, each locked match is checked against the new configuration.
Problems never move the match; they are reported as warnings, one record per
code:
- LOCKED_MATCH_OUTSIDE_WINDOW: outside the event window or every eligible
  availability window
- LOCKED_MATCH_FIELD_INELIGIBLE: field removed or not eligible for the division
- LOCKED_MATCH_CONFLICT: overlaps another match on the same field

The computation runs on a copy of the event; the given event is updated only
when the whole reschedule succeeds.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set

from event_scheduler.errors import ScheduleConfigurationError
from event_scheduler.models.event import Competition
from event_scheduler.models.match import Match, MatchStatus
from event_scheduler.services.referee_assignment import assign_referees
from event_scheduler.services.schedule_builder import (
    build_division_matches,
    existing_match_ids,
    validate_divisions,
)
from event_scheduler.services.schedule_orchestrator import get_match_order_key, validate_event_window
from event_scheduler.services.slot_packer import BookingLedger, pack_matches
from event_scheduler.utils.calendar import expand_availability, find_containing_window

logger = logging.getLogger(__name__)

LOCKED_MATCH_OUTSIDE_WINDOW = "LOCKED_MATCH_OUTSIDE_WINDOW"
LOCKED_MATCH_FIELD_INELIGIBLE = "LOCKED_MATCH_FIELD_INELIGIBLE"
LOCKED_MATCH_CONFLICT = "LOCKED_MATCH_CONFLICT"

WARNING_ORDER = [LOCKED_MATCH_OUTSIDE_WINDOW, LOCKED_MATCH_FIELD_INELIGIBLE, LOCKED_MATCH_CONFLICT]

WARNING_MESSAGES = {
    LOCKED_MATCH_OUTSIDE_WINDOW: (
        "Locked match is outside the updated start/time-slot window and was preserved.",
        "Locked matches are outside the updated start/time-slot window and were preserved.",
    ),
    LOCKED_MATCH_FIELD_INELIGIBLE: (
        "Locked match uses a field that is no longer available to its division and was preserved.",
        "Locked matches use fields that are no longer available to their divisions and were preserved.",
    ),
    LOCKED_MATCH_CONFLICT: (
        "Locked match overlaps another match on the same field and was preserved.",
        "Locked matches overlap other matches on the same field and were preserved.",
    ),
}


@dataclass
class RescheduleWarning:
    code: str
    message: str
    match_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "match_ids": list(self.match_ids)}


@dataclass
class RescheduleResult:
    event: Competition
    matches: List[Match]
    warnings: List[RescheduleWarning] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.event.model_dump(mode="json"),
            "matches": [m.model_dump(mode="json") for m in self.matches],
            "warnings": [w.to_dict() for w in self.warnings],
        }


def is_fixed(match: Match) -> bool:
    return match.locked or match.is_terminal


def composition_changed(event: Competition, division_id: str, matches: List[Match]) -> bool:
    """True when the division's teams differ from the teams its matches reference"""
    expected = {t.id for t in event.teams_in_division(division_id)}
    referenced: Set[str] = set()
    for match in matches:
        referenced.update(match.team_ids)
    if not matches:
        return bool(expected)
    return expected != referenced


def _rebuild_changed_divisions(work: Competition) -> List[str]:
    existing_ids = existing_match_ids(work)
    rebuilt: List[str] = []
    for division_id in work.division_ids():
        div_matches = [m for m in work.matches.values() if m.division_id == division_id]
        if not composition_changed(work, division_id, div_matches):
            continue
        blocking = sorted(
            m.id for m in div_matches if m.locked or m.status == MatchStatus.FINALIZED
        )
        if blocking:
            raise ScheduleConfigurationError(
                f"Division {division_id} teams changed but it has locked or finalized matches "
                f"({', '.join(blocking)}); unlock them or run a full schedule"
            )
        for match in div_matches:
            del work.matches[match.id]
        for match in build_division_matches(work, division_id, existing_ids):
            work.matches[match.id] = match
        rebuilt.append(division_id)

    # Drop free matches of divisions that no longer exist
    known = set(work.division_ids())
    for match in list(work.matches.values()):
        if match.division_id not in known and not is_fixed(match):
            del work.matches[match.id]
    return rebuilt


def collect_lock_warnings(event: Competition, locked: List[Match]) -> List[RescheduleWarning]:
    flagged: Dict[str, List[str]] = {code: [] for code in WARNING_ORDER}
    placed = [m for m in event.matches.values() if m.is_placed and m.status != MatchStatus.CANCELLED]

    for match in sorted(locked, key=get_match_order_key):
        if not match.is_placed:
            continue

        fixed_end = event.fixed_end
        in_window = match.start >= event.start and (fixed_end is None or match.end <= fixed_end)
        if in_window and match.field_id in event.fields:
            windows = expand_availability(event, match.start, match.end)
            window = find_containing_window(windows, match.field_id, match.division_id, match.start, match.end)
            in_window = window is not None
        if not in_window:
            flagged[LOCKED_MATCH_OUTSIDE_WINDOW].append(match.id)

        if not event.field_allows_division(match.field_id, match.division_id):
            flagged[LOCKED_MATCH_FIELD_INELIGIBLE].append(match.id)

        ledger = BookingLedger.from_matches(m for m in placed if m.id != match.id)
        if ledger.conflicts(match.start, match.occupied_until, field_id=match.field_id):
            flagged[LOCKED_MATCH_CONFLICT].append(match.id)

    warnings: List[RescheduleWarning] = []
    for code in WARNING_ORDER:
        ids = flagged[code]
        if not ids:
            continue
        singular, plural = WARNING_MESSAGES[code]
        warnings.append(RescheduleWarning(code=code, message=singular if len(ids) == 1 else plural, match_ids=ids))
    return warnings


def reschedule_preserving_locks(event: Competition) -> RescheduleResult:
    validate_event_window(event)
    validate_divisions(event)

    work = event.model_copy(deep=True)
    rebuilt = _rebuild_changed_divisions(work)

    fixed = [m for m in work.matches.values() if is_fixed(m)]
    free = [m for m in work.matches.values() if not is_fixed(m)]
    for match in free:
        match.clear_placement()
    for match in fixed:
        if match.status == MatchStatus.CANCELLED:
            match.clear_placement()

    reserved = [m for m in fixed if m.is_placed]
    pack_matches(work, free, reserved)
    assign_referees(work, free)

    locked = [m for m in fixed if m.locked]
    warnings = collect_lock_warnings(work, locked)

    event.matches = work.matches
    if event.no_fixed_end_date_time:
        ends = [m.end for m in work.matches.values() if m.end is not None]
        if ends:
            event.end = max(ends)

    logger.info(
        "Rescheduled event %s: %d free, %d fixed, rebuilt divisions %s, %d warning(s)",
        event.id,
        len(free),
        len(fixed),
        rebuilt,
        len(warnings),
    )
    return RescheduleResult(
        event=event,
        matches=sorted(event.matches.values(), key=get_match_order_key),
        warnings=warnings,
    )
