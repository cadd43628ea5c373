"""
Slot Packer: deterministic greedy placement of matches onto fields and times.

Algorithm:
1. Expand availability templates into concrete windows over the search range
   (event start .. fixed end, or OPEN_ENDED_WEEKS past the nominal end for
   open-ended events).
2. Seed the booking ledger with every reserved match (locked, finalized or
   already placed) by field, team and referee.
3. Walk matches in topological order of the progression graph; ready matches
   are taken by (is_playoff, round_number, losers_bracket, sequence_in_round,
   match_number, id).
4. A match may not start before its placed predecessors end plus their buffer,
   a playoff match not before its division's regular season is over,
   nor before `earliest`. In every eligible window, advance past colliding
   bookings until the match fits or the window ends.
5. Choose the earliest start over all windows; ties go to the lower
   field_number, then field id. The interval [start, end + buffer) is then
   booked for subsequent matches.

Placements are planned first and written to the matches only when every match
fits, so a failed pack leaves the event untouched.
"""
from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from event_scheduler.config import OPEN_ENDED_WEEKS
from event_scheduler.errors import ScheduleConfigurationError, ScheduleWindowExceededError
from event_scheduler.models.event import Competition
from event_scheduler.models.match import Match, MatchStatus
from event_scheduler.utils.calendar import AvailabilityWindow, expand_availability
from event_scheduler.utils.match_timing import round_up

logger = logging.getLogger(__name__)

Interval = Tuple[datetime, datetime, str]  # (start, occupied_until, match_id)


# ============================================================================
# Booking ledger
# ============================================================================


class BookingLedger:
    """Reserved [start, end + buffer) intervals by field, team and referee"""

    def __init__(self):
        self.by_field: Dict[str, List[Interval]] = {}
        self.by_team: Dict[str, List[Interval]] = {}
        self.by_referee: Dict[str, List[Interval]] = {}

    @classmethod
    def from_matches(cls, matches: Iterable[Match]) -> "BookingLedger":
        ledger = cls()
        for match in matches:
            if match.is_placed:
                ledger.reserve_match(match)
        return ledger

    def reserve(
        self,
        match_id: str,
        field_id: Optional[str],
        start: datetime,
        until: datetime,
        team_ids: Iterable[str] = (),
        referee_ids: Iterable[str] = (),
    ) -> None:
        interval = (start, until, match_id)
        if field_id is not None:
            self.by_field.setdefault(field_id, []).append(interval)
        for team_id in team_ids:
            self.by_team.setdefault(team_id, []).append(interval)
        for referee_id in referee_ids:
            self.by_referee.setdefault(referee_id, []).append(interval)

    def reserve_match(self, match: Match) -> None:
        self.reserve(
            match.id,
            match.field_id,
            match.start,
            match.occupied_until,
            team_ids=booked_team_ids(match),
            referee_ids=[match.referee_id] if match.referee_id else [],
        )

    def conflicts(
        self,
        start: datetime,
        until: datetime,
        field_id: Optional[str] = None,
        team_ids: Iterable[str] = (),
        referee_ids: Iterable[str] = (),
        ignore_match_id: Optional[str] = None,
    ) -> List[Interval]:
        """Reserved intervals overlapping [start, until)"""
        buckets: List[List[Interval]] = []
        if field_id is not None:
            buckets.append(self.by_field.get(field_id, []))
        buckets.extend(self.by_team.get(t, []) for t in team_ids)
        buckets.extend(self.by_referee.get(r, []) for r in referee_ids)

        hits: List[Interval] = []
        for bucket in buckets:
            for interval in bucket:
                if interval[2] == ignore_match_id:
                    continue
                if interval[0] < until and start < interval[1]:
                    hits.append(interval)
        return hits


def booked_team_ids(match: Match) -> List[str]:
    """Teams busy during a match: both players and the refereeing team"""
    ids = list(match.team_ids)
    if match.team_referee_id and match.team_referee_id not in ids:
        ids.append(match.team_referee_id)
    return ids


# ============================================================================
# Results
# ============================================================================


@dataclass
class Placement:
    match_id: str
    field_id: str
    start: datetime
    end: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "match_id": self.match_id,
            "field_id": self.field_id,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
        }


@dataclass
class PackResult:
    placements: List[Placement] = field(default_factory=list)
    window_count: int = 0

    @property
    def placed_count(self) -> int:
        return len(self.placements)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "placed_count": self.placed_count,
            "window_count": self.window_count,
            "placements": [p.to_dict() for p in self.placements],
        }


# ============================================================================
# Ordering
# ============================================================================


def get_match_sort_key(match: Match) -> Tuple:
    return (
        match.is_playoff,
        match.round_number,
        match.losers_bracket,
        match.sequence_in_round,
        match.match_number,
        match.id,
    )


def predecessor_ids(match: Match) -> List[str]:
    ids = []
    for pid in (match.previous_left_match_id, match.previous_right_match_id):
        if pid is not None and pid not in ids:
            ids.append(pid)
    return ids


def topological_order(matches: List[Match]) -> List[Match]:
    """Kahn's algorithm over progression edges inside `matches`"""
    by_id = {m.id: m for m in matches}
    indegree: Dict[str, int] = {m.id: 0 for m in matches}
    successors: Dict[str, List[str]] = {m.id: [] for m in matches}
    for match in matches:
        for pid in predecessor_ids(match):
            if pid in by_id:
                indegree[match.id] += 1
                successors[pid].append(match.id)

    heap = [(get_match_sort_key(m), m.id) for m in matches if indegree[m.id] == 0]
    heapq.heapify(heap)
    ordered: List[Match] = []
    while heap:
        _, match_id = heapq.heappop(heap)
        ordered.append(by_id[match_id])
        for sid in successors[match_id]:
            indegree[sid] -= 1
            if indegree[sid] == 0:
                heapq.heappush(heap, (get_match_sort_key(by_id[sid]), sid))

    if len(ordered) != len(matches):
        raise ScheduleConfigurationError("Match progression graph contains a cycle")
    return ordered


# ============================================================================
# Packing
# ============================================================================


def search_range(event: Competition) -> Tuple[datetime, datetime]:
    fixed_end = event.fixed_end
    if fixed_end is not None:
        return event.start, fixed_end
    if not event.no_fixed_end_date_time:
        raise ScheduleConfigurationError("Event end date/time is required when the event has a fixed end")
    nominal_end = max(event.start, event.end or event.start)
    return event.start, nominal_end + timedelta(weeks=OPEN_ENDED_WEEKS)


def _fit_in_window(
    match: Match,
    window: AvailabilityWindow,
    earliest: datetime,
    ledger: BookingLedger,
) -> Optional[datetime]:
    duration = timedelta(minutes=match.duration_minutes)
    team_ids = booked_team_ids(match)
    referee_ids = [match.referee_id] if match.referee_id else []

    candidate = round_up(max(window.start, earliest))
    while candidate + duration <= window.end:
        hits = ledger.conflicts(
            candidate,
            candidate + duration + match.buffer,
            field_id=window.field_id,
            team_ids=team_ids,
            referee_ids=referee_ids,
            ignore_match_id=match.id,
        )
        if not hits:
            return candidate
        candidate = round_up(max(hit[1] for hit in hits))
    return None


def find_placement(
    event: Competition,
    match: Match,
    windows: List[AvailabilityWindow],
    earliest: datetime,
    ledger: BookingLedger,
) -> Optional[Tuple[AvailabilityWindow, datetime]]:
    best: Optional[Tuple[AvailabilityWindow, datetime]] = None
    for window in windows:
        if best is not None and window.start > best[1]:
            break
        if window.end <= earliest:
            continue
        if not window.allows_division(match.division_id):
            continue
        if not event.field_allows_division(window.field_id, match.division_id):
            continue
        start = _fit_in_window(match, window, earliest, ledger)
        if start is None:
            continue
        if best is None or (start, window.field_number, window.field_id) < (
            best[1],
            best[0].field_number,
            best[0].field_id,
        ):
            best = (window, start)
    return best


def describe_capacity(
    matches: List[Match],
    windows: List[AvailabilityWindow],
    event: Competition,
) -> str:
    needed = sum(m.duration_minutes + m.buffer_ms // 60_000 for m in matches)
    available = sum(int((w.end - w.start).total_seconds() // 60) for w in windows)
    return (
        f"{len(matches)} match(es) still need placement, about {needed} field-minutes required; "
        f"{available} field-minutes of availability across {len(event.fields)} field(s) in the window"
    )


def _regular_season_end(
    division_id: str,
    by_id: Dict[str, Match],
    planned: Dict[str, Placement],
) -> Optional[datetime]:
    """Latest end plus buffer over the division's placed regular-season matches"""
    ends = []
    for match in by_id.values():
        if match.is_playoff or match.division_id != division_id or match.status == MatchStatus.CANCELLED:
            continue
        if match.id in planned:
            ends.append(planned[match.id].end + match.buffer)
        elif match.is_placed:
            ends.append(match.occupied_until)
    return max(ends, default=None)


def pack_matches(
    event: Competition,
    matches: List[Match],
    reserved: Iterable[Match] = (),
    earliest: Optional[datetime] = None,
) -> PackResult:
    """
    Place `matches` around `reserved` and write start/end/field_id on success.

    Raises ScheduleWindowExceededError when a match does not fit before a fixed
    end, ScheduleConfigurationError when an open-ended calendar is exhausted.
    """
    if not matches:
        return PackResult()
    if not event.fields:
        raise ScheduleConfigurationError(
            "Unable to schedule event because no fields are available. Add at least one field."
        )

    range_start, range_end = search_range(event)
    windows = expand_availability(event, range_start, range_end)
    reserved = list(reserved)
    ledger = BookingLedger.from_matches(reserved)
    by_id = dict(event.matches)
    by_id.update({m.id: m for m in reserved})
    by_id.update({m.id: m for m in matches})

    floor = range_start if earliest is None else max(range_start, earliest)
    planned: Dict[str, Placement] = {}
    ordered = topological_order(list(matches))

    for index, match in enumerate(ordered):
        match_floor = floor
        for pid in predecessor_ids(match):
            if pid in planned:
                match_floor = max(match_floor, planned[pid].end + by_id[pid].buffer)
            elif pid in by_id and by_id[pid].is_placed:
                match_floor = max(match_floor, by_id[pid].occupied_until)
        if match.is_playoff:
            season_end = _regular_season_end(match.division_id, by_id, planned)
            if season_end is not None:
                match_floor = max(match_floor, season_end)

        choice = find_placement(event, match, windows, match_floor, ledger)
        if choice is None:
            remaining = ordered[index:]
            detail = describe_capacity(remaining, windows, event)
            if event.fixed_end is not None:
                raise ScheduleWindowExceededError(match_id=match.id, detail=detail)
            raise ScheduleConfigurationError(
                f"Unable to place match {match.id}: availability is exhausted "
                f"{OPEN_ENDED_WEEKS} weeks past the event start. {detail}"
            )

        window, start = choice
        end = start + timedelta(minutes=match.duration_minutes)
        planned[match.id] = Placement(match.id, window.field_id, start, end)
        ledger.reserve(
            match.id,
            window.field_id,
            start,
            end + match.buffer,
            team_ids=booked_team_ids(match),
            referee_ids=[match.referee_id] if match.referee_id else [],
        )
        logger.debug("Placed %s on %s at %s", match.id, window.field_id, start.isoformat())

    for match in ordered:
        placement = planned[match.id]
        match.field_id = placement.field_id
        match.start = placement.start
        match.end = placement.end

    return PackResult(placements=[planned[m.id] for m in ordered], window_count=len(windows))
