"""
Match update / finalize state machine.

States: SCHEDULED -> SCHEDULED (edit), SCHEDULED -> FINALIZED (result entry).
FINALIZED and CANCELLED are terminal.

Edits are applied to a copy first and validated with the packer's conflict
rules for a single match (field eligibility, event window, availability
calendar, field/team/referee overlap). A rejected edit leaves the match
untouched.

Finalize records the result, updates team wins/losses, advances teams into
successor matches and, for leagues, generates playoffs once the regular season
is final. Successors (and their descendants) that are not placed yet are then
packed around every other placed match. If that re-pack runs out of calendar
before a fixed end, AutoRescheduleEndLimitError is raised and the recorded
result stays in place.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from event_scheduler.errors import (
    AutoRescheduleEndLimitError,
    MatchNotFoundError,
    MatchUpdateConflictError,
    MatchUpdateValidationError,
    ScheduleWindowExceededError,
)
from event_scheduler.models.event import Competition, League
from event_scheduler.models.match import Match, MatchStatus, MatchUpdate, TeamSlot
from event_scheduler.services.advancement_service import apply_advancement_for_final_match, descendant_ids
from event_scheduler.services.referee_assignment import assign_referees
from event_scheduler.services.schedule_builder import build_league_playoffs
from event_scheduler.services.slot_packer import BookingLedger, booked_team_ids, pack_matches
from event_scheduler.services.standings import SET_DRAW, SET_TEAM1, SET_TEAM2
from event_scheduler.utils.calendar import expand_availability, find_containing_window

logger = logging.getLogger(__name__)

PLACEMENT_KEYS = ("field_id", "start", "end")
TERMINAL_EDITABLE_KEYS = {"locked", "referee_checked_in"}
REQUIRED_VALUE_KEYS = ("locked", "referee_checked_in", "team1_points", "team2_points", "set_results")


class MatchUpdateResult:
    """Structured result of a single-match update"""

    def __init__(self, match: Match):
        self.match = match
        self.finalized = False
        self.advanced_match_ids: List[str] = []
        self.playoff_match_ids: List[str] = []
        self.rescheduled_match_ids: List[str] = []

    def to_dict(self) -> Dict[str, Any]:
        return {
            "match": self.match.model_dump(mode="json"),
            "finalized": self.finalized,
            "advanced_match_ids": self.advanced_match_ids,
            "playoff_match_ids": self.playoff_match_ids,
            "rescheduled_match_ids": self.rescheduled_match_ids,
        }


def get_match(event: Competition, match_id: str) -> Match:
    match = event.matches.get(match_id)
    if match is None:
        raise MatchNotFoundError(match_id)
    return match


# ============================================================================
# Edits
# ============================================================================


def _team_slot(match: Match, team_id: Optional[str], previous_id: Optional[str]) -> TeamSlot:
    if team_id:
        return TeamSlot.resolved(team_id)
    if previous_id:
        return TeamSlot.pending(previous_id)
    return TeamSlot.unresolved()


def apply_changes(match: Match, changes: Dict[str, Any]) -> None:
    for key, value in changes.items():
        if key == "team1_id":
            match.team1 = _team_slot(match, value, match.previous_left_match_id)
        elif key == "team2_id":
            match.team2 = _team_slot(match, value, match.previous_right_match_id)
        else:
            setattr(match, key, value)
    if "start" in changes and "end" not in changes and match.start is not None:
        match.end = match.start + timedelta(minutes=match.duration_minutes)


def _overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and b_start < a_end


def _validate_teams(event: Competition, candidate: Match) -> None:
    for team_id in candidate.team_ids:
        team = event.teams.get(team_id)
        if team is None:
            raise MatchUpdateValidationError(f"Team {team_id} not found")
        if event.team_division_id(team) != candidate.division_id:
            raise MatchUpdateValidationError(
                f"Team {team_id} is not in division {candidate.division_id}"
            )
    if candidate.team1_id is not None and candidate.team1_id == candidate.team2_id:
        raise MatchUpdateValidationError("A team cannot play itself")


def _validate_placement(event: Competition, candidate: Match) -> None:
    if candidate.end <= candidate.start:
        raise MatchUpdateValidationError("Match end must be after its start")
    if not event.field_allows_division(candidate.field_id, candidate.division_id):
        raise MatchUpdateConflictError(
            f"Field {candidate.field_id} is not available to division {candidate.division_id}"
        )
    fixed_end = event.fixed_end
    if candidate.start < event.start or (fixed_end is not None and candidate.end > fixed_end):
        raise MatchUpdateConflictError("Match falls outside the event start/end window")
    windows = expand_availability(event, candidate.start, candidate.end)
    window = find_containing_window(windows, candidate.field_id, candidate.division_id, candidate.start, candidate.end)
    if window is None:
        raise MatchUpdateConflictError("Match falls outside every available time slot for its field and division")


def validate_match_edit(event: Competition, candidate: Match, changes: Dict[str, Any]) -> None:
    placement_changed = any(k in changes for k in PLACEMENT_KEYS)
    teams_changed = "team1_id" in changes or "team2_id" in changes
    team_ref_changed = "team_referee_id" in changes
    referee_changed = "referee_id" in changes

    placement = [getattr(candidate, k) for k in PLACEMENT_KEYS]
    if placement_changed and any(v is None for v in placement) and any(v is not None for v in placement):
        raise MatchUpdateValidationError("field_id, start and end must be set or cleared together")

    if teams_changed:
        _validate_teams(event, candidate)

    if candidate.team_referee_id is not None and team_ref_changed:
        if candidate.team_referee_id not in event.teams:
            raise MatchUpdateValidationError(f"Team {candidate.team_referee_id} not found")
        if candidate.team_referee_id in candidate.team_ids:
            raise MatchUpdateValidationError("A playing team cannot referee its own match")

    if candidate.referee_id is not None and referee_changed:
        referee = next((r for r in event.referees if r.id == candidate.referee_id), None)
        if referee is None:
            raise MatchUpdateValidationError(f"Referee {candidate.referee_id} not found")
        if not referee.allows_division(candidate.division_id):
            raise MatchUpdateConflictError(
                f"Referee {candidate.referee_id} cannot officiate division {candidate.division_id}"
            )

    if not candidate.is_placed:
        return

    if placement_changed:
        _validate_placement(event, candidate)

    others = [
        m
        for m in event.matches.values()
        if m.id != candidate.id and m.is_placed and m.status != MatchStatus.CANCELLED
    ]

    if placement_changed:
        ledger = BookingLedger()
        for other in others:
            ledger.reserve(other.id, other.field_id, other.start, other.occupied_until)
        hits = ledger.conflicts(candidate.start, candidate.occupied_until, field_id=candidate.field_id)
        if hits:
            raise MatchUpdateConflictError(
                f"Field {candidate.field_id} is already booked in that window",
                match_ids=sorted({h[2] for h in hits}),
            )

    if placement_changed or teams_changed or team_ref_changed:
        busy = set(booked_team_ids(candidate))
        clashing = [
            o.id
            for o in others
            if busy.intersection(booked_team_ids(o))
            and _overlaps(candidate.start, candidate.occupied_until, o.start, o.occupied_until)
        ]
        if clashing:
            raise MatchUpdateConflictError("A team is already booked in that window", match_ids=sorted(clashing))

    if candidate.referee_id is not None and (placement_changed or referee_changed):
        clashing = [
            o.id
            for o in others
            if o.referee_id == candidate.referee_id and _overlaps(candidate.start, candidate.end, o.start, o.end)
        ]
        if clashing:
            raise MatchUpdateConflictError(
                f"Referee {candidate.referee_id} is already booked in that window",
                match_ids=sorted(clashing),
            )


# ============================================================================
# Finalize
# ============================================================================


def set_outcomes(match: Match) -> List[int]:
    """Per-set outcome (team1 / team2 / draw), from set_results or per-set points"""
    outcomes = [r for r in match.set_results if r in (SET_TEAM1, SET_TEAM2, SET_DRAW)]
    if outcomes:
        return outcomes
    for p1, p2 in zip(match.team1_points, match.team2_points):
        if p1 > p2:
            outcomes.append(SET_TEAM1)
        elif p2 > p1:
            outcomes.append(SET_TEAM2)
        else:
            outcomes.append(SET_DRAW)
    return outcomes


def decide_winner(match: Match) -> Optional[str]:
    """Winner by sets won, then total points; None for a draw"""
    outcomes = set_outcomes(match)
    if not outcomes and not match.team1_points and not match.team2_points:
        raise MatchUpdateValidationError(f"Match {match.id} has no recorded result")
    team1_sets = outcomes.count(SET_TEAM1)
    team2_sets = outcomes.count(SET_TEAM2)
    if team1_sets != team2_sets:
        return match.team1_id if team1_sets > team2_sets else match.team2_id
    team1_total = sum(match.team1_points)
    team2_total = sum(match.team2_points)
    if team1_total != team2_total:
        return match.team1_id if team1_total > team2_total else match.team2_id
    return None


def _check_finalizable(event: Competition, match: Match) -> Optional[str]:
    if match.is_terminal:
        raise MatchUpdateValidationError(f"Match {match.id} is {match.status.value} and cannot be finalized")
    if not match.teams_resolved:
        raise MatchUpdateValidationError(f"Match {match.id} cannot be finalized before both teams are known")
    winner = decide_winner(match)
    allows_draw = isinstance(event, League) and not match.is_playoff
    if winner is None and not allows_draw:
        raise MatchUpdateValidationError(f"Match {match.id} needs a winner to be finalized")
    return winner


def _auto_reschedule(
    event: Competition,
    finalized: Match,
    seed_ids: List[str],
    current_time: Optional[datetime],
) -> List[str]:
    target_ids = [
        mid
        for mid in descendant_ids(event, seed_ids)
        if not event.matches[mid].is_placed and not event.matches[mid].is_terminal
    ]
    if not target_ids:
        return []

    targets = [event.matches[mid] for mid in target_ids]
    reserved = [
        m
        for m in event.matches.values()
        if m.id not in target_ids and m.is_placed and m.status != MatchStatus.CANCELLED
    ]
    try:
        pack_matches(event, targets, reserved, earliest=current_time)
    except ScheduleWindowExceededError as exc:
        raise AutoRescheduleEndLimitError(
            finalized_match_id=finalized.id,
            match_id=exc.match_id,
            detail=exc.detail,
        ) from exc
    assign_referees(event, targets)
    logger.debug("Auto-rescheduled %s after finalizing %s", target_ids, finalized.id)
    return target_ids


def finalize_match(
    event: Competition,
    match_id: str,
    current_time: Optional[datetime] = None,
) -> MatchUpdateResult:
    match = get_match(event, match_id)
    winner_id = _check_finalizable(event, match)

    match.status = MatchStatus.FINALIZED
    match.winner_team_id = winner_id
    result = MatchUpdateResult(match)
    result.finalized = True

    if winner_id is not None:
        loser_id = match.team2_id if winner_id == match.team1_id else match.team1_id
        event.teams[winner_id].wins += 1
        event.teams[loser_id].losses += 1

    result.advanced_match_ids = apply_advancement_for_final_match(event, match)

    if isinstance(event, League) and not match.is_playoff:
        result.playoff_match_ids = [m.id for m in build_league_playoffs(event, match.division_id)]

    result.rescheduled_match_ids = _auto_reschedule(
        event,
        match,
        result.advanced_match_ids + result.playoff_match_ids,
        current_time,
    )
    return result


# ============================================================================
# Public operations
# ============================================================================


def update_match(
    event: Competition,
    match_id: str,
    update: MatchUpdate,
    current_time: Optional[datetime] = None,
) -> MatchUpdateResult:
    """Apply a partial edit (and optionally finalize) to one match"""
    match = get_match(event, match_id)
    changes = update.changes()
    cleared = [k for k in REQUIRED_VALUE_KEYS if k in changes and changes[k] is None]
    if cleared:
        raise MatchUpdateValidationError(f"Match {match_id}: {', '.join(cleared)} cannot be null")

    if match.is_terminal and set(changes) - TERMINAL_EDITABLE_KEYS:
        raise MatchUpdateValidationError(
            f"Match {match_id} is {match.status.value}; only lock and check-in flags can change"
        )

    candidate = match.model_copy(deep=True)
    apply_changes(candidate, changes)
    validate_match_edit(event, candidate, changes)
    if update.finalize:
        _check_finalizable(event, candidate)

    apply_changes(match, changes)
    if update.finalize:
        return finalize_match(event, match_id, current_time=current_time)
    return MatchUpdateResult(match)


def update_matches(
    event: Competition,
    updates: Sequence[Tuple[str, MatchUpdate]],
) -> List[Match]:
    """
    Bulk edit: every update is validated against a working copy in order.
    Either all succeed and the event takes the result, or the first failure is
    raised and the event is unchanged. Finalize is not allowed in bulk.
    """
    for match_id, update in updates:
        if update.finalize:
            raise MatchUpdateValidationError(
                f"Match {match_id}: finalize is not supported in bulk updates"
            )

    work = event.model_copy(deep=True)
    for match_id, update in updates:
        update_match(work, match_id, update)

    event.matches = work.matches
    return [event.matches[match_id] for match_id, _ in updates]
