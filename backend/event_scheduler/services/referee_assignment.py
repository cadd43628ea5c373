"""
Referee assignment after placement.

- do_teams_ref=False: official referees from event.referees, rotating through
  the pool in id order, skipping referees not eligible for the division or
  already booked over an overlapping match.
- do_teams_ref=True: a team from the same division that neither plays nor
  referees an overlapping match; teams with the fewest assignments go first.
  Only matches with both teams resolved get a team referee.

Matches are processed chronologically (start, end, field_id, id). Existing
assignments are kept and count as bookings.
"""
from typing import Dict, List, Optional

from event_scheduler.models.event import Competition
from event_scheduler.models.match import Match
from event_scheduler.services.slot_packer import BookingLedger


def get_chronological_key(match: Match) -> tuple:
    return (match.start, match.end, match.field_id or "", match.id)


def _placed_open_matches(matches: List[Match]) -> List[Match]:
    return sorted((m for m in matches if m.is_placed and not m.is_terminal), key=get_chronological_key)


def assign_referees(event: Competition, matches: Optional[List[Match]] = None) -> int:
    """Fill missing referees on placed matches; returns how many were assigned"""
    targets = _placed_open_matches(list(event.matches.values()) if matches is None else matches)
    if event.do_teams_ref:
        return _assign_team_referees(event, targets)
    return _assign_official_referees(event, targets)


def _assign_official_referees(event: Competition, targets: List[Match]) -> int:
    pool = sorted(event.referees, key=lambda r: r.id)
    if not pool:
        return 0

    ledger = BookingLedger()
    for match in event.matches.values():
        if match.is_placed and match.referee_id:
            ledger.reserve(match.id, None, match.start, match.end, referee_ids=[match.referee_id])

    cursor = 0
    assigned = 0
    for match in targets:
        if match.referee_id:
            continue
        for step in range(len(pool)):
            idx = (cursor + step) % len(pool)
            referee = pool[idx]
            if not referee.allows_division(match.division_id):
                continue
            if ledger.conflicts(match.start, match.end, referee_ids=[referee.id]):
                continue
            match.referee_id = referee.id
            ledger.reserve(match.id, None, match.start, match.end, referee_ids=[referee.id])
            cursor = idx + 1
            assigned += 1
            break
    return assigned


def _assign_team_referees(event: Competition, targets: List[Match]) -> int:
    ledger = BookingLedger()
    duty_counts: Dict[str, int] = {}
    for match in event.matches.values():
        if not match.is_placed:
            continue
        busy = list(match.team_ids)
        if match.team_referee_id:
            busy.append(match.team_referee_id)
            duty_counts[match.team_referee_id] = duty_counts.get(match.team_referee_id, 0) + 1
        ledger.reserve(match.id, None, match.start, match.occupied_until, team_ids=busy)

    assigned = 0
    for match in targets:
        if match.team_referee_id or not match.teams_resolved:
            continue
        candidates = [
            t for t in event.teams_in_division(match.division_id) if t.id not in match.team_ids
        ]
        candidates.sort(key=lambda t: duty_counts.get(t.id, 0))
        for team in candidates:
            if ledger.conflicts(match.start, match.occupied_until, team_ids=[team.id], ignore_match_id=match.id):
                continue
            match.team_referee_id = team.id
            ledger.reserve(match.id, None, match.start, match.occupied_until, team_ids=[team.id])
            duty_counts[team.id] = duty_counts.get(team.id, 0) + 1
            assigned += 1
            break
    return assigned
