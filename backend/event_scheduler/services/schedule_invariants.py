"""
Schedule Invariant Verifier
===========================
Read-only checks over a scheduled event.

Invariants:
  A) FIELD_DOUBLE_BOOKED: no two matches share a field with overlapping
     [start, end + buffer)
  B) TEAM_DOUBLE_BOOKED: no team plays (or referees) two overlapping matches
  C) OUTSIDE_EVENT_WINDOW: matches lie within [event.start, event.end]
     unless the event is open-ended
  D) OUTSIDE_TIME_SLOT: matches lie inside an availability window eligible
     for their field and division
  E) FIELD_INELIGIBLE: the field is eligible for the match's division
  F) BROKEN_PROGRESSION: every progression pointer has a matching pointer
     back, and pending slots name a predecessor of the match

Locked matches are reported like any other; callers decide whether to treat
their violations as warnings.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from event_scheduler.models.event import Competition
from event_scheduler.models.match import Match, MatchStatus, SlotState
from event_scheduler.services.slot_packer import booked_team_ids
from event_scheduler.utils.calendar import expand_availability, find_containing_window


# ─── Data structures ─────────────────────────────────────────────────────

@dataclass
class Violation:
    code: str
    message: str
    match_id: Optional[str] = None
    other_match_id: Optional[str] = None
    team_id: Optional[str] = None


@dataclass
class InvariantReport:
    ok: bool
    violations: List[Violation] = field(default_factory=list)
    checked_matches: int = 0

    def codes(self) -> List[str]:
        return sorted({v.code for v in self.violations})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "checked_matches": self.checked_matches,
            "violations": [
                {
                    "code": v.code,
                    "message": v.message,
                    "match_id": v.match_id,
                    "other_match_id": v.other_match_id,
                    "team_id": v.team_id,
                }
                for v in self.violations
            ],
        }


# ─── Checks ──────────────────────────────────────────────────────────────

def _active_placed(event: Competition) -> List[Match]:
    placed = [m for m in event.matches.values() if m.is_placed and m.status != MatchStatus.CANCELLED]
    return sorted(placed, key=lambda m: (m.start, m.field_id, m.id))


def check_field_overlaps(matches: List[Match]) -> List[Violation]:
    by_field: Dict[str, List[Match]] = defaultdict(list)
    for m in matches:
        by_field[m.field_id].append(m)

    violations: List[Violation] = []
    for field_id in sorted(by_field):
        ordered = by_field[field_id]
        for i, a in enumerate(ordered):
            for b in ordered[i + 1:]:
                if b.start >= a.occupied_until:
                    break
                violations.append(
                    Violation(
                        code="FIELD_DOUBLE_BOOKED",
                        message=f"Field {field_id}: {a.id} and {b.id} overlap",
                        match_id=a.id,
                        other_match_id=b.id,
                    )
                )
    return violations


def check_team_overlaps(matches: List[Match]) -> List[Violation]:
    by_team: Dict[str, List[Match]] = defaultdict(list)
    for m in matches:
        for team_id in booked_team_ids(m):
            by_team[team_id].append(m)

    violations: List[Violation] = []
    for team_id in sorted(by_team):
        ordered = by_team[team_id]
        for i, a in enumerate(ordered):
            for b in ordered[i + 1:]:
                if b.start >= a.occupied_until:
                    continue
                violations.append(
                    Violation(
                        code="TEAM_DOUBLE_BOOKED",
                        message=f"Team {team_id} is booked in {a.id} and {b.id} at the same time",
                        match_id=a.id,
                        other_match_id=b.id,
                        team_id=team_id,
                    )
                )
    return violations


def check_windows(event: Competition, matches: List[Match]) -> List[Violation]:
    violations: List[Violation] = []
    fixed_end = event.fixed_end
    for m in matches:
        if m.start < event.start or (fixed_end is not None and m.end > fixed_end):
            violations.append(
                Violation(code="OUTSIDE_EVENT_WINDOW", message=f"{m.id} is outside the event window", match_id=m.id)
            )
        if not event.field_allows_division(m.field_id, m.division_id):
            violations.append(
                Violation(
                    code="FIELD_INELIGIBLE",
                    message=f"{m.id} uses field {m.field_id} not eligible for division {m.division_id}",
                    match_id=m.id,
                )
            )
            continue
        windows = expand_availability(event, m.start, m.end)
        if find_containing_window(windows, m.field_id, m.division_id, m.start, m.end) is None:
            violations.append(
                Violation(code="OUTSIDE_TIME_SLOT", message=f"{m.id} is outside every time slot", match_id=m.id)
            )
    return violations


def check_progression(event: Competition) -> List[Violation]:
    violations: List[Violation] = []
    for m in sorted(event.matches.values(), key=lambda x: x.id):
        for nxt_id in (m.winner_next_match_id, m.loser_next_match_id):
            if nxt_id is None:
                continue
            nxt = event.matches.get(nxt_id)
            if nxt is None or m.id not in (nxt.previous_left_match_id, nxt.previous_right_match_id):
                violations.append(
                    Violation(
                        code="BROKEN_PROGRESSION",
                        message=f"{m.id} feeds {nxt_id} but is not recorded as its predecessor",
                        match_id=m.id,
                    )
                )
        for prev_id in (m.previous_left_match_id, m.previous_right_match_id):
            if prev_id is None:
                continue
            prev = event.matches.get(prev_id)
            if prev is None or m.id not in (prev.winner_next_match_id, prev.loser_next_match_id):
                violations.append(
                    Violation(
                        code="BROKEN_PROGRESSION",
                        message=f"{m.id} lists {prev_id} as predecessor but it does not feed {m.id}",
                        match_id=m.id,
                    )
                )
        for slot in (m.team1, m.team2):
            if slot.state == SlotState.PENDING_PREDECESSOR and slot.match_id not in (
                m.previous_left_match_id,
                m.previous_right_match_id,
            ):
                violations.append(
                    Violation(
                        code="BROKEN_PROGRESSION",
                        message=f"{m.id} waits on {slot.match_id} which is not one of its predecessors",
                        match_id=m.id,
                    )
                )
    return violations


def verify_schedule(event: Competition) -> InvariantReport:
    placed = _active_placed(event)
    violations: List[Violation] = []
    violations.extend(check_field_overlaps(placed))
    violations.extend(check_team_overlaps(placed))
    violations.extend(check_windows(event, placed))
    violations.extend(check_progression(event))
    return InvariantReport(ok=not violations, violations=violations, checked_matches=len(placed))
