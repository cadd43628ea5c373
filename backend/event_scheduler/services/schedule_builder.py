"""
Match graph construction per division.

- Tournament: single or double elimination bracket per division.
- League: round-robin regular season per division; playoffs are generated
  lazily by build_league_playoffs once a division's regular season is final.

Builders return unplaced Match records. Ids are reused from the event's current
matches by (division_id, match_number).
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from event_scheduler.errors import ScheduleConfigurationError
from event_scheduler.models.event import Competition, League
from event_scheduler.models.match import Match, MatchStatus, TeamSlot
from event_scheduler.services.bracket_builder import build_elimination_matches, make_match_id
from event_scheduler.services.standings import compute_standings
from event_scheduler.utils.match_timing import match_buffer_ms, match_duration_minutes
from event_scheduler.utils.round_robin import round_robin_pairings

logger = logging.getLogger(__name__)


def existing_match_ids(event: Competition) -> Dict[Tuple[str, int], str]:
    return {(m.division_id, m.match_number): m.id for m in event.matches.values()}


def validate_divisions(event: Competition) -> None:
    known = set(event.division_ids())
    for team in sorted(event.teams.values(), key=lambda t: t.id):
        division_id = event.team_division_id(team)
        if division_id not in known:
            raise ScheduleConfigurationError(
                f"Team {team.id} references unknown division {division_id}"
            )


def build_division_matches(
    event: Competition,
    division_id: str,
    existing_ids: Optional[Dict[Tuple[str, int], str]] = None,
) -> List[Match]:
    teams = event.teams_in_division(division_id)
    if len(teams) < 2:
        raise ScheduleConfigurationError(
            f"Division {division_id} needs at least 2 teams to schedule (has {len(teams)})"
        )
    team_ids = [t.id for t in teams]

    if isinstance(event, League):
        matches = build_round_robin(event, division_id, team_ids, existing_ids=existing_ids)
    else:
        matches = build_elimination_matches(
            event,
            division_id,
            team_ids,
            double_elimination=getattr(event, "double_elimination", False),
            existing_ids=existing_ids,
        )
    logger.debug("Built %d matches for division %s", len(matches), division_id)
    return matches


def build_matches(event: Competition, existing_ids: Optional[Dict[Tuple[str, int], str]] = None) -> List[Match]:
    """All matches of the event, division by division, unplaced and wired"""
    validate_divisions(event)
    if existing_ids is None:
        existing_ids = existing_match_ids(event)

    matches: List[Match] = []
    for division_id in event.division_ids():
        matches.extend(build_division_matches(event, division_id, existing_ids))
    return matches


def build_round_robin(
    league: League,
    division_id: str,
    team_ids: List[str],
    existing_ids: Optional[Dict[Tuple[str, int], str]] = None,
) -> List[Match]:
    existing_ids = existing_ids or {}
    duration = match_duration_minutes(league)
    buffer_ms = match_buffer_ms(league)

    matches: List[Match] = []
    pairings = round_robin_pairings(team_ids, league.games_per_opponent)
    for number, (round_number, seq, home, away) in enumerate(pairings, start=1):
        match_id = existing_ids.get((division_id, number)) or make_match_id(league, division_id, number)
        matches.append(
            Match(
                id=match_id,
                match_number=number,
                division_id=division_id,
                team1=TeamSlot.resolved(home),
                team2=TeamSlot.resolved(away),
                round_number=round_number,
                sequence_in_round=seq,
                duration_minutes=duration,
                buffer_ms=buffer_ms,
            )
        )
    return matches


# ============================================================================
# League playoffs
# ============================================================================


def regular_season_matches(league: League, division_id: str) -> List[Match]:
    return [m for m in league.matches.values() if m.division_id == division_id and not m.is_playoff]


def regular_season_complete(league: League, division_id: str) -> bool:
    matches = regular_season_matches(league, division_id)
    return bool(matches) and all(m.status == MatchStatus.FINALIZED for m in matches)


def has_playoffs(league: League, division_id: str) -> bool:
    return any(m.is_playoff and m.division_id == division_id for m in league.matches.values())


def playoff_seeding(league: League, division_id: str) -> List[str]:
    """Team ids in playoff seed order (wins, then seed)"""
    rows = compute_standings(league, division_id)
    count = league.playoff_team_count or len(rows)
    return [row.team_id for row in rows[:count]]


def build_league_playoffs(league: League, division_id: str) -> List[Match]:
    """
    Playoff bracket for one division, added to league.matches.

    Returns [] when playoffs are disabled, already built, the regular season is
    not final yet, or fewer than 2 teams qualify.
    """
    if not league.include_playoffs:
        return []
    if has_playoffs(league, division_id) or not regular_season_complete(league, division_id):
        return []

    seeded = playoff_seeding(league, division_id)
    if len(seeded) < 2:
        return []

    first_number = max(m.match_number for m in regular_season_matches(league, division_id)) + 1
    matches = build_elimination_matches(
        league,
        division_id,
        seeded,
        first_match_number=first_number,
        is_playoff=True,
        existing_ids=existing_match_ids(league),
    )
    for match in matches:
        league.matches[match.id] = match
    logger.info("Generated %d playoff matches for division %s", len(matches), division_id)
    return matches
