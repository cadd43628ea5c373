"""
League standings from finalized regular-season matches.

Order: wins (desc), then seed (asc, unseeded last), then team id.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from event_scheduler.models.event import Competition
from event_scheduler.models.match import Match, MatchStatus

SET_TEAM1 = 1
SET_TEAM2 = 2
SET_DRAW = 3


@dataclass
class StandingRow:
    team_id: str
    team_name: str
    seed: int
    wins: int = 0
    losses: int = 0
    draws: int = 0
    points_for: int = 0
    points_against: int = 0

    @property
    def point_differential(self) -> int:
        return self.points_for - self.points_against

    def to_dict(self) -> Dict[str, Any]:
        return {
            "team_id": self.team_id,
            "team_name": self.team_name,
            "seed": self.seed,
            "wins": self.wins,
            "losses": self.losses,
            "draws": self.draws,
            "points_for": self.points_for,
            "points_against": self.points_against,
            "point_differential": self.point_differential,
        }


def get_standing_sort_key(row: StandingRow) -> tuple:
    return (-row.wins, row.seed if row.seed > 0 else 10**9, row.team_id)


def _record_match(rows: Dict[str, StandingRow], match: Match) -> None:
    team1 = rows.get(match.team1_id or "")
    team2 = rows.get(match.team2_id or "")
    if team1 is None or team2 is None:
        return

    p1 = sum(match.team1_points)
    p2 = sum(match.team2_points)
    team1.points_for += p1
    team1.points_against += p2
    team2.points_for += p2
    team2.points_against += p1

    if match.winner_team_id == team1.team_id:
        team1.wins += 1
        team2.losses += 1
    elif match.winner_team_id == team2.team_id:
        team2.wins += 1
        team1.losses += 1
    else:
        team1.draws += 1
        team2.draws += 1


def compute_standings(event: Competition, division_id: Optional[str] = None) -> List[StandingRow]:
    rows: Dict[str, StandingRow] = {}
    for team in event.teams.values():
        if division_id is not None and event.team_division_id(team) != division_id:
            continue
        rows[team.id] = StandingRow(team_id=team.id, team_name=team.name, seed=team.seed)

    for match in sorted(event.matches.values(), key=lambda m: m.id):
        if match.is_playoff or match.status != MatchStatus.FINALIZED:
            continue
        if division_id is not None and match.division_id != division_id:
            continue
        _record_match(rows, match)

    return sorted(rows.values(), key=get_standing_sort_key)
