from datetime import datetime
from typing import Dict, List, Literal, Optional, Union

from sqlmodel import Field, SQLModel

from event_scheduler.models.division import Division
from event_scheduler.models.match import Match
from event_scheduler.models.playing_field import PlayingField
from event_scheduler.models.referee import Referee
from event_scheduler.models.team import Team
from event_scheduler.models.time_slot import TimeSlot

OPEN_DIVISION_ID = "OPEN"


class Competition(SQLModel):
    """Fields shared by tournaments and leagues"""

    id: str
    name: str = ""
    start: datetime
    end: Optional[datetime] = Field(default=None)
    no_fixed_end_date_time: bool = Field(default=False)

    divisions: List[Division] = Field(default_factory=list)
    teams: Dict[str, Team] = Field(default_factory=dict)
    fields: Dict[str, PlayingField] = Field(default_factory=dict)
    referees: List[Referee] = Field(default_factory=list)
    time_slots: List[TimeSlot] = Field(default_factory=list)
    matches: Dict[str, Match] = Field(default_factory=dict)

    do_teams_ref: bool = Field(default=False)
    rest_time_minutes: int = Field(default=0)
    match_duration_minutes: Optional[int] = Field(default=None)
    uses_sets: bool = Field(default=False)
    set_duration_minutes: Optional[int] = Field(default=None)
    registration_cutoff_hours: Optional[int] = Field(default=None)

    @property
    def is_league(self) -> bool:
        return False

    @property
    def fixed_end(self) -> Optional[datetime]:
        """Hard scheduling limit, or None for open-ended events"""
        if self.no_fixed_end_date_time:
            return None
        return self.end

    def division_ids(self) -> List[str]:
        if self.divisions:
            return [d.id for d in self.divisions]
        return [OPEN_DIVISION_ID]

    def get_division(self, division_id: str) -> Optional[Division]:
        for division in self.divisions:
            if division.id == division_id:
                return division
        return None

    def team_division_id(self, team: Team) -> str:
        return team.division_id or OPEN_DIVISION_ID

    def teams_in_division(self, division_id: str) -> List[Team]:
        """Teams of one division ordered by seed (unseeded last), then id"""
        teams = [t for t in self.teams.values() if self.team_division_id(t) == division_id]
        return sorted(teams, key=lambda t: (t.seed if t.seed > 0 else 10**9, t.id))

    def sorted_fields(self) -> List[PlayingField]:
        return sorted(self.fields.values(), key=lambda f: (f.field_number, f.id))

    def field_allows_division(self, field_id: str, division_id: str) -> bool:
        field = self.fields.get(field_id)
        if field is None or not field.allows_division(division_id):
            return False
        division = self.get_division(division_id)
        if division is not None and division.eligible_field_ids:
            return field_id in division.eligible_field_ids
        return True


class Tournament(Competition):
    event_type: Literal["TOURNAMENT"] = "TOURNAMENT"
    double_elimination: bool = Field(default=False)
    winner_set_count: int = Field(default=1)
    loser_set_count: int = Field(default=1)


class League(Competition):
    event_type: Literal["LEAGUE"] = "LEAGUE"
    games_per_opponent: int = Field(default=1)
    sets_per_match: int = Field(default=1)
    include_playoffs: bool = Field(default=False)
    playoff_team_count: int = Field(default=0)  # 0 = every team in the division

    @property
    def is_league(self) -> bool:
        return True


Event = Union[Tournament, League]
