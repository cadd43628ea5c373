from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional

from sqlmodel import Field, SQLModel


class SlotState(str, Enum):
    UNRESOLVED = "UNRESOLVED"
    PENDING_PREDECESSOR = "PENDING_PREDECESSOR"
    RESOLVED = "RESOLVED"


class MatchSide(str, Enum):
    LEFT = "LEFT"
    RIGHT = "RIGHT"
    NONE = "NONE"


class MatchStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    FINALIZED = "FINALIZED"  # terminal
    CANCELLED = "CANCELLED"  # terminal (unplayed bracket reset)


class TeamSlot(SQLModel):
    """One input side of a match: unknown, waiting on a predecessor, or a concrete team"""

    state: SlotState = Field(default=SlotState.UNRESOLVED)
    team_id: Optional[str] = Field(default=None)  # set when RESOLVED
    match_id: Optional[str] = Field(default=None)  # set when PENDING_PREDECESSOR

    @classmethod
    def unresolved(cls) -> "TeamSlot":
        return cls()

    @classmethod
    def pending(cls, match_id: str) -> "TeamSlot":
        return cls(state=SlotState.PENDING_PREDECESSOR, match_id=match_id)

    @classmethod
    def resolved(cls, team_id: str) -> "TeamSlot":
        return cls(state=SlotState.RESOLVED, team_id=team_id)

    @property
    def is_resolved(self) -> bool:
        return self.state == SlotState.RESOLVED and self.team_id is not None


class Match(SQLModel):
    id: str
    match_number: int
    division_id: str

    team1: TeamSlot = Field(default_factory=TeamSlot)
    team2: TeamSlot = Field(default_factory=TeamSlot)
    team_referee_id: Optional[str] = Field(default=None)
    referee_id: Optional[str] = Field(default=None)

    # Placement (None until packed)
    field_id: Optional[str] = Field(default=None)
    start: Optional[datetime] = Field(default=None)
    end: Optional[datetime] = Field(default=None)

    # Fixed at build time
    duration_minutes: int = Field(default=60)
    buffer_ms: int = Field(default=0)

    side: MatchSide = Field(default=MatchSide.NONE)  # slot this match feeds in its winner successor
    losers_bracket: bool = Field(default=False)
    is_playoff: bool = Field(default=False)
    round_number: int = Field(default=1)
    sequence_in_round: int = Field(default=1)

    # Progression pointers (ids into the event's match map)
    previous_left_match_id: Optional[str] = Field(default=None)
    previous_right_match_id: Optional[str] = Field(default=None)
    winner_next_match_id: Optional[str] = Field(default=None)
    loser_next_match_id: Optional[str] = Field(default=None)

    # Results: points per set; set_results per set 0=unplayed, 1=team1, 2=team2, 3=draw
    team1_points: List[int] = Field(default_factory=list)
    team2_points: List[int] = Field(default_factory=list)
    set_results: List[int] = Field(default_factory=list)
    winner_team_id: Optional[str] = Field(default=None)
    status: MatchStatus = Field(default=MatchStatus.SCHEDULED)

    locked: bool = Field(default=False)
    referee_checked_in: bool = Field(default=False)

    @property
    def team1_id(self) -> Optional[str]:
        return self.team1.team_id if self.team1.is_resolved else None

    @property
    def team2_id(self) -> Optional[str]:
        return self.team2.team_id if self.team2.is_resolved else None

    @property
    def team_ids(self) -> List[str]:
        return [t for t in (self.team1_id, self.team2_id) if t is not None]

    @property
    def teams_resolved(self) -> bool:
        return self.team1.is_resolved and self.team2.is_resolved

    @property
    def is_placed(self) -> bool:
        return self.field_id is not None and self.start is not None and self.end is not None

    @property
    def is_terminal(self) -> bool:
        return self.status in (MatchStatus.FINALIZED, MatchStatus.CANCELLED)

    @property
    def buffer(self) -> timedelta:
        return timedelta(milliseconds=self.buffer_ms)

    @property
    def occupied_until(self) -> Optional[datetime]:
        """End of the reserved interval [start, end + buffer)"""
        if self.end is None:
            return None
        return self.end + self.buffer

    def clear_placement(self) -> None:
        self.field_id = None
        self.start = None
        self.end = None


class MatchUpdate(SQLModel):
    """
    Partial edit of one match. Only fields that were explicitly set are applied,
    so a referee can be cleared by sending referee_id=None.
    """

    referee_id: Optional[str] = None
    team_referee_id: Optional[str] = None
    field_id: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    team1_id: Optional[str] = None
    team2_id: Optional[str] = None
    locked: Optional[bool] = None
    referee_checked_in: Optional[bool] = None
    team1_points: Optional[List[int]] = None
    team2_points: Optional[List[int]] = None
    set_results: Optional[List[int]] = None
    finalize: bool = False

    def changes(self) -> dict:
        data = self.model_dump(exclude_unset=True)
        data.pop("finalize", None)
        return data
