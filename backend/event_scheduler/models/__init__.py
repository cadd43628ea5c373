from event_scheduler.models.division import Division
from event_scheduler.models.event import OPEN_DIVISION_ID, Competition, Event, League, Tournament
from event_scheduler.models.match import Match, MatchSide, MatchStatus, MatchUpdate, SlotState, TeamSlot
from event_scheduler.models.playing_field import PlayingField
from event_scheduler.models.referee import Referee
from event_scheduler.models.team import Team
from event_scheduler.models.time_slot import TimeSlot

__all__ = [
    "Competition",
    "Division",
    "Event",
    "League",
    "Match",
    "MatchSide",
    "MatchStatus",
    "MatchUpdate",
    "OPEN_DIVISION_ID",
    "PlayingField",
    "Referee",
    "SlotState",
    "Team",
    "TeamSlot",
    "TimeSlot",
    "Tournament",
]
