"""
Advancement: when a match is finalized, write its winner and loser into the
successor slots that are pending on it.

Grand-final reset: a match whose winner_next and loser_next both point at the
last match of the bracket is a double-elimination grand final. If the
winners-bracket champion (left slot) wins, the reset is not needed and is
CANCELLED. Otherwise both teams advance into the reset (winner left, loser right).
"""
import logging
from typing import List, Optional

from event_scheduler.models.event import Competition
from event_scheduler.models.match import Match, MatchStatus, SlotState, TeamSlot

logger = logging.getLogger(__name__)


def loser_team_id(match: Match) -> Optional[str]:
    if match.winner_team_id is None:
        return None
    if match.winner_team_id == match.team1_id:
        return match.team2_id
    if match.winner_team_id == match.team2_id:
        return match.team1_id
    return None


def _fill_pending_slot(successor: Match, source_match_id: str, team_id: str) -> bool:
    """Resolve the successor slot fed by source_match_id. Idempotent."""
    for attr in ("team1", "team2"):
        slot: TeamSlot = getattr(successor, attr)
        if slot.state == SlotState.RESOLVED and slot.team_id == team_id:
            return False
        if slot.state == SlotState.PENDING_PREDECESSOR and slot.match_id == source_match_id:
            setattr(successor, attr, TeamSlot.resolved(team_id))
            return True
    return False


def is_grand_final(event: Competition, match: Match) -> bool:
    """Winner and loser both feed the same match, and that match is the last one"""
    if match.winner_next_match_id is None or match.winner_next_match_id != match.loser_next_match_id:
        return False
    reset = event.matches.get(match.winner_next_match_id)
    return reset is not None and reset.winner_next_match_id is None


def apply_advancement_for_final_match(event: Competition, match: Match) -> List[str]:
    """
    Advance a finalized match's teams. Returns ids of successor matches that
    gained a team or were cancelled.
    """
    if match.status != MatchStatus.FINALIZED or match.winner_team_id is None:
        return []
    winner_id = match.winner_team_id
    loser_id = loser_team_id(match)
    updated: List[str] = []

    if is_grand_final(event, match):
        reset = event.matches[match.winner_next_match_id]
        if winner_id == match.team1_id:
            reset.status = MatchStatus.CANCELLED
            reset.clear_placement()
            logger.debug("Grand final %s won by winners-bracket champion; reset %s cancelled", match.id, reset.id)
        else:
            reset.team1 = TeamSlot.resolved(winner_id)
            reset.team2 = TeamSlot.resolved(loser_id)
        return [reset.id]

    winner_next = event.matches.get(match.winner_next_match_id or "")
    if winner_next is not None and _fill_pending_slot(winner_next, match.id, winner_id):
        updated.append(winner_next.id)

    loser_next = event.matches.get(match.loser_next_match_id or "")
    if loser_next is not None and loser_id is not None and _fill_pending_slot(loser_next, match.id, loser_id):
        if loser_next.id not in updated:
            updated.append(loser_next.id)

    return updated


def descendant_ids(event: Competition, match_ids: List[str]) -> List[str]:
    """match_ids plus every match reachable through winner/loser pointers, in BFS order"""
    seen: List[str] = []
    queue = list(match_ids)
    while queue:
        current = queue.pop(0)
        if current in seen or current not in event.matches:
            continue
        seen.append(current)
        m = event.matches[current]
        for nxt in (m.winner_next_match_id, m.loser_next_match_id):
            if nxt is not None and nxt not in seen:
                queue.append(nxt)
    return seen
