"""
Elimination bracket construction.

Builds single and double elimination brackets for one division as Match records
with progression pointers wired and no placement.

Bracket positions follow standard seeding (seed_order). Every bracket position
is a node with two input sources; a source is a team, the winner of a node, the
loser of a node, or EMPTY (bye). A node with both inputs present becomes a real
match. A node with one EMPTY input is virtual: it creates no match and passes
the other input through, so a bye team lands RESOLVED in its next real match.
The same collapse applies to the losers bracket.

Double elimination:
- LB round 1 pairs winners-bracket round-1 losers.
- Each later WB round drops its losers into an LB drop-in round (order reversed
  on alternate rounds to avoid immediate rematches), followed by a
  consolidation round pairing LB winners, until one LB champion remains.
- Grand final: WB champion (left) vs LB champion (right). Its winner and loser
  both point at a reset match that is only played if the LB champion wins.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from event_scheduler.errors import ScheduleConfigurationError
from event_scheduler.models.event import Competition
from event_scheduler.models.match import Match, MatchSide, TeamSlot
from event_scheduler.utils.bracket_seeding import bracket_size, round_count, seed_order
from event_scheduler.utils.match_timing import match_buffer_ms, match_duration_minutes

SOURCE_TEAM = "team"
SOURCE_WINNER = "winner"
SOURCE_LOSER = "loser"

# (kind, ref): ("team", team_id) | ("winner", node_key) | ("loser", node_key); None = EMPTY
Source = Optional[Tuple[str, str]]


@dataclass
class BracketNode:
    key: str
    left: Tuple[str, str]
    right: Tuple[str, str]
    round_number: int
    sequence_in_round: int
    losers_bracket: bool = False


class BracketPlan:
    """Real matches of a bracket in creation order, before ids are assigned"""

    def __init__(self):
        self.nodes: List[BracketNode] = []

    def add(
        self,
        left: Source,
        right: Source,
        round_number: int,
        sequence_in_round: int,
        losers_bracket: bool = False,
    ) -> Tuple[Source, Source]:
        """Add a bracket position; returns its (winner, loser) output sources"""
        if left is None and right is None:
            return None, None
        if left is None or right is None:
            return (left if left is not None else right), None

        key = f"n{len(self.nodes)}"
        self.nodes.append(BracketNode(key, left, right, round_number, sequence_in_round, losers_bracket))
        return (SOURCE_WINNER, key), (SOURCE_LOSER, key)


def _pair_round(
    plan: BracketPlan,
    sources: Sequence[Source],
    round_number: int,
    losers_bracket: bool,
) -> Tuple[List[Source], List[Source]]:
    winners: List[Source] = []
    losers: List[Source] = []
    for i in range(0, len(sources), 2):
        winner, loser = plan.add(sources[i], sources[i + 1], round_number, i // 2 + 1, losers_bracket)
        winners.append(winner)
        losers.append(loser)
    return winners, losers


def plan_bracket(ranked_team_ids: Sequence[str], double_elimination: bool) -> BracketPlan:
    """Bracket topology for teams ranked best-first"""
    n = len(ranked_team_ids)
    if n < 2:
        raise ScheduleConfigurationError("An elimination bracket needs at least 2 teams")

    size = bracket_size(n)
    rounds = round_count(size)
    plan = BracketPlan()

    line: List[Source] = [
        (SOURCE_TEAM, ranked_team_ids[seed - 1]) if seed <= n else None for seed in seed_order(size)
    ]

    # Winners bracket
    wb_losers: List[List[Source]] = []
    current = line
    for round_number in range(1, rounds + 1):
        current, losers = _pair_round(plan, current, round_number, losers_bracket=False)
        wb_losers.append(losers)
    wb_champion = current[0]

    if not double_elimination:
        return plan

    # Losers bracket
    if rounds == 1:
        lb_champion = wb_losers[0][0]
    else:
        lb_round = 1
        lb_current, _ = _pair_round(plan, wb_losers[0], lb_round, losers_bracket=True)
        for wb_round in range(2, rounds + 1):
            drops = list(wb_losers[wb_round - 1])
            if wb_round % 2 == 0:
                drops.reverse()
            lb_round += 1
            merged: List[Source] = []
            for survivor, dropped in zip(lb_current, drops):
                merged.extend([survivor, dropped])
            lb_current, _ = _pair_round(plan, merged, lb_round, losers_bracket=True)
            if len(lb_current) > 1:
                lb_round += 1
                lb_current, _ = _pair_round(plan, lb_current, lb_round, losers_bracket=True)
        lb_champion = lb_current[0]

    final_winner, final_loser = plan.add(wb_champion, lb_champion, rounds + 1, 1)
    if final_winner is None or final_loser is None:
        raise ScheduleConfigurationError("Unable to build grand final for double elimination bracket")
    plan.add(final_winner, final_loser, rounds + 2, 1)
    return plan


def build_elimination_matches(
    event: Competition,
    division_id: str,
    ranked_team_ids: Sequence[str],
    double_elimination: bool = False,
    first_match_number: int = 1,
    is_playoff: bool = False,
    existing_ids: Optional[Dict[Tuple[str, int], str]] = None,
) -> List[Match]:
    """
    Materialize a bracket plan as wired, unplaced Match records.

    existing_ids maps (division_id, match_number) to an id to reuse so a rebuilt
    division keeps its match ids.
    """
    plan = plan_bracket(ranked_team_ids, double_elimination)
    existing_ids = existing_ids or {}

    matches: List[Match] = []
    by_key: Dict[str, Match] = {}
    for offset, node in enumerate(plan.nodes):
        number = first_match_number + offset
        match_id = existing_ids.get((division_id, number)) or make_match_id(event, division_id, number)
        match = Match(
            id=match_id,
            match_number=number,
            division_id=division_id,
            round_number=node.round_number,
            sequence_in_round=node.sequence_in_round,
            losers_bracket=node.losers_bracket,
            is_playoff=is_playoff,
            duration_minutes=match_duration_minutes(event, node.losers_bracket),
            buffer_ms=match_buffer_ms(event, node.losers_bracket),
        )
        matches.append(match)
        by_key[node.key] = match

    for node in plan.nodes:
        match = by_key[node.key]
        match.team1 = _wire_input(match, node.left, by_key, MatchSide.LEFT)
        match.team2 = _wire_input(match, node.right, by_key, MatchSide.RIGHT)

    return matches


def _wire_input(
    match: Match,
    source: Tuple[str, str],
    by_key: Dict[str, Match],
    side: MatchSide,
) -> TeamSlot:
    kind, ref = source
    if kind == SOURCE_TEAM:
        return TeamSlot.resolved(ref)

    predecessor = by_key[ref]
    if side == MatchSide.LEFT:
        match.previous_left_match_id = predecessor.id
    else:
        match.previous_right_match_id = predecessor.id

    if kind == SOURCE_WINNER:
        predecessor.winner_next_match_id = match.id
        predecessor.side = side
    else:
        predecessor.loser_next_match_id = match.id
    return TeamSlot.pending(predecessor.id)


def make_match_id(event: Competition, division_id: str, match_number: int) -> str:
    return f"{event.id}-{division_id}-{match_number}"
