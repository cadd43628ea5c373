"""
Round-robin pairing (circle method).

Position 0 stays fixed and the remaining positions rotate one step per round,
so every team plays at most once per round. Odd team counts get a BYE position
and the team drawn against it sits out that round.
"""
from typing import List, Optional, Sequence, Tuple

Pairing = Tuple[int, int, str, str]  # (round_number, sequence_in_round, home_id, away_id)


def circle_rounds(team_ids: Sequence[str]) -> List[List[Tuple[str, str]]]:
    """One full cycle of rounds; each round is a list of (home, away) pairs"""
    positions: List[Optional[str]] = list(team_ids)
    if len(positions) < 2:
        return []
    if len(positions) % 2 == 1:
        positions.append(None)  # BYE

    n = len(positions)
    half = n // 2
    rounds: List[List[Tuple[str, str]]] = []

    for round_idx in range(n - 1):
        pairs: List[Tuple[str, str]] = []
        for i in range(half):
            a = positions[i]
            b = positions[n - 1 - i]
            if a is None or b is None:
                continue
            # Fixed team plays away on odd rounds
            if i == 0 and round_idx % 2 == 1:
                a, b = b, a
            pairs.append((a, b))
        rounds.append(pairs)
        # Rotate: keep 0, move last to second, shift others
        positions = [positions[0]] + [positions[-1]] + positions[1:-1]

    return rounds


def round_robin_pairings(team_ids: Sequence[str], games_per_opponent: int = 1) -> List[Pairing]:
    """
    Every pairing for games_per_opponent cycles.

    Round numbers are global across cycles; home/away is swapped on odd cycles.
    """
    base = circle_rounds(team_ids)
    result: List[Pairing] = []
    round_number = 0
    for cycle in range(max(games_per_opponent, 1)):
        for pairs in base:
            round_number += 1
            for seq, (home, away) in enumerate(pairs, start=1):
                if cycle % 2 == 1:
                    home, away = away, home
                result.append((round_number, seq, home, away))
    return result
