from typing import List


def bracket_size(team_count: int) -> int:
    """Smallest power of two that holds team_count entries"""
    size = 1
    while size < team_count:
        size *= 2
    return size


def seed_order(size: int) -> List[int]:
    """
    Standard bracket line order for a power-of-two size.

    Adjacent pairs are round-1 matchups, and the top seeds can only meet in
    the latest possible round:
        seed_order(8) == [1, 8, 4, 5, 2, 7, 3, 6]
    """
    if size < 1 or size & (size - 1):
        raise ValueError(f"Bracket size must be a power of two, got {size}")
    order = [1]
    while len(order) < size:
        total = len(order) * 2 + 1
        order = [s for seed in order for s in (seed, total - seed)]
    return order


def round_count(size: int) -> int:
    rounds = 0
    while size > 1:
        size //= 2
        rounds += 1
    return rounds
