from datetime import datetime, timedelta
from typing import Optional

from event_scheduler.config import (
    DEFAULT_MATCH_MINUTES,
    REST_PER_SET_MINUTES,
    SET_MINUTES,
    SLOT_GRANULARITY_MINUTES,
)
from event_scheduler.models.event import Competition


def set_count(event: Competition, losers_bracket: bool = False) -> int:
    if event.is_league:
        return max(getattr(event, "sets_per_match", 1) or 1, 1)
    if losers_bracket:
        return max(getattr(event, "loser_set_count", 1) or 1, 1)
    return max(getattr(event, "winner_set_count", 1) or 1, 1)


def rest_multiplier(event: Competition, losers_bracket: bool = False) -> int:
    # Leagues scale rest by sets only when they play sets; tournaments always do
    if event.is_league and not event.uses_sets:
        return 1
    return set_count(event, losers_bracket)


def match_duration_minutes(event: Competition, losers_bracket: bool = False) -> int:
    """
    Set-based duration when the event plays sets, else the configured match length.
    Without either, tournament matches run SET_MINUTES per set and league matches
    DEFAULT_MATCH_MINUTES.
    """
    sets = set_count(event, losers_bracket)
    if event.uses_sets:
        per_set = event.set_duration_minutes or SET_MINUTES
        return per_set * sets
    if event.match_duration_minutes:
        return event.match_duration_minutes
    if event.is_league:
        return DEFAULT_MATCH_MINUTES
    return SET_MINUTES * sets


def match_buffer_ms(event: Competition, losers_bracket: bool = False) -> int:
    """Rest after a match: rest_time_minutes when positive, else a fixed rest per set"""
    if event.rest_time_minutes and event.rest_time_minutes > 0:
        return event.rest_time_minutes * 60_000
    return REST_PER_SET_MINUTES * max(rest_multiplier(event, losers_bracket), 1) * 60_000


def round_up(value: datetime, minutes: Optional[int] = None) -> datetime:
    """Round up to the packer's slot granularity"""
    step = minutes or SLOT_GRANULARITY_MINUTES
    floored = value.replace(second=0, microsecond=0)
    floored -= timedelta(minutes=floored.minute % step)
    if floored < value:
        floored += timedelta(minutes=step)
    return floored
