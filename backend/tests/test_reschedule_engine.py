"""
Tests for reschedule preserving locks.
"""

from datetime import datetime

import pytest

from event_scheduler.errors import ScheduleConfigurationError, ScheduleWindowExceededError
from event_scheduler.models import MatchStatus, PlayingField, Team
from event_scheduler.services.reschedule_engine import (
    LOCKED_MATCH_CONFLICT,
    LOCKED_MATCH_FIELD_INELIGIBLE,
    LOCKED_MATCH_OUTSIDE_WINDOW,
    reschedule_preserving_locks,
)
from event_scheduler.services.schedule_invariants import verify_schedule
from event_scheduler.services.schedule_orchestrator import schedule_event
from tests.factories import make_league, make_tournament, saturday_slot


def _scheduled(**kwargs):
    event = make_tournament(**kwargs)
    schedule_event(event)
    return event, {m.match_number: m for m in event.matches.values()}


def _placement(match):
    return (match.field_id, match.start, match.end)


class TestScenarioC:
    """Shrinking the event end past locked matches keeps them and warns"""

    def test_locked_matches_outside_new_end_are_preserved(self):
        event, matches = _scheduled(team_count=4)
        assert matches[2].start == datetime(2026, 3, 7, 10, 5)
        assert matches[3].start == datetime(2026, 3, 7, 11, 10)
        matches[2].locked = True
        matches[3].locked = True
        before = {n: _placement(matches[n]) for n in (2, 3)}

        event.end = datetime(2026, 3, 7, 11, 0)
        result = reschedule_preserving_locks(event)

        by_number = {m.match_number: m for m in result.matches}
        assert by_number[1].start == datetime(2026, 3, 7, 9, 0)
        assert _placement(by_number[2]) == before[2]
        assert _placement(by_number[3]) == before[3]

        assert [w.code for w in result.warnings] == [LOCKED_MATCH_OUTSIDE_WINDOW]
        warning = result.warnings[0]
        assert warning.match_ids == [matches[2].id, matches[3].id]
        assert warning.message == (
            "Locked matches are outside the updated start/time-slot window and were preserved."
        )

    def test_single_locked_match_uses_singular_message(self):
        event, matches = _scheduled(team_count=4)
        matches[3].locked = True

        event.end = datetime(2026, 3, 7, 11, 5)
        result = reschedule_preserving_locks(event)

        assert len(result.warnings) == 1
        assert result.warnings[0].match_ids == [matches[3].id]
        assert result.warnings[0].message == (
            "Locked match is outside the updated start/time-slot window and was preserved."
        )

    def test_free_successor_of_late_locked_match_exceeds_window(self):
        event, matches = _scheduled(team_count=4)
        matches[1].locked = True
        matches[2].locked = True
        final_before = _placement(matches[3])

        event.end = datetime(2026, 3, 7, 11, 0)
        with pytest.raises(ScheduleWindowExceededError):
            reschedule_preserving_locks(event)

        assert _placement(event.matches[matches[3].id]) == final_before


def test_locked_match_never_moves_and_ids_are_stable():
    event, matches = _scheduled(team_count=8)
    matches[3].locked = True
    locked_before = _placement(matches[3])
    ids_before = set(event.matches)

    event.fields["F2"] = PlayingField(id="F2", field_number=2, name="Field 2")
    result = reschedule_preserving_locks(event)

    assert set(event.matches) == ids_before
    assert _placement(event.matches[matches[3].id]) == locked_before
    assert result.warnings == []
    assert {m.field_id for m in result.matches} == {"F1", "F2"}
    assert verify_schedule(event).ok


def test_free_matches_follow_new_time_slots():
    league = make_league(team_count=4)
    schedule_event(league)
    first = min(league.matches.values(), key=lambda m: m.match_number)
    first.status = MatchStatus.FINALIZED
    first.team1_points, first.team2_points = [21], [10]
    first.winner_team_id = first.team1_id
    first_before = _placement(first)

    league.time_slots = [saturday_slot("late", 10 * 60, 18 * 60)]
    result = reschedule_preserving_locks(league)

    assert _placement(league.matches[first.id]) == first_before
    assert result.warnings == []
    for match in result.matches:
        if match.id != first.id:
            assert match.start >= datetime(2026, 3, 7, 10, 0)


class TestLockWarnings:
    def test_field_no_longer_eligible(self):
        event, matches = _scheduled(team_count=4, field_count=2)
        assert matches[2].field_id == "F2"
        matches[2].locked = True

        event.fields["F2"].eligible_division_ids = ["OTHER"]
        result = reschedule_preserving_locks(event)

        assert [w.code for w in result.warnings] == [LOCKED_MATCH_FIELD_INELIGIBLE]
        assert result.warnings[0].match_ids == [matches[2].id]
        assert event.matches[matches[1].id].field_id == "F1"
        assert event.matches[matches[3].id].field_id == "F1"

    def test_removed_field(self):
        event, matches = _scheduled(team_count=4, field_count=2)
        matches[2].locked = True

        del event.fields["F2"]
        result = reschedule_preserving_locks(event)

        assert [w.code for w in result.warnings] == [LOCKED_MATCH_FIELD_INELIGIBLE]
        assert event.matches[matches[2].id].field_id == "F2"

    def test_overlapping_locked_matches(self):
        event, matches = _scheduled(team_count=4)
        matches[1].locked = True
        matches[2].locked = True
        matches[2].start = datetime(2026, 3, 7, 9, 30)
        matches[2].end = datetime(2026, 3, 7, 10, 30)

        result = reschedule_preserving_locks(event)

        assert [w.code for w in result.warnings] == [LOCKED_MATCH_CONFLICT]
        assert result.warnings[0].match_ids == [matches[1].id, matches[2].id]
        assert event.matches[matches[3].id].start == datetime(2026, 3, 7, 10, 35)


class TestCompositionChange:
    def test_added_team_rebuilds_division(self):
        event, matches = _scheduled(team_count=4)
        kept_ids = {matches[n].id for n in (1, 2, 3)}

        event.teams["T5"] = Team(id="T5", name="Team T5", seed=5)
        result = reschedule_preserving_locks(event)

        assert len(result.matches) == 4
        assert kept_ids <= set(event.matches)
        assert any("T5" in m.team_ids for m in result.matches)
        assert all(m.is_placed for m in result.matches)

    def test_rebuild_blocked_by_locked_match(self):
        event, matches = _scheduled(team_count=4)
        matches[1].locked = True

        event.teams["T5"] = Team(id="T5", name="Team T5", seed=5)
        with pytest.raises(ScheduleConfigurationError, match="locked or finalized"):
            reschedule_preserving_locks(event)

        assert len(event.matches) == 3


def test_reschedule_rejects_missing_end():
    event, _ = _scheduled(team_count=4)
    event.end = None
    with pytest.raises(ScheduleConfigurationError):
        reschedule_preserving_locks(event)
