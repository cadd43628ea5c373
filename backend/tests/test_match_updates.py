"""
Tests for match edits, finalize, advancement and finalize-triggered rescheduling.
"""

from datetime import datetime

import pytest

from event_scheduler.errors import (
    AutoRescheduleEndLimitError,
    MatchNotFoundError,
    MatchUpdateConflictError,
    MatchUpdateValidationError,
    ScheduleWindowExceededError,
)
from event_scheduler.models import MatchStatus, MatchUpdate, SlotState, Team
from event_scheduler.services.match_updates import update_match, update_matches
from event_scheduler.services.schedule_orchestrator import schedule_event
from tests.factories import make_league, make_referees, make_tournament, saturday_slot, team1_wins, team2_wins

CLEAR_PLACEMENT = MatchUpdate(field_id=None, start=None, end=None)


def _scheduled(event):
    schedule_event(event)
    return event, {m.match_number: m for m in event.matches.values()}


# ============================================================================
# Edits
# ============================================================================


class TestEdits:
    def test_move_to_free_time(self):
        event, matches = _scheduled(make_tournament(team_count=4))

        result = update_match(event, matches[3].id, MatchUpdate(start=datetime(2026, 3, 7, 14, 0)))

        assert result.match.start == datetime(2026, 3, 7, 14, 0)
        assert result.match.end == datetime(2026, 3, 7, 15, 0)
        assert result.finalized is False

    def test_field_overlap_is_rejected(self):
        event, matches = _scheduled(make_tournament(team_count=4))
        before = (matches[3].start, matches[3].end)

        with pytest.raises(MatchUpdateConflictError) as exc_info:
            update_match(event, matches[3].id, MatchUpdate(start=datetime(2026, 3, 7, 9, 30)))

        assert matches[1].id in exc_info.value.match_ids
        assert (matches[3].start, matches[3].end) == before

    def test_buffer_counts_as_occupied(self):
        event, matches = _scheduled(make_tournament(team_count=4))
        # Match 1 ends 10:00 and holds the field until 10:05
        with pytest.raises(MatchUpdateConflictError):
            update_match(
                event,
                matches[2].id,
                MatchUpdate(start=datetime(2026, 3, 7, 10, 0), end=datetime(2026, 3, 7, 11, 0)),
            )

    def test_team_overlap_on_another_field(self):
        event, matches = _scheduled(make_tournament(team_count=4, field_count=2))

        with pytest.raises(MatchUpdateConflictError, match="team"):
            update_match(event, matches[2].id, MatchUpdate(team1_id="T1"))

    def test_referee_overlap_is_rejected(self):
        event, matches = _scheduled(make_tournament(team_count=4, field_count=2, referees=make_referees(2)))
        assert matches[1].start == matches[2].start

        with pytest.raises(MatchUpdateConflictError) as exc_info:
            update_match(event, matches[2].id, MatchUpdate(referee_id=matches[1].referee_id))
        assert exc_info.value.match_ids == [matches[1].id]

    def test_referee_can_be_cleared(self):
        event, matches = _scheduled(make_tournament(team_count=4, referees=make_referees(1)))

        result = update_match(event, matches[1].id, MatchUpdate(referee_id=None))
        assert result.match.referee_id is None

    def test_unknown_referee(self):
        event, matches = _scheduled(make_tournament(team_count=4))
        with pytest.raises(MatchUpdateValidationError):
            update_match(event, matches[1].id, MatchUpdate(referee_id="nobody"))

    def test_outside_event_window(self):
        event, matches = _scheduled(make_tournament(team_count=4))
        with pytest.raises(MatchUpdateConflictError, match="event start/end"):
            update_match(event, matches[3].id, MatchUpdate(start=datetime(2026, 3, 7, 17, 30)))

    def test_outside_time_slot(self):
        event, matches = _scheduled(make_league(team_count=4))
        sunday = datetime(2026, 3, 8, 10, 0)
        with pytest.raises(MatchUpdateConflictError, match="time slot"):
            update_match(event, matches[6].id, MatchUpdate(start=sunday))

    def test_ineligible_field(self):
        event, matches = _scheduled(make_tournament(team_count=4, field_count=2))
        event.fields["F2"].eligible_division_ids = ["OTHER"]
        with pytest.raises(MatchUpdateConflictError, match="not available"):
            update_match(event, matches[3].id, MatchUpdate(field_id="F2"))

    def test_partial_placement_is_rejected(self):
        event, matches = _scheduled(make_tournament(team_count=4))
        with pytest.raises(MatchUpdateValidationError):
            update_match(event, matches[3].id, MatchUpdate(field_id=None))

    def test_team_from_other_division(self):
        event, matches = _scheduled(make_tournament(team_count=4))
        event.teams["X1"] = Team(id="X1", name="Guest", division_id="OTHER")
        with pytest.raises(MatchUpdateValidationError):
            update_match(event, matches[1].id, MatchUpdate(team2_id="X1"))

    def test_clearing_a_team_restores_pending_slot(self):
        event, matches = _scheduled(make_tournament(team_count=4))
        final = matches[3]
        update_match(event, final.id, MatchUpdate(team1_id="T1"))
        assert final.team1_id == "T1"

        update_match(event, final.id, MatchUpdate(team1_id=None))
        assert final.team1.state == SlotState.PENDING_PREDECESSOR
        assert final.team1.match_id == matches[1].id

    def test_unknown_match(self):
        event, _ = _scheduled(make_tournament(team_count=4))
        with pytest.raises(MatchNotFoundError):
            update_match(event, "missing", MatchUpdate(locked=True))


# ============================================================================
# Finalize
# ============================================================================


class TestFinalize:
    def test_result_advances_winner_and_updates_records(self):
        event, matches = _scheduled(make_tournament(team_count=4))

        result = update_match(event, matches[1].id, team2_wins())

        assert result.finalized
        assert matches[1].status == MatchStatus.FINALIZED
        assert matches[1].winner_team_id == "T4"
        assert result.advanced_match_ids == [matches[3].id]
        assert matches[3].team1_id == "T4"
        assert event.teams["T4"].wins == 1
        assert event.teams["T1"].losses == 1

    def test_finalized_match_is_read_only(self):
        event, matches = _scheduled(make_tournament(team_count=4))
        update_match(event, matches[1].id, team1_wins())

        with pytest.raises(MatchUpdateValidationError):
            update_match(event, matches[1].id, MatchUpdate(start=datetime(2026, 3, 7, 13, 0)))
        with pytest.raises(MatchUpdateValidationError):
            update_match(event, matches[1].id, team1_wins())

        result = update_match(event, matches[1].id, MatchUpdate(locked=True))
        assert result.match.locked

    def test_cannot_finalize_before_teams_are_known(self):
        event, matches = _scheduled(make_tournament(team_count=4))
        with pytest.raises(MatchUpdateValidationError):
            update_match(event, matches[3].id, team1_wins())
        assert matches[3].status == MatchStatus.SCHEDULED

    def test_finalize_without_result(self):
        event, matches = _scheduled(make_tournament(team_count=4))
        with pytest.raises(MatchUpdateValidationError):
            update_match(event, matches[1].id, MatchUpdate(finalize=True))

    def test_bracket_draw_is_rejected(self):
        event, matches = _scheduled(make_tournament(team_count=4))
        with pytest.raises(MatchUpdateValidationError, match="needs a winner"):
            update_match(event, matches[1].id, MatchUpdate(team1_points=[21], team2_points=[21], finalize=True))
        assert matches[1].status == MatchStatus.SCHEDULED

    def test_league_draw_is_allowed(self):
        event, matches = _scheduled(make_league(team_count=4))

        result = update_match(event, matches[1].id, MatchUpdate(team1_points=[21], team2_points=[21], finalize=True))

        assert result.finalized
        assert matches[1].winner_team_id is None
        assert event.teams["T1"].wins == 0 and event.teams["T1"].losses == 0

    def test_sets_decide_before_points(self):
        event, matches = _scheduled(make_tournament(team_count=4))
        update = MatchUpdate(team1_points=[25, 10, 15], team2_points=[10, 25, 17], finalize=True)

        update_match(event, matches[1].id, update)

        assert matches[1].winner_team_id == matches[1].team2_id

    def test_null_result_fields_are_rejected(self):
        event, matches = _scheduled(make_tournament(team_count=4))
        update = MatchUpdate(team1_points=None, team2_points=[21], set_results=None, finalize=True)

        with pytest.raises(MatchUpdateValidationError, match="team1_points, set_results cannot be null"):
            update_match(event, matches[1].id, update)

        assert matches[1].status == MatchStatus.SCHEDULED
        assert matches[1].team2_points != [21]

    def test_null_lock_is_rejected(self):
        event, matches = _scheduled(make_tournament(team_count=4))
        with pytest.raises(MatchUpdateValidationError):
            update_match(event, matches[1].id, MatchUpdate(locked=None))
        assert matches[1].locked is False


class TestScenarioD:
    """Finalizing semifinals fills and places an unplaced final"""

    def test_unplaced_final_is_packed_after_both_semifinals(self):
        event, matches = _scheduled(make_tournament(team_count=4))
        final = matches[3]
        update_match(event, final.id, CLEAR_PLACEMENT)
        assert not final.is_placed

        result = update_match(event, matches[1].id, team1_wins())

        assert result.rescheduled_match_ids == [final.id]
        assert final.team1_id == "T1"
        assert final.team2.state == SlotState.PENDING_PREDECESSOR
        assert final.start == matches[2].occupied_until
        assert final.start == datetime(2026, 3, 7, 11, 10)

        result = update_match(event, matches[2].id, team1_wins())

        assert result.rescheduled_match_ids == []
        assert final.team2_id == "T2"
        assert final.start == datetime(2026, 3, 7, 11, 10)

    def test_current_time_is_a_lower_bound(self):
        event, matches = _scheduled(make_tournament(team_count=4))
        final = matches[3]
        update_match(event, final.id, CLEAR_PLACEMENT)

        update_match(event, matches[1].id, team1_wins(), current_time=datetime(2026, 3, 7, 13, 1))

        assert final.start == datetime(2026, 3, 7, 13, 5)


class TestScenarioE:
    """Finalize succeeds even when the follow-up re-pack runs past the end"""

    def test_end_limit_error_keeps_recorded_result(self):
        event, matches = _scheduled(make_tournament(team_count=4, end=datetime(2026, 3, 7, 12, 10)))
        final = matches[3]
        update_match(event, final.id, CLEAR_PLACEMENT)

        with pytest.raises(AutoRescheduleEndLimitError) as exc_info:
            update_match(event, matches[1].id, team1_wins(), current_time=datetime(2026, 3, 7, 11, 30))

        error = exc_info.value
        assert isinstance(error, ScheduleWindowExceededError)
        assert error.code == "AUTO_RESCHEDULE_END_LIMIT"
        assert error.finalized_match_id == matches[1].id
        assert error.match_id == final.id
        assert "No available time slots remaining for scheduling" in str(error)

        assert matches[1].status == MatchStatus.FINALIZED
        assert final.team1_id == "T1"
        assert not final.is_placed


class TestGrandFinal:
    def _play_to_grand_final(self):
        event, matches = _scheduled(
            make_tournament(team_count=2, double_elimination=True, referees=make_referees(1))
        )
        update_match(event, matches[1].id, team1_wins())
        return event, matches

    def test_first_meeting_feeds_both_teams_forward(self):
        event, matches = self._play_to_grand_final()
        assert (matches[2].team1_id, matches[2].team2_id) == ("T1", "T2")
        assert matches[3].status == MatchStatus.SCHEDULED

    def test_reset_cancelled_when_winners_champion_wins(self):
        event, matches = self._play_to_grand_final()

        result = update_match(event, matches[2].id, team1_wins())

        reset = matches[3]
        assert result.advanced_match_ids == [reset.id]
        assert reset.status == MatchStatus.CANCELLED
        assert not reset.is_placed
        assert result.rescheduled_match_ids == []

    def test_reset_played_when_losers_champion_wins(self):
        event, matches = self._play_to_grand_final()

        update_match(event, matches[2].id, team2_wins())

        reset = matches[3]
        assert reset.status == MatchStatus.SCHEDULED
        assert (reset.team1_id, reset.team2_id) == ("T2", "T1")
        assert reset.is_placed


class TestLeaguePlayoffs:
    def test_playoffs_generated_after_regular_season(self):
        league = make_league(team_count=4, include_playoffs=True, playoff_team_count=2)
        event, matches = _scheduled(league)
        regular = sorted(matches.values(), key=lambda m: m.match_number)

        result = None
        for match in regular:
            result = update_match(event, match.id, team1_wins())
            if match is not regular[-1]:
                assert result.playoff_match_ids == []

        assert len(result.playoff_match_ids) == 1
        playoff = event.matches[result.playoff_match_ids[0]]
        assert playoff.is_playoff
        assert playoff.match_number == 7
        assert playoff.teams_resolved
        assert playoff.is_placed
        assert playoff.start >= max(m.occupied_until for m in regular)
        assert result.rescheduled_match_ids == [playoff.id]

    def test_playoffs_wait_for_a_late_regular_season_match(self):
        league = make_league(
            team_count=4,
            include_playoffs=True,
            playoff_team_count=2,
            time_slots=[saturday_slot("S1", 9 * 60, 10 * 60 + 5)],
        )
        event, matches = _scheduled(league)
        update_match(event, matches[1].id, MatchUpdate(start=datetime(2026, 5, 2, 9, 0)))

        for number in sorted(matches):
            result = update_match(event, matches[number].id, team1_wins())

        playoff = event.matches[result.playoff_match_ids[0]]
        # Match 1 freed the 2026-03-07 slot, but the season now ends 2026-05-02
        assert playoff.start == datetime(2026, 5, 9, 9, 0)
        assert playoff.start >= max(m.occupied_until for m in matches.values())

    def test_no_playoffs_when_disabled(self):
        event, matches = _scheduled(make_league(team_count=4))
        for match in sorted(matches.values(), key=lambda m: m.match_number):
            result = update_match(event, match.id, team1_wins())
        assert result.playoff_match_ids == []
        assert len(event.matches) == 6


# ============================================================================
# Bulk
# ============================================================================


class TestBulkUpdates:
    def test_all_updates_applied(self):
        event, matches = _scheduled(make_tournament(team_count=4, referees=make_referees(2)))

        updated = update_matches(
            event,
            [
                (matches[1].id, MatchUpdate(locked=True)),
                (matches[3].id, MatchUpdate(start=datetime(2026, 3, 7, 15, 0))),
            ],
        )

        assert [m.id for m in updated] == [matches[1].id, matches[3].id]
        assert event.matches[matches[1].id].locked
        assert event.matches[matches[3].id].start == datetime(2026, 3, 7, 15, 0)

    def test_later_updates_see_earlier_ones(self):
        event, matches = _scheduled(make_tournament(team_count=4))

        update_matches(
            event,
            [
                (matches[3].id, MatchUpdate(start=datetime(2026, 3, 7, 15, 0))),
                (matches[2].id, MatchUpdate(start=datetime(2026, 3, 7, 11, 10))),
            ],
        )

        assert event.matches[matches[2].id].start == datetime(2026, 3, 7, 11, 10)

    def test_one_failure_rolls_back_everything(self):
        event, matches = _scheduled(make_tournament(team_count=4))
        before = {mid: (m.start, m.locked) for mid, m in event.matches.items()}

        with pytest.raises(MatchUpdateConflictError):
            update_matches(
                event,
                [
                    (matches[1].id, MatchUpdate(locked=True)),
                    (matches[3].id, MatchUpdate(start=datetime(2026, 3, 7, 9, 0))),
                ],
            )

        assert {mid: (m.start, m.locked) for mid, m in event.matches.items()} == before

    def test_finalize_not_allowed(self):
        event, matches = _scheduled(make_tournament(team_count=4))
        with pytest.raises(MatchUpdateValidationError, match="bulk"):
            update_matches(event, [(matches[1].id, team1_wins())])
        assert matches[1].status == MatchStatus.SCHEDULED
