"""
Tests for league standings.
"""

from event_scheduler.models import Match, MatchStatus, MatchUpdate, TeamSlot
from event_scheduler.services.match_updates import update_match
from event_scheduler.services.schedule_orchestrator import schedule_event
from event_scheduler.services.standings import compute_standings
from tests.factories import make_league, make_teams, team1_wins, team2_wins


def _league_with_matches(**kwargs):
    league = make_league(**kwargs)
    schedule_event(league)
    return league, {m.match_number: m for m in league.matches.values()}


def test_no_results_orders_by_seed(league):
    rows = compute_standings(league)
    assert [r.team_id for r in rows] == ["T1", "T2", "T3", "T4"]
    assert all(r.wins == 0 and r.losses == 0 for r in rows)


def test_unseeded_teams_sort_last():
    league = make_league(team_count=3)
    league.teams["T1"].seed = 0
    rows = compute_standings(league)
    assert [r.team_id for r in rows] == ["T2", "T3", "T1"]


def test_wins_losses_and_points():
    league, matches = _league_with_matches(team_count=4)
    update_match(league, matches[1].id, team2_wins())  # T4 beats T1 21-12
    update_match(league, matches[2].id, team1_wins())  # T2 beats T3 21-15

    rows = {r.team_id: r for r in compute_standings(league)}

    assert (rows["T4"].wins, rows["T4"].losses) == (1, 0)
    assert (rows["T1"].wins, rows["T1"].losses) == (0, 1)
    assert rows["T4"].points_for == 21
    assert rows["T4"].points_against == 12
    assert rows["T1"].point_differential == -9
    assert [r.team_id for r in compute_standings(league)] == ["T2", "T4", "T1", "T3"]


def test_draws_are_counted():
    league, matches = _league_with_matches(team_count=4)
    update_match(league, matches[1].id, MatchUpdate(team1_points=[18], team2_points=[18], finalize=True))

    rows = {r.team_id: r for r in compute_standings(league)}
    assert rows["T1"].draws == 1
    assert rows["T4"].draws == 1
    assert rows["T1"].wins == 0


def test_multi_set_points_are_summed():
    league, matches = _league_with_matches(team_count=4, sets_per_match=3, uses_sets=True)
    update = MatchUpdate(team1_points=[21, 19, 15], team2_points=[17, 21, 11], finalize=True)
    update_match(league, matches[1].id, update)

    row = next(r for r in compute_standings(league) if r.team_id == "T1")
    assert row.wins == 1
    assert row.points_for == 55
    assert row.points_against == 49


def test_playoff_and_unfinished_matches_are_ignored(league):
    league.matches["P1"] = Match(
        id="P1",
        match_number=99,
        division_id="OPEN",
        team1=TeamSlot.resolved("T3"),
        team2=TeamSlot.resolved("T4"),
        is_playoff=True,
        status=MatchStatus.FINALIZED,
        winner_team_id="T4",
        team1_points=[10],
        team2_points=[21],
    )
    league.matches["R1"] = Match(
        id="R1",
        match_number=1,
        division_id="OPEN",
        team1=TeamSlot.resolved("T1"),
        team2=TeamSlot.resolved("T2"),
        team1_points=[21],
        team2_points=[3],
    )

    rows = compute_standings(league)
    assert all(r.wins == 0 and r.points_for == 0 for r in rows)


def test_division_filter():
    teams = make_teams(2, division_id="A", prefix="A")
    teams.update(make_teams(2, division_id="B", prefix="B"))
    league = make_league(teams=teams)

    rows = compute_standings(league, "B")
    assert [r.team_id for r in rows] == ["B1", "B2"]
    assert rows[0].to_dict()["point_differential"] == 0
