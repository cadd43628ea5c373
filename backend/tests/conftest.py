import pytest
from fastapi.testclient import TestClient

from event_scheduler.main import app
from tests.factories import make_league, make_tournament


@pytest.fixture(name="client")
def client_fixture():
    """Provide a test client for the stateless scheduling API"""
    with TestClient(app) as client:
        yield client


@pytest.fixture(name="tournament")
def tournament_fixture():
    """8-team single elimination, one field, Saturday 09:00-18:00"""
    return make_tournament(team_count=8, field_count=1)


@pytest.fixture(name="league")
def league_fixture():
    """4-team round robin on one field, weekly Saturday slot"""
    return make_league(team_count=4, field_count=1)
