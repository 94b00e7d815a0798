import os
import sys

import httpx
import pytest
import requests
from fastapi.testclient import TestClient

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from client import TrackerClient
from rest_api import TrackerAPI


@pytest.fixture
def tracker(tmp_path, monkeypatch):
    api = TrackerAPI(str(tmp_path / "client.db"), str(tmp_path / "settings.yaml"))
    test_client = TestClient(api.app)
    for method in ("get", "post", "put", "delete"):
        monkeypatch.setattr(requests, method, getattr(test_client, method))
    user = api.users.add("alice")
    bench = api.lifts.add("Bench Press", "Chest")
    workout = api.workouts.create(user, "Push Day", [bench])
    client = TrackerClient(base_url="http://testserver", user_id=user)
    return client, workout, bench


def test_session_round_trip(tracker):
    client, workout, bench = tracker
    session = client.start_session(workout)
    assert client.active_session()["id"] == session["id"]
    detail = client.get_session(session["id"])
    assert detail["draft_sets"][0]["lift_id"] == bench

    sets = [{"lift_id": bench, "set_number": 1, "weight": 225, "reps": 5}]
    assert client.log_sets(session["id"], sets) == {"success": True}
    warnings = client.sanity_check(session["id"], [{"lift_id": bench, "weight": 1100, "reps": 5}])
    assert [w["code"] for w in warnings[0]["warnings"]] == ["implausible_weight"]
    summary = client.finish_session(session["id"], sets)
    assert summary["mass_moved"] == 1125
    assert client.active_session() is None

    history = client.lift_history(bench)
    assert history[0]["best_weight"] == 225
    assert client.rest_seconds(bench) == 90
    assert client.dashboard()["week_stats"]["total_sets"] == 1
    names = [c["name"] for c in client.leaderboard()]
    assert names[0] == "Bench Press"


def test_errors_raise(tracker):
    client, workout, _ = tracker
    client.start_session(workout)
    with pytest.raises(httpx.HTTPStatusError) as info:
        client.start_session(workout)
    assert info.value.response.status_code == 409


def test_abandon(tracker):
    client, workout, _ = tracker
    session = client.start_session(workout)
    client.abandon_session(session["id"])
    assert client.active_session() is None
