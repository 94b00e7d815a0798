import datetime
import os
import sys
from types import SimpleNamespace

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import (
    BodyWeightRepository,
    LiftRepository,
    MovementRepository,
    SessionRepository,
    SettingsRepository,
    UserRepository,
    WorkoutRepository,
)
from exceptions import NotFoundError
from stats_service import StatisticsService, percent_change, week_streak

UTC = datetime.timezone.utc
NOW = datetime.datetime(2024, 5, 15, 12, 0, tzinfo=UTC)  # Wednesday


def at(year, month, day, hour=7):
    return datetime.datetime(year, month, day, hour, tzinfo=UTC)


# Mondays of the four weeks before the week of NOW
PAST_WEEKS = [at(2024, 4, 15), at(2024, 4, 22), at(2024, 4, 29), at(2024, 5, 6)]


@pytest.fixture
def env(tmp_path):
    db = str(tmp_path / "stats.db")
    settings = SettingsRepository(db, str(tmp_path / "settings.yaml"))
    users = UserRepository(db)
    lifts = LiftRepository(db)
    workouts = WorkoutRepository(db)
    sessions = SessionRepository(db)
    body_weights = BodyWeightRepository(db)
    movements = MovementRepository(db)
    alice = users.add("alice")
    bob = users.add("bob")
    bench = lifts.add("Bench Press", "Chest")
    pullup = lifts.add("Pull-Up", "Back", "bodyweight")
    plank = lifts.add("Plank", "Core", "endurance")
    private = lifts.add("Bob Curl", "Arms", is_global=False, owner_id=bob)
    workout = workouts.create(alice, "Upper", [bench, pullup, plank])
    stats = StatisticsService(
        sessions,
        workouts,
        lifts,
        settings,
        body_weights,
        movements,
        clock=lambda: NOW,
    )

    def finished(started, rows, minutes=50, user=alice, workout_id=workout):
        sid = sessions.create_active(user, workout_id, started)
        sessions.replace_sets(sid, rows, started + datetime.timedelta(minutes=minutes))
        return sid

    return SimpleNamespace(
        stats=stats,
        settings=settings,
        sessions=sessions,
        workouts=workouts,
        body_weights=body_weights,
        movements=movements,
        alice=alice,
        bob=bob,
        bench=bench,
        pullup=pullup,
        plank=plank,
        private=private,
        workout=workout,
        finished=finished,
    )


def test_streak_counts_back_from_last_week():
    assert week_streak(PAST_WEEKS, NOW) == 4
    assert week_streak(PAST_WEEKS + [at(2024, 5, 14)], NOW) == 5
    assert week_streak([], NOW) == 0
    assert week_streak([at(2024, 4, 29)], NOW) == 0


def test_gap_week_never_increases_streak():
    base = week_streak(PAST_WEEKS, NOW)
    for skipped in range(len(PAST_WEEKS)):
        remaining = PAST_WEEKS[:skipped] + PAST_WEEKS[skipped + 1:]
        assert week_streak(remaining, NOW) <= base
    assert week_streak(PAST_WEEKS[:3], NOW) == 0


def test_streak_several_sessions_in_one_week():
    moments = [at(2024, 5, 13), at(2024, 5, 14), at(2024, 5, 6)]
    assert week_streak(moments, NOW) == 2


def test_percent_change_sentinels():
    assert percent_change(5, 0) == "new"
    assert percent_change(0, 0) == "no data"
    assert percent_change(15, 10) == 50
    assert percent_change(5, 10) == -50
    assert percent_change(0, 10) == -100


def test_dashboard_streak_and_buckets(env):
    for monday in PAST_WEEKS:
        env.finished(monday, [(env.bench, 1, 100, 5, None)])
    dashboard = env.stats.dashboard(env.alice)
    assert dashboard["week_stats"]["week_streak"] == 4
    assert dashboard["week_stats"]["workouts_this_week"] == 0
    buckets = dashboard["consistency_buckets"]
    assert len(buckets) == 8
    assert [b["sessions"] for b in buckets] == [0, 0, 0, 1, 1, 1, 1, 0]
    assert buckets[-1]["label"] == "5/13"
    assert buckets[-1]["week_start"] == "2024-05-13"
    comparison = dashboard["week_comparison"]
    assert comparison["volume_change"] == -100
    assert comparison["workouts_last_week"] == 1
    assert dashboard["active_session"] is None
    assert dashboard["quick_repeat"] == {"workout_id": env.workout, "workout_name": "Upper"}
    # the newest session started nine days before NOW
    assert dashboard["recent_sessions"] == []


def test_week_comparison_counts_strength_volume_only(env):
    env.finished(at(2024, 5, 7), [(env.bench, 1, 100, 10, None)])
    env.finished(
        at(2024, 5, 13),
        [
            (env.bench, 1, 100, 10, None),
            (env.bench, 2, 100, 5, None),
            (env.pullup, 1, None, 12, None),
        ],
    )
    comparison = env.stats.week_comparison(env.alice)
    assert comparison["volume_change"] == 50
    assert comparison["sets_change"] == 200
    assert comparison["workouts_this_week"] == 1
    assert comparison["volume_this_week"] == 1500


def test_week_comparison_new_week(env):
    env.finished(at(2024, 5, 13), [(env.bench, 1, 100, 10, None)])
    comparison = env.stats.week_comparison(env.alice)
    assert comparison["volume_change"] == "new"
    assert comparison["sets_change"] == "new"


def test_recent_sessions_and_active(env):
    env.finished(at(2024, 5, 13), [(env.bench, 1, 100, 10, None)], minutes=42)
    active = env.sessions.create_active(env.alice, env.workout, at(2024, 5, 15, 11))
    dashboard = env.stats.dashboard(env.alice)
    recent = dashboard["recent_sessions"]
    assert len(recent) == 1
    assert recent[0]["workout_name"] == "Upper"
    assert recent[0]["duration"] == 42
    assert recent[0]["set_count"] == 1
    assert dashboard["active_session"] == {"id": active, "workout_name": "Upper"}
    assert dashboard["week_stats"]["total_sets"] == 1
    assert dashboard["week_stats"]["total_volume"] == 1000


def test_personal_records(env):
    env.finished(
        at(2024, 5, 1),
        [
            (env.bench, 1, 205, 3, None),
            (env.bench, 2, 225, 2, None),
            (env.bench, 3, 195, 5, None),
            (env.pullup, 1, None, 10, None),
            (env.plank, 1, None, None, 60),
        ],
    )
    env.finished(
        at(2024, 5, 8),
        [(env.pullup, 1, None, 10, None), (env.plank, 1, None, None, 45)],
    )
    records = {r["lift"]: r for r in env.stats.personal_records(env.alice)}
    assert (records["Bench Press"]["weight"], records["Bench Press"]["reps"]) == (225, 2)
    assert records["Pull-Up"]["date"] == "2024-05-08"
    assert records["Plank"]["duration_seconds"] == 60
    assert records["Plank"]["date"] == "2024-05-01"


def test_quick_repeat_after_workout_deleted(env):
    assert env.stats.quick_repeat(env.alice) is None
    env.finished(at(2024, 5, 13), [(env.bench, 1, 100, 5, None)])
    env.workouts.delete(env.workout)
    assert env.stats.quick_repeat(env.alice) is None


def test_lift_history_best_per_day(env):
    env.finished(at(2024, 5, 1, 7), [(env.bench, 1, 100, 8, None), (env.bench, 2, 120, 3, None)])
    env.finished(at(2024, 5, 1, 18), [(env.bench, 1, 130, 2, None)])
    env.finished(at(2024, 5, 3), [(env.bench, 1, 125, 5, None)])
    history = env.stats.lift_history(env.alice, env.bench)
    assert history == [
        {"date": "2024-05-01", "best_weight": 130.0, "best_reps": 8, "best_duration": 0},
        {"date": "2024-05-03", "best_weight": 125.0, "best_reps": 5, "best_duration": 0},
    ]


def test_lift_history_requires_visible_lift(env):
    with pytest.raises(NotFoundError):
        env.stats.lift_history(env.alice, env.private)
    with pytest.raises(NotFoundError):
        env.stats.lift_history(env.alice, 999)
    assert env.stats.lift_history(env.bob, env.private) == []


def test_body_weight_and_distance(env):
    env.body_weights.log(env.alice, "2024-05-01", 180.0)
    env.body_weights.log(env.alice, "2024-05-14", 178.0)
    env.movements.add(env.alice, "run", 3.1, "2024-05-13", 28)
    env.movements.add(env.alice, "walk", 1.2, "2024-05-15", 20)
    env.movements.add(env.alice, "run", 2.0, "2024-05-12", 20)
    dashboard = env.stats.dashboard(env.alice)
    assert dashboard["body_weight"] == {"current": 178.0, "date": "2024-05-14", "change": -2.0}
    assert dashboard["distance_this_week"] == 4.3
    assert env.stats.body_weight_summary(env.bob) is None


def test_buckets_follow_configured_timezone(env):
    env.settings.set_text("timezone", "America/New_York")
    # Monday 02:00 UTC is Sunday evening in New York
    env.finished(at(2024, 5, 13, 2), [(env.bench, 1, 100, 5, None)])
    buckets = env.stats.consistency_buckets(env.alice, weeks=2)
    assert [b["week_start"] for b in buckets] == ["2024-05-06", "2024-05-13"]
    assert [b["sessions"] for b in buckets] == [1, 0]
