import datetime
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from cli import backup_db, restore_db
from rest_api import TrackerAPI
from seed_sample_data import seed

NOW = datetime.datetime(2024, 5, 15, 12, tzinfo=datetime.timezone.utc)


def test_seed_builds_four_week_streak(tmp_path, capsys):
    db = str(tmp_path / "seed.db")
    yaml_path = str(tmp_path / "settings.yaml")
    seed(db, yaml_path, now=NOW)
    assert "Seed data inserted" in capsys.readouterr().out

    api = TrackerAPI(db, yaml_path, clock=lambda: NOW)
    jake = api.users.fetch_by_username("Jake")
    dashboard = api.statistics.dashboard(jake)
    assert dashboard["week_stats"]["week_streak"] == 4
    assert dashboard["quick_repeat"]["workout_name"] == "Leg Day"
    assert len(api.sessions.fetch_finished(jake)) == 12
    assert dashboard["body_weight"]["current"] < 185

    board = {c["name"]: c for c in api.leaderboard.leaderboard(jake)}
    assert board["Bench Press"]["entries"][0]["display_name"] == "Jake"
    assert board["Miles This Month"]["entries"][0]["value"] > 0

    seed(db, yaml_path, now=NOW)
    assert "already contains" in capsys.readouterr().out
    assert len(api.sessions.fetch_finished(jake)) == 12


def test_backup_and_restore(tmp_path):
    db = tmp_path / "live.db"
    backup = tmp_path / "backup.db"
    db.write_bytes(b"original")
    backup_db(str(db), str(backup))
    db.write_bytes(b"changed")
    restore_db(str(backup), str(db))
    assert db.read_bytes() == b"original"
