import argparse
import json
import logging
import shutil
import sys
import time

from config import default_db_path, default_settings_path
from db import SettingsRepository
from rest_timer import RestTimer, run_countdown

logger = logging.getLogger(__name__)


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)
    logger.info("Backed up %s to %s", db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)
    logger.info("Restored %s from %s", db_path, backup_path)


def _api(db_path: str, yaml_path: str):
    from rest_api import TrackerAPI

    return TrackerAPI(db_path=db_path, yaml_path=yaml_path)


def _user_id(api, username: str) -> int:
    user_id = api.users.fetch_by_username(username)
    if user_id is None:
        raise SystemExit(f"unknown user: {username}")
    return user_id


def show_dashboard(db_path: str, yaml_path: str, username: str) -> None:
    api = _api(db_path, yaml_path)
    data = api.statistics.dashboard(_user_id(api, username))
    print(json.dumps(data, indent=2))


def show_leaderboard(db_path: str, yaml_path: str, username: str) -> None:
    api = _api(db_path, yaml_path)
    for category in api.leaderboard.leaderboard(_user_id(api, username)):
        print(f"{category['name']} ({category['metric']})")
        if not category["entries"]:
            print("  no entries yet")
        for pos, entry in enumerate(category["entries"], start=1):
            marker = "*" if entry["is_current_user"] else " "
            print(f" {marker}{pos}. {entry['display_name']}: {entry['value']} {entry['unit']}")


def rest(lift_name: str, yaml_path: str, seconds: int | None = None) -> None:
    """Run a terminal countdown for the rest after a set of ``lift_name``."""
    settings = SettingsRepository(default_db_path(), yaml_path)
    timer = RestTimer(
        settings.get_int("compound_rest_seconds", 90),
        settings.get_int("isolation_rest_seconds", 60),
    )
    timer.start(lift_name, time.monotonic(), seconds)

    def show(remaining: float) -> None:
        sys.stdout.write(f"\rRest: {int(remaining):3d}s ")
        sys.stdout.flush()

    try:
        if run_countdown(timer, on_tick=show):
            print("\nRest over, next set!")
    except KeyboardInterrupt:
        timer.dismiss()
        print("\nRest skipped")


def serve(host: str, port: int) -> None:
    import uvicorn

    uvicorn.run("rest_api:app", host=host, port=port)


def main() -> None:
    parser = argparse.ArgumentParser(description="LiftLog utility commands")
    parser.add_argument("--log-level", default="WARNING")
    sub = parser.add_subparsers(dest="cmd", required=True)

    srv = sub.add_parser("serve")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)

    seed = sub.add_parser("seed")
    seed.add_argument("--db", default=default_db_path())
    seed.add_argument("--yaml", default=default_settings_path())

    dash = sub.add_parser("dashboard")
    dash.add_argument("--user", required=True)
    dash.add_argument("--db", default=default_db_path())
    dash.add_argument("--yaml", default=default_settings_path())

    board = sub.add_parser("leaderboard")
    board.add_argument("--user", required=True)
    board.add_argument("--db", default=default_db_path())
    board.add_argument("--yaml", default=default_settings_path())

    rst_timer = sub.add_parser("rest")
    rst_timer.add_argument("lift")
    rst_timer.add_argument("--seconds", type=int)
    rst_timer.add_argument("--yaml", default=default_settings_path())

    bkp = sub.add_parser("backup")
    bkp.add_argument("--db", default=default_db_path())
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")
    rst.add_argument("--db", default=default_db_path())

    args = parser.parse_args()
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.cmd == "serve":
        serve(args.host, args.port)
    elif args.cmd == "seed":
        from seed_sample_data import seed as seed_data

        seed_data(args.db, args.yaml)
    elif args.cmd == "dashboard":
        show_dashboard(args.db, args.yaml, args.user)
    elif args.cmd == "leaderboard":
        show_leaderboard(args.db, args.yaml, args.user)
    elif args.cmd == "rest":
        rest(args.lift, args.yaml, args.seconds)
    elif args.cmd == "backup":
        backup_db(args.db, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, args.db)


if __name__ == "__main__":
    main()
