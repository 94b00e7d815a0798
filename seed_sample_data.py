import datetime
import logging

from config import default_db_path, default_settings_path
from rest_api import TrackerAPI
from time_buckets import WEEK, utcnow, week_start

logger = logging.getLogger(__name__)

GLOBAL_LIFTS = [
    ("Bench Press", "Chest", "strength"),
    ("Incline Bench Press", "Chest", "strength"),
    ("Cable Fly", "Chest", "strength"),
    ("Dip", "Chest", "bodyweight"),
    ("Push-Up", "Chest", "bodyweight"),
    ("Overhead Press", "Shoulders", "strength"),
    ("Lateral Raise", "Shoulders", "strength"),
    ("Face Pull", "Shoulders", "strength"),
    ("Squat", "Legs", "strength"),
    ("Leg Press", "Legs", "strength"),
    ("Leg Curl", "Legs", "strength"),
    ("Leg Extension", "Legs", "strength"),
    ("Lunges", "Legs", "strength"),
    ("Calf Raise", "Legs", "strength"),
    ("Deadlift", "Back", "strength"),
    ("Romanian Deadlift", "Back", "strength"),
    ("Barbell Row", "Back", "strength"),
    ("Seated Row", "Back", "strength"),
    ("Lat Pulldown", "Back", "strength"),
    ("Pull-Up", "Back", "bodyweight"),
    ("Bicep Curl", "Arms", "strength"),
    ("Hammer Curl", "Arms", "strength"),
    ("Tricep Pushdown", "Arms", "strength"),
    ("Skull Crusher", "Arms", "strength"),
    ("Plank", "Core", "endurance"),
    ("Wall Sit", "Legs", "endurance"),
    ("Dead Hang", "Back", "endurance"),
]

# starting weight, starting reps, weight bump once reps pass the cap
PROGRESSION = {
    "Bench Press": (155, 6, 10),
    "Overhead Press": (95, 7, 5),
    "Tricep Pushdown": (50, 8, 5),
    "Lateral Raise": (20, 10, 5),
    "Deadlift": (225, 5, 10),
    "Barbell Row": (135, 7, 5),
    "Lat Pulldown": (120, 8, 10),
    "Bicep Curl": (30, 9, 5),
    "Squat": (185, 6, 10),
    "Leg Press": (270, 8, 20),
    "Lunges": (40, 8, 5),
    "Calf Raise": (135, 12, 10),
}

HEAVY = {"Bench Press", "Overhead Press", "Deadlift", "Barbell Row", "Squat", "Leg Press"}

WORKOUTS = [
    (0, "Push Day", ["Bench Press", "Overhead Press", "Tricep Pushdown", "Lateral Raise"]),
    (2, "Pull Day", ["Deadlift", "Barbell Row", "Lat Pulldown", "Bicep Curl"]),
    (4, "Leg Day", ["Squat", "Leg Press", "Lunges", "Calf Raise"]),
]

MOVEMENTS = [
    ("run", 3.1, 28, 25),
    ("walk", 1.5, 25, 23),
    ("run", 2.8, 26, 20),
    ("walk", 2.0, 35, 17),
    ("run", 3.5, 30, 14),
    ("run", 3.0, 27, 10),
    ("walk", 1.8, 30, 7),
    ("run", 4.0, 35, 5),
    ("walk", 2.2, 38, 3),
    ("run", 3.2, 28, 1),
]


def _sets_for(lift_name: str, lift_id: int, week: int) -> list:
    weight, base_reps, increment = PROGRESSION[lift_name]
    reps = base_reps + week
    cap = 15 if lift_name == "Calf Raise" else 10
    if reps > cap:
        weight += increment
        reps = base_reps
    heavy = lift_name in HEAVY
    count = (4 + (week >= 2)) if heavy else (3 + (week >= 3))
    rows = []
    for number in range(1, count + 1):
        last = number == count
        rows.append(
            (
                lift_id,
                number,
                weight - 5 if last and heavy else weight,
                max(reps - 2, 3) if last else reps,
                None,
            )
        )
    return rows


def seed(
    db_path: str | None = None,
    yaml_path: str | None = None,
    now: datetime.datetime | None = None,
) -> None:
    """Populate an empty database with two demo accounts and four weeks of data."""
    api = TrackerAPI(db_path or default_db_path(), yaml_path or default_settings_path())
    if api.users.fetch_by_username("Jake") is not None:
        print("Database already contains sample data")
        return
    now = now or utcnow()

    jake = api.users.add("Jake")
    api.users.add("Kate")
    lifts = {
        name: api.lifts.add(name, group, kind) for name, group, kind in GLOBAL_LIFTS
    }

    workouts = {
        name: api.workouts.create(jake, name, [lifts[n] for n in lift_names])
        for _day, name, lift_names in WORKOUTS
    }

    first_monday = week_start(now - datetime.timedelta(days=28))
    for week in range(4):
        for day, name, lift_names in WORKOUTS:
            workout_id = workouts[name]
            started = first_monday + WEEK * week + datetime.timedelta(days=day, hours=7)
            sid = api.sessions.create_active(jake, workout_id, started)
            rows = []
            for lift_name in lift_names:
                rows.extend(_sets_for(lift_name, lifts[lift_name], week))
            api.sessions.replace_sets(
                sid, rows, started + datetime.timedelta(minutes=50)
            )

    for i in range(12):
        date = first_monday + datetime.timedelta(days=i * 28 // 12)
        api.body_weights.log(jake, date.date().isoformat(), round(185 - 3 / 11 * i, 1))

    for kind, distance, minutes, days_ago in MOVEMENTS:
        date = (now - datetime.timedelta(days=days_ago)).date().isoformat()
        api.movements.add(jake, kind, distance, date, minutes)

    logger.info("Seeded %d lifts and 12 sessions", len(lifts))
    print("Seed data inserted")


if __name__ == "__main__":
    seed()
