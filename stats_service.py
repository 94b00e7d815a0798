from __future__ import annotations

import datetime
import logging
from typing import Callable, Dict, Iterable, List, Optional, Union

from db import (
    BodyWeightRepository,
    LiftRepository,
    MovementRepository,
    SessionRepository,
    SettingsRepository,
    WorkoutRepository,
)
from exceptions import NotFoundError
from time_buckets import (
    WEEK,
    day_key,
    in_range,
    parse_timestamp,
    utcnow,
    week_start,
    week_windows,
)

logger = logging.getLogger(__name__)

NEW = "new"
NO_DATA = "no data"


def week_streak(
    moments: Iterable[datetime.datetime],
    now: datetime.datetime,
    tz: str | None = None,
) -> int:
    """Return the number of consecutive weeks containing a session.

    Counting starts at the current week when it already has a session,
    otherwise at last week, so an unfinished week does not reset the streak.
    """
    weeks = {week_start(m, tz).date() for m in moments}
    if not weeks:
        return 0
    check = week_start(now, tz).date()
    if check not in weeks:
        check -= WEEK
    streak = 0
    while check in weeks:
        streak += 1
        check -= WEEK
    return streak


def percent_change(current: float, previous: float) -> Union[int, str]:
    """Return week-over-week change in percent, or a sentinel without a baseline."""
    if previous > 0:
        return round((current - previous) / previous * 100)
    if current > 0:
        return NEW
    return NO_DATA


class StatisticsService:
    """Compute dashboard statistics from a user's finished sessions."""

    def __init__(
        self,
        session_repo: SessionRepository,
        workout_repo: WorkoutRepository,
        lift_repo: LiftRepository,
        settings_repo: SettingsRepository | None = None,
        body_weight_repo: BodyWeightRepository | None = None,
        movement_repo: MovementRepository | None = None,
        clock: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self.sessions = session_repo
        self.workouts = workout_repo
        self.lifts = lift_repo
        self.settings = settings_repo
        self.body_weights = body_weight_repo
        self.movements = movement_repo
        self.clock = clock

    def _tz(self) -> str | None:
        if self.settings is None:
            return None
        return self.settings.get_text("timezone", "UTC")

    def _setting(self, key: str, default: int) -> int:
        if self.settings is None:
            return default
        return self.settings.get_int(key, default)

    def _finished(self, user_id: int) -> List[dict]:
        """Return finished sessions newest first with their set totals."""
        sessions: Dict[int, dict] = {}
        for sid, _uid, workout_id, started, finished in self.sessions.fetch_finished(
            user_id
        ):
            sessions[sid] = {
                "id": sid,
                "workout_id": workout_id,
                "started_at": parse_timestamp(started),
                "finished_at": parse_timestamp(finished),
                "set_count": 0,
                "mass_moved": 0.0,
            }
        for sid, _s, _lid, _name, kind, _num, weight, reps, _dur in self.sessions.fetch_finished_sets(
            user_id
        ):
            entry = sessions.get(sid)
            if entry is None:
                continue
            entry["set_count"] += 1
            if kind == "strength":
                entry["mass_moved"] += (weight or 0) * (reps or 0)
        return list(sessions.values())

    def week_streak(self, user_id: int, now: datetime.datetime | None = None) -> int:
        now = now or self.clock()
        return week_streak(
            (s["started_at"] for s in self._finished(user_id)), now, self._tz()
        )

    def _week_totals(self, sessions: List[dict], start, end) -> dict:
        selected = [s for s in sessions if in_range(s["started_at"], start, end)]
        return {
            "sessions": len(selected),
            "sets": sum(s["set_count"] for s in selected),
            "volume": sum(s["mass_moved"] for s in selected),
        }

    def week_comparison(
        self, user_id: int, now: datetime.datetime | None = None
    ) -> dict:
        """Compare the current week window with the previous one."""
        now = now or self.clock()
        return self._comparison(self._finished(user_id), now)

    def _comparison(self, sessions: List[dict], now: datetime.datetime) -> dict:
        start = week_start(now, self._tz())
        current = self._week_totals(sessions, start, start + WEEK)
        previous = self._week_totals(sessions, start - WEEK, start)
        return {
            "volume_change": percent_change(current["volume"], previous["volume"]),
            "sets_change": percent_change(current["sets"], previous["sets"]),
            "workouts_this_week": current["sessions"],
            "workouts_last_week": previous["sessions"],
            "sets_this_week": current["sets"],
            "volume_this_week": round(current["volume"]),
        }

    def consistency_buckets(
        self, user_id: int, now: datetime.datetime | None = None, weeks: int | None = None
    ) -> List[dict]:
        """Return session counts for recent week windows, oldest first."""
        now = now or self.clock()
        return self._buckets(self._finished(user_id), now, weeks)

    def _buckets(
        self, sessions: List[dict], now: datetime.datetime, weeks: int | None
    ) -> List[dict]:
        if weeks is None:
            weeks = self._setting("consistency_weeks", 8)
        buckets = []
        for start, end in week_windows(now, weeks, self._tz()):
            count = sum(1 for s in sessions if in_range(s["started_at"], start, end))
            buckets.append(
                {
                    "week_start": start.date().isoformat(),
                    "label": f"{start.month}/{start.day}",
                    "sessions": count,
                }
            )
        return buckets

    def personal_records(self, user_id: int) -> List[dict]:
        """Return the best set ever logged for each lift."""
        tz = self._tz()
        best: Dict[int, tuple] = {}
        records: Dict[int, dict] = {}
        # rows come oldest first, so ">=" lets the most recent tie win
        for sid, started, lift_id, name, kind, _num, weight, reps, duration in self.sessions.fetch_finished_sets(
            user_id
        ):
            if kind == "strength":
                key = (weight or 0, reps or 0)
            elif kind == "bodyweight":
                key = (reps or 0,)
            else:
                key = (duration or 0,)
            if not any(key):
                continue
            if lift_id not in best or key >= best[lift_id]:
                best[lift_id] = key
                records[lift_id] = {
                    "lift_id": lift_id,
                    "lift": name,
                    "kind": kind,
                    "weight": weight,
                    "reps": reps,
                    "duration_seconds": duration,
                    "date": day_key(parse_timestamp(started), tz),
                    "session_id": sid,
                }
        return sorted(records.values(), key=lambda r: r["lift"])

    def quick_repeat(self, user_id: int) -> Optional[dict]:
        """Return the workout of the last finished session if it still exists."""
        rows = self.sessions.fetch_finished(user_id)
        if not rows:
            return None
        workout_id = rows[0][2]
        workout = self.workouts.fetch_detail(workout_id)
        if workout is None or workout[1] != user_id:
            logger.debug("Quick repeat target %s is gone", workout_id)
            return None
        return {"workout_id": workout[0], "workout_name": workout[2]}

    def lift_history(self, user_id: int, lift_id: int) -> List[dict]:
        """Return one point per calendar day with the best value of each metric."""
        if self.lifts.fetch_visible(lift_id, user_id) is None:
            raise NotFoundError("lift not found")
        tz = self._tz()
        by_day: Dict[str, dict] = {}
        for _sid, started, _lid, _name, _kind, _num, weight, reps, duration in self.sessions.fetch_finished_sets(
            user_id, lift_id
        ):
            key = day_key(parse_timestamp(started), tz)
            point = by_day.setdefault(
                key, {"date": key, "best_weight": 0.0, "best_reps": 0, "best_duration": 0}
            )
            point["best_weight"] = max(point["best_weight"], float(weight or 0))
            point["best_reps"] = max(point["best_reps"], int(reps or 0))
            point["best_duration"] = max(point["best_duration"], int(duration or 0))
        return sorted(by_day.values(), key=lambda p: p["date"])

    def body_weight_summary(
        self, user_id: int, now: datetime.datetime | None = None
    ) -> Optional[dict]:
        if self.body_weights is None:
            return None
        now = now or self.clock()
        latest = self.body_weights.fetch_latest(user_id)
        if latest is None:
            return None
        cutoff = day_key(now - datetime.timedelta(days=7), self._tz())
        previous = self.body_weights.fetch_latest(user_id, before=cutoff)
        return {
            "current": latest[1],
            "date": latest[0],
            "change": round(latest[1] - previous[1], 1) if previous else None,
        }

    def distance_this_week(
        self, user_id: int, now: datetime.datetime | None = None
    ) -> float:
        if self.movements is None:
            return 0.0
        now = now or self.clock()
        start = week_start(now, self._tz())
        total = self.movements.total_for_user(
            user_id, start.date().isoformat(), (start + WEEK).date().isoformat()
        )
        return round(total, 1)

    def dashboard(self, user_id: int, now: datetime.datetime | None = None) -> dict:
        """Return every dashboard figure for ``user_id`` as of ``now``."""
        now = now or self.clock()
        tz = self._tz()
        sessions = self._finished(user_id)
        comparison = self._comparison(sessions, now)
        recent_cutoff = now - datetime.timedelta(days=self._setting("recent_session_days", 7))
        names = {}
        recent = []
        for s in sessions:
            if s["started_at"] < recent_cutoff:
                continue
            wid = s["workout_id"]
            if wid not in names:
                workout = self.workouts.fetch_detail(wid)
                names[wid] = workout[2] if workout else None
            recent.append(
                {
                    "id": s["id"],
                    "workout_name": names[wid],
                    "started_at": s["started_at"].isoformat(),
                    "finished_at": s["finished_at"].isoformat(),
                    "set_count": s["set_count"],
                    "duration": round(
                        (s["finished_at"] - s["started_at"]).total_seconds() / 60
                    ),
                }
            )
        active = self.sessions.fetch_active(user_id)
        active_session = None
        if active is not None:
            workout = self.workouts.fetch_detail(active[2])
            active_session = {
                "id": active[0],
                "workout_name": workout[2] if workout else None,
            }
        return {
            "recent_sessions": recent,
            "week_stats": {
                "workouts_this_week": comparison["workouts_this_week"],
                "week_streak": week_streak(
                    (s["started_at"] for s in sessions), now, tz
                ),
                "total_sets": comparison["sets_this_week"],
                "total_volume": comparison["volume_this_week"],
            },
            "week_comparison": {
                "volume_change": comparison["volume_change"],
                "sets_change": comparison["sets_change"],
                "workouts_this_week": comparison["workouts_this_week"],
                "workouts_last_week": comparison["workouts_last_week"],
            },
            "consistency_buckets": self._buckets(sessions, now, None),
            "personal_records": self.personal_records(user_id),
            "active_session": active_session,
            "quick_repeat": self.quick_repeat(user_id),
            "body_weight": self.body_weight_summary(user_id, now),
            "distance_this_week": self.distance_this_week(user_id, now),
        }
