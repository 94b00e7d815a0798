from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import Callable, ClassVar, Dict, List, Optional, Tuple, Union

from db import (
    LeaderboardCategoryRepository,
    LiftRepository,
    MovementRepository,
    SessionRepository,
    SettingsRepository,
    UserRepository,
)
from exceptions import ValidationError
from time_buckets import (
    day_key,
    in_range,
    month_start,
    next_month_start,
    parse_timestamp,
    utcnow,
    week_end,
    week_start,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MaxWeightWithMinReps:
    KIND: ClassVar[str] = "max_weight_min_reps"
    lift_name: str
    min_reps: int


@dataclass(frozen=True)
class MaxRepsSingleSet:
    KIND: ClassVar[str] = "max_reps_single_set"
    lift_name: str


@dataclass(frozen=True)
class SessionsInCurrentWeek:
    KIND: ClassVar[str] = "sessions_current_week"


@dataclass(frozen=True)
class DistanceInCurrentMonth:
    KIND: ClassVar[str] = "distance_current_month"


Rule = Union[
    MaxWeightWithMinReps, MaxRepsSingleSet, SessionsInCurrentWeek, DistanceInCurrentMonth
]


def rule_to_columns(rule: Rule) -> Tuple[str, Optional[str], Optional[int]]:
    """Return ``(rule_kind, target_lift, min_reps)`` for storage."""
    if isinstance(rule, MaxWeightWithMinReps):
        return rule.KIND, rule.lift_name, rule.min_reps
    if isinstance(rule, MaxRepsSingleSet):
        return rule.KIND, rule.lift_name, None
    if isinstance(rule, (SessionsInCurrentWeek, DistanceInCurrentMonth)):
        return rule.KIND, None, None
    raise ValidationError(f"unsupported rule: {rule!r}")


def rule_from_columns(
    rule_kind: str, target_lift: Optional[str], min_reps: Optional[int]
) -> Rule:
    if rule_kind == MaxWeightWithMinReps.KIND:
        if not target_lift or min_reps is None:
            raise ValidationError("max weight rule needs a lift and minimum reps")
        return MaxWeightWithMinReps(target_lift, int(min_reps))
    if rule_kind == MaxRepsSingleSet.KIND:
        if not target_lift:
            raise ValidationError("max reps rule needs a lift")
        return MaxRepsSingleSet(target_lift)
    if rule_kind == SessionsInCurrentWeek.KIND:
        return SessionsInCurrentWeek()
    if rule_kind == DistanceInCurrentMonth.KIND:
        return DistanceInCurrentMonth()
    raise ValidationError(f"unknown rule kind: {rule_kind}")


DEFAULT_CATEGORIES = [
    {
        "name": "Bench Press",
        "metric": "Max weight with at least 3 reps",
        "rule": "Heaviest weight where you completed 3 or more reps in a single set",
        "kind": MaxWeightWithMinReps("Bench Press", 3),
        "display_order": 1,
    },
    {
        "name": "Squat",
        "metric": "Max weight with at least 3 reps",
        "rule": "Heaviest weight where you completed 3 or more reps in a single set",
        "kind": MaxWeightWithMinReps("Squat", 3),
        "display_order": 2,
    },
    {
        "name": "Push-Ups",
        "metric": "Max reps in a single set",
        "rule": "Most push-ups completed in a single set",
        "kind": MaxRepsSingleSet("Push-Up"),
        "display_order": 3,
    },
    {
        "name": "Pull-Ups",
        "metric": "Max reps in a single set",
        "rule": "Most pull-ups completed in a single set",
        "kind": MaxRepsSingleSet("Pull-Up"),
        "display_order": 4,
    },
    {
        "name": "Romanian Deadlift",
        "metric": "Max weight with at least 3 reps",
        "rule": "Heaviest weight where you completed 3 or more reps in a single set",
        "kind": MaxWeightWithMinReps("Romanian Deadlift", 3),
        "display_order": 5,
    },
    {
        "name": "Workouts This Week",
        "metric": "Finished sessions this week",
        "rule": "Number of completed workouts in the current Monday-Sunday week",
        "kind": SessionsInCurrentWeek(),
        "display_order": 6,
    },
    {
        "name": "Miles This Month",
        "metric": "Monthly distance",
        "rule": "Total miles logged across all runs and walks this calendar month",
        "kind": DistanceInCurrentMonth(),
        "display_order": 7,
    },
]


@dataclass
class Standing:
    user_id: int
    value: float
    date: Optional[str] = None


class LeaderboardService:
    """Rank users per category using each category's declared rule."""

    def __init__(
        self,
        category_repo: LeaderboardCategoryRepository,
        session_repo: SessionRepository,
        lift_repo: LiftRepository,
        user_repo: UserRepository,
        movement_repo: MovementRepository,
        settings_repo: SettingsRepository | None = None,
        clock: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self.categories = category_repo
        self.sessions = session_repo
        self.lifts = lift_repo
        self.users = user_repo
        self.movements = movement_repo
        self.settings = settings_repo
        self.clock = clock

    def _tz(self) -> str | None:
        if self.settings is None:
            return None
        return self.settings.get_text("timezone", "UTC")

    def _unit(self, rule: Rule) -> str:
        if isinstance(rule, MaxWeightWithMinReps):
            if self.settings is None:
                return "lbs"
            return self.settings.get_text("weight_unit", "lbs")
        if isinstance(rule, MaxRepsSingleSet):
            return "reps"
        if isinstance(rule, SessionsInCurrentWeek):
            return "workouts"
        if self.settings is None:
            return "mi"
        return self.settings.get_text("distance_unit", "mi")

    def ensure_default_categories(self) -> None:
        for cat in DEFAULT_CATEGORIES:
            if self.categories.fetch_by_name(cat["name"]) is None:
                self.add_category(
                    cat["name"], cat["metric"], cat["rule"], cat["kind"], cat["display_order"]
                )

    def add_category(
        self, name: str, metric: str, rule_text: str, rule: Rule, display_order: int = 0
    ) -> int:
        kind, target, min_reps = rule_to_columns(rule)
        cid = self.categories.add(
            name, metric, rule_text, kind, target, min_reps, display_order
        )
        logger.info("Added leaderboard category %s (%s)", name, kind)
        return cid

    def _category_rules(self) -> List[Tuple[Tuple, Rule]]:
        result = []
        for row in self.categories.fetch_all_categories():
            _cid, _name, _metric, _text, kind, target, min_reps, _order = row
            result.append((row, rule_from_columns(kind, target, min_reps)))
        return result

    def _best_per_user(
        self, rows: List[Tuple], value_index: int
    ) -> List[Standing]:
        tz = self._tz()
        best: Dict[int, Standing] = {}
        for row in rows:
            user_id = int(row[0])
            value = row[value_index]
            if value is None or value <= 0:
                continue
            current = best.get(user_id)
            if current is None or value > current.value:
                best[user_id] = Standing(
                    user_id, value, day_key(parse_timestamp(row[3]), tz)
                )
        return sorted(best.values(), key=lambda s: s.value, reverse=True)

    def standings(self, rule: Rule, now: datetime.datetime | None = None) -> List[Standing]:
        """Return users ranked best first for ``rule``."""
        now = now or self.clock()
        tz = self._tz()
        if isinstance(rule, (MaxWeightWithMinReps, MaxRepsSingleSet)):
            lift_id = self.lifts.fetch_global_by_name(rule.lift_name)
            if lift_id is None:
                return []
            if isinstance(rule, MaxWeightWithMinReps):
                rows = self.sessions.fetch_lift_sets_all_users(
                    lift_id, min_reps=rule.min_reps, order_by="weight"
                )
                standings = self._best_per_user(rows, 1)
                for s in standings:
                    s.value = float(s.value)
                return standings
            rows = self.sessions.fetch_lift_sets_all_users(lift_id, order_by="reps")
            return self._best_per_user(rows, 2)
        if isinstance(rule, SessionsInCurrentWeek):
            start = week_start(now, tz)
            rows = self.sessions.count_finished_between(start, week_end(now, tz))
            counts = [Standing(int(uid), int(count)) for uid, count in rows]
            return sorted(counts, key=lambda s: s.value, reverse=True)
        if isinstance(rule, DistanceInCurrentMonth):
            rows = self.movements.totals_between(
                month_start(now, tz).date().isoformat(),
                next_month_start(now, tz).date().isoformat(),
            )
            totals = [Standing(int(uid), round(float(total), 1)) for uid, total in rows]
            return sorted(totals, key=lambda s: s.value, reverse=True)
        raise ValidationError(f"unsupported rule: {rule!r}")

    def _entries(self, rule: Rule, standings: List[Standing], user_id: int) -> List[dict]:
        names = self.users.display_names(s.user_id for s in standings)
        unit = self._unit(rule)
        entries = []
        for s in standings:
            entry = {
                "display_name": names.get(s.user_id, "Unknown"),
                "value": s.value,
                "unit": unit,
                "is_current_user": s.user_id == user_id,
            }
            if s.date is not None:
                entry["date"] = s.date
            entries.append(entry)
        return entries

    def leaderboard(self, user_id: int) -> List[dict]:
        """Return every category with its ranked entries."""
        now = self.clock()
        results = []
        for row, rule in self._category_rules():
            cid, name, metric, text, *_ = row
            standings = self.standings(rule, now)
            results.append(
                {
                    "id": cid,
                    "name": name,
                    "metric": metric,
                    "rule": text,
                    "entries": self._entries(rule, standings, user_id),
                }
            )
        return results

    def _contributed(
        self, rule: Rule, sets: List[Tuple], finished_at: datetime.datetime | None, now
    ) -> bool:
        if isinstance(rule, (MaxWeightWithMinReps, MaxRepsSingleSet)):
            lift_id = self.lifts.fetch_global_by_name(rule.lift_name)
            if lift_id is None:
                return False
            for lid, _num, weight, reps, _dur in sets:
                if lid != lift_id:
                    continue
                if isinstance(rule, MaxWeightWithMinReps):
                    if (reps or 0) >= rule.min_reps and (weight or 0) > 0:
                        return True
                elif (reps or 0) > 0:
                    return True
            return False
        if isinstance(rule, SessionsInCurrentWeek):
            if finished_at is None:
                return False
            tz = self._tz()
            return in_range(finished_at, week_start(now, tz), week_end(now, tz))
        return False

    def placements(self, user_id: int, session_id: int) -> List[dict]:
        """Return podium placements the finished session earned for ``user_id``."""
        session = self.sessions.fetch_owned(session_id, user_id)
        if session is None or session[4] is None:
            return []
        finished_at = parse_timestamp(session[4])
        sets = self.sessions.fetch_sets(session_id)
        podium = self.settings.get_int("podium_size", 3) if self.settings else 3
        now = self.clock()
        positions = []
        for row, rule in self._category_rules():
            if not self._contributed(rule, sets, finished_at, now):
                continue
            standings = self.standings(rule, now)
            for index, standing in enumerate(standings[:podium]):
                if standing.user_id == user_id:
                    positions.append(
                        {
                            "category": row[1],
                            "position": index + 1,
                            "value": standing.value,
                            "unit": self._unit(rule),
                        }
                    )
                    break
        if positions:
            logger.info("Session %s placed in %d categories", session_id, len(positions))
        return positions
