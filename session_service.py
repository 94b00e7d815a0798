"""Lifecycle of a workout session: start, log sets, finish, abandon.

Set submission is full-replace: clients always send the complete current
list of sets for the session, never a delta. Sending the same list twice
leaves the stored state unchanged.
"""
from __future__ import annotations

import datetime
import logging
import math
from dataclasses import asdict, dataclass
from typing import Callable, Dict, Iterable, List, Optional

from db import LiftRepository, SessionRepository, WorkoutRepository
from exceptions import ConflictError, NotFoundError, ValidationError
import sanity_check
from leaderboard_service import LeaderboardService
from time_buckets import parse_timestamp, utcnow

logger = logging.getLogger(__name__)


@dataclass
class SetEntry:
    lift_id: int
    set_number: int = 1
    weight: Optional[float] = None
    reps: Optional[int] = None
    duration_seconds: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)

    def values(self) -> dict:
        return {
            "weight": self.weight,
            "reps": self.reps,
            "duration_seconds": self.duration_seconds,
        }


@dataclass
class Session:
    id: int
    user_id: int
    workout_id: int
    started_at: datetime.datetime
    finished_at: Optional[datetime.datetime] = None

    @classmethod
    def from_row(cls, row: tuple) -> "Session":
        sid, user_id, workout_id, started, finished = row
        return cls(
            int(sid),
            int(user_id),
            int(workout_id),
            parse_timestamp(started),
            parse_timestamp(finished) if finished else None,
        )

    @property
    def is_active(self) -> bool:
        return self.finished_at is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "workout_id": self.workout_id,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


def renumber_sets(entries: Iterable[SetEntry]) -> List[SetEntry]:
    """Return entries grouped per lift with dense set numbers starting at 1.

    Lifts keep the order of their first appearance; within a lift the
    submitted ``set_number`` decides the order.
    """
    by_lift: Dict[int, List[SetEntry]] = {}
    for entry in entries:
        by_lift.setdefault(entry.lift_id, []).append(entry)
    result = []
    for lift_sets in by_lift.values():
        ordered = sorted(lift_sets, key=lambda e: e.set_number)
        for number, entry in enumerate(ordered, start=1):
            result.append(
                SetEntry(
                    entry.lift_id,
                    number,
                    entry.weight,
                    entry.reps,
                    entry.duration_seconds,
                )
            )
    return result


def add_set(entries: List[SetEntry], lift_id: int) -> List[SetEntry]:
    """Append a set for ``lift_id`` copying the values of its previous set."""
    lift_sets = [e for e in entries if e.lift_id == lift_id]
    previous = max(lift_sets, key=lambda e: e.set_number) if lift_sets else None
    new = SetEntry(
        lift_id,
        len(lift_sets) + 1,
        previous.weight if previous else 0,
        previous.reps if previous else 0,
        previous.duration_seconds if previous else None,
    )
    return renumber_sets([*entries, new])


def remove_set(entries: List[SetEntry], lift_id: int, set_number: int) -> List[SetEntry]:
    """Remove one set and renumber the remaining sets of that lift."""
    lift_sets = [e for e in entries if e.lift_id == lift_id]
    if len(lift_sets) <= 1:
        raise ValidationError("a lift needs at least one set")
    if not any(e.set_number == set_number for e in lift_sets):
        raise NotFoundError("set not found")
    kept = [
        e for e in entries if not (e.lift_id == lift_id and e.set_number == set_number)
    ]
    return renumber_sets(kept)


# Hard upper bounds; anything above them is rejected rather than warned about.
MAX_VALUES = {
    "weight": 10_000,
    "reps": 10_000,
    "duration_seconds": 86_400,
}


def _check_range(entry: SetEntry, field: str) -> None:
    value = getattr(entry, field)
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field} must be a number")
    if not math.isfinite(value):
        raise ValidationError(f"{field} must be a finite number")
    if value < 0:
        raise ValidationError(f"{field} must be non-negative")
    if value > MAX_VALUES[field]:
        raise ValidationError(f"{field} must be at most {MAX_VALUES[field]}")


def _require(entry: SetEntry, field: str) -> None:
    if getattr(entry, field) is None:
        raise ValidationError(f"{field} is required for lift {entry.lift_id}")


def validate_entry(kind: str, entry: SetEntry) -> None:
    """Raise :class:`ValidationError` unless ``entry`` fits a lift of ``kind``."""
    if kind == "strength":
        _require(entry, "weight")
        _require(entry, "reps")
    elif kind == "bodyweight":
        _require(entry, "reps")
    elif kind == "endurance":
        _require(entry, "duration_seconds")
    else:
        raise ValidationError(f"invalid lift kind: {kind}")
    for field in MAX_VALUES:
        _check_range(entry, field)


class SessionService:
    """Drive one user's workout sessions through their lifecycle."""

    def __init__(
        self,
        session_repo: SessionRepository,
        workout_repo: WorkoutRepository,
        lift_repo: LiftRepository,
        leaderboard: LeaderboardService | None = None,
        clock: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self.sessions = session_repo
        self.workouts = workout_repo
        self.lifts = lift_repo
        self.leaderboard = leaderboard
        self.clock = clock

    def _owned(self, user_id: int, session_id: int) -> Session:
        row = self.sessions.fetch_owned(session_id, user_id)
        if row is None:
            raise NotFoundError("session not found")
        return Session.from_row(row)

    def _active(self, user_id: int, session_id: int) -> Session:
        session = self._owned(user_id, session_id)
        if not session.is_active:
            raise ValidationError("session already finished")
        return session

    def _workout(self, user_id: int, workout_id: int) -> tuple:
        workout = self.workouts.fetch_detail(workout_id)
        if workout is None or workout[1] != user_id:
            raise NotFoundError("workout not found")
        return workout

    def start(self, user_id: int, workout_id: int) -> Session:
        self._workout(user_id, workout_id)
        try:
            sid = self.sessions.create_active(user_id, workout_id, self.clock())
        except ConflictError:
            logger.warning("User %s tried to start a second active session", user_id)
            raise
        logger.info("User %s started session %s (workout %s)", user_id, sid, workout_id)
        return self._owned(user_id, sid)

    def active_session(self, user_id: int) -> Session | None:
        row = self.sessions.fetch_active(user_id)
        return Session.from_row(row) if row else None

    def last_values(
        self, user_id: int, lift_ids: Iterable[int], exclude_session_id: int | None = None
    ) -> Dict[int, dict]:
        """Return the last recorded values per lift from finished sessions."""
        last: Dict[int, dict] = {}
        for lift_id, weight, reps, duration in self.sessions.fetch_last_values(
            user_id, lift_ids, exclude_session_id
        ):
            if lift_id in last:
                continue
            last[lift_id] = {
                "weight": float(weight) if weight is not None else 0,
                "reps": int(reps) if reps is not None else 0,
                "duration_seconds": int(duration) if duration is not None else 0,
            }
        return last

    def stored_sets(self, session_id: int) -> List[SetEntry]:
        return [
            SetEntry(int(lift_id), int(num), weight, reps, duration)
            for lift_id, num, weight, reps, duration in self.sessions.fetch_sets(session_id)
        ]

    def get(self, user_id: int, session_id: int) -> dict:
        """Return the session with its lifts, stored sets and draft sets."""
        session = self._owned(user_id, session_id)
        workout = self.workouts.fetch_detail(session.workout_id)
        lifts = self.workouts.fetch_lifts(session.workout_id) if workout else []
        lift_ids = [row[0] for row in lifts]
        last = self.last_values(user_id, lift_ids, exclude_session_id=session.id)
        stored = self.stored_sets(session.id)
        draft: List[SetEntry] = []
        for lift_id in lift_ids:
            existing = [s for s in stored if s.lift_id == lift_id]
            if existing:
                draft.extend(existing)
                continue
            values = last.get(lift_id, {"weight": 0, "reps": 0, "duration_seconds": 0})
            draft.append(
                SetEntry(
                    lift_id,
                    1,
                    values["weight"],
                    values["reps"],
                    values["duration_seconds"],
                )
            )
        return {
            "session": session.to_dict(),
            "workout_name": workout[2] if workout else None,
            "lifts": [
                {
                    "lift_id": lid,
                    "position": pos,
                    "name": name,
                    "muscle_group": group,
                    "kind": kind,
                }
                for lid, pos, name, group, kind in lifts
            ],
            "sets": [s.to_dict() for s in stored],
            "last_by_lift": last,
            "draft_sets": [s.to_dict() for s in draft],
        }

    def _prepare(self, user_id: int, entries: Iterable[SetEntry]) -> List[SetEntry]:
        entries = list(entries)
        kinds = self.lifts.fetch_kinds(e.lift_id for e in entries)
        for entry in entries:
            if entry.lift_id not in kinds:
                raise ValidationError(f"unknown lift {entry.lift_id}")
            if self.lifts.fetch_visible(entry.lift_id, user_id) is None:
                raise ValidationError(f"unknown lift {entry.lift_id}")
            validate_entry(kinds[entry.lift_id][1], entry)
        return renumber_sets(entries)

    @staticmethod
    def _rows(entries: List[SetEntry]) -> List[tuple]:
        return [
            (e.lift_id, e.set_number, e.weight, e.reps, e.duration_seconds)
            for e in entries
        ]

    def log_sets(
        self, user_id: int, session_id: int, entries: Iterable[SetEntry]
    ) -> List[SetEntry]:
        """Replace the session's sets with ``entries``."""
        session = self._active(user_id, session_id)
        prepared = self._prepare(user_id, entries)
        self.sessions.replace_sets(session.id, self._rows(prepared))
        logger.debug("Session %s now has %d sets", session.id, len(prepared))
        return prepared

    def finish(
        self, user_id: int, session_id: int, entries: Iterable[SetEntry]
    ) -> dict:
        """Replace sets, stamp the session finished and return its summary."""
        session = self._active(user_id, session_id)
        prepared = self._prepare(user_id, entries)
        self.sessions.replace_sets(session.id, self._rows(prepared), self.clock())
        finished = self._owned(user_id, session_id)
        logger.info("User %s finished session %s", user_id, session_id)
        return self.summary(finished)

    def summary(self, session: Session) -> dict:
        sets = self.stored_sets(session.id)
        kinds = self.lifts.fetch_kinds(s.lift_id for s in sets)
        mass_moved = 0.0
        bodyweight_reps = 0
        for s in sets:
            kind = kinds.get(s.lift_id, ("", ""))[1]
            if kind == "strength":
                mass_moved += (s.weight or 0) * (s.reps or 0)
            elif kind == "bodyweight":
                bodyweight_reps += s.reps or 0
        end = session.finished_at or self.clock()
        workout = self.workouts.fetch_detail(session.workout_id)
        positions = []
        if self.leaderboard is not None and not session.is_active:
            positions = self.leaderboard.placements(session.user_id, session.id)
        return {
            "workout_name": workout[2] if workout else None,
            "duration_min": round((end - session.started_at).total_seconds() / 60),
            "total_sets": len(sets),
            "mass_moved": round(mass_moved),
            "bodyweight_reps": bodyweight_reps,
            "leaderboard_positions": positions,
        }

    def sanity_check(
        self, user_id: int, session_id: int, entries: Iterable[SetEntry]
    ) -> List[dict]:
        """Return advisory warnings for each entry without writing anything."""
        session = self._owned(user_id, session_id)
        entries = list(entries)
        kinds = self.lifts.fetch_kinds(e.lift_id for e in entries)
        last = self.last_values(
            user_id, kinds.keys(), exclude_session_id=session.id
        )
        results = []
        for entry in entries:
            if entry.lift_id not in kinds:
                raise ValidationError(f"unknown lift {entry.lift_id}")
            warnings = sanity_check.check(
                kinds[entry.lift_id][1], entry.values(), last.get(entry.lift_id)
            )
            if warnings:
                logger.warning(
                    "Session %s lift %s set %s: %s",
                    session.id,
                    entry.lift_id,
                    entry.set_number,
                    ", ".join(w.code for w in warnings),
                )
            results.append(
                {
                    "lift_id": entry.lift_id,
                    "set_number": entry.set_number,
                    "warnings": [w.to_dict() for w in warnings],
                }
            )
        return results

    def abandon(self, user_id: int, session_id: int) -> None:
        session = self._active(user_id, session_id)
        self.sessions.delete(session.id)
        logger.info("User %s abandoned session %s", user_id, session_id)

    def add_lift(self, user_id: int, session_id: int, lift_id: int) -> dict:
        """Append a lift to the workout of an active session."""
        session = self._active(user_id, session_id)
        if self.lifts.fetch_visible(lift_id, user_id) is None:
            raise NotFoundError("lift not found")
        lifts = self.workouts.fetch_lifts(session.workout_id)
        if any(row[0] == lift_id for row in lifts):
            raise ConflictError("Lift already in this workout")
        position = self.workouts.add_lift(session.workout_id, lift_id)
        return {"workout_id": session.workout_id, "lift_id": lift_id, "position": position}
