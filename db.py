import sqlite3
import datetime
import logging
from contextlib import contextmanager
from typing import Dict, Iterable, List, Optional, Tuple

from config import YamlConfig
from exceptions import (
    ActiveSessionExists,
    NotFoundError,
    TransientError,
    ValidationError,
)
from settings_schema import DEFAULT_SETTINGS, validate_settings

logger = logging.getLogger(__name__)

LIFT_KINDS = ("strength", "bodyweight", "endurance")
MOVEMENT_KINDS = ("run", "walk")


def format_timestamp(moment: datetime.datetime) -> str:
    """Return ``moment`` as a UTC ISO string suitable for range queries."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=datetime.timezone.utc)
    return moment.astimezone(datetime.timezone.utc).isoformat(timespec="seconds")


class Database:
    """Provides SQLite connection management and schema initialization."""

    # seconds a connection waits on a locked database before giving up
    busy_timeout = 5.0

    _TABLE_DEFINITIONS = {
        "users": (
            """CREATE TABLE users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT NOT NULL UNIQUE,
                    display_name TEXT,
                    role TEXT NOT NULL DEFAULT 'user'
                );""",
            ["id", "username", "display_name", "role"],
        ),
        "lifts": (
            """CREATE TABLE lifts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    muscle_group TEXT NOT NULL,
                    kind TEXT NOT NULL DEFAULT 'strength',
                    is_global INTEGER NOT NULL DEFAULT 1,
                    owner_id INTEGER,
                    FOREIGN KEY(owner_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["id", "name", "muscle_group", "kind", "is_global", "owner_id"],
        ),
        "workouts": (
            """CREATE TABLE workouts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    FOREIGN KEY(owner_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["id", "owner_id", "name"],
        ),
        "workout_lifts": (
            """CREATE TABLE workout_lifts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_id INTEGER NOT NULL,
                    lift_id INTEGER NOT NULL,
                    position INTEGER NOT NULL DEFAULT 0,
                    UNIQUE(workout_id, lift_id),
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE CASCADE,
                    FOREIGN KEY(lift_id) REFERENCES lifts(id) ON DELETE CASCADE
                );""",
            ["id", "workout_id", "lift_id", "position"],
        ),
        "sessions": (
            """CREATE TABLE sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    workout_id INTEGER NOT NULL,
                    started_at TEXT NOT NULL,
                    finished_at TEXT,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["id", "user_id", "workout_id", "started_at", "finished_at"],
        ),
        "session_sets": (
            """CREATE TABLE session_sets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id INTEGER NOT NULL,
                    lift_id INTEGER NOT NULL,
                    set_number INTEGER NOT NULL,
                    weight REAL,
                    reps INTEGER,
                    duration_seconds INTEGER,
                    UNIQUE(session_id, lift_id, set_number),
                    FOREIGN KEY(session_id) REFERENCES sessions(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "session_id",
                "lift_id",
                "set_number",
                "weight",
                "reps",
                "duration_seconds",
            ],
        ),
        "body_weight_logs": (
            """CREATE TABLE body_weight_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    date TEXT NOT NULL,
                    weight REAL NOT NULL,
                    UNIQUE(user_id, date),
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["id", "user_id", "date", "weight"],
        ),
        "movements": (
            """CREATE TABLE movements (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    kind TEXT NOT NULL,
                    distance REAL NOT NULL,
                    duration_minutes INTEGER,
                    date TEXT NOT NULL,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["id", "user_id", "kind", "distance", "duration_minutes", "date"],
        ),
        "leaderboard_categories": (
            """CREATE TABLE leaderboard_categories (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    metric TEXT NOT NULL,
                    rule TEXT NOT NULL,
                    rule_kind TEXT NOT NULL,
                    target_lift TEXT,
                    min_reps INTEGER,
                    display_order INTEGER NOT NULL DEFAULT 0
                );""",
            [
                "id",
                "name",
                "metric",
                "rule",
                "rule_kind",
                "target_lift",
                "min_reps",
                "display_order",
            ],
        ),
        "settings": (
            """CREATE TABLE settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
    }

    _INDEXES = (
        # at most one unfinished session per user
        "CREATE UNIQUE INDEX IF NOT EXISTS ux_sessions_active "
        "ON sessions(user_id) WHERE finished_at IS NULL;",
        "CREATE INDEX IF NOT EXISTS ix_sessions_user_started "
        "ON sessions(user_id, started_at);",
        "CREATE INDEX IF NOT EXISTS ix_sessions_finished ON sessions(finished_at);",
        "CREATE INDEX IF NOT EXISTS ix_session_sets_lift ON session_sets(lift_id);",
    )

    def __init__(self, db_path: str = "liftlog.db") -> None:
        self._db_path = db_path
        self._ensure_schema()
        self._ensure_indexes()

    @contextmanager
    def _connection(self):
        try:
            connection = sqlite3.connect(self._db_path, timeout=self.busy_timeout)
        except sqlite3.OperationalError as e:
            raise TransientError(str(e)) from e
        connection.execute("PRAGMA foreign_keys=on;")
        try:
            yield connection
            connection.commit()
        except sqlite3.OperationalError as e:
            if "locked" in str(e) or "busy" in str(e):
                raise TransientError(str(e)) from e
            raise
        finally:
            connection.close()

    @contextmanager
    def _transaction(self):
        """Open a write transaction; commit on success, roll back on error."""
        with self._connection() as conn:
            conn.execute("BEGIN IMMEDIATE;")
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            conn.execute("PRAGMA foreign_keys=off;")
            conn.execute("PRAGMA legacy_alter_table=on;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            conn.execute("PRAGMA foreign_keys=on;")

    def _ensure_indexes(self) -> None:
        with self._connection() as conn:
            for sql in self._INDEXES:
                conn.execute(sql)

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        logger.info("Rebuilding table %s for new columns", table)
        conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col == "kind":
                        return "'strength'"
                    if col == "role":
                        return "'user'"
                    if col in ("position", "display_order"):
                        return "0"
                    if col == "is_global":
                        return "1"
                    return "NULL"

                defaults = ", ".join(default_val(c) for c in missing)
                conn.execute(
                    f"INSERT INTO {table} ({cols}, {', '.join(missing)}) SELECT {cols}, {defaults} FROM {table}_old;"
                )
            else:
                conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
        conn.execute(f"DROP TABLE {table}_old;")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()

    def _delete_all(self, table: str) -> None:
        self.execute(f"DELETE FROM {table};")


class UserRepository(BaseRepository):
    """Read access to accounts owned by the auth collaborator."""

    def add(
        self, username: str, display_name: str | None = None, role: str = "user"
    ) -> int:
        try:
            return self.execute(
                "INSERT INTO users (username, display_name, role) VALUES (?, ?, ?);",
                (username, display_name, role),
            )
        except sqlite3.IntegrityError:
            raise ValueError("username already exists")

    def fetch_detail(self, user_id: int) -> Optional[Tuple[int, str, str | None, str]]:
        rows = self.fetch_all(
            "SELECT id, username, display_name, role FROM users WHERE id = ?;",
            (user_id,),
        )
        return rows[0] if rows else None

    def fetch_by_username(self, username: str) -> Optional[int]:
        rows = self.fetch_all("SELECT id FROM users WHERE username = ?;", (username,))
        return int(rows[0][0]) if rows else None

    def display_names(self, user_ids: Iterable[int]) -> Dict[int, str]:
        """Return display names, falling back to the username."""
        ids = sorted(set(user_ids))
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        rows = self.fetch_all(
            f"SELECT id, username, display_name FROM users WHERE id IN ({placeholders});",
            tuple(ids),
        )
        return {int(uid): (display or username) for uid, username, display in rows}


class LiftRepository(BaseRepository):
    """Catalog lookups for lift definitions."""

    def add(
        self,
        name: str,
        muscle_group: str,
        kind: str = "strength",
        is_global: bool = True,
        owner_id: int | None = None,
    ) -> int:
        if kind not in LIFT_KINDS:
            raise ValueError(f"invalid lift kind: {kind}")
        return self.execute(
            "INSERT INTO lifts (name, muscle_group, kind, is_global, owner_id) VALUES (?, ?, ?, ?, ?);",
            (name, muscle_group, kind, 1 if is_global else 0, owner_id),
        )

    def fetch_detail(
        self, lift_id: int
    ) -> Optional[Tuple[int, str, str, str, bool, int | None]]:
        rows = self.fetch_all(
            "SELECT id, name, muscle_group, kind, is_global, owner_id FROM lifts WHERE id = ?;",
            (lift_id,),
        )
        if not rows:
            return None
        lid, name, group, kind, is_global, owner = rows[0]
        return int(lid), name, group, kind, bool(is_global), owner

    def fetch_visible(self, lift_id: int, user_id: int):
        """Return the lift when it is global or owned by ``user_id``."""
        detail = self.fetch_detail(lift_id)
        if detail is None:
            return None
        if not detail[4] and detail[5] != user_id:
            return None
        return detail

    def fetch_global_by_name(self, name: str) -> Optional[int]:
        rows = self.fetch_all(
            "SELECT id FROM lifts WHERE name = ? AND is_global = 1 ORDER BY id LIMIT 1;",
            (name,),
        )
        return int(rows[0][0]) if rows else None

    def fetch_kinds(self, lift_ids: Iterable[int]) -> Dict[int, Tuple[str, str]]:
        """Return ``{lift_id: (name, kind)}`` for the given ids."""
        ids = sorted(set(lift_ids))
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        rows = self.fetch_all(
            f"SELECT id, name, kind FROM lifts WHERE id IN ({placeholders});",
            tuple(ids),
        )
        return {int(lid): (name, kind) for lid, name, kind in rows}


class WorkoutRepository(BaseRepository):
    """Catalog lookups for workouts and their ordered lifts."""

    def create(self, owner_id: int, name: str, lift_ids: Iterable[int] = ()) -> int:
        with self._transaction() as conn:
            cur = conn.execute(
                "INSERT INTO workouts (owner_id, name) VALUES (?, ?);",
                (owner_id, name),
            )
            workout_id = cur.lastrowid
            for position, lift_id in enumerate(lift_ids):
                conn.execute(
                    "INSERT INTO workout_lifts (workout_id, lift_id, position) VALUES (?, ?, ?);",
                    (workout_id, lift_id, position),
                )
        return workout_id

    def fetch_detail(self, workout_id: int) -> Optional[Tuple[int, int, str]]:
        rows = self.fetch_all(
            "SELECT id, owner_id, name FROM workouts WHERE id = ?;", (workout_id,)
        )
        return rows[0] if rows else None

    def fetch_lifts(self, workout_id: int) -> List[Tuple[int, int, str, str, str]]:
        """Return ``(lift_id, position, name, muscle_group, kind)`` in order."""
        return self.fetch_all(
            "SELECT l.id, wl.position, l.name, l.muscle_group, l.kind "
            "FROM workout_lifts wl JOIN lifts l ON l.id = wl.lift_id "
            "WHERE wl.workout_id = ? ORDER BY wl.position, wl.id;",
            (workout_id,),
        )

    def add_lift(self, workout_id: int, lift_id: int) -> int:
        """Append ``lift_id`` to the workout and return its position."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT COALESCE(MAX(position), -1) FROM workout_lifts WHERE workout_id = ?;",
                (workout_id,),
            ).fetchone()
            position = int(row[0]) + 1
            conn.execute(
                "INSERT INTO workout_lifts (workout_id, lift_id, position) VALUES (?, ?, ?);",
                (workout_id, lift_id, position),
            )
        return position

    def delete(self, workout_id: int) -> None:
        rows = self.fetch_all("SELECT id FROM workouts WHERE id = ?;", (workout_id,))
        if not rows:
            raise ValueError("workout not found")
        self.execute("DELETE FROM workouts WHERE id = ?;", (workout_id,))


class SessionRepository(BaseRepository):
    """Persistence for workout sessions and their logged sets."""

    _COLUMNS = "id, user_id, workout_id, started_at, finished_at"

    def create_active(
        self, user_id: int, workout_id: int, started_at: datetime.datetime
    ) -> int:
        """Insert a new unfinished session, raising if one already exists."""
        try:
            with self._transaction() as conn:
                row = conn.execute(
                    "SELECT id FROM sessions WHERE user_id = ? AND finished_at IS NULL;",
                    (user_id,),
                ).fetchone()
                if row is not None:
                    raise ActiveSessionExists(int(row[0]))
                cur = conn.execute(
                    "INSERT INTO sessions (user_id, workout_id, started_at) VALUES (?, ?, ?);",
                    (user_id, workout_id, format_timestamp(started_at)),
                )
                return cur.lastrowid
        except sqlite3.IntegrityError:
            active = self.fetch_active(user_id)
            if active is None:
                raise
            raise ActiveSessionExists(int(active[0]))

    def fetch_owned(self, session_id: int, user_id: int) -> Optional[Tuple]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM sessions WHERE id = ? AND user_id = ?;",
            (session_id, user_id),
        )
        return rows[0] if rows else None

    def fetch_active(self, user_id: int) -> Optional[Tuple]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM sessions WHERE user_id = ? AND finished_at IS NULL;",
            (user_id,),
        )
        return rows[0] if rows else None

    def fetch_sets(self, session_id: int) -> List[Tuple]:
        """Return ``(lift_id, set_number, weight, reps, duration_seconds)`` rows."""
        return self.fetch_all(
            "SELECT lift_id, set_number, weight, reps, duration_seconds "
            "FROM session_sets WHERE session_id = ? ORDER BY lift_id, set_number;",
            (session_id,),
        )

    def replace_sets(
        self,
        session_id: int,
        rows: Iterable[Tuple],
        finished_at: datetime.datetime | None = None,
    ) -> None:
        """Atomically swap the session's sets and optionally stamp it finished.

        ``rows`` hold ``(lift_id, set_number, weight, reps, duration_seconds)``.
        """
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT finished_at FROM sessions WHERE id = ?;", (session_id,)
            ).fetchone()
            if row is None:
                raise NotFoundError("session not found")
            if row[0] is not None:
                raise ValidationError("session already finished")
            conn.execute("DELETE FROM session_sets WHERE session_id = ?;", (session_id,))
            conn.executemany(
                "INSERT INTO session_sets (session_id, lift_id, set_number, weight, reps, duration_seconds) "
                "VALUES (?, ?, ?, ?, ?, ?);",
                [(session_id, *row) for row in rows],
            )
            if finished_at is not None:
                conn.execute(
                    "UPDATE sessions SET finished_at = ? WHERE id = ? AND finished_at IS NULL;",
                    (format_timestamp(finished_at), session_id),
                )

    def delete(self, session_id: int) -> None:
        """Delete an unfinished session and its sets."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT finished_at FROM sessions WHERE id = ?;", (session_id,)
            ).fetchone()
            if row is None:
                raise NotFoundError("session not found")
            if row[0] is not None:
                raise ValidationError("session already finished")
            conn.execute("DELETE FROM session_sets WHERE session_id = ?;", (session_id,))
            conn.execute("DELETE FROM sessions WHERE id = ?;", (session_id,))

    def fetch_finished(
        self,
        user_id: int,
        start: datetime.datetime | None = None,
        end: datetime.datetime | None = None,
    ) -> List[Tuple]:
        """Return finished sessions newest first, optionally by ``started_at`` range."""
        query = (
            f"SELECT {self._COLUMNS} FROM sessions "
            "WHERE user_id = ? AND finished_at IS NOT NULL"
        )
        params: list = [user_id]
        if start is not None:
            query += " AND started_at >= ?"
            params.append(format_timestamp(start))
        if end is not None:
            query += " AND started_at < ?"
            params.append(format_timestamp(end))
        query += " ORDER BY started_at DESC, id DESC;"
        return self.fetch_all(query, tuple(params))

    def fetch_last_values(
        self, user_id: int, lift_ids: Iterable[int], exclude_session_id: int | None = None
    ) -> List[Tuple]:
        """Return finished sets for ``lift_ids`` newest session first, last set first."""
        ids = sorted(set(lift_ids))
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        return self.fetch_all(
            "SELECT ss.lift_id, ss.weight, ss.reps, ss.duration_seconds "
            "FROM session_sets ss JOIN sessions s ON s.id = ss.session_id "
            f"WHERE ss.lift_id IN ({placeholders}) AND s.user_id = ? "
            "AND s.finished_at IS NOT NULL AND s.id != ? "
            "ORDER BY s.started_at DESC, s.id DESC, ss.set_number DESC;",
            (*ids, user_id, exclude_session_id if exclude_session_id is not None else -1),
        )

    def fetch_finished_sets(
        self, user_id: int, lift_id: int | None = None
    ) -> List[Tuple]:
        """Return sets from finished sessions, oldest session first.

        Rows are ``(session_id, started_at, lift_id, lift_name, kind,
        set_number, weight, reps, duration_seconds)``.
        """
        query = (
            "SELECT s.id, s.started_at, l.id, l.name, l.kind, ss.set_number, "
            "ss.weight, ss.reps, ss.duration_seconds "
            "FROM session_sets ss "
            "JOIN sessions s ON s.id = ss.session_id "
            "JOIN lifts l ON l.id = ss.lift_id "
            "WHERE s.user_id = ? AND s.finished_at IS NOT NULL"
        )
        params: list = [user_id]
        if lift_id is not None:
            query += " AND ss.lift_id = ?"
            params.append(lift_id)
        query += " ORDER BY s.started_at, s.id, ss.lift_id, ss.set_number;"
        return self.fetch_all(query, tuple(params))

    def fetch_lift_sets_all_users(
        self, lift_id: int, min_reps: int | None = None, order_by: str = "weight"
    ) -> List[Tuple]:
        """Return ``(user_id, weight, reps, started_at, session_id)`` across users.

        Only finished sessions count. Rows are sorted by ``order_by``
        descending, then by session start so earlier achievements come first.
        """
        if order_by not in ("weight", "reps"):
            raise ValueError("order_by must be 'weight' or 'reps'")
        query = (
            "SELECT s.user_id, ss.weight, ss.reps, s.started_at, s.id "
            "FROM session_sets ss JOIN sessions s ON s.id = ss.session_id "
            "WHERE ss.lift_id = ? AND s.finished_at IS NOT NULL"
        )
        params: list = [lift_id]
        if min_reps is not None:
            query += " AND ss.reps >= ?"
            params.append(min_reps)
        query += f" ORDER BY ss.{order_by} DESC, s.started_at, ss.id;"
        return self.fetch_all(query, tuple(params))

    def count_finished_between(
        self, start: datetime.datetime, end: datetime.datetime
    ) -> List[Tuple[int, int]]:
        """Return ``(user_id, count)`` of sessions finished within ``[start, end)``."""
        return self.fetch_all(
            "SELECT user_id, COUNT(*) FROM sessions "
            "WHERE finished_at IS NOT NULL AND finished_at >= ? AND finished_at < ? "
            "GROUP BY user_id ORDER BY MIN(finished_at);",
            (format_timestamp(start), format_timestamp(end)),
        )


class BodyWeightRepository(BaseRepository):
    """Repository for daily body weight readings."""

    def log(self, user_id: int, date: str, weight: float) -> int:
        if weight <= 0:
            raise ValueError("weight must be positive")
        self.execute(
            "INSERT INTO body_weight_logs (user_id, date, weight) VALUES (?, ?, ?) "
            "ON CONFLICT(user_id, date) DO UPDATE SET weight=excluded.weight;",
            (user_id, date, weight),
        )
        rows = self.fetch_all(
            "SELECT id FROM body_weight_logs WHERE user_id = ? AND date = ?;",
            (user_id, date),
        )
        return int(rows[0][0])

    def fetch_latest(
        self, user_id: int, before: str | None = None
    ) -> Optional[Tuple[str, float]]:
        """Return the most recent ``(date, weight)``, optionally before ``before``."""
        query = "SELECT date, weight FROM body_weight_logs WHERE user_id = ?"
        params: list = [user_id]
        if before is not None:
            query += " AND date < ?"
            params.append(before)
        query += " ORDER BY date DESC LIMIT 1;"
        rows = self.fetch_all(query, tuple(params))
        if rows:
            return rows[0][0], float(rows[0][1])
        return None


class MovementRepository(BaseRepository):
    """Repository for runs and walks."""

    def add(
        self,
        user_id: int,
        kind: str,
        distance: float,
        date: str,
        duration_minutes: int | None = None,
    ) -> int:
        if kind not in MOVEMENT_KINDS:
            raise ValueError(f"invalid movement kind: {kind}")
        if distance <= 0:
            raise ValueError("distance must be positive")
        return self.execute(
            "INSERT INTO movements (user_id, kind, distance, duration_minutes, date) VALUES (?, ?, ?, ?, ?);",
            (user_id, kind, distance, duration_minutes, date),
        )

    def total_for_user(self, user_id: int, start_date: str, end_date: str) -> float:
        rows = self.fetch_all(
            "SELECT COALESCE(SUM(distance), 0) FROM movements "
            "WHERE user_id = ? AND date >= ? AND date < ?;",
            (user_id, start_date, end_date),
        )
        return float(rows[0][0])

    def totals_between(self, start_date: str, end_date: str) -> List[Tuple[int, float]]:
        """Return ``(user_id, total_distance)`` for dates in ``[start, end)``."""
        return self.fetch_all(
            "SELECT user_id, SUM(distance) FROM movements "
            "WHERE date >= ? AND date < ? GROUP BY user_id ORDER BY MIN(id);",
            (start_date, end_date),
        )


class LeaderboardCategoryRepository(BaseRepository):
    """Storage for leaderboard categories and their ranking rule."""

    _COLUMNS = "id, name, metric, rule, rule_kind, target_lift, min_reps, display_order"

    def add(
        self,
        name: str,
        metric: str,
        rule: str,
        rule_kind: str,
        target_lift: str | None = None,
        min_reps: int | None = None,
        display_order: int = 0,
    ) -> int:
        try:
            return self.execute(
                "INSERT INTO leaderboard_categories (name, metric, rule, rule_kind, target_lift, min_reps, display_order) "
                "VALUES (?, ?, ?, ?, ?, ?, ?);",
                (name, metric, rule, rule_kind, target_lift, min_reps, display_order),
            )
        except sqlite3.IntegrityError:
            raise ValueError("category already exists")

    def fetch_all_categories(self) -> List[Tuple]:
        return self.fetch_all(
            f"SELECT {self._COLUMNS} FROM leaderboard_categories ORDER BY display_order, id;"
        )

    def fetch_by_name(self, name: str) -> Optional[Tuple]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM leaderboard_categories WHERE name = ?;",
            (name,),
        )
        return rows[0] if rows else None

    def delete_all(self) -> None:
        self._delete_all("leaderboard_categories")


class SettingsRepository(BaseRepository):
    """Repository for application settings synchronized with YAML."""

    _INT_KEYS = {
        "compound_rest_seconds",
        "isolation_rest_seconds",
        "consistency_weeks",
        "recent_session_days",
        "podium_size",
    }

    def __init__(
        self, db_path: str = "liftlog.db", yaml_path: str = "settings.yaml"
    ) -> None:
        super().__init__(db_path)
        self._yaml = YamlConfig(yaml_path)
        self._init_settings()
        self._sync_from_yaml()
        self._sync_to_yaml()

    def _init_settings(self) -> None:
        with self._connection() as conn:
            for key, value in DEFAULT_SETTINGS.items():
                conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?);",
                    (key, str(value)),
                )

    def _raw_all_settings(self) -> dict:
        rows = self.fetch_all("SELECT key, value FROM settings ORDER BY key;")
        result: dict[str, int | str] = {}
        for k, v in rows:
            if k in self._INT_KEYS:
                result[k] = int(float(v))
            else:
                result[k] = v
        return result

    def _sync_from_yaml(self) -> None:
        data = self._yaml.load()
        if not data:
            return
        validate_settings(data)
        with self._connection() as conn:
            for key, value in data.items():
                if value is None:
                    continue
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                    (key, str(value)),
                )

    def _sync_to_yaml(self) -> None:
        self._yaml.save(self._raw_all_settings())

    def get_text(self, key: str, default: str) -> str:
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return rows[0][0] if rows else default

    def get_int(self, key: str, default: int) -> int:
        try:
            return int(float(self.get_text(key, str(default))))
        except ValueError:
            return default

    def set_text(self, key: str, value: str) -> None:
        validate_settings({**self._raw_all_settings(), key: value})
        self.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, value),
        )
        self._sync_to_yaml()

    def set_int(self, key: str, value: int) -> None:
        self.set_text(key, str(value))

    def all_settings(self) -> dict:
        return self._raw_all_settings()
