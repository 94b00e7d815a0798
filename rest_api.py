import datetime
import hmac
import logging
from typing import Callable, Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.responses import JSONResponse

from config import APP_VERSION, default_db_path, default_settings_path
from db import (
    BodyWeightRepository,
    LeaderboardCategoryRepository,
    LiftRepository,
    MovementRepository,
    SessionRepository,
    SettingsRepository,
    UserRepository,
    WorkoutRepository,
)
from exceptions import (
    ActiveSessionExists,
    ConflictError,
    NotFoundError,
    TransientError,
)
from leaderboard_service import LeaderboardService
from rest_timer import is_compound, rest_seconds_for
from schemas import (
    AddLiftRequest,
    LogSetsRequest,
    SanityCheckRequest,
    StartSessionRequest,
)
from session_service import SessionService
from stats_service import StatisticsService
from time_buckets import utcnow

logger = logging.getLogger(__name__)


def _http_error(e: Exception) -> HTTPException:
    """Translate a tracker error into the matching HTTP status."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ConflictError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, TransientError):
        logger.warning("Storage unavailable: %s", e)
        return HTTPException(status_code=503, detail="storage temporarily unavailable")
    return HTTPException(status_code=400, detail=str(e))


class TrackerAPI:
    """Provides REST endpoints for sessions, dashboard and leaderboard."""

    def __init__(
        self,
        db_path: str = "liftlog.db",
        yaml_path: str = "settings.yaml",
        clock: Optional[Callable[[], datetime.datetime]] = None,
    ) -> None:
        self.db_path = db_path
        self.clock = clock or utcnow
        self.settings = SettingsRepository(db_path, yaml_path)
        self.users = UserRepository(db_path)
        self.lifts = LiftRepository(db_path)
        self.workouts = WorkoutRepository(db_path)
        self.sessions = SessionRepository(db_path)
        self.body_weights = BodyWeightRepository(db_path)
        self.movements = MovementRepository(db_path)
        self.categories = LeaderboardCategoryRepository(db_path)
        self.leaderboard = LeaderboardService(
            self.categories,
            self.sessions,
            self.lifts,
            self.users,
            self.movements,
            self.settings,
            clock=self.clock,
        )
        self.leaderboard.ensure_default_categories()
        self.session_service = SessionService(
            self.sessions,
            self.workouts,
            self.lifts,
            self.leaderboard,
            clock=self.clock,
        )
        self.statistics = StatisticsService(
            self.sessions,
            self.workouts,
            self.lifts,
            self.settings,
            self.body_weights,
            self.movements,
            clock=self.clock,
        )
        self.app = FastAPI(title="LiftLog API", version=APP_VERSION)
        self._setup_routes()

    def current_user(
        self,
        x_user_id: Optional[str] = Header(None),
        x_auth_proxy_secret: Optional[str] = Header(None),
    ) -> int:
        """Return the user id forwarded by the auth proxy."""
        try:
            secret = self.settings.get_text("auth_proxy_secret", "")
        except TransientError as e:
            raise _http_error(e)
        if secret and secret not in ("None", "True"):
            if not x_auth_proxy_secret or not hmac.compare_digest(
                secret, x_auth_proxy_secret
            ):
                raise HTTPException(status_code=401, detail="unauthorized")
        if not x_user_id:
            raise HTTPException(status_code=401, detail="unauthorized")
        try:
            user_id = int(x_user_id)
        except ValueError:
            raise HTTPException(status_code=401, detail="unauthorized")
        try:
            known = self.users.fetch_detail(user_id) is not None
        except TransientError as e:
            raise _http_error(e)
        if not known:
            raise HTTPException(status_code=401, detail="unauthorized")
        return user_id

    def _setup_routes(self) -> None:
        user = Depends(self.current_user)

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            """Return API and database connection status."""
            try:
                self.settings.all_settings()
                return {"status": "ok"}
            except TransientError as e:
                raise _http_error(e)

        @self.app.post("/sessions", status_code=201)
        def start_session(body: StartSessionRequest, user_id: int = user):
            try:
                session = self.session_service.start(user_id, body.workout_id)
                return session.to_dict()
            except ActiveSessionExists as e:
                return JSONResponse(
                    status_code=409,
                    content={"detail": str(e), "session_id": e.session_id},
                )
            except (ValueError, LookupError, ConflictError, TransientError) as e:
                raise _http_error(e)

        @self.app.get("/sessions/active")
        def active_session(user_id: int = user):
            try:
                session = self.session_service.active_session(user_id)
            except TransientError as e:
                raise _http_error(e)
            return session.to_dict() if session else None

        @self.app.get("/sessions/{session_id}")
        def get_session(session_id: int, user_id: int = user):
            try:
                return self.session_service.get(user_id, session_id)
            except (ValueError, LookupError, TransientError) as e:
                raise _http_error(e)

        @self.app.put("/sessions/{session_id}")
        def log_sets(session_id: int, body: LogSetsRequest, user_id: int = user):
            entries = [s.to_entry() for s in body.sets]
            try:
                if body.finish:
                    summary = self.session_service.finish(user_id, session_id, entries)
                    return {"success": True, "summary": summary}
                self.session_service.log_sets(user_id, session_id, entries)
                return {"success": True}
            except (ValueError, LookupError, TransientError) as e:
                raise _http_error(e)

        @self.app.post("/sessions/{session_id}/sanity_check")
        def sanity_check(session_id: int, body: SanityCheckRequest, user_id: int = user):
            try:
                results = self.session_service.sanity_check(
                    user_id, session_id, [s.to_entry() for s in body.sets]
                )
            except (ValueError, LookupError, TransientError) as e:
                raise _http_error(e)
            return {"results": results}

        @self.app.post("/sessions/{session_id}/lifts", status_code=201)
        def add_lift(session_id: int, body: AddLiftRequest, user_id: int = user):
            try:
                return self.session_service.add_lift(user_id, session_id, body.lift_id)
            except (ValueError, LookupError, ConflictError, TransientError) as e:
                raise _http_error(e)

        @self.app.delete("/sessions/{session_id}")
        def abandon_session(session_id: int, user_id: int = user):
            try:
                self.session_service.abandon(user_id, session_id)
                return {"status": "deleted"}
            except (ValueError, LookupError, TransientError) as e:
                raise _http_error(e)

        @self.app.get("/dashboard")
        def dashboard(user_id: int = user):
            try:
                return self.statistics.dashboard(user_id)
            except TransientError as e:
                raise _http_error(e)

        @self.app.get("/leaderboard")
        def leaderboard(user_id: int = user):
            try:
                return {"categories": self.leaderboard.leaderboard(user_id)}
            except (ValueError, TransientError) as e:
                raise _http_error(e)

        @self.app.get("/lifts/{lift_id}/history")
        def lift_history(lift_id: int, user_id: int = user):
            try:
                return {
                    "lift_id": lift_id,
                    "history": self.statistics.lift_history(user_id, lift_id),
                }
            except (LookupError, TransientError) as e:
                raise _http_error(e)

        @self.app.get("/lifts/{lift_id}/rest")
        def lift_rest(lift_id: int, user_id: int = user):
            try:
                lift = self.lifts.fetch_visible(lift_id, user_id)
                if lift is None:
                    raise NotFoundError("lift not found")
                compound = self.settings.get_int("compound_rest_seconds", 90)
                isolation = self.settings.get_int("isolation_rest_seconds", 60)
            except (LookupError, TransientError) as e:
                raise _http_error(e)
            name = lift[1]
            return {
                "lift_id": lift_id,
                "name": name,
                "compound": is_compound(name),
                "seconds": rest_seconds_for(name, compound, isolation),
            }


api = TrackerAPI(default_db_path(), default_settings_path())
app = api.app

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app)
