import requests
from typing import Iterable, List, Optional


class TrackerClient:
    """Simple REST client for the LiftLog API."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        user_id: Optional[int] = None,
        proxy_secret: Optional[str] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.proxy_secret = proxy_secret

    def _headers(self) -> dict:
        headers = {}
        if self.user_id is not None:
            headers["X-User-Id"] = str(self.user_id)
        if self.proxy_secret:
            headers["X-Auth-Proxy-Secret"] = self.proxy_secret
        return headers

    def start_session(self, workout_id: int) -> dict:
        resp = requests.post(
            f"{self.base_url}/sessions",
            json={"workout_id": workout_id},
            headers=self._headers(),
        )
        resp.raise_for_status()
        return resp.json()

    def active_session(self) -> Optional[dict]:
        resp = requests.get(f"{self.base_url}/sessions/active", headers=self._headers())
        resp.raise_for_status()
        return resp.json()

    def get_session(self, session_id: int) -> dict:
        resp = requests.get(
            f"{self.base_url}/sessions/{session_id}", headers=self._headers()
        )
        resp.raise_for_status()
        return resp.json()

    def log_sets(self, session_id: int, sets: Iterable[dict], finish: bool = False) -> dict:
        resp = requests.put(
            f"{self.base_url}/sessions/{session_id}",
            json={"sets": list(sets), "finish": finish},
            headers=self._headers(),
        )
        resp.raise_for_status()
        return resp.json()

    def finish_session(self, session_id: int, sets: Iterable[dict]) -> dict:
        return self.log_sets(session_id, sets, finish=True)["summary"]

    def sanity_check(self, session_id: int, sets: Iterable[dict]) -> List[dict]:
        resp = requests.post(
            f"{self.base_url}/sessions/{session_id}/sanity_check",
            json={"sets": list(sets)},
            headers=self._headers(),
        )
        resp.raise_for_status()
        return resp.json()["results"]

    def add_lift(self, session_id: int, lift_id: int) -> dict:
        resp = requests.post(
            f"{self.base_url}/sessions/{session_id}/lifts",
            json={"lift_id": lift_id},
            headers=self._headers(),
        )
        resp.raise_for_status()
        return resp.json()

    def abandon_session(self, session_id: int) -> None:
        resp = requests.delete(
            f"{self.base_url}/sessions/{session_id}", headers=self._headers()
        )
        resp.raise_for_status()

    def dashboard(self) -> dict:
        resp = requests.get(f"{self.base_url}/dashboard", headers=self._headers())
        resp.raise_for_status()
        return resp.json()

    def leaderboard(self) -> List[dict]:
        resp = requests.get(f"{self.base_url}/leaderboard", headers=self._headers())
        resp.raise_for_status()
        return resp.json()["categories"]

    def lift_history(self, lift_id: int) -> List[dict]:
        resp = requests.get(
            f"{self.base_url}/lifts/{lift_id}/history", headers=self._headers()
        )
        resp.raise_for_status()
        return resp.json()["history"]

    def rest_seconds(self, lift_id: int) -> int:
        resp = requests.get(
            f"{self.base_url}/lifts/{lift_id}/rest", headers=self._headers()
        )
        resp.raise_for_status()
        return resp.json()["seconds"]
