import requests
from typing import Optional

class LiftlogClient:
    """Simple REST client for the workout API.

    ``session`` defaults to a ``requests.Session``; any object exposing the
    same ``get``/``post`` interface (such as FastAPI's ``TestClient``) works.
    """

    def __init__(
        self,
        user_id: int,
        base_url: str = "http://localhost:8000",
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.headers = {"X-User-Id": str(user_id)}

    def _get(self, path: str, **params: str):
        resp = self.session.get(
            f"{self.base_url}{path}", params=params, headers=self.headers
        )
        resp.raise_for_status()
        return resp.json()

    def create_workout(self, workout: dict, exercises: list | None = None) -> int:
        resp = self.session.post(
            f"{self.base_url}/workouts",
            json={"workout": workout, "exercises": exercises or []},
            headers=self.headers,
        )
        resp.raise_for_status()
        return resp.json()["workout"]["id"]

    def list_workouts(self):
        return self._get("/workouts")

    def history(self, period: str = "all"):
        return self._get("/workouts/history", period=period)

    def stats(self) -> dict:
        return self._get("/stats")

    def summary(self) -> dict:
        return self._get("/workouts/summary")

    def progress(self) -> list:
        return self._get("/progress")
