import logging
import sqlite3
from typing import List
from fastapi import (
    FastAPI,
    HTTPException,
    Request,
    Header,
    Depends,
)
from fastapi.responses import JSONResponse
from config import APP_VERSION
from db import (
    NotFoundError,
    UserRepository,
    ExerciseRepository,
    WorkoutRepository,
    AsyncWorkoutRepository,
    ConversationRepository,
    SettingsRepository,
)
from models import (
    AiConversation,
    AiMessage,
    ConversationPayload,
    Dashboard,
    Exercise,
    ExerciseCreate,
    ProgressPoint,
    User,
    UserCreate,
    UserStats,
    UserUpdate,
    Workout,
    WorkoutDetail,
    WorkoutPayload,
    WorkoutSummary,
    WorkoutUpdatePayload,
)
from stats_service import StatisticsService

logger = logging.getLogger(__name__)

WELCOME_MESSAGE = (
    "Hello! I'm your AI workout coach. How can I help you with your fitness "
    "journey today? You can ask me about workout routines, exercise form, "
    "nutrition advice, or recovery strategies."
)
WELCOME_BACK_MESSAGE = (
    "Hello again! I'm your AI workout coach. How can I help you with your "
    "fitness journey today?"
)


class FitnessAPI:
    """Provides REST endpoints for workout logging and dashboard statistics."""

    def __init__(
        self,
        db_path: str = "workout.db",
        yaml_path: str = "settings.yaml",
    ) -> None:
        self.db_path = db_path
        self.settings = SettingsRepository(db_path, yaml_path)
        self.users = UserRepository(db_path)
        self.exercises = ExerciseRepository(db_path)
        self.workouts = WorkoutRepository(db_path)
        self.workout_exercises = self.workouts.workout_exercises
        self.sets = self.workout_exercises.sets
        self.async_workouts = AsyncWorkoutRepository(db_path)
        self.conversations = ConversationRepository(db_path)
        self.statistics = StatisticsService(
            self.workouts,
            self.workout_exercises,
            self.sets,
            self.exercises,
            self.settings,
        )
        self.app = FastAPI(
            title="Liftlog API",
            description="REST API for workout logging and progress statistics",
            version=APP_VERSION,
        )
        self._setup_routes()

    def _owned_workout(self, workout_id: int, user: User) -> Workout:
        try:
            workout = self.workouts.fetch_detail(workout_id)
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        if workout.user_id != user.id:
            raise HTTPException(status_code=404, detail="workout not found")
        return workout

    def _check_exercises(self, payload_exercises) -> None:
        for entry in payload_exercises:
            try:
                self.exercises.fetch_detail(entry.exercise_id)
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))

    def _setup_routes(self) -> None:

        @self.app.exception_handler(sqlite3.Error)
        async def store_unavailable(request: Request, exc: sqlite3.Error):
            logger.exception("record store failure on %s", request.url.path)
            return JSONResponse(
                status_code=503, content={"detail": "record store unavailable"}
            )

        def current_user(x_user_id: int | None = Header(default=None)) -> User:
            if x_user_id is None:
                raise HTTPException(status_code=401, detail="Unauthorized")
            try:
                return self.users.fetch_detail(x_user_id)
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            self.exercises.fetch_all("SELECT 1;")
            return {"status": "ok"}

        @self.app.get("/exercises")
        def list_exercises() -> List[Exercise]:
            return self.exercises.fetch_all_exercises()

        @self.app.post("/exercises", status_code=201)
        def create_exercise(payload: ExerciseCreate) -> Exercise:
            eid = self.exercises.add(
                payload.name,
                payload.type,
                payload.equipment,
                payload.muscle_group,
                payload.description,
            )
            logger.info("exercise %s created", eid)
            return self.exercises.fetch_detail(eid)

        @self.app.post("/users", status_code=201)
        def create_user(payload: UserCreate):
            try:
                uid = self.users.create(**payload.model_dump())
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            logger.info("user %s created", uid)
            return {"id": uid}

        @self.app.get("/user")
        def get_user(user: User = Depends(current_user)) -> User:
            return user

        @self.app.patch("/user/profile")
        def update_profile(
            patch: UserUpdate, user: User = Depends(current_user)
        ) -> User:
            return self.users.update(user.id, patch)

        @self.app.get("/workouts")
        async def list_workouts(user: User = Depends(current_user)) -> List[Workout]:
            return await self.async_workouts.fetch_for_user(user.id)

        @self.app.post("/workouts", status_code=201)
        def create_workout(
            payload: WorkoutPayload, user: User = Depends(current_user)
        ):
            self._check_exercises(payload.exercises)
            data = payload.workout
            wid = self.workouts.create(
                user.id,
                data.name,
                data.date,
                data.notes,
                data.type,
                data.completed,
                data.duration_minutes,
            )
            self.workouts.replace_exercises(wid, payload.exercises)
            logger.info("workout %s created for user %s", wid, user.id)
            return {"workout": self.workouts.fetch_detail(wid)}

        @self.app.get("/workouts/history")
        def workout_history(
            period: str = "all", user: User = Depends(current_user)
        ) -> List[Workout]:
            return self.statistics.filter_workouts_by_period(user.id, period)

        @self.app.get("/workouts/summary")
        def workout_summary(user: User = Depends(current_user)) -> WorkoutSummary:
            return self.statistics.compute_workout_summary(user.id)

        @self.app.get("/workouts/{workout_id}")
        def get_workout(
            workout_id: int, user: User = Depends(current_user)
        ) -> WorkoutDetail:
            self._owned_workout(workout_id, user)
            return self.statistics.workout_detail(workout_id)

        @self.app.put("/workouts/{workout_id}")
        def update_workout(
            workout_id: int,
            payload: WorkoutUpdatePayload,
            user: User = Depends(current_user),
        ):
            self._owned_workout(workout_id, user)
            if payload.exercises is not None:
                self._check_exercises(payload.exercises)
            try:
                self.workouts.update(workout_id, payload.workout, payload.exercises)
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            logger.info("workout %s updated", workout_id)
            return {"status": "updated"}

        @self.app.delete("/workouts/{workout_id}")
        def delete_workout(workout_id: int, user: User = Depends(current_user)):
            self._owned_workout(workout_id, user)
            self.workouts.delete(workout_id)
            logger.info("workout %s deleted", workout_id)
            return {"status": "deleted"}

        @self.app.get("/dashboard")
        def dashboard(user: User = Depends(current_user)) -> Dashboard:
            data = self.statistics.dashboard(user.id)
            data.user = user
            return data

        @self.app.get("/progress")
        def progress(user: User = Depends(current_user)) -> List[ProgressPoint]:
            return self.statistics.compute_progress_series(user.id)

        @self.app.get("/stats")
        def stats(user: User = Depends(current_user)) -> UserStats:
            return self.statistics.compute_user_stats(user.id)

        @self.app.get("/settings/general")
        def get_general_settings():
            return self.settings.all_settings()

        @self.app.post("/settings/general")
        def update_general_settings(
            week_start: str = None,
            progress_points: int = None,
            pr_completed_sets_only: bool = None,
            weight_unit: str = None,
            language: str = None,
        ):
            try:
                if week_start is not None:
                    self.settings.set_text("week_start", week_start)
                if progress_points is not None:
                    self.settings.set_text("progress_points", str(progress_points))
                if pr_completed_sets_only is not None:
                    self.settings.set_bool(
                        "pr_completed_sets_only", pr_completed_sets_only
                    )
                if weight_unit is not None:
                    self.settings.set_text("weight_unit", weight_unit)
                if language is not None:
                    self.settings.set_text("language", language)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"status": "updated"}

        @self.app.get("/conversation")
        def get_conversation(user: User = Depends(current_user)) -> AiConversation:
            conversation = self.conversations.fetch_for_user(user.id)
            if conversation is None:
                conversation = self.conversations.save(
                    user.id, [AiMessage(role="assistant", content=WELCOME_MESSAGE)]
                )
            return conversation

        @self.app.post("/conversation")
        def save_conversation(
            payload: ConversationPayload, user: User = Depends(current_user)
        ) -> AiConversation:
            return self.conversations.save(user.id, payload.messages)

        @self.app.post("/conversation/reset")
        def reset_conversation(user: User = Depends(current_user)):
            if not self.conversations.reset(user.id):
                raise HTTPException(status_code=404, detail="conversation not found")
            self.conversations.save(
                user.id, [AiMessage(role="assistant", content=WELCOME_BACK_MESSAGE)]
            )
            return {"status": "reset"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(FitnessAPI().app)
