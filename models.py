from __future__ import annotations
import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def _utc(value: datetime.datetime) -> datetime.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class User(CamelModel):
    id: int
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    height: Optional[int] = None
    weight: Optional[int] = None
    goals: Optional[str] = None
    profile_image: Optional[str] = None


class Exercise(CamelModel):
    id: int
    name: str
    type: str
    equipment: Optional[str] = None
    muscle_group: Optional[str] = None
    description: Optional[str] = None


class Workout(CamelModel):
    id: int
    user_id: int
    name: str
    notes: Optional[str] = None
    type: Optional[str] = None
    date: datetime.datetime
    completed: bool = False
    duration_minutes: Optional[int] = None

    @field_validator("date")
    @classmethod
    def _assume_utc(cls, value: datetime.datetime) -> datetime.datetime:
        return _utc(value)


class WorkoutExercise(CamelModel):
    id: int
    workout_id: int
    exercise_id: int
    order: int


class ExerciseSet(CamelModel):
    id: int
    workout_exercise_id: int
    set_number: int
    reps: Optional[int] = None
    weight: Optional[float] = None
    duration_seconds: Optional[int] = None
    distance_meters: Optional[int] = None
    completed: bool = False


class AiMessage(CamelModel):
    role: str
    content: str


class AiConversation(CamelModel):
    id: int
    user_id: int
    timestamp: datetime.datetime
    messages: List[AiMessage] = Field(default_factory=list)


# Write payloads. Patch models only carry the fields a caller actually sent;
# repositories apply them with ``model_dump(exclude_unset=True)``.


class UserCreate(CamelModel):
    username: str = Field(min_length=1)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    height: Optional[int] = None
    weight: Optional[int] = None
    goals: Optional[str] = None
    profile_image: Optional[str] = None


class UserUpdate(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    height: Optional[int] = None
    weight: Optional[int] = None
    goals: Optional[str] = None
    profile_image: Optional[str] = None


class ExerciseCreate(CamelModel):
    name: str = Field(min_length=1)
    type: str = "strength"
    equipment: Optional[str] = None
    muscle_group: Optional[str] = None
    description: Optional[str] = None


class WorkoutCreate(CamelModel):
    name: str = Field(min_length=1)
    notes: Optional[str] = None
    type: Optional[str] = None
    date: Optional[datetime.datetime] = None
    completed: bool = False
    duration_minutes: Optional[int] = Field(default=None, ge=0)


class WorkoutUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1)
    notes: Optional[str] = None
    type: Optional[str] = None
    date: Optional[datetime.datetime] = None
    completed: Optional[bool] = None
    duration_minutes: Optional[int] = Field(default=None, ge=0)


class ExerciseSetCreate(CamelModel):
    set_number: Optional[int] = Field(default=None, ge=1)
    reps: Optional[int] = Field(default=None, ge=0)
    weight: Optional[float] = Field(default=None, ge=0)
    duration_seconds: Optional[int] = Field(default=None, ge=0)
    distance_meters: Optional[int] = Field(default=None, ge=0)
    completed: bool = False


class ExerciseSetUpdate(CamelModel):
    reps: Optional[int] = Field(default=None, ge=0)
    weight: Optional[float] = Field(default=None, ge=0)
    duration_seconds: Optional[int] = Field(default=None, ge=0)
    distance_meters: Optional[int] = Field(default=None, ge=0)
    completed: Optional[bool] = None


class WorkoutExerciseInput(CamelModel):
    exercise_id: int
    sets: List[ExerciseSetCreate] = Field(default_factory=list)


class WorkoutPayload(CamelModel):
    workout: WorkoutCreate
    exercises: List[WorkoutExerciseInput] = Field(default_factory=list)


class WorkoutUpdatePayload(CamelModel):
    workout: WorkoutUpdate = Field(default_factory=WorkoutUpdate)
    exercises: Optional[List[WorkoutExerciseInput]] = None


class ConversationPayload(CamelModel):
    messages: List[AiMessage]


# Aggregation results.


class UserStats(CamelModel):
    workouts_this_week: int = 0
    personal_records: int = 0
    active_days: int = 0
    total_weight: str = "0"


class WorkoutSummary(CamelModel):
    total_workouts: int = 0
    most_trained_muscle: str = "None"
    last_workout: Optional[Workout] = None
    weekly_average: float = 0.0


class ProgressPoint(CamelModel):
    date: str
    weight: float = 0
    reps: int = 0
    volume: float = 0


class WorkoutExerciseDetail(CamelModel):
    order: int
    exercise: Exercise
    sets: List[ExerciseSet] = Field(default_factory=list)


class WorkoutDetail(CamelModel):
    workout: Workout
    exercises: List[WorkoutExerciseDetail] = Field(default_factory=list)


class Dashboard(CamelModel):
    user: Optional[User] = None
    stats: UserStats
    recent_workouts: List[Workout] = Field(default_factory=list)
    last_workout: Optional[Workout] = None
    progress_data: List[ProgressPoint] = Field(default_factory=list)
