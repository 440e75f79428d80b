from __future__ import annotations
import datetime
import logging
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from db import (
    ExerciseRepository,
    ExerciseSetRepository,
    SettingsRepository,
    WorkoutExerciseRepository,
    WorkoutRepository,
)
from models import (
    Dashboard,
    Exercise,
    ExerciseSet,
    ProgressPoint,
    UserStats,
    Workout,
    WorkoutDetail,
    WorkoutExercise,
    WorkoutExerciseDetail,
    WorkoutSummary,
)
from tools import DateTools, MathTools

logger = logging.getLogger(__name__)

SetRow = Tuple[Workout, WorkoutExercise, ExerciseSet]


class StatisticsService:
    """Compute dashboard statistics from a user's workout history.

    Every call re-reads the record store; nothing is cached between calls.
    Store errors propagate to the caller unchanged.
    """

    ROLLING_WEEK_DAYS = 7
    AVERAGE_WINDOW_DAYS = 28
    AVERAGE_WINDOW_WEEKS = 4
    RECENT_WORKOUTS = 5
    NO_MUSCLE_GROUP = "None"

    def __init__(
        self,
        workout_repo: WorkoutRepository,
        workout_exercise_repo: WorkoutExerciseRepository,
        set_repo: ExerciseSetRepository,
        exercise_repo: ExerciseRepository,
        settings_repo: SettingsRepository | None = None,
    ) -> None:
        self.workouts = workout_repo
        self.workout_exercises = workout_exercise_repo
        self.sets = set_repo
        self.exercises = exercise_repo
        self.settings = settings_repo

    @staticmethod
    def _now(now: Optional[datetime.datetime]) -> datetime.datetime:
        if now is None:
            return datetime.datetime.now(datetime.timezone.utc)
        return DateTools.ensure_aware(now)

    def _workouts(self, user_id: int) -> List[Workout]:
        """Return the user's workouts, most recent first."""
        rows = [w for w in self.workouts.fetch_for_user(user_id) if w.user_id == user_id]
        return sorted(rows, key=lambda w: (w.date, w.id), reverse=True)

    def _set_stream(self, workouts: Iterable[Workout]) -> Iterator[SetRow]:
        """Flatten workouts into ``(workout, workout_exercise, set)`` rows.

        Exercises follow their ``order`` and sets their ``set_number``.
        """
        for workout in workouts:
            entries = sorted(
                self.workout_exercises.fetch_for_workout(workout.id),
                key=lambda we: (we.order, we.id),
            )
            for entry in entries:
                sets = sorted(
                    self.sets.fetch_for_workout_exercise(entry.id),
                    key=lambda s: (s.set_number, s.id),
                )
                for exercise_set in sets:
                    yield workout, entry, exercise_set

    def _setting_text(self, key: str, default: str) -> str:
        if self.settings is None:
            return default
        return self.settings.get_text(key, default)

    def filter_workouts_by_period(
        self,
        user_id: int,
        period: str,
        now: Optional[datetime.datetime] = None,
    ) -> List[Workout]:
        """Return workouts dated at or after the start of ``period``."""
        start = DateTools.period_start(
            period, self._now(now), self._setting_text("week_start", "monday")
        )
        workouts = self._workouts(user_id)
        if start is None:
            return workouts
        return [w for w in workouts if w.date >= start]

    def recent_workouts(self, user_id: int, limit: int = RECENT_WORKOUTS) -> List[Workout]:
        return self._workouts(user_id)[:limit]

    def compute_user_stats(
        self, user_id: int, now: Optional[datetime.datetime] = None
    ) -> UserStats:
        """Return workouts this week, PR count, active days and lifted total."""
        now = self._now(now)
        workouts = list(reversed(self._workouts(user_id)))
        if not workouts:
            return UserStats()
        week_ago = now - datetime.timedelta(days=self.ROLLING_WEEK_DAYS)
        rows = list(self._set_stream(workouts))
        total = sum(MathTools.set_volume(s.weight, s.reps) for _w, _we, s in rows)
        stats = UserStats(
            workouts_this_week=sum(1 for w in workouts if w.date >= week_ago),
            personal_records=self._count_personal_records(rows),
            active_days=len({w.date.date() for w in workouts}),
            total_weight=MathTools.format_total_weight(total),
        )
        logger.debug("stats for user %s: %s", user_id, stats)
        return stats

    def _count_personal_records(self, rows: Iterable[SetRow]) -> int:
        """Replay chronological set rows and count weight records per exercise.

        Only completed sets take part unless ``pr_completed_sets_only`` is
        switched off. The first weight logged for an exercise only seeds its
        maximum. A heavier set counts when its workout is dated strictly
        after the workout holding the previous maximum, so one workout adds
        at most one record per exercise.
        """
        completed_only = True
        if self.settings is not None:
            completed_only = self.settings.get_bool("pr_completed_sets_only", True)
        best: Dict[int, Tuple[float, datetime.datetime]] = {}
        records = 0
        for workout, entry, exercise_set in rows:
            if exercise_set.weight is None:
                continue
            if completed_only and not exercise_set.completed:
                continue
            previous = best.get(entry.exercise_id)
            if previous is not None:
                if exercise_set.weight <= previous[0]:
                    continue
                if workout.date > previous[1]:
                    records += 1
            best[entry.exercise_id] = (exercise_set.weight, workout.date)
        return records

    def compute_workout_summary(
        self, user_id: int, now: Optional[datetime.datetime] = None
    ) -> WorkoutSummary:
        now = self._now(now)
        workouts = self._workouts(user_id)
        window_start = now - datetime.timedelta(days=self.AVERAGE_WINDOW_DAYS)
        recent = sum(1 for w in workouts if w.date >= window_start)
        return WorkoutSummary(
            total_workouts=len(workouts),
            most_trained_muscle=self._most_trained_muscle(reversed(workouts)),
            last_workout=workouts[0] if workouts else None,
            weekly_average=MathTools.round_half_up(
                recent / self.AVERAGE_WINDOW_WEEKS, 1
            ),
        )

    def _most_trained_muscle(self, workouts: Iterable[Workout]) -> str:
        """Return the muscle group logged in the most workout exercises.

        ``workouts`` must be chronological; ties keep the group seen first.
        """
        catalog: Dict[int, Optional[Exercise]] = {}
        tallies: Dict[str, int] = {}
        for workout in workouts:
            entries = sorted(
                self.workout_exercises.fetch_for_workout(workout.id),
                key=lambda we: (we.order, we.id),
            )
            for entry in entries:
                if entry.exercise_id not in catalog:
                    catalog[entry.exercise_id] = self.exercises.fetch(entry.exercise_id)
                exercise = catalog[entry.exercise_id]
                if exercise is None or not exercise.muscle_group:
                    continue
                tallies[exercise.muscle_group] = tallies.get(exercise.muscle_group, 0) + 1
        winner, top = self.NO_MUSCLE_GROUP, 0
        for group, count in tallies.items():
            if count > top:
                winner, top = group, count
        return winner

    def compute_progress_series(self, user_id: int) -> List[ProgressPoint]:
        """Return per-workout weight, reps and volume totals, oldest first."""
        limit = 10
        if self.settings is not None:
            limit = self.settings.get_int("progress_points", limit)
        selected = self._workouts(user_id)[:limit]
        selected.reverse()
        points = []
        for workout in selected:
            weight = 0.0
            reps = 0
            volume = 0.0
            for _w, _we, exercise_set in self._set_stream([workout]):
                if exercise_set.weight is not None:
                    weight += exercise_set.weight
                if exercise_set.reps is not None:
                    reps += exercise_set.reps
                volume += MathTools.set_volume(exercise_set.weight, exercise_set.reps)
            points.append(
                ProgressPoint(
                    date=DateTools.short_date(workout.date),
                    weight=weight,
                    reps=reps,
                    volume=volume,
                )
            )
        return points

    def dashboard(
        self, user_id: int, now: Optional[datetime.datetime] = None
    ) -> Dashboard:
        recent = self.recent_workouts(user_id)
        return Dashboard(
            stats=self.compute_user_stats(user_id, now),
            recent_workouts=recent,
            last_workout=recent[0] if recent else None,
            progress_data=self.compute_progress_series(user_id),
        )

    def workout_detail(self, workout_id: int) -> WorkoutDetail:
        """Return a workout with its catalog exercises and their sets."""
        workout = self.workouts.fetch_detail(workout_id)
        exercises = []
        for entry in self.workout_exercises.fetch_for_workout(workout_id):
            exercise = self.exercises.fetch(entry.exercise_id)
            if exercise is None:
                logger.warning(
                    "workout %s references missing exercise %s",
                    workout_id,
                    entry.exercise_id,
                )
                continue
            exercises.append(
                WorkoutExerciseDetail(
                    order=entry.order,
                    exercise=exercise,
                    sets=self.sets.fetch_for_workout_exercise(entry.id),
                )
            )
        return WorkoutDetail(workout=workout, exercises=exercises)
