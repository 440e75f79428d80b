import os
import sys
import datetime
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import (
    ExerciseRepository,
    SettingsRepository,
    UserRepository,
    WorkoutRepository,
)
from models import ExerciseSetCreate, WorkoutExerciseInput
from stats_service import StatisticsService

UTC = datetime.timezone.utc
BENCH, SQUAT, DEADLIFT = 1, 2, 3


def _at(year: int, month: int, day: int, hour: int = 10, minute: int = 0) -> datetime.datetime:
    return datetime.datetime(year, month, day, hour, minute, tzinfo=UTC)


def _sets(*pairs, completed: bool = True) -> list[ExerciseSetCreate]:
    return [ExerciseSetCreate(reps=r, weight=w, completed=completed) for r, w in pairs]


class StatisticsServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_stats.db"
        self.yaml_path = "test_stats.yaml"
        for p in [self.db_path, self.yaml_path]:
            if os.path.exists(p):
                os.remove(p)
        self.settings = SettingsRepository(self.db_path, self.yaml_path)
        self.users = UserRepository(self.db_path)
        self.exercises = ExerciseRepository(self.db_path)
        self.workouts = WorkoutRepository(self.db_path)
        self.stats = StatisticsService(
            self.workouts,
            self.workouts.workout_exercises,
            self.workouts.workout_exercises.sets,
            self.exercises,
            self.settings,
        )
        self.user = self.users.create("alice")
        self.other = self.users.create("bob")

    def tearDown(self) -> None:
        for p in [self.db_path, self.yaml_path]:
            if os.path.exists(p):
                os.remove(p)

    def _log(self, date, entries=(), user_id=None, name="Session") -> int:
        wid = self.workouts.create(user_id or self.user, name, date)
        self.workouts.replace_exercises(
            wid,
            [WorkoutExerciseInput(exercise_id=eid, sets=sets) for eid, sets in entries],
        )
        return wid

    def test_empty_history(self) -> None:
        now = _at(2024, 1, 10)
        stats = self.stats.compute_user_stats(self.user, now)
        self.assertEqual(
            stats.model_dump(by_alias=True),
            {
                "workoutsThisWeek": 0,
                "personalRecords": 0,
                "activeDays": 0,
                "totalWeight": "0",
            },
        )
        summary = self.stats.compute_workout_summary(self.user, now)
        self.assertEqual(
            summary.model_dump(by_alias=True),
            {
                "totalWorkouts": 0,
                "mostTrainedMuscle": "None",
                "lastWorkout": None,
                "weeklyAverage": 0.0,
            },
        )
        self.assertEqual(self.stats.compute_progress_series(self.user), [])
        self.assertEqual(self.stats.filter_workouts_by_period(self.user, "all", now), [])

    def test_end_to_end_scenario(self) -> None:
        self._log(
            _at(2024, 1, 1),
            [(BENCH, _sets((10, 80), (10, 80), (10, 80))), (SQUAT, _sets((5, 100), (5, 100)))],
        )
        self._log(_at(2024, 1, 8), [(BENCH, _sets((8, 85)))])
        stats = self.stats.compute_user_stats(self.user, _at(2024, 1, 10))
        self.assertEqual(stats.total_weight, "4.1k")
        self.assertEqual(stats.personal_records, 1)
        self.assertEqual(stats.active_days, 2)
        self.assertEqual(stats.workouts_this_week, 1)

    def test_personal_record_ties_do_not_count(self) -> None:
        self._log(_at(2024, 1, 1), [(BENCH, _sets((5, 100)))])
        self._log(_at(2024, 1, 2), [(BENCH, _sets((5, 100)))])
        self._log(_at(2024, 1, 3), [(BENCH, _sets((5, 120)))])
        stats = self.stats.compute_user_stats(self.user, _at(2024, 1, 3))
        self.assertEqual(stats.personal_records, 1)

    def test_first_weight_is_never_a_record(self) -> None:
        self._log(_at(2024, 1, 1), [(BENCH, _sets((5, 60), (5, 70), (5, 80)))])
        self._log(_at(2024, 1, 2), [(SQUAT, _sets((5, 100)))])
        stats = self.stats.compute_user_stats(self.user, _at(2024, 1, 2))
        self.assertEqual(stats.personal_records, 0)

    def test_one_record_per_workout_and_exercise(self) -> None:
        self._log(_at(2024, 1, 1), [(BENCH, _sets((5, 60))), (SQUAT, _sets((5, 90)))])
        self._log(
            _at(2024, 1, 5),
            [(BENCH, _sets((5, 70), (5, 80))), (SQUAT, _sets((5, 95)))],
        )
        stats = self.stats.compute_user_stats(self.user, _at(2024, 1, 5))
        self.assertEqual(stats.personal_records, 2)

    def test_records_replay_in_date_order(self) -> None:
        # logged out of order: the later-dated workout is created first
        self._log(_at(2024, 2, 1), [(BENCH, _sets((5, 90)))])
        self._log(_at(2024, 1, 1), [(BENCH, _sets((5, 80)))])
        stats = self.stats.compute_user_stats(self.user, _at(2024, 2, 1))
        self.assertEqual(stats.personal_records, 1)

    def test_sets_without_weight_are_skipped(self) -> None:
        self._log(_at(2024, 1, 1), [(BENCH, _sets((5, 80)))])
        self._log(_at(2024, 1, 2), [(BENCH, _sets((12, None)))])
        self._log(_at(2024, 1, 3), [(BENCH, _sets((3, 82.5)))])
        stats = self.stats.compute_user_stats(self.user, _at(2024, 1, 3))
        self.assertEqual(stats.personal_records, 1)
        self.assertEqual(stats.total_weight, "648")

    def test_uncompleted_sets_are_not_records(self) -> None:
        self._log(_at(2024, 1, 1), [(BENCH, _sets((5, 100)))])
        self._log(_at(2024, 1, 2), [(BENCH, _sets((5, 120), completed=False))])
        now = _at(2024, 1, 2)
        self.assertEqual(self.stats.compute_user_stats(self.user, now).personal_records, 0)
        self.settings.set_bool("pr_completed_sets_only", False)
        self.assertEqual(self.stats.compute_user_stats(self.user, now).personal_records, 1)

    def test_uncompleted_sets_do_not_raise_the_maximum(self) -> None:
        self._log(_at(2024, 1, 1), [(BENCH, _sets((5, 100)))])
        self._log(_at(2024, 1, 2), [(BENCH, _sets((5, 130), completed=False))])
        self._log(_at(2024, 1, 3), [(BENCH, _sets((5, 120)))])
        stats = self.stats.compute_user_stats(self.user, _at(2024, 1, 3))
        self.assertEqual(stats.personal_records, 1)

    def test_records_without_settings_use_completed_sets(self) -> None:
        stats = StatisticsService(
            self.workouts,
            self.workouts.workout_exercises,
            self.workouts.workout_exercises.sets,
            self.exercises,
        )
        self._log(_at(2024, 1, 1), [(BENCH, _sets((5, 100)))])
        self._log(_at(2024, 1, 2), [(BENCH, _sets((5, 120), completed=False))])
        self.assertEqual(stats.compute_user_stats(self.user, _at(2024, 1, 2)).personal_records, 0)

    def test_other_users_are_ignored(self) -> None:
        self._log(_at(2024, 1, 1), [(BENCH, _sets((10, 50)))])
        self._log(_at(2024, 1, 2), [(BENCH, _sets((10, 200)))], user_id=self.other)
        self._log(_at(2024, 1, 3), [(BENCH, _sets((10, 60)))], user_id=self.other)
        stats = self.stats.compute_user_stats(self.user, _at(2024, 1, 3))
        self.assertEqual(stats.total_weight, "500")
        self.assertEqual(stats.personal_records, 0)
        self.assertEqual(stats.active_days, 1)
        summary = self.stats.compute_workout_summary(self.user, _at(2024, 1, 3))
        self.assertEqual(summary.total_workouts, 1)

    def test_total_weight_formatting(self) -> None:
        self._log(_at(2024, 1, 1), [(BENCH, _sets((10, 95)))])
        now = _at(2024, 1, 2)
        self.assertEqual(self.stats.compute_user_stats(self.user, now).total_weight, "950")
        self._log(_at(2024, 1, 2), [(SQUAT, _sets((1, 50)))])
        self.assertEqual(self.stats.compute_user_stats(self.user, now).total_weight, "1k")
        self._log(_at(2024, 1, 2, 18), [(DEADLIFT, _sets((10, 383)))])
        self.assertEqual(self.stats.compute_user_stats(self.user, now).total_weight, "4.8k")

    def test_active_days_ignore_time_of_day(self) -> None:
        self._log(_at(2024, 1, 1, 7))
        self._log(_at(2024, 1, 1, 19))
        self._log(_at(2024, 1, 2, 7))
        stats = self.stats.compute_user_stats(self.user, _at(2024, 1, 2))
        self.assertEqual(stats.active_days, 2)

    def test_workouts_this_week_is_rolling(self) -> None:
        now = _at(2024, 3, 15, 12)
        week_ago = now - datetime.timedelta(days=7)
        self._log(week_ago)
        self._log(week_ago - datetime.timedelta(seconds=1))
        self._log(now)
        stats = self.stats.compute_user_stats(self.user, now)
        self.assertEqual(stats.workouts_this_week, 2)

    def test_filter_by_period(self) -> None:
        now = _at(2024, 5, 15, 12)
        monday = self._log(_at(2024, 5, 13, 0))
        sunday = self._log(_at(2024, 5, 12, 23))
        month_start = self._log(_at(2024, 5, 1, 0))
        year_start = self._log(_at(2024, 1, 1, 0))
        last_year = self._log(_at(2023, 12, 31, 23))

        def ids(period):
            return [w.id for w in self.stats.filter_workouts_by_period(self.user, period, now)]

        self.assertEqual(ids("week"), [monday])
        self.assertEqual(ids("month"), [monday, sunday, month_start])
        self.assertEqual(ids("year"), [monday, sunday, month_start, year_start])
        everything = [monday, sunday, month_start, year_start, last_year]
        self.assertEqual(ids("all"), everything)
        self.assertEqual(ids("decade"), everything)

        self.settings.set_text("week_start", "sunday")
        self.assertEqual(ids("week"), [monday, sunday])

    def test_filter_all_matches_store_contents(self) -> None:
        for day in (3, 1, 2):
            self._log(_at(2024, 1, day))
        self._log(_at(2024, 1, 4), user_id=self.other)
        stored = self.workouts.fetch_for_user(self.user)
        result = self.stats.filter_workouts_by_period(self.user, "all", _at(2024, 2, 1))
        self.assertEqual({w.id for w in result}, {w.id for w in stored})
        dates = [w.date for w in result]
        self.assertEqual(dates, sorted(dates, reverse=True))

    def test_progress_series_keeps_ten_most_recent(self) -> None:
        for day in range(1, 16):
            self._log(_at(2024, 2, day), [(BENCH, _sets((day, 10)))])
        points = self.stats.compute_progress_series(self.user)
        self.assertEqual(len(points), 10)
        self.assertEqual(points[0].date, "Feb 6")
        self.assertEqual(points[-1].date, "Feb 15")
        self.assertEqual([p.reps for p in points], list(range(6, 16)))

    def test_progress_series_limit_setting(self) -> None:
        for day in range(1, 6):
            self._log(_at(2024, 2, day))
        self.settings.set_text("progress_points", "3")
        points = self.stats.compute_progress_series(self.user)
        self.assertEqual([p.date for p in points], ["Feb 3", "Feb 4", "Feb 5"])

    def test_progress_point_totals(self) -> None:
        self._log(
            _at(2024, 1, 5),
            [(BENCH, _sets((10, 50), (None, 20))), (SQUAT, _sets((5, None)))],
        )
        self._log(_at(2024, 1, 6))
        points = self.stats.compute_progress_series(self.user)
        self.assertEqual(
            [p.model_dump(by_alias=True) for p in points],
            [
                {"date": "Jan 5", "weight": 70.0, "reps": 15, "volume": 500.0},
                {"date": "Jan 6", "weight": 0.0, "reps": 0, "volume": 0.0},
            ],
        )

    def test_most_trained_muscle_tie_goes_to_first_seen(self) -> None:
        # created out of date order; iteration follows dates
        self._log(_at(2024, 1, 2), [(BENCH, _sets((5, 60))), (SQUAT, _sets((5, 80)))])
        self._log(
            _at(2024, 1, 1),
            [(SQUAT, _sets((5, 80))), (BENCH, _sets(*[(5, 60)] * 5))],
        )
        summary = self.stats.compute_workout_summary(self.user, _at(2024, 1, 3))
        self.assertEqual(summary.most_trained_muscle, "Legs")

    def test_most_trained_muscle_counts_workout_exercises(self) -> None:
        self._log(_at(2024, 1, 1), [(BENCH, _sets(*[(5, 60)] * 10))])
        self._log(_at(2024, 1, 2), [(DEADLIFT, _sets((5, 100)))])
        self._log(_at(2024, 1, 3), [(DEADLIFT, _sets((5, 100)))])
        summary = self.stats.compute_workout_summary(self.user, _at(2024, 1, 3))
        self.assertEqual(summary.most_trained_muscle, "Back")

    def test_most_trained_muscle_without_groups(self) -> None:
        stretch = self.exercises.add("Stretching", "flexibility")
        self._log(_at(2024, 1, 1), [(stretch, [])])
        summary = self.stats.compute_workout_summary(self.user, _at(2024, 1, 3))
        self.assertEqual(summary.most_trained_muscle, "None")

    def test_weekly_average(self) -> None:
        now = _at(2024, 3, 29, 12)
        for k in range(7):
            self._log(now - datetime.timedelta(days=3 * k))
        self._log(now - datetime.timedelta(days=40))
        summary = self.stats.compute_workout_summary(self.user, now)
        self.assertEqual(summary.weekly_average, 1.8)
        self._log(now - datetime.timedelta(days=27))
        summary = self.stats.compute_workout_summary(self.user, now)
        self.assertEqual(summary.weekly_average, 2.0)
        self.assertEqual(summary.total_workouts, 9)

    def test_summary_last_workout(self) -> None:
        self._log(_at(2024, 1, 1), name="Old")
        latest = self._log(_at(2024, 1, 9), name="Latest")
        self._log(_at(2024, 1, 5), name="Middle")
        summary = self.stats.compute_workout_summary(self.user, _at(2024, 1, 10))
        self.assertEqual(summary.last_workout.id, latest)
        self.assertEqual(summary.last_workout.name, "Latest")
        self.assertEqual(summary.total_workouts, 3)

    def test_dashboard_and_detail(self) -> None:
        for day in range(1, 8):
            self._log(_at(2024, 1, day), [(SQUAT, _sets((5, 100))), (BENCH, _sets((5, 60), (5, 65)))])
        dashboard = self.stats.dashboard(self.user, _at(2024, 1, 8))
        self.assertEqual(len(dashboard.recent_workouts), 5)
        self.assertEqual(dashboard.last_workout.date, _at(2024, 1, 7))
        self.assertEqual(len(dashboard.progress_data), 7)
        self.assertEqual(dashboard.stats.workouts_this_week, 7)

        detail = self.stats.workout_detail(dashboard.last_workout.id)
        self.assertEqual([e.exercise.name for e in detail.exercises], ["Squat", "Bench Press"])
        self.assertEqual([s.set_number for s in detail.exercises[1].sets], [1, 2])


if __name__ == "__main__":
    unittest.main()
