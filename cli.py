import argparse
import datetime
import json
import logging
import shutil

from db import UserRepository, WorkoutRepository, ExerciseRepository, SettingsRepository
from models import ExerciseSetCreate, WorkoutExerciseInput
from stats_service import StatisticsService
from tools import DateTools


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def _exercise_id(exercises: ExerciseRepository, name: str) -> int:
    for exercise in exercises.fetch_all_exercises():
        if exercise.name == name:
            return exercise.id
    raise ValueError(f"exercise {name} missing from catalog")


def demo_data(db_path: str, username: str = "demo") -> int:
    """Create a demo user with three workouts over two weeks and return its id."""
    users = UserRepository(db_path)
    existing = users.fetch_by_username(username)
    if existing is not None:
        print("Demo user already exists")
        return existing.id
    user_id = users.create(username, first_name="Demo")
    workouts = WorkoutRepository(db_path)
    exercises = ExerciseRepository(db_path)
    bench = _exercise_id(exercises, "Bench Press")
    squat = _exercise_id(exercises, "Squat")
    today = datetime.datetime.now(datetime.timezone.utc).replace(
        hour=18, minute=0, second=0, microsecond=0
    )
    for offset, bench_kg, squat_kg in [(15, 80.0, 100.0), (8, 82.5, 100.0), (0, 85.0, 105.0)]:
        wid = workouts.create(
            user_id,
            "Strength session",
            today - datetime.timedelta(days=offset),
            training_type="strength",
            completed=True,
            duration_minutes=60,
        )
        workouts.replace_exercises(
            wid,
            [
                WorkoutExerciseInput(
                    exercise_id=bench,
                    sets=[ExerciseSetCreate(reps=8, weight=bench_kg, completed=True)] * 3,
                ),
                WorkoutExerciseInput(
                    exercise_id=squat,
                    sets=[ExerciseSetCreate(reps=5, weight=squat_kg, completed=True)] * 3,
                ),
            ],
        )
    print("Demo data inserted")
    return user_id


def build_statistics(db_path: str, yaml_path: str) -> StatisticsService:
    workouts = WorkoutRepository(db_path)
    return StatisticsService(
        workouts,
        workouts.workout_exercises,
        workouts.workout_exercises.sets,
        ExerciseRepository(db_path),
        SettingsRepository(db_path, yaml_path),
    )


def report(db_path: str, yaml_path: str, user_id: int, kind: str, period: str = "all") -> str:
    stats = build_statistics(db_path, yaml_path)
    UserRepository(db_path).fetch_detail(user_id)
    if kind == "stats":
        data = stats.compute_user_stats(user_id).model_dump(by_alias=True)
    elif kind == "summary":
        data = stats.compute_workout_summary(user_id).model_dump(mode="json", by_alias=True)
    elif kind == "progress":
        data = [p.model_dump(by_alias=True) for p in stats.compute_progress_series(user_id)]
    else:
        data = [
            w.model_dump(mode="json", by_alias=True)
            for w in stats.filter_workouts_by_period(user_id, period)
        ]
    return json.dumps(data, indent=2)


def main() -> None:
    parser = argparse.ArgumentParser(description="Utility commands")
    parser.add_argument("--verbose", action="store_true")
    sub = parser.add_subparsers(dest="cmd", required=True)

    bkp = sub.add_parser("backup")
    bkp.add_argument("--db", default="workout.db")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")
    rst.add_argument("--db", default="workout.db")

    demo = sub.add_parser("demo")
    demo.add_argument("--db", default="workout.db")
    demo.add_argument("--username", default="demo")

    for name in ("stats", "summary", "progress", "history"):
        rep = sub.add_parser(name)
        rep.add_argument("--db", default="workout.db")
        rep.add_argument("--yaml", default="settings.yaml")
        rep.add_argument("--user", type=int, required=True)
        if name == "history":
            rep.add_argument(
                "--period", choices=DateTools.PERIODS, default="all"
            )

    serve = sub.add_parser("serve")
    serve.add_argument("--db", default="workout.db")
    serve.add_argument("--yaml", default="settings.yaml")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    if args.cmd == "backup":
        backup_db(args.db, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, args.db)
    elif args.cmd == "demo":
        demo_data(args.db, args.username)
    elif args.cmd in ("stats", "summary", "progress", "history"):
        print(report(args.db, args.yaml, args.user, args.cmd, getattr(args, "period", "all")))
    elif args.cmd == "serve":
        import uvicorn
        from rest_api import FitnessAPI

        uvicorn.run(FitnessAPI(args.db, args.yaml).app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
