import sqlite3
import aiosqlite
import csv
import os
import datetime
import json
from contextlib import contextmanager, asynccontextmanager
from typing import List, Tuple, Optional, Iterable

from config import YamlConfig
from settings_schema import validate_settings
from tools import DateTools
from models import (
    AiConversation,
    AiMessage,
    Exercise,
    ExerciseSet,
    ExerciseSetUpdate,
    User,
    UserUpdate,
    Workout,
    WorkoutExercise,
    WorkoutExerciseInput,
    WorkoutUpdate,
)


class NotFoundError(ValueError):
    """Raised when a referenced record does not exist."""


def _timestamp(value: datetime.datetime | str | None = None) -> str:
    """Return ``value`` as an ISO timestamp in UTC."""
    if value is None:
        value = datetime.datetime.now(datetime.timezone.utc)
    elif isinstance(value, str):
        value = DateTools.parse_timestamp(value)
    return DateTools.ensure_aware(value).astimezone(datetime.timezone.utc).isoformat()


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "users": (
            """CREATE TABLE users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT NOT NULL UNIQUE,
                    first_name TEXT,
                    last_name TEXT,
                    email TEXT,
                    height INTEGER,
                    weight INTEGER,
                    goals TEXT,
                    profile_image TEXT
                );""",
            [
                "id",
                "username",
                "first_name",
                "last_name",
                "email",
                "height",
                "weight",
                "goals",
                "profile_image",
            ],
        ),
        "exercises": (
            """CREATE TABLE exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    type TEXT NOT NULL DEFAULT 'strength',
                    equipment TEXT,
                    muscle_group TEXT,
                    description TEXT
                );""",
            ["id", "name", "type", "equipment", "muscle_group", "description"],
        ),
        "workouts": (
            """CREATE TABLE workouts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    notes TEXT,
                    type TEXT,
                    date TEXT NOT NULL,
                    completed INTEGER NOT NULL DEFAULT 0,
                    duration_minutes INTEGER,
                    FOREIGN KEY(user_id) REFERENCES users(id)
                );""",
            [
                "id",
                "user_id",
                "name",
                "notes",
                "type",
                "date",
                "completed",
                "duration_minutes",
            ],
        ),
        "workout_exercises": (
            """CREATE TABLE workout_exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_id INTEGER NOT NULL,
                    exercise_id INTEGER NOT NULL,
                    position INTEGER NOT NULL,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id),
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id)
                );""",
            ["id", "workout_id", "exercise_id", "position"],
        ),
        "exercise_sets": (
            """CREATE TABLE exercise_sets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_exercise_id INTEGER NOT NULL,
                    set_number INTEGER NOT NULL,
                    reps INTEGER,
                    weight REAL,
                    duration_seconds INTEGER,
                    distance_meters INTEGER,
                    completed INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(workout_exercise_id) REFERENCES workout_exercises(id)
                );""",
            [
                "id",
                "workout_exercise_id",
                "set_number",
                "reps",
                "weight",
                "duration_seconds",
                "distance_meters",
                "completed",
            ],
        ),
        "ai_conversations": (
            """CREATE TABLE ai_conversations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL UNIQUE,
                    timestamp TEXT NOT NULL,
                    messages TEXT NOT NULL,
                    FOREIGN KEY(user_id) REFERENCES users(id)
                );""",
            ["id", "user_id", "timestamp", "messages"],
        ),
        "settings": (
            """CREATE TABLE settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
    }

    def __init__(self, db_path: str = "workout.db") -> None:
        self._db_path = db_path
        self._ensure_schema()
        self._import_exercise_catalog_data()
        self._init_settings()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)

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

        conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col == "type" and table == "exercises":
                        return "'strength'"
                    if col in ("completed", "position", "set_number"):
                        return "0"
                    if col == "name":
                        return "''"
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

    def _import_exercise_catalog_data(self) -> None:
        csv_path = os.path.join(
            os.path.dirname(__file__), "data", "exercise_catalog.csv"
        )
        if not os.path.exists(csv_path):
            return
        with self._connection() as conn:
            (count,) = conn.execute("SELECT COUNT(*) FROM exercises;").fetchone()
            if count:
                return
            with open(csv_path, newline="", encoding="utf-8") as csvfile:
                reader = csv.DictReader(csvfile)
                records = [
                    (
                        row["Name"],
                        row["Type"],
                        row.get("Equipment") or None,
                        row.get("Muscle Group") or None,
                        row.get("Description") or None,
                    )
                    for row in reader
                ]
            conn.executemany(
                "INSERT INTO exercises (name, type, equipment, muscle_group, description) VALUES (?, ?, ?, ?, ?);",
                records,
            )

    def _init_settings(self) -> None:
        defaults = {
            "week_start": "monday",
            "progress_points": "10",
            "pr_completed_sets_only": "1",
            "weight_unit": "kg",
            "language": "en",
        }
        with self._connection() as conn:
            for key, value in defaults.items():
                conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?);",
                    (key, value),
                )


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

    @staticmethod
    def _assign(
        conn: sqlite3.Connection,
        table: str,
        record_id: int,
        changes: dict,
        allowed: Iterable[str],
    ) -> None:
        unknown = set(changes) - set(allowed)
        if unknown:
            raise ValueError(f"cannot update {', '.join(sorted(unknown))}")
        if not changes:
            return
        assignments = ", ".join(f"{col} = ?" for col in changes)
        conn.execute(
            f"UPDATE {table} SET {assignments} WHERE id = ?;",
            (*changes.values(), record_id),
        )

    def _update_columns(
        self, table: str, record_id: int, changes: dict, allowed: Iterable[str]
    ) -> None:
        with self._connection() as conn:
            self._assign(conn, table, record_id, changes, allowed)


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    @asynccontextmanager
    async def _async_connection(self):
        conn = await aiosqlite.connect(self._db_path)
        try:
            yield conn
            await conn.commit()
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous variant of BaseRepository using aiosqlite."""

    async def execute(self, query: str, params: Tuple = ()) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            await conn.commit()
            return cursor.lastrowid

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return rows


_WORKOUT_COLUMNS = "id, user_id, name, notes, type, date, completed, duration_minutes"


def _row_to_workout(row: Tuple) -> Workout:
    wid, user_id, name, notes, wtype, date, completed, duration = row
    return Workout(
        id=wid,
        user_id=user_id,
        name=name,
        notes=notes,
        type=wtype,
        date=date,
        completed=bool(completed),
        duration_minutes=duration,
    )


class UserRepository(BaseRepository):
    """Repository for user profiles."""

    _COLUMNS = (
        "id, username, first_name, last_name, email, height, weight, goals, profile_image"
    )

    @staticmethod
    def _to_user(row: Tuple) -> User:
        keys = [c.strip() for c in UserRepository._COLUMNS.split(",")]
        return User(**dict(zip(keys, row)))

    def create(
        self,
        username: str,
        first_name: str | None = None,
        last_name: str | None = None,
        email: str | None = None,
        height: int | None = None,
        weight: int | None = None,
        goals: str | None = None,
        profile_image: str | None = None,
    ) -> int:
        if self.fetch_by_username(username) is not None:
            raise ValueError("username already exists")
        return self.execute(
            "INSERT INTO users (username, first_name, last_name, email, height, weight, goals, profile_image) VALUES (?, ?, ?, ?, ?, ?, ?, ?);",
            (
                username,
                first_name,
                last_name,
                email,
                height,
                weight,
                goals,
                profile_image,
            ),
        )

    def fetch_detail(self, user_id: int) -> User:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM users WHERE id = ?;", (user_id,)
        )
        if not rows:
            raise NotFoundError("user not found")
        return self._to_user(rows[0])

    def fetch_by_username(self, username: str) -> Optional[User]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM users WHERE lower(username) = lower(?);",
            (username,),
        )
        return self._to_user(rows[0]) if rows else None

    def update(self, user_id: int, patch: UserUpdate) -> User:
        self.fetch_detail(user_id)
        self._update_columns(
            "users",
            user_id,
            patch.model_dump(exclude_unset=True),
            UserUpdate.model_fields,
        )
        return self.fetch_detail(user_id)


class ExerciseRepository(BaseRepository):
    """Repository for the exercise catalog."""

    _COLUMNS = "id, name, type, equipment, muscle_group, description"

    @staticmethod
    def _to_exercise(row: Tuple) -> Exercise:
        eid, name, etype, equipment, muscle_group, description = row
        return Exercise(
            id=eid,
            name=name,
            type=etype,
            equipment=equipment,
            muscle_group=muscle_group,
            description=description,
        )

    def add(
        self,
        name: str,
        exercise_type: str = "strength",
        equipment: Optional[str] = None,
        muscle_group: Optional[str] = None,
        description: Optional[str] = None,
    ) -> int:
        return self.execute(
            "INSERT INTO exercises (name, type, equipment, muscle_group, description) VALUES (?, ?, ?, ?, ?);",
            (name, exercise_type, equipment, muscle_group, description),
        )

    def fetch_all_exercises(self) -> List[Exercise]:
        rows = self.fetch_all(f"SELECT {self._COLUMNS} FROM exercises ORDER BY id;")
        return [self._to_exercise(r) for r in rows]

    def fetch(self, exercise_id: int) -> Optional[Exercise]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercises WHERE id = ?;", (exercise_id,)
        )
        return self._to_exercise(rows[0]) if rows else None

    def fetch_detail(self, exercise_id: int) -> Exercise:
        exercise = self.fetch(exercise_id)
        if exercise is None:
            raise NotFoundError("exercise not found")
        return exercise


class ExerciseSetRepository(BaseRepository):
    """Repository for sets logged under a workout exercise."""

    _COLUMNS = "id, workout_exercise_id, set_number, reps, weight, duration_seconds, distance_meters, completed"

    @staticmethod
    def _to_set(row: Tuple) -> ExerciseSet:
        sid, we_id, number, reps, weight, duration, distance, completed = row
        return ExerciseSet(
            id=sid,
            workout_exercise_id=we_id,
            set_number=number,
            reps=reps,
            weight=weight,
            duration_seconds=duration,
            distance_meters=distance,
            completed=bool(completed),
        )

    def add(
        self,
        workout_exercise_id: int,
        set_number: int,
        reps: Optional[int] = None,
        weight: Optional[float] = None,
        duration_seconds: Optional[int] = None,
        distance_meters: Optional[int] = None,
        completed: bool = False,
    ) -> int:
        return self.execute(
            "INSERT INTO exercise_sets (workout_exercise_id, set_number, reps, weight, duration_seconds, distance_meters, completed) VALUES (?, ?, ?, ?, ?, ?, ?);",
            (
                workout_exercise_id,
                set_number,
                reps,
                weight,
                duration_seconds,
                distance_meters,
                int(completed),
            ),
        )

    def fetch_detail(self, set_id: int) -> ExerciseSet:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercise_sets WHERE id = ?;", (set_id,)
        )
        if not rows:
            raise NotFoundError("set not found")
        return self._to_set(rows[0])

    def fetch_for_workout_exercise(self, workout_exercise_id: int) -> List[ExerciseSet]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercise_sets WHERE workout_exercise_id = ? ORDER BY set_number, id;",
            (workout_exercise_id,),
        )
        return [self._to_set(r) for r in rows]

    def update(self, set_id: int, patch: ExerciseSetUpdate) -> ExerciseSet:
        self.fetch_detail(set_id)
        changes = patch.model_dump(exclude_unset=True)
        if "completed" in changes:
            changes["completed"] = int(bool(changes["completed"]))
        self._update_columns(
            "exercise_sets", set_id, changes, ExerciseSetUpdate.model_fields
        )
        return self.fetch_detail(set_id)

    def remove_for_workout_exercise(self, workout_exercise_id: int) -> int:
        with self._connection() as conn:
            cursor = conn.execute(
                "DELETE FROM exercise_sets WHERE workout_exercise_id = ?;",
                (workout_exercise_id,),
            )
            return cursor.rowcount


class WorkoutExerciseRepository(BaseRepository):
    """Repository for the ordered exercises of a workout."""

    def __init__(self, db_path: str = "workout.db") -> None:
        super().__init__(db_path)
        self.sets = ExerciseSetRepository(db_path)

    def add(self, workout_id: int, exercise_id: int, order: int) -> int:
        return self.execute(
            "INSERT INTO workout_exercises (workout_id, exercise_id, position) VALUES (?, ?, ?);",
            (workout_id, exercise_id, order),
        )

    def fetch_for_workout(self, workout_id: int) -> List[WorkoutExercise]:
        rows = self.fetch_all(
            "SELECT id, workout_id, exercise_id, position FROM workout_exercises WHERE workout_id = ? ORDER BY position, id;",
            (workout_id,),
        )
        return [
            WorkoutExercise(id=i, workout_id=w, exercise_id=e, order=p)
            for i, w, e, p in rows
        ]

    def remove(self, workout_exercise_id: int) -> None:
        self.sets.remove_for_workout_exercise(workout_exercise_id)
        self.execute(
            "DELETE FROM workout_exercises WHERE id = ?;", (workout_exercise_id,)
        )


class WorkoutRepository(BaseRepository):
    """Repository for workout table operations.

    Writes touching a workout together with its exercises and sets run on
    a single connection, so a failure leaves the stored workout unchanged.
    """

    def __init__(self, db_path: str = "workout.db") -> None:
        super().__init__(db_path)
        self.workout_exercises = WorkoutExerciseRepository(db_path)

    def create(
        self,
        user_id: int,
        name: str,
        date: datetime.datetime | str | None = None,
        notes: str | None = None,
        training_type: str | None = None,
        completed: bool = False,
        duration_minutes: int | None = None,
    ) -> int:
        return self.execute(
            "INSERT INTO workouts (user_id, name, notes, type, date, completed, duration_minutes) VALUES (?, ?, ?, ?, ?, ?, ?);",
            (
                user_id,
                name,
                notes,
                training_type,
                _timestamp(date),
                int(completed),
                duration_minutes,
            ),
        )

    def fetch_detail(self, workout_id: int) -> Workout:
        rows = self.fetch_all(
            f"SELECT {_WORKOUT_COLUMNS} FROM workouts WHERE id = ?;",
            (workout_id,),
        )
        if not rows:
            raise NotFoundError("workout not found")
        return _row_to_workout(rows[0])

    def fetch_for_user(self, user_id: int) -> List[Workout]:
        rows = self.fetch_all(
            f"SELECT {_WORKOUT_COLUMNS} FROM workouts WHERE user_id = ? ORDER BY date DESC, id DESC;",
            (user_id,),
        )
        return [_row_to_workout(r) for r in rows]

    @staticmethod
    def _clear_exercises(conn: sqlite3.Connection, workout_id: int) -> None:
        conn.execute(
            "DELETE FROM exercise_sets WHERE workout_exercise_id IN "
            "(SELECT id FROM workout_exercises WHERE workout_id = ?);",
            (workout_id,),
        )
        conn.execute(
            "DELETE FROM workout_exercises WHERE workout_id = ?;", (workout_id,)
        )

    @staticmethod
    def _insert_exercises(
        conn: sqlite3.Connection,
        workout_id: int,
        exercises: Iterable[WorkoutExerciseInput],
    ) -> List[int]:
        created: list[int] = []
        for order, entry in enumerate(exercises, start=1):
            cursor = conn.execute(
                "INSERT INTO workout_exercises (workout_id, exercise_id, position) VALUES (?, ?, ?);",
                (workout_id, entry.exercise_id, order),
            )
            we_id = cursor.lastrowid
            conn.executemany(
                "INSERT INTO exercise_sets (workout_exercise_id, set_number, reps, weight, duration_seconds, distance_meters, completed) VALUES (?, ?, ?, ?, ?, ?, ?);",
                [
                    (
                        we_id,
                        item.set_number or number,
                        item.reps,
                        item.weight,
                        item.duration_seconds,
                        item.distance_meters,
                        int(item.completed),
                    )
                    for number, item in enumerate(entry.sets, start=1)
                ],
            )
            created.append(we_id)
        return created

    def update(
        self,
        workout_id: int,
        patch: WorkoutUpdate,
        exercises: Optional[Iterable[WorkoutExerciseInput]] = None,
    ) -> Workout:
        """Apply ``patch`` and, when given, replace the logged exercises."""
        self.fetch_detail(workout_id)
        changes = patch.model_dump(exclude_unset=True)
        for key in ("name", "date", "completed"):
            if key in changes and changes[key] is None:
                raise ValueError(f"{key} cannot be cleared")
        if "date" in changes:
            changes["date"] = _timestamp(changes["date"])
        if "completed" in changes:
            changes["completed"] = int(changes["completed"])
        with self._connection() as conn:
            self._assign(
                conn, "workouts", workout_id, changes, WorkoutUpdate.model_fields
            )
            if exercises is not None:
                self._clear_exercises(conn, workout_id)
                self._insert_exercises(conn, workout_id, exercises)
        return self.fetch_detail(workout_id)

    def replace_exercises(
        self, workout_id: int, exercises: Iterable[WorkoutExerciseInput]
    ) -> List[int]:
        """Drop the workout's exercises and sets, then log ``exercises`` in order."""
        with self._connection() as conn:
            self._clear_exercises(conn, workout_id)
            return self._insert_exercises(conn, workout_id, exercises)

    def delete(self, workout_id: int) -> None:
        self.fetch_detail(workout_id)
        with self._connection() as conn:
            self._clear_exercises(conn, workout_id)
            conn.execute("DELETE FROM workouts WHERE id = ?;", (workout_id,))


class AsyncWorkoutRepository(AsyncBaseRepository):
    """Async repository for reading workouts."""

    async def fetch_for_user(self, user_id: int) -> List[Workout]:
        rows = await self.fetch_all(
            f"SELECT {_WORKOUT_COLUMNS} FROM workouts WHERE user_id = ? ORDER BY date DESC, id DESC;",
            (user_id,),
        )
        return [_row_to_workout(r) for r in rows]

    async def fetch_detail(self, workout_id: int) -> Workout:
        rows = await self.fetch_all(
            f"SELECT {_WORKOUT_COLUMNS} FROM workouts WHERE id = ?;",
            (workout_id,),
        )
        if not rows:
            raise NotFoundError("workout not found")
        return _row_to_workout(rows[0])


class ConversationRepository(BaseRepository):
    """Repository holding one AI coach conversation per user."""

    @staticmethod
    def _to_conversation(row: Tuple) -> AiConversation:
        cid, user_id, timestamp, messages = row
        return AiConversation(
            id=cid,
            user_id=user_id,
            timestamp=timestamp,
            messages=json.loads(messages),
        )

    def fetch_for_user(self, user_id: int) -> Optional[AiConversation]:
        rows = self.fetch_all(
            "SELECT id, user_id, timestamp, messages FROM ai_conversations WHERE user_id = ?;",
            (user_id,),
        )
        return self._to_conversation(rows[0]) if rows else None

    def save(self, user_id: int, messages: Iterable[AiMessage]) -> AiConversation:
        payload = json.dumps([m.model_dump() for m in messages])
        self.execute(
            "INSERT INTO ai_conversations (user_id, timestamp, messages) VALUES (?, ?, ?) "
            "ON CONFLICT(user_id) DO UPDATE SET timestamp=excluded.timestamp, messages=excluded.messages;",
            (user_id, _timestamp(), payload),
        )
        return self.fetch_for_user(user_id)

    def reset(self, user_id: int) -> bool:
        if self.fetch_for_user(user_id) is None:
            return False
        self.save(user_id, [])
        return True


class SettingsRepository(BaseRepository):
    """Repository for application settings synchronized with YAML.

    Keys in ``YamlConfig.SENSITIVE_KEYS`` are never mirrored into the
    settings table; they are read from and written to ``YamlConfig`` only.
    """

    _BOOL_KEYS = {"pr_completed_sets_only"}

    def __init__(
        self, db_path: str = "workout.db", yaml_path: str = "settings.yaml"
    ) -> None:
        super().__init__(db_path)
        self._yaml = YamlConfig(yaml_path)
        self._sensitive = set(self._yaml.SENSITIVE_KEYS)
        self._drop_sensitive_rows()
        self._sync_from_yaml()
        self._sync_to_yaml()

    def _drop_sensitive_rows(self) -> None:
        with self._connection() as conn:
            conn.executemany(
                "DELETE FROM settings WHERE key = ?;",
                [(key,) for key in self._sensitive],
            )

    def _raw_all_settings(self) -> dict:
        rows = self.fetch_all("SELECT key, value FROM settings ORDER BY key;")
        result: dict[str, float | str | bool] = {}
        for k, v in rows:
            if k in self._BOOL_KEYS:
                result[k] = v in {"1", "1.0", "true", "True"}
                continue
            try:
                result[k] = int(v)
            except ValueError:
                result[k] = v
        return result

    def _secrets(self) -> dict:
        data = self._yaml.load()
        return {
            k: data[k] for k in self._sensitive if data.get(k) is not None
        }

    def _sync_from_yaml(self) -> None:
        data = self._yaml.load()
        if not data:
            return
        validate_settings(data)
        with self._connection() as conn:
            for key, value in data.items():
                if value is None or key in self._sensitive:
                    continue
                val = str(value)
                if key in self._BOOL_KEYS:
                    val = "1" if val in {"1", "1.0", "true", "True"} else "0"
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                    (key, val),
                )

    def _sync_to_yaml(self, secrets: Optional[dict] = None) -> None:
        data = self._raw_all_settings()
        data.update(self._secrets() if secrets is None else secrets)
        self._yaml.save(data)

    def get_text(self, key: str, default: str) -> str:
        if key in self._sensitive:
            value = self._secrets().get(key)
            return default if value is None else str(value)
        self._sync_from_yaml()
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return str(rows[0][0]) if rows else default

    def get_int(self, key: str, default: int) -> int:
        value = self.get_text(key, str(default))
        return int(float(value))

    def get_bool(self, key: str, default: bool) -> bool:
        value = self.get_text(key, "1" if default else "0")
        return value in {"1", "1.0", "true", "True"}

    def set_text(self, key: str, value: str) -> None:
        candidate = self._raw_all_settings()
        candidate[key] = value
        validate_settings(candidate)
        if key in self._sensitive:
            secrets = self._secrets()
            secrets[key] = value
            self._sync_to_yaml(secrets)
            return
        self.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, value),
        )
        self._sync_to_yaml()

    def set_bool(self, key: str, value: bool) -> None:
        self.set_text(key, "1" if value else "0")

    def all_settings(self) -> dict:
        """Return every stored setting except the sensitive ones."""
        self._sync_from_yaml()
        return self._raw_all_settings()
