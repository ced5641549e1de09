"""
Workout persistence.

Two interchangeable document stores back the repository:

- ``SQLiteWorkoutStore`` (default) keeps each workout as a row whose
  exercises column holds the embedded exercise list as JSON.
- ``FirestoreWorkoutStore`` talks to the ``workouts`` / ``exerciseLogs``
  collections the web client reads.

Both stores take and return workout dates as YYYY-MM-DD strings. SQLite
stores them as-is, so range filters are string comparisons. Firestore stores
timestamps and converts at the boundary.
"""

import json
import logging
import os
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import date, datetime, time
from typing import Any, Dict, Iterable, List, Optional

from google.cloud import firestore

import workout_config

logger = logging.getLogger(__name__)

WORKOUTS = "workouts"
EXERCISE_LOGS = "exerciseLogs"

# Firestore batches are limited to 500 operations
FIRESTORE_BATCH_SIZE = 400


# ============================================================================
# SQLite
# ============================================================================

class SQLiteWorkoutStore:
    """Document store on a local SQLite file."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.init_db()

    def get_db_path(self) -> str:
        """Get the database path, creating directory if needed."""
        db_dir = os.path.dirname(self.db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir)
        return self.db_path

    @contextmanager
    def get_db(self):
        """Context manager for database connections. Commits on success."""
        conn = sqlite3.connect(self.get_db_path())
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_db(self) -> None:
        """Initialize the database schema."""
        with self.get_db() as conn:
            cursor = conn.cursor()

            # Workouts - exercises are embedded as a JSON array
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS workouts (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    date DATE NOT NULL,
                    exercises TEXT NOT NULL DEFAULT '[]',
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_workouts_date ON workouts(date)")

            # What was actually done for one exercise of one workout
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS exercise_logs (
                    id TEXT PRIMARY KEY,
                    workout_id TEXT NOT NULL,
                    exercise_id TEXT NOT NULL,
                    logged_at TIMESTAMP NOT NULL,
                    actual TEXT NOT NULL,
                    comments TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_exercise_logs_workout ON exercise_logs(workout_id)"
            )

    @staticmethod
    def _workout_from_row(row: sqlite3.Row) -> Dict[str, Any]:
        return {
            "id": row["id"],
            "name": row["name"],
            "date": row["date"],
            "exercises": json.loads(row["exercises"] or "[]"),
        }

    @staticmethod
    def _log_from_row(row: sqlite3.Row) -> Dict[str, Any]:
        return {
            "id": row["id"],
            "workoutId": row["workout_id"],
            "exerciseId": row["exercise_id"],
            "loggedAt": row["logged_at"],
            "actual": json.loads(row["actual"]),
            "comments": row["comments"] or "",
        }

    def new_id(self) -> str:
        return uuid.uuid4().hex[:20]

    def save_workouts(self, workouts: Iterable[Dict[str, Any]]) -> None:
        """Insert workouts in one transaction: all of them or none."""
        with self.get_db() as conn:
            conn.executemany(
                "INSERT INTO workouts (id, name, date, exercises) VALUES (?, ?, ?, ?)",
                [
                    (w["id"], w["name"], w["date"], json.dumps(w.get("exercises", [])))
                    for w in workouts
                ],
            )

    def get_workout(self, workout_id: str) -> Optional[Dict[str, Any]]:
        with self.get_db() as conn:
            row = conn.execute("SELECT * FROM workouts WHERE id = ?", (workout_id,)).fetchone()
        return self._workout_from_row(row) if row else None

    def find_workouts_by_date(self, day: str) -> List[Dict[str, Any]]:
        with self.get_db() as conn:
            rows = conn.execute("SELECT * FROM workouts WHERE date = ?", (day,)).fetchall()
        return [self._workout_from_row(row) for row in rows]

    def list_workouts(self, start: Optional[str] = None, end: Optional[str] = None) -> List[Dict[str, Any]]:
        """Workouts with start <= date < end, newest first."""
        clauses = []
        values = []
        if start:
            clauses.append("date >= ?")
            values.append(start)
        if end:
            clauses.append("date < ?")
            values.append(end)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with self.get_db() as conn:
            rows = conn.execute(
                f"SELECT * FROM workouts {where} ORDER BY date DESC, created_at DESC", values
            ).fetchall()
        return [self._workout_from_row(row) for row in rows]

    def update_workout(self, workout_id: str, fields: Dict[str, Any]) -> None:
        """Overwrite only the given top-level fields."""
        updates = []
        values = []
        for key in ("name", "date", "exercises"):
            if key in fields:
                updates.append(f"{key} = ?")
                values.append(json.dumps(fields[key]) if key == "exercises" else fields[key])
        if not updates:
            return

        values.append(workout_id)
        with self.get_db() as conn:
            conn.execute(f"UPDATE workouts SET {', '.join(updates)} WHERE id = ?", values)

    def add_exercise_log(self, log: Dict[str, Any]) -> str:
        log_id = self.new_id()
        with self.get_db() as conn:
            conn.execute(
                """
                INSERT INTO exercise_logs (id, workout_id, exercise_id, logged_at, actual, comments)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    log_id,
                    log["workoutId"],
                    log["exerciseId"],
                    log["loggedAt"],
                    json.dumps(log["actual"]),
                    log.get("comments", ""),
                ),
            )
        return log_id

    def get_exercise_logs(self, workout_id: str) -> List[Dict[str, Any]]:
        with self.get_db() as conn:
            rows = conn.execute(
                "SELECT * FROM exercise_logs WHERE workout_id = ? ORDER BY logged_at",
                (workout_id,),
            ).fetchall()
        return [self._log_from_row(row) for row in rows]

    def delete_workout(self, workout_id: str) -> int:
        """Delete a workout and its exercise logs in one transaction.

        Returns:
            int: number of exercise logs removed
        """
        with self.get_db() as conn:
            cursor = conn.execute("DELETE FROM exercise_logs WHERE workout_id = ?", (workout_id,))
            deleted_logs = cursor.rowcount
            conn.execute("DELETE FROM workouts WHERE id = ?", (workout_id,))
        return deleted_logs


# ============================================================================
# Firestore
# ============================================================================

def _to_timestamp(day: str) -> datetime:
    """YYYY-MM-DD as local midnight, the way the web client stores workout dates."""
    return datetime.combine(date.fromisoformat(day), time()).astimezone()


def _from_document(data: Dict[str, Any]) -> Dict[str, Any]:
    """Turn Firestore timestamps back into the strings the repository uses."""
    data = dict(data)
    if isinstance(data.get("date"), datetime):
        data["date"] = data["date"].astimezone().date().isoformat()
    if isinstance(data.get("loggedAt"), datetime):
        data["loggedAt"] = data["loggedAt"].isoformat()
    return data


class FirestoreWorkoutStore:
    """Document store on Cloud Firestore.

    Workout dates are Firestore timestamps at local midnight and
    ``loggedAt`` is a timestamp, matching what the web client writes.
    """

    def __init__(self, client: "firestore.Client"):
        self._db = client

    @classmethod
    def from_project(cls, project_id: str = "") -> "FirestoreWorkoutStore":
        return cls(firestore.Client(project=project_id or None))

    @staticmethod
    def _to_dict(snapshot) -> Dict[str, Any]:
        return {"id": snapshot.id, **_from_document(snapshot.to_dict())}

    def _workouts(self):
        return self._db.collection(WORKOUTS)

    def new_id(self) -> str:
        return self._workouts().document().id

    def save_workouts(self, workouts: Iterable[Dict[str, Any]]) -> None:
        """Write workouts in a batch.

        Imports larger than one Firestore batch are committed in chunks, so
        only the first FIRESTORE_BATCH_SIZE workouts are all-or-nothing.
        """
        batch = self._db.batch()
        pending = 0
        for workout in workouts:
            data = {key: value for key, value in workout.items() if key != "id"}
            data["date"] = _to_timestamp(workout["date"])
            batch.set(self._workouts().document(workout["id"]), data)
            pending += 1
            if pending == FIRESTORE_BATCH_SIZE:
                batch.commit()
                batch = self._db.batch()
                pending = 0
        if pending:
            batch.commit()

    def get_workout(self, workout_id: str) -> Optional[Dict[str, Any]]:
        snapshot = self._workouts().document(workout_id).get()
        return self._to_dict(snapshot) if snapshot.exists else None

    def find_workouts_by_date(self, day: str) -> List[Dict[str, Any]]:
        query = self._workouts().where("date", "==", _to_timestamp(day))
        return [self._to_dict(doc) for doc in query.stream()]

    def list_workouts(self, start: Optional[str] = None, end: Optional[str] = None) -> List[Dict[str, Any]]:
        query = self._workouts()
        if start:
            query = query.where("date", ">=", _to_timestamp(start))
        if end:
            query = query.where("date", "<", _to_timestamp(end))
        query = query.order_by("date", direction=firestore.Query.DESCENDING)
        return [self._to_dict(doc) for doc in query.stream()]

    def update_workout(self, workout_id: str, fields: Dict[str, Any]) -> None:
        if not fields:
            return
        fields = dict(fields)
        if "date" in fields:
            fields["date"] = _to_timestamp(fields["date"])
        self._workouts().document(workout_id).update(fields)

    def add_exercise_log(self, log: Dict[str, Any]) -> str:
        data = {**log, "loggedAt": datetime.fromisoformat(log["loggedAt"])}
        _, ref = self._db.collection(EXERCISE_LOGS).add(data)
        return ref.id

    def get_exercise_logs(self, workout_id: str) -> List[Dict[str, Any]]:
        docs = self._db.collection(EXERCISE_LOGS).where("workoutId", "==", workout_id).stream()
        logs = sorted(
            ({"id": doc.id, **doc.to_dict()} for doc in docs),
            key=lambda log: log["loggedAt"],
        )
        return [_from_document(log) for log in logs]

    def delete_workout(self, workout_id: str) -> int:
        """Delete a workout and its exercise logs in a single batch."""
        logs = list(self._db.collection(EXERCISE_LOGS).where("workoutId", "==", workout_id).stream())

        batch = self._db.batch()
        for log in logs:
            batch.delete(log.reference)
        batch.delete(self._workouts().document(workout_id))
        batch.commit()
        return len(logs)


def open_store(backend: str = workout_config.STORE_BACKEND):
    """Build the store selected by WORKOUT_STORE."""
    if backend == "firestore":
        logger.info("Using Firestore store (project=%s)", workout_config.FIREBASE_PROJECT_ID or "default")
        return FirestoreWorkoutStore.from_project(workout_config.FIREBASE_PROJECT_ID)
    if backend == "sqlite":
        logger.info("Using SQLite store at %s", workout_config.DB_PATH)
        return SQLiteWorkoutStore(workout_config.DB_PATH)
    raise ValueError(f"Unknown WORKOUT_STORE backend: {backend!r}")
