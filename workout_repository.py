"""
Workout repository operations.

Create, read, update and delete workouts (and log what was done for their
exercises) on top of a workout store. Every public operation wraps any
failure in WorkoutOperationError("Failed to <action>: <cause>").

Known limitation: the one-workout-per-date rule is a check-then-act guard.
Two concurrent creates for the same date can both pass the check.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from workout_csv import CSVRow, group_rows, parse_csv
from workout_errors import (
    AmbiguousWorkoutError,
    CSVImportError,
    WorkoutConflictError,
    WorkoutError,
    WorkoutNotFoundError,
    WorkoutOperationError,
    WorkoutValidationError,
)
from workout_models import ExerciseUpdateMode, SetEntryInput
from workout_units import (
    apply_unilateral_default,
    is_iso_date,
    parse_date,
    parse_duration,
    parse_weight_text,
)
from workout_validation import validate_exercise_log, validate_workout

logger = logging.getLogger(__name__)

EXERCISE_FIELDS = ("name", "description", "order")
PLANNED_FIELDS = ("sets", "unit", "weight", "equipment", "isUnilateral")


@contextmanager
def _operation(action: str):
    """Re-raise anything that escapes as WorkoutOperationError for action."""
    try:
        yield
    except WorkoutOperationError:
        raise
    except WorkoutError as e:
        logger.warning("Could not %s: %s", action, e)
        raise WorkoutOperationError(action, e) from e
    except Exception as e:
        logger.exception("Unexpected error while trying to %s", action)
        raise WorkoutOperationError(action, e) from e


def exercise_id(workout_id: str, number: int) -> str:
    """Deterministic exercise ID: {workoutId}_exercise_{n}, n 1-based."""
    return f"{workout_id}_exercise_{number}"


def _planned_document(planned: Any, name: str, description: str) -> Any:
    if not isinstance(planned, dict):
        # Left as-is for validation to report
        return planned
    cleaned = {key: planned[key] for key in PLANNED_FIELDS if planned.get(key) is not None}
    weight = cleaned.get("weight")
    if isinstance(weight, dict):
        cleaned["weight"] = {key: weight[key] for key in ("amount", "unit") if key in weight}
    return apply_unilateral_default(cleaned, name, description)


def _exercise_document(exercise: Dict[str, Any], workout_id: str, ex_id: str) -> Dict[str, Any]:
    document = {"id": ex_id, "workoutId": workout_id}
    for key in EXERCISE_FIELDS:
        if exercise.get(key) is not None:
            document[key] = exercise[key]
    if "planned" in exercise:
        document["planned"] = _planned_document(
            exercise["planned"], exercise.get("name", ""), exercise.get("description", "")
        )
    return document


def _validation_view(workout: Dict[str, Any]) -> Dict[str, Any]:
    """The parts of a stored workout the validator looks at."""
    return {
        "name": workout.get("name"),
        "date": workout.get("date"),
        "exercises": [
            {key: exercise[key] for key in EXERCISE_FIELDS + ("planned",) if key in exercise}
            for exercise in workout.get("exercises", [])
        ],
    }


def _set_document(entry: SetEntryInput) -> Dict[str, Any]:
    """Typed copy of a logged set: durations in seconds, weights split by unit."""
    document: Dict[str, Any] = {}
    if entry.reps is not None:
        document["reps"] = entry.reps
    if entry.duration:
        document["durationSeconds"] = parse_duration(entry.duration)
    if entry.weight:
        amount, unit = parse_weight_text(entry.weight)
        document["weight"] = {"amount": amount, "unit": unit or "lb"}
    if entry.notes:
        document["notes"] = entry.notes
    return document


class WorkoutRepository:
    """Workout operations against an injected store."""

    def __init__(self, store, today: Callable[[], date] = date.today):
        """
        Args:
            store: SQLiteWorkoutStore, FirestoreWorkoutStore or compatible
            today: clock used for the date plausibility warnings
        """
        self.store = store
        self._today = today

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve(self, identifier: str) -> Dict[str, Any]:
        """Find a workout by YYYY-MM-DD date or by ID."""
        if is_iso_date(identifier):
            matches = self.store.find_workouts_by_date(identifier)
            if not matches:
                raise WorkoutNotFoundError(f"No workout found for date {identifier}")
            if len(matches) > 1:
                raise AmbiguousWorkoutError(
                    f"Multiple workouts found for date {identifier}. Use workout ID instead."
                )
            return matches[0]

        workout = self.store.get_workout(identifier)
        if not workout:
            raise WorkoutNotFoundError(f"Workout with ID {identifier} not found")
        return workout

    def _ensure_date_free(self, day: str, exclude_id: Optional[str] = None) -> None:
        clashes = [w for w in self.store.find_workouts_by_date(day) if w["id"] != exclude_id]
        if clashes:
            raise WorkoutConflictError(f"A workout already exists for {day}")

    def _validate(self, workout: Dict[str, Any]):
        validation = validate_workout(workout, today=self._today())
        if not validation.valid:
            raise WorkoutValidationError(validation.errors)
        return validation

    @staticmethod
    def _replace_exercises(workout_id: str, exercises: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [
            _exercise_document(exercise, workout_id, exercise_id(workout_id, number))
            for number, exercise in enumerate(exercises, start=1)
        ]

    @staticmethod
    def _merge_exercises(workout: Dict[str, Any], exercises: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Positional merge: update entry i overwrites stored exercise i."""
        workout_id = workout["id"]
        merged = [dict(exercise) for exercise in workout.get("exercises", [])]
        taken: Set[str] = {exercise.get("id") for exercise in merged}

        for index, update in enumerate(exercises):
            if index < len(merged):
                current = merged[index]
                fields = {key: update[key] for key in EXERCISE_FIELDS if update.get(key) is not None}
                if update.get("planned") is not None:
                    fields["planned"] = _planned_document(
                        update["planned"],
                        fields.get("name", current.get("name", "")),
                        fields.get("description", current.get("description", "")),
                    )
                merged[index] = {**current, **fields}
                continue

            number = index + 1
            while exercise_id(workout_id, number) in taken:
                number += 1
            new_id = exercise_id(workout_id, number)
            taken.add(new_id)
            merged.append(_exercise_document(update, workout_id, new_id))

        return merged

    # ------------------------------------------------------------------
    # Workouts
    # ------------------------------------------------------------------

    def create(self, workout_data: Dict[str, Any]) -> Dict[str, Any]:
        """Validate and store a new workout.

        Fails if validation reports errors or a workout already exists on
        the same date. Warnings are returned under "validation".
        """
        with _operation("create workout"):
            validation = self._validate(workout_data)
            self._ensure_date_free(workout_data["date"])

            workout_id = self.store.new_id()
            workout = {
                "id": workout_id,
                "name": workout_data["name"],
                "date": workout_data["date"],
                "exercises": self._replace_exercises(workout_id, workout_data["exercises"]),
            }
            self.store.save_workouts([workout])
            logger.info("Created workout %s (%s on %s)", workout_id, workout["name"], workout["date"])

        result: Dict[str, Any] = {"success": True, "workout": workout}
        if validation.warnings:
            result["validation"] = {"warnings": validation.warnings}
        return result

    def get(self, identifier: str) -> Dict[str, Any]:
        """Get one workout by ID or YYYY-MM-DD date."""
        with _operation("get workout"):
            workout = self._resolve(identifier)
        return {"success": True, "workout": workout}

    def list(self, start_date: Optional[str] = None, end_date: Optional[str] = None) -> Dict[str, Any]:
        """List workouts, newest first, optionally within [start_date, end_date]."""
        with _operation("list workouts"):
            for label, value in (("startDate", start_date), ("endDate", end_date)):
                if value and not is_iso_date(value):
                    raise WorkoutError(f"{label} must be in YYYY-MM-DD format")

            end = None
            if end_date:
                end = (date.fromisoformat(end_date) + timedelta(days=1)).isoformat()
            workouts = self.store.list_workouts(start_date or None, end)

        summaries = [
            {
                "id": workout["id"],
                "name": workout["name"],
                "date": workout["date"],
                "exerciseCount": len(workout.get("exercises", [])),
                "exercises": [
                    {
                        "name": exercise.get("name"),
                        "description": exercise.get("description"),
                        "order": exercise.get("order"),
                    }
                    for exercise in workout.get("exercises", [])
                ],
            }
            for workout in workouts
        ]
        return {"success": True, "workouts": summaries, "count": len(summaries)}

    def update(
        self,
        identifier: str,
        updates: Dict[str, Any],
        mode: ExerciseUpdateMode = ExerciseUpdateMode.MERGE,
    ) -> Dict[str, Any]:
        """Update name, date and/or exercises of a workout.

        With ExerciseUpdateMode.MERGE the exercise list is merged by list
        position, not by ID or name: inserting or removing an entry mid-list
        moves data onto unrelated exercises. Use REPLACE to rewrite the list.
        The complete resulting workout is validated before anything is written.
        """
        with _operation("update workout"):
            existing = self._resolve(identifier)
            changes: Dict[str, Any] = {}

            if updates.get("name") is not None:
                changes["name"] = updates["name"]

            new_date = updates.get("date")
            if new_date is not None:
                changes["date"] = new_date
                if is_iso_date(new_date) and new_date != existing["date"]:
                    self._ensure_date_free(new_date, exclude_id=existing["id"])

            if updates.get("exercises") is not None:
                if mode == ExerciseUpdateMode.REPLACE:
                    changes["exercises"] = self._replace_exercises(existing["id"], updates["exercises"])
                else:
                    changes["exercises"] = self._merge_exercises(existing, updates["exercises"])

            if not changes:
                raise WorkoutError("No fields to update provided")

            validation = self._validate(_validation_view({**existing, **changes}))
            self.store.update_workout(existing["id"], changes)
            workout = self.store.get_workout(existing["id"])
            logger.info("Updated workout %s (%s)", existing["id"], ", ".join(changes))

        result: Dict[str, Any] = {
            "success": True,
            "workout": workout,
            "message": "Workout updated successfully",
        }
        if validation.warnings:
            result["validation"] = {"warnings": validation.warnings}
        return result

    def delete(self, identifier: str) -> Dict[str, Any]:
        """Delete a workout together with all of its exercise logs."""
        with _operation("delete workout"):
            workout = self._resolve(identifier)
            deleted_logs = self.store.delete_workout(workout["id"])
            logger.info("Deleted workout %s and %d exercise logs", workout["id"], deleted_logs)

        return {
            "success": True,
            "deletedWorkout": {"id": workout["id"], "name": workout["name"], "date": workout["date"]},
            "deletedExerciseLogs": deleted_logs,
            "message": f"Workout deleted successfully. Also removed {deleted_logs} associated exercise logs.",
        }

    # ------------------------------------------------------------------
    # CSV import
    # ------------------------------------------------------------------

    def import_csv(self, text: str) -> Dict[str, Any]:
        """Parse CSV text and import every workout in it, or none."""
        with _operation("import workouts"):
            rows = parse_csv(text)
        return self.import_rows(rows)

    def import_rows(self, rows: Iterable[CSVRow]) -> Dict[str, Any]:
        """Import parsed rows as one batch.

        Each (date, workoutName) group becomes a workout. A bad date, two
        groups on one date, or a date that already has a workout aborts the
        import before anything is written.
        """
        with _operation("import workouts"):
            groups = group_rows(list(rows))
            if not groups:
                raise CSVImportError("No workout rows found in CSV")

            names_by_date: Dict[str, str] = {}
            for group in groups:
                line = group["lineNumbers"][0]
                day = group["date"]
                try:
                    parse_date(day)
                except ValueError:
                    raise CSVImportError(f"Line {line}: unrecognized date {day!r}", line)

                if day in names_by_date:
                    raise WorkoutConflictError(
                        f"Line {line}: workouts {names_by_date[day]!r} and {group['name']!r} share the date {day}"
                    )
                names_by_date[day] = group["name"]
                self._ensure_date_free(day)

            workouts = []
            for group in groups:
                workout_id = self.store.new_id()
                workouts.append({
                    "id": workout_id,
                    "name": group["name"],
                    "date": group["date"],
                    "exercises": self._replace_exercises(workout_id, group["exercises"]),
                })

            self.store.save_workouts(workouts)
            exercise_count = sum(len(workout["exercises"]) for workout in workouts)
            logger.info("Imported %d workouts (%d exercises)", len(workouts), exercise_count)

        return {
            "success": True,
            "imported": len(workouts),
            "exercises": exercise_count,
            "workouts": [
                {
                    "id": workout["id"],
                    "name": workout["name"],
                    "date": workout["date"],
                    "exerciseCount": len(workout["exercises"]),
                }
                for workout in workouts
            ],
        }

    # ------------------------------------------------------------------
    # Exercise logs
    # ------------------------------------------------------------------

    def log_exercise(
        self,
        identifier: str,
        exercise_id: str,
        sets: List[SetEntryInput],
        comments: str = "",
        logged_at: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Record what was actually done for one exercise of a workout."""
        with _operation("log exercise"):
            workout = self._resolve(identifier)
            if exercise_id not in {exercise.get("id") for exercise in workout.get("exercises", [])}:
                raise WorkoutNotFoundError(f"Exercise {exercise_id} not found in workout {workout['id']}")

            errors = validate_exercise_log(sets, comments)
            if errors:
                raise WorkoutValidationError(errors)

            log = {
                "workoutId": workout["id"],
                "exerciseId": exercise_id,
                "loggedAt": (logged_at or datetime.now(timezone.utc)).isoformat(),
                "actual": {"sets": [_set_document(entry) for entry in sets]},
                "comments": comments,
            }
            log_id = self.store.add_exercise_log(log)
            logger.info("Logged exercise %s (log %s)", exercise_id, log_id)

        return {"success": True, "log": {"id": log_id, **log}}

    def get_exercise_logs(self, identifier: str) -> Dict[str, Any]:
        """All exercise logs of a workout, oldest first."""
        with _operation("get exercise logs"):
            workout = self._resolve(identifier)
            logs = self.store.get_exercise_logs(workout["id"])
        return {"success": True, "logs": logs, "count": len(logs)}
