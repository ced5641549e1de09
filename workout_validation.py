"""
Workout validation.

``validate_workout`` checks the schema first and, only when the shape is
right, the business rules. Errors block a save; warnings are advisory and
ride along with a successful result. It never raises.
"""

import logging
from datetime import date, timedelta
from typing import Any, List, Optional, Sequence

from pydantic import BaseModel, ValidationError

from workout_models import SetEntryInput, SetUnit, ValidationResult, WorkoutDraft
from workout_units import parse_duration, parse_weight_text

logger = logging.getLogger(__name__)

MAX_SETS = 10
MAX_REPS = 100
MAX_SECONDS = 600
PAST_DAYS_LIMIT = 7

MAX_LOGGED_REPS = 999
MAX_COMMENT_LENGTH = 500


def _format_error(error: dict) -> str:
    path = ".".join(str(part) for part in error["loc"])
    return f"{path}: {error['msg']}" if path else error["msg"]


def _one_year_after(day: date) -> date:
    try:
        return day.replace(year=day.year + 1)
    except ValueError:
        # Feb 29 -> Feb 28
        return day.replace(year=day.year + 1, day=28)


def validate_workout(candidate: Any, today: Optional[date] = None) -> ValidationResult:
    """Validate workout data structure and business rules.

    Args:
        candidate: workout as a dict (or WorkoutDraft) with name, date, exercises
        today: reference date for the date plausibility checks, defaults to today

    Returns:
        ValidationResult: valid flag, blocking errors, optional warnings
    """
    if isinstance(candidate, BaseModel):
        candidate = candidate.model_dump(by_alias=True)

    try:
        workout = WorkoutDraft.model_validate(candidate)
    except ValidationError as e:
        return ValidationResult(valid=False, errors=[_format_error(err) for err in e.errors()])

    errors: List[str] = []
    warnings: List[str] = []

    names = [exercise.name.lower() for exercise in workout.exercises]
    duplicates = [name for index, name in enumerate(names) if names.index(name) != index]
    if duplicates:
        warnings.append(f"Duplicate exercise names found: {', '.join(dict.fromkeys(duplicates))}")

    orders = sorted(exercise.order for exercise in workout.exercises)
    for current, following in zip(orders, orders[1:]):
        if current == following:
            errors.append(f"Duplicate exercise order found: {current}")

    for index, exercise in enumerate(workout.exercises, start=1):
        label = f"Exercise {index} ({exercise.name})"
        sets = exercise.planned.sets

        if not sets:
            errors.append(f"{label} has no sets planned")
        if len(sets) > MAX_SETS:
            warnings.append(f"{label} has unusually high number of sets ({len(sets)})")

        for set_number, count in enumerate(sets, start=1):
            if exercise.planned.unit == SetUnit.REPS and count > MAX_REPS:
                warnings.append(f"{label} set {set_number} has unusually high reps ({count:g})")
            if exercise.planned.unit == SetUnit.SECONDS and count > MAX_SECONDS:
                warnings.append(
                    f"{label} set {set_number} has unusually long duration ({count:g} seconds)"
                )

    today = today or date.today()
    workout_date = date.fromisoformat(workout.date)
    if workout_date < today - timedelta(days=PAST_DAYS_LIMIT):
        warnings.append("Workout date is more than a week in the past")
    if workout_date > _one_year_after(today):
        warnings.append("Workout date is more than a year in the future")

    if errors:
        logger.debug("Workout %r failed business rules: %s", workout.name, errors)

    return ValidationResult(
        valid=not errors,
        errors=errors,
        warnings=warnings or None,
    )


def validate_exercise_log(sets: Sequence[SetEntryInput], comments: str = "") -> List[str]:
    """Check logged sets the way the log form does. Returns error messages."""
    errors = []

    for index, entry in enumerate(sets):
        if entry.reps is not None:
            if entry.reps < 0:
                errors.append(f"set{index}.reps: Reps cannot be negative")
            if entry.reps > MAX_LOGGED_REPS:
                errors.append(f"set{index}.reps: Reps cannot exceed {MAX_LOGGED_REPS}")

        if entry.weight:
            try:
                parse_weight_text(entry.weight)
            except ValueError:
                errors.append(f"set{index}.weight: Weight must be a number optionally followed by lbs/kg")

        if entry.duration:
            try:
                parse_duration(entry.duration)
            except ValueError:
                errors.append(
                    f"set{index}.duration: Duration must be in format MM:SS, HH:MM:SS, "
                    "or number with unit (e.g., 30s, 5min)"
                )

    if len(comments) > MAX_COMMENT_LENGTH:
        errors.append(f"comments: Comments cannot exceed {MAX_COMMENT_LENGTH} characters")

    has_data = any(entry.reps is not None or entry.duration or entry.weight for entry in sets)
    if not has_data and not comments.strip():
        errors.append("form: Please enter at least one set or add comments")

    return errors
