"""Shared test fixtures: a temporary SQLite store, a repository on a pinned clock, workout payloads."""

from datetime import date
from typing import Any, Callable, Dict, List, Optional

import pytest

from workout_repository import WorkoutRepository
from workout_store import SQLiteWorkoutStore

TODAY = date(2024, 1, 10)

CSV_HEADER = (
    "workoutName,date,exerciseName,description,order,Weight,Weight Unit,Equipment,"
    "Exercise Measure,Set 1 Count,Set 2 Count,Set 3 Count,Set 4 Count,Set 5 Count"
)


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def store(tmp_path) -> SQLiteWorkoutStore:
    return SQLiteWorkoutStore(str(tmp_path / "data" / "workouts.db"))


@pytest.fixture
def repository(store, today) -> WorkoutRepository:
    return WorkoutRepository(store, today=lambda: today)


@pytest.fixture
def make_exercise() -> Callable[..., Dict[str, Any]]:
    """Factory for exercise payloads; planned defaults to 3x10 reps."""

    def _make(
        name: str = "Bench Press",
        order: int = 1,
        description: str = "Flat bench, controlled descent",
        sets: Optional[List[float]] = None,
        unit: str = "reps",
        **planned: Any,
    ) -> Dict[str, Any]:
        return {
            "name": name,
            "description": description,
            "order": order,
            "planned": {"sets": [10, 10, 10] if sets is None else sets, "unit": unit, **planned},
        }

    return _make


@pytest.fixture
def make_workout(make_exercise) -> Callable[..., Dict[str, Any]]:
    """Factory for a three-exercise push workout two days after TODAY."""

    def _make(
        name: str = "Push Day",
        workout_date: str = "2024-01-12",
        exercises: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        if exercises is None:
            exercises = [
                make_exercise("Bench Press", 1, weight={"amount": 135, "unit": "lb"}),
                make_exercise("Single-Arm Dumbbell Row", 2, "Brace on a bench, pull to hip"),
                make_exercise("Plank", 3, "Hold a straight line", sets=[45, 45], unit="seconds"),
            ]
        return {"name": name, "date": workout_date, "exercises": exercises}

    return _make


@pytest.fixture
def workout_data(make_workout) -> Dict[str, Any]:
    return make_workout()


@pytest.fixture
def make_csv() -> Callable[..., str]:
    """Join data rows under the standard header."""

    def _make(*rows: str, line_ending: str = "\n") -> str:
        return line_ending.join([CSV_HEADER, *rows]) + line_ending

    return _make
