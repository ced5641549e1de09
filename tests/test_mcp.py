"""Tests for the MCP tool layer: inputs in, JSON out."""

import asyncio
import json
from datetime import date

import pytest
from pydantic import ValidationError

import workout_mcp
from workout_mcp import (
    DeleteWorkoutInput,
    GetExerciseLogsInput,
    GetWorkoutInput,
    ImportWorkoutsCSVInput,
    ListWorkoutsInput,
    LogExerciseInput,
    UpdateWorkoutInput,
    WorkoutInput,
)


@pytest.fixture(autouse=True)
def use_repository(monkeypatch, repository):
    monkeypatch.setattr(workout_mcp, "_repository", repository)
    return repository


def call(tool, params):
    return json.loads(asyncio.run(tool(params)))


@pytest.fixture
def created(workout_data):
    return call(workout_mcp.create_workout, WorkoutInput(**workout_data))["workout"]


class TestCreateAndValidate:
    def test_create(self, created) -> None:
        assert created["date"] == "2024-01-12"
        assert len(created["exercises"]) == 3

    def test_create_invalid(self, workout_data) -> None:
        workout_data["exercises"] = []
        result = call(workout_mcp.create_workout, WorkoutInput(**workout_data))
        assert result["success"] is False
        assert result["error"].startswith("Failed to create workout: Validation failed: exercises:")

    def test_create_with_missing_fields_reports_them(self) -> None:
        result = call(workout_mcp.create_workout, WorkoutInput(name="Push Day"))
        assert result["success"] is False
        assert "date:" in result["error"]

    def test_validate_does_not_save(self, make_workout, repository) -> None:
        workout = make_workout(workout_date=date.today().isoformat())
        result = call(workout_mcp.validate_workout, WorkoutInput(**workout))
        assert result == {"valid": True, "errors": []}
        assert repository.list()["count"] == 0

    def test_validate_reports_warnings(self, make_workout, make_exercise) -> None:
        workout = make_workout(
            workout_date=date.today().isoformat(),
            exercises=[make_exercise("Jump Rope", 1, sets=[200])],
        )
        result = call(workout_mcp.validate_workout, WorkoutInput(**workout))
        assert result["valid"] is True
        assert result["warnings"] == ["Exercise 1 (Jump Rope) set 1 has unusually high reps (200)"]


class TestLookup:
    def test_get_by_date(self, created) -> None:
        result = call(workout_mcp.get_workout, GetWorkoutInput(identifier=" 2024-01-12 "))
        assert result["workout"]["id"] == created["id"]

    def test_get_missing(self) -> None:
        result = call(workout_mcp.get_workout, GetWorkoutInput(identifier="missing"))
        assert result == {
            "success": False,
            "error": "Failed to get workout: Workout with ID missing not found",
        }

    def test_list(self, created) -> None:
        result = call(workout_mcp.list_workouts, ListWorkoutsInput(start_date="2024-01-01"))
        assert result["count"] == 1
        assert result["workouts"][0]["exerciseCount"] == 3

    def test_list_rejects_unknown_fields(self) -> None:
        with pytest.raises(ValidationError):
            ListWorkoutsInput(since="2024-01-01")


class TestUpdateAndDelete:
    def test_merge_update(self, created) -> None:
        params = UpdateWorkoutInput(identifier=created["id"], exercises=[{"name": "Incline Bench Press"}])
        result = call(workout_mcp.update_workout, params)
        names = [e["name"] for e in result["workout"]["exercises"]]
        assert names == ["Incline Bench Press", "Single-Arm Dumbbell Row", "Plank"]

    def test_replace_update(self, created, make_exercise) -> None:
        params = UpdateWorkoutInput(
            identifier=created["id"],
            exercises=[make_exercise("Squat", 1)],
            replace_exercises=True,
        )
        result = call(workout_mcp.update_workout, params)
        assert [e["name"] for e in result["workout"]["exercises"]] == ["Squat"]

    def test_update_without_fields(self, created) -> None:
        result = call(workout_mcp.update_workout, UpdateWorkoutInput(identifier=created["id"]))
        assert result["error"] == "Failed to update workout: No fields to update provided"

    def test_delete_needs_confirmation(self, created, repository) -> None:
        result = call(workout_mcp.delete_workout, DeleteWorkoutInput(identifier=created["id"], confirm=False))
        assert result["success"] is False
        assert "confirm=True" in result["error"]
        assert repository.list()["count"] == 1

    def test_delete(self, created, repository) -> None:
        result = call(workout_mcp.delete_workout, DeleteWorkoutInput(identifier=created["id"], confirm=True))
        assert result["deletedExerciseLogs"] == 0
        assert repository.list()["count"] == 0


class TestImportAndLogs:
    def test_import(self, make_csv) -> None:
        text = make_csv(
            "Push Day,01/15/2024,Dip,Parallel bars,1,,,,Reps,10,10,,,",
            "Leg Day,01/16/2024,Squat,Back squat,1,225,lb,Barbell,Reps,5,5,5,,",
        )
        result = call(workout_mcp.import_workouts_csv, ImportWorkoutsCSVInput(csv_text=text))
        assert result["imported"] == 2
        assert [w["date"] for w in result["workouts"]] == ["2024-01-15", "2024-01-16"]

    def test_import_error(self, make_csv) -> None:
        text = make_csv("Push Day,2024-01-15,Dip")
        result = call(workout_mcp.import_workouts_csv, ImportWorkoutsCSVInput(csv_text=text))
        assert result["error"] == (
            "Failed to import workouts: Line 2 has invalid format: expected 13 columns, got 3"
        )

    def test_log_and_fetch(self, created) -> None:
        params = LogExerciseInput(
            identifier=created["id"],
            exercise_id=created["exercises"][0]["id"],
            sets=[{"reps": 8, "weight": "135 lbs"}],
            logged_at="2024-01-12T18:00:00Z",
        )
        logged = call(workout_mcp.log_exercise, params)
        assert logged["log"]["actual"]["sets"] == [{"reps": 8, "weight": {"amount": 135, "unit": "lb"}}]

        logs = call(workout_mcp.get_exercise_logs, GetExerciseLogsInput(identifier="2024-01-12"))
        assert logs["count"] == 1
        assert logs["logs"][0]["id"] == logged["log"]["id"]

    def test_log_without_data(self, created) -> None:
        params = LogExerciseInput(identifier=created["id"], exercise_id=created["exercises"][0]["id"])
        result = call(workout_mcp.log_exercise, params)
        assert result["error"] == (
            "Failed to log exercise: Validation failed: form: Please enter at least one set or add comments"
        )


class TestStoreStartup:
    def test_unopenable_store_returns_error_payload(self, monkeypatch) -> None:
        def fail():
            raise ValueError("Unknown WORKOUT_STORE backend: 'postgres'")

        monkeypatch.setattr(workout_mcp, "_repository", None)
        monkeypatch.setattr(workout_mcp, "open_store", fail)

        result = call(workout_mcp.get_workout, GetWorkoutInput(identifier="2024-01-12"))
        assert result == {
            "success": False,
            "error": "Failed to open workout store: Unknown WORKOUT_STORE backend: 'postgres'",
        }
        assert workout_mcp._repository is None
