#!/usr/bin/env python3
"""
Workout MCP Server

An MCP server that lets an agent plan, import, inspect, update and delete
workouts for the activity tracker, and log what was actually done.
Every tool returns JSON; failures come back as {"success": false, "error": ...}.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP
from pydantic import BaseModel, ConfigDict, Field

import workout_config
from workout_config import configure_logging
from workout_errors import WorkoutError, WorkoutOperationError
from workout_models import ExerciseUpdateMode, SetEntryInput
from workout_repository import WorkoutRepository
from workout_store import open_store
from workout_validation import validate_workout as check_workout

logger = logging.getLogger(__name__)

# Initialize the MCP server
mcp = FastMCP("workout_mcp")

_repository: Optional[WorkoutRepository] = None


def get_repository() -> WorkoutRepository:
    """Repository on the configured store, opened on first use."""
    global _repository
    if _repository is None:
        try:
            store = open_store()
        except Exception as e:
            logger.exception("Could not open the %r workout store", workout_config.STORE_BACKEND)
            raise WorkoutOperationError("open workout store", e) from e
        _repository = WorkoutRepository(store)
    return _repository


def _respond(result: Dict[str, Any]) -> str:
    return json.dumps(result, indent=2, default=str)


def _error(error: Exception) -> str:
    return _respond({"success": False, "error": str(error)})


EXERCISES_DESCRIPTION = (
    "Exercises in the workout. Each item: name (str), description (str), "
    "order (int, 1, 2, 3...), planned: {sets: [number per set], "
    "unit: 'reps'|'seconds'|'minutes', weight?: {amount: number, unit: 'lb'|'kg'|'bodyweight'}, "
    "equipment?: str, isUnilateral?: bool (auto-detected when omitted)}"
)


# ============================================================================
# Workout Creation and Validation
# ============================================================================

class WorkoutInput(BaseModel):
    """Input for creating or validating a workout."""
    model_config = ConfigDict(extra='ignore')

    name: str = Field(default="", description="Workout name (e.g., 'Push Day', 'Upper Body Strength')")
    date: str = Field(default="", description="Workout date (YYYY-MM-DD)")
    exercises: List[Dict[str, Any]] = Field(default_factory=list, description=EXERCISES_DESCRIPTION)


@mcp.tool(
    name="create_workout",
    annotations={
        "title": "Create Workout",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": False
    }
)
async def create_workout(params: WorkoutInput) -> str:
    """Create a new workout with exercises.

    Validates the workout before saving. Only one workout may exist per date.
    Non-blocking warnings (duplicate names, very high reps, dates far in the
    past or future) are returned alongside the created workout.

    Args:
        params: WorkoutInput with name, date and exercises

    Returns:
        str: JSON with the created workout, or an error payload
    """
    try:
        result = get_repository().create(params.model_dump())
    except WorkoutError as e:
        return _error(e)
    return _respond(result)


@mcp.tool(
    name="validate_workout",
    annotations={
        "title": "Validate Workout",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": False
    }
)
async def validate_workout(params: WorkoutInput) -> str:
    """Validate workout structure and business rules without saving.

    Args:
        params: WorkoutInput with name, date and exercises

    Returns:
        str: JSON {valid, errors, warnings?}
    """
    return _respond(check_workout(params.model_dump()).to_dict())


# ============================================================================
# Workout Lookup
# ============================================================================

class ListWorkoutsInput(BaseModel):
    """Input for listing workouts."""
    model_config = ConfigDict(str_strip_whitespace=True, extra='forbid')

    start_date: Optional[str] = Field(default=None, description="Earliest date to include (YYYY-MM-DD)")
    end_date: Optional[str] = Field(default=None, description="Latest date to include (YYYY-MM-DD)")


@mcp.tool(
    name="list_workouts",
    annotations={
        "title": "List Workouts",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": False
    }
)
async def list_workouts(params: ListWorkoutsInput) -> str:
    """List workouts, newest first, optionally filtered by date range.

    Use this to find workout IDs for updating or deleting.

    Args:
        params: ListWorkoutsInput with optional start_date / end_date (inclusive)

    Returns:
        str: JSON with workout summaries and count
    """
    try:
        result = get_repository().list(params.start_date, params.end_date)
    except WorkoutError as e:
        return _error(e)
    return _respond(result)


class GetWorkoutInput(BaseModel):
    """Input for fetching a single workout."""
    model_config = ConfigDict(str_strip_whitespace=True, extra='forbid')

    identifier: str = Field(..., description="Workout ID or date (YYYY-MM-DD)", min_length=1)


@mcp.tool(
    name="get_workout",
    annotations={
        "title": "Get Workout",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": False
    }
)
async def get_workout(params: GetWorkoutInput) -> str:
    """Get the full details of a workout by ID or date.

    Args:
        params: GetWorkoutInput with identifier

    Returns:
        str: JSON with the workout and its exercises
    """
    try:
        result = get_repository().get(params.identifier)
    except WorkoutError as e:
        return _error(e)
    return _respond(result)


# ============================================================================
# Workout Update and Delete
# ============================================================================

class UpdateWorkoutInput(BaseModel):
    """Input for updating a workout."""
    model_config = ConfigDict(extra='forbid')

    identifier: str = Field(..., description="Workout ID or date (YYYY-MM-DD)", min_length=1)
    name: Optional[str] = Field(default=None, description="New workout name")
    date: Optional[str] = Field(default=None, description="New date (YYYY-MM-DD)")
    exercises: Optional[List[Dict[str, Any]]] = Field(default=None, description=EXERCISES_DESCRIPTION)
    replace_exercises: bool = Field(
        default=False,
        description=(
            "True: replace the whole exercise list. False: merge by list position - "
            "item i overwrites existing exercise i, extra items are appended"
        ),
    )


@mcp.tool(
    name="update_workout",
    annotations={
        "title": "Update Workout",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": False
    }
)
async def update_workout(params: UpdateWorkoutInput) -> str:
    """Update an existing workout.

    Only provided fields are changed. Exercises are merged by list position
    unless replace_exercises is True: in merge mode the first item updates
    the first stored exercise, and so on. Inserting or removing an exercise
    in the middle of the list via merge will overwrite the wrong exercises;
    send the full list with replace_exercises=True instead.

    The resulting workout is validated before anything is saved.

    Args:
        params: UpdateWorkoutInput with identifier and fields to update

    Returns:
        str: JSON with the updated workout, or an error payload
    """
    updates = params.model_dump(include={"name", "date", "exercises"}, exclude_none=True)
    try:
        result = get_repository().update(
            params.identifier,
            updates,
            ExerciseUpdateMode.from_flag(params.replace_exercises),
        )
    except WorkoutError as e:
        return _error(e)
    return _respond(result)


class DeleteWorkoutInput(BaseModel):
    """Input for deleting a workout."""
    model_config = ConfigDict(str_strip_whitespace=True, extra='forbid')

    identifier: str = Field(..., description="Workout ID or date (YYYY-MM-DD)", min_length=1)
    confirm: bool = Field(..., description="Must be True to confirm deletion")


@mcp.tool(
    name="delete_workout",
    annotations={
        "title": "Delete Workout",
        "readOnlyHint": False,
        "destructiveHint": True,
        "idempotentHint": True,
        "openWorldHint": False
    }
)
async def delete_workout(params: DeleteWorkoutInput) -> str:
    """Delete a workout and all of its exercise logs.

    Requires confirm=True to proceed.

    Args:
        params: DeleteWorkoutInput with identifier and confirm flag

    Returns:
        str: JSON with the deleted workout and number of logs removed
    """
    if not params.confirm:
        return _respond({"success": False, "error": "Deletion not confirmed. Set confirm=True to delete."})

    try:
        result = get_repository().delete(params.identifier)
    except WorkoutError as e:
        return _error(e)
    return _respond(result)


# ============================================================================
# CSV Import
# ============================================================================

class ImportWorkoutsCSVInput(BaseModel):
    """Input for importing workouts from CSV text."""
    model_config = ConfigDict(extra='forbid')

    csv_text: str = Field(
        ...,
        min_length=1,
        description=(
            "CSV content with header: workoutName,date,exerciseName,description,order,"
            "Weight,Weight Unit,Equipment,Exercise Measure,Set 1 Count,...,Set 5 Count"
        ),
    )


@mcp.tool(
    name="import_workouts_csv",
    annotations={
        "title": "Import Workouts from CSV",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": False
    }
)
async def import_workouts_csv(params: ImportWorkoutsCSVInput) -> str:
    """Import workouts from CSV text.

    Rows sharing a date and workout name become one workout, exercises
    sorted by their order column. Dates may be YYYY-MM-DD, MM/DD/YYYY or
    YYYY/MM/DD. Any malformed row aborts the whole import.

    Args:
        params: ImportWorkoutsCSVInput with csv_text

    Returns:
        str: JSON summary of imported workouts
    """
    try:
        result = get_repository().import_csv(params.csv_text)
    except WorkoutError as e:
        return _error(e)
    return _respond(result)


# ============================================================================
# Exercise Logging
# ============================================================================

class LogExerciseInput(BaseModel):
    """Input for logging what was done for one exercise."""
    model_config = ConfigDict(str_strip_whitespace=True, extra='forbid')

    identifier: str = Field(..., description="Workout ID or date (YYYY-MM-DD)", min_length=1)
    exercise_id: str = Field(..., description="Exercise ID from get_workout", min_length=1)
    sets: List[SetEntryInput] = Field(default_factory=list, description="Sets actually performed")
    comments: str = Field(default="", description="Comments about the exercise")
    logged_at: Optional[datetime] = Field(default=None, description="When it was done (ISO 8601), defaults to now")


@mcp.tool(
    name="log_exercise",
    annotations={
        "title": "Log Exercise",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": False
    }
)
async def log_exercise(params: LogExerciseInput) -> str:
    """Log the sets actually performed for an exercise of a workout.

    Weights like '135 lbs' and durations like '1:30' are stored as typed values.

    Args:
        params: LogExerciseInput with workout, exercise and sets

    Returns:
        str: JSON with the stored log
    """
    try:
        result = get_repository().log_exercise(
            params.identifier,
            params.exercise_id,
            params.sets,
            comments=params.comments,
            logged_at=params.logged_at,
        )
    except WorkoutError as e:
        return _error(e)
    return _respond(result)


class GetExerciseLogsInput(BaseModel):
    """Input for fetching the exercise logs of a workout."""
    model_config = ConfigDict(str_strip_whitespace=True, extra='forbid')

    identifier: str = Field(..., description="Workout ID or date (YYYY-MM-DD)", min_length=1)


@mcp.tool(
    name="get_exercise_logs",
    annotations={
        "title": "Get Exercise Logs",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": False
    }
)
async def get_exercise_logs(params: GetExerciseLogsInput) -> str:
    """Get everything logged for a workout, oldest first.

    Args:
        params: GetExerciseLogsInput with identifier

    Returns:
        str: JSON with logs and count
    """
    try:
        result = get_repository().get_exercise_logs(params.identifier)
    except WorkoutError as e:
        return _error(e)
    return _respond(result)


# ============================================================================
# Main Entry Point
# ============================================================================

def main() -> None:
    configure_logging()
    logger.info("Starting workout MCP server on stdio")
    mcp.run()


if __name__ == "__main__":
    main()
