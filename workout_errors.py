"""Exception hierarchy for the workout MCP server."""

from typing import List, Optional


class WorkoutError(Exception):
    """Base exception for all workout errors."""


class WorkoutValidationError(WorkoutError):
    """Workout data failed schema or business-rule validation."""

    def __init__(self, errors: List[str]) -> None:
        super().__init__(f"Validation failed: {', '.join(errors)}")
        self.errors = list(errors)


class WorkoutNotFoundError(WorkoutError):
    """No workout matches the given ID or date."""


class AmbiguousWorkoutError(WorkoutError):
    """More than one workout matches a date that should be unique."""


class WorkoutConflictError(WorkoutError):
    """A workout already exists for the requested date."""


class CSVImportError(WorkoutError):
    """A CSV import could not be parsed; nothing was written."""

    def __init__(self, message: str, line_number: Optional[int] = None) -> None:
        super().__init__(message)
        self.line_number = line_number


class WorkoutOperationError(WorkoutError):
    """A repository operation failed. Wraps the underlying cause."""

    def __init__(self, action: str, cause: Exception) -> None:
        super().__init__(f"Failed to {action}: {cause}")
        self.action = action
        self.cause = cause
