"""
Schema for workouts, their exercises and exercise logs.

These models describe the shape a workout must have before it can be
stored. Stored documents keep the camelCase keys the web client reads
(``workoutId``, ``isUnilateral``), so aliases are used wherever the Python
name differs.
"""

from datetime import date
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from workout_units import is_iso_date

PositiveNumber = Annotated[float, Field(gt=0, strict=True)]


# ============================================================================
# Enums
# ============================================================================

class SetUnit(str, Enum):
    REPS = "reps"
    SECONDS = "seconds"
    MINUTES = "minutes"


class WeightUnit(str, Enum):
    LB = "lb"
    KG = "kg"
    BODYWEIGHT = "bodyweight"


class ExerciseUpdateMode(str, Enum):
    """How an update's exercise list is applied to a stored workout.

    MERGE is positional: entry ``i`` of the update overwrites the fields of
    stored exercise ``i`` and entries past the end are appended. Inserting or
    removing an exercise mid-list with MERGE shifts every later entry onto a
    different stored exercise. REPLACE discards the stored list.
    """
    MERGE = "merge"
    REPLACE = "replace"

    @classmethod
    def from_flag(cls, replace_exercises: bool) -> "ExerciseUpdateMode":
        return cls.REPLACE if replace_exercises else cls.MERGE


# ============================================================================
# Workout drafts
# ============================================================================

class WeightDraft(BaseModel):
    model_config = ConfigDict(extra='ignore')

    amount: float = Field(..., strict=True)
    unit: WeightUnit

    @model_validator(mode='after')
    def check_amount(self) -> "WeightDraft":
        # Bodyweight exercises are stored with amount 0
        if self.amount < 0 or (self.amount == 0 and self.unit != WeightUnit.BODYWEIGHT):
            raise ValueError("Weight amount must be greater than 0")
        return self


class PlannedDraft(BaseModel):
    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    sets: List[PositiveNumber]
    unit: SetUnit
    weight: Optional[WeightDraft] = None
    equipment: Optional[str] = None
    is_unilateral: Optional[bool] = Field(default=None, alias="isUnilateral")


class ExerciseDraft(BaseModel):
    model_config = ConfigDict(extra='ignore')

    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    order: int = Field(..., gt=0, strict=True)
    planned: PlannedDraft


class WorkoutDraft(BaseModel):
    """A workout as submitted for creation, before it has any IDs."""
    model_config = ConfigDict(extra='ignore')

    name: str = Field(..., min_length=1)
    date: str
    exercises: List[ExerciseDraft] = Field(..., min_length=1)

    @field_validator('date')
    @classmethod
    def check_date(cls, value: str) -> str:
        if not is_iso_date(value):
            raise ValueError("Date must be in YYYY-MM-DD format")
        try:
            date.fromisoformat(value)
        except ValueError:
            raise ValueError(f"{value} is not a valid calendar date")
        return value


# ============================================================================
# Results and logs
# ============================================================================

class ValidationResult(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class SetEntryInput(BaseModel):
    """One set as typed into a log form: numbers for reps, free text otherwise."""
    model_config = ConfigDict(str_strip_whitespace=True, extra='forbid')

    reps: Optional[int] = Field(default=None, description="Reps completed")
    duration: Optional[str] = Field(default=None, description="Duration, e.g. '45s', '1:30', '5 min'")
    weight: Optional[str] = Field(default=None, description="Weight used, e.g. '135', '60 kg', '25 lbs'")
    notes: Optional[str] = Field(default=None, description="Notes for this set")
