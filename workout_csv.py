"""
CSV workout import.

Expected header (one row, ignored):

    workoutName,date,exerciseName,description,order,Weight,Weight Unit,
    Equipment,Exercise Measure,Set 1 Count,Set 2 Count,Set 3 Count,
    Set 4 Count,Set 5 Count

Every data row is one exercise. Rows sharing a (date, workoutName) pair
become one workout. Any malformed row aborts the whole import.
"""

import csv
import logging
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from workout_errors import CSVImportError
from workout_units import (
    apply_unilateral_default,
    infer_weight,
    normalize_date,
    parse_leading_int,
    parse_measure_unit,
    parse_number,
)

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "workoutName", "date", "exerciseName", "description", "order",
    "Weight", "Weight Unit", "Equipment", "Exercise Measure",
    "Set 1 Count", "Set 2 Count", "Set 3 Count", "Set 4 Count", "Set 5 Count",
]

# "Set 5 Count" may be left off entirely
REQUIRED_COLUMNS = 13
SET_COLUMNS_START = 9


class CSVRow(BaseModel):
    """One parsed data row, values still as text except order."""

    line_number: int
    workout_name: str
    date: str
    exercise_name: str
    description: str = ""
    order: int
    weight: str = ""
    weight_unit: str = ""
    equipment: str = ""
    measure: str = "reps"
    set_counts: List[str] = Field(default_factory=list)


def split_line(line: str) -> List[str]:
    """Quote-aware comma split; fields come back trimmed and unquoted."""
    fields = next(csv.reader([line], skipinitialspace=True), [])
    return [field.strip().strip('"').strip() for field in fields]


def parse_csv(text: str) -> List[CSVRow]:
    """Parse CSV text into rows.

    Raises:
        CSVImportError: if a line has fewer than the required columns
    """
    lines = text.replace("\r\n", "\n").split("\n")
    rows: List[CSVRow] = []

    for line_number, line in enumerate(lines[1:], start=2):
        if not line.strip():
            continue

        columns = split_line(line.rstrip("\r"))
        if len(columns) < REQUIRED_COLUMNS:
            raise CSVImportError(
                f"Line {line_number} has invalid format: "
                f"expected {REQUIRED_COLUMNS} columns, got {len(columns)}",
                line_number,
            )
        columns += [""] * (len(CSV_COLUMNS) - len(columns))

        rows.append(CSVRow(
            line_number=line_number,
            workout_name=columns[0],
            date=normalize_date(columns[1]),
            exercise_name=columns[2],
            description=columns[3],
            order=parse_leading_int(columns[4]) or len(rows),
            weight=columns[5],
            weight_unit=columns[6],
            equipment=columns[7],
            measure=columns[8] or "reps",
            set_counts=columns[SET_COLUMNS_START:len(CSV_COLUMNS)],
        ))

    logger.debug("Parsed %d CSV rows", len(rows))
    return rows


def row_to_exercise(row: CSVRow) -> Dict[str, Any]:
    """Build an exercise (without IDs) from one row.

    Raises:
        CSVImportError: if a set count or the weight is not a number
    """
    sets = []
    for set_number, count in enumerate(row.set_counts, start=1):
        if not count.strip():
            continue
        try:
            sets.append(parse_number(count))
        except ValueError:
            raise CSVImportError(
                f"Line {row.line_number}: Set {set_number} Count is not a number ({count!r})",
                row.line_number,
            )

    try:
        weight = infer_weight(row.weight, row.weight_unit, row.equipment)
    except ValueError as e:
        raise CSVImportError(f"Line {row.line_number}: {e}", row.line_number)

    planned: Dict[str, Any] = {"sets": sets, "unit": parse_measure_unit(row.measure)}
    if weight:
        planned["weight"] = weight
    if row.equipment:
        planned["equipment"] = row.equipment

    return {
        "name": row.exercise_name,
        "description": row.description,
        "order": row.order,
        "planned": apply_unilateral_default(planned, row.exercise_name, row.description),
    }


def group_rows(rows: List[CSVRow]) -> List[Dict[str, Any]]:
    """Group rows into workouts keyed by (date, workoutName).

    Returns workouts in first-seen order, each with its exercises stably
    sorted by order and the line numbers it was built from.
    """
    groups: Dict[tuple, Dict[str, Any]] = {}

    for row in rows:
        key = (row.date, row.workout_name)
        if key not in groups:
            groups[key] = {
                "name": row.workout_name,
                "date": row.date,
                "exercises": [],
                "lineNumbers": [],
            }
        groups[key]["exercises"].append(row_to_exercise(row))
        groups[key]["lineNumbers"].append(row.line_number)

    workouts = list(groups.values())
    for workout in workouts:
        workout["exercises"].sort(key=lambda exercise: exercise["order"])
    return workouts
