"""
Unit parsing and normalization.

Turns the free-text values that arrive from CSV exports and exercise log
forms (dates, set counts, weights, durations, measure names) into typed
values, and flags exercises that need independent left/right tracking.
"""

import math
import re
from datetime import date
from typing import Any, Dict, Optional, Tuple, Union

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")
WEIGHT_TEXT_RE = re.compile(r"^([\d.]+)\s*(lbs?|kg|pounds?)?$", re.IGNORECASE)
CLOCK_DURATION_RE = re.compile(r"^(?:(\d+):)?(\d{1,2}):(\d{2})$")
UNIT_DURATION_RE = re.compile(
    r"^(\d+)\s*(s|sec|seconds?|m|min|minutes?|h|hr|hours?)$", re.IGNORECASE
)

Number = Union[int, float]


# ============================================================================
# Dates
# ============================================================================

def is_iso_date(text: str) -> bool:
    """True when text looks like YYYY-MM-DD (shape only, not calendar)."""
    return bool(ISO_DATE_RE.match(text or ""))


def parse_leading_int(text: str) -> Optional[int]:
    """Integer prefix of text ("12abc" -> 12), or None when there is none."""
    match = LEADING_INT_RE.match(text or "")
    return int(match.group(1)) if match else None


def normalize_date(text: str) -> str:
    """Best-effort conversion of a date string to YYYY-MM-DD.

    Accepts MM/DD/YYYY and YYYY/MM/DD (either separator). Anything that
    can't be reinterpreted is returned unchanged.
    """
    if is_iso_date(text):
        return text

    parts = re.split(r"[/\-]", text)
    if len(parts) != 3:
        return text

    first = parse_leading_int(parts[0])
    if first is None:
        return text

    if first <= 12 and len(parts[2]) == 4:
        return f"{parts[2]}-{parts[0].zfill(2)}-{parts[1].zfill(2)}"
    if first > 12 and len(parts[0]) == 4:
        return f"{parts[0]}-{parts[1].zfill(2)}-{parts[2].zfill(2)}"
    return text


def parse_date(text: str) -> date:
    """Parse any supported date format into a calendar date.

    Raises:
        ValueError: if the text is not a real calendar date
    """
    normalized = normalize_date((text or "").strip())
    if not is_iso_date(normalized):
        raise ValueError(f"Unrecognized date: {text!r}")
    return date.fromisoformat(normalized)


# ============================================================================
# Numbers and measures
# ============================================================================

def parse_number(text: str) -> Number:
    """Parse a numeric field. Integral values come back as int.

    Raises:
        ValueError: if text is not a finite number
    """
    value = float(str(text).strip())
    if not math.isfinite(value):
        raise ValueError(f"Not a finite number: {text!r}")
    return int(value) if value.is_integer() else value


def parse_measure_unit(measure: str) -> str:
    """Map an "Exercise Measure" column to reps, seconds or minutes."""
    lowered = (measure or "").lower()
    if "second" in lowered:
        return "seconds"
    if "minute" in lowered:
        return "minutes"
    return "reps"


def parse_weight_text(text: str) -> Tuple[Number, Optional[str]]:
    """Split "135 lbs" into (135, "lb"). The unit is None when absent.

    Raises:
        ValueError: if text is not a number optionally followed by lb/kg
    """
    match = WEIGHT_TEXT_RE.match((text or "").strip())
    if not match:
        raise ValueError(f"Weight must be a number optionally followed by lbs/kg: {text!r}")
    amount = parse_number(match.group(1))
    suffix = (match.group(2) or "").lower()
    if suffix.startswith("kg"):
        return amount, "kg"
    if suffix:
        return amount, "lb"
    return amount, None


def infer_weight(weight: str, weight_unit: str = "", equipment: str = "") -> Optional[Dict[str, Any]]:
    """Build a planned weight block from the CSV weight columns.

    An explicit Weight column wins (unit from "Weight Unit", else from the
    weight text itself, else bodyweight equipment, else lb). Without one the
    exercise is bodyweight. Returns None when the unit is not recognized.
    """
    weight = (weight or "").strip()
    if not weight:
        return {"amount": 0, "unit": "bodyweight"}

    amount, text_unit = parse_weight_text(weight)
    default_unit = "bodyweight" if "bodyweight" in (equipment or "").lower() else "lb"
    unit_text = (weight_unit or "").strip().lower() or text_unit or default_unit
    if "lb" in unit_text or "pound" in unit_text:
        return {"amount": amount, "unit": "lb"}
    if "kg" in unit_text:
        return {"amount": amount, "unit": "kg"}
    if "bodyweight" in unit_text:
        return {"amount": amount, "unit": "bodyweight"}
    return None


def parse_duration(text: str) -> int:
    """Convert "1:30", "01:02:03", "45s", "5 min" or "1hr" to seconds.

    Raises:
        ValueError: if the text matches none of the supported formats
    """
    text = (text or "").strip()

    match = CLOCK_DURATION_RE.match(text)
    if match:
        hours = int(match.group(1) or 0)
        return hours * 3600 + int(match.group(2)) * 60 + int(match.group(3))

    match = UNIT_DURATION_RE.match(text)
    if match:
        value = int(match.group(1))
        unit = match.group(2).lower()
        if unit.startswith("h"):
            return value * 3600
        if unit.startswith("m"):
            return value * 60
        return value

    raise ValueError(
        f"Duration must be in format MM:SS, HH:MM:SS, or number with unit (e.g., 30s, 5min): {text!r}"
    )


# ============================================================================
# Unilateral detection
# ============================================================================

UNILATERAL_KEYWORDS = (
    "single-arm",
    "single arm",
    "single-leg",
    "single leg",
    "one-arm",
    "one arm",
    "one-leg",
    "one leg",
    "unilateral",
    "alternating",
    "each arm",
    "each leg",
    "per arm",
    "per leg",
    "each side",
    "per side",
)


def detect_unilateral(name: str, description: str) -> bool:
    """Keyword heuristic: does this exercise train one side at a time?"""
    text = f"{name or ''} {description or ''}".lower()
    return any(keyword in text for keyword in UNILATERAL_KEYWORDS)


def apply_unilateral_default(planned: Dict[str, Any], name: str, description: str) -> Dict[str, Any]:
    """Copy of planned with isUnilateral filled in when the caller left it out."""
    planned = dict(planned or {})
    if planned.get("isUnilateral") is None:
        planned["isUnilateral"] = detect_unilateral(name, description)
    return planned
