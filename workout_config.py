"""Environment-variable-based configuration for the workout MCP server."""

import logging
import os
import sys

# Database path: use DB_PATH env var if set (for remote deploy with
# persistent volume at /data), otherwise default to local home directory.
DB_PATH = os.environ.get("DB_PATH", os.path.expanduser("~/.workout_tracker/workouts.db"))

# "sqlite" (default) or "firestore"
STORE_BACKEND = os.environ.get("WORKOUT_STORE", "sqlite").strip().lower()

# Empty means "use the project of the ambient Google credentials"
FIREBASE_PROJECT_ID = os.environ.get("FIREBASE_PROJECT_ID", "")

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Send log records to stderr. stdout carries the MCP stdio stream."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )
