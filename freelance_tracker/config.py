import os
from pathlib import Path

DB_PATH = os.getenv("DB_PATH", str(Path(__file__).resolve().parent.parent / "time_tracker.sqlite3"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Local hour at which a manual entry for a calendar day begins
MANUAL_ENTRY_HOUR = int(os.getenv("MANUAL_ENTRY_HOUR", "9"))

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
