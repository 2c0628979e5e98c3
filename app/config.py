"""
Recovery-Tracker Configuration.
All settings via environment variables with sensible defaults.
"""

import os
from pathlib import Path

# --- Paths ---
BASE_DIR = Path(os.getenv("RECOVERY_DATA_DIR", "/data"))
DB_PATH = BASE_DIR / "recovery.db"

# --- Timezone (relapse time-of-day analysis) ---
TIMEZONE = os.getenv("RECOVERY_TZ", "UTC")

# --- Auth ---
API_KEY = os.getenv("RECOVERY_API_KEY", "")

# --- Scheduler ---
# Host re-runs the engine on this interval so interpolated progress keeps moving
RECOMPUTE_INTERVAL_SEC = int(os.getenv("RECOMPUTE_INTERVAL_SEC", "60"))

# --- Substances (closed set) ---
SUBSTANCES = ("cigarettes", "cannabis", "alcohol")
EVENT_TYPES = ("quit", "relapse", "log")

# --- Relapse model ---
# Effective quit date = relapse timestamp + impact * RELAPSE_PUSHBACK_DAYS
RELAPSE_PUSHBACK_DAYS: float = float(os.getenv("RELAPSE_PUSHBACK_DAYS", "3"))
RELAPSE_IMPACT = {
    "light": 0.3,
    "moderate": 0.7,
    "heavy": 1.0,
}
RELAPSE_DEFAULT_IMPACT = 0.5  # amount missing or not one of the levels above

# --- Progress / timeline limits ---
UPCOMING_MILESTONE_LIMIT = int(os.getenv("UPCOMING_MILESTONE_LIMIT", "5"))
TIMELINE_COMPLETED_LIMIT = int(os.getenv("TIMELINE_COMPLETED_LIMIT", "3"))
TIMELINE_DEFAULT_ITEMS = int(os.getenv("TIMELINE_DEFAULT_ITEMS", "10"))

# --- Financial defaults (per day, local currency) ---
DEFAULT_COST_PER_DAY = {
    "cigarettes": float(os.getenv("COST_PER_DAY_CIGARETTES", "350")),
    "cannabis": float(os.getenv("COST_PER_DAY_CANNABIS", "500")),
    "alcohol": float(os.getenv("COST_PER_DAY_ALCOHOL", "400")),
}
CURRENCY_SYMBOL = os.getenv("CURRENCY_SYMBOL", "₹")

# --- Operative rank (summed streak days across substances) ---
RANK_THRESHOLDS = [
    (365, "LEGENDARY"),
    (180, "MASTER"),
    (90, "VETERAN"),
    (30, "ADEPT"),
    (7, "NOVICE"),
]
RANK_DEFAULT = "INITIATE"
