"""Environment-driven settings for the coaching pipeline."""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Storage & time
# ---------------------------------------------------------------------------
DB_FILENAME = os.getenv("CC_DB_FILENAME", "craving_coach.db")
TIMEZONE = os.getenv("CC_TIMEZONE", "UTC")

# ---------------------------------------------------------------------------
# Intervention scheduler defaults
# ---------------------------------------------------------------------------
QUIET_HOURS_START = int(os.getenv("CC_QUIET_HOURS_START", "22"))
QUIET_HOURS_END = int(os.getenv("CC_QUIET_HOURS_END", "7"))
MAX_INTERVENTIONS_PER_DAY = int(os.getenv("CC_MAX_INTERVENTIONS_PER_DAY", "5"))
MIN_INTERVAL_SECONDS = float(os.getenv("CC_MIN_INTERVAL_MINUTES", "30")) * 60

# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------
SIGNAL_TIMEOUT_SECONDS = float(os.getenv("CC_SIGNAL_TIMEOUT_SECONDS", "2.0"))
FEATURE_HISTORY_SIZE = int(os.getenv("CC_FEATURE_HISTORY_SIZE", "100"))
TIP_GENERATOR = os.getenv("CC_TIP_GENERATOR", "contextual")
EVALUATION_INTERVAL_MINUTES = int(os.getenv("CC_EVALUATION_INTERVAL_MINUTES", "15"))
