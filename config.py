"""
Configuration settings for ScoreRead.

This module provides the Config class with all settings.
Paths are relative to ~/.scoreread or can be overridden via environment variables.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Try multiple locations for .env
for env_path in [
    Path.cwd() / ".env",  # Current working directory
    Path(__file__).parent / ".env",  # Package root (when running from source)
    Path.home() / ".scoreread" / ".env",  # User config directory
]:
    if env_path.exists():
        load_dotenv(env_path, override=True)
        break


def _get_base_dir():
    """Get base directory, preferring environment variable or user config."""
    if os.getenv("SCOREREAD_BASE_DIR"):
        return Path(os.getenv("SCOREREAD_BASE_DIR"))
    return Path.home() / ".scoreread"


class Config:
    """Main configuration class for ScoreRead."""

    # Paths - can be overridden via SCOREREAD_BASE_DIR env var
    BASE_DIR = _get_base_dir()
    DATA_DIR = BASE_DIR / "data"
    DB_PATH = Path(os.getenv("SCOREREAD_DB_PATH", str(DATA_DIR / "scoreread.db")))

    # Logging
    LOG_LEVEL = os.getenv("SCOREREAD_LOG_LEVEL", "WARNING")

    # Session Settings
    WARMUP_SIZE = int(os.getenv("SCOREREAD_WARMUP_SIZE", "5"))  # Max spots in a warmup session
    SESSION_TARGET_MINUTES = int(os.getenv("SCOREREAD_SESSION_MINUTES", "30"))  # Default session length
    DEFAULT_USER_ID = os.getenv("SCOREREAD_USER", "default")

    # Urgency Score Weights
    # urgency = priority_weight * PRIORITY_SCALE + overdue_days * OVERDUE_PER_DAY
    #           + (1 - success_ratio) * FAILURE_WEIGHT
    PRIORITY_WEIGHTS = {"low": 1, "medium": 2, "high": 3, "critical": 4}
    URGENCY_PRIORITY_SCALE = float(os.getenv("SCOREREAD_URGENCY_PRIORITY_SCALE", "10.0"))
    URGENCY_OVERDUE_PER_DAY = float(os.getenv("SCOREREAD_URGENCY_OVERDUE_PER_DAY", "2.0"))
    URGENCY_FAILURE_WEIGHT = float(os.getenv("SCOREREAD_URGENCY_FAILURE_WEIGHT", "5.0"))

    # Spaced Repetition Settings
    FAILED_RETRY_HOURS = 4  # Same-day retry after a failed run
    SHORT_INTERVAL_HOURS = 12  # Struggled spots come back within the day
    DEFAULT_EASE_FACTOR = 2.5
    MIN_EASE_FACTOR = 1.3
    MAX_EASE_FACTOR = 2.5
    EXCELLENT_BONUS = 1.3  # Interval multiplier for excellent runs
    PROMOTION_THRESHOLD = 0.8  # Recent success ratio needed to promote on "good"
    PROMOTION_MIN_ATTEMPTS = 3
    RECENT_RESULTS_WINDOW = 5

    # Interval bands in days, per readiness level (min, max)
    READINESS_INTERVAL_BANDS = {
        "new_spot": (1, 2),
        "learning": (1, 2),
        "review": (3, 13),
        "mastered": (14, 120),
    }

    # Practice time heuristic (minutes)
    MIN_PRACTICE_MINUTES = 3
    MAX_PRACTICE_MINUTES = 15

    @classmethod
    def ensure_dirs(cls):
        """Create all necessary directories."""
        cls.DATA_DIR.mkdir(parents=True, exist_ok=True)
        cls.DB_PATH.parent.mkdir(parents=True, exist_ok=True)
