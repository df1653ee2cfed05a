import os

class Config:
    # Database - Required
    DATABASE_URL = os.environ.get("DATABASE_URL")

    # App settings - Required
    SECRET_KEY = os.environ.get("SECRET_KEY")
    SESSION_SECRET = os.environ.get("SESSION_SECRET")

    # Scheduler settings
    SCHEDULER_TIMEZONE = os.environ.get("SCHEDULER_TIMEZONE") or 'America/Chicago'
    SCORE_SWEEP_TIME = os.environ.get("SCORE_SWEEP_TIME") or '04:00'  # Nightly full recalculation
    AUTO_START_SCHEDULER = (os.environ.get("AUTO_START_SCHEDULER") or "false").lower() == "true"

    # CleanPlate Score v2 weights - Total must equal 1.0 (100%)
    SCORING_WEIGHTS = {
        'result': 0.35,        # Time-weighted inspection outcomes
        'violations': 0.25,    # Latest inspection violation counts
        'trend': 0.15,         # Recent vs previous outcomes
        'track_record': 0.15,  # Failures and criticals in the last 36 months
        'recency': 0.10        # Inspected on schedule for the risk tier
    }

    # Bonus/penalty modifiers applied after weighting
    SCORE_MODIFIERS = {
        'pass_streak_min': 3,
        'pass_streak_bonus': 5,
        'recent_failure_days': 90,
        'recent_failure_penalty': -10
    }

    # Recalculation
    INSPECTION_WINDOW = int(os.environ.get("INSPECTION_WINDOW") or "10")  # Most recent inspections read per establishment
    RECALC_MAX_WORKERS = int(os.environ.get("RECALC_MAX_WORKERS") or "4")
    STORE_TIMEOUT_SECONDS = int(os.environ.get("STORE_TIMEOUT_SECONDS") or "10")
    STORE_MAX_RETRIES = int(os.environ.get("STORE_MAX_RETRIES") or "3")
    STORE_RETRY_BACKOFF_SECONDS = float(os.environ.get("STORE_RETRY_BACKOFF_SECONDS") or "0.5")

    # Score breakdown responses are cached until the next recalculation
    BREAKDOWN_CACHE_SECONDS = int(os.environ.get("BREAKDOWN_CACHE_SECONDS") or "3600")
