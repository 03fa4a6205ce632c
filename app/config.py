# app/config.py
import os
from typing import List
from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return [item.strip() for item in raw.split(",") if item.strip()]


DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./ielts_practice.db")
CORS_ORIGINS: List[str] = _env_list("CORS_ORIGINS", ["http://localhost:3000"])
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

RESULTS_PAGE_LIMIT_MAX: int = _env_int("RESULTS_PAGE_LIMIT_MAX", 100)

# Progress report thresholds (band scores)
STRENGTH_MIN_AVERAGE: float = _env_float("STRENGTH_MIN_AVERAGE", 6.5)
WEAKNESS_MAX_AVERAGE: float = _env_float("WEAKNESS_MAX_AVERAGE", 5.0)
RECENT_ACTIVITY_LIMIT: int = _env_int("RECENT_ACTIVITY_LIMIT", 5)
IMPROVEMENT_WINDOW: int = _env_int("IMPROVEMENT_WINDOW", 3)
