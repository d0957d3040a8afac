from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_PLANNING_URL = (
    "https://cas.ut-capitole.fr/cas/login?service="
    "https%3A%2F%2Fade-production.ut-capitole.fr%2Fdirect%2Fmyplanning.jsp"
)


@dataclass
class Settings:
    username: str
    password: str
    planning_url: str = DEFAULT_PLANNING_URL
    weeks: int = 5
    max_workers: int = 4
    day_count: int = 7
    page_timeout: float = 30
    join_timeout: Optional[float] = None
    headless: bool = True
    output: str = "ut1"


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, falling back to %d", name, raw, default)
        return default


def _get_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, falling back to %s", name, raw, default)
        return default


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def get_settings() -> Settings:
    settings = Settings(
        username=os.getenv("UT1_USERNAME", ""),
        password=os.getenv("UT1_PASSWORD", ""),
        planning_url=os.getenv("UT1_PLANNING_URL", DEFAULT_PLANNING_URL),
        weeks=_get_int("NB_WEEKS_TO_SCRAPE", 5),
        max_workers=_get_int("UT1_MAX_WORKERS", 4),
        day_count=_get_int("UT1_DAY_COUNT", 7),
        page_timeout=_get_float("UT1_PAGE_TIMEOUT", 30),
        join_timeout=_get_float("UT1_JOIN_TIMEOUT", None),
        headless=_get_bool("UT1_HEADLESS", True),
        output=os.getenv("UT1_OUTPUT", "ut1"),
    )
    if not settings.username:
        logger.warning("UT1_USERNAME is not set")
    if not settings.password:
        logger.warning("UT1_PASSWORD is not set")
    return settings
