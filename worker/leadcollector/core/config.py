"""Application configuration helpers.

Every collection limit is tunable from the environment: the batch multipliers
and scroll ceilings were tuned by hand against live Maps results and differ by
market, so none of them is treated as a fixed contract value.
"""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class ConfigError(RuntimeError):
    """Raised when an environment value cannot be parsed."""


@dataclass(frozen=True)
class Settings:
    worker_port: int = 8080
    domestic_country: str = "australia"
    batch_amplification: int = 5
    batch_floor: int = 20
    raw_ceiling_multiplier: int = 15
    raw_ceiling_floor: int = 50
    unbounded_raw_ceiling: int = 500
    max_collection_attempts: int = 5
    max_scroll_attempts: int = 150
    max_idle_scrolls: int = 7
    scroll_settle_ms: int = 3000
    navigation_timeout_ms: int = 60000
    results_timeout_ms: int = 45000
    heading_timeout_ms: int = 60000
    browser_headless: bool = True
    collect_callback_url: str = ""


def _get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    domestic_country = (os.getenv("DOMESTIC_COUNTRY") or "australia").strip().lower()
    browser_headless = os.getenv("BROWSER_HEADLESS", "true").lower() in {"1", "true", "yes"}
    collect_callback_url = os.getenv("COLLECT_CALLBACK_URL", "")

    if not collect_callback_url:
        logger.warning("COLLECT_CALLBACK_URL is not configured; queued runs will not report results.")

    return Settings(
        worker_port=_get_int_env("WORKER_PORT", 8080),
        domestic_country=domestic_country,
        batch_amplification=_get_int_env("BATCH_AMPLIFICATION", 5),
        batch_floor=_get_int_env("BATCH_FLOOR", 20),
        raw_ceiling_multiplier=_get_int_env("RAW_CEILING_MULTIPLIER", 15),
        raw_ceiling_floor=_get_int_env("RAW_CEILING_FLOOR", 50),
        unbounded_raw_ceiling=_get_int_env("UNBOUNDED_RAW_CEILING", 500),
        max_collection_attempts=_get_int_env("MAX_COLLECTION_ATTEMPTS", 5),
        max_scroll_attempts=_get_int_env("MAX_SCROLL_ATTEMPTS", 150),
        max_idle_scrolls=_get_int_env("MAX_IDLE_SCROLLS", 7),
        scroll_settle_ms=_get_int_env("SCROLL_SETTLE_MS", 3000),
        navigation_timeout_ms=_get_int_env("NAVIGATION_TIMEOUT_MS", 60000),
        results_timeout_ms=_get_int_env("RESULTS_TIMEOUT_MS", 45000),
        heading_timeout_ms=_get_int_env("HEADING_TIMEOUT_MS", 60000),
        browser_headless=browser_headless,
        collect_callback_url=collect_callback_url,
    )
