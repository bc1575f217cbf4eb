"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class ConfigError(RuntimeError):
    """Raised when a configuration value cannot be used."""


@dataclass(frozen=True)
class Settings:
    concurrency: int = 5
    headless: bool = True
    output_path: str = "results.json"
    scroll_settle_ms: int = 1500
    max_scrolls: int = 50000
    detail_settle_ms: int = 1500
    task_delay_seconds: float = 2.0
    email_lookup: bool = True
    selectors_file: Optional[str] = None
    user_agent: str = DEFAULT_USER_AGENT
    locale: str = "en-US"
    viewport_width: int = 1280
    viewport_height: int = 720
    log_level: str = "INFO"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    concurrency = _env_int("LEADSCOUT_CONCURRENCY", 5)
    if concurrency < 1:
        logger.warning("LEADSCOUT_CONCURRENCY=%s is below 1; using 1 worker.", concurrency)
        concurrency = 1

    selectors_file = os.getenv("LEADSCOUT_SELECTORS_FILE") or None
    if selectors_file and not os.path.isfile(selectors_file):
        raise ConfigError(f"LEADSCOUT_SELECTORS_FILE points to a missing file: {selectors_file}")

    return Settings(
        concurrency=concurrency,
        headless=_env_bool("LEADSCOUT_HEADLESS", True),
        output_path=os.getenv("LEADSCOUT_OUTPUT") or "results.json",
        scroll_settle_ms=_env_int("LEADSCOUT_SCROLL_SETTLE_MS", 1500),
        max_scrolls=_env_int("LEADSCOUT_MAX_SCROLLS", 50000),
        detail_settle_ms=_env_int("LEADSCOUT_DETAIL_SETTLE_MS", 1500),
        task_delay_seconds=_env_float("LEADSCOUT_TASK_DELAY_SECONDS", 2.0),
        email_lookup=_env_bool("LEADSCOUT_EMAIL_LOOKUP", True),
        selectors_file=selectors_file,
        user_agent=os.getenv("LEADSCOUT_USER_AGENT") or DEFAULT_USER_AGENT,
        locale=os.getenv("LEADSCOUT_LOCALE") or "en-US",
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )
