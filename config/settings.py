"""
Runtime Settings

Environment-driven settings for the monitor. Values are read from the
process environment (optionally populated from a .env file by
``load_dotenv`` at process start).
"""

import os
from dataclasses import dataclass


def _get_bool(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _get_float(name, default):
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        parsed = float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got '{value}'")
    if parsed <= 0:
        raise ValueError(f"{name} must be a positive number, got '{value}'")
    return parsed


@dataclass(frozen=True)
class Timeouts:
    """Independent timeouts (seconds) for the two phases of a fetch."""

    navigation: float = 30.0
    selector: float = 10.0


@dataclass(frozen=True)
class Settings:
    slack_webhook_url: str = None
    log_level: str = "INFO"
    log_file: str = None
    timeouts: Timeouts = Timeouts()
    chrome_headless: bool = True
    chrome_binary: str = None
    shutdown_grace_seconds: float = 5.0
    slack_timeout: float = 10.0
    display_timezone: str = "UTC"


def load_settings():
    """
    Build Settings from environment variables.

    Returns:
        Settings: Resolved settings with defaults applied

    Raises:
        ValueError: If a numeric variable is not a positive number
    """
    return Settings(
        slack_webhook_url=os.getenv("SLACK_WEBHOOK_URL") or None,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_file=os.getenv("LOG_FILE") or None,
        timeouts=Timeouts(
            navigation=_get_float("NAVIGATION_TIMEOUT", 30.0),
            selector=_get_float("SELECTOR_TIMEOUT", 10.0),
        ),
        chrome_headless=_get_bool("CHROME_HEADLESS", True),
        chrome_binary=os.getenv("CHROME_BINARY") or None,
        shutdown_grace_seconds=_get_float("SHUTDOWN_GRACE_SECONDS", 5.0),
        slack_timeout=_get_float("SLACK_TIMEOUT", 10.0),
        display_timezone=os.getenv("DISPLAY_TIMEZONE", "UTC"),
    )
