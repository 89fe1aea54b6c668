"""Configuration management."""
import os
from typing import List
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class ConfigError(ValueError):
    """Raised when a setting is missing or malformed."""


def _int_setting(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


def _bool_setting(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration.

    Values are read from the environment (and a ``.env`` file) when the
    instance is created, so tests can set variables before constructing one.
    """

    # Notion limit on children appended by a single request
    CHUNK_SIZE = 100
    NOTION_VERSION = "2022-06-28"

    def __init__(self):
        # Notion
        self.NOTION_TOKEN = os.getenv("NOTION_TOKEN")
        self.NOTION_DATABASE_ID = os.getenv("NOTION_DATABASE_ID")
        self.NOTION_TIMEOUT = _int_setting("NOTION_TIMEOUT", 30)
        self.NOTION_MAX_RETRIES = _int_setting("NOTION_MAX_RETRIES", 0)

        # Kobo export
        self.KOBO_DB_PATH = os.getenv("KOBO_DB_PATH", "highlights.sqlite")

        # Sync behaviour
        self.RATE_LIMIT_DELAY_MS = _int_setting("RATE_LIMIT_DELAY_MS", 350)
        self.STRICT_COMPLETION = _bool_setting("STRICT_COMPLETION")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

        if self.RATE_LIMIT_DELAY_MS < 0:
            raise ConfigError("RATE_LIMIT_DELAY_MS must not be negative")
        if self.NOTION_MAX_RETRIES < 0:
            raise ConfigError("NOTION_MAX_RETRIES must not be negative")

    def missing(self) -> List[str]:
        """Names of required settings that are unset or empty."""
        required = {
            "NOTION_TOKEN": self.NOTION_TOKEN,
            "NOTION_DATABASE_ID": self.NOTION_DATABASE_ID,
        }
        return [name for name, value in required.items() if not value]
