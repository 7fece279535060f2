"""Centralized configuration for the FocusQ digest engine.

Typed constants for scheduling, scoring windows, persistence, Slack and LLM
settings. Environment variable overrides use safe defaults so the engine starts
without extra env configuration.

User-level settings (monitored channels, VIP contacts, timezone, ...) live in the
``Settings`` model and are passed explicitly to the components that need them.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

from focusq.infrastructure.env import ensure_env_loaded, get_list_env, get_optional_env

ensure_env_loaded()

# --- App ---
APP_VERSION: str = "1.0.0"

# --- Digest schedule ---
DIGEST_SLOTS: tuple[str, ...] = tuple(
    slot.strip()
    for slot in os.getenv("FOCUSQ_DIGEST_SLOTS", "09:00,12:00,17:00").split(",")
    if slot.strip()
)
DIGEST_TOP_N: int = int(os.getenv("FOCUSQ_DIGEST_TOP_N", "5"))
SLOT_RESEND_GUARD_SECONDS: int = 60 * 60
SCHEDULER_MAX_SLEEP_SECONDS: float = float(os.getenv("FOCUSQ_SCHEDULER_MAX_SLEEP", "60"))

# --- Deduplication ---
SUGGESTION_DEDUP_WINDOW_SECONDS: int = 7 * 24 * 60 * 60
SUGGESTED_RETENTION_DAYS: int = int(os.getenv("FOCUSQ_SUGGESTED_RETENTION_DAYS", "30"))

# --- Collection ---
FETCH_WINDOW_SECONDS: int = 24 * 60 * 60
SLACK_HISTORY_LIMIT: int = 50

# --- Aggregator ---
AGGREGATOR_TOP_N: int = 10
MAX_SCORE: int = 100

# --- Database ---
DB_PATH: Path = Path(
    os.getenv("FOCUSQ_DB_PATH", str(Path.home() / ".focusq" / "focusq.db"))
).expanduser()
DB_CONNECT_TIMEOUT: float = float(os.getenv("FOCUSQ_DB_CONNECT_TIMEOUT", "30.0"))
DB_RETRY_MAX: int = int(os.getenv("FOCUSQ_DB_RETRY_MAX", "5"))
DB_RETRY_BASE_DELAY: float = float(os.getenv("FOCUSQ_DB_RETRY_BASE_DELAY", "0.1"))
DB_RETRY_MAX_DELAY: float = float(os.getenv("FOCUSQ_DB_RETRY_MAX_DELAY", "2.0"))
DB_RETRY_JITTER: float = 0.1

# --- Slack ---
SLACK_API_BASE_URL: str = os.getenv("FOCUSQ_SLACK_API_BASE_URL", "https://slack.com/api")
SLACK_TIMEOUT_SECONDS: float = float(os.getenv("FOCUSQ_SLACK_TIMEOUT", "10"))
SLACK_MAX_RETRIES: int = int(os.getenv("FOCUSQ_SLACK_MAX_RETRIES", "3"))

# --- LLM ---
GEMINI_MODEL: str = os.getenv("FOCUSQ_GEMINI_MODEL", "gemini-2.0-flash")
GEMINI_LOCATION: str = os.getenv("GEMINI_LOCATION", "us-central1")
GEMINI_TEMPERATURE: float = 0.3
GEMINI_MAX_TOKENS: int = 512
LLM_MAX_RETRIES: int = int(os.getenv("FOCUSQ_LLM_MAX_RETRIES", "3"))

MarkSuggestedPolicy = Literal["analyzed", "delivered"]

# Symlink into the zoneinfo database on most Linux and macOS hosts
LOCALTIME_PATH: Path = Path("/etc/localtime")
_ZONEINFO_MARKER = "zoneinfo/"


def _is_zone_name(name: str) -> bool:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def _local_zone_name() -> str:
    """
    Host's IANA zone name from TZ or the /etc/localtime link.

    Returns "" when the name cannot be determined, so the digest reports the
    timezone as missing instead of silently running on UTC.
    """
    tz_env = os.getenv("TZ", "").lstrip(":")
    if tz_env and _is_zone_name(tz_env):
        return tz_env

    try:
        target = LOCALTIME_PATH.resolve(strict=True).as_posix()
    except (OSError, RuntimeError):
        return ""
    if _ZONEINFO_MARKER not in target:
        return ""
    name = target.split(_ZONEINFO_MARKER, 1)[1]
    return name if _is_zone_name(name) else ""


class Settings(BaseModel):
    """Persisted user settings consumed by the digest engine."""

    monitored_channels: list[str] = Field(default_factory=list)
    vip_contacts: list[str] = Field(default_factory=list)
    primary_timezone: str = Field(default="", validate_default=True)
    digest_enabled: bool = False
    user_email: str = ""
    mark_suggested_policy: MarkSuggestedPolicy = "analyzed"

    @field_validator("primary_timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        if not value:
            return _local_zone_name()
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown IANA timezone: {value!r}") from e
        return value

    @property
    def tz(self) -> ZoneInfo:
        """Configured zone; UTC while unset (the digest refuses to start then)."""
        return ZoneInfo(self.primary_timezone or "UTC")

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from FOCUSQ_* environment variables."""
        return cls(
            monitored_channels=get_list_env("FOCUSQ_MONITORED_CHANNELS"),
            vip_contacts=get_list_env("FOCUSQ_VIP_CONTACTS"),
            primary_timezone=get_optional_env("FOCUSQ_TIMEZONE"),
            digest_enabled=get_optional_env("FOCUSQ_DIGEST_ENABLED", "false").lower() == "true",
            user_email=get_optional_env("FOCUSQ_USER_EMAIL"),
            mark_suggested_policy=get_optional_env("FOCUSQ_MARK_SUGGESTED_POLICY", "analyzed"),
        )

    @classmethod
    def load(cls, path: Path) -> Settings:
        """Load settings persisted as JSON (missing file means defaults)."""
        if not path.exists():
            return cls()
        return cls.model_validate(json.loads(path.read_text(encoding="utf-8")))

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2), encoding="utf-8")
