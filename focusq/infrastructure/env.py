"""
Centralized environment variable loader for FocusQ.

Side Effects:
    - Loads .env file from project root (once per process)

Usage:
    from focusq.infrastructure.env import ensure_env_loaded, get_optional_env

    ensure_env_loaded()
    token = get_optional_env("SLACK_BOT_TOKEN")
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

_ENV_LOADED = False


def ensure_env_loaded(env_path: Path | None = None) -> None:
    """
    Ensure .env file is loaded exactly once.

    Args:
        env_path: Optional path to .env file. If None, searches upward for one.

    Side Effects:
        - Loads environment variables from .env file (existing variables win)
        - Sets module-level flag to prevent double-loading
    """
    global _ENV_LOADED
    if _ENV_LOADED:
        return

    if env_path is None:
        current = Path(__file__).parent
        while current != current.parent:
            env_candidate = current / ".env"
            if env_candidate.exists():
                env_path = env_candidate
                break
            current = current.parent

    if env_path and env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()
    _ENV_LOADED = True


def get_optional_env(key: str, default: str = "") -> str:
    """Get optional environment variable with default value."""
    ensure_env_loaded()
    return os.getenv(key, default)


def get_list_env(key: str, default: str = "") -> list[str]:
    """Comma-separated environment variable as a list (blank entries dropped)."""
    raw = get_optional_env(key, default)
    return [part.strip() for part in raw.split(",") if part.strip()]
