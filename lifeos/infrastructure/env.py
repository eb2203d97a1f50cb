"""
Environment loading for LifeOS entry points.

Both servers call ensure_env_loaded() before reading configuration so that a
``.env`` file at the project root (GEMINI_API_KEY, SUPABASE_URL, ...) is
honoured without exporting secrets in the shell.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

from lifeos.observability.logging import get_logger

logger = get_logger(__name__)

_ENV_LOADED = False


class MissingEnvironmentError(RuntimeError):
    """Raised when a required environment variable is not set."""


def _find_env_file(start: Path) -> Path | None:
    current = start
    while current != current.parent:
        candidate = current / ".env"
        if candidate.exists():
            return candidate
        current = current.parent
    return None


def ensure_env_loaded(env_path: Path | None = None) -> None:
    """
    Load the .env file exactly once per process.

    Args:
        env_path: Explicit .env path. When omitted, the working directory and
            then the package's parent directories are searched.

    Side Effects:
        - Populates os.environ from the .env file (existing values win)
        - Sets module-level flag to prevent double-loading
    """
    global _ENV_LOADED
    if _ENV_LOADED:
        return

    if env_path is None:
        env_path = _find_env_file(Path.cwd()) or _find_env_file(Path(__file__).parent)

    if env_path and env_path.exists():
        load_dotenv(env_path)
        logger.debug("Loaded environment from %s", env_path)
    else:
        load_dotenv()
    _ENV_LOADED = True


def get_required_env(key: str, error_msg: str | None = None) -> str:
    """
    Return a required environment variable.

    Raises:
        MissingEnvironmentError: If the variable is unset or empty
    """
    ensure_env_loaded()
    value = os.getenv(key)
    if not value:
        raise MissingEnvironmentError(error_msg or f"{key} not found in environment (.env or shell)")
    return value


def get_optional_env(key: str, default: str = "") -> str:
    ensure_env_loaded()
    return os.getenv(key, default)


def is_production() -> bool:
    return os.getenv("LIFEOS_ENV", "development") == "production"
