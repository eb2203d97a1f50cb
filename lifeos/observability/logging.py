from __future__ import annotations

import logging
import os
from typing import Final

_HANDLER_ATTACHED: bool = False
_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that flood INFO with per-request lines
_NOISY_LOGGERS: Final[tuple[str, ...]] = ("httpx", "httpcore", "urllib3", "asyncio")


def _resolve_level(env_var: str = "LIFEOS_LOG_LEVEL") -> int:
    level_name = os.getenv(env_var, "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def _attach_root_handler(level: int) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level)

    third_party_level = max(level, _resolve_level("LIFEOS_THIRD_PARTY_LOG_LEVEL"), logging.WARNING)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)


def get_logger(name: str) -> logging.Logger:
    """Return a named logger; the shared stream handler is attached once per process."""
    global _HANDLER_ATTACHED

    level = _resolve_level()

    if not _HANDLER_ATTACHED:
        _attach_root_handler(level)
        _HANDLER_ATTACHED = True
    else:
        logging.getLogger().setLevel(level)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    return logger
