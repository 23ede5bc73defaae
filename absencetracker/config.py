"""
Runtime configuration.

Settings come from environment variables so that the CLI, the interactive
mode and tests can point the tracker at different data directories:

    ABSENCETRACKER_HOME           data directory (default: ~/.absencetracker)
    ABSENCETRACKER_LOG_LEVEL      logging level name (default: WARNING)
    ABSENCETRACKER_TIMETABLE_URL  default URL for `absencetracker import`
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional


def _default_data_dir() -> Path:
    """
    Return the default data directory inside the user's home.

    Using a function instead of a constant makes testing easier,
    because tests can override HOME or pass their own directory.
    """
    return Path.home() / ".absencetracker"


@dataclass
class Settings:
    data_dir: Path
    log_level: int = logging.WARNING
    timetable_url: Optional[str] = None


def _parse_level(name: str) -> int:
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else logging.WARNING


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if environ is None else environ

    home = env.get("ABSENCETRACKER_HOME", "").strip()
    data_dir = Path(home).expanduser() if home else _default_data_dir()

    url = env.get("ABSENCETRACKER_TIMETABLE_URL", "").strip() or None

    return Settings(
        data_dir=data_dir,
        log_level=_parse_level(env.get("ABSENCETRACKER_LOG_LEVEL", "WARNING")),
        timetable_url=url,
    )


def configure_logging(level: int) -> None:
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
