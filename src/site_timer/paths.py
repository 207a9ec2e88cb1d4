"""Where the site timer keeps its database."""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import user_data_path

DB_ENV_VAR = "SITE_TIMER_DB"
DB_FILENAME = "site_time.sqlite3"


def get_data_dir() -> Path:
    """Per-user data directory, created on first use."""
    path = user_data_path("SiteTimer", appauthor=False, roaming=True, ensure_exists=True)
    return Path(path)


def get_db_path() -> Path:
    """Database location; ``$SITE_TIMER_DB`` wins over the data directory."""
    override = os.environ.get(DB_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return get_data_dir() / DB_FILENAME
