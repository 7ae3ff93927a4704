"""
Environment-driven configuration.

Values come from the process environment, optionally seeded from a ``.env``
file. Variables already set in the environment win over the file.

Database:
    SUPABASE_DB_URL, or SUPABASE_DB_HOST / SUPABASE_DB_PORT / SUPABASE_DB_NAME /
    SUPABASE_DB_USER / SUPABASE_DB_PASSWORD
    PICKBOM_DB_MIN_CONN, PICKBOM_DB_MAX_CONN (connection pool bounds)

Parsing and logging:
    PICKBOM_DELIMITERS (cell delimiters for text BOMs, default ",;")
    PICKBOM_LOG_LEVEL (default INFO)
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .schema import DEFAULT_DELIMITERS

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    db_url: Optional[str] = None
    db_min_connections: int = 1
    db_max_connections: int = 10
    log_level: str = "INFO"
    delimiters: str = DEFAULT_DELIMITERS

    @property
    def has_database(self) -> bool:
        return bool(self.db_url)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def database_url_from_env() -> Optional[str]:
    """SUPABASE_DB_URL, or a URL built from the individual SUPABASE_DB_* variables.

    Returns None when neither is fully configured.
    """
    url = os.getenv("SUPABASE_DB_URL")
    if url:
        return url

    host = os.getenv("SUPABASE_DB_HOST")
    database = os.getenv("SUPABASE_DB_NAME")
    user = os.getenv("SUPABASE_DB_USER")
    password = os.getenv("SUPABASE_DB_PASSWORD")
    if not all([host, database, user, password]):
        return None

    port = _int_env("SUPABASE_DB_PORT", 5432)
    return f"postgresql://{user}:{password}@{host}:{port}/{database}"


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Load settings from the environment.

    Args:
        env_file: Path to a .env file. When omitted, a .env file is searched
                  for from the current working directory upwards.

    Returns:
        Settings

    Raises:
        ValueError: If a numeric variable is not an integer, or the pool
                    bounds are inconsistent
    """
    if env_file:
        loaded = load_dotenv(env_file, override=False)
    else:
        loaded = load_dotenv(override=False)
    if loaded:
        logger.debug(f"Loaded environment from {env_file or '.env'}")

    settings = Settings(
        db_url=database_url_from_env(),
        db_min_connections=_int_env("PICKBOM_DB_MIN_CONN", 1),
        db_max_connections=_int_env("PICKBOM_DB_MAX_CONN", 10),
        log_level=(os.getenv("PICKBOM_LOG_LEVEL") or "INFO").upper(),
        delimiters=os.getenv("PICKBOM_DELIMITERS") or DEFAULT_DELIMITERS,
    )

    if settings.db_min_connections < 1 or settings.db_max_connections < settings.db_min_connections:
        raise ValueError(
            f"Invalid connection pool bounds: min={settings.db_min_connections}, "
            f"max={settings.db_max_connections}"
        )

    return settings
