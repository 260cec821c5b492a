import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        default_timezone: str,
        session_secret: str,
        session_max_age_days: int,
        cookie_secure: bool,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.default_timezone = default_timezone
        self.session_secret = session_secret
        self.session_max_age_days = session_max_age_days
        self.cookie_secure = cookie_secure
        self.log_level = log_level

    @property
    def session_max_age_secs(self) -> int:
        return self.session_max_age_days * 24 * 3600


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("EXPENSES_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("EXPENSES_DATABASE_URL")
    if not database_url:
        default_db = _ensure_data_dir() / "expenses.db"
        database_url = f"sqlite:///{default_db}"
    default_timezone = os.getenv("EXPENSES_DEFAULT_TIMEZONE", "America/New_York")
    session_secret = os.getenv(
        "EXPENSES_SESSION_SECRET",
        "3f0c9b1e6d0a4c2f8e57b6a1d9c4e2f07a5b8c3d1e6f9a2b4c7d0e3f6a9b2c5d",
    )
    session_max_age_days = int(os.getenv("EXPENSES_SESSION_MAX_AGE_DAYS", "7"))
    cookie_secure = _env_flag("EXPENSES_COOKIE_SECURE")
    log_level = os.getenv("EXPENSES_LOG_LEVEL", "INFO").upper()
    return Settings(
        database_url=database_url,
        default_timezone=default_timezone,
        session_secret=session_secret,
        session_max_age_days=session_max_age_days,
        cookie_secure=cookie_secure,
        log_level=log_level,
    )
