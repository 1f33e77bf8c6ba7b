import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    sql_echo: bool

    admin_email: str
    activity_page_size: int
    recent_activity_limit: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///opsportal.db"),
        sql_echo=_getenv("SQL_ECHO") == "1",
        admin_email=_getenv("ADMIN_EMAIL", "admin@opsportal.local").lower(),
        activity_page_size=_getenv_int("ACTIVITY_PAGE_SIZE", 50),
        recent_activity_limit=_getenv_int("RECENT_ACTIVITY_LIMIT", 20),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "SQL_ECHO": s.sql_echo,
        "ADMIN_EMAIL": s.admin_email,
        "ACTIVITY_PAGE_SIZE": s.activity_page_size,
        "RECENT_ACTIVITY_LIMIT": s.recent_activity_limit,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # forms only, no uploads
        "MAX_CONTENT_LENGTH": 2 * 1024 * 1024,
    }
