# storefront/config.py
import os
from datetime import timedelta
from typing import List, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel


class ConfigError(RuntimeError):
    """Raised when a required setting is missing at start-up."""


def _flag(value: Optional[str], default: bool = False) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _database_url(env: Mapping[str, str]) -> Optional[str]:
    if env.get("DATABASE_URL"):
        return env["DATABASE_URL"]
    # Собираем строку подключения из отдельных переменных, как в сервисах каталога/корзины
    if env.get("STOREFRONT_DB_HOST"):
        return (
            f"postgresql+asyncpg://{env.get('STOREFRONT_DB_USER')}:{env.get('STOREFRONT_DB_PASSWORD')}"
            f"@{env.get('STOREFRONT_DB_HOST')}:{env.get('STOREFRONT_DB_PORT', '5432')}/{env.get('STOREFRONT_DB_NAME')}"
        )
    return None


class Settings(BaseModel):
    database_url: str
    session_secret: str
    cookie_name: str = "yr.sid"
    cookie_secure: bool = False
    session_ttl: timedelta = timedelta(days=7)
    host: str = "0.0.0.0"
    port: int = 5000
    cors_origins: List[str] = ["*"]
    static_dir: Optional[str] = "public"
    sql_echo: bool = False
    environment: str = "development"
    log_level: Optional[str] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from the process environment (and a ``.env`` file, if any)."""
        if env is None:
            load_dotenv()
            env = os.environ

        database_url = _database_url(env)
        if not database_url:
            raise ConfigError("Please set DATABASE_URL in .env")
        if not env.get("SESSION_SECRET"):
            raise ConfigError("Please set SESSION_SECRET in environment variables")

        origins = [o.strip() for o in env.get("CORS_ORIGINS", "*").split(",") if o.strip()]

        return cls(
            database_url=database_url,
            session_secret=env["SESSION_SECRET"],
            cookie_name=env.get("COOKIE_NAME", "yr.sid"),
            cookie_secure=_flag(env.get("COOKIE_SECURE")),
            session_ttl=timedelta(days=int(env.get("SESSION_TTL_DAYS", "7"))),
            host=env.get("HOST", "0.0.0.0"),
            port=int(env.get("PORT", "5000")),
            cors_origins=origins or ["*"],
            static_dir=env.get("STATIC_DIR", "public") or None,
            sql_echo=_flag(env.get("SQL_ECHO")),
            environment=env.get("ENVIRONMENT", "development").lower(),
            log_level=env.get("LOG_LEVEL") or None,
        )
