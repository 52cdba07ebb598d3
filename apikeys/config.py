"""
Configuration for the API key service.

All process-wide settings (signing secret, key TTL, inactivity window,
database connection) live on one ServiceConfig object which is handed to the
components that need it. Values come from the environment (.env is loaded),
keyword arguments override them.
"""

import os
from typing import List, Optional

import dotenv
from loguru import logger

dotenv.load_dotenv()

DEFAULT_KEY_PREFIX = "sk-itumy-v1-"
DEFAULT_DATABASE_URL = "sqlite:///./api_keys.db"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _int_setting(value: Optional[int], name: str, default: int) -> int:
    """Explicit value if given (even 0), otherwise the environment."""
    return value if value is not None else _env_int(name, default)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class ServiceConfig:
    """Settings shared by the auth manager, key service and database manager"""

    jwt_algorithm = "HS256"
    min_password_length = 6

    def __init__(
        self,
        jwt_secret: Optional[str] = None,
        session_ttl_hours: Optional[int] = None,
        key_ttl_days: Optional[int] = None,
        inactivity_days: Optional[int] = None,
        key_prefix: Optional[str] = None,
        database_url: Optional[str] = None,
        pool_size: Optional[int] = None,
        max_overflow: Optional[int] = None,
        pool_recycle: Optional[int] = None,
        pool_timeout: Optional[int] = None,
        echo: Optional[bool] = None,
        bcrypt_rounds: Optional[int] = None,
        log_level: Optional[str] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        cors_origins: Optional[List[str]] = None,
    ):
        self.jwt_secret = jwt_secret or os.getenv("JWT_SECRET")
        if not self.jwt_secret:
            raise ValueError("JWT_SECRET environment variable not set. Cannot initialize auth system.")
        if len(self.jwt_secret) < 32:
            logger.warning("JWT_SECRET is less than 32 bytes - use a stronger secret!")

        self.session_ttl_hours = _int_setting(session_ttl_hours, "SESSION_TTL_HOURS", 8)
        self.key_ttl_days = _int_setting(key_ttl_days, "API_KEY_TTL_DAYS", 30)
        # Independent of the key TTL even though both default to 30
        self.inactivity_days = _int_setting(inactivity_days, "INACTIVITY_DAYS", 30)
        self.key_prefix = key_prefix or os.getenv("API_KEY_PREFIX", DEFAULT_KEY_PREFIX)

        for name in ("session_ttl_hours", "key_ttl_days", "inactivity_days"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

        # Database (same variables the memory store used)
        self.database_url = (
            database_url
            or os.getenv("DATABASE_URL")
            or os.getenv("AZURE_SQL_CONNECTION_STRING")
            or DEFAULT_DATABASE_URL
        )
        self.pool_size = _int_setting(pool_size, "DB_POOL_SIZE", 10)
        self.max_overflow = _int_setting(max_overflow, "DB_MAX_OVERFLOW", 20)
        self.pool_recycle = _int_setting(pool_recycle, "DB_POOL_RECYCLE", 1500)
        self.pool_timeout = _int_setting(pool_timeout, "DB_POOL_TIMEOUT", 30)
        self.echo = echo if echo is not None else _env_bool("DB_ECHO", False)

        self.bcrypt_rounds = _int_setting(bcrypt_rounds, "BCRYPT_ROUNDS", 12)
        self.log_level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()

        # HTTP
        self.host = host or os.getenv("HOST", "0.0.0.0")
        self.port = _int_setting(port, "PORT", 3000)
        if cors_origins is None:
            raw = os.getenv("CORS_ORIGINS", "http://localhost:3000")
            cors_origins = [o.strip() for o in raw.split(",") if o.strip()]
        self.cors_origins = cors_origins

        logger.debug(
            f"[CONFIG] key_ttl_days={self.key_ttl_days}, inactivity_days={self.inactivity_days}, "
            f"session_ttl_hours={self.session_ttl_hours}"
        )


_config: Optional[ServiceConfig] = None


def get_config() -> ServiceConfig:
    """Get the process-wide config, built from the environment on first use."""
    global _config
    if _config is None:
        _config = ServiceConfig()
    return _config
