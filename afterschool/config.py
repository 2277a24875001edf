"""
Runtime configuration, read from the process environment.

``DATABASE_URL`` has no default: the service refuses to start without it,
so no connection string (and no credentials) ever live in the code base.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .errors import ConfigError

SEATS_BACKENDS = ("sql", "redis")

_TRUE = {"1", "true", "yes", "on"}


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass
class Settings:
    database_url: str
    seats_backend: str = "sql"
    redis_url: str = "redis://127.0.0.1:6379"
    reset_on_start: bool = False
    storage_timeout: float = 5.0
    db_pool_size: int = 10
    db_max_overflow: int = 10
    db_pool_timeout: int = 30
    # defaults to the pool size (postgres) or 10 (sqlite)
    db_gate_limit: Optional[int] = None
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    static_dir: str = "public"
    images_dir: str = "public/images"
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def __post_init__(self):
        if not self.database_url:
            raise ConfigError(
                "DATABASE_URL is not set; supply the database connection "
                "string through the environment"
            )
        if self.seats_backend not in SEATS_BACKENDS:
            raise ConfigError(
                f"SEATS_BACKEND must be one of {', '.join(SEATS_BACKENDS)}, "
                f"got {self.seats_backend!r}"
            )

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        gate = env.get("DB_GATE_LIMIT")
        origins = env.get("CORS_ORIGINS", "*")
        return cls(
            database_url=env.get("DATABASE_URL", "").strip(),
            seats_backend=env.get("SEATS_BACKEND", "sql").strip().lower(),
            redis_url=env.get("REDIS_URL", "redis://127.0.0.1:6379"),
            reset_on_start=env.get("RESET_ON_START", "").lower() in _TRUE,
            storage_timeout=_float(env, "STORAGE_TIMEOUT", 5.0),
            db_pool_size=_int(env, "DB_POOL_SIZE", 10),
            db_max_overflow=_int(env, "DB_MAX_OVERFLOW", 10),
            db_pool_timeout=_int(env, "DB_POOL_TIMEOUT", 30),
            db_gate_limit=_int(env, "DB_GATE_LIMIT", 0) if gate else None,
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            static_dir=env.get("STATIC_DIR", "public"),
            images_dir=env.get("IMAGES_DIR", "public/images"),
            log_level=env.get("LOG_LEVEL", "INFO"),
            log_file=env.get("LOG_FILE") or None,
        )
