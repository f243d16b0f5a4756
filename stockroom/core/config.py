"""Environment-driven settings, parsed and validated once at import.

A bad value fails the process at startup with the variable name in the
message rather than surfacing later as a confusing runtime error.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_APP_ENVS = ("dev", "test", "prod")
_LOG_LEVELS = ("debug", "info", "warning", "error")
_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off", ""})

DEFAULT_CORS_ORIGIN = "http://localhost:5173"


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    cors_origins: tuple[str, ...] = (DEFAULT_CORS_ORIGIN,)

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def _raw(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def _choice(name: str, default: str, allowed: tuple[str, ...]) -> str:
    value = _raw(name, default).lower()
    if value not in allowed:
        raise ValueError(f"{name} must be {'|'.join(allowed)} (got {value!r})")
    return value


def _flag(name: str, default: str = "false") -> bool:
    value = _raw(name, default).lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ValueError(f"{name} must be true|false (got {value!r})")


def _integer(name: str, default: str) -> int:
    value = _raw(name, default)
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {value!r})") from None


def _csv(name: str, default: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in _raw(name, default).split(",") if part.strip())


def load_settings() -> Settings:
    app_env = _choice("APP_ENV", "dev", _APP_ENVS)
    cors_origins = _csv("CORS_ORIGINS", DEFAULT_CORS_ORIGIN)

    # Session cookies ride on credentialed CORS, which browsers refuse with "*"
    if app_env == "prod" and "*" in cors_origins:
        raise ValueError("CORS_ORIGINS must list explicit origins in prod (got '*')")

    return Settings(  # type: ignore[arg-type]
        app_env=app_env,
        log_level=_choice("LOG_LEVEL", "info", _LOG_LEVELS),
        log_json=_flag("LOG_JSON"),
        port=_integer("PORT", "8000"),
        database_url=_raw("DATABASE_URL") or None,
        redis_url=_raw("REDIS_URL") or None,
        cors_origins=cors_origins,
    )


SETTINGS = load_settings()
