"""Runtime settings read from the environment.

Values come from process environment variables, optionally seeded from a
``.env`` file via ``python-dotenv`` (never overriding variables that are
already set). ``DATABASE_URL`` wins; otherwise a PostgreSQL URL is composed
from the ``DB_*`` parts.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

from dotenv import load_dotenv

from .models import DEFAULT_CURRENCY, normalize_currency


@dataclass(frozen=True, slots=True)
class Settings:
    database_url: str
    log_level: str | None = None
    statement_timeout_ms: int | None = 5000
    default_currency: str = DEFAULT_CURRENCY
    tx_retries: int = 0


def _int_env(env: Mapping[str, str], name: str, default: int | None) -> int | None:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got {value}")
    return value


def _compose_postgres_url(env: Mapping[str, str]) -> str:
    user = quote(env.get("DB_USER", "howallet"), safe="")
    password = quote(env.get("DB_PASSWORD", ""), safe="")
    host = env.get("DB_HOST", "localhost")
    port = env.get("DB_PORT", "5432")
    name = env.get("DB_NAME", "howallet")
    sslmode = env.get("DB_SSLMODE", "disable")
    auth = f"{user}:{password}" if password else user
    return f"postgresql+psycopg://{auth}@{host}:{port}/{name}?sslmode={sslmode}"


def load_settings(
    env: Mapping[str, str] | None = None,
    *,
    dotenv_path: Path | None = None,
) -> Settings:
    """Build :class:`Settings` from ``env`` (defaults to ``os.environ``).

    When ``env`` is omitted, a ``.env`` file (``dotenv_path`` or the one in the
    current working directory) is loaded first without overriding existing
    variables.
    """

    if env is None:
        load_dotenv(dotenv_path=dotenv_path or Path.cwd() / ".env", override=False)
        env = os.environ

    database_url = env.get("DATABASE_URL") or _compose_postgres_url(env)
    timeout = _int_env(env, "HOWALLET_STATEMENT_TIMEOUT_MS", 5000)
    retries = _int_env(env, "HOWALLET_TX_RETRIES", 0)
    currency = normalize_currency(env.get("HOWALLET_DEFAULT_CURRENCY") or DEFAULT_CURRENCY)

    return Settings(
        database_url=database_url,
        log_level=env.get("HOWALLET_LOG_LEVEL") or None,
        statement_timeout_ms=timeout or None,
        default_currency=currency,
        tx_retries=retries or 0,
    )


__all__ = ["Settings", "load_settings"]
