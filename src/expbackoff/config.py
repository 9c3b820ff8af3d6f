"""XDG config loading/saving for backoff settings."""

from __future__ import annotations

import logging as py_logging
import math
import os
import sys
from contextlib import suppress
from datetime import timedelta
from pathlib import Path
from typing import Literal, TextIO, cast

from pydantic import BaseModel, ConfigDict, Field, field_validator

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

from expbackoff.backoff import (
    DEFAULT_GROWTH_FACTOR,
    DEFAULT_INITIAL_WAIT_PERIOD,
    DEFAULT_MAX_RETRIES,
    MAX_INITIAL_WAIT_PERIOD,
    MIN_INITIAL_WAIT_PERIOD,
    ExponentialBackoff,
    coerce_wait_period,
)
from expbackoff.errors import InvalidBackoffConfigError
from expbackoff.logging import configure_logging, default_log_path, normalize_level

logger = py_logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("~/.config/expbackoff/config.toml").expanduser()
DEFAULT_INITIAL_WAIT_MS = DEFAULT_INITIAL_WAIT_PERIOD / timedelta(milliseconds=1)
MIN_INITIAL_WAIT_MS = MIN_INITIAL_WAIT_PERIOD / timedelta(milliseconds=1)
MAX_INITIAL_WAIT_MS = MAX_INITIAL_WAIT_PERIOD / timedelta(milliseconds=1)
DEFAULT_LOG_LEVEL: Literal["DEBUG", "INFO", "WARN", "ERROR"] = "INFO"
CONFIG_TABLE = "backoff"

MAX_RETRIES_ENV = "EXPBACKOFF_MAX_RETRIES"
INITIAL_WAIT_MS_ENV = "EXPBACKOFF_INITIAL_WAIT_MS"
GROWTH_FACTOR_ENV = "EXPBACKOFF_GROWTH_FACTOR"

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARN", "ERROR"}


class BackoffSettings(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    initial_wait_ms: float = Field(
        default=DEFAULT_INITIAL_WAIT_MS, ge=MIN_INITIAL_WAIT_MS, le=MAX_INITIAL_WAIT_MS
    )
    growth_factor: float = Field(default=DEFAULT_GROWTH_FACTOR, ge=1)
    log_level: Literal["DEBUG", "INFO", "WARN", "ERROR"] = DEFAULT_LOG_LEVEL

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            return normalize_level(value)
        return value

    @field_validator("initial_wait_ms", "growth_factor")
    @classmethod
    def _validate_finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError(f"Expected a finite number, got {value!r}")
        return value

    @field_validator("initial_wait_ms")
    @classmethod
    def _validate_wait_range(cls, value: float) -> float:
        coerce_wait_period(value / 1000)
        return value

    def to_policy(self) -> ExponentialBackoff:
        return ExponentialBackoff.from_settings(self)


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def _toml_scalar(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    raise TypeError(f"Unsupported TOML scalar type: {type(value)!r}")


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _valid_max_retries(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _valid_wait_ms(value: object) -> bool:
    if not _is_number(value):
        return False
    try:
        coerce_wait_period(cast(float, value) / 1000)
    except InvalidBackoffConfigError:
        return False
    return True


def _valid_growth_factor(value: object) -> bool:
    return _is_number(value) and math.isfinite(cast(float, value)) and cast(float, value) >= 1


def _sanitize(raw: dict[str, object]) -> BackoffSettings:
    settings = BackoffSettings()

    max_retries = raw.get("max_retries", settings.max_retries)
    if _valid_max_retries(max_retries):
        settings.max_retries = cast(int, max_retries)
    else:
        logger.warning("Ignoring invalid max_retries=%r", max_retries)

    initial_wait_ms = raw.get("initial_wait_ms", settings.initial_wait_ms)
    if _valid_wait_ms(initial_wait_ms):
        settings.initial_wait_ms = float(cast(float, initial_wait_ms))
    else:
        logger.warning("Ignoring invalid initial_wait_ms=%r", initial_wait_ms)

    growth_factor = raw.get("growth_factor", settings.growth_factor)
    if _valid_growth_factor(growth_factor):
        settings.growth_factor = float(cast(float, growth_factor))
    else:
        logger.warning("Ignoring invalid growth_factor=%r", growth_factor)

    log_level = raw.get("log_level", settings.log_level)
    if isinstance(log_level, str) and normalize_level(log_level) in _VALID_LOG_LEVELS:
        settings.log_level = cast(
            Literal["DEBUG", "INFO", "WARN", "ERROR"], normalize_level(log_level)
        )
    else:
        logger.warning("Ignoring invalid log_level=%r", log_level)

    return settings


def _parse_env_number(name: str, parse: type[int] | type[float]) -> int | float | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return parse(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", name, raw)
        return None


def _apply_env_overrides(settings: BackoffSettings) -> BackoffSettings:
    max_retries = _parse_env_number(MAX_RETRIES_ENV, int)
    if max_retries is not None:
        if _valid_max_retries(max_retries):
            settings.max_retries = cast(int, max_retries)
        else:
            logger.warning("Ignoring invalid %s=%r", MAX_RETRIES_ENV, max_retries)

    initial_wait_ms = _parse_env_number(INITIAL_WAIT_MS_ENV, float)
    if initial_wait_ms is not None:
        if _valid_wait_ms(initial_wait_ms):
            settings.initial_wait_ms = float(initial_wait_ms)
        else:
            logger.warning("Ignoring invalid %s=%r", INITIAL_WAIT_MS_ENV, initial_wait_ms)

    growth_factor = _parse_env_number(GROWTH_FACTOR_ENV, float)
    if growth_factor is not None:
        if _valid_growth_factor(growth_factor):
            settings.growth_factor = float(growth_factor)
        else:
            logger.warning("Ignoring invalid %s=%r", GROWTH_FACTOR_ENV, growth_factor)

    return settings


def _read_table(resolved: Path) -> dict[str, object] | None:
    if not resolved.exists():
        return None
    try:
        with resolved.open("rb") as handle:
            raw = tomllib.load(handle)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Unreadable backoff config path=%s error=%s", resolved, exc)
        return None
    table = raw.get(CONFIG_TABLE, raw)
    if not isinstance(table, dict):
        logger.warning("Backoff config table is not a table path=%s", resolved)
        return None
    return cast(dict[str, object], table)


def load_settings(path: str | Path | None = None) -> BackoffSettings:
    table = _read_table(get_config_path(path))
    settings = BackoffSettings() if table is None else _sanitize(table)
    return _apply_env_overrides(settings)


def save_settings(settings: BackoffSettings, path: str | Path | None = None) -> Path:
    resolved = get_config_path(path)
    resolved.parent.mkdir(parents=True, exist_ok=True)

    lines = [
        f"[{CONFIG_TABLE}]",
        f"max_retries = {_toml_scalar(settings.max_retries)}",
        f"initial_wait_ms = {_toml_scalar(float(settings.initial_wait_ms))}",
        f"growth_factor = {_toml_scalar(float(settings.growth_factor))}",
        f"log_level = {_toml_scalar(settings.log_level)}",
    ]

    resolved.write_text("\n".join(lines) + "\n", encoding="utf-8")
    with suppress(OSError):
        resolved.chmod(0o600)
    return resolved


def policy_from_config(
    path: str | Path | None = None, *, apply_logging: bool = False
) -> ExponentialBackoff:
    settings = load_settings(path)
    if apply_logging:
        configure_logging_from_settings(settings)
    return settings.to_policy()


def configure_logging_from_settings(
    settings: BackoffSettings,
    stream: TextIO | None = None,
    *,
    log_file: str | Path | None = None,
) -> py_logging.Logger:
    """Apply ``settings.log_level``; the DEBUG file log defaults to ``default_log_path()``."""
    return configure_logging(
        settings.log_level,
        stream,
        log_file=default_log_path() if log_file is None else log_file,
    )
