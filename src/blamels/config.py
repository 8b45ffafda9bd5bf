from __future__ import annotations

from datetime import date, datetime, time
from pathlib import Path
from typing import Literal, TypeAlias
import tomllib

from pydantic import BaseModel, Field, ValidationError, field_validator

from blamels.date_time import WEEK_IN_SECONDS

DEFAULT_CONFIG_NAME = "blamels.toml"

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class ServerSettings(BaseModel):
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    uncommitted_text: str = "Uncommitted changes"
    relative_window_seconds: int = Field(default=WEEK_IN_SECONDS, gt=0)

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"unknown log level {value!r}")
        return level


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def server_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    data = load_config(root=root, config_path=config_path)
    section = data.get("server", {})
    return section if isinstance(section, dict) else {}


def merge_payload(payload: TomlTable, defaults: TomlTable) -> TomlTable:
    merged = dict(defaults)
    for key, value in payload.items():
        if value is None:
            continue
        merged[key] = value
    return merged


def load_settings(
    root: Path | None = None,
    config_path: Path | None = None,
    overrides: TomlTable | None = None,
) -> ServerSettings:
    """Settings from the `[server]` table with `overrides` layered on top.

    Raises `pydantic.ValidationError` when the merged table is invalid.
    """
    defaults = server_defaults(root, config_path)
    return ServerSettings.model_validate(merge_payload(overrides or {}, defaults))


def apply_initialization_options(
    settings: ServerSettings, options: object
) -> tuple[ServerSettings, ValidationError | None]:
    """Layer client `initializationOptions` over `settings`.

    Invalid options leave `settings` unchanged; the error is returned so the
    caller can log it.
    """
    if not isinstance(options, dict):
        return settings, None
    try:
        merged = ServerSettings.model_validate(merge_payload(options, settings.model_dump()))
    except ValidationError as exc:
        return settings, exc
    return merged, None
