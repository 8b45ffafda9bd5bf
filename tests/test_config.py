from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from blamels.config import (
    ServerSettings,
    apply_initialization_options,
    load_config,
    load_settings,
    merge_payload,
    server_defaults,
)


def test_missing_config_yields_defaults(tmp_path: Path) -> None:
    assert load_config(root=tmp_path) == {}
    assert load_settings(root=tmp_path) == ServerSettings()


def test_invalid_toml_is_ignored(tmp_path: Path) -> None:
    (tmp_path / "blamels.toml").write_text("[server\nlog_level = ")

    assert server_defaults(root=tmp_path) == {}


def test_server_section_is_loaded(tmp_path: Path) -> None:
    (tmp_path / "blamels.toml").write_text(
        '[server]\nlog_level = "debug"\nlog_format = "json"\nuncommitted_text = "Not yet"\n'
    )

    settings = load_settings(root=tmp_path)

    assert settings.log_level == "DEBUG"
    assert settings.log_format == "json"
    assert settings.uncommitted_text == "Not yet"


def test_explicit_config_path_and_overrides(tmp_path: Path) -> None:
    config = tmp_path / "custom.toml"
    config.write_text('[server]\nlog_level = "ERROR"\nrelative_window_seconds = 60\n')

    settings = load_settings(config_path=config, overrides={"log_level": "warning", "log_format": None})

    assert settings.log_level == "WARNING"
    assert settings.log_format == "console"
    assert settings.relative_window_seconds == 60


def test_invalid_values_raise(tmp_path: Path) -> None:
    (tmp_path / "blamels.toml").write_text('[server]\nlog_level = "LOUD"\n')

    with pytest.raises(ValidationError):
        load_settings(root=tmp_path)


def test_merge_payload_skips_none() -> None:
    assert merge_payload({"a": None, "b": 2}, {"a": 1}) == {"a": 1, "b": 2}


def test_initialization_options_override_settings() -> None:
    settings, error = apply_initialization_options(
        ServerSettings(), {"uncommittedText": "ignored", "uncommitted_text": "Pending"}
    )

    assert error is None
    assert settings.uncommitted_text == "Pending"


def test_invalid_initialization_options_keep_settings() -> None:
    original = ServerSettings(uncommitted_text="Pending")

    settings, error = apply_initialization_options(original, {"relative_window_seconds": -5})

    assert settings is original
    assert isinstance(error, ValidationError)


def test_non_mapping_initialization_options_are_ignored() -> None:
    original = ServerSettings()

    assert apply_initialization_options(original, None) == (original, None)
    assert apply_initialization_options(original, ["x"]) == (original, None)
