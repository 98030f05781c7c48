from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from keythock.config import AudioSettings, EngineConfig, load_config
from keythock.errors import InvalidConfigError


def test_defaults_match_documented_values() -> None:
    config = EngineConfig()
    assert config.audio.master_volume == pytest.approx(0.5)
    assert config.audio.loop_volume == pytest.approx(0.3)
    assert config.audio.key_press_volume == pytest.approx(0.6)
    assert config.audio.fade_in_seconds == pytest.approx(1.0)
    assert config.audio.fade_out_seconds == pytest.approx(0.5)
    assert config.audio.sample_rate == 44_100
    assert config.audio.key_press_url is None
    assert config.sound.storage_key == "keythock.sound_enabled"


def test_settings_reject_unknown_keys() -> None:
    with pytest.raises(ValidationError):
        AudioSettings.model_validate({"master_volume": 0.4, "nope": 1})


def test_settings_are_frozen() -> None:
    settings = AudioSettings()
    with pytest.raises(ValidationError):
        settings.master_volume = 0.9  # type: ignore[misc]


def test_from_dict_wraps_validation_errors() -> None:
    with pytest.raises(InvalidConfigError):
        EngineConfig.from_dict({"audio": {"master_volume": 2.0}})


def test_load_config_without_path_returns_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("KEYTHOCK_CONFIG", raising=False)
    assert load_config() == EngineConfig()


def test_load_config_reads_env_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    target = tmp_path / "engine.json"
    target.write_text(
        json.dumps({"audio": {"loop_volume": 0.2, "typing_loop_url": "loop.wav"}}),
        encoding="utf-8",
    )
    monkeypatch.setenv("KEYTHOCK_CONFIG", str(target))

    config = load_config()

    assert config.audio.loop_volume == pytest.approx(0.2)
    assert config.audio.typing_loop_url == "loop.wav"
    assert config.audio.master_volume == pytest.approx(0.5)


@pytest.mark.parametrize("payload", ["{not json", "[1, 2]"])
def test_load_config_rejects_bad_files(tmp_path: Path, payload: str) -> None:
    target = tmp_path / "engine.json"
    target.write_text(payload, encoding="utf-8")
    with pytest.raises(InvalidConfigError):
        load_config(target)


def test_load_config_missing_file(tmp_path: Path) -> None:
    with pytest.raises(InvalidConfigError):
        load_config(tmp_path / "absent.json")
