"""Tests for the settings persistence layer."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from omnis.services.settings import Settings, SettingsStore, remember_recent_file


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")

    assert store.load() == Settings()


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    original = Settings(
        page_size=120,
        assistant_mode="local",
        device_pixel_ratio=2.0,
        render_load_timeout=5.0,
        recent_files=["/tmp/a.txt", "/tmp/b.pdf"],
        debug_logging=True,
    )

    SettingsStore(path).save(original)
    reloaded = SettingsStore(path).load()

    assert reloaded == original
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["version"] == 1
    assert not path.with_suffix(".tmp").exists()


def test_invalid_json_falls_back_to_defaults(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")

    assert SettingsStore(path).load() == Settings()
    assert "not valid JSON" in caplog.text


def test_non_object_payload_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")

    assert SettingsStore(path).load() == Settings()


def test_unknown_keys_are_dropped(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"page_size": 42, "theme": "dark"}), encoding="utf-8")

    assert SettingsStore(path).load().page_size == 42


def test_env_overrides_take_precedence(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    SettingsStore(path).save(Settings(page_size=100, assistant_mode="cloud"))
    monkeypatch.setenv("OMNIS_PAGE_SIZE", "250")
    monkeypatch.setenv("OMNIS_ASSISTANT_MODE", " LOCAL ")
    monkeypatch.setenv("OMNIS_DEBUG_LOGGING", "yes")
    monkeypatch.setenv("OMNIS_DEVICE_PIXEL_RATIO", "1.5")

    settings = SettingsStore(path).load()

    assert settings.page_size == 250
    assert settings.assistant_mode == "local"
    assert settings.debug_logging is True
    assert settings.device_pixel_ratio == 1.5


def test_env_overrides_beat_cli_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("OMNIS_PAGE_SIZE", "300")

    settings = SettingsStore(tmp_path / "settings.json").load(overrides={"page_size": 50, "debug_logging": True})

    assert settings.page_size == 300
    assert settings.debug_logging is True


def test_invalid_env_values_are_ignored(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    monkeypatch.setenv("OMNIS_PAGE_SIZE", "lots")
    monkeypatch.setenv("OMNIS_RENDER_LOAD_TIMEOUT", "soon")

    settings = SettingsStore(tmp_path / "settings.json").load()

    assert settings.page_size == Settings().page_size
    assert settings.render_load_timeout is None
    assert "not a valid integer" in caplog.text
    assert "not a valid float" in caplog.text


def test_cli_overrides_ignore_unknown_keys_and_none(tmp_path: Path) -> None:
    settings = SettingsStore(tmp_path / "settings.json").load(
        overrides={"page_size": None, "nonsense": 1, "render_load_timeout": None}
    )

    assert settings.page_size == Settings().page_size
    assert settings.render_load_timeout is None


@pytest.mark.parametrize(
    ("payload", "field_name", "expected"),
    [
        ({"page_size": 0}, "page_size", 500),
        ({"page_size": "ten"}, "page_size", 500),
        ({"assistant_mode": "remote"}, "assistant_mode", "cloud"),
        ({"assistant_mode": "Local"}, "assistant_mode", "local"),
        ({"device_pixel_ratio": -1}, "device_pixel_ratio", 1.0),
        ({"render_load_timeout": 0}, "render_load_timeout", None),
        ({"render_load_timeout": 2.5}, "render_load_timeout", 2.5),
    ],
)
def test_invalid_values_are_sanitized(tmp_path: Path, payload: dict, field_name: str, expected: object) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps(payload), encoding="utf-8")

    assert getattr(SettingsStore(path).load(), field_name) == expected


def test_remember_recent_file_moves_entry_to_front() -> None:
    settings = Settings(recent_files=["a", "b", "c"], max_recent_files=3)

    updated = remember_recent_file(settings, "c")
    assert updated.recent_files == ["c", "a", "b"]

    updated = remember_recent_file(updated, Path("d"))
    assert updated.recent_files == ["d", "c", "a"]
    assert settings.recent_files == ["a", "b", "c"]
