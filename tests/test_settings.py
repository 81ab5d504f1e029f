from __future__ import annotations

import json
from pathlib import Path

import pytest

from opencal.config import AppConfig, DisplayConfig, RelayConfig
from opencal.models import CalendarSource
from opencal.settings import SOURCE_COLORS, SettingsService, parse_payload
from opencal.settings_cli import main as settings_main
from opencal.settings_store import LayeredSourceProvider, Settings, load_settings, save_settings


def _config(sources=None) -> AppConfig:
    return AppConfig(
        timezone="UTC",
        language="en",
        relay_url="",
        fetch_timeout_seconds=20,
        max_workers=4,
        display=DisplayConfig(width=800, height=600, max_events_per_day=4, upcoming_days=31),
        relay=RelayConfig(host="127.0.0.1", port=8765),
        sources=sources or [],
    )


def test_add_source_generates_unique_ids_and_persists(tmp_path: Path):
    path = tmp_path / "settings.json"
    service = SettingsService(path, color_picker=lambda colors: colors[0])

    first = service.add_source("School Holidays", "https://example.com/a.ics")
    second = service.add_source("School holidays!", "https://example.com/b.ics")

    assert first.id == "school_holidays"
    assert second.id == "school_holidays_2"
    assert first.color == SOURCE_COLORS[0]

    saved = json.loads(path.read_text(encoding="utf-8"))
    assert [s["id"] for s in saved["sources"]] == ["school_holidays", "school_holidays_2"]


def test_add_source_validates_input(tmp_path: Path):
    service = SettingsService(tmp_path / "settings.json")

    with pytest.raises(ValueError, match="name is required"):
        service.add_source("  ", "https://example.com/a.ics")
    with pytest.raises(ValueError, match="Unsupported URL scheme"):
        service.add_source("Local", "file:///etc/passwd")


def test_enable_disable_and_remove(tmp_path: Path):
    service = SettingsService(tmp_path / "settings.json")
    source = service.add_source("Work", "https://example.com/work.ics", color="#000000")

    assert service.set_enabled(source.id, False).enabled is False
    assert load_settings(service.path).sources[0].enabled is False

    service.remove_source(source.id)
    assert service.get_status()["sources"] == []

    with pytest.raises(ValueError, match="Unknown calendar source"):
        service.remove_source("work")


def test_language_must_be_supported(tmp_path: Path):
    service = SettingsService(tmp_path / "settings.json")

    service.set_language("FR")
    assert service.get_status()["language"] == "fr"

    with pytest.raises(ValueError, match="Unsupported language"):
        service.set_language("de")


def test_load_settings_defaults_and_unknown_language(tmp_path: Path):
    path = tmp_path / "settings.json"
    assert load_settings(str(path)) == Settings()

    path.write_text(json.dumps({"language": "klingon"}), encoding="utf-8")
    settings = load_settings(str(path))
    assert settings.language == "en"
    assert settings.has_saved_sources is False


def test_provider_prefers_config_then_saved_then_defaults(tmp_path: Path):
    path = str(tmp_path / "settings.json")
    saved = CalendarSource(id="saved", name="Saved")
    save_settings(path, Settings(sources=[saved], relay_url="http://relay/api/calendar"))
    settings = load_settings(path)

    configured = CalendarSource(id="conf", name="Configured")
    assert LayeredSourceProvider(_config([configured]), settings).sources() == [configured]
    assert LayeredSourceProvider(_config(), settings).sources() == [saved]
    assert LayeredSourceProvider(_config(), Settings()).sources() == []
    assert LayeredSourceProvider(None, settings).relay_url() == "http://relay/api/calendar"


def test_parse_payload_requires_json_object():
    assert parse_payload('{"name": "Work"}')["name"] == "Work"

    with pytest.raises(ValueError, match="must be an object"):
        parse_payload("[]")


def test_cli_add_and_status(tmp_path: Path, capsys):
    path = str(tmp_path / "settings.json")

    settings_main(["--settings", path, "add-source", "--name", "Sports", "--url", "https://example.com/s.ics", "--color", "#10b981"])
    settings_main(["--settings", path, "disable", "sports"])
    capsys.readouterr()
    settings_main(["--settings", path, "status"])

    status = json.loads(capsys.readouterr().out)
    assert status["sources"] == [
        {"id": "sports", "name": "Sports", "url": "https://example.com/s.ics", "color": "#10b981", "enabled": False}
    ]


def test_cli_reports_validation_errors(tmp_path: Path, capsys):
    with pytest.raises(SystemExit) as exc:
        settings_main(["--settings", str(tmp_path / "settings.json"), "remove-source", "ghost"])

    assert exc.value.code == 2
    assert "Unknown calendar source: ghost" in capsys.readouterr().err
