from __future__ import annotations

import json
import random
import re
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .i18n import SUPPORTED_LANGUAGES
from .models import CalendarSource
from .settings_store import SETTINGS_PATH_DEFAULT, Settings, load_settings, save_settings

SOURCE_COLORS = [
    "#3b82f6",
    "#ef4444",
    "#10b981",
    "#f59e0b",
    "#8b5cf6",
    "#ec4899",
    "#14b8a6",
    "#64748b",
]

ColorPicker = Callable[[List[str]], str]


def _slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "_", value.strip().lower()).strip("_")
    return slug or "calendar"


def _validate_url(url: str) -> str:
    url = url.strip()
    if url and not url.lower().startswith(("http://", "https://")):
        raise ValueError(f"Unsupported URL scheme: {url}")
    return url


class SettingsService:
    """Source and preference edits backed by the settings JSON file."""

    def __init__(self, path: str | Path = SETTINGS_PATH_DEFAULT, color_picker: ColorPicker | None = None) -> None:
        self.path = str(path)
        self.color_picker = color_picker or random.choice

    def get_status(self) -> Dict[str, Any]:
        settings = load_settings(self.path)
        return {
            "language": settings.language,
            "relay_url": settings.relay_url,
            "sources": [asdict(s) for s in settings.sources],
        }

    def add_source(self, name: str, url: str, color: Optional[str] = None) -> CalendarSource:
        name = name.strip()
        if not name:
            raise ValueError("Calendar name is required.")

        settings = load_settings(self.path)
        taken = {s.id for s in settings.sources}
        base = _slugify(name)
        source_id = base
        suffix = 2
        while source_id in taken:
            source_id = f"{base}_{suffix}"
            suffix += 1

        source = CalendarSource(
            id=source_id,
            name=name,
            url=_validate_url(url),
            color=color or self.color_picker(SOURCE_COLORS),
            enabled=True,
        )
        settings.sources.append(source)
        self._save(settings)
        return source

    def remove_source(self, source_id: str) -> None:
        settings = load_settings(self.path)
        remaining = [s for s in settings.sources if s.id != source_id]
        if len(remaining) == len(settings.sources):
            raise ValueError(f"Unknown calendar source: {source_id}")
        settings.sources = remaining
        self._save(settings)

    def set_enabled(self, source_id: str, enabled: bool) -> CalendarSource:
        settings = load_settings(self.path)
        for idx, source in enumerate(settings.sources):
            if source.id == source_id:
                updated = replace(source, enabled=enabled)
                settings.sources[idx] = updated
                self._save(settings)
                return updated
        raise ValueError(f"Unknown calendar source: {source_id}")

    def set_language(self, language: str) -> None:
        language = language.strip().lower()
        if language not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported language: {language}")
        settings = load_settings(self.path)
        settings.language = language
        self._save(settings)

    def set_relay_url(self, url: str) -> None:
        settings = load_settings(self.path)
        settings.relay_url = _validate_url(url)
        self._save(settings)

    def _save(self, settings: Settings) -> None:
        save_settings(self.path, settings)


def parse_payload(payload: str) -> Dict[str, Any]:
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON payload: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("JSON payload must be an object.")
    return data
