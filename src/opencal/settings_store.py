from __future__ import annotations
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol
import json

from .config import AppConfig, source_from_dict
from .i18n import DEFAULT_LANGUAGE, SUPPORTED_LANGUAGES
from .models import CalendarSource

SETTINGS_PATH_DEFAULT = str(Path.home() / ".local" / "share" / "opencal" / "settings.json")

# Shipped with no defaults; users add their own feeds.
DEFAULT_SOURCES: List[CalendarSource] = []

@dataclass
class Settings:
    sources: List[CalendarSource] = field(default_factory=list)
    relay_url: str = ""
    language: str = DEFAULT_LANGUAGE
    has_saved_sources: bool = False   # False until a sources list was ever saved

def _normalize_language(value: Any) -> str:
    lang = str(value or "").lower()
    return lang if lang in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE

def load_settings(path: str) -> Settings:
    p = Path(path)
    if not p.exists():
        return Settings()
    data: Dict[str, Any] = json.loads(p.read_text(encoding="utf-8"))
    raw_sources = data.get("sources")
    return Settings(
        sources=[source_from_dict(s) for s in raw_sources or []],
        relay_url=str(data.get("relay_url", "")),
        language=_normalize_language(data.get("language")),
        has_saved_sources=raw_sources is not None,
    )

def save_settings(path: str, settings: Settings) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "sources": [asdict(s) for s in settings.sources],
        "relay_url": settings.relay_url,
        "language": settings.language,
    }
    p.write_text(json.dumps(payload, indent=2), encoding="utf-8")


class SourceProvider(Protocol):
    def sources(self) -> List[CalendarSource]: ...


class LayeredSourceProvider:
    """Config-file sources, else saved settings, else the shipped defaults."""

    def __init__(self, config: Optional[AppConfig], settings: Settings) -> None:
        self.config = config
        self.settings = settings

    def sources(self) -> List[CalendarSource]:
        if self.config is not None and self.config.sources:
            return list(self.config.sources)
        if self.settings.has_saved_sources:
            return list(self.settings.sources)
        return list(DEFAULT_SOURCES)

    def relay_url(self) -> str:
        if self.config is not None and self.config.relay_url:
            return self.config.relay_url
        return self.settings.relay_url
