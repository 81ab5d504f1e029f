from __future__ import annotations
from dataclasses import dataclass, field
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional
import yaml

from .models import CalendarSource

logger = logging.getLogger(__name__)

CONFIG_PATH_DEFAULT = "/etc/opencal/config.yaml"
DEFAULT_SOURCE_COLOR = "#3b82f6"

@dataclass
class DisplayConfig:
    width: int
    height: int
    max_events_per_day: int
    upcoming_days: int

@dataclass
class RelayConfig:
    host: str
    port: int

@dataclass
class AppConfig:
    timezone: str
    language: str
    relay_url: str
    fetch_timeout_seconds: int
    max_workers: int
    display: DisplayConfig
    relay: RelayConfig
    sources: List[CalendarSource] = field(default_factory=list)

def source_from_dict(data: Mapping[str, Any]) -> CalendarSource:
    source_id = str(data.get("id", "")).strip()
    if not source_id:
        raise ValueError("Calendar source requires an 'id'.")
    return CalendarSource(
        id=source_id,
        name=str(data.get("name", source_id)),
        url=str(data.get("url", "") or ""),
        color=str(data.get("color", DEFAULT_SOURCE_COLOR)),
        enabled=bool(data.get("enabled", True)),
    )

def load_config(path: str) -> AppConfig:
    p = Path(path)
    data: Dict[str, Any] = {}
    if p.exists():
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}

    display = data.get("display", {})
    relay = data.get("relay", {})

    return AppConfig(
        timezone=str(data.get("timezone", "UTC")),
        language=str(data.get("language", "en")),
        relay_url=str(data.get("relay_url", "") or ""),
        fetch_timeout_seconds=int(data.get("fetch_timeout_seconds", 20)),
        max_workers=int(data.get("max_workers", 8)),
        display=DisplayConfig(
            width=int(display.get("width", 1600)),
            height=int(display.get("height", 1200)),
            max_events_per_day=int(display.get("max_events_per_day", 4)),
            upcoming_days=int(display.get("upcoming_days", 31)),
        ),
        relay=RelayConfig(
            host=str(relay.get("host", "127.0.0.1")),
            port=int(relay.get("port", 8765)),
        ),
        sources=[source_from_dict(s) for s in data.get("sources", []) or []],
    )

def source_env_var(source_id: str) -> str:
    return f"CALENDAR_{source_id.upper()}_URL"

def resolve_source_url(source_id: str, fallback: str = "", env: Optional[Mapping[str, str]] = None) -> str:
    """Resolve a feed URL for ``source_id`` from the environment.

    ``CALENDAR_<ID>_URL`` wins, then the ``CALENDAR_SOURCES`` JSON list of
    ``{"id", "url"}`` objects, then ``fallback``.
    """
    env = os.environ if env is None else env

    url = env.get(source_env_var(source_id), "")
    if url:
        return url

    raw_sources = env.get("CALENDAR_SOURCES", "")
    if raw_sources:
        try:
            entries = json.loads(raw_sources)
        except json.JSONDecodeError as exc:
            logger.error("Failed to parse CALENDAR_SOURCES: %s", exc)
            entries = []
        if isinstance(entries, list):
            for entry in entries:
                if isinstance(entry, dict) and entry.get("id") == source_id and entry.get("url"):
                    return str(entry["url"])

    return fallback
