from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime

@dataclass(frozen=True)
class CalendarSource:
    id: str                     # stable key, also used for env/relay lookup
    name: str
    url: str = ""               # may be empty when resolved by id
    color: str = "#3b82f6"
    enabled: bool = True

@dataclass(frozen=True)
class CalendarEvent:
    uid: str
    summary: str
    start: datetime             # timezone-aware
    end: datetime               # timezone-aware, always populated
    source_id: str
    all_day: bool = False
    description: str = ""
    location: str = ""
