from __future__ import annotations

import hashlib
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import tzinfo
from typing import Callable, List, Optional, Protocol

from .ics_parser import parse
from .models import CalendarEvent, CalendarSource

logger = logging.getLogger(__name__)

Parser = Callable[[str, str, Optional[tzinfo]], List[CalendarEvent]]


class Fetcher(Protocol):
    def fetch(self, source: CalendarSource) -> str: ...


def _event_sort_key(e: CalendarEvent):
    # start time, all-day first on ties, then title
    return (e.start, 0 if e.all_day else 1, e.summary.lower())


def _dedupe_events(events: List[CalendarEvent]) -> List[CalendarEvent]:
    deduped: List[CalendarEvent] = []
    seen = set()
    for e in sorted(events, key=_event_sort_key):
        key = (e.source_id, e.uid, e.start.isoformat())
        if key in seen:
            continue
        seen.add(key)
        deduped.append(e)
    return deduped


def sources_signature(sources: List[CalendarSource]) -> str:
    # Only fields that change what gets fetched or how it is tagged.
    payload = sorted(
        [s.id, s.url, s.enabled]
        for s in sources
    )
    b = json.dumps(payload, sort_keys=True, ensure_ascii=False).encode("utf-8")
    return hashlib.sha256(b).hexdigest()


class CalendarAggregator:
    """Fetches every enabled source concurrently and merges the parsed events.

    A source whose fetch or parse fails contributes no events; the others are
    unaffected. ``refresh`` only re-fetches when the source configuration
    changed since the previous call.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        tz: Optional[tzinfo] = None,
        max_workers: int = 8,
        parser: Parser = parse,
    ) -> None:
        self.fetcher = fetcher
        self.tz = tz
        self.max_workers = max(1, max_workers)
        self.parser = parser
        self._last_signature: Optional[str] = None
        self._events: List[CalendarEvent] = []

    @property
    def events(self) -> List[CalendarEvent]:
        return list(self._events)

    def refresh(self, sources: List[CalendarSource], force: bool = False) -> List[CalendarEvent]:
        sig = sources_signature(sources)
        if not force and sig == self._last_signature:
            logger.debug("Calendar sources unchanged; reusing %d events", len(self._events))
            return self.events
        self._events = self.collect(sources)
        self._last_signature = sig
        return self.events

    def collect(self, sources: List[CalendarSource]) -> List[CalendarEvent]:
        active = [s for s in sources if s.enabled]
        if not active:
            return []

        workers = min(self.max_workers, len(active))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="feed") as pool:
            results = list(pool.map(self._load_source, active))

        events: List[CalendarEvent] = []
        for source_events in results:
            events.extend(source_events)
        return _dedupe_events(events)

    def _load_source(self, source: CalendarSource) -> List[CalendarEvent]:
        try:
            text = self.fetcher.fetch(source)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Calendar %s fetch failed; continuing without its events: %s", source.id, exc)
            return []
        try:
            return self.parser(text, source.id, self.tz)
        except Exception:  # noqa: BLE001
            logger.exception("Calendar %s could not be parsed; continuing without its events", source.id)
            return []
