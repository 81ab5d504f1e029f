"""Error-tolerant ICS (iCalendar) feed parser.

Turns raw feed text into a flat list of :class:`CalendarEvent` values. Only
``VEVENT`` blocks are read, recurrence rules are not expanded and ``TZID``
parameters are not resolved (such values are read as floating local time).
Malformed lines and blocks are skipped; the parser never raises on bad input.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import Dict, Iterator, List, NamedTuple, Optional, Set, Tuple, Union

from .models import CalendarEvent, CalendarSource

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY = "No Title"

_FOLD_RE = re.compile(r"\r?\n[ \t]")
_LINE_BREAK_RE = re.compile(r"\r\n|\n")
_ESCAPE_RE = re.compile(r"\\([\\,;nN])")
_ESCAPES = {"\\": "\\", ",": ",", ";": ";", "n": "\n", "N": "\n"}

_DATE_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
_DATE_TIME_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})T(\d{2})(\d{2})(\d{2})(Z?)$")


class ContentLine(NamedTuple):
    name: str
    params: str
    value: str


class DecodedDate(NamedTuple):
    value: datetime
    all_day: bool


class ScanState(Enum):
    OUTSIDE_EVENT = "outside"
    INSIDE_EVENT = "inside"


@dataclass
class _PendingEvent:
    # Open record for a VEVENT between BEGIN and END; finalized by _finalize().
    source_id: str
    uid: str
    summary: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    dtstart: Optional[Tuple[str, str]] = None   # (value, params)
    dtend: Optional[Tuple[str, str]] = None


def unfold(text: str) -> str:
    """Join RFC 5545 folded continuation lines (CRLF or LF followed by space/tab)."""
    return _FOLD_RE.sub("", text)


def unescape_text(text: str) -> str:
    """Reverse ICS TEXT escaping in one left-to-right pass.

    Each two-character escape is consumed atomically, so ``\\\\n`` yields a
    backslash followed by ``n`` rather than a newline.
    """
    if "\\" not in text:
        return text
    return _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(1)], text)


def classify_line(line: str) -> Optional[ContentLine]:
    """Split a logical line into (name, params, value).

    The first colon outside a quoted parameter value ends the name/params
    prefix. Returns None when the line has no such colon.
    """
    in_quotes = False
    split_at = -1
    for idx, ch in enumerate(line):
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == ":" and not in_quotes:
            split_at = idx
            break
    if split_at < 0:
        return None

    prefix, value = line[:split_at], line[split_at + 1:]
    name, _, params = prefix.partition(";")
    name = name.strip().upper()
    if not name:
        return None
    return ContentLine(name=name, params=params, value=value)


def parse_params(params: str) -> Dict[str, str]:
    """Parse a ``;``-separated parameter list into an upper-cased key dict."""
    result: Dict[str, str] = {}
    if not params:
        return result

    parts: List[str] = []
    cur = ""
    in_quotes = False
    for ch in params:
        if ch == '"':
            in_quotes = not in_quotes
            cur += ch
        elif ch == ";" and not in_quotes:
            parts.append(cur)
            cur = ""
        else:
            cur += ch
    parts.append(cur)

    for part in parts:
        key, sep, val = part.partition("=")
        if not sep:
            continue
        result[key.strip().upper()] = val.strip().strip('"')
    return result


def _localize(wall_clock: datetime, tz: Optional[tzinfo]) -> datetime:
    # tz=None: process local zone, resolved per value so each date gets its own offset
    if tz is None:
        return wall_clock.astimezone()
    return wall_clock.replace(tzinfo=tz)


def decode_ics_date(value: str, tz: Optional[tzinfo] = None, value_type: str = "") -> Optional[DecodedDate]:
    """Decode a DTSTART/DTEND value into an aware datetime in ``tz``.

    ``YYYYMMDD`` is an all-day date at local midnight. ``YYYYMMDDTHHMMSS`` is
    floating wall-clock time in ``tz``, and with a trailing ``Z`` it is a UTC
    instant converted to ``tz``. With ``value_type="DATE"`` a date-time value
    keeps only its date part. ``tz=None`` means the process local zone.
    Anything else returns None.
    """
    raw = value.strip()

    match = _DATE_RE.match(raw)
    if match:
        year, month, day = (int(g) for g in match.groups())
        try:
            return DecodedDate(_localize(datetime(year, month, day), tz), True)
        except (ValueError, OverflowError, OSError):
            return None

    match = _DATE_TIME_RE.match(raw)
    if not match:
        return None

    year, month, day, hour, minute, second = (int(g) for g in match.groups()[:6])
    is_utc = match.group(7) == "Z"
    try:
        if value_type.upper() == "DATE":
            return DecodedDate(_localize(datetime(year, month, day), tz), True)
        if is_utc:
            utc_value = datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)
            return DecodedDate(utc_value.astimezone(tz), False)
        return DecodedDate(_localize(datetime(year, month, day, hour, minute, second), tz), False)
    except (ValueError, OverflowError, OSError):
        # 8/15 digit shape but out-of-range components (month 13, hour 25, ...)
        return None


def _decode_property(held: Tuple[str, str], tz: Optional[tzinfo]) -> Optional[DecodedDate]:
    value, params = held
    return decode_ics_date(value, tz, parse_params(params).get("VALUE", ""))


def _default_end(start: datetime, all_day: bool, tz: Optional[tzinfo]) -> datetime:
    if all_day:
        if tz is None:
            return _localize(start.replace(tzinfo=None) + timedelta(days=1), None)
        return start + timedelta(days=1)
    # absolute hour, not wall-clock, so DST transitions keep the duration
    return (start.astimezone(timezone.utc) + timedelta(hours=1)).astimezone(tz)


def _finalize(pending: _PendingEvent, tz: Optional[tzinfo]) -> Optional[CalendarEvent]:
    if pending.dtstart is None:
        logger.debug("Dropping VEVENT %s from %s: no DTSTART", pending.uid, pending.source_id)
        return None

    decoded_start = _decode_property(pending.dtstart, tz)
    if decoded_start is None:
        logger.debug(
            "Dropping VEVENT %s from %s: unparsable DTSTART %r",
            pending.uid,
            pending.source_id,
            pending.dtstart[0],
        )
        return None

    start, all_day = decoded_start
    decoded_end = _decode_property(pending.dtend, tz) if pending.dtend is not None else None
    if decoded_end is not None:
        end = decoded_end.value
    else:
        try:
            end = _default_end(start, all_day, tz)
        except (OverflowError, OSError):
            logger.debug("Dropping VEVENT %s from %s: no representable end", pending.uid, pending.source_id)
            return None

    return CalendarEvent(
        uid=pending.uid,
        summary=unescape_text(pending.summary) if pending.summary else DEFAULT_SUMMARY,
        description=unescape_text(pending.description) if pending.description else "",
        location=unescape_text(pending.location) if pending.location else "",
        start=start,
        end=end,
        all_day=all_day,
        source_id=pending.source_id,
    )


def _apply_property(pending: _PendingEvent, line: ContentLine) -> None:
    if line.name == "SUMMARY":
        pending.summary = line.value
    elif line.name == "DESCRIPTION":
        pending.description = line.value
    elif line.name == "LOCATION":
        pending.location = line.value
    elif line.name == "UID":
        if line.value.strip():
            pending.uid = line.value.strip()
    elif line.name == "DTSTART":
        pending.dtstart = (line.value, line.params)
    elif line.name == "DTEND":
        pending.dtend = (line.value, line.params)


def _scan_blocks(lines: List[str], source_id: str) -> Iterator[Optional[_PendingEvent]]:
    """Yield one accumulator per BEGIN:VEVENT.

    Blocks closed by END:VEVENT are yielded as records; blocks abandoned by a
    new BEGIN:VEVENT or by end of input are yielded as None.
    """
    state = ScanState.OUTSIDE_EVENT
    pending: Optional[_PendingEvent] = None

    for raw_line in lines:
        marker = raw_line.strip().upper()
        if marker == "BEGIN:VEVENT":
            if state is ScanState.INSIDE_EVENT:
                yield None
            state = ScanState.INSIDE_EVENT
            pending = _PendingEvent(source_id=source_id, uid=str(uuid.uuid4()))
            continue

        if state is ScanState.OUTSIDE_EVENT or pending is None:
            continue

        if marker == "END:VEVENT":
            state = ScanState.OUTSIDE_EVENT
            yield pending
            pending = None
            continue

        line = classify_line(raw_line)
        if line is None:
            continue
        _apply_property(pending, line)

    if state is ScanState.INSIDE_EVENT:
        yield None


def _unique_uid(event: CalendarEvent, seen: Set[str]) -> str:
    # RECURRENCE-ID overrides share their series UID
    candidate = f"{event.uid}#{event.start.isoformat()}"
    if candidate in seen:
        candidate = str(uuid.uuid4())
    logger.debug("Duplicate UID %s in %s, using %s", event.uid, event.source_id, candidate)
    return candidate


def parse(
    feed_text: Union[str, bytes, None],
    source_id: str,
    tz: Optional[tzinfo] = None,
) -> List[CalendarEvent]:
    """Parse ICS feed text into events tagged with ``source_id``.

    Each call is independent; events without a usable DTSTART and blocks
    missing END:VEVENT are dropped rather than raising.
    """
    if not feed_text:
        return []
    if isinstance(feed_text, bytes):
        feed_text = feed_text.decode("utf-8", errors="replace")
    lines = _LINE_BREAK_RE.split(unfold(feed_text.lstrip("\ufeff")))

    events: List[CalendarEvent] = []
    seen_uids: Set[str] = set()
    dropped = 0
    for pending in _scan_blocks(lines, source_id):
        if pending is None:
            logger.debug("Dropping unterminated VEVENT block from %s", source_id)
            dropped += 1
            continue
        event = _finalize(pending, tz)
        if event is None:
            dropped += 1
            continue
        if event.uid in seen_uids:
            event = replace(event, uid=_unique_uid(event, seen_uids))
        seen_uids.add(event.uid)
        events.append(event)

    logger.info("Parsed %d events for source %s (dropped %d)", len(events), source_id, dropped)
    return events


def parse_source(feed_text: Union[str, bytes, None], source: CalendarSource, tz: Optional[tzinfo] = None) -> List[CalendarEvent]:
    return parse(feed_text, source.id, tz)
