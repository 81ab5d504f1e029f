from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest
from PIL import ImageDraw

from opencal.models import CalendarEvent, CalendarSource
from opencal.render import render_event_detail, render_list_view, render_month_view

TZ = ZoneInfo("America/Phoenix")
SOURCES = [CalendarSource(id="work", name="Work", color="#ef4444")]


@pytest.fixture
def drawn_text(monkeypatch):
    observed = []
    original_text = ImageDraw.ImageDraw.text

    def recording_text(self, xy, text, *args, **kwargs):
        observed.append(text)
        return original_text(self, xy, text, *args, **kwargs)

    monkeypatch.setattr(ImageDraw.ImageDraw, "text", recording_text)
    return observed


def _event(uid: str, start: datetime, end: datetime, all_day: bool = False, location: str = "") -> CalendarEvent:
    return CalendarEvent(uid=uid, summary=uid.title(), start=start, end=end, source_id="work", all_day=all_day, location=location)


def test_month_view_prefixes_timed_events_and_counts_overflow(drawn_text):
    day = datetime(2026, 2, 5, tzinfo=TZ)
    events = [_event("offsite", day, datetime(2026, 2, 6, tzinfo=TZ), all_day=True)] + [
        _event(f"meeting{i}", day.replace(hour=8 + i), day.replace(hour=9 + i)) for i in range(4)
    ]

    img = render_month_view(1600, 1200, date(2026, 2, 1), date(2026, 2, 5), events, SOURCES)

    assert img.size == (1600, 1200)
    assert "February 2026" in drawn_text
    assert "Offsite" in drawn_text
    assert "8:00 am Meeting0" in drawn_text
    assert "+1 more" in drawn_text


def test_month_view_uses_language_headers(drawn_text):
    render_month_view(1600, 1200, date(2026, 2, 1), date(2026, 2, 5), [], SOURCES, language="fr")

    assert "Février 2026" in drawn_text
    assert drawn_text.index("LUN.") < drawn_text.index("DIM.")


def test_month_view_multi_day_events_have_no_time_prefix(drawn_text):
    trip = _event("trip", datetime(2026, 2, 3, 18, tzinfo=TZ), datetime(2026, 2, 5, 9, tzinfo=TZ))

    render_month_view(1600, 1200, date(2026, 2, 1), date(2026, 2, 1), [trip], SOURCES)

    assert drawn_text.count("Trip") == 3


def test_month_view_chip_times_follow_language(drawn_text):
    lunch = _event("dejeuner", datetime(2026, 2, 5, 12, 30, tzinfo=TZ), datetime(2026, 2, 5, 13, 30, tzinfo=TZ))

    render_month_view(1600, 1200, date(2026, 2, 1), date(2026, 2, 1), [lunch], SOURCES, language="fr")

    assert "12:30 Dejeuner" in drawn_text


def test_list_view_shows_times_location_and_source(drawn_text):
    events = [
        _event("standup", datetime(2026, 2, 5, 9, tzinfo=TZ), datetime(2026, 2, 5, 10, tzinfo=TZ), location="HQ"),
        _event("holiday", datetime(2026, 2, 6, tzinfo=TZ), datetime(2026, 2, 7, tzinfo=TZ), all_day=True),
    ]

    render_list_view(1200, 900, "February 2026", events, SOURCES)

    assert "9:00 am - 10:00 am   HQ" in drawn_text
    assert "All Day" in drawn_text
    assert drawn_text.count("WORK") == 2
    assert "THU" in drawn_text


def test_list_view_without_events_shows_placeholder(drawn_text):
    render_list_view(1200, 900, "Upcoming", [], SOURCES, now=datetime(2026, 2, 5, 7, 30, tzinfo=TZ))

    assert "No events found for the selected period." in drawn_text
    assert "Updated: 7:30 am" in drawn_text


def test_list_view_truncates_when_out_of_space(drawn_text):
    start = datetime(2026, 2, 5, 8, tzinfo=TZ)
    events = [_event(f"e{i}", start.replace(hour=8 + i), start.replace(hour=9 + i)) for i in range(10)]

    render_list_view(800, 400, "Busy", events, SOURCES)

    assert "…" in drawn_text
    assert "E9" not in drawn_text


def test_event_detail_shows_date_time_location_and_description(drawn_text):
    standup = CalendarEvent(
        uid="standup",
        summary="Standup",
        start=datetime(2026, 2, 5, 9, tzinfo=TZ),
        end=datetime(2026, 2, 5, 9, 30, tzinfo=TZ),
        source_id="work",
        location="HQ",
        description="Bring slides\nRoom code 42",
    )

    img = render_event_detail(1200, 900, standup, SOURCES)

    assert img.size == (1200, 900)
    assert "Standup" in drawn_text
    assert "Thursday, 5 February 2026" in drawn_text
    assert "9:00 am - 9:30 am" in drawn_text
    assert "HQ" in drawn_text
    assert "Work" in drawn_text
    assert "Bring slides" in drawn_text
    assert "Room code 42" in drawn_text


def test_event_detail_all_day_in_french(drawn_text):
    holiday = _event("ferie", datetime(2026, 2, 5, tzinfo=TZ), datetime(2026, 2, 6, tzinfo=TZ), all_day=True)

    render_event_detail(1200, 900, holiday, SOURCES, language="fr")

    assert "Jeudi, 5 février 2026" in drawn_text
    assert "Toute la journée" in drawn_text


def test_event_detail_without_event_shows_placeholder(drawn_text):
    render_event_detail(1200, 900, None, SOURCES)

    assert drawn_text == ["No events found for the selected period."]
