import pytest
import requests

from opencal.fetcher import FeedFetchError, FeedFetcher
from opencal.models import CalendarSource


class FakeResponse:
    def __init__(self, text="BEGIN:VCALENDAR", status_code=200):
        self.text = text
        self.status_code = status_code
        self.encoding = None

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


def _record_get(fetcher, monkeypatch, response):
    calls = []

    def fake_get(url, params=None, timeout=None):
        calls.append((url, params, timeout))
        return response

    monkeypatch.setattr(fetcher._session, "get", fake_get)
    return calls


def test_direct_fetch_uses_source_url(monkeypatch):
    fetcher = FeedFetcher(timeout=5)
    calls = _record_get(fetcher, monkeypatch, FakeResponse("BEGIN:VCALENDAR\r\nEND:VCALENDAR"))

    text = fetcher.fetch(CalendarSource(id="work", name="Work", url="https://example.com/work.ics"))

    assert text.startswith("BEGIN:VCALENDAR")
    assert calls == [("https://example.com/work.ics", None, 5)]


def test_direct_fetch_resolves_url_from_environment(monkeypatch):
    monkeypatch.setenv("CALENDAR_FAMILY_URL", "https://example.com/secret.ics")
    fetcher = FeedFetcher()
    calls = _record_get(fetcher, monkeypatch, FakeResponse())

    fetcher.fetch(CalendarSource(id="family", name="Family"))

    assert calls[0][0] == "https://example.com/secret.ics"


def test_relay_passes_url_or_id(monkeypatch):
    fetcher = FeedFetcher(relay_url="http://127.0.0.1:8765/api/calendar")
    calls = _record_get(fetcher, monkeypatch, FakeResponse())

    fetcher.fetch(CalendarSource(id="pub", name="Public", url="https://example.com/p.ics"))
    fetcher.fetch(CalendarSource(id="family", name="Family"))

    assert calls[0][1] == {"url": "https://example.com/p.ics"}
    assert calls[1][1] == {"id": "family"}


def test_non_2xx_raises_feed_fetch_error(monkeypatch):
    fetcher = FeedFetcher()
    _record_get(fetcher, monkeypatch, FakeResponse(status_code=404))

    with pytest.raises(FeedFetchError, match="Failed to fetch Work"):
        fetcher.fetch(CalendarSource(id="work", name="Work", url="https://example.com/missing.ics"))


def test_missing_url_raises(monkeypatch):
    monkeypatch.delenv("CALENDAR_NOWHERE_URL", raising=False)
    monkeypatch.delenv("CALENDAR_SOURCES", raising=False)

    with pytest.raises(FeedFetchError, match="No URL configured"):
        FeedFetcher().fetch(CalendarSource(id="nowhere", name="Nowhere"))
