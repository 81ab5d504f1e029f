from __future__ import annotations

import logging
from typing import Dict, Optional

import requests

from .config import resolve_source_url
from .models import CalendarSource

logger = logging.getLogger(__name__)


class FeedFetchError(RuntimeError):
    """Raised when a calendar feed cannot be retrieved."""


class FeedFetcher:
    """Retrieves raw ICS text for a source, directly or through the relay.

    With ``relay_url`` set, requests go to ``<relay_url>?url=<feed>`` when the
    source carries a URL, else ``<relay_url>?id=<source id>`` so the relay
    resolves the feed server-side.
    """

    def __init__(self, relay_url: str = "", timeout: float = 20, user_agent: str = "opencal/0.1") -> None:
        self.relay_url = relay_url
        self.timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": user_agent, "Accept": "text/calendar"})

    def fetch(self, source: CalendarSource) -> str:
        url, params = self._target(source)
        if not url:
            raise FeedFetchError(f"No URL configured for calendar source {source.id}")

        try:
            resp = self._session.get(url, params=params, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise FeedFetchError(f"Failed to fetch {source.name}: {exc}") from exc

        # Feeds often omit the charset; ICS is UTF-8 by definition.
        resp.encoding = "utf-8"
        return resp.text

    def _target(self, source: CalendarSource) -> tuple[str, Optional[Dict[str, str]]]:
        if self.relay_url:
            if source.url:
                return self.relay_url, {"url": source.url}
            return self.relay_url, {"id": source.id}
        return source.url or resolve_source_url(source.id), None
