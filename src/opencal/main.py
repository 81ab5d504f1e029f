from __future__ import annotations

import logging
import os
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional
from zoneinfo import ZoneInfo

from dotenv import load_dotenv
from PIL import Image

from . import i18n
from .aggregator import CalendarAggregator
from .config import CONFIG_PATH_DEFAULT, AppConfig, load_config
from .fetcher import FeedFetcher
from .models import CalendarEvent, CalendarSource
from .render import render_event_detail, render_list_view, render_month_view
from .settings_store import SETTINGS_PATH_DEFAULT, LayeredSourceProvider, load_settings
from .views import events_in_month, shift_month, upcoming_events

OUTPUT_PATH_DEFAULT = "opencal.png"
VIEWS = ("month", "list", "upcoming", "detail")


def _parse_month(value: str) -> date:
    year, month = value.split("-")
    return date(int(year), int(month), 1)


def _select_event(
    events: List[CalendarEvent],
    event_uid: Optional[str],
    now: datetime,
    days: int,
) -> Optional[CalendarEvent]:
    if event_uid:
        for e in events:
            if e.uid == event_uid:
                return e
        raise ValueError(f"No event with uid {event_uid!r}")
    upcoming = upcoming_events(events, now, days)
    return upcoming[0] if upcoming else None


def _render(
    cfg: AppConfig,
    view: str,
    reference: date,
    now: datetime,
    events: List[CalendarEvent],
    sources: List[CalendarSource],
    language: str,
    event_uid: Optional[str] = None,
) -> Image.Image:
    if view == "month":
        return render_month_view(
            canvas_w=cfg.display.width,
            canvas_h=cfg.display.height,
            reference=reference,
            today=now.date(),
            events=events,
            sources=sources,
            language=language,
            max_events_per_day=cfg.display.max_events_per_day,
        )
    if view == "list":
        return render_list_view(
            canvas_w=cfg.display.width,
            canvas_h=cfg.display.height,
            title=i18n.month_title(language, reference),
            events=events_in_month(events, reference),
            sources=sources,
            language=language,
            now=now,
        )
    if view == "upcoming":
        return render_list_view(
            canvas_w=cfg.display.width,
            canvas_h=cfg.display.height,
            title=i18n.t(language, "upcoming"),
            events=upcoming_events(events, now, cfg.display.upcoming_days),
            sources=sources,
            language=language,
            now=now,
        )
    if view == "detail":
        return render_event_detail(
            canvas_w=cfg.display.width,
            canvas_h=cfg.display.height,
            event=_select_event(events, event_uid, now, cfg.display.upcoming_days),
            sources=sources,
            language=language,
        )
    raise ValueError(f"Unknown view: {view}")


def run_once(
    config_path: str = CONFIG_PATH_DEFAULT,
    settings_path: str = SETTINGS_PATH_DEFAULT,
    view: str = "month",
    output_path: str = OUTPUT_PATH_DEFAULT,
    month: Optional[str] = None,
    month_offset: int = 0,
    now: Optional[datetime] = None,
    event_uid: Optional[str] = None,
) -> Path:
    load_dotenv()
    cfg = load_config(config_path)
    settings = load_settings(settings_path)
    tz = ZoneInfo(cfg.timezone)
    now = now or datetime.now(tz=tz)

    # Saved preference beats the config default once the user picked one.
    language = settings.language if Path(settings_path).exists() else cfg.language
    provider = LayeredSourceProvider(cfg, settings)
    sources = provider.sources()

    reference = _parse_month(month) if month else now.date()
    if month_offset:
        reference = shift_month(reference, month_offset)

    events: List[CalendarEvent] = []
    if sources:
        fetcher = FeedFetcher(relay_url=provider.relay_url(), timeout=cfg.fetch_timeout_seconds)
        aggregator = CalendarAggregator(fetcher, tz=tz, max_workers=cfg.max_workers)
        events = aggregator.refresh(sources)
    else:
        print(i18n.t(language, "no_sources"))

    enabled = sum(1 for s in sources if s.enabled)
    print(f"Fetched {len(events)} events from {enabled} enabled calendars; view={view}")

    img = _render(cfg, view, reference, now, events, sources, language, event_uid)
    out = Path(output_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    img.save(out)
    print(f"Rendered {view} view to {out}")
    return out


def main(argv: Optional[List[str]] = None):
    import argparse

    ap = argparse.ArgumentParser(description="Render aggregated ICS calendars to an image")
    ap.add_argument("--config", default=CONFIG_PATH_DEFAULT)
    ap.add_argument("--settings", default=SETTINGS_PATH_DEFAULT)
    ap.add_argument("--view", choices=VIEWS, default="month")
    ap.add_argument("--output", default=OUTPUT_PATH_DEFAULT)
    ap.add_argument("--month", help="YYYY-MM to display instead of the current month")
    ap.add_argument("--prev", action="store_true", help="show the month before --month/current")
    ap.add_argument("--next", action="store_true", help="show the month after --month/current")
    ap.add_argument("--event", help="event UID for --view detail (default: next upcoming event)")
    ap.add_argument("--log-level", default=os.environ.get("OPENCAL_LOG_LEVEL", "INFO"))
    args = ap.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    offset = (1 if args.next else 0) - (1 if args.prev else 0)
    try:
        run_once(
            config_path=args.config,
            settings_path=args.settings,
            view=args.view,
            output_path=args.output,
            month=args.month,
            month_offset=offset,
            event_uid=args.event,
        )
    except ValueError as exc:
        ap.exit(2, f"error: {exc}\n")


if __name__ == "__main__":
    main()
