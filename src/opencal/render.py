from __future__ import annotations
from datetime import date, datetime
from typing import Dict, List, Optional
from PIL import Image, ImageColor, ImageDraw, ImageFont

from . import i18n
from .models import CalendarEvent, CalendarSource
from .views import events_for_day, group_by_day, is_multi_day, month_grid

FONT_PATH = "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"
UNKNOWN_SOURCE_COLOR = "#94a3b8"
TODAY_COLOR = (37, 99, 235)
MUTED_TEXT = (148, 163, 184)
GRID_LINE = (226, 232, 240)
OUTSIDE_MONTH_FILL = (248, 250, 252)
TODAY_FILL = (239, 246, 255)

def _load_font(size: int) -> ImageFont.ImageFont:
    # DejaVu ships with most Linux distributions; fall back to Pillow's bundled font.
    try:
        return ImageFont.truetype(FONT_PATH, size)
    except OSError:
        return ImageFont.load_default(size=size)

def _fmt_time(dt: datetime, language: str) -> str:
    if language == "fr":
        return dt.strftime("%H:%M")
    return dt.strftime("%-I:%M %p").lower()

def _source_colors(sources: List[CalendarSource]) -> Dict[str, tuple[int, int, int]]:
    colors = {}
    for s in sources:
        try:
            colors[s.id] = ImageColor.getrgb(s.color)[:3]
        except ValueError:
            colors[s.id] = ImageColor.getrgb(UNKNOWN_SOURCE_COLOR)[:3]
    return colors

def _color_for(colors: Dict[str, tuple[int, int, int]], source_id: str) -> tuple[int, int, int]:
    return colors.get(source_id) or ImageColor.getrgb(UNKNOWN_SOURCE_COLOR)[:3]

def _lerp_color(start: tuple[int, int, int], end: tuple[int, int, int], ratio: float) -> tuple[int, int, int]:
    return tuple(int(round(s + (e - s) * ratio)) for s, e in zip(start, end))

def _fit_text(draw: ImageDraw.ImageDraw, text: str, font: ImageFont.ImageFont, max_width: float) -> str:
    text = " ".join(text.splitlines())
    if draw.textlength(text, font=font) <= max_width:
        return text
    while text and draw.textlength(text + "…", font=font) > max_width:
        text = text[:-1]
    return (text.rstrip() + "…") if text else ""

def _wrap_text(
    draw: ImageDraw.ImageDraw,
    text: str,
    font: ImageFont.ImageFont,
    max_width: float,
    max_lines: Optional[int] = None,
) -> List[str]:
    # newlines in the source text start a new paragraph
    lines: List[str] = []
    for paragraph in text.splitlines() or [""]:
        cur = ""
        for w in paragraph.split():
            test = (cur + " " + w).strip()
            if draw.textlength(test, font=font) <= max_width:
                cur = test
            else:
                if cur:
                    lines.append(cur)
                cur = w
        lines.append(cur)
    return lines if max_lines is None else lines[:max_lines]

def _draw_centered(draw: ImageDraw.ImageDraw, canvas_w: int, y: float, text: str, font: ImageFont.ImageFont, fill="black") -> None:
    w = draw.textlength(text, font=font)
    draw.text(((canvas_w - w) / 2, y), text, fill=fill, font=font)

def render_month_view(
    canvas_w: int,
    canvas_h: int,
    reference: date,
    today: date,
    events: List[CalendarEvent],
    sources: List[CalendarSource],
    language: str = i18n.DEFAULT_LANGUAGE,
    max_events_per_day: int = 4,
) -> Image.Image:
    img = Image.new("RGB", (canvas_w, canvas_h), "white")
    d = ImageDraw.Draw(img)

    header_size = 44
    weekday_size = 20
    day_size = 18
    chip_size = 16
    font_header = _load_font(header_size)
    font_weekday = _load_font(weekday_size)
    font_day = _load_font(day_size)
    font_chip = _load_font(chip_size)

    padding = 30
    y = padding
    _draw_centered(d, canvas_w, y, i18n.month_title(language, reference), font_header)
    y += header_size + 20

    colors = _source_colors(sources)
    days = month_grid(reference, i18n.week_start(language))
    rows = max(1, len(days) // 7)
    cell_w = (canvas_w - 2 * padding) / 7

    for col, name in enumerate(i18n.weekday_headers(language)):
        label = name.upper()
        w = d.textlength(label, font=font_weekday)
        d.text((padding + col * cell_w + (cell_w - w) / 2, y), label, fill=MUTED_TEXT, font=font_weekday)
    y += weekday_size + 12
    d.line((padding, y, canvas_w - padding, y), fill="black", width=2)

    grid_top = y
    cell_h = (canvas_h - padding - grid_top) / rows
    chip_h = chip_size + 8

    for idx, day in enumerate(days):
        row, col = divmod(idx, 7)
        x0 = padding + col * cell_w
        y0 = grid_top + row * cell_h
        x1 = x0 + cell_w
        y1 = y0 + cell_h

        in_month = (day.year, day.month) == (reference.year, reference.month)
        fill = TODAY_FILL if day == today else ("white" if in_month else OUTSIDE_MONTH_FILL)
        d.rectangle((x0, y0, x1, y1), fill=fill, outline=GRID_LINE, width=1)

        day_label = str(day.day)
        if day == today:
            r = day_size * 0.85
            cx, cy = x0 + 6 + r, y0 + 6 + r
            d.ellipse((cx - r, cy - r, cx + r, cy + r), fill=TODAY_COLOR)
            w = d.textlength(day_label, font=font_day)
            d.text((cx - w / 2, cy - day_size / 2 - 1), day_label, fill="white", font=font_day)
        else:
            d.text((x0 + 8, y0 + 6), day_label, fill="black" if in_month else MUTED_TEXT, font=font_day)

        day_events = events_for_day(events, day)
        visible = day_events[:max_events_per_day]
        remaining = len(day_events) - len(visible)

        cy = y0 + day_size * 2 + 8
        for e in visible:
            if cy + chip_h > y1 - 2:
                remaining += 1
                continue
            color = _color_for(colors, e.source_id)
            d.rectangle((x0 + 4, cy, x1 - 4, cy + chip_h - 2), fill=_lerp_color((255, 255, 255), color, 0.15))
            d.rectangle((x0 + 4, cy, x0 + 7, cy + chip_h - 2), fill=color)
            label = e.summary
            if not e.all_day and not is_multi_day(e):
                label = f"{_fmt_time(e.start, language)} {label}"
            d.text((x0 + 11, cy + 3), _fit_text(d, label, font_chip, cell_w - 18), fill="black", font=font_chip)
            cy += chip_h

        if remaining > 0:
            d.text((x0 + 10, min(cy, y1 - chip_h)), i18n.more_events(language, remaining), fill=MUTED_TEXT, font=font_chip)

    return img

def render_list_view(
    canvas_w: int,
    canvas_h: int,
    title: str,
    events: List[CalendarEvent],
    sources: List[CalendarSource],
    language: str = i18n.DEFAULT_LANGUAGE,
    now: Optional[datetime] = None,
) -> Image.Image:
    img = Image.new("RGB", (canvas_w, canvas_h), "white")
    d = ImageDraw.Draw(img)

    header_size = 44
    title_size = 28
    detail_size = 20
    font_header = _load_font(header_size)
    font_weekday = _load_font(18)
    font_daynum = _load_font(40)
    font_title = _load_font(title_size)
    font_detail = _load_font(detail_size)

    padding = 40
    y = padding
    d.text((padding, y), title, fill="black", font=font_header)
    y += header_size + 16
    d.line((padding, y, canvas_w - padding, y), fill="black", width=2)
    y += 24

    footer_h = detail_size + 16 if now is not None else 0
    max_y = canvas_h - padding - footer_h

    if not events:
        _draw_centered(d, canvas_w, (canvas_h - title_size) / 2, i18n.t(language, "no_events"), font_title, fill=MUTED_TEXT)
    else:
        colors = _source_colors(sources)
        names = {s.id: s.name for s in sources}
        date_col_w = 90
        x_card = padding + date_col_w
        row_h = title_size + detail_size + 28
        truncated = False

        for day, day_events in group_by_day(events).items():
            if y + row_h > max_y:
                truncated = True
                break
            d.text((padding, y), i18n.weekday_short(language, day).upper(), fill=MUTED_TEXT, font=font_weekday)
            d.text((padding, y + 22), str(day.day), fill="black", font=font_daynum)

            for e in day_events:
                if y + row_h > max_y:
                    truncated = True
                    break
                color = _color_for(colors, e.source_id)
                d.rectangle((x_card, y, x_card + 5, y + row_h - 12), fill=color)

                source_name = names.get(e.source_id, "")
                badge_w = d.textlength(source_name.upper(), font=font_detail) if source_name else 0
                if source_name:
                    d.text((canvas_w - padding - badge_w, y + 4), source_name.upper(), fill=color, font=font_detail)

                text_x = x_card + 16
                text_w = canvas_w - padding - text_x - badge_w - 16
                d.text((text_x, y), _fit_text(d, e.summary, font_title, text_w), fill="black", font=font_title)

                if e.all_day:
                    when = i18n.t(language, "all_day")
                else:
                    when = f"{_fmt_time(e.start, language)} - {_fmt_time(e.end, language)}"
                detail = f"{when}   {e.location}" if e.location else when
                d.text((text_x, y + title_size + 6), _fit_text(d, detail, font_detail, text_w), fill=MUTED_TEXT, font=font_detail)
                y += row_h

            if truncated:
                break
            y += 12

        if truncated:
            d.text((padding, min(y, max_y)), "…", fill="black", font=font_title)

    if now is not None:
        updated = f"{i18n.t(language, 'updated')}: {_fmt_time(now, language)}"
        d.text((padding, canvas_h - padding - detail_size), updated, fill="black", font=font_detail)

    return img

def render_event_detail(
    canvas_w: int,
    canvas_h: int,
    event: Optional[CalendarEvent],
    sources: List[CalendarSource],
    language: str = i18n.DEFAULT_LANGUAGE,
) -> Image.Image:
    """Full card for one event: title, date, time range, location and description."""
    img = Image.new("RGB", (canvas_w, canvas_h), "white")
    d = ImageDraw.Draw(img)

    title_size = 40
    detail_size = 24
    body_size = 22
    font_title = _load_font(title_size)
    font_date = _load_font(detail_size)
    font_detail = _load_font(detail_size)
    font_body = _load_font(body_size)

    padding = 40
    if event is None:
        _draw_centered(d, canvas_w, (canvas_h - detail_size) / 2, i18n.t(language, "no_events"), font_detail, fill=MUTED_TEXT)
        return img

    color = _color_for(_source_colors(sources), event.source_id)
    d.rectangle((padding, padding, padding + 7, canvas_h - padding), fill=color)
    x = padding + 24
    text_w = canvas_w - padding - x
    y = padding

    for line in _wrap_text(d, event.summary, font_title, text_w, max_lines=3):
        d.text((x, y), line, fill="black", font=font_title)
        y += title_size + 8
    y += 12

    d.text((x, y), i18n.full_date(language, event.start.date()), fill="black", font=font_date)
    y += detail_size + 8
    if event.all_day:
        when = i18n.t(language, "all_day")
    else:
        when = f"{_fmt_time(event.start, language)} - {_fmt_time(event.end, language)}"
    d.text((x, y), when, fill=MUTED_TEXT, font=font_detail)
    y += detail_size + 8

    names = {s.id: s.name for s in sources}
    for extra in (event.location, names.get(event.source_id, "")):
        if extra:
            d.text((x, y), _fit_text(d, extra, font_detail, text_w), fill=MUTED_TEXT, font=font_detail)
            y += detail_size + 8

    if event.description and y + 16 + 2 * body_size < canvas_h - padding:
        y += 16
        box_top = y
        max_y = canvas_h - padding
        d.rectangle((x, box_top, canvas_w - padding, max_y), fill=OUTSIDE_MONTH_FILL, outline=GRID_LINE, width=1)
        y += 12
        line_h = body_size + 6
        lines = _wrap_text(d, event.description, font_body, text_w - 24)
        for idx, line in enumerate(lines):
            if y + 2 * line_h > max_y and idx < len(lines) - 1:
                d.text((x + 12, y), "…", fill="black", font=font_body)
                break
            d.text((x + 12, y), line, fill="black", font=font_body)
            y += line_h

    return img
