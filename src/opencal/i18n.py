from __future__ import annotations

from datetime import date
from typing import Dict, List

DEFAULT_LANGUAGE = "en"
SUPPORTED_LANGUAGES = ("en", "fr")

TRANSLATIONS: Dict[str, Dict[str, str]] = {
    "en": {
        "title": "OpenCal",
        "today": "Today",
        "month": "Month",
        "list": "List",
        "upcoming": "Upcoming",
        "all_day": "All Day",
        "no_events": "No events found for the selected period.",
        "more_events": "+{count} more",
        "no_sources": "No calendars added.",
        "updated": "Updated",
    },
    "fr": {
        "title": "OpenCal",
        "today": "Aujourd'hui",
        "month": "Mois",
        "list": "Liste",
        "upcoming": "À venir",
        "all_day": "Toute la journée",
        "no_events": "Aucun événement trouvé pour la période sélectionnée.",
        "more_events": "+{count} autres",
        "no_sources": "Aucun calendrier ajouté.",
        "updated": "Mis à jour",
    },
}

_WEEKDAYS = {
    "en": ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"],
    "fr": ["lun.", "mar.", "mer.", "jeu.", "ven.", "sam.", "dim."],
}

_WEEKDAYS_LONG = {
    "en": ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"],
    "fr": ["lundi", "mardi", "mercredi", "jeudi", "vendredi", "samedi", "dimanche"],
}

_MONTHS = {
    "en": [
        "January", "February", "March", "April", "May", "June",
        "July", "August", "September", "October", "November", "December",
    ],
    "fr": [
        "janvier", "février", "mars", "avril", "mai", "juin",
        "juillet", "août", "septembre", "octobre", "novembre", "décembre",
    ],
}

# date.weekday() index of the first column in the month grid
_WEEK_START = {"en": 6, "fr": 0}


def _lang(language: str) -> str:
    return language if language in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE


def t(language: str, key: str) -> str:
    return TRANSLATIONS[_lang(language)][key]


def more_events(language: str, count: int) -> str:
    return t(language, "more_events").format(count=count)


def week_start(language: str) -> int:
    return _WEEK_START[_lang(language)]


def weekday_headers(language: str) -> List[str]:
    """Short weekday names in grid column order for ``language``."""
    names = _WEEKDAYS[_lang(language)]
    first = week_start(language)
    return [names[(first + i) % 7] for i in range(7)]


def weekday_short(language: str, day: date) -> str:
    return _WEEKDAYS[_lang(language)][day.weekday()]


def month_title(language: str, day: date) -> str:
    name = _MONTHS[_lang(language)][day.month - 1]
    return f"{name[0].upper()}{name[1:]} {day.year}"


def full_date(language: str, day: date) -> str:
    """``Thursday, 5 February 2026`` style date for the event detail card."""
    lang = _lang(language)
    weekday = _WEEKDAYS_LONG[lang][day.weekday()]
    text = f"{weekday}, {day.day} {_MONTHS[lang][day.month - 1]} {day.year}"
    return text[0].upper() + text[1:]
