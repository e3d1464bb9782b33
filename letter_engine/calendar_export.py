"""Deadline export: Google Calendar template links and .ics files."""
from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from urllib.parse import urlencode

from .utils import parse_date


GOOGLE_CALENDAR_URL = "https://calendar.google.com/calendar/render"
EVENT_DURATION = timedelta(hours=1)


def _basic_utc(when: datetime) -> str:
    return when.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def google_calendar_link(title: str, date_str: str, description: str) -> str:
    """Prefilled 'add event' link; '#' when the date cannot be parsed."""
    start = parse_date(date_str)
    if start is None:
        return "#"
    end = start + EVENT_DURATION
    query = urlencode(
        [
            ("action", "TEMPLATE"),
            ("text", f"DEADLINE: {title}"),
            ("dates", f"{_basic_utc(start)}/{_basic_utc(end)}"),
            ("details", description),
            ("sf", "true"),
            ("output", "xml"),
        ]
    )
    return f"{GOOGLE_CALENDAR_URL}?{query}"


def build_ics(title: str, date_str: str, description: str) -> str | None:
    start = parse_date(date_str)
    if start is None:
        return None
    end = start + EVENT_DURATION
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "BEGIN:VEVENT",
        f"DTSTART:{_basic_utc(start)}",
        f"DTEND:{_basic_utc(end)}",
        f"SUMMARY:DEADLINE: {title}",
        "DESCRIPTION:" + description.replace("\n", "\\n"),
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(lines)


def ics_filename(title: str) -> str:
    return "deadline-" + re.sub(r"\s+", "-", title).lower() + ".ics"


def write_ics(title: str, date_str: str, description: str, out_dir: str | Path) -> Path | None:
    content = build_ics(title, date_str, description)
    if content is None:
        return None
    out = Path(out_dir) / ics_filename(title)
    out.parent.mkdir(parents=True, exist_ok=True)
    # newline="" keeps the CRLF line endings intact
    with out.open("w", encoding="utf-8", newline="") as f:
        f.write(content)
    return out
