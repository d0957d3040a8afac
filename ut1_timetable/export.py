"""
Export scraped planning events to ICS, CSV, and JSON.
"""
from __future__ import annotations

import csv
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List

import icalendar
import pytz

from .models import CalendarEvent

# Times decoded from the grid are UTC; the calendar is displayed in Paris time.
TZ_PARIS = "Europe/Paris"

FORMATS = ("ics", "csv", "json")


def unique_events(events: Iterable[CalendarEvent]) -> List[CalendarEvent]:
    """Drop repeated (equal) events, sorted by start time."""
    seen: set[CalendarEvent] = set()
    unique: List[CalendarEvent] = []
    for event in sorted(events, key=lambda e: (e.start, e.course, e.room)):
        if event in seen:
            continue
        seen.add(event)
        unique.append(event)
    return unique


def _description(event: CalendarEvent) -> str:
    lines = list(event.groups)
    if event.notes:
        lines.append(event.notes)
    return "\n".join(lines)


def build_calendar(events: Iterable[CalendarEvent]) -> icalendar.Calendar:
    """Build an iCalendar with one VEVENT per unique event."""
    cal = icalendar.Calendar()
    cal.add("prodid", "-//UT1 Timetable//EN")
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("x-wr-calname", "UT1 Capitole")
    cal.add("x-wr-timezone", TZ_PARIS)

    stamp = datetime.now(timezone.utc)
    for ev in unique_events(events):
        event = icalendar.Event()
        event.add("uid", f"{ev.uid}@ut1-timetable")
        event.add("summary", ev.course)
        event.add("location", ev.room)
        if ev.instructor:
            event.add("organizer", ev.instructor)
        description = _description(ev)
        if description:
            event.add("description", description)
        event.add("dtstart", pytz.utc.localize(ev.start))
        event.add("dtend", pytz.utc.localize(ev.end))
        event.add("dtstamp", stamp)
        cal.add_component(event)
    return cal


def export_ics(events: Iterable[CalendarEvent], out_path: str | Path) -> None:
    """Export events to iCalendar (.ics) for Apple/Google calendar."""
    Path(out_path).write_text(build_calendar(events).to_ical().decode("utf-8"), encoding="utf-8")


def _as_row(event: CalendarEvent) -> Dict[str, object]:
    return {
        "uid": event.uid,
        "start": event.start.isoformat(),
        "end": event.end.isoformat(),
        "duration": event.duration,
        "course": event.course,
        "room": event.room,
        "instructor": event.instructor,
        "groups": list(event.groups),
        "notes": event.notes,
    }


def export_csv(events: Iterable[CalendarEvent], out_path: str | Path) -> None:
    """Export events to CSV; groups are joined with ' | '."""
    rows = [_as_row(e) for e in unique_events(events)]
    fieldnames = ["uid", "start", "end", "duration", "course", "room", "instructor", "groups", "notes"]
    with open(out_path, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=fieldnames)
        w.writeheader()
        for row in rows:
            row["groups"] = " | ".join(row["groups"])
            w.writerow(row)


def export_json(events: Iterable[CalendarEvent], out_path: str | Path) -> None:
    """Export events to JSON."""
    rows = [_as_row(e) for e in unique_events(events)]
    Path(out_path).write_text(json.dumps(rows, indent=2, ensure_ascii=False), encoding="utf-8")


def export(events: Iterable[CalendarEvent], out_path: str | Path, fmt: str) -> None:
    """Export to the given format: ics, csv, or json."""
    fmt = fmt.lower()
    if fmt == "ics":
        export_ics(events, out_path)
    elif fmt == "csv":
        export_csv(events, out_path)
    elif fmt == "json":
        export_json(events, out_path)
    else:
        raise ValueError(f"Unsupported format: {fmt}. Use ics, csv, or json.")
