import csv
import json
import pytest
from datetime import datetime

from ut1_timetable.export import build_calendar, export, export_ics, unique_events
from ut1_timetable.models import CalendarEvent


def _event(**kwargs) -> CalendarEvent:
    fields = dict(
        start=datetime(2026, 10, 14, 8, 30),
        duration=90,
        course="Droit civil",
        room="AR 201",
        instructor="DUPONT Jean",
        groups=("L1 DROIT TD 3",),
        notes="Cours magistral",
    )
    fields.update(kwargs)
    return CalendarEvent(**fields)


def test_export_ics(tmp_path):
    out_path = tmp_path / "test.ics"
    export_ics([_event()], out_path)

    assert out_path.exists()
    content = out_path.read_text(encoding="utf-8")

    assert "BEGIN:VCALENDAR" in content
    assert "BEGIN:VEVENT" in content
    assert "END:VEVENT" in content
    assert "END:VCALENDAR" in content

    # Decoded times are UTC
    assert "DTSTART:20261014T083000Z" in content
    assert "DTEND:20261014T100000Z" in content

    assert "SUMMARY:Droit civil" in content
    assert "LOCATION:AR 201" in content
    assert "DUPONT Jean" in content
    assert "Cours magistral" in content
    assert "@ut1-timetable" in content
    assert "X-WR-TIMEZONE:Europe/Paris" in content


def test_duplicate_events_exported_once():
    events = [_event(), _event(), _event(course="Stats")]
    cal = build_calendar(events)
    assert len(cal.walk("VEVENT")) == 2


def test_same_slot_different_groups_both_exported(tmp_path):
    td3 = _event(instructor="DUPONT Jean", groups=("L1 DROIT TD 3",))
    td4 = _event(instructor="MARTIN Paul", groups=("L1 DROIT TD 4",))
    assert len(build_calendar([td3, td4]).walk("VEVENT")) == 2

    out = tmp_path / "out.json"
    export([td3, td4], out, "json")
    data = json.loads(out.read_text(encoding="utf-8"))
    assert sorted(row["instructor"] for row in data) == ["DUPONT Jean", "MARTIN Paul"]


def test_uid_is_deterministic():
    assert _event().uid == _event().uid
    assert _event().uid != _event(room="AR 202").uid
    assert _event().uid != _event(groups=("L1 DROIT TD 4",)).uid
    assert _event().uid != _event(instructor="MARTIN Paul").uid


def test_unique_events_sorted_by_start():
    late = _event(start=datetime(2026, 10, 15, 9, 0))
    early = _event(start=datetime(2026, 10, 13, 9, 0))
    assert unique_events([late, early, late]) == [early, late]


def test_export_json(tmp_path):
    out = tmp_path / "out.json"
    export([_event()], out, "json")
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data[0]["course"] == "Droit civil"
    assert data[0]["start"] == "2026-10-14T08:30:00"
    assert data[0]["end"] == "2026-10-14T10:00:00"
    assert data[0]["groups"] == ["L1 DROIT TD 3"]


def test_export_csv(tmp_path):
    out = tmp_path / "out.csv"
    export([_event(groups=("A", "B"))], out, "CSV")
    with open(out, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == 1
    assert rows[0]["groups"] == "A | B"
    assert rows[0]["duration"] == "90"


def test_export_empty_calendar(tmp_path):
    out = tmp_path / "empty.ics"
    export([], out, "ics")
    content = out.read_text(encoding="utf-8")
    assert "BEGIN:VCALENDAR" in content
    assert "BEGIN:VEVENT" not in content


def test_unsupported_format(tmp_path):
    with pytest.raises(ValueError, match="Unsupported format"):
        export([_event()], tmp_path / "x.txt", "txt")
