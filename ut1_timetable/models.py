"""
Data model shared by the scraper, the orchestrator and the exporters.

- RawCell: one unparsed event block as the page renders it
- EventRecord: the text fields of a block once parsed
- CalendarEvent: a decoded block, ready for export
- WeekTarget / WeekOutcome / ScrapeReport: bookkeeping of one scrape run
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Tuple


@dataclass(frozen=True)
class RawCell:
    """One ``div.grilleData > div`` block: pixel position, pixel height and text."""

    x_px: int
    y_px: int
    block_height_px: int
    text_blob: str


@dataclass(frozen=True)
class EventRecord:
    course: str
    room: str
    instructor: str
    groups: Tuple[str, ...]
    notes: str


@dataclass(frozen=True)
class CalendarEvent:
    """
    One concrete event of the planning.

    ``start`` is naive; after the grid's timezone correction it is a UTC time.
    ``duration`` is in minutes.
    """

    start: datetime
    duration: int
    course: str
    room: str
    instructor: str
    groups: Tuple[str, ...] = ()
    notes: str = ""

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration)

    @property
    def uid(self) -> str:
        """Hash of every field: equal events share a uid, distinct ones do not."""
        key = "|".join(
            [self.start.isoformat(), str(self.duration), self.course, self.room,
             self.instructor, *self.groups, self.notes]
        )
        return hashlib.md5(key.encode("utf-8")).hexdigest()

    @classmethod
    def from_record(cls, start: datetime, duration: int, record: EventRecord) -> "CalendarEvent":
        return cls(
            start=start,
            duration=duration,
            course=record.course,
            room=record.room,
            instructor=record.instructor,
            groups=record.groups,
            notes=record.notes,
        )


@dataclass(frozen=True)
class WeekTarget:
    """
    A week to scrape.

    ``offset`` is the week delta: how many weeks after the current one.
    ``iso_week`` is what the pagination button shows, e.g. "(42)".
    """

    iso_week: int
    offset: int

    @property
    def is_current_week(self) -> bool:
        return self.offset == 0

    @property
    def label(self) -> str:
        return f"({self.iso_week})"


class OutcomeStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass
class WeekOutcome:
    target: WeekTarget
    status: OutcomeStatus
    events: List[CalendarEvent] = field(default_factory=list)
    skipped_cells: List[str] = field(default_factory=list)
    error: str = ""


@dataclass
class ScrapeReport:
    outcomes: List[WeekOutcome] = field(default_factory=list)

    @property
    def events(self) -> List[CalendarEvent]:
        merged: List[CalendarEvent] = []
        for outcome in self.outcomes:
            if outcome.status is OutcomeStatus.OK:
                merged.extend(outcome.events)
        return sorted(merged, key=lambda e: (e.start, e.course, e.room))

    @property
    def failed_weeks(self) -> List[WeekOutcome]:
        return [o for o in self.outcomes if o.status is OutcomeStatus.FAILED]
