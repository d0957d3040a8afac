"""
Convert pixel geometry of the planning grid into dates and durations.

The planning renders one week as an absolutely positioned grid: columns are
days, rows are half hours from 07:00 to 21:00. Nothing in the page carries a
timestamp, so the start of an event is read from its ``left``/``top`` offsets
and its duration from its height.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Tuple

from .errors import GeometryOutOfRange

SLOT_MINUTES = 30

# The grid is drawn one hour ahead of the times written to the calendar.
TIMEZONE_CORRECTION = timedelta(hours=-1)


@dataclass(frozen=True)
class GridContainer:
    """
    Pixel size and layout of ``div.grilleData``.

    ``day_count`` is 7 for the full-week view. Some planning views only
    render Monday to Saturday (6 columns); pass the count the view really
    shows, it is not detected from the page.
    """

    width_px: int
    height_px: int
    day_count: int = 7
    start_hour: int = 7
    end_hour: int = 21

    def __post_init__(self) -> None:
        if self.width_px <= 0 or self.height_px <= 0:
            raise ValueError(
                f"Grid container must have a positive size, got {self.width_px}x{self.height_px}"
            )
        if self.day_count <= 0:
            raise ValueError(f"day_count must be positive, got {self.day_count}")
        if self.end_hour <= self.start_hour:
            raise ValueError(f"Empty hour span {self.start_hour}-{self.end_hour}")

    @property
    def half_hour_slots(self) -> int:
        return (self.end_hour - self.start_hour) * 60 // SLOT_MINUTES

    @property
    def day_px(self) -> float:
        return self.width_px / self.day_count

    @property
    def half_hour_px(self) -> float:
        return self.height_px / self.half_hour_slots


@dataclass(frozen=True)
class GridOffsets:
    weekday: int
    time_minutes: int
    duration_minutes: int


def _whole_units(px: int, total_px: int, units: int) -> int:
    """How many whole ``total_px / units`` steps fit in ``px``, truncated toward zero."""
    steps = abs(px) * units // total_px
    return steps if px >= 0 else -steps


def decode_offsets(
    container: GridContainer, x_px: int, y_px: int, block_height_px: int
) -> GridOffsets:
    """
    Read weekday, time-of-day and duration from a block's pixels.

    No bounds check here: see :func:`check_in_range`.
    """
    slots = container.half_hour_slots
    return GridOffsets(
        weekday=_whole_units(x_px, container.width_px, container.day_count),
        time_minutes=_whole_units(y_px, container.height_px, slots) * SLOT_MINUTES,
        duration_minutes=_whole_units(block_height_px, container.height_px, slots) * SLOT_MINUTES,
    )


def check_in_range(container: GridContainer, offsets: GridOffsets) -> None:
    """Raise GeometryOutOfRange if the decoded block does not fit in the grid."""
    span_minutes = container.half_hour_slots * SLOT_MINUTES
    if not 0 <= offsets.weekday < container.day_count:
        raise GeometryOutOfRange(
            f"weekday offset {offsets.weekday} outside 0..{container.day_count - 1}"
        )
    if not 0 <= offsets.time_minutes < span_minutes:
        raise GeometryOutOfRange(f"time offset {offsets.time_minutes} min outside the grid")
    if offsets.duration_minutes < 0:
        raise GeometryOutOfRange(f"negative duration {offsets.duration_minutes} min")
    if offsets.time_minutes + offsets.duration_minutes > span_minutes:
        raise GeometryOutOfRange(
            f"block of {offsets.duration_minutes} min at +{offsets.time_minutes} min overruns the grid"
        )


def decode(
    container: GridContainer,
    x_px: int,
    y_px: int,
    block_height_px: int,
    week_delta: int,
    anchor_monday_7am: datetime,
    correction: timedelta = TIMEZONE_CORRECTION,
) -> Tuple[datetime, int]:
    """
    Return ``(start, duration_minutes)`` for a block of the grid.

    ``anchor_monday_7am`` is the Monday of the week the run started in, and
    ``week_delta`` the number of weeks the decoded page lies after it.
    """
    offsets = decode_offsets(container, x_px, y_px, block_height_px)
    start = (
        anchor_monday_7am
        + timedelta(days=offsets.weekday + 7 * week_delta, minutes=offsets.time_minutes)
        + correction
    )
    return start, offsets.duration_minutes


def monday_anchor(now: datetime, start_hour: int = 7) -> datetime:
    """Most recent Monday at ``start_hour`` (today if ``now`` is a Monday)."""
    monday = now.date() - timedelta(days=now.weekday())
    return datetime(monday.year, monday.month, monday.day, start_hour)
