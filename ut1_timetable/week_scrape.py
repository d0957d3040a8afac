"""
Scrape one week of the planning through a page accessor.

A worker drives a single page session: it pages to its week when that week
is not the one shown after login, reads the event blocks, and turns each one
into a CalendarEvent. A bad block is skipped; only page failures fail the week.
"""
from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import List

from .errors import CellError
from .event_html import parse_event_text
from .grid_geometry import GridContainer, check_in_range, decode, decode_offsets
from .models import CalendarEvent, OutcomeStatus, RawCell, WeekOutcome, WeekTarget

logger = logging.getLogger(__name__)


class WorkerState(str, Enum):
    IDLE = "idle"
    NAVIGATED = "navigated"
    CELLS_FETCHED = "cells_fetched"
    PARSED = "parsed"
    DONE = "done"
    FAILED = "failed"


def decode_cell(
    cell: RawCell, container: GridContainer, week_delta: int, anchor: datetime
) -> CalendarEvent:
    """Build the event of one block; raises a CellError subclass if it cannot."""
    check_in_range(container, decode_offsets(container, cell.x_px, cell.y_px, cell.block_height_px))
    start, duration = decode(
        container, cell.x_px, cell.y_px, cell.block_height_px, week_delta, anchor
    )
    return CalendarEvent.from_record(start, duration, parse_event_text(cell.text_blob))


class WeekScrapeWorker:
    """
    Scrape ``target`` on ``page`` using the run-wide ``container`` and ``anchor``.

    ``page`` must already be open on the planning (the week shown after login).
    """

    def __init__(self, page, container: GridContainer, target: WeekTarget, anchor: datetime):
        self.page = page
        self.container = container
        self.target = target
        self.anchor = anchor
        self.state = WorkerState.IDLE

    def run(self) -> WeekOutcome:
        """
        Return the week's outcome (``ok`` or ``empty``).

        Page errors (pagination, navigation, driver) are raised after moving
        the worker to the ``failed`` state.
        """
        try:
            if not self.target.is_current_week:
                self.page.activate_week(self.target.label)
                self.state = WorkerState.NAVIGATED

            cells = self.page.list_event_cells()
            self.state = WorkerState.CELLS_FETCHED
        except Exception:
            self.state = WorkerState.FAILED
            raise

        if not cells:
            logger.info("No event for week %d", self.target.iso_week)
            self.state = WorkerState.DONE
            return WeekOutcome(self.target, OutcomeStatus.EMPTY)

        events: List[CalendarEvent] = []
        skipped: List[str] = []
        for cell in cells:
            try:
                events.append(decode_cell(cell, self.container, self.target.offset, self.anchor))
            except CellError as e:
                logger.warning(
                    "Week %d: skipping block at (%d, %d): %s",
                    self.target.iso_week, cell.x_px, cell.y_px, e,
                )
                skipped.append(f"({cell.x_px}, {cell.y_px}): {e}")
        self.state = WorkerState.PARSED

        logger.info(
            "Week %d: %d event(s), %d block(s) skipped",
            self.target.iso_week, len(events), len(skipped),
        )
        self.state = WorkerState.DONE
        status = OutcomeStatus.OK if events else OutcomeStatus.EMPTY
        return WeekOutcome(self.target, status, events=events, skipped_cells=skipped)
