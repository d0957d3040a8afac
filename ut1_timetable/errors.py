"""
Error taxonomy shared by the page accessor, the week workers and the orchestrator.

Only ContainerUnavailable aborts a run. Week-level errors fail one week,
cell-level errors skip one cell.
"""
from __future__ import annotations


class TimetableError(Exception):
    """Base class for every error raised while scraping the planning."""


class ContainerUnavailable(TimetableError):
    """The grid container could not be read, so no geometry can be decoded."""


class PageAccessError(TimetableError):
    """The browser session failed (navigation, element lookup, driver crash)."""


class PaginationNotFound(TimetableError):
    """No pagination button carries the requested week label."""

    def __init__(self, label: str):
        super().__init__(f"No pagination control labelled {label!r}")
        self.label = label


class CellError(TimetableError):
    """A single event block could not be turned into a calendar event."""


class MalformedEventText(CellError):
    """The event text blob does not hold the expected labelled segments."""


class GeometryOutOfRange(CellError):
    """An event block's position or size falls outside the grid."""
