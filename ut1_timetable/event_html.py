"""
Parse the HTML of one planning event block into labelled fields.

The planning renders each event as an absolutely positioned block:

    <div style="position: absolute; left: 250px; top: 100px; ...">
      <table class="event" style="... height:60px">...</table>
      <div class="eventText"><b>Droit civil</b><br>AR 201<br>DUPONT Jean<br>
        L1 DROIT TD 3<br>Cours magistral<br></div>
    </div>

The text has no labels: its meaning is positional. After the bold title
come the room, the instructor, zero or more group lines and finally the
notes. The style attributes carry the only geometry information.
"""
from __future__ import annotations

import re
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup, NavigableString, Tag  # type: ignore[import]
from bs4.element import PreformattedString  # type: ignore[import]

from .errors import MalformedEventText
from .models import EventRecord


# ──────────────────────────────────────────────────────────────────
#  Style attribute helpers
# ──────────────────────────────────────────────────────────────────

_PX_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*(?:px)?\s*;?\s*$")


def parse_px(value: str) -> int:
    """Parse '250px', '250px;' or '250' into 250."""
    m = _PX_RE.match(value or "")
    if not m:
        raise ValueError(f"Not a pixel value: {value!r}")
    return int(float(m.group(1)))


def _style_property(style: str, name: str) -> Optional[str]:
    m = re.search(r"(?:^|;)\s*" + re.escape(name) + r"\s*:\s*([^;]+)", style or "", re.I)
    return m.group(1).strip() if m else None


def _required_px(style: str, name: str) -> int:
    value = _style_property(style, name)
    if value is None:
        raise ValueError(f"No '{name}' in style {style!r}")
    return parse_px(value)


def parse_position_style(style: str) -> Tuple[int, int]:
    """'position: absolute; left: 250px; top: 100px; ...' → (250, 100)."""
    return _required_px(style, "left"), _required_px(style, "top")


def parse_height_style(style: str) -> int:
    """'width:100%; height:60px' → 60."""
    return _required_px(style, "height")


def parse_size_style(style: str) -> Tuple[int, int]:
    """'overflow: hidden; width: 700px; height: 560px;' → (700, 560)."""
    return _required_px(style, "width"), _required_px(style, "height")


# ──────────────────────────────────────────────────────────────────
#  Event text
# ──────────────────────────────────────────────────────────────────

FIELD_COURSE = "course"
FIELD_ROOM = "room"
FIELD_INSTRUCTOR = "instructor"
FIELD_GROUP = "group"
FIELD_NOTES = "notes"

MIN_SEGMENTS = 4

# Closing tags left over when the blob was cut out of a larger page.
_TAG_RESIDUE = re.compile(r"^(?:</?\w+\s*/?>\s*)+$")


def _normalize(text: str) -> str:
    return " ".join(text.split())


def _is_text(piece) -> bool:
    return isinstance(piece, NavigableString) and not isinstance(piece, PreformattedString)


def _inside(piece, node: Optional[Tag]) -> bool:
    return node is not None and any(parent is node for parent in piece.parents)


def _split_on_breaks(root: Tag, skip: Optional[Tag]) -> List[str]:
    """Text of ``root`` split on <br>, ignoring everything inside ``skip``."""
    segments: List[str] = []
    current: List[str] = []
    for piece in root.descendants:
        if isinstance(piece, Tag):
            if piece.name == "br" and not _inside(piece, skip):
                segments.append("".join(current))
                current = []
            continue
        if _is_text(piece) and not _inside(piece, skip):
            current.append(str(piece))
    segments.append("".join(current))
    return segments


def _usable_segments(text_blob: str) -> List[str]:
    soup = BeautifulSoup(text_blob or "", "html.parser")
    root = soup.select_one("div.eventText") or soup

    title = root.find("b")
    values: List[str] = []
    if title is not None:
        heading = _normalize(title.get_text(" "))
        if heading:
            values.append(heading)
        else:
            title = None

    for segment in _split_on_breaks(root, skip=title):
        segment = _normalize(segment)
        if segment and not _TAG_RESIDUE.match(segment):
            values.append(segment)
    return values


def tokenize_event_text(text_blob: str) -> List[Tuple[str, str]]:
    """
    Split an event blob into ``(label, value)`` pairs.

    Labels come in the order course, room, instructor, group*, notes.
    Raises MalformedEventText when fewer than 4 segments are present.
    """
    values = _usable_segments(text_blob)
    if len(values) < MIN_SEGMENTS:
        raise MalformedEventText(
            f"Expected at least {MIN_SEGMENTS} segments "
            f"(course, room, instructor, notes), got {len(values)}: {values!r}"
        )

    course, room, instructor, *groups, notes = values
    return (
        [(FIELD_COURSE, course), (FIELD_ROOM, room), (FIELD_INSTRUCTOR, instructor)]
        + [(FIELD_GROUP, g) for g in groups]
        + [(FIELD_NOTES, notes)]
    )


def parse_event_text(text_blob: str) -> EventRecord:
    """Parse an event blob into an EventRecord."""
    fields = {}
    groups: List[str] = []
    for label, value in tokenize_event_text(text_blob):
        if label == FIELD_GROUP:
            groups.append(value)
        else:
            fields[label] = value
    return EventRecord(
        course=fields[FIELD_COURSE],
        room=fields[FIELD_ROOM],
        instructor=fields[FIELD_INSTRUCTOR],
        groups=tuple(groups),
        notes=fields[FIELD_NOTES],
    )
