"""Classify mouse activity into static and moving zoom sections.

Walking the event timeline, the analyzer keeps one open section at a
time:

1. **Static** — the cursor stays within ``dead_zone`` pixels of the
   point where it settled.  The section zooms in on that point.

2. **Moving** — the cursor is travelling.  The section shows the whole
   frame (scale 1.0, frame center).  At every event the analyzer looks
   ahead up to ``min_static_duration`` ms to see whether the cursor is
   about to rest that long; if so the moving section closes and a
   static one opens on the current event.

The section count depends on the physical path, not on how densely it
was sampled.  Helpers for cleaning up raw event streams live at the
bottom of the module.
"""

import logging
import math
from typing import List, Optional

from .config import DEFAULT_DEAD_ZONE, DEFAULT_MIN_STATIC_DURATION, DEFAULT_ZOOM_LEVEL
from .models import MouseEvent, ZoomSection

logger = logging.getLogger(__name__)


# ── Tuning constants ────────────────────────────────────────────────

DUPLICATE_THRESHOLD_PX = 1.0   # positions closer than this are duplicates
DEFAULT_SMOOTHING_FACTOR = 0.3


def _dist(ax: float, ay: float, bx: float, by: float) -> float:
    return math.hypot(bx - ax, by - ay)


def _settles_at(events: List[MouseEvent], i: int, dead_zone: float,
                min_static_duration: float) -> bool:
    """True if the cursor stays near ``events[i]`` for long enough.

    The scan is bounded by time, not by event count, so the answer does
    not depend on how densely the path was sampled.
    """
    anchor = events[i]
    for j in range(i + 1, len(events)):
        ev = events[j]
        if _dist(anchor.x, anchor.y, ev.x, ev.y) > dead_zone:
            return False
        if ev.timestamp - anchor.timestamp >= min_static_duration:
            return True
    return False


def detect_zoom_sections(
    events: List[MouseEvent],
    video_width: float,
    video_height: float,
    zoom_level: float = DEFAULT_ZOOM_LEVEL,
    dead_zone: float = DEFAULT_DEAD_ZONE,
    min_static_duration: float = DEFAULT_MIN_STATIC_DURATION,
) -> List[ZoomSection]:
    """Split *events* into alternating static / moving zoom sections.

    The timeline opens in static mode centered on the first event.
    Sections are contiguous: each one starts where the previous ended,
    and the last one closes at the final event's timestamp.
    """
    if not events:
        return []

    zoom_level = max(1.0, zoom_level)
    frame_cx = video_width / 2.0
    frame_cy = video_height / 2.0

    sections: List[ZoomSection] = []
    is_static = True
    start = events[0].timestamp
    center_x, center_y = events[0].x, events[0].y

    def close(end: float) -> None:
        if is_static:
            sections.append(ZoomSection(start, end, zoom_level, center_x, center_y))
        else:
            sections.append(ZoomSection(start, end, 1.0, frame_cx, frame_cy))

    for i in range(1, len(events)):
        ev = events[i]
        if is_static:
            if _dist(center_x, center_y, ev.x, ev.y) > dead_zone:
                close(ev.timestamp)
                is_static = False
                start = ev.timestamp
        elif _settles_at(events, i, dead_zone, min_static_duration):
            close(ev.timestamp)
            is_static = True
            start = ev.timestamp
            center_x, center_y = ev.x, ev.y

    close(events[-1].timestamp)
    logger.info(
        "Detected %d zoom sections (%d static) from %d events",
        len(sections), sum(1 for s in sections if s.scale > 1.0), len(events),
    )
    return sections


def section_at(sections: List[ZoomSection], t: float) -> Optional[ZoomSection]:
    """The section active at *t*; on a shared boundary the earlier wins."""
    for s in sections:
        if s.start_time > t:
            break
        if t <= s.end_time:
            return s
    return None


# ── Event stream helpers ────────────────────────────────────────────


def remove_duplicate_positions(events: List[MouseEvent],
                               threshold: float = DUPLICATE_THRESHOLD_PX) -> List[MouseEvent]:
    """Drop consecutive move samples that barely moved.

    Button events are always kept since they carry click timing.
    """
    if not events:
        return []
    result = [events[0]]
    for ev in events[1:]:
        last = result[-1]
        if ev.action != "move" or _dist(last.x, last.y, ev.x, ev.y) >= threshold:
            result.append(ev)
    return result


def smooth_mouse_movement(events: List[MouseEvent],
                          factor: float = DEFAULT_SMOOTHING_FACTOR) -> List[MouseEvent]:
    """Exponential moving average over positions; ``factor`` is the new-sample weight."""
    if not events:
        return []
    x, y = events[0].x, events[0].y
    result = [events[0]]
    for ev in events[1:]:
        x = x + (ev.x - x) * factor
        y = y + (ev.y - y) * factor
        result.append(MouseEvent(x, y, ev.timestamp, ev.action, ev.button, ev.cursor_type))
    return result


def _catmull_rom(p0: float, p1: float, p2: float, p3: float, t: float) -> float:
    t2 = t * t
    t3 = t2 * t
    return 0.5 * (
        2 * p1
        + (-p0 + p2) * t
        + (2 * p0 - 5 * p1 + 4 * p2 - p3) * t2
        + (-p0 + 3 * p1 - 3 * p2 + p3) * t3
    )


def interpolate_mouse_positions(events: List[MouseEvent], t: float) -> Optional[MouseEvent]:
    """Cursor position at *t* from raw samples.

    Uses a Catmull-Rom spline through the four surrounding samples and
    plain linear blending on the first and last spans.  Times outside
    the recording clamp to the nearest sample.
    """
    if not events:
        return None
    if t <= events[0].timestamp:
        return events[0]
    if t >= events[-1].timestamp:
        return events[-1]

    lo, hi = 0, len(events) - 1
    while lo < hi - 1:
        mid = (lo + hi) // 2
        if events[mid].timestamp <= t:
            lo = mid
        else:
            hi = mid
    a, b = events[lo], events[hi]
    span = b.timestamp - a.timestamp
    frac = (t - a.timestamp) / span if span > 0 else 0.0

    if 0 < lo and hi < len(events) - 1:
        p0, p3 = events[lo - 1], events[hi + 1]
        x = _catmull_rom(p0.x, a.x, b.x, p3.x, frac)
        y = _catmull_rom(p0.y, a.y, b.y, p3.y, frac)
    else:
        x = a.x + (b.x - a.x) * frac
        y = a.y + (b.y - a.y) * frac
    return MouseEvent(x, y, t, "move", "", a.cursor_type)
