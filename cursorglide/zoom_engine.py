"""Zoom engine — turns zoom sections into a dense, smoothed region track.

Sections are step targets; playing them back directly would jump.  The
engine drives a :class:`ZoomSpring` (a scalar spring for the scale and
a 2-D spring for the center) through every frame in timestamp order,
producing one :class:`ZoomRegion` per frame.  The spring carries state
forward, so this pass is sequential and must run before frames are
composited in parallel.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from .activity_analyzer import section_at
from .config import ZoomConfig
from .errors import ZoomRegionUnavailableError
from .models import ZoomRegion, ZoomSection
from .smoothing import SmoothPosition2D, SmoothValue
from .utils import frame_count, frame_timestamp

logger = logging.getLogger(__name__)

TIMESTAMP_TOLERANCE_MS = 16.0  # nearest-entry match window for lookups


def calculate_zoom_region(center_x: float, center_y: float,
                          width: float, height: float,
                          level: float, timestamp: float = 0.0) -> ZoomRegion:
    """Crop of ``frame / level`` around a center, kept inside the frame."""
    level = max(1.0, level)
    crop_w = width / level
    crop_h = height / level
    half_w = crop_w / 2.0
    half_h = crop_h / 2.0
    cx = min(max(center_x, half_w), width - half_w)
    cy = min(max(center_y, half_h), height - half_h)
    return ZoomRegion(timestamp, cx, cy, crop_w, crop_h, level)


def neutral_region(width: float, height: float, timestamp: float = 0.0) -> ZoomRegion:
    return ZoomRegion(timestamp, width / 2.0, height / 2.0, width, height, 1.0)


@dataclass
class ZoomSpring:
    """Explicit spring state for one zoom-resolution pass."""
    scale: SmoothValue
    center: SmoothPosition2D

    @staticmethod
    def at_rest(width: float, height: float, smooth_time: float) -> "ZoomSpring":
        """A spring showing the full frame."""
        return ZoomSpring(
            scale=SmoothValue(1.0, smooth_time),
            center=SmoothPosition2D(width / 2.0, height / 2.0, smooth_time),
        )


def generate_smoothed_zoom(
    sections: List[ZoomSection],
    width: float,
    height: float,
    config: ZoomConfig,
    frame_rate: float,
    duration_ms: float,
    spring: Optional[ZoomSpring] = None,
) -> List[ZoomRegion]:
    """Resolve one smoothed :class:`ZoomRegion` per output frame.

    Returns an empty list when zoom is disabled.  Frames not covered by
    any section target the neutral full-frame view.  The spring is fed a
    fixed ``1 / frame_rate`` step so every render of the same input
    produces the same track.
    """
    if not config.enabled:
        return []
    if spring is None:
        spring = ZoomSpring.at_rest(width, height, config.smooth_time)

    dt = 1.0 / frame_rate
    total = frame_count(duration_ms, frame_rate)
    regions: List[ZoomRegion] = []
    for i in range(total):
        t = frame_timestamp(i, frame_rate, duration_ms)
        section = section_at(sections, t)
        if section is None:
            spring.scale.set_target(1.0)
            spring.center.set_target(width / 2.0, height / 2.0)
        else:
            spring.scale.set_target(section.scale)
            spring.center.set_target(section.center_x, section.center_y)
        scale = spring.scale.update(dt)
        cx, cy = spring.center.update(dt)
        regions.append(calculate_zoom_region(cx, cy, width, height, scale, t))

    logger.debug("Resolved %d zoom regions from %d sections", len(regions), len(sections))
    return regions


def zoom_region_at_frame(regions: List[ZoomRegion], index: int) -> ZoomRegion:
    """Region for frame *index*; raises if the table does not cover it."""
    if not 0 <= index < len(regions):
        raise ZoomRegionUnavailableError(
            f"No zoom region for frame {index} (table has {len(regions)})")
    return regions[index]


def zoom_region_at_timestamp(regions: List[ZoomRegion], t: float,
                             tolerance: float = TIMESTAMP_TOLERANCE_MS) -> ZoomRegion:
    """Region at time *t* (ms).

    An entry within *tolerance* ms is returned as-is; otherwise the two
    bracketing entries are blended linearly.  Times more than
    *tolerance* outside the table raise
    :class:`ZoomRegionUnavailableError`.
    """
    if not regions:
        raise ZoomRegionUnavailableError("Zoom region table is empty")
    first, last = regions[0], regions[-1]
    if t < first.timestamp - tolerance or t > last.timestamp + tolerance:
        raise ZoomRegionUnavailableError(
            f"Timestamp {t} outside zoom table [{first.timestamp}, {last.timestamp}]")
    if t <= first.timestamp:
        return first
    if t >= last.timestamp:
        return last

    lo, hi = 0, len(regions) - 1
    while lo < hi - 1:
        mid = (lo + hi) // 2
        if regions[mid].timestamp <= t:
            lo = mid
        else:
            hi = mid
    a, b = regions[lo], regions[hi]
    if t - a.timestamp <= tolerance and t - a.timestamp <= b.timestamp - t:
        return a
    if b.timestamp - t <= tolerance:
        return b

    f = (t - a.timestamp) / (b.timestamp - a.timestamp)
    return ZoomRegion(
        timestamp=t,
        center_x=a.center_x + (b.center_x - a.center_x) * f,
        center_y=a.center_y + (b.center_y - a.center_y) * f,
        crop_width=a.crop_width + (b.crop_width - a.crop_width) * f,
        crop_height=a.crop_height + (b.crop_height - a.crop_height) * f,
        scale=a.scale + (b.scale - a.scale) * f,
    )
