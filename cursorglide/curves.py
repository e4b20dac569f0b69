"""Easing curves and arc-length-correct interpolation.

Everything here is a pure function of its arguments.  Points are plain
``(x, y)`` tuples in source-video pixel space.

Cursor paths are parameterized by *distance travelled* rather than by
the raw curve parameter.  Interpolating X and Y independently makes a
diagonal move look like "diagonal, then straight" whenever
``|dx| != |dy|``; walking an arc-length table instead keeps the
perceived speed governed only by the easing curve.
"""

import bisect
import math
from typing import List, Sequence, Tuple

Point = Tuple[float, float]
ArcLengthTable = List[Tuple[float, float]]  # (t, cumulative length)

DEFAULT_ARC_LENGTH_SAMPLES = 100
ARC_LENGTH_TOLERANCE = 1e-4
DEFAULT_TENSION = 0.5

EASING_TYPES = ("linear", "easeIn", "easeOut", "easeInOut")
DEFAULT_EASING = "easeInOut"


# ── Easing ──────────────────────────────────────────────────────────


def ease_in(t: float) -> float:
    """Cubic ease-in: f(t) = t³.  Slow start, full speed at the end."""
    return t * t * t


def ease_out(t: float) -> float:
    """Cubic ease-out: f(t) = 1 - (1-t)³.

    Mirror of :func:`ease_in`.  Most of the movement happens early and
    the curve arrives at 1.0 with zero slope.
    """
    inv = 1.0 - t
    return 1.0 - inv * inv * inv


def ease_in_out(t: float) -> float:
    """Quadratic blend: accelerate through the first half, decelerate after."""
    if t < 0.5:
        return 2.0 * t * t
    u = -2.0 * t + 2.0
    return 1.0 - u * u / 2.0


_EASING_FUNCS = {
    "linear": lambda t: t,
    "easeIn": ease_in,
    "easeOut": ease_out,
    "easeInOut": ease_in_out,
}


def ease(t: float, kind: str = "linear") -> float:
    """Apply easing *kind* to ``t``, clamped to [0, 1].

    Unknown kinds fall back to ``easeInOut``.
    """
    t = min(max(t, 0.0), 1.0)
    fn = _EASING_FUNCS.get(kind, ease_in_out)
    return fn(t)


# ── Cubic Bezier ────────────────────────────────────────────────────


def evaluate_cubic_bezier(p0: Point, p1: Point, p2: Point, p3: Point, t: float) -> Point:
    """Point on the cubic Bezier ``p0..p3`` at parameter *t*."""
    mt = 1.0 - t
    a = mt * mt * mt
    b = 3.0 * mt * mt * t
    c = 3.0 * mt * t * t
    d = t * t * t
    return (
        a * p0[0] + b * p1[0] + c * p2[0] + d * p3[0],
        a * p0[1] + b * p1[1] + c * p2[1] + d * p3[1],
    )


def cubic_bezier_derivative(p0: Point, p1: Point, p2: Point, p3: Point, t: float) -> Point:
    """First derivative (tangent) of the cubic Bezier at *t*."""
    mt = 1.0 - t
    a = 3.0 * mt * mt
    b = 6.0 * mt * t
    c = 3.0 * t * t
    return (
        a * (p1[0] - p0[0]) + b * (p2[0] - p1[0]) + c * (p3[0] - p2[0]),
        a * (p1[1] - p0[1]) + b * (p2[1] - p1[1]) + c * (p3[1] - p2[1]),
    )


def build_arc_length_table(
    p0: Point, p1: Point, p2: Point, p3: Point,
    samples: int = DEFAULT_ARC_LENGTH_SAMPLES,
) -> ArcLengthTable:
    """Sample the curve at ``samples + 1`` uniform parameters.

    Returns a monotonic list of ``(t, cumulative_length)`` pairs built
    from summed chord lengths.  The first entry is always ``(0.0, 0.0)``.
    """
    samples = max(1, int(samples))
    table: ArcLengthTable = [(0.0, 0.0)]
    prev = p0
    length = 0.0
    for i in range(1, samples + 1):
        t = i / samples
        pt = evaluate_cubic_bezier(p0, p1, p2, p3, t)
        length += math.hypot(pt[0] - prev[0], pt[1] - prev[1])
        table.append((t, length))
        prev = pt
    return table


def parameter_at_arc_length(table: ArcLengthTable, target_length: float) -> float:
    """Invert an arc-length table: the curve parameter at *target_length*.

    Binary-searches for the bracketing pair, then interpolates linearly
    between them.  Degenerate segments shorter than
    :data:`ARC_LENGTH_TOLERANCE` return the lower parameter.
    """
    if not table:
        return 0.0
    total = table[-1][1]
    if target_length <= 0.0:
        return 0.0
    if target_length >= total:
        return 1.0

    lo, hi = 0, len(table) - 1
    while lo < hi:
        mid = (lo + hi) // 2
        if table[mid][1] < target_length:
            lo = mid + 1
        else:
            hi = mid
    idx = max(1, lo)

    t0, len0 = table[idx - 1]
    t1, len1 = table[idx]
    seg = len1 - len0
    if seg < ARC_LENGTH_TOLERANCE:
        return t0
    return t0 + (t1 - t0) * (target_length - len0) / seg


class ArcLengthBezier:
    """A cubic Bezier segment with a cached arc-length table."""

    def __init__(self, p0: Point, p1: Point, p2: Point, p3: Point,
                 samples: int = DEFAULT_ARC_LENGTH_SAMPLES) -> None:
        self.points = (p0, p1, p2, p3)
        self.table = build_arc_length_table(p0, p1, p2, p3, samples)

    @property
    def total_length(self) -> float:
        return self.table[-1][1]

    def point_at_parameter(self, t: float) -> Point:
        return evaluate_cubic_bezier(*self.points, t)

    def point_at_distance(self, distance: float) -> Point:
        """Point reached after travelling *distance* pixels along the curve."""
        return self.point_at_parameter(parameter_at_arc_length(self.table, distance))

    def point_at_progress(self, progress: float) -> Point:
        """Point at a fraction (0-1) of the total arc length."""
        if progress <= 0.0:
            return self.points[0]
        if progress >= 1.0:
            return self.points[3]
        return self.point_at_distance(progress * self.total_length)

    def tangent_at_progress(self, progress: float) -> Point:
        t = parameter_at_arc_length(self.table, min(max(progress, 0.0), 1.0) * self.total_length)
        return cubic_bezier_derivative(*self.points, t)


# ── Interpolation ───────────────────────────────────────────────────


def lerp_point(start: Point, end: Point, f: float) -> Point:
    """Blend two points; exact at ``f == 0`` and ``f == 1``."""
    g = 1.0 - f
    return (start[0] * g + end[0] * f, start[1] * g + end[1] * f)


def create_smooth_bezier(start: Point, end: Point,
                         tension: float = DEFAULT_TENSION) -> Tuple[Point, Point, Point, Point]:
    """Symmetric control points pulled along the chord by *tension*."""
    dx = end[0] - start[0]
    dy = end[1] - start[1]
    p1 = (start[0] + dx * tension, start[1] + dy * tension)
    p2 = (end[0] - dx * tension, end[1] - dy * tension)
    return start, p1, p2, end


def interpolate_2d_arc_length(
    start: Point,
    end: Point,
    progress: float,
    easing: str = "linear",
    mode: str = "linear",
    tension: float = DEFAULT_TENSION,
) -> Point:
    """Position between *start* and *end* at eased arc-length *progress*.

    For ``mode="linear"`` a straight segment's arc length grows linearly
    with its parameter, so a plain blend of the eased progress is exact.
    ``mode="bezier"`` builds tension control points and walks their
    arc-length table.
    """
    eased = ease(progress, easing)
    if eased <= 0.0:
        return start
    if eased >= 1.0:
        return end
    if mode == "bezier":
        curve = ArcLengthBezier(*create_smooth_bezier(start, end, tension))
        return curve.point_at_progress(eased)
    return lerp_point(start, end, eased)


def catmull_rom_to_bezier(
    p0: Point, p1: Point, p2: Point, p3: Point,
    tension: float = DEFAULT_TENSION,
) -> Tuple[Point, Point, Point, Point]:
    """Bezier segment equivalent to the Catmull-Rom span between p1 and p2."""
    k = tension / 3.0
    cp1 = (p1[0] + (p2[0] - p0[0]) * k, p1[1] + (p2[1] - p0[1]) * k)
    cp2 = (p2[0] - (p3[0] - p1[0]) * k, p2[1] - (p3[1] - p1[1]) * k)
    return p1, cp1, cp2, p2


def interpolate_catmull_rom_arc_length(
    p0: Point, p1: Point, p2: Point, p3: Point,
    t: float,
    easing: str = "linear",
    tension: float = DEFAULT_TENSION,
) -> Point:
    """Arc-length-correct position on the p1→p2 span of a Catmull-Rom spline."""
    eased = ease(t, easing)
    if eased <= 0.0:
        return p1
    if eased >= 1.0:
        return p2
    curve = ArcLengthBezier(*catmull_rom_to_bezier(p0, p1, p2, p3, tension))
    return curve.point_at_progress(eased)


def interpolate_path_arc_length(points: Sequence[Point], progress: float,
                                easing: str = "linear") -> Point:
    """Position along a polyline at eased fraction of its total length."""
    if not points:
        raise ValueError("path needs at least one point")
    if len(points) == 1:
        return points[0]

    cumulative = [0.0]
    for a, b in zip(points, points[1:]):
        cumulative.append(cumulative[-1] + math.hypot(b[0] - a[0], b[1] - a[1]))
    total = cumulative[-1]

    eased = ease(progress, easing)
    if eased <= 0.0 or total < ARC_LENGTH_TOLERANCE:
        return points[0]
    if eased >= 1.0:
        return points[-1]

    target = eased * total
    idx = bisect.bisect_left(cumulative, target)
    idx = min(max(idx, 1), len(points) - 1)
    seg = cumulative[idx] - cumulative[idx - 1]
    if seg < ARC_LENGTH_TOLERANCE:
        return points[idx]
    return lerp_point(points[idx - 1], points[idx], (target - cumulative[idx - 1]) / seg)


def interpolate_position_and_value(
    start: Point, end: Point,
    start_value: float, end_value: float,
    progress: float,
    easing: str = "linear",
) -> Tuple[Point, float]:
    """Position and a scalar (e.g. size) driven by the same eased progress."""
    eased = ease(progress, easing)
    position = interpolate_2d_arc_length(start, end, eased, "linear")
    return position, start_value + (end_value - start_value) * eased


def lerp(a: float, b: float, f: float) -> float:
    return a * (1.0 - f) + b * f


def clamp(value: float, lo: float, hi: float) -> float:
    return min(max(value, lo), hi)


def distance(a: Point, b: Point) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])

