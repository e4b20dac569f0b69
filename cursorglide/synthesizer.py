"""Frame state synthesizer — one fully-resolved :class:`FrameState` per frame.

Two entry points feed the same per-frame derivation:

* :func:`create_frame_states_from_keyframes` — authored cursor keyframes
  resolved with arc-length interpolation (Catmull-Rom when neighbours
  exist on both sides of the bracketing pair, a straight segment
  otherwise).
* :func:`create_frame_states_from_events` — raw mouse samples, followed
  by a spring with look-ahead so the cursor glides rather than jitters.

Both then derive velocity, visibility, stabilized shape, click scale and
zoom for every frame.
"""

import bisect
import logging
import math
from typing import List, Optional, Sequence, Tuple

from .activity_analyzer import detect_zoom_sections, interpolate_mouse_positions
from .config import CursorConfig, ZoomConfig
from .cursor_renderer import to_cursor_shape
from .curves import (
    clamp,
    ease_in,
    ease_out,
    interpolate_2d_arc_length,
    interpolate_catmull_rom_arc_length,
    lerp,
)
from .errors import ZoomRegionUnavailableError
from .models import (
    ClickEvent,
    CursorKeyframe,
    FrameState,
    MouseEvent,
    VideoInfo,
    ZoomRegion,
    ZoomSection,
    validate_cursor_keyframes,
)
from .smoothing import SmoothPosition2D, calculate_adaptive_smooth_time
from .utils import frame_count, frame_timestamp
from .zoom_engine import ZoomSpring, generate_smoothed_zoom, neutral_region, zoom_region_at_frame

logger = logging.getLogger(__name__)

DEFAULT_SHAPE_LOOKAHEAD_MS = 100.0
DEFAULT_CLICK_DURATION_MS = 200.0
DEFAULT_CLICK_SCALE = 0.8


# ── Shape stabilization ─────────────────────────────────────────────


class CursorTypeStabilizer:
    """Suppresses cursor-shape flicker from noisy telemetry.

    A change to a new shape is accepted only if the samples within
    ``lookahead_ms`` after it do not revert to the shape that was active
    before.  The accepted changes form a step timeline queried with
    :meth:`shape_at`.
    """

    def __init__(self, samples: Sequence[Tuple[float, str]],
                 lookahead_ms: float = DEFAULT_SHAPE_LOOKAHEAD_MS,
                 default_shape: str = "arrow") -> None:
        self.lookahead_ms = lookahead_ms
        self.default_shape = default_shape
        self._times: List[float] = []
        self._shapes: List[str] = []
        self._build(list(samples))

    def _build(self, samples: List[Tuple[float, str]]) -> None:
        if not samples:
            return
        current = samples[0][1]
        self._times.append(samples[0][0])
        self._shapes.append(current)
        for i in range(1, len(samples)):
            ts, shape = samples[i]
            if shape == current:
                continue
            reverted = False
            for j in range(i + 1, len(samples)):
                ts_j, shape_j = samples[j]
                if ts_j - ts > self.lookahead_ms:
                    break
                if shape_j == current:
                    reverted = True
                    break
            if reverted:
                logger.debug("Suppressed %s flicker at %.0f ms", shape, ts)
                continue
            current = shape
            self._times.append(ts)
            self._shapes.append(current)

    @property
    def changes(self) -> List[Tuple[float, str]]:
        return list(zip(self._times, self._shapes))

    def shape_at(self, t: float) -> str:
        if not self._shapes:
            return self.default_shape
        idx = bisect.bisect_right(self._times, t) - 1
        return self._shapes[max(idx, 0)]


# ── Cursor position ─────────────────────────────────────────────────


def interpolate_cursor_position(
    keyframes: List[CursorKeyframe], t: float,
) -> Optional[Tuple[float, float, Optional[float]]]:
    """Resolve ``(x, y, size)`` at time *t*; ``None`` without keyframes.

    Times before the first or after the last keyframe hold that
    keyframe's value.  The easing of the earlier keyframe shapes the
    segment.
    """
    n = len(keyframes)
    if n == 0:
        return None
    first, last = keyframes[0], keyframes[-1]
    if n == 1 or t <= first.timestamp:
        return first.x, first.y, first.size
    if t >= last.timestamp:
        return last.x, last.y, last.size

    times = [kf.timestamp for kf in keyframes]
    idx = bisect.bisect_right(times, t) - 1
    prev, nxt = keyframes[idx], keyframes[idx + 1]
    span = nxt.timestamp - prev.timestamp
    progress = min(max((t - prev.timestamp) / span, 0.0), 1.0) if span > 0 else 1.0

    if idx >= 1 and idx + 2 < n:
        before, after = keyframes[idx - 1], keyframes[idx + 2]
        x, y = interpolate_catmull_rom_arc_length(
            (before.x, before.y), (prev.x, prev.y), (nxt.x, nxt.y), (after.x, after.y),
            progress, prev.easing,
        )
    else:
        x, y = interpolate_2d_arc_length(
            (prev.x, prev.y), (nxt.x, nxt.y), progress, prev.easing)

    if prev.size is not None and nxt.size is not None:
        size: Optional[float] = lerp(prev.size, nxt.size, progress)
    else:
        size = prev.size if prev.size is not None else nxt.size
    return x, y, size


# ── Click animation ─────────────────────────────────────────────────


def calculate_click_animation_scale(
    t: float,
    clicks: List[ClickEvent],
    duration_ms: float = DEFAULT_CLICK_DURATION_MS,
    scale_floor: float = DEFAULT_CLICK_SCALE,
) -> float:
    """Press-in scale for the cursor at time *t*.

    The most recent ``down`` click within ``duration_ms`` at or before
    *t* drives the animation: ease-out from 1.0 to *scale_floor* over
    the first half, ease-in back to 1.0 over the second.
    """
    recent: Optional[ClickEvent] = None
    for click in clicks:
        if click.action != "down" or click.timestamp > t:
            continue
        if t - click.timestamp <= duration_ms:
            if recent is None or click.timestamp > recent.timestamp:
                recent = click
    if recent is None or duration_ms <= 0:
        return 1.0

    progress = (t - recent.timestamp) / duration_ms
    depth = 1.0 - scale_floor
    if progress < 0.5:
        return 1.0 - depth * ease_out(progress * 2.0)
    return 1.0 - depth * (1.0 - ease_in((progress - 0.5) * 2.0))


# ── Per-frame assembly ──────────────────────────────────────────────


def _resolve_zoom(regions: List[ZoomRegion], index: int,
                  video: VideoInfo, t: float) -> ZoomRegion:
    try:
        return zoom_region_at_frame(regions, index)
    except ZoomRegionUnavailableError as exc:
        logger.debug("%s; using neutral zoom", exc)
        return neutral_region(video.width, video.height, t)


def _assemble_states(
    positions: List[Tuple[float, float]],
    sizes: List[Optional[float]],
    stabilizer: CursorTypeStabilizer,
    video: VideoInfo,
    cursor_config: CursorConfig,
    zoom_config: ZoomConfig,
    zoom_sections: List[ZoomSection],
    clicks: List[ClickEvent],
    zoom_spring: Optional[ZoomSpring],
) -> List[FrameState]:
    fps = video.frame_rate
    dt = 1.0 / fps
    total = len(positions)

    regions: List[ZoomRegion] = []
    if zoom_config.enabled:
        regions = generate_smoothed_zoom(
            zoom_sections, video.width, video.height, zoom_config,
            fps, video.duration, spring=zoom_spring,
        )

    max_size = float(min(video.width, video.height))
    states: List[FrameState] = []
    prev_pos = positions[0] if positions else (0.0, 0.0)
    prev_zoom: Optional[ZoomRegion] = None
    last_move_t = 0.0

    for i in range(total):
        t = frame_timestamp(i, fps, video.duration)
        x, y = positions[i]

        vx = (x - prev_pos[0]) / dt
        vy = (y - prev_pos[1]) / dt
        if math.hypot(x - prev_pos[0], y - prev_pos[1]) > cursor_config.static_threshold:
            last_move_t = t
        prev_pos = (x, y)

        visible = True
        if cursor_config.hide_when_static:
            visible = (t - last_move_t) <= cursor_config.hide_after_ms

        size = sizes[i] if sizes[i] is not None else cursor_config.clamped_size
        size = clamp(size, 1.0, max_size)

        click_scale = calculate_click_animation_scale(
            t, clicks, cursor_config.click_duration_ms, cursor_config.click_scale)

        if zoom_config.enabled:
            region = _resolve_zoom(regions, i, video, t)
        else:
            region = neutral_region(video.width, video.height, t)
        if prev_zoom is None:
            zvx = zvy = 0.0
        else:
            zvx = (region.center_x - prev_zoom.center_x) / dt
            zvy = (region.center_y - prev_zoom.center_y) / dt
        prev_zoom = region

        states.append(FrameState(
            frame_index=i,
            timestamp=t,
            cursor_x=x,
            cursor_y=y,
            cursor_visible=visible,
            cursor_velocity_x=vx,
            cursor_velocity_y=vy,
            cursor_shape=stabilizer.shape_at(t),
            cursor_size=size,
            click_animation_scale=click_scale,
            zoom_center_x=region.center_x,
            zoom_center_y=region.center_y,
            zoom_level=region.scale,
            zoom_velocity_x=zvx,
            zoom_velocity_y=zvy,
        ))
    return states


def create_frame_states_from_keyframes(
    keyframes: List[CursorKeyframe],
    video: VideoInfo,
    cursor_config: Optional[CursorConfig] = None,
    zoom_config: Optional[ZoomConfig] = None,
    zoom_sections: Optional[List[ZoomSection]] = None,
    clicks: Optional[List[ClickEvent]] = None,
    zoom_spring: Optional[ZoomSpring] = None,
) -> List[FrameState]:
    """Frame states for an authored keyframe timeline.

    Raises :class:`~cursorglide.errors.InvalidKeyframeDataError` for
    unordered or non-finite keyframes.  Without keyframes the cursor sits
    at the frame center.
    """
    cursor_config = cursor_config or CursorConfig()
    zoom_config = zoom_config or ZoomConfig()
    validate_cursor_keyframes(keyframes)

    total = frame_count(video.duration, video.frame_rate)
    positions: List[Tuple[float, float]] = []
    sizes: List[Optional[float]] = []
    for i in range(total):
        t = frame_timestamp(i, video.frame_rate, video.duration)
        resolved = interpolate_cursor_position(keyframes, t)
        if resolved is None:
            x, y, size = video.width / 2.0, video.height / 2.0, None
        else:
            x, y, size = resolved
        positions.append((clamp(x, 0.0, video.width), clamp(y, 0.0, video.height)))
        sizes.append(size)

    stabilizer = CursorTypeStabilizer(
        [(kf.timestamp, kf.shape or cursor_config.shape) for kf in keyframes],
        cursor_config.shape_lookahead_ms,
        default_shape=cursor_config.shape,
    )
    states = _assemble_states(
        positions, sizes, stabilizer, video, cursor_config, zoom_config,
        zoom_sections or [], clicks or [], zoom_spring,
    )
    logger.info("Synthesized %d frame states from %d keyframes", len(states), len(keyframes))
    return states


def create_frame_states_from_events(
    events: List[MouseEvent],
    video: VideoInfo,
    cursor_config: Optional[CursorConfig] = None,
    zoom_config: Optional[ZoomConfig] = None,
    clicks: Optional[List[ClickEvent]] = None,
    zoom_spring: Optional[ZoomSpring] = None,
) -> List[FrameState]:
    """Frame states straight from raw mouse samples.

    The cursor chases a target read ``smooth_time`` ahead on the
    interpolated event path, so the spring's lag is cancelled out.  The
    smoothing time shrinks with speed to stay responsive on fast moves.
    Zoom sections come from :func:`detect_zoom_sections`.
    """
    cursor_config = cursor_config or CursorConfig()
    zoom_config = zoom_config or ZoomConfig()
    events = sorted(events, key=lambda e: e.timestamp)
    smooth_time, min_smooth_time = cursor_config.smooth_times
    lookahead_ms = smooth_time * 1000.0

    total = frame_count(video.duration, video.frame_rate)
    dt = 1.0 / video.frame_rate
    positions: List[Tuple[float, float]] = []
    if events:
        spring = SmoothPosition2D(events[0].x, events[0].y, smooth_time)
        for i in range(total):
            t = frame_timestamp(i, video.frame_rate, video.duration)
            target = interpolate_mouse_positions(events, t + lookahead_ms)
            spring.set_target(target.x, target.y)
            vx, vy = spring.velocity
            spring.set_smooth_time(calculate_adaptive_smooth_time(
                vx, vy, smooth_time, min_smooth_time))
            x, y = spring.update(dt)
            positions.append((clamp(x, 0.0, video.width), clamp(y, 0.0, video.height)))
    else:
        positions = [(video.width / 2.0, video.height / 2.0)] * total

    all_clicks = list(clicks or [])
    all_clicks.extend(
        ClickEvent(ev.timestamp, ev.action, ev.button or "left", ev.x, ev.y)
        for ev in events if ev.action in ("down", "up")
    )

    stabilizer = CursorTypeStabilizer(
        [(ev.timestamp, to_cursor_shape(ev.cursor_type)) for ev in events if ev.cursor_type],
        cursor_config.shape_lookahead_ms,
        default_shape=cursor_config.shape,
    )

    sections: List[ZoomSection] = []
    if zoom_config.enabled:
        sections = detect_zoom_sections(
            [ev for ev in events if ev.action == "move"] or events,
            video.width, video.height, zoom_config.level,
            zoom_config.dead_zone, zoom_config.min_static_duration_ms,
        )

    states = _assemble_states(
        positions, [None] * total, stabilizer, video, cursor_config, zoom_config,
        sections, all_clicks, zoom_spring,
    )
    logger.info("Synthesized %d frame states from %d raw events", len(states), len(events))
    return states
