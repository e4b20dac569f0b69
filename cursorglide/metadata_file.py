"""Recording metadata files — save / load and build from raw events.

The metadata document is plain JSON (see
:meth:`RecordingMetadata.to_dict`) written next to the recording.  It is
the single input the render pipeline needs besides the video itself.
"""

import json
import logging
import os
from dataclasses import replace
from typing import List, Optional, Tuple

from .activity_analyzer import detect_zoom_sections, remove_duplicate_positions
from .config import CursorConfig, ZoomConfig
from .cursor_renderer import to_cursor_shape
from .models import (
    ClickEvent,
    CursorKeyframe,
    MouseEvent,
    RecordingMetadata,
    VideoInfo,
    ZoomSection,
)

logger = logging.getLogger(__name__)

METADATA_EXT = ".json"
KEYFRAME_INTERVAL_MS = 100.0   # minimum spacing of movement keyframes
KEYFRAME_MIN_MOVE_PX = 3.0     # movement needed before a new keyframe


def save_metadata(output_path: str, metadata: RecordingMetadata) -> str:
    """Write *metadata* as JSON.  Returns the final output path."""
    if not output_path.lower().endswith(METADATA_EXT):
        output_path += METADATA_EXT
    parent = os.path.dirname(output_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(metadata.to_json())
    logger.info("Saved metadata to %s", output_path)
    return output_path


def load_metadata(input_path: str) -> RecordingMetadata:
    """Read a metadata document.

    Raises ``ValueError`` for unreadable JSON and
    :class:`~cursorglide.errors.InvalidKeyframeDataError` for a bad
    keyframe timeline.
    """
    with open(input_path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Not a valid metadata file: {input_path}") from exc
    if not isinstance(data, dict) or "video" not in data:
        raise ValueError(f"Metadata file missing video info: {input_path}")
    return RecordingMetadata.from_dict(data)


def events_to_keyframes(
    events: List[MouseEvent], duration_ms: float,
) -> Tuple[List[CursorKeyframe], List[ClickEvent]]:
    """Thin a raw event stream into cursor keyframes plus click events.

    Keyframes are placed at t=0, wherever the cursor shape changes, at
    every click, along the path every :data:`KEYFRAME_INTERVAL_MS` when
    the cursor moved, and at the end of the video.
    """
    clicks = [
        ClickEvent(ev.timestamp, ev.action, ev.button, ev.x, ev.y)
        for ev in events if ev.action in ("down", "up") and ev.button
    ]
    if not events:
        return [], clicks

    moves = [ev for ev in events if ev.action == "move"] or list(events)
    moves = remove_duplicate_positions(moves)
    presses = [ev for ev in events if ev.action == "down"]

    first = moves[0]
    keyframes = [CursorKeyframe(0.0, first.x, first.y, shape=to_cursor_shape(first.cursor_type))]
    last_shape = keyframes[0].shape

    candidates = sorted(moves[1:] + presses, key=lambda e: e.timestamp)
    for ev in candidates:
        if duration_ms > 0 and ev.timestamp >= duration_ms:
            break
        prev = keyframes[-1]
        if ev.timestamp <= prev.timestamp:
            continue
        shape = to_cursor_shape(ev.cursor_type) if ev.cursor_type else last_shape
        moved = (abs(ev.x - prev.x) >= KEYFRAME_MIN_MOVE_PX
                 or abs(ev.y - prev.y) >= KEYFRAME_MIN_MOVE_PX)
        spaced = ev.timestamp - prev.timestamp >= KEYFRAME_INTERVAL_MS
        if shape != last_shape or ev.action == "down" or (moved and spaced):
            keyframes.append(CursorKeyframe(ev.timestamp, ev.x, ev.y, shape=shape))
            last_shape = shape

    last = moves[-1]
    end_t = duration_ms if duration_ms > 0 else last.timestamp
    if end_t > keyframes[-1].timestamp:
        keyframes.append(CursorKeyframe(end_t, last.x, last.y, shape=last_shape))

    logger.info("Converted %d mouse events to %d keyframes and %d clicks",
                len(events), len(keyframes), len(clicks))
    return keyframes, clicks


def build_metadata_from_events(
    events: List[MouseEvent],
    video: VideoInfo,
    cursor_config: Optional[CursorConfig] = None,
    zoom_config: Optional[ZoomConfig] = None,
) -> RecordingMetadata:
    """Metadata document for a fresh recording.

    Zoom sections are detected from the raw events when zoom is enabled.
    """
    events = sorted(events, key=lambda e: e.timestamp)
    cursor_config = cursor_config or CursorConfig()
    zoom_config = zoom_config or ZoomConfig()
    keyframes, clicks = events_to_keyframes(events, video.duration)

    sections: List[ZoomSection] = []
    if zoom_config.enabled:
        sections = detect_zoom_sections(
            [ev for ev in events if ev.action == "move"] or events,
            video.width, video.height, zoom_config.level,
            zoom_config.dead_zone, zoom_config.min_static_duration_ms,
        )
    return RecordingMetadata(
        video=video,
        cursor_keyframes=keyframes,
        cursor_config=cursor_config,
        zoom_sections=sections,
        zoom_config=zoom_config,
        clicks=clicks,
    )


def apply_frame_offset(metadata: RecordingMetadata, frame_offset: int) -> RecordingMetadata:
    """Copy of *metadata* with every timestamp shifted by whole frames.

    Positive offsets move the cursor later in the video.  Shifted
    timestamps are clamped at 0.  The input is not modified.
    """
    offset_ms = frame_offset * metadata.video.frame_interval

    def shift(t: float) -> float:
        return max(0.0, t + offset_ms)

    adjusted = replace(
        metadata,
        cursor_keyframes=[replace(k, timestamp=shift(k.timestamp)) for k in metadata.cursor_keyframes],
        zoom_sections=[
            replace(s, start_time=shift(s.start_time), end_time=shift(s.end_time))
            for s in metadata.zoom_sections
        ],
        clicks=[replace(c, timestamp=shift(c.timestamp)) for c in metadata.clicks],
    )
    logger.debug("Applied frame offset of %d frames (%.2f ms)", frame_offset, offset_ms)
    return adjusted
