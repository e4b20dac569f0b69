"""Core data models for cursorglide.

Input events and keyframes, zoom sections and regions, the per-frame
:class:`FrameState`, and the top-level :class:`RecordingMetadata`
document.  Authored models support JSON serialization via
``to_dict()`` / ``from_dict()`` (``to_json()`` / ``from_json()`` for
the document).
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import List, Optional
import json
import math

from .config import CursorConfig, ZoomConfig, DEFAULT_FRAME_RATE
from .curves import DEFAULT_EASING, EASING_TYPES
from .errors import InvalidKeyframeDataError

METADATA_VERSION = "1.0"


@dataclass
class MouseEvent:
    """A raw cursor sample from the telemetry source.

    Coordinates are in source-video pixels.  ``cursor_type`` is the OS
    cursor shape at the time of the sample, when known.
    """
    x: float
    y: float
    timestamp: float  # ms since recording start
    action: str = "move"  # move | down | up
    button: str = ""
    cursor_type: Optional[str] = None

    def to_dict(self) -> dict:
        d = {"x": self.x, "y": self.y, "timestamp": self.timestamp, "action": self.action}
        if self.button:
            d["button"] = self.button
        if self.cursor_type:
            d["cursorType"] = self.cursor_type
        return d

    @staticmethod
    def from_dict(d: dict) -> "MouseEvent":
        return MouseEvent(
            x=d["x"], y=d["y"], timestamp=d["timestamp"],
            action=d.get("action", "move"),
            button=d.get("button", ""),
            cursor_type=d.get("cursorType"),
        )


@dataclass
class ClickEvent:
    """A mouse button transition.  Only ``down`` drives the click animation."""
    timestamp: float  # ms
    action: str = "down"
    button: str = "left"
    x: Optional[float] = None
    y: Optional[float] = None

    def to_dict(self) -> dict:
        d = {"timestamp": self.timestamp, "action": self.action, "button": self.button}
        if self.x is not None and self.y is not None:
            d["x"] = self.x
            d["y"] = self.y
        return d

    @staticmethod
    def from_dict(d: dict) -> "ClickEvent":
        known = {"timestamp", "action", "button", "x", "y"}
        return ClickEvent(**{k: v for k, v in d.items() if k in known})


@dataclass(frozen=True)
class CursorKeyframe:
    """An authored cursor sample.

    ``easing`` applies to the segment that *starts* at this keyframe.
    ``size`` and ``shape`` of ``None`` inherit from the cursor config.
    """
    timestamp: float
    x: float
    y: float
    size: Optional[float] = None
    shape: Optional[str] = None
    easing: str = DEFAULT_EASING

    def to_dict(self) -> dict:
        d = {"timestamp": self.timestamp, "x": self.x, "y": self.y, "easing": self.easing}
        if self.size is not None:
            d["size"] = self.size
        if self.shape is not None:
            d["shape"] = self.shape
        return d

    @staticmethod
    def from_dict(d: dict) -> "CursorKeyframe":
        easing = d.get("easing", DEFAULT_EASING)
        if easing not in EASING_TYPES:
            raise InvalidKeyframeDataError(f"Unknown easing {easing!r}")
        return CursorKeyframe(
            timestamp=float(d["timestamp"]),
            x=float(d["x"]),
            y=float(d["y"]),
            size=d.get("size"),
            shape=d.get("shape"),
            easing=easing,
        )


def validate_cursor_keyframes(keyframes: List[CursorKeyframe]) -> None:
    """Raise :class:`InvalidKeyframeDataError` on bad timelines.

    Rejects non-finite timestamps or coordinates and timestamps that go
    backwards.  Nothing is clamped or repaired.
    """
    prev_ts = -math.inf
    for i, kf in enumerate(keyframes):
        values = (kf.timestamp, kf.x, kf.y) + ((kf.size,) if kf.size is not None else ())
        if not all(math.isfinite(v) for v in values):
            raise InvalidKeyframeDataError(f"Keyframe {i} has non-finite values: {kf}")
        if kf.timestamp < prev_ts:
            raise InvalidKeyframeDataError(
                f"Keyframe {i} timestamp {kf.timestamp} precedes {prev_ts}")
        if kf.easing not in EASING_TYPES:
            raise InvalidKeyframeDataError(f"Keyframe {i} has unknown easing {kf.easing!r}")
        prev_ts = kf.timestamp


@dataclass(frozen=True)
class ZoomSection:
    """A zoom target held over ``[start_time, end_time]``."""
    start_time: float
    end_time: float
    scale: float
    center_x: float
    center_y: float

    def contains(self, t: float) -> bool:
        return self.start_time <= t <= self.end_time

    def to_dict(self) -> dict:
        return {
            "startTime": self.start_time,
            "endTime": self.end_time,
            "scale": self.scale,
            "centerX": self.center_x,
            "centerY": self.center_y,
        }

    @staticmethod
    def from_dict(d: dict) -> "ZoomSection":
        return ZoomSection(
            start_time=d["startTime"],
            end_time=d["endTime"],
            scale=max(1.0, float(d["scale"])),
            center_x=d["centerX"],
            center_y=d["centerY"],
        )


@dataclass(frozen=True)
class ZoomRegion:
    """Smoothed zoom state for one frame.  Derived, never authored."""
    timestamp: float
    center_x: float
    center_y: float
    crop_width: float
    crop_height: float
    scale: float


@dataclass(frozen=True)
class FrameState:
    """Everything the compositor needs to render one output frame."""
    frame_index: int
    timestamp: float
    cursor_x: float
    cursor_y: float
    cursor_visible: bool = True
    cursor_velocity_x: float = 0.0
    cursor_velocity_y: float = 0.0
    cursor_shape: str = "arrow"
    cursor_size: Optional[float] = None
    click_animation_scale: float = 1.0
    zoom_center_x: Optional[float] = None
    zoom_center_y: Optional[float] = None
    zoom_level: Optional[float] = None
    zoom_velocity_x: Optional[float] = None
    zoom_velocity_y: Optional[float] = None

    @property
    def is_zoomed(self) -> bool:
        return self.zoom_level is not None and self.zoom_level > 1.0

    def rebased(self, origin_x: float, origin_y: float) -> "FrameState":
        """Copy with cursor coordinates relative to a new origin."""
        return replace(self, cursor_x=self.cursor_x - origin_x,
                       cursor_y=self.cursor_y - origin_y)


@dataclass
class VideoInfo:
    path: str
    width: int
    height: int
    frame_rate: float = DEFAULT_FRAME_RATE
    duration: float = 0.0  # ms

    @property
    def frame_interval(self) -> float:
        return 1000.0 / self.frame_rate

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "width": self.width,
            "height": self.height,
            "frameRate": self.frame_rate,
            "duration": self.duration,
        }

    @staticmethod
    def from_dict(d: dict) -> "VideoInfo":
        return VideoInfo(
            path=d.get("path", ""),
            width=int(d["width"]),
            height=int(d["height"]),
            frame_rate=float(d.get("frameRate", DEFAULT_FRAME_RATE)),
            duration=float(d.get("duration", 0.0)),
        )


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class RecordingMetadata:
    """Top-level recording document consumed by the render pipeline."""

    video: VideoInfo
    cursor_keyframes: List[CursorKeyframe] = field(default_factory=list)
    cursor_config: CursorConfig = field(default_factory=CursorConfig)
    zoom_sections: List[ZoomSection] = field(default_factory=list)
    zoom_config: ZoomConfig = field(default_factory=ZoomConfig)
    clicks: List[ClickEvent] = field(default_factory=list)
    version: str = METADATA_VERSION
    created_at: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "video": self.video.to_dict(),
            "cursor": {
                "keyframes": [k.to_dict() for k in self.cursor_keyframes],
                "config": self.cursor_config.to_dict(),
            },
            "zoom": {
                "sections": [s.to_dict() for s in self.zoom_sections],
                "config": self.zoom_config.to_dict(),
            },
            "clicks": [c.to_dict() for c in self.clicks],
            "createdAt": self.created_at,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @staticmethod
    def from_dict(d: dict) -> "RecordingMetadata":
        """Build from a parsed document, validating the keyframe timeline."""
        cursor = d.get("cursor", {})
        zoom = d.get("zoom", {})
        try:
            keyframes = [CursorKeyframe.from_dict(k) for k in cursor.get("keyframes", [])]
        except (KeyError, TypeError) as exc:
            raise InvalidKeyframeDataError(f"Malformed cursor keyframe: {exc}") from exc
        validate_cursor_keyframes(keyframes)
        return RecordingMetadata(
            version=str(d.get("version", METADATA_VERSION)),
            video=VideoInfo.from_dict(d["video"]),
            cursor_keyframes=keyframes,
            cursor_config=CursorConfig.from_dict(cursor.get("config", {})),
            zoom_sections=[ZoomSection.from_dict(s) for s in zoom.get("sections", [])],
            zoom_config=ZoomConfig.from_dict(zoom.get("config", {})),
            clicks=[ClickEvent.from_dict(c) for c in d.get("clicks", [])],
            created_at=d.get("createdAt", ""),
        )

    @staticmethod
    def from_json(s: str) -> "RecordingMetadata":
        return RecordingMetadata.from_dict(json.loads(s))
