"""Cursor, zoom and render configuration.

Each config is a plain dataclass with ``to_dict()`` / ``from_dict()``
using the camelCase keys of the recording-metadata document.  Unknown
keys are ignored so older readers accept newer files.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

from .smoothing import ANIMATION_STYLES, DEFAULT_ANIMATION_STYLE

DEFAULT_CURSOR_SIZE = 150
MIN_CURSOR_SIZE = 20
MAX_CURSOR_SIZE = 400
DEFAULT_CURSOR_SHAPE = "arrow"
DEFAULT_CURSOR_COLOR = "#000000"

DEFAULT_ZOOM_LEVEL = 2.0
DEFAULT_DEAD_ZONE = 15.0
DEFAULT_MIN_STATIC_DURATION = 300.0  # ms
DEFAULT_ZOOM_SMOOTH_TIME = 0.35  # s

DEFAULT_FRAME_RATE = 30.0


def _pick(d: dict, mapping: dict) -> dict:
    """Translate known camelCase keys of *d* to keyword arguments."""
    return {attr: d[key] for key, attr in mapping.items() if key in d}


@dataclass
class MotionBlurConfig:
    enabled: bool = False
    strength: float = 0.5

    def to_dict(self) -> dict:
        return {"enabled": self.enabled, "strength": self.strength}

    @staticmethod
    def from_dict(d: dict) -> "MotionBlurConfig":
        return MotionBlurConfig(**_pick(d, {"enabled": "enabled", "strength": "strength"}))


_CURSOR_KEYS = {
    "size": "size",
    "shape": "shape",
    "color": "color",
    "hideWhenStatic": "hide_when_static",
    "hideAfterMs": "hide_after_ms",
    "staticThreshold": "static_threshold",
    "animationStyle": "animation_style",
    "clickScale": "click_scale",
    "clickDurationMs": "click_duration_ms",
    "shapeLookaheadMs": "shape_lookahead_ms",
}


@dataclass
class CursorConfig:
    """How the synthesized cursor looks and behaves."""
    size: int = DEFAULT_CURSOR_SIZE
    shape: str = DEFAULT_CURSOR_SHAPE
    color: str = DEFAULT_CURSOR_COLOR
    hide_when_static: bool = False
    hide_after_ms: float = 1000.0
    static_threshold: float = 2.0  # px of movement that counts as "moved"
    motion_blur: MotionBlurConfig = field(default_factory=MotionBlurConfig)
    animation_style: str = DEFAULT_ANIMATION_STYLE
    click_scale: float = 0.8
    click_duration_ms: float = 200.0
    shape_lookahead_ms: float = 100.0

    @property
    def clamped_size(self) -> int:
        return int(min(max(self.size, MIN_CURSOR_SIZE), MAX_CURSOR_SIZE))

    @property
    def smooth_times(self) -> Tuple[float, float]:
        """``(smooth_time, min_smooth_time)`` of the animation style."""
        return ANIMATION_STYLES.get(self.animation_style,
                                    ANIMATION_STYLES[DEFAULT_ANIMATION_STYLE])

    def to_dict(self) -> dict:
        d = {key: getattr(self, attr) for key, attr in _CURSOR_KEYS.items()}
        d["motionBlur"] = self.motion_blur.to_dict()
        return d

    @staticmethod
    def from_dict(d: dict) -> "CursorConfig":
        kwargs = _pick(d, _CURSOR_KEYS)
        if "motionBlur" in d:
            kwargs["motion_blur"] = MotionBlurConfig.from_dict(d["motionBlur"])
        return CursorConfig(**kwargs)


_ZOOM_KEYS = {
    "enabled": "enabled",
    "level": "level",
    "deadZone": "dead_zone",
    "minStaticDurationMs": "min_static_duration_ms",
    "smoothTime": "smooth_time",
}


@dataclass
class ZoomConfig:
    """Automatic camera zoom settings."""
    enabled: bool = True
    level: float = DEFAULT_ZOOM_LEVEL
    dead_zone: float = DEFAULT_DEAD_ZONE
    min_static_duration_ms: float = DEFAULT_MIN_STATIC_DURATION
    smooth_time: float = DEFAULT_ZOOM_SMOOTH_TIME

    def __post_init__(self) -> None:
        # zoom never goes below the full frame
        self.level = max(1.0, float(self.level))

    def to_dict(self) -> dict:
        return {key: getattr(self, attr) for key, attr in _ZOOM_KEYS.items()}

    @staticmethod
    def from_dict(d: dict) -> "ZoomConfig":
        return ZoomConfig(**_pick(d, _ZOOM_KEYS))


@dataclass
class RenderOptions:
    """Output canvas and effects for the compositor.

    ``output_width`` / ``output_height`` of ``None`` mean "same as the
    source frame".
    """
    output_width: Optional[int] = None
    output_height: Optional[int] = None
    frame_rate: float = DEFAULT_FRAME_RATE
    zoom_enabled: bool = True
    motion_blur_enabled: bool = False
    motion_blur_strength: float = 0.5
    background: Tuple[int, int, int] = (0, 0, 0)  # BGR letterbox fill

    def output_size(self, src_w: int, src_h: int) -> Tuple[int, int]:
        """Output dimensions, rounded up to even numbers for H.264."""
        w = int(self.output_width or src_w)
        h = int(self.output_height or src_h)
        return w + (w % 2), h + (h % 2)

    @staticmethod
    def from_configs(cursor: CursorConfig, zoom: ZoomConfig, frame_rate: float,
                     output_width: Optional[int] = None,
                     output_height: Optional[int] = None) -> "RenderOptions":
        return RenderOptions(
            output_width=output_width,
            output_height=output_height,
            frame_rate=frame_rate,
            zoom_enabled=zoom.enabled,
            motion_blur_enabled=cursor.motion_blur.enabled,
            motion_blur_strength=cursor.motion_blur.strength,
        )
