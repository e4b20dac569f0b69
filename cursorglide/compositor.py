"""Compositor — renders one output frame from a source frame and a FrameState.

Used by both the preview renderer and the exporter, so a previewed frame
is pixel-identical to the exported one.  Steps per frame:

1. Zoom crop of ``frame / zoom`` around the zoom center, kept inside the
   frame, with the cursor rebased into the crop's coordinates.
2. Aspect-preserving "contain" fit into the output canvas, padded with
   the letterbox color.
3. Cursor placement: the same scale and offsets map the cursor into the
   canvas; the glyph (optionally motion-blurred) is aligned by its
   hotspot and alpha-blended.

The compositor holds no cross-frame state.  The glyph cache is the only
shared object and is safe to populate from several workers.
"""

import logging
from typing import Tuple

import cv2
import numpy as np

from .config import DEFAULT_CURSOR_SIZE, RenderOptions
from .cursor_renderer import CursorImageCache, alpha_composite, scaled_hotspot
from .models import FrameState
from .motion_blur import apply_motion_blur

logger = logging.getLogger(__name__)


def fit_contain(src_w: float, src_h: float,
                out_w: float, out_h: float) -> Tuple[float, float, float]:
    """Scale and padding offsets to fit a source into a canvas.

    Returns ``(scale, offset_x, offset_y)``.  The unused axis is split
    evenly between both sides.
    """
    scale = min(out_w / src_w, out_h / src_h)
    offset_x = (out_w - src_w * scale) / 2.0
    offset_y = (out_h - src_h * scale) / 2.0
    return scale, offset_x, offset_y


def crop_rect(frame_w: int, frame_h: int, center_x: float, center_y: float,
              zoom: float) -> Tuple[int, int, int, int]:
    """Integer ``(x, y, w, h)`` crop for *zoom*, clamped inside the frame."""
    zoom = max(1.0, zoom)
    cw = min(frame_w, max(1, int(round(frame_w / zoom))))
    ch = min(frame_h, max(1, int(round(frame_h / zoom))))
    x = int(round(center_x - cw / 2.0))
    y = int(round(center_y - ch / 2.0))
    x = min(max(x, 0), frame_w - cw)
    y = min(max(y, 0), frame_h - ch)
    return x, y, cw, ch


def compose_frame(frame_bgr: np.ndarray, state: FrameState,
                  options: RenderOptions, cursor_cache: CursorImageCache) -> np.ndarray:
    """Render *state* over *frame_bgr* into a new output-size BGR image.

    The source frame and the state are left untouched.
    """
    src_h, src_w = frame_bgr.shape[:2]
    out_w, out_h = options.output_size(src_w, src_h)

    # ── zoom crop ──
    local = state
    view = frame_bgr
    if options.zoom_enabled and state.is_zoomed:
        cx = state.zoom_center_x if state.zoom_center_x is not None else src_w / 2.0
        cy = state.zoom_center_y if state.zoom_center_y is not None else src_h / 2.0
        x, y, cw, ch = crop_rect(src_w, src_h, cx, cy, state.zoom_level)
        view = frame_bgr[y:y + ch, x:x + cw]
        local = state.rebased(x, y)

    # ── contain fit ──
    view_h, view_w = view.shape[:2]
    scale, off_x, off_y = fit_contain(view_w, view_h, out_w, out_h)
    fit_w = max(1, int(round(view_w * scale)))
    fit_h = max(1, int(round(view_h * scale)))
    left = int(round(off_x))
    top = int(round(off_y))
    fit_w = min(fit_w, out_w - left)
    fit_h = min(fit_h, out_h - top)

    canvas = np.empty((out_h, out_w, 3), dtype=np.uint8)
    canvas[:] = options.background
    if (fit_w, fit_h) == (view_w, view_h):
        canvas[top:top + fit_h, left:left + fit_w] = view
    else:
        interp = cv2.INTER_AREA if scale < 1.0 else cv2.INTER_LANCZOS4
        canvas[top:top + fit_h, left:left + fit_w] = cv2.resize(
            view, (fit_w, fit_h), interpolation=interp)

    if not state.cursor_visible:
        return canvas

    # ── cursor ──
    px = local.cursor_x * scale + off_x
    py = local.cursor_y * scale + off_y
    px = min(max(px, 0.0), out_w - 1.0)
    py = min(max(py, 0.0), out_h - 1.0)

    base_size = state.cursor_size if state.cursor_size is not None else DEFAULT_CURSOR_SIZE
    size = int(round(base_size * scale * state.click_animation_scale))
    size = min(size, out_w, out_h)
    if size < 1:
        return canvas

    glyph = cursor_cache.get(state.cursor_shape, size)
    if options.motion_blur_enabled:
        # velocity is in source px/s; the glyph is drawn in canvas px
        glyph = apply_motion_blur(
            glyph, state.cursor_velocity_x * scale, state.cursor_velocity_y * scale,
            options.motion_blur_strength, options.frame_rate,
        )

    hx, hy = scaled_hotspot(state.cursor_shape, size)
    alpha_composite(canvas, glyph, int(round(px - hx)), int(round(py - hy)))
    return canvas
