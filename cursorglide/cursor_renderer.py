"""Cursor glyphs — shape tables, rasterization, caching and compositing.

Every glyph lives in a fixed 32×32 reference viewbox.  The hotspot
table gives the click point inside that box, so a glyph rendered at any
pixel size is aligned by scaling the hotspot by ``size / 32``.

Glyphs come from an optional assets directory (SVG rendered with
QtSvg, or PNG read with OpenCV).  Without one, the built-in vector
shapes below are drawn with OpenCV polygons at 4× and downsampled for
anti-aliasing.
"""

import logging
import math
import os
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import cv2
import numpy as np

from .errors import MissingAssetError

logger = logging.getLogger(__name__)


# ── Shape tables ────────────────────────────────────────────────────

CURSOR_VIEWBOX = 32
DEFAULT_SHAPE = "arrow"

CURSOR_SHAPE_MAP: Dict[str, str] = {
    "arrow": "default.svg",
    "pointer": "handpointing.svg",
    "hand": "handopen.svg",
    "openhand": "handopen.svg",
    "closedhand": "handgrabbing.svg",
    "crosshair": "cross.svg",
    "ibeam": "textcursor.svg",
    "ibeamvertical": "textcursorvertical.svg",
    "move": "move.svg",
    "resizeleft": "resizeleftright.svg",
    "resizeright": "resizeleftright.svg",
    "resizeleftright": "resizeleftright.svg",
    "resizeup": "resizeupdown.svg",
    "resizedown": "resizeupdown.svg",
    "resizeupdown": "resizeupdown.svg",
    "resize": "resizenortheastsouthwest.svg",
    "resizenortheast": "resizenortheastsouthwest.svg",
    "resizesouthwest": "resizenortheastsouthwest.svg",
    "resizenorthwest": "resizenorthwestsoutheast.svg",
    "resizesoutheast": "resizenorthwestsoutheast.svg",
    "copy": "copy.svg",
    "dragcopy": "copy.svg",
    "draglink": "default.svg",
    "help": "help.svg",
    "notallowed": "notallowed.svg",
    "contextmenu": "contextualmenu.svg",
    "poof": "poof.svg",
    "screenshot": "screenshotselection.svg",
    "zoomin": "zoomin.svg",
    "zoomout": "zoomout.svg",
}

CURSOR_HOTSPOT_MAP: Dict[str, Tuple[int, int]] = {
    "arrow": (10, 7),
    "pointer": (9, 8),
    "hand": (10, 10),
    "openhand": (10, 10),
    "closedhand": (10, 10),
    "crosshair": (16, 16),
    "ibeam": (13, 8),
    "ibeamvertical": (8, 16),
    "move": (16, 16),
    "resizeleft": (16, 16),
    "resizeright": (16, 16),
    "resizeleftright": (16, 16),
    "resizeup": (16, 16),
    "resizedown": (16, 16),
    "resizeupdown": (16, 16),
    "resize": (16, 16),
    "resizenortheast": (16, 16),
    "resizesouthwest": (16, 16),
    "resizenorthwest": (16, 16),
    "resizesoutheast": (16, 16),
    "copy": (10, 7),
    "dragcopy": (10, 7),
    "draglink": (10, 7),
    "help": (10, 7),
    "notallowed": (16, 16),
    "contextmenu": (10, 7),
    "poof": (16, 16),
    "zoomin": (10, 10),
    "zoomout": (10, 10),
    "screenshot": (16, 16),
}

CURSOR_SHAPES = tuple(CURSOR_HOTSPOT_MAP)


def get_cursor_hotspot(shape: str) -> Tuple[int, int]:
    """Hotspot in viewbox units; unknown shapes use the arrow's."""
    return CURSOR_HOTSPOT_MAP.get(shape, CURSOR_HOTSPOT_MAP[DEFAULT_SHAPE])


def to_cursor_shape(cursor_type: Optional[str]) -> str:
    """Known shape name for an OS cursor type; anything else is an arrow."""
    if cursor_type and cursor_type in CURSOR_HOTSPOT_MAP:
        return cursor_type
    return DEFAULT_SHAPE


def scaled_hotspot(shape: str, size: int) -> Tuple[float, float]:
    """Hotspot offset in pixels for a glyph rendered at *size*."""
    hx, hy = get_cursor_hotspot(shape)
    k = size / CURSOR_VIEWBOX
    return hx * k, hy * k


# ── Appearance ──────────────────────────────────────────────────────

SUPERSAMPLE = 4
OUTLINE_WIDTH = 1.5          # viewbox units
SHADOW_OFFSET = 1.0          # viewbox units, down-right
SHADOW_ALPHA = 0.3
DEFAULT_COLOR = "#000000"


def parse_hex_color(color: str) -> Tuple[int, int, int]:
    """``#rrggbb`` (or ``#rgb``) to a BGR tuple."""
    s = color.lstrip("#")
    if len(s) == 3:
        s = "".join(c * 2 for c in s)
    if len(s) != 6:
        raise ValueError(f"Invalid color {color!r}")
    r, g, b = int(s[0:2], 16), int(s[2:4], 16), int(s[4:6], 16)
    return b, g, r


def _outline_for(fill_bgr: Tuple[int, int, int]) -> Tuple[int, int, int]:
    b, g, r = fill_bgr
    luminance = 0.299 * r + 0.587 * g + 0.114 * b
    return (255, 255, 255) if luminance < 128 else (30, 30, 30)


# ── Built-in vector glyphs ──────────────────────────────────────────

Poly = List[Tuple[float, float]]

_ARROW: Poly = [
    (10, 7), (10, 25), (14.2, 21.2), (17.2, 27.6),
    (19.8, 26.4), (16.9, 20.2), (22.6, 20.2),
]

# fingertip at the origin
_HAND: Poly = [
    (-1.6, 0), (1.6, 0), (1.6, 7), (10, 8.2), (10, 16),
    (7, 20), (-1, 20), (-5.5, 13), (-4, 11.2), (-1.6, 13),
]


def _translate(poly: Poly, dx: float, dy: float) -> Poly:
    return [(x + dx, y + dy) for x, y in poly]


def _double_arrow(angle_deg: float, cx: float = 16, cy: float = 16) -> Poly:
    local = [
        (-11, 0), (-6, -5), (-6, -1.5), (6, -1.5), (6, -5),
        (11, 0), (6, 5), (6, 1.5), (-6, 1.5), (-6, 5),
    ]
    a = math.radians(angle_deg)
    ca, sa = math.cos(a), math.sin(a)
    return [(cx + u * ca - v * sa, cy + u * sa + v * ca) for u, v in local]


class _GlyphCanvas:
    """Supersampled BGRA canvas addressed in viewbox units."""

    def __init__(self, size: int, fill: Tuple[int, int, int]) -> None:
        self.px = size * SUPERSAMPLE
        self.k = self.px / CURSOR_VIEWBOX
        self.fill = (*fill, 255)
        self.outline = (*_outline_for(fill), 255)
        self.image = np.zeros((self.px, self.px, 4), dtype=np.uint8)

    def _pts(self, poly: Poly) -> np.ndarray:
        return np.array([[round(x * self.k), round(y * self.k)] for x, y in poly], dtype=np.int32)

    def _w(self, units: float) -> int:
        return max(1, int(round(units * self.k)))

    def polygon(self, poly: Poly) -> None:
        pts = self._pts(poly)
        cv2.polylines(self.image, [pts], True, self.outline, self._w(OUTLINE_WIDTH * 2), cv2.LINE_AA)
        cv2.fillPoly(self.image, [pts], self.fill, cv2.LINE_AA)

    def line(self, a: Tuple[float, float], b: Tuple[float, float], width: float = 2.0) -> None:
        pa = (round(a[0] * self.k), round(a[1] * self.k))
        pb = (round(b[0] * self.k), round(b[1] * self.k))
        cv2.line(self.image, pa, pb, self.outline, self._w(width + OUTLINE_WIDTH * 2), cv2.LINE_AA)
        cv2.line(self.image, pa, pb, self.fill, self._w(width), cv2.LINE_AA)

    def circle(self, c: Tuple[float, float], r: float, filled: bool = True,
               width: float = 2.0) -> None:
        pc = (round(c[0] * self.k), round(c[1] * self.k))
        rr = self._w(r)
        if filled:
            cv2.circle(self.image, pc, rr + self._w(OUTLINE_WIDTH), self.outline, -1, cv2.LINE_AA)
            cv2.circle(self.image, pc, rr, self.fill, -1, cv2.LINE_AA)
        else:
            cv2.circle(self.image, pc, rr, self.outline, self._w(width + OUTLINE_WIDTH * 2), cv2.LINE_AA)
            cv2.circle(self.image, pc, rr, self.fill, self._w(width), cv2.LINE_AA)


def _draw_arrow(c: _GlyphCanvas) -> None:
    c.polygon(_ARROW)


def _draw_arrow_plus(c: _GlyphCanvas) -> None:
    c.polygon(_ARROW)
    c.circle((24, 24), 4.5)
    c.line((21.5, 24), (26.5, 24), 1.2)
    c.line((24, 21.5), (24, 26.5), 1.2)


def _draw_arrow_badge(c: _GlyphCanvas) -> None:
    c.polygon(_ARROW)
    c.circle((24, 24), 4.5)


def _draw_arrow_menu(c: _GlyphCanvas) -> None:
    c.polygon(_ARROW)
    c.polygon([(20, 20), (29, 20), (29, 28), (20, 28)])


def _draw_pointer(c: _GlyphCanvas) -> None:
    c.polygon(_translate(_HAND, 9, 8))


def _draw_hand(c: _GlyphCanvas) -> None:
    c.polygon(_translate(_HAND, 10, 6))


def _draw_crosshair(c: _GlyphCanvas) -> None:
    c.line((16, 6), (16, 26), 1.5)
    c.line((6, 16), (26, 16), 1.5)


def _draw_ibeam(c: _GlyphCanvas) -> None:
    c.line((13, 8), (13, 24), 1.5)
    c.line((10, 8), (16, 8), 1.5)
    c.line((10, 24), (16, 24), 1.5)


def _draw_ibeam_vertical(c: _GlyphCanvas) -> None:
    c.line((8, 16), (24, 16), 1.5)
    c.line((8, 13), (8, 19), 1.5)
    c.line((24, 13), (24, 19), 1.5)


def _resize(angle: float) -> Callable[[_GlyphCanvas], None]:
    def draw(c: _GlyphCanvas) -> None:
        c.polygon(_double_arrow(angle))
    return draw


def _draw_move(c: _GlyphCanvas) -> None:
    c.polygon(_double_arrow(0))
    c.polygon(_double_arrow(90))


def _draw_not_allowed(c: _GlyphCanvas) -> None:
    c.circle((16, 16), 9, filled=False, width=2.5)
    c.line((9.6, 9.6), (22.4, 22.4), 2.5)


def _draw_poof(c: _GlyphCanvas) -> None:
    for center, r in (((12, 18), 5), ((20, 18), 5), ((16, 13), 5.5)):
        c.circle(center, r)


def _magnifier(sign: str) -> Callable[[_GlyphCanvas], None]:
    def draw(c: _GlyphCanvas) -> None:
        c.line((14.5, 14.5), (24, 24), 3)
        c.circle((10, 10), 6.5, filled=False, width=2)
        c.line((7, 10), (13, 10), 1.5)
        if sign == "+":
            c.line((10, 7), (10, 13), 1.5)
    return draw


_BUILTIN_GLYPHS: Dict[str, Callable[[_GlyphCanvas], None]] = {
    "arrow": _draw_arrow,
    "draglink": _draw_arrow,
    "copy": _draw_arrow_plus,
    "dragcopy": _draw_arrow_plus,
    "help": _draw_arrow_badge,
    "contextmenu": _draw_arrow_menu,
    "pointer": _draw_pointer,
    "hand": _draw_hand,
    "openhand": _draw_hand,
    "closedhand": _draw_hand,
    "crosshair": _draw_crosshair,
    "screenshot": _draw_crosshair,
    "ibeam": _draw_ibeam,
    "ibeamvertical": _draw_ibeam_vertical,
    "move": _draw_move,
    "resizeleft": _resize(0),
    "resizeright": _resize(0),
    "resizeleftright": _resize(0),
    "resizeup": _resize(90),
    "resizedown": _resize(90),
    "resizeupdown": _resize(90),
    "resize": _resize(-45),
    "resizenortheast": _resize(-45),
    "resizesouthwest": _resize(-45),
    "resizenorthwest": _resize(45),
    "resizesoutheast": _resize(45),
    "notallowed": _draw_not_allowed,
    "poof": _draw_poof,
    "zoomin": _magnifier("+"),
    "zoomout": _magnifier("-"),
}


def _add_shadow(bgra: np.ndarray, offset_px: int) -> np.ndarray:
    """Composite a soft drop shadow underneath *bgra*."""
    alpha = bgra[:, :, 3].astype(np.float32) / 255.0
    shadow = np.zeros_like(alpha)
    if offset_px > 0:
        shadow[offset_px:, offset_px:] = alpha[:-offset_px, :-offset_px]
    else:
        shadow[:] = alpha
    k = max(3, offset_px * 2) | 1
    shadow = cv2.GaussianBlur(shadow, (k, k), 0) * SHADOW_ALPHA

    out_a = alpha + shadow * (1.0 - alpha)
    out = np.zeros_like(bgra)
    safe = np.maximum(out_a, 1e-6)[:, :, np.newaxis]
    color = bgra[:, :, :3].astype(np.float32) * alpha[:, :, np.newaxis] / safe
    out[:, :, :3] = np.clip(color, 0, 255).astype(np.uint8)
    out[:, :, 3] = np.clip(out_a * 255.0, 0, 255).astype(np.uint8)
    return out


def render_builtin_glyph(shape: str, size: int, color: str = DEFAULT_COLOR) -> np.ndarray:
    """Draw a built-in glyph as a ``size``×``size`` BGRA image."""
    draw = _BUILTIN_GLYPHS.get(shape)
    if draw is None:
        raise MissingAssetError(shape, "no built-in glyph")
    canvas = _GlyphCanvas(size, parse_hex_color(color))
    draw(canvas)
    image = _add_shadow(canvas.image, int(round(SHADOW_OFFSET * canvas.k)))
    return cv2.resize(image, (size, size), interpolation=cv2.INTER_AREA)


# ── Asset files ─────────────────────────────────────────────────────


def resolve_cursor_asset(shape: str, assets_dir: Optional[str]) -> Optional[str]:
    """Path of the SVG or PNG asset for *shape*, if one exists."""
    if not assets_dir:
        return None
    filename = CURSOR_SHAPE_MAP.get(shape)
    if filename is None:
        return None
    stem = os.path.splitext(filename)[0]
    for candidate in (filename, stem + ".png"):
        path = os.path.join(assets_dir, candidate)
        if os.path.isfile(path):
            return path
    return None


_qt_app = None


def _ensure_gui_app() -> None:
    """QPainter needs a QGuiApplication; create a headless one if absent."""
    global _qt_app
    from PySide6.QtGui import QGuiApplication

    if QGuiApplication.instance() is None:
        os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
        _qt_app = QGuiApplication([])


def _render_svg(path: str, size: int) -> np.ndarray:
    from PySide6.QtCore import Qt
    from PySide6.QtGui import QImage, QPainter
    from PySide6.QtSvg import QSvgRenderer

    _ensure_gui_app()
    renderer = QSvgRenderer(path)
    if not renderer.isValid():
        raise MissingAssetError(os.path.basename(path), f"unreadable SVG {path}")
    img = QImage(size, size, QImage.Format.Format_RGBA8888)
    img.fill(Qt.GlobalColor.transparent)
    painter = QPainter(img)
    painter.setRenderHint(QPainter.RenderHint.Antialiasing)
    renderer.render(painter)
    painter.end()

    stride = img.bytesPerLine()
    buf = np.frombuffer(img.constBits(), dtype=np.uint8, count=stride * size)
    rgba = buf.reshape(size, stride)[:, :size * 4].reshape(size, size, 4)
    return cv2.cvtColor(rgba, cv2.COLOR_RGBA2BGRA)


def _render_png(path: str, size: int) -> np.ndarray:
    img = cv2.imread(path, cv2.IMREAD_UNCHANGED)
    if img is None:
        raise MissingAssetError(os.path.basename(path), f"unreadable image {path}")
    if img.ndim == 2:
        img = cv2.cvtColor(img, cv2.COLOR_GRAY2BGRA)
    elif img.shape[2] == 3:
        img = cv2.cvtColor(img, cv2.COLOR_BGR2BGRA)
    interp = cv2.INTER_AREA if img.shape[0] > size else cv2.INTER_CUBIC
    return cv2.resize(img, (size, size), interpolation=interp)


def rasterize_cursor(shape: str, size: int, color: str = DEFAULT_COLOR,
                     assets_dir: Optional[str] = None) -> np.ndarray:
    """Rasterize *shape* as a ``size``×``size`` BGRA image.

    Asset files take precedence over built-in glyphs.  Raises
    :class:`MissingAssetError` when neither exists.
    """
    size = max(1, int(size))
    path = resolve_cursor_asset(shape, assets_dir)
    if path is not None:
        logger.debug("Rasterizing %s from %s at %dpx", shape, path, size)
        if path.lower().endswith(".svg"):
            return _render_svg(path, size)
        return _render_png(path, size)
    return render_builtin_glyph(shape, size, color)


class CursorImageCache:
    """Rasterized glyphs keyed by ``(shape, size)``.

    Populated lazily from worker threads.  Two workers may rasterize the
    same key at once; both produce the same image, so the later write
    simply replaces the earlier one.  Cached arrays are read-only.
    """

    def __init__(self, color: str = DEFAULT_COLOR, assets_dir: Optional[str] = None) -> None:
        self.color = color
        self.assets_dir = assets_dir
        self._images: Dict[Tuple[str, int], np.ndarray] = {}

    def get(self, shape: str, size: int) -> np.ndarray:
        key = (shape, max(1, int(size)))
        image = self._images.get(key)
        if image is None:
            image = rasterize_cursor(shape, key[1], self.color, self.assets_dir)
            image.setflags(write=False)
            self._images[key] = image
        return image

    def prepare(self, shapes: Iterable[str], size: int) -> None:
        """Rasterize every shape up front so missing assets fail early."""
        for shape in sorted(set(shapes)):
            self.get(shape, size)

    def __len__(self) -> int:
        return len(self._images)


# ── Compositing ─────────────────────────────────────────────────────


def alpha_composite(canvas_bgr: np.ndarray, image_bgra: np.ndarray,
                    left: int, top: int) -> None:
    """Blend *image_bgra* onto *canvas_bgr* in place, clipped to the canvas."""
    fh, fw = canvas_bgr.shape[:2]
    ch, cw = image_bgra.shape[:2]

    x1, y1 = left, top
    x2, y2 = left + cw, top + ch
    src_x1 = max(0, -x1)
    src_y1 = max(0, -y1)
    x1 = max(0, x1)
    y1 = max(0, y1)
    x2 = min(fw, x2)
    y2 = min(fh, y2)
    if x2 <= x1 or y2 <= y1:
        return
    src_x2 = src_x1 + (x2 - x1)
    src_y2 = src_y1 + (y2 - y1)

    roi = canvas_bgr[y1:y2, x1:x2]
    c_roi = image_bgra[src_y1:src_y2, src_x1:src_x2, :3]
    alpha = image_bgra[src_y1:src_y2, src_x1:src_x2, 3:4].astype(np.float32) / 255.0
    blended = c_roi.astype(np.float32) * alpha + roi.astype(np.float32) * (1 - alpha)
    np.copyto(roi, np.clip(blended + 0.5, 0, 255).astype(np.uint8))
