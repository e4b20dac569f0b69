"""Tests for cursorglide.cursor_renderer — hotspots, glyphs, cache, blending."""

import cv2
import numpy as np
import pytest

from cursorglide.cursor_renderer import (
    CURSOR_HOTSPOT_MAP,
    CURSOR_SHAPE_MAP,
    CURSOR_SHAPES,
    CursorImageCache,
    alpha_composite,
    get_cursor_hotspot,
    parse_hex_color,
    rasterize_cursor,
    render_builtin_glyph,
    resolve_cursor_asset,
    scaled_hotspot,
    to_cursor_shape,
)
from cursorglide.errors import CursorGlideError, MissingAssetError


# ── Shape tables ────────────────────────────────────────────────────


class TestShapeTables:
    def test_every_shape_has_an_asset_name(self) -> None:
        assert set(CURSOR_HOTSPOT_MAP) == set(CURSOR_SHAPE_MAP)

    def test_hotspots_inside_viewbox(self) -> None:
        for shape, (hx, hy) in CURSOR_HOTSPOT_MAP.items():
            assert 0 <= hx < 32 and 0 <= hy < 32, shape

    def test_arrow_hotspot(self) -> None:
        assert get_cursor_hotspot("arrow") == (10, 7)

    def test_unknown_shape_uses_arrow_hotspot(self) -> None:
        assert get_cursor_hotspot("sparkles") == (10, 7)

    def test_scaled_hotspot(self) -> None:
        assert scaled_hotspot("crosshair", 64) == (32.0, 32.0)
        assert scaled_hotspot("arrow", 16) == (5.0, 3.5)

    def test_os_cursor_type_mapping(self) -> None:
        assert to_cursor_shape("ibeam") == "ibeam"
        assert to_cursor_shape("spinning-beachball") == "arrow"
        assert to_cursor_shape(None) == "arrow"


class TestParseHexColor:
    def test_six_digits_to_bgr(self) -> None:
        assert parse_hex_color("#ff8000") == (0, 128, 255)

    def test_short_form(self) -> None:
        assert parse_hex_color("#abc") == (0xcc, 0xbb, 0xaa)

    @pytest.mark.parametrize("bad", ["", "#12", "#1234567"])
    def test_invalid(self, bad: str) -> None:
        with pytest.raises(ValueError):
            parse_hex_color(bad)


# ── Built-in glyphs ─────────────────────────────────────────────────


class TestBuiltinGlyphs:
    @pytest.mark.parametrize("shape", CURSOR_SHAPES)
    def test_every_shape_renders(self, shape: str) -> None:
        img = render_builtin_glyph(shape, 48)
        assert img.shape == (48, 48, 4)
        assert img.dtype == np.uint8
        assert img[:, :, 3].max() > 200

    def test_unknown_shape_raises(self) -> None:
        with pytest.raises(MissingAssetError) as exc_info:
            render_builtin_glyph("sparkles", 32)
        assert exc_info.value.shape == "sparkles"

    def test_missing_asset_error_types(self) -> None:
        err = MissingAssetError("sparkles")
        assert isinstance(err, CursorGlideError)
        assert isinstance(err, FileNotFoundError)

    def test_arrow_tip_at_hotspot(self) -> None:
        img = render_builtin_glyph("arrow", 64)
        hx, hy = scaled_hotspot("arrow", 64)
        # tip is opaque, far corner is empty
        assert img[int(hy) + 2, int(hx) + 1, 3] > 0
        assert img[2, 60, 3] == 0

    def test_color_applied(self) -> None:
        img = render_builtin_glyph("arrow", 64, "#ff0000")
        b, g, r, _ = img[40, 24]
        assert r > 200 and g < 60 and b < 60


# ── Asset files ─────────────────────────────────────────────────────


class TestAssets:
    def test_resolve_without_dir(self) -> None:
        assert resolve_cursor_asset("arrow", None) is None

    def test_resolve_png_fallback(self, tmp_path) -> None:
        cv2.imwrite(str(tmp_path / "handpointing.png"), np.zeros((8, 8, 4), np.uint8))
        path = resolve_cursor_asset("pointer", str(tmp_path))
        assert path is not None and path.endswith("handpointing.png")

    def test_prefers_svg(self, tmp_path) -> None:
        (tmp_path / "default.svg").write_text("<svg/>")
        cv2.imwrite(str(tmp_path / "default.png"), np.zeros((8, 8, 4), np.uint8))
        assert resolve_cursor_asset("arrow", str(tmp_path)).endswith("default.svg")

    def test_png_asset_resized(self, tmp_path) -> None:
        glyph = np.zeros((64, 64, 4), np.uint8)
        glyph[:, :32] = (255, 0, 0, 255)
        cv2.imwrite(str(tmp_path / "default.png"), glyph)
        img = rasterize_cursor("arrow", 32, assets_dir=str(tmp_path))
        assert img.shape == (32, 32, 4)
        assert img[16, 4].tolist() == [255, 0, 0, 255]
        assert img[16, 28, 3] == 0

    def test_rgb_png_gets_alpha(self, tmp_path) -> None:
        cv2.imwrite(str(tmp_path / "cross.png"), np.full((32, 32, 3), 200, np.uint8))
        img = rasterize_cursor("crosshair", 32, assets_dir=str(tmp_path))
        assert img.shape == (32, 32, 4)
        assert (img[:, :, 3] == 255).all()

    def test_svg_asset(self, tmp_path, qt_app) -> None:
        svg = (
            '<svg xmlns="http://www.w3.org/2000/svg" width="32" height="32" viewBox="0 0 32 32">'
            '<rect x="0" y="0" width="16" height="32" fill="#0000ff"/></svg>'
        )
        (tmp_path / "default.svg").write_text(svg)
        img = rasterize_cursor("arrow", 32, assets_dir=str(tmp_path))
        assert img.shape == (32, 32, 4)
        assert img[16, 4, 0] > 200 and img[16, 4, 3] > 200  # blue, opaque
        assert img[16, 28, 3] == 0

    def test_missing_dir_entry_uses_builtin(self, tmp_path) -> None:
        img = rasterize_cursor("ibeam", 24, assets_dir=str(tmp_path))
        assert img.shape == (24, 24, 4)


# ── CursorImageCache ────────────────────────────────────────────────


class TestCursorImageCache:
    def test_same_key_same_image(self) -> None:
        cache = CursorImageCache()
        a = cache.get("arrow", 32)
        assert cache.get("arrow", 32) is a
        assert len(cache) == 1

    def test_keyed_by_size(self) -> None:
        cache = CursorImageCache()
        cache.get("arrow", 32)
        cache.get("arrow", 33)
        assert len(cache) == 2

    def test_cached_images_read_only(self) -> None:
        img = CursorImageCache().get("pointer", 24)
        assert not img.flags.writeable

    def test_prepare_fails_early(self) -> None:
        cache = CursorImageCache()
        with pytest.raises(MissingAssetError):
            cache.prepare(["arrow", "sparkles"], 32)

    def test_prepare_populates(self) -> None:
        cache = CursorImageCache()
        cache.prepare(["arrow", "ibeam", "arrow"], 40)
        assert len(cache) == 2


# ── alpha_composite ─────────────────────────────────────────────────


class TestAlphaComposite:
    def test_opaque(self) -> None:
        canvas = np.zeros((10, 10, 3), np.uint8)
        alpha_composite(canvas, np.full((4, 4, 4), 255, np.uint8), 3, 2)
        assert canvas[2:6, 3:7].min() == 255
        assert canvas.sum() == 16 * 3 * 255

    def test_clipped_at_edges(self) -> None:
        canvas = np.zeros((10, 10, 3), np.uint8)
        alpha_composite(canvas, np.full((4, 4, 4), 255, np.uint8), -2, 8)
        assert canvas[8:10, 0:2].min() == 255
        assert canvas.sum() == 4 * 3 * 255

    def test_fully_outside(self) -> None:
        canvas = np.zeros((10, 10, 3), np.uint8)
        alpha_composite(canvas, np.full((4, 4, 4), 255, np.uint8), 20, 20)
        assert canvas.max() == 0

    def test_half_alpha(self) -> None:
        canvas = np.zeros((4, 4, 3), np.uint8)
        img = np.zeros((4, 4, 4), np.uint8)
        img[:, :, :3] = 200
        img[:, :, 3] = 128
        alpha_composite(canvas, img, 0, 0)
        assert int(canvas[0, 0, 0]) == pytest.approx(100, abs=1)

    def test_transparent_leaves_canvas(self) -> None:
        canvas = np.full((4, 4, 3), 77, np.uint8)
        alpha_composite(canvas, np.zeros((4, 4, 4), np.uint8), 0, 0)
        assert (canvas == 77).all()
