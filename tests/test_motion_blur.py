"""Tests for cursorglide.motion_blur — kernel length and the blur itself."""

import cv2
import numpy as np
import pytest

from cursorglide import motion_blur
from cursorglide.motion_blur import (
    MOTION_BLUR_MAX_LENGTH,
    apply_motion_blur,
    blur_length,
    line_kernel,
)


@pytest.fixture
def dot() -> np.ndarray:
    """Opaque white 5×5 square in the middle of a 41×41 glyph."""
    img = np.zeros((41, 41, 4), dtype=np.uint8)
    img[18:23, 18:23] = 255
    return img


class TestBlurLength:
    def test_formula(self) -> None:
        # 300 px/s at 30 fps is 10 px per frame
        assert blur_length(300.0, 0.0, 1.0, 30.0) == pytest.approx(15.0)

    def test_scales_with_strength(self) -> None:
        assert blur_length(300.0, 0.0, 0.5, 30.0) == pytest.approx(7.5)

    def test_capped(self) -> None:
        assert blur_length(1e6, 0.0, 1.0, 30.0) == MOTION_BLUR_MAX_LENGTH

    def test_below_threshold(self) -> None:
        assert blur_length(0.05, 0.0, 1.0, 30.0) == 0.0

    def test_tiny_length_skipped(self) -> None:
        assert blur_length(5.0, 0.0, 1.0, 30.0) == 0.0

    def test_zero_strength(self) -> None:
        assert blur_length(500.0, 500.0, 0.0, 30.0) == 0.0


class TestLineKernel:
    def test_normalized(self) -> None:
        k = line_kernel(9.0, 0.0)
        assert k.sum() == pytest.approx(1.0)
        assert k.shape == (9, 9)

    def test_horizontal_kernel_is_a_row(self) -> None:
        k = line_kernel(9.0, 0.0)
        assert k[4].sum() == pytest.approx(1.0, abs=0.05)


class TestApplyMotionBlur:
    def test_still_returns_input(self, dot: np.ndarray) -> None:
        assert apply_motion_blur(dot, 0.0, 0.0, 1.0, 30.0) is dot

    def test_horizontal_spread(self, dot: np.ndarray) -> None:
        out = apply_motion_blur(dot, 400.0, 0.0, 1.0, 30.0)
        alpha = out[:, :, 3]
        cols = np.nonzero(alpha.max(axis=0))[0]
        rows = np.nonzero(alpha.max(axis=1))[0]
        assert cols.max() - cols.min() > rows.max() - rows.min()

    def test_input_not_modified(self, dot: np.ndarray) -> None:
        before = dot.copy()
        dot.setflags(write=False)
        apply_motion_blur(dot, 0.0, 400.0, 1.0, 30.0)
        assert np.array_equal(dot, before)

    def test_color_preserved(self, dot: np.ndarray) -> None:
        out = apply_motion_blur(dot, 400.0, 0.0, 1.0, 30.0)
        visible = out[:, :, 3] > 10
        assert out[:, :, :3][visible].min() >= 240

    def test_failure_falls_back(self, dot: np.ndarray, monkeypatch) -> None:
        def boom(*args, **kwargs):
            raise cv2.error("boom")
        monkeypatch.setattr(motion_blur.cv2, "filter2D", boom)
        assert apply_motion_blur(dot, 400.0, 0.0, 1.0, 30.0) is dot
