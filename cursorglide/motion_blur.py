"""Directional motion blur for the cursor glyph.

The kernel is a single anti-aliased line through the kernel center,
rotated to follow the velocity vector.  Its length grows with the
distance travelled per frame::

    length = min(speed / frame_rate * strength * 1.5, 50)

Blurring runs on premultiplied alpha so transparent pixels do not
bleed black into the glyph edges.
"""

import logging
import math

import cv2
import numpy as np

logger = logging.getLogger(__name__)

MOTION_BLUR_BASE_MULTIPLIER = 1.5
MOTION_BLUR_MAX_LENGTH = 50.0
MOTION_BLUR_MIN_LENGTH = 0.5
MOTION_BLUR_VELOCITY_THRESHOLD = 0.1  # px/s


def blur_length(velocity_x: float, velocity_y: float, strength: float,
                frame_rate: float) -> float:
    """Kernel length in pixels; 0 when the blur should be skipped."""
    speed = math.hypot(velocity_x, velocity_y)
    if speed < MOTION_BLUR_VELOCITY_THRESHOLD or strength <= 0 or frame_rate <= 0:
        return 0.0
    length = min(speed / frame_rate * strength * MOTION_BLUR_BASE_MULTIPLIER,
                 MOTION_BLUR_MAX_LENGTH)
    if length < MOTION_BLUR_MIN_LENGTH:
        return 0.0
    return length


def line_kernel(length: float, angle: float) -> np.ndarray:
    """Normalized line kernel of *length* px at *angle* radians."""
    ksize = int(math.ceil(length)) | 1
    kernel = np.zeros((ksize, ksize), dtype=np.float32)
    c = ksize // 2
    half = (length - 1) / 2.0
    dx = math.cos(angle) * half
    dy = math.sin(angle) * half
    p1 = (int(round(c - dx)), int(round(c - dy)))
    p2 = (int(round(c + dx)), int(round(c + dy)))
    cv2.line(kernel, p1, p2, 1.0, 1, cv2.LINE_AA)
    total = kernel.sum()
    if total <= 0:
        kernel[c, c] = 1.0
        return kernel
    return kernel / total


def apply_motion_blur(image_bgra: np.ndarray, velocity_x: float, velocity_y: float,
                      strength: float, frame_rate: float) -> np.ndarray:
    """Return a blurred copy of *image_bgra*, or the input unchanged.

    The input is never modified.  If the convolution fails the unblurred
    glyph is returned and a warning logged.
    """
    length = blur_length(velocity_x, velocity_y, strength, frame_rate)
    if length < 2.0:
        return image_bgra
    angle = math.atan2(velocity_y, velocity_x)
    try:
        kernel = line_kernel(length, angle)
        img = image_bgra.astype(np.float32)
        alpha = img[:, :, 3:4] / 255.0
        img[:, :, :3] *= alpha
        blurred = cv2.filter2D(img, -1, kernel, borderType=cv2.BORDER_CONSTANT)
        a = blurred[:, :, 3:4]
        color = blurred[:, :, :3] * 255.0 / np.maximum(a, 1e-3)
        out = np.concatenate([color, a], axis=2)
        return np.clip(out + 0.5, 0, 255).astype(np.uint8)
    except cv2.error as exc:
        logger.warning("Motion blur failed (length=%.1f): %s", length, exc)
        return image_bgra
