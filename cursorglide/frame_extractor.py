"""Frame I/O — ffmpeg extraction and encoding of numbered PNG sequences.

The render pipeline works on directories of ``frame_000001.png``-style
images.  ffmpeg (bundled via imageio-ffmpeg) turns a recording into
such a directory and turns the rendered directory back into an H.264
MP4.  Video properties are probed with OpenCV.
"""

import glob
import logging
import os
import subprocess
from dataclasses import dataclass
from typing import List, Optional

import cv2
import numpy as np

from .errors import ExportError, FrameNotFoundError
from .utils import (
    FRAME_PATTERN,
    build_encoder_args,
    encoder_display_name,
    ffmpeg_exe,
    frame_filename,
    subprocess_kwargs,
)

logger = logging.getLogger(__name__)

FFMPEG_TIMEOUT_S = 3600
_FALLBACK_ENCODER = "libx264"


@dataclass
class VideoProbe:
    width: int
    height: int
    frame_rate: float
    frame_count: int

    @property
    def duration_ms(self) -> float:
        if self.frame_rate <= 0:
            return 0.0
        return self.frame_count / self.frame_rate * 1000.0


def probe_video(path: str) -> VideoProbe:
    """Read dimensions, frame rate and frame count from a video file."""
    cap = cv2.VideoCapture(path)
    if not cap.isOpened():
        raise ExportError(f"Cannot open {path}")
    try:
        fps = cap.get(cv2.CAP_PROP_FPS)
        if fps <= 0 or fps > 240:
            fps = 30.0
        return VideoProbe(
            width=int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            height=int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            frame_rate=fps,
            frame_count=int(cap.get(cv2.CAP_PROP_FRAME_COUNT)),
        )
    finally:
        cap.release()


def _run_ffmpeg(cmd: List[str], what: str) -> None:
    logger.info("Running ffmpeg (%s): %s", what, " ".join(cmd))
    try:
        result = subprocess.run(
            cmd, stdout=subprocess.DEVNULL, stderr=subprocess.PIPE,
            timeout=FFMPEG_TIMEOUT_S, **subprocess_kwargs(),
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise ExportError(f"ffmpeg {what} failed: {exc}") from exc
    if result.returncode != 0:
        err = result.stderr.decode(errors="replace").strip()[-800:] if result.stderr else ""
        logger.error("ffmpeg %s failed (rc=%s): %s", what, result.returncode, err)
        raise ExportError(f"ffmpeg {what} failed (rc={result.returncode}): {err[:500]}")


def count_frames(frame_dir: str) -> int:
    """Number of numbered frame images in *frame_dir*."""
    return len(glob.glob(os.path.join(frame_dir, "frame_*.png")))


def extract_frames(input_path: str, output_dir: str, frame_rate: float) -> int:
    """Decode *input_path* into numbered PNGs at a fixed frame rate.

    Returns the number of frames written.
    """
    os.makedirs(output_dir, exist_ok=True)
    cmd = [
        ffmpeg_exe(), "-y",
        "-i", input_path,
        "-vf", f"fps={frame_rate}",
        "-start_number", "1",
        os.path.join(output_dir, FRAME_PATTERN),
    ]
    _run_ffmpeg(cmd, "extract")
    n = count_frames(output_dir)
    logger.info("Extracted %d frames from %s", n, input_path)
    return n


def encode_frames(frame_dir: str, output_path: str, frame_rate: float,
                  encoder_id: str = _FALLBACK_ENCODER) -> str:
    """Encode numbered PNGs in *frame_dir* to an MP4.

    A failing hardware encoder is retried once with ``libx264``.
    Returns the output path (``.mp4`` extension enforced).
    """
    if not output_path.lower().endswith(".mp4"):
        output_path = output_path.rsplit(".", 1)[0] + ".mp4"

    def _cmd(enc_id: str) -> List[str]:
        return [
            ffmpeg_exe(), "-y",
            "-framerate", str(frame_rate),
            "-start_number", "1",
            "-i", os.path.join(frame_dir, FRAME_PATTERN),
        ] + build_encoder_args(enc_id) + [output_path]

    try:
        _run_ffmpeg(_cmd(encoder_id), "encode")
    except ExportError:
        if encoder_id == _FALLBACK_ENCODER:
            raise
        logger.warning("%s failed, retrying with %s",
                       encoder_display_name(encoder_id), encoder_display_name(_FALLBACK_ENCODER))
        _run_ffmpeg(_cmd(_FALLBACK_ENCODER), "encode")
    return output_path


def load_frame(frame_dir: str, index: int) -> np.ndarray:
    """Read zero-based frame *index* as BGR; raises if it does not exist."""
    path = os.path.join(frame_dir, frame_filename(index))
    if not os.path.isfile(path):
        raise FrameNotFoundError(index, path)
    img = cv2.imread(path, cv2.IMREAD_COLOR)
    if img is None:
        raise FrameNotFoundError(index, path)
    return img


def save_frame(frame_dir: str, index: int, frame_bgr: np.ndarray) -> str:
    path = os.path.join(frame_dir, frame_filename(index))
    if not cv2.imwrite(path, frame_bgr):
        raise OSError(f"Could not write {path}")
    return path


def first_frame_size(frame_dir: str) -> Optional[tuple]:
    """``(width, height)`` of the first frame, or ``None`` if there is none."""
    try:
        img = load_frame(frame_dir, 0)
    except FrameNotFoundError:
        return None
    h, w = img.shape[:2]
    return w, h
